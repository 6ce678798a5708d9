"""
tests/test_gamification_service.py — Award Service Integration Tests
=====================================================================
Service-level tests for GamificationService: persisted state, ledger
entries, badge recording, notifications, retries and degraded sources.

Uses an in-memory SQLite database via the shared conftest fixtures.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from conftest import make_user
from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from taskflow.config import TaskflowConfig
from taskflow.constants import (
    BADGE_CENTURION,
    BADGE_COMMUNICATOR,
    BADGE_EARLY_BIRD,
    BADGE_FIRST_TASK,
    BADGE_LEADER,
    BADGE_SPRINTER,
    BADGE_TEAM_PLAYER,
)
from taskflow.database.models import ActionKind, ActivityLog, TaskPriority, User
from taskflow.errors import ConcurrentUpdateError, UserNotFoundError
from taskflow.schemas import NotificationType
from taskflow.services.gamification_service import GamificationService
from taskflow.services.notification_service import LoggingNotifier, ThreadedNotifier
from taskflow.services.stores import UserBadges, UserStore

USER = 1
RIVAL = 2


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _sent(notifier: MagicMock) -> list:
    """Notifications handed to the mock notifier, in order."""
    return [c.args[1] for c in notifier.notify.call_args_list]


def _ledger(engine, user_id: int = USER) -> list[ActivityLog]:
    with Session(engine) as session:
        return list(session.scalars(
            select(ActivityLog)
            .where(ActivityLog.user_id == user_id)
            .order_by(ActivityLog.id)
        ).all())


def _user(engine, user_id: int = USER) -> User:
    with Session(engine) as session:
        user = session.get(User, user_id)
        session.expunge(user)
        return user


def _badges(engine, user_id: int = USER) -> set[str]:
    with Session(engine) as session:
        return UserBadges(session).earned_codes(user_id)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def engine(seeded_engine):
    """Badge catalog plus a rival far ahead, so LEADER stays out of the way."""
    make_user(seeded_engine, RIVAL, "Rival", total_points=5000, level=6,
              level_name="Lenda")
    make_user(seeded_engine, USER, "Ana")
    return seeded_engine


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def service(engine, notifier, clock):
    return GamificationService(engine, notifier=notifier, clock=clock)


# ---------------------------------------------------------------------------
# Tests — awards
# ---------------------------------------------------------------------------
class TestTaskCompleted:
    def test_new_user_high_priority_before_deadline(self, service, engine, notifier):
        points = service.award_for_task_completed(
            USER, TaskPriority.HIGH, True, task_id=77
        )
        assert points == 45

        user = _user(engine)
        assert user.total_points == 45
        assert user.tasks_completed == 1
        assert user.current_streak == 1
        assert user.level == 1

        assert _badges(engine) == {BADGE_FIRST_TASK}

        sent = _sent(notifier)
        assert len(sent) == 1
        assert sent[0].type == NotificationType.BADGE_EARNED
        assert "Primeira Tarefa" in sent[0].message

    def test_ledger_entries(self, service, engine):
        service.award_for_task_completed(USER, TaskPriority.HIGH, True, task_id=77)

        entries = _ledger(engine)
        assert [e.action for e in entries] == [
            ActionKind.TASK_COMPLETED.value,
            ActionKind.USER_BADGE_EARNED.value,
        ]
        completed, badge = entries
        assert completed.points_earned == 45
        assert completed.entity_type == "TASK"
        assert completed.entity_id == 77
        assert completed.metadata_["before_deadline"] is True
        assert completed.metadata_["deadline_bonus"] == 15
        assert badge.points_earned == 0
        assert badge.entity_type == "BADGE"

    def test_unknown_priority_rejected_before_scoring(self, service, engine):
        with pytest.raises(ValueError):
            service.award_for_task_completed(USER, "URGENT", False)
        assert _ledger(engine) == []
        assert _user(engine).total_points == 0

    def test_unknown_user(self, service, engine):
        with pytest.raises(UserNotFoundError) as exc_info:
            service.award_for_task_completed(999, TaskPriority.LOW, False)
        assert exc_info.value.user_id == 999
        assert _ledger(engine, 999) == []


class TestOtherAwards:
    def test_task_created(self, service, engine):
        assert service.award_for_task_created(USER, task_id=5) == 5
        entry = _ledger(engine)[0]
        assert entry.action == ActionKind.TASK_CREATED.value
        assert entry.entity_id == 5

    def test_comment(self, service, engine):
        assert service.award_for_comment(USER, comment_id=9) == 2
        entry = _ledger(engine)[0]
        assert entry.action == ActionKind.COMMENT_ADDED.value
        assert entry.entity_type == "COMMENT"

    def test_one_ledger_entry_per_award(self, service, engine):
        service.award_for_task_created(USER)
        service.award_for_comment(USER)
        service.award_for_comment(USER)
        assert len(_ledger(engine)) == 3


class TestStreaks:
    def test_day1_day2_day4(self, service, engine, clock):
        assert service.award_for_task_created(USER) == 5
        assert _user(engine).current_streak == 1

        clock.advance_days(1)
        assert service.award_for_task_created(USER) == 10
        assert _user(engine).current_streak == 2

        clock.advance_days(2)
        assert service.award_for_task_created(USER) == 5
        user = _user(engine)
        assert user.current_streak == 1
        assert user.longest_streak == 2
        assert user.total_points == 20


class TestLevelUp:
    def test_level_up_notification(self, engine, notifier, clock):
        make_user(engine, 3, "Bia", total_points=90)
        service = GamificationService(engine, notifier=notifier, clock=clock)

        service.award_for_task_completed(3, TaskPriority.LOW, False)

        user = _user(engine, 3)
        assert user.total_points == 100
        assert user.level == 2
        assert user.level_name == "Aprendiz"

        level_ups = [n for n in _sent(notifier) if n.type == NotificationType.LEVEL_UP]
        assert len(level_ups) == 1
        assert level_ups[0].entity_id == 2

    def test_no_level_up_notification_within_band(self, service, notifier):
        service.award_for_task_created(USER)
        assert not any(n.type == NotificationType.LEVEL_UP for n in _sent(notifier))

    def test_points_notification_is_opt_in(self, engine, notifier, clock):
        service = GamificationService(
            engine,
            notifier=notifier,
            clock=clock,
            config=TaskflowConfig(notify_points=True),
        )
        service.award_for_comment(USER)
        sent = _sent(notifier)
        assert [n.type for n in sent] == [NotificationType.POINTS_EARNED]
        assert sent[0].title == "+2 pontos"


# ---------------------------------------------------------------------------
# Tests — reversal
# ---------------------------------------------------------------------------
class TestReversal:
    def test_reversal_restores_total_exactly(self, service, engine, clock):
        service.award_for_task_created(USER)
        clock.advance_days(1)
        before = _user(engine).total_points

        awarded = service.award_for_task_completed(USER, TaskPriority.MEDIUM, True)
        assert awarded == 40  # 20 + 15 early + 5 streak

        removed = service.reverse_task_completion(USER, awarded, task_id=3)
        assert removed == awarded

        user = _user(engine)
        assert user.total_points == before
        assert user.tasks_completed == 0

        last = _ledger(engine)[-1]
        assert last.action == ActionKind.TASK_REOPENED.value
        assert last.points_earned == -awarded

    def test_reversal_clamps_at_zero(self, engine, notifier, clock):
        make_user(engine, 3, "Bia", total_points=10, tasks_completed=1)
        service = GamificationService(engine, notifier=notifier, clock=clock)

        assert service.reverse_task_completion(3, 30) == 10
        user = _user(engine, 3)
        assert user.total_points == 0
        assert user.tasks_completed == 0
        assert _ledger(engine, 3)[-1].points_earned == -10

    def test_reversal_does_not_evaluate_badges(self, engine, notifier, clock):
        make_user(engine, 3, "Bia", total_points=200, level=2,
                  level_name="Aprendiz", tasks_completed=5)
        service = GamificationService(engine, notifier=notifier, clock=clock)

        service.reverse_task_completion(3, 30)

        assert _badges(engine, 3) == set()
        notifier.notify.assert_not_called()

    def test_reversal_demotes_level(self, engine, notifier, clock):
        make_user(engine, 3, "Bia", total_points=110, level=2,
                  level_name="Aprendiz", tasks_completed=2)
        service = GamificationService(engine, notifier=notifier, clock=clock)

        service.reverse_task_completion(3, 30)

        user = _user(engine, 3)
        assert user.level == 1
        assert user.level_name == "Iniciante"

    def test_negative_reversal_rejected(self, service, engine):
        with pytest.raises(ValueError):
            service.reverse_task_completion(USER, -5)
        assert _ledger(engine) == []


# ---------------------------------------------------------------------------
# Tests — badges
# ---------------------------------------------------------------------------
class TestBadges:
    def test_badge_awarded_once(self, service, engine, notifier):
        service.award_for_task_completed(USER, TaskPriority.LOW, False)
        service.award_for_task_completed(USER, TaskPriority.LOW, False)

        assert _badges(engine) == {BADGE_FIRST_TASK}
        badge_notes = [
            n for n in _sent(notifier) if n.type == NotificationType.BADGE_EARNED
        ]
        assert len(badge_notes) == 1

    def test_first_task_and_centurion_together(self, engine, notifier, clock):
        make_user(engine, 3, "Bia", tasks_completed=99)
        service = GamificationService(engine, notifier=notifier, clock=clock)

        service.award_for_task_completed(3, TaskPriority.LOW, False)

        assert _badges(engine, 3) == {BADGE_FIRST_TASK, BADGE_CENTURION}
        badge_notes = [
            n for n in _sent(notifier) if n.type == NotificationType.BADGE_EARNED
        ]
        assert len(badge_notes) == 2

    def test_sprinter_counts_net_completions_today(self, service, engine):
        for _ in range(4):
            service.award_for_task_completed(USER, TaskPriority.LOW, False)
        service.reverse_task_completion(USER, 10)
        service.award_for_task_completed(USER, TaskPriority.LOW, False)
        assert BADGE_SPRINTER not in _badges(engine)

        service.award_for_task_completed(USER, TaskPriority.LOW, False)
        assert BADGE_SPRINTER in _badges(engine)

    def test_sprinter_ignores_yesterday(self, service, engine, clock):
        for _ in range(3):
            service.award_for_task_completed(USER, TaskPriority.LOW, False)
        clock.advance_days(1)
        for _ in range(3):
            service.award_for_task_completed(USER, TaskPriority.LOW, False)
        assert BADGE_SPRINTER not in _badges(engine)

    def test_early_bird_after_ten_early_completions(self, service, engine):
        for _ in range(9):
            service.award_for_task_completed(USER, TaskPriority.LOW, True)
        service.award_for_task_completed(USER, TaskPriority.LOW, False)
        assert BADGE_EARLY_BIRD not in _badges(engine)

        service.award_for_task_completed(USER, TaskPriority.LOW, True)
        assert BADGE_EARLY_BIRD in _badges(engine)

    def test_communicator_from_comment_source(self, engine, notifier, clock):
        comments = MagicMock()
        comments.count_by_author.return_value = 50
        service = GamificationService(
            engine, notifier=notifier, clock=clock, comment_counts=comments
        )
        service.award_for_comment(USER)
        assert BADGE_COMMUNICATOR in _badges(engine)
        comments.count_by_author.assert_called_with(USER)

    def test_communicator_from_ledger_by_default(self, service, engine):
        for _ in range(49):
            service.award_for_comment(USER)
        assert BADGE_COMMUNICATOR not in _badges(engine)
        service.award_for_comment(USER)
        assert BADGE_COMMUNICATOR in _badges(engine)

    def test_leader_for_top_ranked_user(self, seeded_engine, notifier, clock):
        make_user(seeded_engine, USER, "Ana")
        service = GamificationService(seeded_engine, notifier=notifier, clock=clock)

        service.award_for_task_created(USER)
        assert BADGE_LEADER in _badges(seeded_engine)

    def test_team_player_needs_project_source(self, engine, notifier, clock):
        projects = MagicMock()
        projects.count_by_member.return_value = 5
        service = GamificationService(
            engine, notifier=notifier, clock=clock, project_counts=projects
        )
        service.award_for_task_created(USER)
        assert BADGE_TEAM_PLAYER in _badges(engine)

    def test_team_player_skipped_without_source(self, service, engine):
        service.award_for_task_created(USER)
        assert BADGE_TEAM_PLAYER not in _badges(engine)

    def test_evaluate_badges_directly(self, engine, notifier, clock):
        make_user(engine, 3, "Bia", tasks_completed=1)
        service = GamificationService(engine, notifier=notifier, clock=clock)

        earned = service.evaluate_badges(3)
        assert [b.code for b in earned] == [BADGE_FIRST_TASK]
        assert earned[0].earned_at == clock.now
        assert len(_sent(notifier)) == 1

        assert service.evaluate_badges(3) == []
        assert len(_sent(notifier)) == 1


# ---------------------------------------------------------------------------
# Tests — failure isolation
# ---------------------------------------------------------------------------
class TestFailureIsolation:
    def test_notifier_failure_does_not_undo_award(self, service, engine, notifier):
        notifier.notify.side_effect = RuntimeError("socket closed")

        points = service.award_for_task_completed(USER, TaskPriority.HIGH, True)

        assert points == 45
        assert _user(engine).total_points == 45
        assert _badges(engine) == {BADGE_FIRST_TASK}

    def test_ranking_failure_skips_leader_only(self, seeded_engine, notifier, clock):
        make_user(seeded_engine, USER, "Ana")
        ranking = MagicMock()
        ranking.user_ids_by_points_desc.side_effect = RuntimeError("scan timed out")
        service = GamificationService(
            seeded_engine, notifier=notifier, clock=clock, ranking=ranking
        )

        service.award_for_task_completed(USER, TaskPriority.LOW, False)

        assert _badges(seeded_engine) == {BADGE_FIRST_TASK}

    def test_comment_source_failure_skips_communicator(self, engine, notifier, clock):
        comments = MagicMock()
        comments.count_by_author.side_effect = RuntimeError("down")
        service = GamificationService(
            engine, notifier=notifier, clock=clock, comment_counts=comments
        )

        assert service.award_for_comment(USER) == 2
        assert _badges(engine) == set()

    def test_badge_evaluation_failure_keeps_award(self, service, engine, notifier,
                                                  monkeypatch):
        def _explode(user_id):
            raise RuntimeError("badge table locked")

        monkeypatch.setattr(service, "_record_badges", _explode)

        assert service.award_for_task_completed(USER, TaskPriority.HIGH, True) == 45
        assert _user(engine).total_points == 45
        assert _sent(notifier) == []


# ---------------------------------------------------------------------------
# Tests — optimistic locking
# ---------------------------------------------------------------------------
class TestConcurrentUpdates:
    def test_retries_after_version_conflict(self, service, engine, monkeypatch):
        real_save = UserStore.save
        calls = {"n": 0}

        def flaky_save(self, state):
            calls["n"] += 1
            if calls["n"] == 1:
                raise StaleDataError("users row changed underneath us")
            return real_save(self, state)

        monkeypatch.setattr(UserStore, "save", flaky_save)

        assert service.award_for_task_created(USER) == 5
        assert calls["n"] == 2
        assert _user(engine).total_points == 5
        assert len(_ledger(engine)) == 1

    def test_gives_up_after_max_retries(self, service, engine, notifier, monkeypatch):
        attempts = {"n": 0}

        def always_stale(self, state):
            attempts["n"] += 1
            raise StaleDataError("users row changed underneath us")

        monkeypatch.setattr(UserStore, "save", always_stale)

        with pytest.raises(ConcurrentUpdateError) as exc_info:
            service.award_for_task_created(USER)

        assert exc_info.value.attempts == 3
        assert attempts["n"] == 3
        assert _user(engine).total_points == 0
        assert _ledger(engine) == []
        notifier.notify.assert_not_called()

    def test_version_bumps_on_every_award(self, service, engine):
        before = _user(engine).version
        service.award_for_task_created(USER)
        service.award_for_comment(USER)
        assert _user(engine).version == before + 2


class TestNotifierWiring:
    def test_logging_notifier_without_webhook(self, engine, clock):
        service = GamificationService(engine, clock=clock)
        assert isinstance(service.notifier, LoggingNotifier)
        service.close()

    def test_webhook_url_selects_threaded_webhook(self, engine, clock):
        cfg = TaskflowConfig(webhook_url="https://hooks.example/n")
        service = GamificationService(engine, config=cfg, clock=clock)
        assert isinstance(service.notifier, ThreadedNotifier)
        service.close()

    def test_close_shuts_down_owned_notifier(self, engine, clock):
        owned = MagicMock()
        with patch(
            "taskflow.services.gamification_service.build_notifier",
            return_value=owned,
        ) as build:
            cfg = TaskflowConfig(webhook_url="https://hooks.example/n")
            service = GamificationService(engine, config=cfg, clock=clock)

        build.assert_called_once_with(cfg)
        service.award_for_task_completed(USER, TaskPriority.HIGH, True)
        service.close()
        owned.notify.assert_called()
        owned.shutdown.assert_called_once_with()

    def test_close_leaves_injected_notifier_running(self, service, notifier):
        service.close()
        notifier.shutdown.assert_not_called()
