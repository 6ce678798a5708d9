"""
taskflow.services.gamification_service — Award Orchestration
=============================================================

Shared service called by the task and comment services.  Each award:

1. Loads the user's state (row lock + optimistic version check)
2. Runs the pure :class:`GamificationEngine` pipeline
3. Saves the new state and appends one ledger entry, then commits
4. Evaluates badges in a separate transaction
5. Dispatches notifications (badges, level-up, optionally points)

Steps 4 and 5 can fail without undoing step 3.  A version conflict in
steps 1-3 retries the whole award up to ``max_award_retries`` times.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import TYPE_CHECKING, TypeVar

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from taskflow.config import TaskflowConfig
from taskflow.database.models import ActionKind, TaskPriority
from taskflow.engine.badges import BadgeContext
from taskflow.engine.gamification import AwardOutcome, GamificationEngine, GamificationState
from taskflow.errors import ConcurrentUpdateError
from taskflow.schemas import Notification, badge_earned, level_up, points_earned
from taskflow.services.notification_service import Notifier, build_notifier, dispatch
from taskflow.services.stores import (
    ActivityLedger,
    BadgeCatalog,
    CommentCountSource,
    ProjectCountSource,
    RankingSource,
    SqlCommentCountSource,
    SqlRankingSource,
    UserBadges,
    UserStore,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

T = TypeVar("T")

AwardStep = Callable[[GamificationState, date], AwardOutcome]


@dataclass(frozen=True, slots=True)
class EarnedBadge:
    badge_id: int
    code: str
    name: str
    description: str | None
    earned_at: datetime


@dataclass(slots=True)
class AwardReceipt:
    """Everything one award call did, for callers that need more than points."""

    user_id: int
    outcome: AwardOutcome
    badges: list[EarnedBadge] = field(default_factory=list)
    notifications: list[Notification] = field(default_factory=list)

    @property
    def points(self) -> int:
        return self.outcome.points

    @property
    def leveled_up(self) -> bool:
        return self.outcome.leveled_up


class GamificationService:
    """Entry points for domain events.  All require an existing user."""

    def __init__(
        self,
        engine: Engine,
        *,
        gamification: GamificationEngine | None = None,
        notifier: Notifier | None = None,
        config: TaskflowConfig | None = None,
        comment_counts: CommentCountSource | None = None,
        ranking: RankingSource | None = None,
        project_counts: ProjectCountSource | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._engine = engine
        self._config = config or TaskflowConfig()
        self.gamification = gamification or GamificationEngine()
        self.notifier = notifier or build_notifier(self._config)
        self._owns_notifier = notifier is None
        self._comments = comment_counts or SqlCommentCountSource(engine)
        self._ranking = ranking or SqlRankingSource(engine)
        self._projects = project_counts
        self._clock = clock or (lambda: datetime.now(self._config.tzinfo))

    def close(self) -> None:
        """Stop delivery workers of a notifier this service built itself.

        Injected notifiers belong to the caller and are left running.
        """
        if not self._owns_notifier:
            return
        shutdown = getattr(self.notifier, "shutdown", None)
        if shutdown is not None:
            shutdown()

    # -----------------------------------------------------------------------
    # Public entry points
    # -----------------------------------------------------------------------
    def award_for_task_created(self, user_id: int, *, task_id: int | None = None) -> int:
        receipt = self._process(
            user_id,
            self.gamification.task_created,
            entity_type="TASK",
            entity_id=task_id,
        )
        return receipt.points

    def award_for_task_completed(
        self,
        user_id: int,
        priority: TaskPriority | str,
        before_deadline: bool,
        *,
        task_id: int | None = None,
    ) -> int:
        """Award a completion.  Store the return value on the task for reversal."""
        self.gamification.scoring.completion_base(priority)  # reject unknown priority early
        receipt = self._process(
            user_id,
            lambda state, today: self.gamification.task_completed(
                state, priority, before_deadline, today
            ),
            entity_type="TASK",
            entity_id=task_id,
        )
        logger.info(
            "Task %s completed by user %d. Points awarded: %d",
            task_id, user_id, receipt.points,
        )
        return receipt.points

    def award_for_comment(self, user_id: int, *, comment_id: int | None = None) -> int:
        receipt = self._process(
            user_id,
            self.gamification.comment_added,
            entity_type="COMMENT",
            entity_id=comment_id,
        )
        return receipt.points

    def reverse_task_completion(
        self, user_id: int, points_to_reverse: int, *, task_id: int | None = None
    ) -> int:
        """Undo a completion.  Returns the points actually removed (≥ 0)."""
        if points_to_reverse < 0:
            raise ValueError(f"Points to reverse cannot be negative: {points_to_reverse}")

        outcome = self._commit_with_retry(
            user_id,
            lambda state, _today: self.gamification.reverse_task_completion(
                state, points_to_reverse
            ),
            entity_type="TASK",
            entity_id=task_id,
        )
        if outcome.leveled_down:
            logger.info(
                "User %d dropped to level %d (%s) after reversal",
                user_id, outcome.state.level, outcome.state.level_name,
            )
        return -outcome.points

    def evaluate_badges(self, user_id: int) -> list[EarnedBadge]:
        """Record newly qualifying badges and notify for each one."""
        earned = self._record_badges(user_id)
        dispatch(
            self.notifier,
            user_id,
            [badge_earned(b.badge_id, b.name, b.description) for b in earned],
        )
        return earned

    # -----------------------------------------------------------------------
    # Award pipeline
    # -----------------------------------------------------------------------
    def _process(
        self,
        user_id: int,
        step: AwardStep,
        *,
        entity_type: str | None,
        entity_id: int | None,
    ) -> AwardReceipt:
        outcome = self._commit_with_retry(
            user_id, step, entity_type=entity_type, entity_id=entity_id
        )
        receipt = AwardReceipt(user_id=user_id, outcome=outcome)

        try:
            receipt.badges = self._record_badges(user_id)
        except Exception:
            logger.exception(
                "Badge evaluation failed for user %d; award of %d points stands",
                user_id, outcome.points,
            )

        if self._config.notify_points and outcome.points > 0:
            receipt.notifications.append(
                points_earned(outcome.points, outcome.details, outcome.state.total_points)
            )
        receipt.notifications.extend(
            badge_earned(b.badge_id, b.name, b.description) for b in receipt.badges
        )
        if outcome.leveled_up:
            receipt.notifications.append(
                level_up(
                    outcome.state.level,
                    outcome.state.level_name,
                    outcome.state.total_points,
                )
            )

        dispatch(self.notifier, user_id, receipt.notifications)
        return receipt

    def _commit_with_retry(
        self,
        user_id: int,
        step: AwardStep,
        *,
        entity_type: str | None,
        entity_id: int | None,
    ) -> AwardOutcome:
        max_attempts = self._config.max_award_retries
        attempt = 0
        while True:
            attempt += 1
            try:
                return self._commit_once(user_id, step, entity_type, entity_id)
            except StaleDataError as exc:
                if attempt >= max_attempts:
                    logger.warning(
                        "Giving up on user %d after %d conflicting updates",
                        user_id, attempt,
                    )
                    raise ConcurrentUpdateError(user_id, attempt) from exc
                logger.info(
                    "Concurrent update on user %d; retrying (%d/%d)",
                    user_id, attempt, max_attempts,
                )

    def _commit_once(
        self,
        user_id: int,
        step: AwardStep,
        entity_type: str | None,
        entity_id: int | None,
    ) -> AwardOutcome:
        now = self._clock()
        with Session(self._engine) as session:
            users = UserStore(session)
            state = users.load(user_id, for_update=True)
            outcome = step(state, now.date())
            users.save(outcome.state)
            ActivityLedger(session).append(
                user_id,
                outcome.action,
                outcome.points,
                details=outcome.details,
                entity_type=entity_type,
                entity_id=entity_id,
                metadata=outcome.breakdown,
                created_at=now,
            )
            session.commit()

        logger.info(
            "Applied %d points to user %d for action %s",
            outcome.points, user_id, outcome.action.value,
        )
        return outcome

    # -----------------------------------------------------------------------
    # Badges
    # -----------------------------------------------------------------------
    def _record_badges(self, user_id: int) -> list[EarnedBadge]:
        now = self._clock()
        start_of_day = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)

        # Read phase
        with Session(self._engine) as session:
            state = UserStore(session).load(user_id)
            already = UserBadges(session).earned_codes(user_id)
            ledger = ActivityLedger(session)
            completed_today = (
                ledger.count(user_id, ActionKind.TASK_COMPLETED, since=start_of_day)
                - ledger.count(user_id, ActionKind.TASK_REOPENED, since=start_of_day)
            )
            early = ledger.early_completions(user_id)

        ctx = BadgeContext(
            tasks_completed=state.tasks_completed,
            current_streak=state.current_streak,
            tasks_completed_today=max(0, completed_today),
            early_completions=early,
            comments_made=self._from_source(
                "comment count", user_id, lambda: self._comments.count_by_author(user_id)
            ),
            is_top_ranked=self._from_source(
                "ranking", user_id, lambda: self._is_top_ranked(user_id)
            ),
            projects_joined=(
                self._from_source(
                    "project count", user_id,
                    lambda: self._projects.count_by_member(user_id),
                )
                if self._projects is not None
                else None
            ),
        )
        codes = self.gamification.evaluate_badges(ctx, already)
        if not codes:
            return []

        # Write phase
        earned: list[EarnedBadge] = []
        with Session(self._engine) as session:
            catalog = BadgeCatalog(session)
            owned = UserBadges(session)
            ledger = ActivityLedger(session)
            for code in codes:
                badge = catalog.find_by_code(code)
                if badge is None:
                    logger.warning("Badge not found: %s", code)
                    continue
                if not owned.add(user_id, badge, earned_at=now):
                    continue
                ledger.append(
                    user_id,
                    ActionKind.USER_BADGE_EARNED,
                    0,
                    details=f"Badge conquistado: {badge.name}",
                    entity_type="BADGE",
                    entity_id=badge.id,
                    metadata={"badge_code": badge.code},
                    created_at=now,
                )
                earned.append(EarnedBadge(
                    badge_id=badge.id,
                    code=badge.code,
                    name=badge.name,
                    description=badge.description,
                    earned_at=now,
                ))
                logger.info("User %d earned badge: %s", user_id, code)
            session.commit()

        return earned

    def _is_top_ranked(self, user_id: int) -> bool:
        ranked = self._ranking.user_ids_by_points_desc()
        return bool(ranked) and ranked[0] == user_id

    def _from_source(self, label: str, user_id: int, fetch: Callable[[], T]) -> T | None:
        """Call a read-only source; on failure skip its rule for this cycle."""
        try:
            return fetch()
        except Exception:
            logger.warning(
                "%s unavailable for user %d; skipping its badge this cycle",
                label.capitalize(), user_id, exc_info=True,
            )
            return None
