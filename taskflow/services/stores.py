"""
taskflow.services.stores — SQL-backed Collaborators
====================================================

Thin session-bound wrappers over the four core tables, plus the read-only
sources the badge rules consult (comment counts, global ranking).

The session-bound stores share the caller's transaction.  The sources open
their own short sessions so a failing scan can't poison the award
transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from taskflow.constants import BadgeDefinition
from taskflow.database.models import ActionKind, ActivityLog, Badge, User, UserBadge
from taskflow.engine.gamification import GamificationState
from taskflow.errors import UserNotFoundError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Collaborator contracts
# ---------------------------------------------------------------------------
class CommentCountSource(Protocol):
    def count_by_author(self, user_id: int) -> int: ...


class RankingSource(Protocol):
    def user_ids_by_points_desc(self) -> list[int]: ...


class ProjectCountSource(Protocol):
    def count_by_member(self, user_id: int) -> int: ...


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------
class UserStore:
    """Loads and saves :class:`GamificationState` through the ``users`` row."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def row(self, user_id: int, *, for_update: bool = False) -> User:
        if for_update:
            user = self._session.scalar(
                select(User).where(User.id == user_id).with_for_update()
            )
        else:
            user = self._session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def load(self, user_id: int, *, for_update: bool = False) -> GamificationState:
        """Snapshot the user's state.  Raises UserNotFoundError."""
        user = self.row(user_id, for_update=for_update)
        return GamificationState(
            user_id=user.id,
            total_points=user.total_points,
            level=user.level,
            level_name=user.level_name,
            current_streak=user.current_streak,
            longest_streak=user.longest_streak,
            last_activity_date=user.last_activity_date,
            tasks_completed=user.tasks_completed,
        )

    def save(self, state: GamificationState) -> None:
        """Copy *state* onto the row; the version check happens at flush."""
        user = self.row(state.user_id)
        user.total_points = state.total_points
        user.level = state.level
        user.level_name = state.level_name
        user.current_streak = state.current_streak
        user.longest_streak = state.longest_streak
        user.last_activity_date = state.last_activity_date
        user.tasks_completed = state.tasks_completed
        self._session.flush()


# ---------------------------------------------------------------------------
# Activity ledger
# ---------------------------------------------------------------------------
class ActivityLedger:
    """Append-only access to ``activity_log``."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def append(
        self,
        user_id: int,
        action: ActionKind,
        points: int,
        *,
        details: str | None = None,
        entity_type: str | None = None,
        entity_id: int | None = None,
        metadata: dict | None = None,
        created_at: datetime | None = None,
    ) -> ActivityLog:
        entry = ActivityLog(
            user_id=user_id,
            action=action.value,
            points_earned=points,
            details=details,
            entity_type=entity_type,
            entity_id=entity_id,
            metadata_=metadata,
        )
        if created_at is not None:
            entry.created_at = created_at
        self._session.add(entry)
        return entry

    def count(self, user_id: int, action: ActionKind, since: datetime | None = None) -> int:
        stmt = select(func.count()).select_from(ActivityLog).where(
            ActivityLog.user_id == user_id,
            ActivityLog.action == action.value,
        )
        if since is not None:
            stmt = stmt.where(ActivityLog.created_at >= since)
        return self._session.scalar(stmt) or 0

    def early_completions(self, user_id: int) -> int:
        """Completions whose metadata flags them as before the deadline."""
        rows = self._session.scalars(
            select(ActivityLog.metadata_).where(
                ActivityLog.user_id == user_id,
                ActivityLog.action == ActionKind.TASK_COMPLETED.value,
            )
        ).all()
        return sum(1 for meta in rows if meta and meta.get("before_deadline"))

    def entries_since(self, user_id: int, since: datetime) -> list[ActivityLog]:
        return list(self._session.scalars(
            select(ActivityLog)
            .where(ActivityLog.user_id == user_id, ActivityLog.created_at >= since)
            .order_by(ActivityLog.created_at, ActivityLog.id)
        ).all())


# ---------------------------------------------------------------------------
# Badge catalog + earned badges
# ---------------------------------------------------------------------------
class BadgeCatalog:
    def __init__(self, session: Session) -> None:
        self._session = session

    def find_by_code(self, code: str) -> Badge | None:
        return self._session.scalar(select(Badge).where(Badge.code == code))

    def exists(self, code: str) -> bool:
        return self._session.scalar(
            select(Badge.id).where(Badge.code == code)
        ) is not None

    def add(self, definition: BadgeDefinition) -> Badge:
        badge = Badge(
            code=definition.code,
            name=definition.name,
            description=definition.description,
            icon=definition.icon,
            criteria_type=definition.criteria_type,
            required_count=definition.required_count,
            is_secret=definition.secret,
        )
        self._session.add(badge)
        return badge

    def all(self) -> list[Badge]:
        return list(self._session.scalars(select(Badge).order_by(Badge.id)).all())


class UserBadges:
    def __init__(self, session: Session) -> None:
        self._session = session

    def earned_codes(self, user_id: int) -> set[str]:
        rows = self._session.scalars(
            select(Badge.code)
            .join(UserBadge, UserBadge.badge_id == Badge.id)
            .where(UserBadge.user_id == user_id)
        ).all()
        return set(rows)

    def has(self, user_id: int, badge_id: int) -> bool:
        return self._session.get(UserBadge, (user_id, badge_id)) is not None

    def add(self, user_id: int, badge: Badge, earned_at: datetime | None = None) -> bool:
        """Insert the join row.  Returns False if it already existed.

        A SAVEPOINT absorbs the primary-key clash when a concurrent
        evaluation got there first; the outer transaction stays usable.
        """
        if self.has(user_id, badge.id):
            return False
        row = UserBadge(user_id=user_id, badge_id=badge.id)
        if earned_at is not None:
            row.earned_at = earned_at
        try:
            with self._session.begin_nested():
                self._session.add(row)
                self._session.flush()
        except IntegrityError:
            logger.info("Badge %s already recorded for user %d", badge.code, user_id)
            return False
        return True

    def recent(self, user_id: int, limit: int | None = None) -> list[UserBadge]:
        stmt = (
            select(UserBadge)
            .where(UserBadge.user_id == user_id)
            .order_by(UserBadge.earned_at.desc(), UserBadge.badge_id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self._session.scalars(stmt).all())

    def count(self, user_id: int) -> int:
        return self._session.scalar(
            select(func.count()).select_from(UserBadge).where(UserBadge.user_id == user_id)
        ) or 0


# ---------------------------------------------------------------------------
# Read-only sources (own sessions)
# ---------------------------------------------------------------------------
class SqlCommentCountSource:
    """Counts ``COMMENT_ADDED`` ledger entries as the comment total."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def count_by_author(self, user_id: int) -> int:
        with Session(self._engine) as session:
            return ActivityLedger(session).count(user_id, ActionKind.COMMENT_ADDED)


class SqlRankingSource:
    """Global ranking by total points; ties keep the older account first."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def user_ids_by_points_desc(self, limit: int | None = None) -> list[int]:
        stmt = select(User.id).order_by(User.total_points.desc(), User.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        with Session(self._engine) as session:
            return list(session.scalars(stmt).all())
