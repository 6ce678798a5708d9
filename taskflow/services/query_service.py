"""
taskflow.services.query_service — Profile, Ranking & Heatmap Reads
===================================================================

Read-only views over the gamification state and the activity ledger,
returned as pydantic models from :mod:`taskflow.schemas`.  Nothing here
writes; every call runs in its own short session.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from collections.abc import Callable
from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from taskflow.config import TaskflowConfig
from taskflow.database.models import ActionKind, Badge, User
from taskflow.engine.levels import LevelTable
from taskflow.errors import UserNotFoundError
from taskflow.schemas import (
    BadgeResponse,
    DayActivity,
    HeatmapResponse,
    ProfileResponse,
    RankingEntry,
    RankingResponse,
)
from taskflow.services.stores import (
    ActivityLedger,
    CommentCountSource,
    RankingSource,
    SqlCommentCountSource,
    SqlRankingSource,
    UserBadges,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

# Heatmap cells use five shades: 0 = no activity, 4 = the busiest day
HEATMAP_LEVELS = 4


def intensity(count: int, busiest: int) -> int:
    """Scale *count* to 0..4 relative to the busiest day in the window."""
    if count <= 0 or busiest <= 0:
        return 0
    return min(HEATMAP_LEVELS, max(1, math.ceil(count * HEATMAP_LEVELS / busiest)))


class QueryService:
    def __init__(
        self,
        engine: Engine,
        *,
        levels: LevelTable | None = None,
        config: TaskflowConfig | None = None,
        comment_counts: CommentCountSource | None = None,
        ranking: RankingSource | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._engine = engine
        self._config = config or TaskflowConfig()
        self._levels = levels or LevelTable()
        self._comments = comment_counts or SqlCommentCountSource(engine)
        self._ranking = ranking or SqlRankingSource(engine)
        self._clock = clock or (lambda: datetime.now(self._config.tzinfo))

    # -----------------------------------------------------------------------
    # Profile
    # -----------------------------------------------------------------------
    def get_profile(self, user_id: int) -> ProfileResponse:
        """Points, level progress, streaks, recent badges and rank position."""
        with Session(self._engine) as session:
            user = session.get(User, user_id)
            if user is None:
                raise UserNotFoundError(user_id)

            owned = UserBadges(session)
            recent = [
                _badge_response(ub.badge, ub.earned_at)
                for ub in owned.recent(user_id, self._config.recent_badges_limit)
            ]
            total_badges = owned.count(user_id)
            progress = self._levels.progress(user.total_points)

            profile = ProfileResponse(
                user_id=user.id,
                user_name=user.name,
                avatar_url=user.avatar_url,
                total_points=user.total_points,
                level=user.level,
                level_name=user.level_name,
                points_to_next_level=progress.points_to_next_level,
                next_level_threshold=progress.next_level_threshold,
                progress_percentage=progress.progress_percentage,
                current_streak=user.current_streak,
                longest_streak=user.longest_streak,
                tasks_completed=user.tasks_completed,
                comments_count=0,
                recent_badges=recent,
                total_badges=total_badges,
            )

        comments = self._comments.count_by_author(user_id)
        ranked = self._ranking.user_ids_by_points_desc()
        position = ranked.index(user_id) + 1 if user_id in ranked else None
        return profile.model_copy(
            update={"comments_count": comments, "global_rank_position": position}
        )

    # -----------------------------------------------------------------------
    # Ranking
    # -----------------------------------------------------------------------
    def global_ranking(self, limit: int = 10) -> RankingResponse:
        """Top *limit* users by points; ties go to the lower id."""
        if limit < 1:
            raise ValueError(f"Ranking limit must be positive: {limit}")

        with Session(self._engine) as session:
            total = session.scalar(select(func.count()).select_from(User)) or 0
            rows = session.scalars(
                select(User)
                .order_by(User.total_points.desc(), User.id.asc())
                .limit(limit)
            ).all()

            entries = [
                RankingEntry(
                    position=i + 1,
                    user_id=u.id,
                    user_name=u.name,
                    avatar_url=u.avatar_url,
                    level=u.level,
                    level_name=u.level_name,
                    total_points=u.total_points,
                    tasks_completed=u.tasks_completed,
                    current_streak=u.current_streak,
                )
                for i, u in enumerate(rows)
            ]

        return RankingResponse(rankings=entries, total_participants=total)

    # -----------------------------------------------------------------------
    # Heatmap
    # -----------------------------------------------------------------------
    def activity_heatmap(self, user_id: int, days: int | None = None) -> HeatmapResponse:
        """Ledger entries per calendar day over the last *days* days.

        ``contributions`` lists only active days; ``days`` covers the whole
        window (oldest first) with a 0-4 intensity for rendering.
        Badge-earned entries are bookkeeping and are not counted.
        """
        if days is None:
            days = self._config.heatmap_days
        if days < 1:
            raise ValueError(f"Heatmap window must be positive: {days}")

        tz = self._config.tzinfo
        today = self._clock().date()
        first_day = today - timedelta(days=days - 1)
        since = datetime.combine(first_day, time.min, tzinfo=tz)

        with Session(self._engine) as session:
            user = session.get(User, user_id)
            if user is None:
                raise UserNotFoundError(user_id)
            entries = ActivityLedger(session).entries_since(user_id, since)
            user_name = user.name
            current_streak = user.current_streak
            longest_streak = user.longest_streak

        per_day: Counter[date] = Counter()
        for entry in entries:
            if entry.action == ActionKind.USER_BADGE_EARNED.value:
                continue
            stamp = entry.created_at
            # SQLite hands back naive values in the zone they were written in
            day = stamp.date() if stamp.tzinfo is None else stamp.astimezone(tz).date()
            if first_day <= day <= today:
                per_day[day] += 1

        busiest = max(per_day.values(), default=0)
        window = [
            DayActivity(
                day=first_day + timedelta(days=offset),
                count=per_day.get(first_day + timedelta(days=offset), 0),
                level=intensity(per_day.get(first_day + timedelta(days=offset), 0), busiest),
            )
            for offset in range(days)
        ]

        return HeatmapResponse(
            user_id=user_id,
            user_name=user_name,
            contributions=dict(sorted(per_day.items())),
            days=window,
            total_activities=sum(per_day.values()),
            current_streak=current_streak,
            longest_streak=longest_streak,
        )

    # -----------------------------------------------------------------------
    # Badges
    # -----------------------------------------------------------------------
    def list_user_badges(self, user_id: int) -> list[BadgeResponse]:
        """All badges the user holds, newest first."""
        with Session(self._engine) as session:
            if session.get(User, user_id) is None:
                raise UserNotFoundError(user_id)
            return [
                _badge_response(ub.badge, ub.earned_at)
                for ub in UserBadges(session).recent(user_id)
            ]

    def list_badges(self, *, include_secret: bool = False) -> list[BadgeResponse]:
        """The badge catalog.  Secret badges are hidden unless asked for."""
        with Session(self._engine) as session:
            stmt = select(Badge).order_by(Badge.id)
            if not include_secret:
                stmt = stmt.where(Badge.is_secret.is_(False))
            return [BadgeResponse.model_validate(b) for b in session.scalars(stmt).all()]


def _badge_response(badge: Badge, earned_at: datetime | None) -> BadgeResponse:
    return BadgeResponse.model_validate(badge).model_copy(update={"earned_at": earned_at})
