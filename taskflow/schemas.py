"""
taskflow.schemas — Pydantic Read Models & Notification Payloads
================================================================

Everything the core hands to the outside world: profile / ranking /
heatmap responses for the web layer, and notification payloads for the
notifier.  ``model_dump(mode="json")`` gives the wire form.
"""

from __future__ import annotations

import enum
from datetime import UTC, date, datetime

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------
class NotificationType(enum.StrEnum):
    BADGE_EARNED = "BADGE_EARNED"
    LEVEL_UP = "LEVEL_UP"
    POINTS_EARNED = "POINTS_EARNED"


class Notification(BaseModel):
    type: NotificationType
    title: str
    message: str
    entity_id: int | None = None
    entity_type: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


def badge_earned(badge_id: int, name: str, description: str | None) -> Notification:
    return Notification(
        type=NotificationType.BADGE_EARNED,
        title="Conquista desbloqueada!",
        message=(
            f"Voce ganhou a badge: {name} - {description}"
            if description else f"Voce ganhou a badge: {name}"
        ),
        entity_id=badge_id,
        entity_type="BADGE",
    )


def level_up(new_level: int, level_name: str, total_points: int) -> Notification:
    return Notification(
        type=NotificationType.LEVEL_UP,
        title="Level Up!",
        message=(
            f"Parabens! Voce subiu para o nivel {new_level} "
            f"({level_name}) com {total_points} pontos!"
        ),
        entity_id=new_level,
        entity_type="LEVEL",
    )


def points_earned(points: int, action: str, total_points: int) -> Notification:
    return Notification(
        type=NotificationType.POINTS_EARNED,
        title=f"+{points} pontos",
        message=f"Voce ganhou {points} pontos ({action}). Total: {total_points}",
        entity_type="POINTS",
    )


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------
class BadgeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    name: str
    description: str | None = None
    icon: str
    criteria_type: str
    required_count: int
    is_secret: bool = False
    earned_at: datetime | None = None


class ProfileResponse(BaseModel):
    user_id: int
    user_name: str
    avatar_url: str | None = None

    # Points and level
    total_points: int
    level: int
    level_name: str
    points_to_next_level: int
    next_level_threshold: int
    progress_percentage: float

    # Streaks
    current_streak: int
    longest_streak: int

    # Stats
    tasks_completed: int
    comments_count: int

    # Badges
    recent_badges: list[BadgeResponse] = Field(default_factory=list)
    total_badges: int = 0

    # Ranking
    global_rank_position: int | None = None


class RankingEntry(BaseModel):
    position: int
    user_id: int
    user_name: str
    avatar_url: str | None = None
    level: int
    level_name: str
    total_points: int
    tasks_completed: int
    current_streak: int


class RankingResponse(BaseModel):
    rankings: list[RankingEntry]
    total_participants: int


class DayActivity(BaseModel):
    day: date
    count: int
    level: int  # 0-4 intensity, GitHub style


class HeatmapResponse(BaseModel):
    user_id: int
    user_name: str
    contributions: dict[date, int]
    days: list[DayActivity] = Field(default_factory=list)
    total_activities: int
    current_streak: int
    longest_streak: int
