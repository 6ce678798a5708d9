"""
taskflow.engine.gamification — Award Pipeline
==============================================

Pure award pipeline over an immutable :class:`GamificationState`.
No DB I/O, no notifications: every call returns an :class:`AwardOutcome`
holding the next state plus the effects the caller must carry out
(ledger entry, level-up celebration).

Pipeline for positive awards:
  base points → streak transition (+ bonus) → level recomputation
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date

from taskflow.database.models import ActionKind, TaskPriority
from taskflow.engine.badges import BadgeContext, BadgeEvaluator
from taskflow.engine.levels import LevelTable
from taskflow.engine.scoring import ScoringPolicy
from taskflow.engine.streaks import StreakTracker

logger = logging.getLogger(__name__)

__all__ = ["AwardOutcome", "GamificationEngine", "GamificationState"]


# ---------------------------------------------------------------------------
# State snapshot
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class GamificationState:
    """Scoring state of one user.  ``level``/``level_name`` are derived."""

    user_id: int
    total_points: int = 0
    level: int = 1
    level_name: str = "Iniciante"
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: date | None = None
    tasks_completed: int = 0


# ---------------------------------------------------------------------------
# AwardOutcome — output of the pipeline
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AwardOutcome:
    """Next state plus the effects of one scoring call.

    ``points`` is the signed delta actually applied to ``total_points``,
    streak bonus included.
    """

    state: GamificationState
    action: ActionKind
    points: int
    previous_level: int
    details: str = ""
    breakdown: dict[str, int | bool | str] = field(default_factory=dict)

    @property
    def leveled_up(self) -> bool:
        return self.state.level > self.previous_level

    @property
    def leveled_down(self) -> bool:
        return self.state.level < self.previous_level


class GamificationEngine:
    """Combines scoring, streaks, levels and badge rules.

    Constructed with its four collaborators directly::

        engine = GamificationEngine(
            ScoringPolicy(), StreakTracker(), LevelTable(), BadgeEvaluator()
        )
    """

    def __init__(
        self,
        scoring: ScoringPolicy | None = None,
        streaks: StreakTracker | None = None,
        levels: LevelTable | None = None,
        badges: BadgeEvaluator | None = None,
    ) -> None:
        self.scoring = scoring or ScoringPolicy()
        self.streaks = streaks or StreakTracker()
        self.levels = levels or LevelTable()
        self.badges = badges or BadgeEvaluator()

    # -- Event entry points -------------------------------------------------

    def task_created(self, state: GamificationState, today: date) -> AwardOutcome:
        return self._award(
            state,
            today,
            ActionKind.TASK_CREATED,
            self.scoring.task_created(),
            details="Tarefa criada",
        )

    def task_completed(
        self,
        state: GamificationState,
        priority: TaskPriority | str,
        before_deadline: bool,
        today: date,
    ) -> AwardOutcome:
        # Validates priority before anything moves
        base = self.scoring.completion_base(priority)
        bonus = self.scoring.deadline_bonus(before_deadline)
        priority = TaskPriority(priority)
        return self._award(
            replace(state, tasks_completed=state.tasks_completed + 1),
            today,
            ActionKind.TASK_COMPLETED,
            base + bonus,
            details=f"Tarefa completada (prioridade: {priority.value})",
            breakdown={
                "priority": priority.value,
                "priority_points": base,
                "deadline_bonus": bonus,
                "before_deadline": before_deadline,
            },
        )

    def comment_added(self, state: GamificationState, today: date) -> AwardOutcome:
        return self._award(
            state,
            today,
            ActionKind.COMMENT_ADDED,
            self.scoring.comment_added(),
            details="Comentario adicionado",
        )

    def reverse_task_completion(
        self, state: GamificationState, points_to_reverse: int
    ) -> AwardOutcome:
        """Take back exactly what a completion granted.

        The point total never drops below 0; ``outcome.points`` is the
        (non-positive) amount actually removed.  Streaks are untouched.
        """
        if points_to_reverse < 0:
            raise ValueError(f"Points to reverse cannot be negative: {points_to_reverse}")

        removed = min(points_to_reverse, state.total_points)
        if removed < points_to_reverse:
            logger.warning(
                "Reversal of %d points for user %d clamped to %d (point floor)",
                points_to_reverse, state.user_id, removed,
            )

        new_total = state.total_points - removed
        band = self.levels.band_for(new_total)
        next_state = replace(
            state,
            total_points=new_total,
            tasks_completed=max(0, state.tasks_completed - 1),
            level=band.level,
            level_name=band.name,
        )
        return AwardOutcome(
            state=next_state,
            action=ActionKind.TASK_REOPENED,
            points=-removed,
            previous_level=state.level,
            details="Tarefa reaberta",
            breakdown={"requested": points_to_reverse, "removed": removed},
        )

    def evaluate_badges(
        self, ctx: BadgeContext, already_earned: set[str]
    ) -> list[str]:
        return self.badges.evaluate(ctx, already_earned)

    # -- Pipeline -------------------------------------------------------------

    def _award(
        self,
        state: GamificationState,
        today: date,
        action: ActionKind,
        base_points: int,
        *,
        details: str,
        breakdown: dict | None = None,
    ) -> AwardOutcome:
        if base_points < 0:
            raise ValueError(f"Award points cannot be negative: {base_points}")

        # 1. Base delta
        total = state.total_points + base_points

        # 2. Streak transition
        streak = self.streaks.advance(
            state.current_streak,
            state.longest_streak,
            state.last_activity_date,
            today,
        )
        bonus = self.scoring.streak_bonus() if streak.extended else 0
        total += bonus

        # 3. Level recomputation
        band = self.levels.band_for(total)

        next_state = replace(
            state,
            total_points=total,
            current_streak=streak.current_streak,
            longest_streak=streak.longest_streak,
            last_activity_date=streak.last_activity_date,
            level=band.level,
            level_name=band.name,
        )

        outcome = AwardOutcome(
            state=next_state,
            action=action,
            points=base_points + bonus,
            previous_level=state.level,
            details=details,
            breakdown={**(breakdown or {}), "base": base_points, "streak_bonus": bonus},
        )
        if outcome.leveled_up:
            logger.info(
                "User %d leveled up to %d (%s)",
                state.user_id, band.level, band.name,
            )
        return outcome
