"""
taskflow.engine.scoring — Point Values per Event
=================================================

Pure point-delta policy.  No state, no I/O.
"""

from __future__ import annotations

from taskflow.database.models import TaskPriority

__all__ = ["COMPLETION_POINTS", "ScoringPolicy"]

# ---------------------------------------------------------------------------
# Base points
# ---------------------------------------------------------------------------
TASK_CREATED_POINTS = 5
COMMENT_ADDED_POINTS = 2
EARLY_COMPLETION_BONUS = 15
STREAK_BONUS = 5

COMPLETION_POINTS: dict[TaskPriority, int] = {
    TaskPriority.LOW: 10,
    TaskPriority.MEDIUM: 20,
    TaskPriority.HIGH: 30,
}


class ScoringPolicy:
    """Computes the point delta for each domain event."""

    def task_created(self) -> int:
        return TASK_CREATED_POINTS

    def comment_added(self) -> int:
        return COMMENT_ADDED_POINTS

    def streak_bonus(self) -> int:
        return STREAK_BONUS

    def completion_base(self, priority: TaskPriority | str) -> int:
        """Base points for completing a task of *priority*.

        Raises ValueError for an unknown priority.
        """
        try:
            key = TaskPriority(priority)
        except ValueError:
            raise ValueError(f"Unknown task priority: {priority!r}") from None
        return COMPLETION_POINTS[key]

    def deadline_bonus(self, before_deadline: bool) -> int:
        return EARLY_COMPLETION_BONUS if before_deadline else 0

    def task_completed(self, priority: TaskPriority | str, before_deadline: bool) -> int:
        return self.completion_base(priority) + self.deadline_bonus(before_deadline)
