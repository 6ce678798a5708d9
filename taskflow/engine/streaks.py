"""
taskflow.engine.streaks — Daily Streak State Machine
=====================================================

One transition per scoring event, keyed on the calendar day of the event.
Only the first event of a day can move the streak; later events that day
leave it untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StreakTransition:
    """Result of advancing the streak for one event."""

    current_streak: int
    longest_streak: int
    last_activity_date: date
    extended: bool = False   # streak grew past 1 → bonus applies
    reset: bool = False      # gap ≥ 2 days broke the streak


class StreakTracker:
    def advance(
        self,
        current_streak: int,
        longest_streak: int,
        last_activity: date | None,
        today: date,
    ) -> StreakTransition:
        extended = False
        reset = False

        if last_activity is None:
            current = 1
        elif last_activity == today - timedelta(days=1):
            current = current_streak + 1
            extended = current > 1
        elif last_activity >= today:
            # Same day (or a clock that went backwards): nothing moves.
            if last_activity > today:
                logger.warning(
                    "Last activity %s is after today %s; keeping streak as is",
                    last_activity, today,
                )
            return StreakTransition(
                current_streak=current_streak,
                longest_streak=max(longest_streak, current_streak),
                last_activity_date=last_activity,
            )
        else:
            current = 1
            reset = current_streak > 1

        return StreakTransition(
            current_streak=current,
            longest_streak=max(longest_streak, current),
            last_activity_date=today,
            extended=extended,
            reset=reset,
        )
