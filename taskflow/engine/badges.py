"""
taskflow.engine.badges — Badge Rule Evaluation
===============================================

Handler-registry evaluation of the badge catalog.  Each criteria type maps
to a pure handler ``(required_count, ctx) -> bool``; the catalog entry
supplies the threshold.

This module is pure calculation — the service layer gathers the stats into
a :class:`BadgeContext` and records whatever comes back.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from taskflow.constants import (
    BADGE_CATALOG,
    CRITERIA_COMMENTS_MADE,
    CRITERIA_EARLY_COMPLETIONS,
    CRITERIA_PROJECTS_JOINED,
    CRITERIA_STREAK_DAYS,
    CRITERIA_TASKS_COMPLETED,
    CRITERIA_TASKS_IN_DAY,
    CRITERIA_TOP_RANK,
    BadgeDefinition,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Badge Context — snapshot passed to every rule
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class BadgeContext:
    """Stats for one user at evaluation time.

    Parameters
    ----------
    tasks_completed : Lifetime completed tasks (net of reopenings).
    current_streak : Current daily streak.
    tasks_completed_today : Net completions recorded in the ledger today.
    early_completions : Completions recorded as before the deadline.
    comments_made : Comments authored, or None if the source was unavailable.
    is_top_ranked : True when the user is #1 in the global ranking, None if
        the ranking scan failed this cycle.
    projects_joined : Projects the user belongs to, None when no project
        source is wired.
    """

    tasks_completed: int = 0
    current_streak: int = 0
    tasks_completed_today: int = 0
    early_completions: int = 0
    comments_made: int | None = None
    is_top_ranked: bool | None = None
    projects_joined: int | None = None


# ---------------------------------------------------------------------------
# Rule handlers — pure functions (required_count, ctx) → bool
# ---------------------------------------------------------------------------
def _tasks_completed(required: int, ctx: BadgeContext) -> bool:
    return ctx.tasks_completed >= required


def _streak_days(required: int, ctx: BadgeContext) -> bool:
    return ctx.current_streak >= required


def _tasks_in_day(required: int, ctx: BadgeContext) -> bool:
    return ctx.tasks_completed_today >= required


def _comments_made(required: int, ctx: BadgeContext) -> bool:
    if ctx.comments_made is None:
        return False
    return ctx.comments_made >= required


def _top_rank(required: int, ctx: BadgeContext) -> bool:
    """Only rank #1 is tracked; ``required`` is the rank position."""
    return ctx.is_top_ranked is True


def _early_completions(required: int, ctx: BadgeContext) -> bool:
    return ctx.early_completions >= required


def _projects_joined(required: int, ctx: BadgeContext) -> bool:
    if ctx.projects_joined is None:
        return False
    return ctx.projects_joined >= required


# ---------------------------------------------------------------------------
# Handler registry
# ---------------------------------------------------------------------------
RULE_HANDLERS: dict[str, Callable[[int, BadgeContext], bool]] = {
    CRITERIA_TASKS_COMPLETED: _tasks_completed,
    CRITERIA_STREAK_DAYS: _streak_days,
    CRITERIA_TASKS_IN_DAY: _tasks_in_day,
    CRITERIA_COMMENTS_MADE: _comments_made,
    CRITERIA_TOP_RANK: _top_rank,
    CRITERIA_EARLY_COMPLETIONS: _early_completions,
    CRITERIA_PROJECTS_JOINED: _projects_joined,
}


class BadgeEvaluator:
    """Decides which not-yet-earned badges a user now qualifies for."""

    def __init__(
        self,
        catalog: Iterable[BadgeDefinition] = BADGE_CATALOG,
        handlers: dict[str, Callable[[int, BadgeContext], bool]] | None = None,
    ) -> None:
        self._catalog = tuple(catalog)
        self._handlers = handlers if handlers is not None else RULE_HANDLERS

    @property
    def catalog(self) -> tuple[BadgeDefinition, ...]:
        return self._catalog

    def evaluate(self, ctx: BadgeContext, already_earned: set[str]) -> list[str]:
        """Return codes of badges newly earned, in catalog order.

        A rule that raises is logged and skipped; the others still run.
        """
        newly_earned: list[str] = []

        for badge in self._catalog:
            if badge.code in already_earned:
                continue

            handler = self._handlers.get(badge.criteria_type)
            if handler is None:
                continue

            try:
                qualifies = handler(badge.required_count, ctx)
            except Exception:
                logger.exception("Badge rule %s failed; skipping", badge.code)
                continue

            if qualifies:
                newly_earned.append(badge.code)

        return newly_earned
