"""
tests/test_scoring.py — Unit Tests for Point Values
====================================================
"""

from __future__ import annotations

import pytest

from taskflow.database.models import TaskPriority
from taskflow.engine.scoring import ScoringPolicy


@pytest.fixture
def policy() -> ScoringPolicy:
    return ScoringPolicy()


class TestFlatEvents:
    def test_task_created(self, policy):
        assert policy.task_created() == 5

    def test_comment_added(self, policy):
        assert policy.comment_added() == 2

    def test_streak_bonus(self, policy):
        assert policy.streak_bonus() == 5


class TestCompletion:
    @pytest.mark.parametrize(
        ("priority", "points"),
        [(TaskPriority.LOW, 10), (TaskPriority.MEDIUM, 20), (TaskPriority.HIGH, 30)],
    )
    def test_base_by_priority(self, policy, priority, points):
        assert policy.completion_base(priority) == points

    def test_accepts_plain_strings(self, policy):
        assert policy.completion_base("HIGH") == 30

    def test_priority_is_monotonic(self, policy):
        low, medium, high = (
            policy.task_completed(p, False)
            for p in (TaskPriority.LOW, TaskPriority.MEDIUM, TaskPriority.HIGH)
        )
        assert low < medium < high

    @pytest.mark.parametrize("priority", list(TaskPriority))
    def test_deadline_bonus_is_fifteen(self, policy, priority):
        assert (
            policy.task_completed(priority, True)
            - policy.task_completed(priority, False)
        ) == 15

    def test_unknown_priority_rejected(self, policy):
        with pytest.raises(ValueError, match="Unknown task priority"):
            policy.completion_base("URGENT")
