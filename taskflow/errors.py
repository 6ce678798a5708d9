"""
taskflow.errors — Domain Exceptions
====================================

Raised by the service layer.  Precondition violations (negative points,
unknown priority) use plain :class:`ValueError`.
"""

from __future__ import annotations


class UserNotFoundError(LookupError):
    """No gamification state exists for the requested user id."""

    def __init__(self, user_id: int) -> None:
        super().__init__(f"User not found: {user_id}")
        self.user_id = user_id


class ConcurrentUpdateError(RuntimeError):
    """The user's state kept changing underneath us; caller may retry later."""

    def __init__(self, user_id: int, attempts: int) -> None:
        super().__init__(
            f"Gave up updating user {user_id} after {attempts} conflicting attempts"
        )
        self.user_id = user_id
        self.attempts = attempts
