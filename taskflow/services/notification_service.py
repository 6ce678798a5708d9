"""
taskflow.services.notification_service — Notifier Implementations & Dispatch
=============================================================================

Notifications are best-effort: they are dispatched only after the award
transaction has committed, and a failing notifier is logged and ignored.

Notifiers:
- :class:`LoggingNotifier`  — writes the payload to the log (default)
- :class:`WebhookNotifier`  — POSTs JSON to a URL with httpx
- :class:`ThreadedNotifier` — wraps any notifier, delivers on a worker pool
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Protocol

import httpx

from taskflow.config import TaskflowConfig
from taskflow.schemas import Notification

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, user_id: int, notification: Notification) -> None: ...


# ---------------------------------------------------------------------------
# Implementations
# ---------------------------------------------------------------------------
class LoggingNotifier:
    """Logs every notification at INFO.  Useful in dev and as a fallback."""

    def notify(self, user_id: int, notification: Notification) -> None:
        logger.info(
            "Notification for user %d: [%s] %s",
            user_id, notification.type.value, notification.message,
        )


class WebhookNotifier:
    """Delivers notifications to an HTTP endpoint.

    Body: ``{"user_id": ..., "notification": {...}}``.  Non-2xx responses
    raise :class:`httpx.HTTPStatusError`; :func:`dispatch` catches it.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 5.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.url = url
        self._client = client or httpx.Client(
            timeout=timeout,
            transport=httpx.HTTPTransport(retries=1),
        )

    def notify(self, user_id: int, notification: Notification) -> None:
        resp = self._client.post(
            self.url,
            json={
                "user_id": user_id,
                "notification": notification.model_dump(mode="json"),
            },
        )
        resp.raise_for_status()
        logger.debug(
            "Notification %s delivered for user %d", notification.type.value, user_id
        )

    def close(self) -> None:
        self._client.close()


class ThreadedNotifier:
    """Fire-and-forget wrapper: ``notify`` returns immediately.

    Delivery failures surface in the log via the future's done-callback.
    """

    def __init__(self, inner: Notifier, max_workers: int = 2) -> None:
        self._inner = inner
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="taskflow-notify"
        )

    def notify(self, user_id: int, notification: Notification) -> None:
        future = self._pool.submit(self._inner.notify, user_id, notification)
        future.add_done_callback(
            lambda f: _log_delivery_failure(f, user_id, notification)
        )

    def shutdown(self, wait: bool = True) -> None:
        """Drain the pool, then close the wrapped notifier if it holds a client."""
        self._pool.shutdown(wait=wait)
        close = getattr(self._inner, "close", None)
        if close is not None:
            close()


def _log_delivery_failure(
    future: Future, user_id: int, notification: Notification
) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error(
            "Failed to deliver %s notification to user %d: %s",
            notification.type.value, user_id, exc,
        )


def build_notifier(cfg: TaskflowConfig) -> Notifier:
    """Webhook delivery on a worker pool when a URL is configured, else logging."""
    if not cfg.webhook_url:
        return LoggingNotifier()
    logger.info("Notifications → webhook %s", cfg.webhook_url)
    return ThreadedNotifier(
        WebhookNotifier(cfg.webhook_url, timeout=cfg.webhook_timeout)
    )


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------
def dispatch(
    notifier: Notifier, user_id: int, notifications: Iterable[Notification]
) -> int:
    """Send each notification; failures are logged and skipped.

    Returns the number handed off without raising.
    """
    sent = 0
    for notification in notifications:
        try:
            notifier.notify(user_id, notification)
        except Exception:
            logger.exception(
                "Failed to send %s notification to user %d",
                notification.type.value, user_id,
            )
            continue
        sent += 1
    return sent
