"""
taskflow.config — YAML Configuration Loader
============================================

Reads ``config.yaml`` for the tuning knobs of the gamification core
(timezone used for streak days, retry budget, notification delivery).
Point values, level bands and the badge catalog are fixed tables in
:mod:`taskflow.engine` and :mod:`taskflow.constants`; the database URL
comes from the ``DATABASE_URL`` environment variable.

Usage::

    from taskflow.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.timezone)          # "America/Sao_Paulo"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TaskflowConfig:
    """Immutable configuration loaded from ``config.yaml``.

    Every field has a default so services can be built without a file
    (tests, scripts).
    """

    # Calendar day boundaries for streaks and heatmaps
    timezone: str = "UTC"

    # Optimistic-lock retries before ConcurrentUpdateError surfaces
    max_award_retries: int = 3

    # Notifications
    notify_points: bool = False
    webhook_url: str | None = None
    webhook_timeout: float = 5.0

    # Read queries
    recent_badges_limit: int = 5
    heatmap_days: int = 365

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> TaskflowConfig:
    """Read *path* and return a :class:`TaskflowConfig` instance.

    Keys missing from the file keep their defaults.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    ValueError
        If ``max_award_retries`` is below 1 or the timezone is unknown.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    defaults = TaskflowConfig()
    cfg = TaskflowConfig(
        timezone=str(raw.get("timezone", defaults.timezone)),
        max_award_retries=int(raw.get("max_award_retries", defaults.max_award_retries)),
        notify_points=bool(raw.get("notify_points", defaults.notify_points)),
        webhook_url=raw.get("webhook_url") or None,
        webhook_timeout=float(raw.get("webhook_timeout", defaults.webhook_timeout)),
        recent_badges_limit=int(
            raw.get("recent_badges_limit", defaults.recent_badges_limit)
        ),
        heatmap_days=int(raw.get("heatmap_days", defaults.heatmap_days)),
    )

    if cfg.max_award_retries < 1:
        raise ValueError("max_award_retries must be at least 1")
    try:
        cfg.tzinfo
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {cfg.timezone!r}") from exc

    return cfg
