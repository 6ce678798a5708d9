"""
Taskflow — Gamification Core for a Task-Management Backend
============================================================
Turns task and comment activity into points, levels, streaks and badges,
and hands the resulting celebrations to a notifier.  Projects, tasks,
comments and auth live in the surrounding web application; this package
only owns the scoring state and its history.

Package layout::

    taskflow/
    ├── __main__.py        # ``python -m taskflow`` bootstrap
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Badge codes + fixed badge catalog
    ├── errors.py          # Domain exceptions
    ├── schemas.py         # Pydantic read models + notification payloads
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine, session + async helper
    │   ├── models.py      # ORM models (users, activity_log, badges, user_badges)
    │   └── seed.py        # Idempotent badge catalog bootstrap
    ├── engine/
    │   ├── levels.py      # Level bands + lookup table
    │   ├── scoring.py     # Point values per event
    │   ├── streaks.py     # Daily streak state machine
    │   ├── badges.py      # Badge rule registry
    │   └── gamification.py # Pure award pipeline over GamificationState
    └── services/
        ├── stores.py               # SQL-backed collaborators
        ├── gamification_service.py # Award orchestration + retries
        ├── notification_service.py # Notifiers + dispatch
        └── query_service.py        # Profile, ranking, heatmap reads
"""

__version__ = "0.1.0"
