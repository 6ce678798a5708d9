"""
taskflow.__main__ — Entry point for ``python -m taskflow``
==========================================================

Bootstraps the gamification core for a deployment:

1. Load .env (``DATABASE_URL``).
2. Load config.yaml (falls back to defaults when absent).
3. Create the SQLAlchemy engine, ensure tables and the badge catalog exist.
4. Report the catalog and the configured notifier.

Run with::

    python -m taskflow
"""

from __future__ import annotations

import logging
import sys

from dotenv import load_dotenv

from taskflow.config import TaskflowConfig, load_config
from taskflow.constants import BADGE_CATALOG
from taskflow.database.engine import create_db_engine, init_db
from taskflow.services.gamification_service import GamificationService

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("taskflow")


def main() -> None:
    """Bootstrap the database and badge catalog."""

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2. Soft configuration.
    try:
        cfg = load_config()
    except FileNotFoundError:
        logger.warning("config.yaml not found; using built-in defaults")
        cfg = TaskflowConfig()
    logger.info(
        "Config loaded — timezone: %s, award retries: %d",
        cfg.timezone, cfg.max_award_retries,
    )

    # 3. Database.
    try:
        engine = create_db_engine()
    except RuntimeError as exc:
        logger.critical("%s", exc)
        sys.exit(1)
    inserted = init_db(engine)

    # 4. Summary.
    logger.info(
        "Badge catalog ready — %d badges (%d new)", len(BADGE_CATALOG), inserted
    )
    service = GamificationService(engine, config=cfg)
    logger.info("Notifier: %s", type(service.notifier).__name__)
    service.close()
    engine.dispose()


if __name__ == "__main__":
    main()
