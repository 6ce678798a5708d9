"""
taskflow.database.seed — Badge Catalog Bootstrap
=================================================

Inserts the fixed badge catalog from :data:`taskflow.constants.BADGE_CATALOG`.
Run once before serving traffic (``init_db`` calls it).

Idempotent — only inserts codes that don't already exist.  Existing rows
are never modified.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine

from taskflow.constants import BADGE_CATALOG, BadgeDefinition
from taskflow.database.engine import get_session
from taskflow.services.stores import BadgeCatalog

logger = logging.getLogger(__name__)


def ensure_badge_catalog(
    engine: Engine,
    catalog: tuple[BadgeDefinition, ...] = BADGE_CATALOG,
) -> int:
    """Insert every catalog badge whose code is missing.

    Returns the number of rows inserted.
    """
    inserted = 0
    with get_session(engine) as session:
        badges = BadgeCatalog(session)
        for definition in catalog:
            if badges.exists(definition.code):
                continue
            badges.add(definition)
            inserted += 1
            logger.info("Badge created: %s", definition.code)

    if inserted:
        logger.info("Seeded %d badges.", inserted)
    return inserted
