"""
synapse.database.seed — Default Documents
==========================================

Seeded on startup so the public site works against an empty database:

* ``site_settings/page_visibility`` with every page visible;
* the three default day passes (days 1-3, unlimited capacity).

Idempotent.  Existing documents are never overwritten, so admin edits
survive restarts.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine

from synapse.constants import PAGE_VISIBILITY_DOC, SITE_SETTINGS
from synapse.database.store import DocumentStore
from synapse.schemas import PageVisibility
from synapse.services.day_pass_service import initialize_default_day_passes

logger = logging.getLogger(__name__)


def seed_defaults(engine: Engine) -> dict[str, int]:
    """Insert missing default documents.  Returns what was written."""
    store = DocumentStore(engine)
    written = {"page_visibility": 0, "day_passes": 0}

    if store.get(SITE_SETTINGS, PAGE_VISIBILITY_DOC) is None:
        store.set(SITE_SETTINGS, PAGE_VISIBILITY_DOC, PageVisibility().to_document())
        written["page_visibility"] = 1

    written["day_passes"] = initialize_default_day_passes(store)

    if any(written.values()):
        logger.info("Seeded defaults: %s", written)
    return written
