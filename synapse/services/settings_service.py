"""
synapse.services.settings_service — Page Visibility
===================================================

The ``site_settings/page_visibility`` document switches whole public
pages (recruitments, events, competitions, sponsors) on or off.  Every
public request reads it, so a missing document means "everything
visible" and is written back with those defaults on first read.
"""

from __future__ import annotations

import logging

from synapse.constants import PAGE_KEYS, PAGE_VISIBILITY_DOC, SITE_SETTINGS
from synapse.database.store import SERVER_TIMESTAMP, DocumentStore, StoreError
from synapse.schemas import PageVisibility, decode_one
from synapse.services.audit_service import audited_set
from synapse.services.results import ServiceResult

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_page_visibility(store: DocumentStore) -> PageVisibility:
    """Current visibility, falling back to all-visible on any failure."""
    try:
        current = decode_one(PageVisibility, store.get(SITE_SETTINGS, PAGE_VISIBILITY_DOC))
        if current is None:
            current = PageVisibility()
            store.set(SITE_SETTINGS, PAGE_VISIBILITY_DOC, current.to_document())
            logger.info("Created default page visibility settings")
        return current
    except StoreError:
        logger.exception("Error fetching page visibility")
        return PageVisibility()


def is_page_visible(store: DocumentStore, page: str) -> bool:
    return bool(getattr(get_page_visibility(store), page, True))


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def update_page_visibility(
    store: DocumentStore, updates: dict[str, bool], *, actor_id: str | None = None,
) -> ServiceResult:
    """Merge *updates* (only known page keys) into the settings document."""
    unknown = sorted(set(updates) - set(PAGE_KEYS))
    if unknown:
        return ServiceResult.fail(f"Unknown pages: {', '.join(unknown)}")
    try:
        audited_set(
            store, SITE_SETTINGS, PAGE_VISIBILITY_DOC,
            {**{k: bool(v) for k, v in updates.items()}, "updated_at": SERVER_TIMESTAMP},
            actor_id=actor_id,
        )
    except StoreError:
        logger.exception("Error updating page visibility")
        return ServiceResult.fail("Failed to update page visibility")
    logger.info("Page visibility updated: %s", updates)
    return ServiceResult.ok(PAGE_VISIBILITY_DOC)
