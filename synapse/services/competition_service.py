"""
synapse.services.competition_service — Competitions & Categories
=================================================================

Competitions and their categories are both manually ordered, 1-based.
New entries go to the end; deleting one closes the gap; reordering
takes the complete list of ids in their new order.
"""

from __future__ import annotations

import logging

from synapse.constants import COMPETITION_CATEGORIES, COMPETITIONS
from synapse.database.store import (
    SERVER_TIMESTAMP,
    DocumentNotFoundError,
    DocumentStore,
    StoreError,
)
from synapse.schemas import Category, Competition, decode_many, decode_one
from synapse.services.audit_service import audited_update
from synapse.services.ordering import create_ordered, delete_ordered, reorder_audited
from synapse.services.results import ServiceResult

logger = logging.getLogger(__name__)

ORDER_START = 1

# Fields an admin may not overwrite through update_competition
_PROTECTED = {"id", "order", "created_at"}


# ---------------------------------------------------------------------------
# Competitions
# ---------------------------------------------------------------------------
def get_all_competitions(store: DocumentStore) -> list[Competition]:
    try:
        return decode_many(Competition, store.list(COMPETITIONS, order_by="order"))
    except StoreError:
        logger.exception("Error fetching competitions")
        return []


def get_active_competitions(store: DocumentStore) -> list[Competition]:
    """What the public competitions page shows."""
    return [c for c in get_all_competitions(store) if c.is_active]


def get_competition(store: DocumentStore, competition_id: str) -> Competition | None:
    try:
        return decode_one(Competition, store.get(COMPETITIONS, competition_id))
    except StoreError:
        logger.exception("Error fetching competition %s", competition_id)
        return None


def create_competition(
    store: DocumentStore, data: dict, *, actor_id: str | None = None,
) -> ServiceResult:
    body = {k: v for k, v in data.items() if k not in _PROTECTED}
    body["created_at"] = SERVER_TIMESTAMP
    body["updated_at"] = SERVER_TIMESTAMP
    try:
        doc_id = create_ordered(
            store, COMPETITIONS, body, start=ORDER_START, actor_id=actor_id,
        )
    except StoreError:
        logger.exception("Error creating competition")
        return ServiceResult.fail("Failed to create competition")
    logger.info("Competition %s created", doc_id)
    return ServiceResult.ok(doc_id)


def update_competition(
    store: DocumentStore, competition_id: str, updates: dict, *, actor_id: str | None = None,
) -> ServiceResult:
    fields = {k: v for k, v in updates.items() if k not in _PROTECTED}
    fields["updated_at"] = SERVER_TIMESTAMP
    try:
        audited_update(store, COMPETITIONS, competition_id, fields, actor_id=actor_id)
    except DocumentNotFoundError:
        return ServiceResult.fail("Competition not found")
    except StoreError:
        logger.exception("Error updating competition %s", competition_id)
        return ServiceResult.fail("Failed to update competition")
    return ServiceResult.ok(competition_id)


def delete_competition(
    store: DocumentStore, competition_id: str, *, actor_id: str | None = None,
) -> ServiceResult:
    """Hard delete.  Registrations pointing at it are left as they are."""
    try:
        if not delete_ordered(
            store, COMPETITIONS, competition_id, start=ORDER_START, actor_id=actor_id,
        ):
            return ServiceResult.fail("Competition not found")
    except StoreError:
        logger.exception("Error deleting competition %s", competition_id)
        return ServiceResult.fail("Failed to delete competition")
    logger.info("Competition %s deleted", competition_id)
    return ServiceResult.ok(competition_id)


def reorder_competitions(
    store: DocumentStore, ordered_ids: list[str], *, actor_id: str | None = None,
) -> ServiceResult:
    try:
        reorder_audited(
            store, COMPETITIONS, ordered_ids, start=ORDER_START, actor_id=actor_id,
        )
    except ValueError as exc:
        return ServiceResult.fail(str(exc))
    except StoreError:
        logger.exception("Error reordering competitions")
        return ServiceResult.fail("Failed to reorder competitions")
    return ServiceResult.ok()


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------
def get_competition_categories(store: DocumentStore) -> list[Category]:
    try:
        return decode_many(Category, store.list(COMPETITION_CATEGORIES, order_by="order"))
    except StoreError:
        logger.exception("Error fetching competition categories")
        return []


def create_competition_category(
    store: DocumentStore, name: str, *, actor_id: str | None = None,
) -> ServiceResult:
    name = name.strip()
    if not name:
        return ServiceResult.fail("Category name is required")
    try:
        doc_id = create_ordered(
            store, COMPETITION_CATEGORIES,
            {"name": name, "created_at": SERVER_TIMESTAMP},
            start=ORDER_START, actor_id=actor_id,
        )
    except StoreError:
        logger.exception("Error creating competition category %r", name)
        return ServiceResult.fail("Failed to create category")
    return ServiceResult.ok(doc_id)


def update_competition_category(
    store: DocumentStore, category_id: str, name: str, *, actor_id: str | None = None,
) -> ServiceResult:
    name = name.strip()
    if not name:
        return ServiceResult.fail("Category name is required")
    try:
        audited_update(
            store, COMPETITION_CATEGORIES, category_id,
            {"name": name, "updated_at": SERVER_TIMESTAMP}, actor_id=actor_id,
        )
    except DocumentNotFoundError:
        return ServiceResult.fail("Category not found")
    except StoreError:
        logger.exception("Error updating competition category %s", category_id)
        return ServiceResult.fail("Failed to update category")
    return ServiceResult.ok(category_id)


def delete_competition_category(
    store: DocumentStore, category_id: str, *, actor_id: str | None = None,
) -> ServiceResult:
    try:
        if not delete_ordered(
            store, COMPETITION_CATEGORIES, category_id, start=ORDER_START, actor_id=actor_id,
        ):
            return ServiceResult.fail("Category not found")
    except StoreError:
        logger.exception("Error deleting competition category %s", category_id)
        return ServiceResult.fail("Failed to delete category")
    return ServiceResult.ok(category_id)


def reorder_competition_categories(
    store: DocumentStore, ordered_ids: list[str], *, actor_id: str | None = None,
) -> ServiceResult:
    try:
        reorder_audited(
            store, COMPETITION_CATEGORIES, ordered_ids, start=ORDER_START, actor_id=actor_id,
        )
    except ValueError as exc:
        return ServiceResult.fail(str(exc))
    except StoreError:
        logger.exception("Error reordering competition categories")
        return ServiceResult.fail("Failed to reorder categories")
    return ServiceResult.ok()
