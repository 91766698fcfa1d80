"""
synapse.services.event_service — Events & Event Categories
==========================================================

Same ordering rules as competitions (1-based, dense).  Events also carry
a ticket ``price`` and an optional ``capacity``; neither may be negative.
"""

from __future__ import annotations

import logging

from synapse.constants import EVENT_CATEGORIES, EVENTS
from synapse.database.store import (
    SERVER_TIMESTAMP,
    DocumentNotFoundError,
    DocumentStore,
    StoreError,
)
from synapse.schemas import Category, Event, decode_many, decode_one
from synapse.services.audit_service import audited_update
from synapse.services.ordering import create_ordered, delete_ordered, reorder_audited
from synapse.services.results import ServiceResult

logger = logging.getLogger(__name__)

ORDER_START = 1

# Fields an admin may not overwrite through update_event
_PROTECTED = {"id", "order", "created_at"}


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
def get_all_events(store: DocumentStore) -> list[Event]:
    try:
        return decode_many(Event, store.list(EVENTS, order_by="order"))
    except StoreError:
        logger.exception("Error fetching events")
        return []


def get_active_events(store: DocumentStore) -> list[Event]:
    """What the public events page shows."""
    return [e for e in get_all_events(store) if e.is_active]


def get_event(store: DocumentStore, event_id: str) -> Event | None:
    try:
        return decode_one(Event, store.get(EVENTS, event_id))
    except StoreError:
        logger.exception("Error fetching event %s", event_id)
        return None


def _check_numbers(fields: dict) -> str | None:
    if (fields.get("price") or 0) < 0:
        return "Price cannot be negative"
    capacity = fields.get("capacity")
    if capacity is not None and capacity < 0:
        return "Capacity cannot be negative"
    return None


def create_event(
    store: DocumentStore, data: dict, *, actor_id: str | None = None,
) -> ServiceResult:
    if error := _check_numbers(data):
        return ServiceResult.fail(error)
    body = {k: v for k, v in data.items() if k not in _PROTECTED}
    body["created_at"] = SERVER_TIMESTAMP
    body["updated_at"] = SERVER_TIMESTAMP
    try:
        doc_id = create_ordered(
            store, EVENTS, body, start=ORDER_START, actor_id=actor_id,
        )
    except StoreError:
        logger.exception("Error creating event")
        return ServiceResult.fail("Failed to create event")
    logger.info("Event %s created", doc_id)
    return ServiceResult.ok(doc_id)


def update_event(
    store: DocumentStore, event_id: str, updates: dict, *, actor_id: str | None = None,
) -> ServiceResult:
    if error := _check_numbers(updates):
        return ServiceResult.fail(error)
    fields = {k: v for k, v in updates.items() if k not in _PROTECTED}
    fields["updated_at"] = SERVER_TIMESTAMP
    try:
        audited_update(store, EVENTS, event_id, fields, actor_id=actor_id)
    except DocumentNotFoundError:
        return ServiceResult.fail("Event not found")
    except StoreError:
        logger.exception("Error updating event %s", event_id)
        return ServiceResult.fail("Failed to update event")
    return ServiceResult.ok(event_id)


def delete_event(
    store: DocumentStore, event_id: str, *, actor_id: str | None = None,
) -> ServiceResult:
    """Hard delete.  Event registrations for it are kept."""
    try:
        if not delete_ordered(
            store, EVENTS, event_id, start=ORDER_START, actor_id=actor_id,
        ):
            return ServiceResult.fail("Event not found")
    except StoreError:
        logger.exception("Error deleting event %s", event_id)
        return ServiceResult.fail("Failed to delete event")
    logger.info("Event %s deleted", event_id)
    return ServiceResult.ok(event_id)


def reorder_events(
    store: DocumentStore, ordered_ids: list[str], *, actor_id: str | None = None,
) -> ServiceResult:
    try:
        reorder_audited(
            store, EVENTS, ordered_ids, start=ORDER_START, actor_id=actor_id,
        )
    except ValueError as exc:
        return ServiceResult.fail(str(exc))
    except StoreError:
        logger.exception("Error reordering events")
        return ServiceResult.fail("Failed to reorder events")
    return ServiceResult.ok()


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------
def get_event_categories(store: DocumentStore) -> list[Category]:
    try:
        return decode_many(Category, store.list(EVENT_CATEGORIES, order_by="order"))
    except StoreError:
        logger.exception("Error fetching event categories")
        return []


def create_event_category(
    store: DocumentStore, name: str, *, actor_id: str | None = None,
) -> ServiceResult:
    name = name.strip()
    if not name:
        return ServiceResult.fail("Category name is required")
    try:
        doc_id = create_ordered(
            store, EVENT_CATEGORIES,
            {"name": name, "created_at": SERVER_TIMESTAMP},
            start=ORDER_START, actor_id=actor_id,
        )
    except StoreError:
        logger.exception("Error creating event category %r", name)
        return ServiceResult.fail("Failed to create category")
    return ServiceResult.ok(doc_id)


def update_event_category(
    store: DocumentStore, category_id: str, name: str, *, actor_id: str | None = None,
) -> ServiceResult:
    name = name.strip()
    if not name:
        return ServiceResult.fail("Category name is required")
    try:
        audited_update(
            store, EVENT_CATEGORIES, category_id,
            {"name": name, "updated_at": SERVER_TIMESTAMP}, actor_id=actor_id,
        )
    except DocumentNotFoundError:
        return ServiceResult.fail("Category not found")
    except StoreError:
        logger.exception("Error updating event category %s", category_id)
        return ServiceResult.fail("Failed to update category")
    return ServiceResult.ok(category_id)


def delete_event_category(
    store: DocumentStore, category_id: str, *, actor_id: str | None = None,
) -> ServiceResult:
    try:
        if not delete_ordered(
            store, EVENT_CATEGORIES, category_id, start=ORDER_START, actor_id=actor_id,
        ):
            return ServiceResult.fail("Category not found")
    except StoreError:
        logger.exception("Error deleting event category %s", category_id)
        return ServiceResult.fail("Failed to delete category")
    return ServiceResult.ok(category_id)


def reorder_event_categories(
    store: DocumentStore, ordered_ids: list[str], *, actor_id: str | None = None,
) -> ServiceResult:
    try:
        reorder_audited(
            store, EVENT_CATEGORIES, ordered_ids, start=ORDER_START, actor_id=actor_id,
        )
    except ValueError as exc:
        return ServiceResult.fail(str(exc))
    except StoreError:
        logger.exception("Error reordering event categories")
        return ServiceResult.fail("Failed to reorder categories")
    return ServiceResult.ok()
