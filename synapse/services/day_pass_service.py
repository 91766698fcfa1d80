"""
synapse.services.day_pass_service — Day Pass Catalogue
======================================================

One document per festival day, keyed ``day_<n>``.  Saving a pass merges
into whatever is stored, so an edit that only touches the price keeps
the images and event list.  ``capacity`` is shown to attendees but is
not enforced when registering (0 means unlimited).
"""

from __future__ import annotations

import logging

from synapse.constants import DAY_PASSES, DEFAULT_DAY_PASSES, day_pass_id
from synapse.database.store import SERVER_TIMESTAMP, DocumentStore, StoreError
from synapse.schemas import DayPass, decode_many, decode_one
from synapse.services.audit_service import audited_set
from synapse.services.results import ServiceResult

logger = logging.getLogger(__name__)


def get_day_passes(store: DocumentStore) -> list[DayPass]:
    try:
        return decode_many(DayPass, store.list(DAY_PASSES, order_by="day"))
    except StoreError:
        logger.exception("Error fetching day passes")
        return []


def get_active_day_passes(store: DocumentStore) -> list[DayPass]:
    return [p for p in get_day_passes(store) if p.is_active]


def get_day_pass(store: DocumentStore, day: int) -> DayPass | None:
    try:
        return decode_one(DayPass, store.get(DAY_PASSES, day_pass_id(day)))
    except StoreError:
        logger.exception("Error fetching day pass %d", day)
        return None


def save_day_pass(store: DocumentStore, day_pass: DayPass, *, actor_id: str | None = None) -> ServiceResult:
    doc_id = day_pass_id(day_pass.day)
    try:
        audited_set(
            store, DAY_PASSES, doc_id,
            {**day_pass.to_document(), "updated_at": SERVER_TIMESTAMP},
            actor_id=actor_id,
        )
    except StoreError:
        logger.exception("Error saving day pass %s", doc_id)
        return ServiceResult.fail("Failed to save day pass")
    return ServiceResult.ok(doc_id)


def initialize_default_day_passes(store: DocumentStore, *, actor_id: str | None = None) -> int:
    """Write the default three passes if the catalogue is empty.

    Returns the number of passes written (0 when passes already exist).
    """
    if store.count(DAY_PASSES):
        return 0
    written = 0
    for defaults in DEFAULT_DAY_PASSES:
        result = save_day_pass(store, DayPass(**defaults), actor_id=actor_id)
        if result.success:
            written += 1
    logger.info("Initialised %d default day passes", written)
    return written


def price_for_days(passes: list[DayPass], days: list[int]) -> float:
    """Sum of the current prices of *days*.  Unknown days cost nothing."""
    prices = {p.day: p.price for p in passes}
    return sum(prices.get(day, 0) for day in set(days))
