"""
synapse.services.event_registration_service — Event Tickets
===========================================================

Individual (not team) sign-ups for events, with payment details and an
``attended`` flag admins tick at the door.
"""

from __future__ import annotations

import logging

from synapse.constants import EVENT_REGISTRATIONS, REGISTRATION_STATUSES
from synapse.database.store import (
    SERVER_TIMESTAMP,
    DocumentNotFoundError,
    DocumentStore,
    StoreError,
)
from synapse.schemas import Event, EventRegistration, EventRegistrationForm, decode_many
from synapse.services.audit_service import audited_delete, audited_update
from synapse.services.csv_export import format_amount, format_timestamp, to_csv
from synapse.services.results import ServiceResult

logger = logging.getLogger(__name__)

CSV_HEADERS = [
    "Registration ID", "Event", "Name", "Email", "Phone", "College",
    "Synapse ID", "Amount Paid", "Transaction ID", "Status", "Attended",
    "Registered At",
]


def _list(store: DocumentStore, where: dict | None = None) -> list[EventRegistration]:
    return decode_many(
        EventRegistration,
        store.list(EVENT_REGISTRATIONS, where=where, order_by="created_at", descending=True),
    )


def get_event_registrations_by_event(store: DocumentStore, event_id: str) -> list[EventRegistration]:
    try:
        return _list(store, {"event_id": event_id})
    except StoreError:
        logger.exception("Error fetching registrations for event %s", event_id)
        return []


def get_event_registrations_by_user(store: DocumentStore, user_id: str) -> list[EventRegistration]:
    try:
        return _list(store, {"user_id": user_id})
    except StoreError:
        logger.exception("Error fetching event registrations for user %s", user_id)
        return []


def get_all_event_registrations(store: DocumentStore) -> list[EventRegistration]:
    try:
        return _list(store)
    except StoreError:
        logger.exception("Error fetching all event registrations")
        return []


def get_event_registration_stats(registrations: list[EventRegistration]) -> dict:
    stats: dict = {"total": len(registrations)}
    for status in REGISTRATION_STATUSES:
        stats[status] = sum(1 for r in registrations if r.status == status)
    stats["attended"] = sum(1 for r in registrations if r.attended)
    stats["total_revenue"] = sum(r.amount_paid for r in registrations)
    return stats


def create_event_registration(
    store: DocumentStore,
    event: Event,
    form: EventRegistrationForm,
    *,
    user_id: str | None = None,
    synapse_id: str | None = None,
) -> ServiceResult:
    if not event.is_active:
        return ServiceResult.fail("Registrations for this event are closed")
    try:
        doc_id = store.add(EVENT_REGISTRATIONS, {
            **form.model_dump(),
            "event_id": event.id,
            "event_name": event.name,
            "user_id": user_id,
            "synapse_id": synapse_id,
            "status": "pending",
            "attended": False,
            "notes": "",
            "created_at": SERVER_TIMESTAMP,
        })
    except StoreError:
        logger.exception("Error creating registration for event %s", event.id)
        return ServiceResult.fail("Failed to submit registration")
    logger.info("%s registered for %s (%s)", form.email, event.name, doc_id)
    return ServiceResult.ok(doc_id)


def _update(
    store: DocumentStore, registration_id: str, fields: dict, actor_id: str | None,
) -> ServiceResult:
    try:
        audited_update(store, EVENT_REGISTRATIONS, registration_id, fields, actor_id=actor_id)
    except DocumentNotFoundError:
        return ServiceResult.fail("Registration not found")
    except StoreError:
        logger.exception("Error updating event registration %s", registration_id)
        return ServiceResult.fail("Failed to update registration")
    return ServiceResult.ok(registration_id)


def update_event_registration_status(
    store: DocumentStore, registration_id: str, status: str, *, actor_id: str | None = None,
) -> ServiceResult:
    if status not in REGISTRATION_STATUSES:
        return ServiceResult.fail(f"Invalid status {status!r}")
    return _update(store, registration_id, {"status": status}, actor_id)


def mark_event_attendance(
    store: DocumentStore, registration_id: str, attended: bool, *, actor_id: str | None = None,
) -> ServiceResult:
    return _update(store, registration_id, {"attended": attended}, actor_id)


def delete_event_registration(
    store: DocumentStore, registration_id: str, *, actor_id: str | None = None,
) -> ServiceResult:
    try:
        if not audited_delete(store, EVENT_REGISTRATIONS, registration_id, actor_id=actor_id):
            return ServiceResult.fail("Registration not found")
    except StoreError:
        logger.exception("Error deleting event registration %s", registration_id)
        return ServiceResult.fail("Failed to delete registration")
    return ServiceResult.ok(registration_id)


def export_event_registrations_csv(registrations: list[EventRegistration]) -> str:
    return to_csv(CSV_HEADERS, (
        [
            r.id, r.event_name, r.name, r.email, r.phone, r.college_name,
            r.synapse_id, format_amount(r.amount_paid), r.transaction_id, r.status,
            "Yes" if r.attended else "No", format_timestamp(r.created_at),
        ]
        for r in registrations
    ))
