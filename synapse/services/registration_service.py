"""
synapse.services.registration_service — Competition Team Registrations
=======================================================================

A registration is one team entering one competition.  Nothing stops a
team from registering twice; admins approve or reject each entry by
hand.  The CSV export spreads team members over five fixed column
groups (``Member 1 Name`` … ``Member 5 Phone``); members beyond the
fifth are not exported.
"""

from __future__ import annotations

import logging

from synapse.constants import REGISTRATION_STATUSES, REGISTRATIONS
from synapse.database.store import (
    SERVER_TIMESTAMP,
    DocumentNotFoundError,
    DocumentStore,
    StoreError,
)
from synapse.schemas import Competition, Registration, RegistrationForm, decode_many
from synapse.services.audit_service import audited_delete, audited_update
from synapse.services.csv_export import format_timestamp, to_csv
from synapse.services.results import ServiceResult

logger = logging.getLogger(__name__)

CSV_MEMBER_SLOTS = 5

CSV_HEADERS = [
    "Registration ID", "Competition", "Team Name", "College",
    *(
        f"Member {n} {field}"
        for n in range(1, CSV_MEMBER_SLOTS + 1)
        for field in ("Name", "Email", "Phone")
    ),
    "Transaction ID", "Status", "Registered At",
]


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def _list(store: DocumentStore, where: dict | None = None) -> list[Registration]:
    return decode_many(
        Registration,
        store.list(REGISTRATIONS, where=where, order_by="created_at", descending=True),
    )


def get_registrations_by_competition(store: DocumentStore, competition_id: str) -> list[Registration]:
    try:
        return _list(store, {"competition_id": competition_id})
    except StoreError:
        logger.exception("Error fetching registrations for competition %s", competition_id)
        return []


def get_registrations_by_user(store: DocumentStore, user_id: str) -> list[Registration]:
    try:
        return _list(store, {"user_id": user_id})
    except StoreError:
        logger.exception("Error fetching registrations for user %s", user_id)
        return []


def get_all_registrations(store: DocumentStore) -> list[Registration]:
    try:
        return _list(store)
    except StoreError:
        logger.exception("Error fetching all registrations")
        return []


def get_registration_stats(registrations: list[Registration]) -> dict[str, int]:
    stats = {"total": len(registrations)}
    for status in REGISTRATION_STATUSES:
        stats[status] = sum(1 for r in registrations if r.status == status)
    stats["total_members"] = sum(len(r.team_members) for r in registrations)
    return stats


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def create_registration(
    store: DocumentStore,
    competition: Competition,
    form: RegistrationForm,
    *,
    user_id: str | None = None,
    synapse_id: str | None = None,
) -> ServiceResult:
    if not competition.is_active:
        return ServiceResult.fail("Registrations for this competition are closed")
    try:
        doc_id = store.add(REGISTRATIONS, {
            **form.model_dump(),
            "competition_id": competition.id,
            "competition_name": competition.name,
            "user_id": user_id,
            "synapse_id": synapse_id,
            "status": "pending",
            "notes": "",
            "created_at": SERVER_TIMESTAMP,
        })
    except StoreError:
        logger.exception("Error creating registration for %s", competition.id)
        return ServiceResult.fail("Failed to submit registration")
    logger.info("Team %r registered for %s (%s)", form.team_name, competition.name, doc_id)
    return ServiceResult.ok(doc_id)


def update_registration_status(
    store: DocumentStore,
    registration_id: str,
    status: str,
    notes: str | None = None,
    *,
    actor_id: str | None = None,
) -> ServiceResult:
    if status not in REGISTRATION_STATUSES:
        return ServiceResult.fail(f"Invalid status {status!r}")
    fields: dict = {"status": status}
    if notes is not None:
        fields["notes"] = notes
    try:
        audited_update(store, REGISTRATIONS, registration_id, fields, actor_id=actor_id)
    except DocumentNotFoundError:
        return ServiceResult.fail("Registration not found")
    except StoreError:
        logger.exception("Error updating registration %s", registration_id)
        return ServiceResult.fail("Failed to update registration")
    return ServiceResult.ok(registration_id)


def delete_registration(
    store: DocumentStore, registration_id: str, *, actor_id: str | None = None,
) -> ServiceResult:
    try:
        if not audited_delete(store, REGISTRATIONS, registration_id, actor_id=actor_id):
            return ServiceResult.fail("Registration not found")
    except StoreError:
        logger.exception("Error deleting registration %s", registration_id)
        return ServiceResult.fail("Failed to delete registration")
    return ServiceResult.ok(registration_id)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------
def _member_cells(registration: Registration) -> list[str]:
    cells: list[str] = []
    members = registration.team_members[:CSV_MEMBER_SLOTS]
    for slot in range(CSV_MEMBER_SLOTS):
        if slot < len(members):
            m = members[slot]
            cells.extend([m.name, m.email, m.phone])
        else:
            cells.extend(["", "", ""])
    return cells


def export_registrations_csv(registrations: list[Registration]) -> str:
    return to_csv(CSV_HEADERS, (
        [
            r.id, r.competition_name, r.team_name, r.college_name,
            *_member_cells(r),
            r.transaction_id, r.status, format_timestamp(r.created_at),
        ]
        for r in registrations
    ))
