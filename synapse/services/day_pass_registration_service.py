"""
synapse.services.day_pass_registration_service — Day Pass Sign-ups
===================================================================

Each user holds at most one registration listing the festival days they
bought.  Registrations are approved on creation; payment is tracked
separately (``pending`` while money is owed, ``free`` for a zero total,
``paid`` once an admin confirms the transaction).

The total is always recomputed here from the stored day-pass prices,
never taken from the client.  Capacity is reported, not enforced:
:func:`get_capacity_report` flags days that are over their limit.
"""

from __future__ import annotations

import logging

from synapse.constants import (
    DAY_PASS_REGISTRATIONS,
    FESTIVAL_DAYS,
    PAYMENT_STATUSES,
    REGISTRATION_STATUSES,
)
from synapse.database.store import (
    SERVER_TIMESTAMP,
    DocumentNotFoundError,
    DocumentStore,
    StoreError,
)
from synapse.schemas import DayPass, DayPassForm, DayPassRegistration, UserProfile, decode_many
from synapse.services.audit_service import audited_delete, audited_update
from synapse.services.csv_export import format_amount, format_timestamp, to_csv
from synapse.services.day_pass_service import get_active_day_passes, get_day_passes, price_for_days
from synapse.services.event_registration_service import get_event_registrations_by_user
from synapse.services.registration_service import get_registrations_by_user
from synapse.services.results import ServiceResult

logger = logging.getLogger(__name__)

ALREADY_REGISTERED = "You already have a day pass registration"

CSV_HEADERS = [
    "Synapse ID", "Name", "Email", "Phone", "College", "Selected Days",
    "Amount", "Status", "Payment Status", "Gov ID (Last 4)", "Registered At",
]


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def _by_user(store: DocumentStore, user_id: str) -> DayPassRegistration | None:
    found = decode_many(
        DayPassRegistration,
        store.list(DAY_PASS_REGISTRATIONS, where={"user_id": user_id}, order_by="created_at"),
    )
    return found[0] if found else None


def get_day_pass_registration_by_user(store: DocumentStore, user_id: str) -> DayPassRegistration | None:
    try:
        return _by_user(store, user_id)
    except StoreError:
        logger.exception("Error fetching day pass registration for %s", user_id)
        return None


def get_all_day_pass_registrations(store: DocumentStore) -> list[DayPassRegistration]:
    try:
        return decode_many(
            DayPassRegistration,
            store.list(DAY_PASS_REGISTRATIONS, order_by="created_at", descending=True),
        )
    except StoreError:
        logger.exception("Error fetching day pass registrations")
        return []


def get_day_pass_registration_stats(registrations: list[DayPassRegistration]) -> dict:
    stats: dict = {"total": len(registrations)}
    for status in REGISTRATION_STATUSES:
        stats[status] = sum(1 for r in registrations if r.status == status)
    stats["total_revenue"] = sum(r.total_amount for r in registrations if r.status == "approved")
    return stats


def count_registrations_per_day(registrations: list[DayPassRegistration]) -> dict[int, int]:
    """``{day: registrations}`` for every festival day, zero-filled."""
    counts = {day: 0 for day in FESTIVAL_DAYS}
    for registration in registrations:
        for day in registration.selected_days:
            if day in counts:
                counts[day] += 1
    return counts


def get_registration_counts_per_day(store: DocumentStore) -> dict[int, int]:
    return count_registrations_per_day(get_all_day_pass_registrations(store))


def get_capacity_report(store: DocumentStore) -> list[dict]:
    """Registrations against capacity per pass.

    Counts are reported as they are even past the limit; ``remaining`` is
    ``None`` for unlimited passes and never negative.
    """
    counts = get_registration_counts_per_day(store)
    report = []
    for day_pass in get_day_passes(store):
        registered = counts.get(day_pass.day, 0)
        limited = day_pass.capacity > 0
        report.append({
            "day": day_pass.day,
            "capacity": day_pass.capacity,
            "registered": registered,
            "remaining": max(day_pass.capacity - registered, 0) if limited else None,
            "over_capacity": limited and registered > day_pass.capacity,
        })
    return report


def get_all_user_registrations(store: DocumentStore, user_id: str) -> dict:
    """Everything a user is signed up for, as shown on the dashboard and QR."""
    return {
        "day_pass": get_day_pass_registration_by_user(store, user_id),
        "competitions": [
            {"id": r.id, "name": r.competition_name or "Competition"}
            for r in get_registrations_by_user(store, user_id)
        ],
        "events": [
            {"id": r.id, "name": r.event_name or "Event"}
            for r in get_event_registrations_by_user(store, user_id)
        ],
    }


# ---------------------------------------------------------------------------
# User writes
# ---------------------------------------------------------------------------
def _unavailable_days(passes: list[DayPass], days: list[int]) -> list[int]:
    offered = {p.day for p in passes}
    return sorted(set(days) - offered)


def create_day_pass_registration(
    store: DocumentStore, profile: UserProfile, form: DayPassForm,
) -> ServiceResult:
    passes = get_active_day_passes(store)
    missing = _unavailable_days(passes, form.selected_days)
    if missing:
        return ServiceResult.fail(
            f"Day pass not available for day {', '.join(map(str, missing))}"
        )
    days = sorted(set(form.selected_days))
    total = price_for_days(passes, days)
    try:
        with store.transaction(DAY_PASS_REGISTRATIONS) as tx:
            if _by_user(tx, profile.uid) is not None:
                return ServiceResult.fail(ALREADY_REGISTERED)
            doc_id = tx.add(DAY_PASS_REGISTRATIONS, {
                "user_id": profile.uid,
                "synapse_id": profile.synapse_id,
                "user_name": profile.display_name,
                "email": profile.email,
                "phone": form.phone,
                "college": form.college or profile.college,
                "government_id_last4": form.government_id_last4,
                "selected_days": days,
                "total_amount": total,
                "status": "approved",
                "payment_status": "pending" if total > 0 else "free",
                "transaction_id": "",
                "created_at": SERVER_TIMESTAMP,
                "updated_at": SERVER_TIMESTAMP,
            })
    except StoreError:
        logger.exception("Error creating day pass registration for %s", profile.uid)
        return ServiceResult.fail("Failed to create registration")
    logger.info("Day pass %s for %s (days %s, ₹%s)", doc_id, profile.synapse_id, days, total)
    return ServiceResult.ok(doc_id, total_amount=total)


def add_days_to_registration(
    store: DocumentStore, user_id: str, new_days: list[int],
) -> ServiceResult:
    """Add *new_days* to the user's registration and recompute the total."""
    passes = get_active_day_passes(store)
    missing = _unavailable_days(passes, new_days)
    if missing:
        return ServiceResult.fail(
            f"Day pass not available for day {', '.join(map(str, missing))}"
        )
    all_prices = get_day_passes(store)
    try:
        with store.transaction(DAY_PASS_REGISTRATIONS) as tx:
            current = _by_user(tx, user_id)
            if current is None:
                return ServiceResult.fail("No day pass registration found")
            days = sorted(set(current.selected_days) | set(new_days))
            total = price_for_days(all_prices, days)
            fields = {
                "selected_days": days,
                "total_amount": total,
                "updated_at": SERVER_TIMESTAMP,
            }
            if total > current.total_amount and current.payment_status in ("free", "paid"):
                fields["payment_status"] = "pending"
            tx.update(DAY_PASS_REGISTRATIONS, current.id, fields)
    except StoreError:
        logger.exception("Error adding days for %s", user_id)
        return ServiceResult.fail("Failed to update registration")
    return ServiceResult.ok(current.id, selected_days=days, total_amount=total)


# ---------------------------------------------------------------------------
# Admin writes
# ---------------------------------------------------------------------------
def _update(
    store: DocumentStore, registration_id: str, fields: dict, actor_id: str | None,
) -> ServiceResult:
    try:
        audited_update(
            store, DAY_PASS_REGISTRATIONS, registration_id,
            {**fields, "updated_at": SERVER_TIMESTAMP}, actor_id=actor_id,
        )
    except DocumentNotFoundError:
        return ServiceResult.fail("Registration not found")
    except StoreError:
        logger.exception("Error updating day pass registration %s", registration_id)
        return ServiceResult.fail("Failed to update registration")
    return ServiceResult.ok(registration_id)


def update_day_pass_status(
    store: DocumentStore, registration_id: str, status: str, *, actor_id: str | None = None,
) -> ServiceResult:
    if status not in REGISTRATION_STATUSES:
        return ServiceResult.fail(f"Invalid status {status!r}")
    return _update(store, registration_id, {"status": status}, actor_id)


def update_day_pass_payment_status(
    store: DocumentStore,
    registration_id: str,
    payment_status: str,
    transaction_id: str | None = None,
    *,
    actor_id: str | None = None,
) -> ServiceResult:
    if payment_status not in PAYMENT_STATUSES:
        return ServiceResult.fail(f"Invalid payment status {payment_status!r}")
    fields = {"payment_status": payment_status}
    if transaction_id:
        fields["transaction_id"] = transaction_id
    return _update(store, registration_id, fields, actor_id)


def delete_day_pass_registration(
    store: DocumentStore, registration_id: str, *, actor_id: str | None = None,
) -> ServiceResult:
    try:
        if not audited_delete(store, DAY_PASS_REGISTRATIONS, registration_id, actor_id=actor_id):
            return ServiceResult.fail("Registration not found")
    except StoreError:
        logger.exception("Error deleting day pass registration %s", registration_id)
        return ServiceResult.fail("Failed to delete registration")
    return ServiceResult.ok(registration_id)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------
def export_day_pass_registrations_csv(registrations: list[DayPassRegistration]) -> str:
    return to_csv(CSV_HEADERS, (
        [
            r.synapse_id, r.user_name, r.email, r.phone, r.college,
            " + ".join(str(d) for d in r.selected_days), format_amount(r.total_amount),
            r.status, r.payment_status, r.government_id_last4,
            format_timestamp(r.created_at),
        ]
        for r in registrations
    ))
