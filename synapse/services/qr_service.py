"""
synapse.services.qr_service — Festival Pass QR & Attendance
===========================================================

Payload format
--------------
One QR code per attendee carries every registration they hold::

    "SYN:" + base64(json({"sid": "SYN-ABC-0001",
                          "gid": "1234",
                          "reg": [{"t": "d", "id": "day_1", "n": "Day 1"}, ...],
                          "ts": 1735689600000}))

``t`` is ``d`` (day pass), ``c`` (competition) or ``e`` (event).  The
payload is neither signed nor time-limited; a copied code scans the same
as the original.

Scanning
--------
Volunteers scan at the gate.  Each attendee is marked present at most
once per calendar day (UTC); a second scan reports "already marked"
instead of writing.  Scans taken without connectivity are replayed in
bulk through :func:`sync_offline_attendance`.
"""

from __future__ import annotations

import base64
import io
import json
import logging
import time
from collections import Counter
from datetime import UTC, datetime

import qrcode
from pydantic import ValidationError
from qrcode.constants import ERROR_CORRECT_H

from synapse.constants import ATTENDANCES, QR_VOLUNTEERS
from synapse.database.store import (
    SERVER_TIMESTAMP,
    DocumentNotFoundError,
    DocumentStore,
    StoreError,
)
from synapse.schemas import (
    Attendance,
    OfflineScan,
    QRPayload,
    QRRegistrationRef,
    QRVolunteer,
    UserProfile,
    decode_many,
)
from synapse.services.audit_service import audited_delete, audited_update, log_admin_action
from synapse.services.csv_export import format_timestamp, to_csv
from synapse.services.day_pass_registration_service import get_all_user_registrations
from synapse.services.results import ServiceResult
from synapse.services.user_service import lookup_by_synapse_id

logger = logging.getLogger(__name__)

QR_PREFIX = "SYN:"

INVALID_QR = "Invalid QR code. Please scan a valid Synapse pass."
SELF_SCAN = "You cannot scan your own QR code!"
ALREADY_MARKED = "Attendance already marked for today"

_TYPE_CODES = {"daypass": "d", "competition": "c", "event": "e"}
_CODE_TYPES = {code: kind for kind, code in _TYPE_CODES.items()}

CSV_HEADERS = [
    "Date", "Synapse ID", "Name", "Email", "College", "Scanned By",
    "Scanned At", "Offline Scanned",
]


def today() -> str:
    """The current UTC date as ``YYYY-MM-DD``."""
    return datetime.now(UTC).strftime("%Y-%m-%d")


# ---------------------------------------------------------------------------
# Payload encoding
# ---------------------------------------------------------------------------
def encode_qr_payload(
    synapse_id: str,
    government_id_last4: str,
    registrations: list[QRRegistrationRef],
    *,
    timestamp_ms: int | None = None,
) -> str:
    body = {
        "sid": synapse_id,
        "gid": government_id_last4,
        "reg": [{"t": _TYPE_CODES[r.type], "id": r.id, "n": r.name} for r in registrations],
        "ts": int(time.time() * 1000) if timestamp_ms is None else timestamp_ms,
    }
    raw = json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return QR_PREFIX + base64.b64encode(raw).decode("ascii")


def decode_qr_payload(qr_string: str) -> QRPayload | None:
    """Parse a scanned string, or return ``None`` if it is not a Synapse pass."""
    if not isinstance(qr_string, str) or not qr_string.startswith(QR_PREFIX):
        return None
    try:
        body = json.loads(base64.b64decode(qr_string[len(QR_PREFIX):], validate=True))
        return QRPayload(
            synapse_id=body["sid"],
            government_id_last4=body["gid"],
            registrations=[
                QRRegistrationRef(type=_CODE_TYPES.get(r["t"], "event"), id=r["id"], name=r["n"])
                for r in body["reg"]
            ],
            timestamp=body["ts"],
        )
    except (ValueError, TypeError, KeyError, RecursionError):
        return None


def render_qr_png(data: str, *, box_size: int = 10, border: int = 2) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_H,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def build_unified_qr(store: DocumentStore, profile: UserProfile) -> str | None:
    """The user's pass payload, or ``None`` when they hold no registrations."""
    held = get_all_user_registrations(store, profile.uid)
    refs: list[QRRegistrationRef] = []
    day_pass = held["day_pass"]
    if day_pass is not None:
        refs.extend(
            QRRegistrationRef(type="daypass", id=f"day_{d}", name=f"Day {d}")
            for d in day_pass.selected_days
        )
    refs.extend(QRRegistrationRef(type="competition", **c) for c in held["competitions"])
    refs.extend(QRRegistrationRef(type="event", **e) for e in held["events"])
    if not refs:
        return None
    gid = day_pass.government_id_last4 if day_pass is not None else ""
    return encode_qr_payload(profile.synapse_id, gid, refs)


# ---------------------------------------------------------------------------
# Volunteers
# ---------------------------------------------------------------------------
def get_all_volunteers(store: DocumentStore) -> list[QRVolunteer]:
    try:
        return decode_many(QRVolunteer, store.list(QR_VOLUNTEERS, order_by="created_at", descending=True))
    except StoreError:
        logger.exception("Error fetching volunteers")
        return []


def _volunteer_for(store: DocumentStore, user_id: str) -> QRVolunteer | None:
    found = decode_many(QRVolunteer, store.list(QR_VOLUNTEERS, where={"user_id": user_id}))
    return found[0] if found else None


def get_volunteer_by_user_id(store: DocumentStore, user_id: str) -> QRVolunteer | None:
    """Raises :class:`StoreError` so the scanner guard can tell failures apart."""
    return _volunteer_for(store, user_id)


def is_active_volunteer(store: DocumentStore, user_id: str) -> bool:
    try:
        volunteer = _volunteer_for(store, user_id)
    except StoreError:
        logger.exception("Error checking volunteer status for %s", user_id)
        return False
    return volunteer is not None and volunteer.is_active


def add_volunteer(
    store: DocumentStore,
    profile: UserProfile,
    *,
    assigned_events: list[str] | None = None,
    created_by: str,
    actor_id: str | None = None,
) -> ServiceResult:
    try:
        with store.transaction(QR_VOLUNTEERS) as tx:
            if _volunteer_for(tx, profile.uid) is not None:
                return ServiceResult.fail("User is already a volunteer")
            doc_id = tx.add(QR_VOLUNTEERS, {
                "user_id": profile.uid,
                "synapse_id": profile.synapse_id,
                "display_name": profile.display_name,
                "email": profile.email,
                "assigned_events": assigned_events or [],
                "is_active": True,
                "created_by": created_by,
                "created_at": SERVER_TIMESTAMP,
            })
            if actor_id is not None:
                log_admin_action(
                    tx, actor_id=actor_id, action_type="CREATE", collection=QR_VOLUNTEERS,
                    target_id=doc_id, before=None, after=tx.get(QR_VOLUNTEERS, doc_id).data,
                )
    except StoreError:
        logger.exception("Error adding volunteer %s", profile.synapse_id)
        return ServiceResult.fail("Failed to add volunteer")
    logger.info("%s added as volunteer by %s", profile.synapse_id, created_by)
    return ServiceResult.ok(doc_id)


def _update_volunteer(
    store: DocumentStore, volunteer_id: str, fields: dict, actor_id: str | None,
) -> ServiceResult:
    try:
        audited_update(store, QR_VOLUNTEERS, volunteer_id, fields, actor_id=actor_id)
    except DocumentNotFoundError:
        return ServiceResult.fail("Volunteer not found")
    except StoreError:
        logger.exception("Error updating volunteer %s", volunteer_id)
        return ServiceResult.fail("Failed to update volunteer")
    return ServiceResult.ok(volunteer_id)


def update_volunteer_status(
    store: DocumentStore, volunteer_id: str, is_active: bool, *, actor_id: str | None = None,
) -> ServiceResult:
    return _update_volunteer(store, volunteer_id, {"is_active": is_active}, actor_id)


def update_volunteer_events(
    store: DocumentStore, volunteer_id: str, event_ids: list[str], *, actor_id: str | None = None,
) -> ServiceResult:
    return _update_volunteer(
        store, volunteer_id, {"assigned_events": list(dict.fromkeys(event_ids))}, actor_id,
    )


def remove_volunteer(store: DocumentStore, volunteer_id: str, *, actor_id: str | None = None) -> ServiceResult:
    try:
        if not audited_delete(store, QR_VOLUNTEERS, volunteer_id, actor_id=actor_id):
            return ServiceResult.fail("Volunteer not found")
    except StoreError:
        logger.exception("Error removing volunteer %s", volunteer_id)
        return ServiceResult.fail("Failed to remove volunteer")
    return ServiceResult.ok(volunteer_id)


# ---------------------------------------------------------------------------
# Attendance
# ---------------------------------------------------------------------------
def has_attendance_on(store: DocumentStore, user_id: str, date: str) -> bool:
    return bool(store.count(ATTENDANCES, where={"user_id": user_id, "date": date}))


def mark_attendance(store: DocumentStore, attendance: Attendance) -> ServiceResult:
    """Record *attendance* unless that user is already marked for its date.

    The scan time is the server's, except for offline scans that carry
    their own ``scanned_at``.
    """
    body = attendance.to_document()
    if not body.get("scanned_at"):
        body["scanned_at"] = SERVER_TIMESTAMP
    body["synced_at"] = SERVER_TIMESTAMP
    try:
        with store.transaction(ATTENDANCES) as tx:
            if has_attendance_on(tx, attendance.user_id, attendance.date):
                return ServiceResult.fail(ALREADY_MARKED, already_marked=True)
            doc_id = tx.add(ATTENDANCES, body)
    except StoreError:
        logger.exception("Error marking attendance for %s", attendance.synapse_id)
        return ServiceResult.fail("Failed to mark attendance")
    return ServiceResult.ok(doc_id)


def get_all_attendance(store: DocumentStore) -> list[Attendance]:
    try:
        return decode_many(Attendance, store.list(ATTENDANCES, order_by="scanned_at", descending=True))
    except StoreError:
        logger.exception("Error fetching attendance")
        return []


def get_attendance_by_date(store: DocumentStore, date: str) -> list[Attendance]:
    try:
        return decode_many(
            Attendance,
            store.list(ATTENDANCES, where={"date": date}, order_by="scanned_at", descending=True),
        )
    except StoreError:
        logger.exception("Error fetching attendance for %s", date)
        return []


def get_attendance_by_volunteer(store: DocumentStore, volunteer_synapse_id: str) -> list[Attendance]:
    try:
        return decode_many(
            Attendance,
            store.list(
                ATTENDANCES, where={"scanned_by": volunteer_synapse_id},
                order_by="scanned_at", descending=True,
            ),
        )
    except StoreError:
        logger.exception("Error fetching attendance scanned by %s", volunteer_synapse_id)
        return []


def delete_attendance(store: DocumentStore, attendance_id: str, *, actor_id: str | None = None) -> ServiceResult:
    try:
        if not audited_delete(store, ATTENDANCES, attendance_id, actor_id=actor_id):
            return ServiceResult.fail("Attendance record not found")
    except StoreError:
        logger.exception("Error deleting attendance %s", attendance_id)
        return ServiceResult.fail("Failed to delete attendance")
    return ServiceResult.ok(attendance_id)


def get_attendance_stats(attendances: list[Attendance]) -> dict:
    return {
        "total": len(attendances),
        "unique_users": len({a.user_id for a in attendances}),
        "unique_volunteers": len({a.scanned_by for a in attendances}),
        "offline_count": sum(1 for a in attendances if a.offline_scanned),
        "by_date": dict(sorted(Counter(a.date for a in attendances).items())),
    }


def export_attendance_csv(attendances: list[Attendance]) -> str:
    return to_csv(CSV_HEADERS, (
        [
            a.date, a.synapse_id, a.display_name, a.email, a.college,
            f"{a.scanned_by_name} ({a.scanned_by})", format_timestamp(a.scanned_at),
            "Yes" if a.offline_scanned else "No",
        ]
        for a in attendances
    ))


# ---------------------------------------------------------------------------
# Scanner flow
# ---------------------------------------------------------------------------
def _attendance_for(
    store: DocumentStore,
    synapse_id: str,
    *,
    date: str,
    volunteer: QRVolunteer,
    scanned_by_name: str,
    registrations: list[QRRegistrationRef],
    offline: bool,
    scanned_at: str | None = None,
) -> Attendance:
    # Unknown ids are still recorded, keyed by the synapse id itself.
    holder = lookup_by_synapse_id(store, synapse_id)
    return Attendance(
        user_id=holder.uid if holder else synapse_id,
        synapse_id=synapse_id,
        display_name=holder.display_name if holder and holder.display_name else synapse_id,
        email=holder.email if holder else "",
        college=holder.college if holder else "",
        date=date,
        attended=True,
        scanned_by=volunteer.synapse_id,
        scanned_by_name=scanned_by_name or volunteer.display_name or "Volunteer",
        scanned_at=scanned_at,
        offline_scanned=offline,
        registrations=registrations,
    )


def scan_qr(
    store: DocumentStore,
    qr_string: str,
    volunteer: QRVolunteer,
    *,
    scanned_by_name: str = "",
    date: str | None = None,
) -> ServiceResult:
    """Verify a scanned pass and mark its holder present for *date*.

    The result carries ``synapse_id``, ``display_name`` and
    ``registrations`` whenever the payload decoded, and
    ``already_marked=True`` for a repeat scan.
    """
    payload = decode_qr_payload(qr_string)
    if payload is None:
        return ServiceResult.fail(INVALID_QR)
    if payload.synapse_id == volunteer.synapse_id:
        return ServiceResult.fail(SELF_SCAN)

    attendance = _attendance_for(
        store, payload.synapse_id, date=date or today(), volunteer=volunteer,
        scanned_by_name=scanned_by_name, registrations=payload.registrations, offline=False,
    )
    details = {
        "synapse_id": payload.synapse_id,
        "display_name": attendance.display_name,
        "registrations": [r.model_dump() for r in payload.registrations],
    }
    result = mark_attendance(store, attendance)
    if result.extra.get("already_marked"):
        return ServiceResult.fail(
            f"{attendance.display_name} is already marked present today.",
            already_marked=True, **details,
        )
    if not result.success:
        return result
    logger.info("%s marked present by %s", payload.synapse_id, volunteer.synapse_id)
    return ServiceResult.ok(
        result.id, message=f"✓ {attendance.display_name} marked present!", **details,
    )


def sync_offline_attendance(
    store: DocumentStore,
    records: list[dict],
    volunteer: QRVolunteer,
    *,
    scanned_by_name: str = "",
) -> dict[str, int]:
    """Replay scans recorded offline.

    Each record is ``{"synapse_id", "date", "scanned_at"}`` (optionally
    ``"registrations"``).  Returns ``{"success", "failed", "already_exist"}``.
    """
    outcome = {"success": 0, "failed": 0, "already_exist": 0}
    for record in records:
        try:
            scan = OfflineScan.model_validate(record)
            attendance = _attendance_for(
                store, scan.synapse_id, date=scan.date, volunteer=volunteer,
                scanned_by_name=scanned_by_name, registrations=scan.registrations,
                offline=True, scanned_at=scan.scanned_at,
            )
        except ValidationError as exc:
            logger.warning("Skipping malformed offline scan (%d errors)", exc.error_count())
            outcome["failed"] += 1
            continue
        result = mark_attendance(store, attendance)
        if result.success:
            outcome["success"] += 1
        elif result.extra.get("already_marked"):
            outcome["already_exist"] += 1
        else:
            outcome["failed"] += 1
    logger.info("Offline sync from %s: %s", volunteer.synapse_id, outcome)
    return outcome
