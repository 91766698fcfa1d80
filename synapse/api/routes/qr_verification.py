"""
synapse.api.routes.qr_verification — Volunteers & attendance
==============================================================

Admins with ``manage_qr_verification`` appoint the volunteers who may
use the gate scanner and review the attendance they record.
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from synapse.api.deps import csv_response, get_store, unwrap
from synapse.api.rate_limit import rate_limited
from synapse.constants import MANAGE_QR_VERIFICATION, MANAGEMENT_ROUTES
from synapse.database.store import DocumentStore
from synapse.schemas import AdminProfile
from synapse.services import qr_service
from synapse.services.attendance_insights import AttendanceFilter, apply_filters, generate_insights
from synapse.services.day_pass_registration_service import get_all_user_registrations
from synapse.services.user_service import lookup_by_synapse_id

ROUTE = MANAGEMENT_ROUTES[MANAGE_QR_VERIFICATION]["path"]
router = APIRouter(prefix=ROUTE, tags=["qr-verification"])
guard = rate_limited(MANAGE_QR_VERIFICATION, ROUTE)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class VolunteerCreate(BaseModel):
    synapse_id: str = Field(min_length=1)
    assigned_events: list[str] = Field(default_factory=list)


class VolunteerStatus(BaseModel):
    is_active: bool


class VolunteerEvents(BaseModel):
    event_ids: list[str]


# ---------------------------------------------------------------------------
# Overview
# ---------------------------------------------------------------------------
@router.get("")
def overview(
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    """Volunteer roster and today's gate numbers."""
    date = qr_service.today()
    return {
        "date": date,
        "volunteers": [v.model_dump() for v in qr_service.get_all_volunteers(store)],
        "today": qr_service.get_attendance_stats(qr_service.get_attendance_by_date(store, date)),
    }


# ---------------------------------------------------------------------------
# Volunteers
# ---------------------------------------------------------------------------
@router.get("/volunteers")
def list_volunteers(
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return [v.model_dump() for v in qr_service.get_all_volunteers(store)]


@router.post("/volunteers")
def add_volunteer(
    body: VolunteerCreate,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    profile = lookup_by_synapse_id(store, body.synapse_id.strip().upper())
    if profile is None:
        raise HTTPException(404, "User not found")
    return unwrap(qr_service.add_volunteer(
        store, profile, assigned_events=body.assigned_events,
        created_by=admin.uid, actor_id=admin.uid,
    ))


@router.put("/volunteers/{volunteer_id}/status")
def set_volunteer_status(
    volunteer_id: str,
    body: VolunteerStatus,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        qr_service.update_volunteer_status(store, volunteer_id, body.is_active, actor_id=admin.uid),
        not_found="Volunteer not found",
    )


@router.put("/volunteers/{volunteer_id}/events")
def set_volunteer_events(
    volunteer_id: str,
    body: VolunteerEvents,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        qr_service.update_volunteer_events(store, volunteer_id, body.event_ids, actor_id=admin.uid),
        not_found="Volunteer not found",
    )


@router.delete("/volunteers/{volunteer_id}")
def remove_volunteer(
    volunteer_id: str,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(qr_service.remove_volunteer(store, volunteer_id, actor_id=admin.uid),
                  not_found="Volunteer not found")


# ---------------------------------------------------------------------------
# Attendance
# ---------------------------------------------------------------------------
def attendance_filter(
    date: str | None = None,
    volunteer: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    search: str = "",
    registration_id: str | None = None,
    registration_type: Literal["daypass", "competition", "event"] | None = None,
    offline_only: bool = False,
    sort_by: Literal["date", "display_name", "scanned_at"] | None = None,
    sort_order: Literal["asc", "desc"] = "asc",
) -> AttendanceFilter:
    """``date`` is shorthand for a one-day range; ``volunteer`` is the
    scanning volunteer's Synapse ID."""
    return AttendanceFilter(
        date_from=date or date_from,
        date_to=date or date_to,
        scanned_by=volunteer,
        search=search,
        registration_id=registration_id,
        registration_type=registration_type,
        offline_only=offline_only,
        sort_by=sort_by,
        sort_order=sort_order,
    )


def _attendance(store: DocumentStore, criteria: AttendanceFilter):
    if criteria.date_from and criteria.date_from == criteria.date_to:
        found = qr_service.get_attendance_by_date(store, criteria.date_from)
    elif criteria.scanned_by:
        found = qr_service.get_attendance_by_volunteer(store, criteria.scanned_by)
    else:
        found = qr_service.get_all_attendance(store)
    return apply_filters(found, criteria)


@router.get("/attendance")
def list_attendance(
    criteria: AttendanceFilter = Depends(attendance_filter),
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return [a.model_dump() for a in _attendance(store, criteria)]


@router.get("/attendance/stats")
def attendance_stats(
    criteria: AttendanceFilter = Depends(attendance_filter),
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return qr_service.get_attendance_stats(_attendance(store, criteria))


@router.get("/attendance/insights")
def attendance_insights(
    criteria: AttendanceFilter = Depends(attendance_filter),
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    """Peak hours, top volunteers, repeat attendees and anomalies."""
    return generate_insights(_attendance(store, criteria))


@router.get("/attendance/export.csv")
def export_attendance(
    criteria: AttendanceFilter = Depends(attendance_filter),
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    body = qr_service.export_attendance_csv(_attendance(store, criteria))
    return csv_response(body, "attendance")


@router.delete("/attendance/{attendance_id}")
def delete_attendance(
    attendance_id: str,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(qr_service.delete_attendance(store, attendance_id, actor_id=admin.uid),
                  not_found="Attendance record not found")


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------
@router.get("/users/{synapse_id}")
def lookup_user(
    synapse_id: str,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    """Profile and registrations behind a Synapse ID, for manual check-in."""
    profile = lookup_by_synapse_id(store, synapse_id.strip().upper())
    if profile is None:
        raise HTTPException(404, "User not found")
    held = get_all_user_registrations(store, profile.uid)
    day_pass = held["day_pass"]
    return {
        "profile": profile.model_dump(),
        "day_pass": day_pass.model_dump() if day_pass is not None else None,
        "competitions": held["competitions"],
        "events": held["events"],
        "attended_today": qr_service.has_attendance_on(store, profile.uid, qr_service.today()),
    }
