"""
synapse.api.routes.dashboard — Signed-in attendee endpoints
==============================================================

The user dashboard: profile, recruitment application, day pass,
competition and event registrations, and the unified entry QR.  Every
route redirects to login when there is no live session.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, Field

from synapse.api.deps import CurrentUser, get_store, require_signed_in, unwrap
from synapse.constants import DASHBOARD_ROUTE
from synapse.database.store import DocumentStore
from synapse.schemas import (
    ApplicationForm,
    DayPassForm,
    EventRegistrationForm,
    RegistrationForm,
    UserProfile,
)
from synapse.services.application_service import (
    delete_own_application,
    get_application_by_synapse_id,
    reapply,
    submit_application,
)
from synapse.services.competition_service import get_competition
from synapse.services.day_pass_registration_service import (
    add_days_to_registration,
    create_day_pass_registration,
    get_all_user_registrations,
)
from synapse.services.event_registration_service import create_event_registration
from synapse.services.event_service import get_event
from synapse.services.qr_service import build_unified_qr, is_active_volunteer, render_qr_png
from synapse.services.registration_service import create_registration
from synapse.services.settings_service import is_page_visible
from synapse.services.user_service import get_user_or_admin_document

router = APIRouter(prefix="/user-dashboard", tags=["dashboard"])

signed_in = require_signed_in(DASHBOARD_ROUTE)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class AddDays(BaseModel):
    days: list[int] = Field(min_length=1)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _profile(store: DocumentStore, user: CurrentUser) -> UserProfile:
    profile, _ = get_user_or_admin_document(store, user.uid)
    if profile is None:
        raise HTTPException(404, "Complete signup first")
    return profile


def _require_recruitments_open(store: DocumentStore) -> None:
    if not is_page_visible(store, "recruitments"):
        raise HTTPException(404, "Recruitments are closed")


# ---------------------------------------------------------------------------
# Overview
# ---------------------------------------------------------------------------
@router.get("")
def overview(
    user: CurrentUser = Depends(signed_in),
    store: DocumentStore = Depends(get_store),
):
    profile, is_admin = get_user_or_admin_document(store, user.uid)
    if profile is None:
        return {"profile": None, "needs_signup": True}

    application = get_application_by_synapse_id(store, profile.synapse_id)
    held = get_all_user_registrations(store, user.uid)
    day_pass = held["day_pass"]
    return {
        "profile": profile.model_dump(),
        "needs_signup": False,
        "is_admin": is_admin,
        "is_volunteer": is_active_volunteer(store, user.uid),
        "application": application.model_dump() if application is not None else None,
        "day_pass": day_pass.model_dump() if day_pass is not None else None,
        "competitions": held["competitions"],
        "events": held["events"],
    }


# ---------------------------------------------------------------------------
# Recruitment application
# ---------------------------------------------------------------------------
@router.post("/application")
def apply(
    form: ApplicationForm,
    user: CurrentUser = Depends(signed_in),
    store: DocumentStore = Depends(get_store),
):
    _require_recruitments_open(store)
    profile = _profile(store, user)
    return unwrap(submit_application(store, profile.synapse_id, form))


@router.delete("/application")
def withdraw(
    user: CurrentUser = Depends(signed_in),
    store: DocumentStore = Depends(get_store),
):
    """Withdraw the caller's current application (kept, marked deleted)."""
    profile = _profile(store, user)
    current = get_application_by_synapse_id(store, profile.synapse_id)
    if current is None or current.is_deleted:
        raise HTTPException(404, "Application not found")
    return unwrap(delete_own_application(store, current.id, profile.synapse_id))


@router.post("/application/reapply")
def reapply_application(
    form: ApplicationForm,
    user: CurrentUser = Depends(signed_in),
    store: DocumentStore = Depends(get_store),
):
    _require_recruitments_open(store)
    profile = _profile(store, user)
    return unwrap(reapply(store, profile.synapse_id, form))


# ---------------------------------------------------------------------------
# Day pass
# ---------------------------------------------------------------------------
@router.post("/day-pass")
def register_day_pass(
    form: DayPassForm,
    user: CurrentUser = Depends(signed_in),
    store: DocumentStore = Depends(get_store),
):
    profile = _profile(store, user)
    return unwrap(create_day_pass_registration(store, profile, form))


@router.post("/day-pass/days")
def add_day_pass_days(
    body: AddDays,
    user: CurrentUser = Depends(signed_in),
    store: DocumentStore = Depends(get_store),
):
    _profile(store, user)
    return unwrap(add_days_to_registration(store, user.uid, body.days))


# ---------------------------------------------------------------------------
# Competition & event registration
# ---------------------------------------------------------------------------
@router.post("/competitions/{competition_id}/register")
def register_competition(
    competition_id: str,
    form: RegistrationForm,
    user: CurrentUser = Depends(signed_in),
    store: DocumentStore = Depends(get_store),
):
    profile = _profile(store, user)
    competition = get_competition(store, competition_id)
    if competition is None:
        raise HTTPException(404, "Competition not found")
    return unwrap(create_registration(
        store, competition, form, user_id=user.uid, synapse_id=profile.synapse_id,
    ))


@router.post("/events/{event_id}/register")
def register_event(
    event_id: str,
    form: EventRegistrationForm,
    user: CurrentUser = Depends(signed_in),
    store: DocumentStore = Depends(get_store),
):
    profile = _profile(store, user)
    event = get_event(store, event_id)
    if event is None:
        raise HTTPException(404, "Event not found")
    return unwrap(create_event_registration(
        store, event, form, user_id=user.uid, synapse_id=profile.synapse_id,
    ))


# ---------------------------------------------------------------------------
# Unified QR
# ---------------------------------------------------------------------------
def _qr_string(store: DocumentStore, user: CurrentUser) -> str:
    qr = build_unified_qr(store, _profile(store, user))
    if qr is None:
        raise HTTPException(404, "No registrations yet")
    return qr


@router.get("/qr")
def qr_payload(
    user: CurrentUser = Depends(signed_in),
    store: DocumentStore = Depends(get_store),
):
    return {"qr": _qr_string(store, user)}


@router.get("/qr.png")
def qr_image(
    user: CurrentUser = Depends(signed_in),
    store: DocumentStore = Depends(get_store),
):
    png = render_qr_png(_qr_string(store, user))
    return Response(content=png, media_type="image/png",
                    headers={"Cache-Control": "no-store"})
