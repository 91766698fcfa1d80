"""
synapse.api.routes.events — Events, event registrations & day passes
======================================================================

One management screen covers three things:

* events and event categories (dense 1-based order);
* registrations for individual events, with attendance ticks;
* the three day passes and the day-pass registrations, including the
  per-day head count against each pass's advisory capacity.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from synapse.api.deps import csv_response, get_store, unwrap
from synapse.api.rate_limit import rate_limited
from synapse.constants import (
    CARD_COLORS,
    EVENT_ICONS,
    FESTIVAL_DAYS,
    IMAGE_DISPLAY_MODES,
    MANAGE_EVENTS,
    MANAGEMENT_ROUTES,
)
from synapse.database.store import DocumentStore
from synapse.schemas import (
    AdminProfile,
    DayPass,
    DisplayMode,
    PaymentStatus,
    RegistrationStatus,
)
from synapse.services import day_pass_registration_service as day_pass_regs
from synapse.services import event_registration_service as event_regs
from synapse.services import event_service as events
from synapse.services.day_pass_service import (
    get_day_passes,
    initialize_default_day_passes,
    save_day_pass,
)

ROUTE = MANAGEMENT_ROUTES[MANAGE_EVENTS]["path"]
router = APIRouter(prefix=ROUTE, tags=["events"])
guard = rate_limited(MANAGE_EVENTS, ROUTE)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class EventCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: str = ""
    date: str = ""
    time: str = ""
    venue: str = ""
    price: float = 0
    capacity: int | None = None
    icon: str = ""
    color: str = ""
    images: list[str] = Field(default_factory=list)
    image_display_mode: DisplayMode = "fill"
    highlights: list[str] = Field(default_factory=list)
    rules: str = ""
    is_active: bool = True


class EventUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    description: str | None = None
    date: str | None = None
    time: str | None = None
    venue: str | None = None
    price: float | None = None
    capacity: int | None = None
    icon: str | None = None
    color: str | None = None
    images: list[str] | None = None
    image_display_mode: DisplayMode | None = None
    highlights: list[str] | None = None
    rules: str | None = None
    is_active: bool | None = None


class CategoryName(BaseModel):
    name: str = Field(min_length=1, max_length=80)


class Reorder(BaseModel):
    ids: list[str]


class StatusUpdate(BaseModel):
    status: RegistrationStatus


class AttendanceUpdate(BaseModel):
    attended: bool


class DayPassUpdate(BaseModel):
    images: list[str] = Field(default_factory=list)
    price: float = Field(default=0, ge=0)
    events: list[str] = Field(default_factory=list)
    capacity: int = Field(default=0, ge=0)
    is_active: bool = True


class PaymentUpdate(BaseModel):
    payment_status: PaymentStatus
    transaction_id: str | None = None


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------
@router.get("")
def list_events(
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return [e.model_dump() for e in events.get_all_events(store)]


@router.get("/options")
def card_options(admin: AdminProfile = Depends(guard)):
    return {
        "icons": EVENT_ICONS,
        "colors": CARD_COLORS,
        "image_display_modes": list(IMAGE_DISPLAY_MODES),
    }


@router.post("")
def create(
    body: EventCreate,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(events.create_event(store, body.model_dump(), actor_id=admin.uid))


@router.put("/reorder")
def reorder(
    body: Reorder,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(events.reorder_events(store, body.ids, actor_id=admin.uid))


# ---------------------------------------------------------------------------
# Event categories
# ---------------------------------------------------------------------------
@router.get("/categories")
def list_categories(
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return [c.model_dump() for c in events.get_event_categories(store)]


@router.post("/categories")
def create_category(
    body: CategoryName,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(events.create_event_category(store, body.name, actor_id=admin.uid))


@router.put("/categories/reorder")
def reorder_categories(
    body: Reorder,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(events.reorder_event_categories(store, body.ids, actor_id=admin.uid))


@router.put("/categories/{category_id}")
def rename_category(
    category_id: str,
    body: CategoryName,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        events.update_event_category(store, category_id, body.name, actor_id=admin.uid),
        not_found="Category not found",
    )


@router.delete("/categories/{category_id}")
def delete_category(
    category_id: str,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        events.delete_event_category(store, category_id, actor_id=admin.uid),
        not_found="Category not found",
    )


# ---------------------------------------------------------------------------
# Event registrations
# ---------------------------------------------------------------------------
def _event_registrations(store: DocumentStore, event_id: str | None):
    if event_id:
        return event_regs.get_event_registrations_by_event(store, event_id)
    return event_regs.get_all_event_registrations(store)


@router.get("/registrations")
def list_registrations(
    event_id: str | None = None,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return [r.model_dump() for r in _event_registrations(store, event_id)]


@router.get("/registrations/stats")
def registration_stats(
    event_id: str | None = None,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return event_regs.get_event_registration_stats(_event_registrations(store, event_id))


@router.get("/registrations/export.csv")
def export_registrations(
    event_id: str | None = None,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    body = event_regs.export_event_registrations_csv(_event_registrations(store, event_id))
    return csv_response(body, "event_registrations")


@router.put("/registrations/{registration_id}/status")
def set_registration_status(
    registration_id: str,
    body: StatusUpdate,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        event_regs.update_event_registration_status(
            store, registration_id, body.status, actor_id=admin.uid,
        ),
        not_found="Registration not found",
    )


@router.put("/registrations/{registration_id}/attendance")
def set_attendance(
    registration_id: str,
    body: AttendanceUpdate,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        event_regs.mark_event_attendance(store, registration_id, body.attended, actor_id=admin.uid),
        not_found="Registration not found",
    )


@router.delete("/registrations/{registration_id}")
def delete_registration(
    registration_id: str,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        event_regs.delete_event_registration(store, registration_id, actor_id=admin.uid),
        not_found="Registration not found",
    )


# ---------------------------------------------------------------------------
# Day passes
# ---------------------------------------------------------------------------
@router.get("/day-passes")
def list_day_passes(
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return [p.model_dump() for p in get_day_passes(store)]


@router.post("/day-passes/defaults")
def create_default_day_passes(
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    """Write the default passes; a no-op once any pass exists."""
    return {"success": True, "created": initialize_default_day_passes(store, actor_id=admin.uid)}


@router.put("/day-passes/{day}")
def update_day_pass(
    day: int,
    body: DayPassUpdate,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    if day not in FESTIVAL_DAYS:
        raise HTTPException(404, "Day pass not found")
    return unwrap(save_day_pass(store, DayPass(day=day, **body.model_dump()), actor_id=admin.uid))


# ---------------------------------------------------------------------------
# Day-pass registrations
# ---------------------------------------------------------------------------
@router.get("/day-pass-registrations")
def list_day_pass_registrations(
    day: int | None = None,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    found = day_pass_regs.get_all_day_pass_registrations(store)
    if day is not None:
        found = [r for r in found if day in r.selected_days]
    return [r.model_dump() for r in found]


@router.get("/day-pass-registrations/stats")
def day_pass_stats(
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return day_pass_regs.get_day_pass_registration_stats(
        day_pass_regs.get_all_day_pass_registrations(store)
    )


@router.get("/day-pass-registrations/counts")
def day_pass_counts(
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return day_pass_regs.get_registration_counts_per_day(store)


@router.get("/day-pass-registrations/capacity")
def day_pass_capacity(
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return day_pass_regs.get_capacity_report(store)


@router.get("/day-pass-registrations/export.csv")
def export_day_pass_registrations(
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    body = day_pass_regs.export_day_pass_registrations_csv(
        day_pass_regs.get_all_day_pass_registrations(store)
    )
    return csv_response(body, "day_pass_registrations")


@router.put("/day-pass-registrations/{registration_id}/status")
def set_day_pass_status(
    registration_id: str,
    body: StatusUpdate,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        day_pass_regs.update_day_pass_status(store, registration_id, body.status,
                                             actor_id=admin.uid),
        not_found="Registration not found",
    )


@router.put("/day-pass-registrations/{registration_id}/payment")
def set_day_pass_payment(
    registration_id: str,
    body: PaymentUpdate,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        day_pass_regs.update_day_pass_payment_status(
            store, registration_id, body.payment_status, body.transaction_id,
            actor_id=admin.uid,
        ),
        not_found="Registration not found",
    )


@router.delete("/day-pass-registrations/{registration_id}")
def delete_day_pass_registration(
    registration_id: str,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        day_pass_regs.delete_day_pass_registration(store, registration_id, actor_id=admin.uid),
        not_found="Registration not found",
    )


# ---------------------------------------------------------------------------
# Single event
# ---------------------------------------------------------------------------
@router.get("/{event_id}")
def get_one(
    event_id: str,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    event = events.get_event(store, event_id)
    if event is None:
        raise HTTPException(404, "Event not found")
    return event.model_dump()


@router.put("/{event_id}")
def update(
    event_id: str,
    body: EventUpdate,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        events.update_event(store, event_id, body.model_dump(exclude_unset=True), actor_id=admin.uid),
        not_found="Event not found",
    )


@router.delete("/{event_id}")
def delete(
    event_id: str,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(events.delete_event(store, event_id, actor_id=admin.uid),
                  not_found="Event not found")
