"""
synapse.api.routes.competitions — Competition management
=========================================================

Competitions, their categories (both kept in dense 1-based order) and
the team registrations submitted against them.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from synapse.api.deps import csv_response, get_store, unwrap
from synapse.api.rate_limit import rate_limited
from synapse.constants import (
    CARD_COLORS,
    COMPETITION_ICONS,
    IMAGE_DISPLAY_MODES,
    MANAGE_COMPETITIONS,
    MANAGEMENT_ROUTES,
)
from synapse.database.store import DocumentStore
from synapse.schemas import AdminProfile, DisplayMode, RegistrationStatus
from synapse.services import competition_service as competitions
from synapse.services import registration_service as registrations

ROUTE = MANAGEMENT_ROUTES[MANAGE_COMPETITIONS]["path"]
router = APIRouter(prefix=ROUTE, tags=["competitions"])
guard = rate_limited(MANAGE_COMPETITIONS, ROUTE)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class CompetitionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    category: str = ""
    description: str = ""
    team_size: str = ""
    entry_fee: float = Field(default=0, ge=0)
    prize_pool: str = ""
    icon: str = ""
    color: str = ""
    images: list[str] = Field(default_factory=list)
    image_display_mode: DisplayMode = "fill"
    image_position: str = "center"
    rules: str = ""
    venue: str = ""
    date: str = ""
    time: str = ""
    registration_link: str = ""
    is_active: bool = True


class CompetitionUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    category: str | None = None
    description: str | None = None
    team_size: str | None = None
    entry_fee: float | None = Field(default=None, ge=0)
    prize_pool: str | None = None
    icon: str | None = None
    color: str | None = None
    images: list[str] | None = None
    image_display_mode: DisplayMode | None = None
    image_position: str | None = None
    rules: str | None = None
    venue: str | None = None
    date: str | None = None
    time: str | None = None
    registration_link: str | None = None
    is_active: bool | None = None


class CategoryName(BaseModel):
    name: str = Field(min_length=1, max_length=80)


class Reorder(BaseModel):
    ids: list[str]


class RegistrationStatusUpdate(BaseModel):
    status: RegistrationStatus
    notes: str | None = None


# ---------------------------------------------------------------------------
# Competitions
# ---------------------------------------------------------------------------
@router.get("")
def list_competitions(
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    """Every competition, active or not, in display order."""
    return [c.model_dump() for c in competitions.get_all_competitions(store)]


@router.get("/options")
def card_options(admin: AdminProfile = Depends(guard)):
    return {
        "icons": COMPETITION_ICONS,
        "colors": CARD_COLORS,
        "image_display_modes": list(IMAGE_DISPLAY_MODES),
    }


@router.post("")
def create(
    body: CompetitionCreate,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(competitions.create_competition(store, body.model_dump(), actor_id=admin.uid))


@router.put("/reorder")
def reorder(
    body: Reorder,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(competitions.reorder_competitions(store, body.ids, actor_id=admin.uid))


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------
@router.get("/categories")
def list_categories(
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return [c.model_dump() for c in competitions.get_competition_categories(store)]


@router.post("/categories")
def create_category(
    body: CategoryName,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(competitions.create_competition_category(store, body.name, actor_id=admin.uid))


@router.put("/categories/reorder")
def reorder_categories(
    body: Reorder,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(competitions.reorder_competition_categories(store, body.ids, actor_id=admin.uid))


@router.put("/categories/{category_id}")
def rename_category(
    category_id: str,
    body: CategoryName,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        competitions.update_competition_category(store, category_id, body.name, actor_id=admin.uid),
        not_found="Category not found",
    )


@router.delete("/categories/{category_id}")
def delete_category(
    category_id: str,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        competitions.delete_competition_category(store, category_id, actor_id=admin.uid),
        not_found="Category not found",
    )


# ---------------------------------------------------------------------------
# Registrations
# ---------------------------------------------------------------------------
@router.get("/registrations")
def list_registrations(
    competition_id: str | None = None,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    if competition_id:
        found = registrations.get_registrations_by_competition(store, competition_id)
    else:
        found = registrations.get_all_registrations(store)
    return [r.model_dump() for r in found]


@router.get("/registrations/stats")
def registration_stats(
    competition_id: str | None = None,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    if competition_id:
        found = registrations.get_registrations_by_competition(store, competition_id)
    else:
        found = registrations.get_all_registrations(store)
    return registrations.get_registration_stats(found)


@router.get("/registrations/export.csv")
def export_registrations(
    competition_id: str | None = None,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    if competition_id:
        found = registrations.get_registrations_by_competition(store, competition_id)
    else:
        found = registrations.get_all_registrations(store)
    return csv_response(registrations.export_registrations_csv(found), "competition_registrations")


@router.put("/registrations/{registration_id}/status")
def set_registration_status(
    registration_id: str,
    body: RegistrationStatusUpdate,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        registrations.update_registration_status(
            store, registration_id, body.status, body.notes, actor_id=admin.uid,
        ),
        not_found="Registration not found",
    )


@router.delete("/registrations/{registration_id}")
def delete_registration(
    registration_id: str,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        registrations.delete_registration(store, registration_id, actor_id=admin.uid),
        not_found="Registration not found",
    )


# ---------------------------------------------------------------------------
# Single competition
# ---------------------------------------------------------------------------
@router.get("/{competition_id}")
def get_one(
    competition_id: str,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    competition = competitions.get_competition(store, competition_id)
    if competition is None:
        raise HTTPException(404, "Competition not found")
    return competition.model_dump()


@router.put("/{competition_id}")
def update(
    competition_id: str,
    body: CompetitionUpdate,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        competitions.update_competition(
            store, competition_id, body.model_dump(exclude_unset=True), actor_id=admin.uid,
        ),
        not_found="Competition not found",
    )


@router.delete("/{competition_id}")
def delete(
    competition_id: str,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        competitions.delete_competition(store, competition_id, actor_id=admin.uid),
        not_found="Competition not found",
    )
