"""
synapse.api.routes.sponsors — Sponsors, promotions & the sidebar promo
========================================================================

Sponsor categories, sponsors and promotions are all kept in dense
0-based order; sponsors are ordered within their own category.  A
category still holding sponsors cannot be deleted.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from synapse.api.deps import get_store, unwrap
from synapse.api.rate_limit import rate_limited
from synapse.constants import MANAGE_SPONSORS, MANAGEMENT_ROUTES
from synapse.database.store import DocumentStore
from synapse.schemas import AdminProfile, DisplayMode
from synapse.services import sponsor_service as sponsors

ROUTE = MANAGEMENT_ROUTES[MANAGE_SPONSORS]["path"]
router = APIRouter(prefix=ROUTE, tags=["sponsors"])
guard = rate_limited(MANAGE_SPONSORS, ROUTE)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class CategoryName(BaseModel):
    name: str = Field(min_length=1, max_length=80)


class Reorder(BaseModel):
    ids: list[str]


class SponsorCreate(BaseModel):
    title: str = Field(min_length=1, max_length=120)
    link: str = ""
    category_id: str
    images: list[str] = Field(default_factory=list)


class SponsorUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=120)
    link: str | None = None
    category_id: str | None = None
    images: list[str] | None = None


class PromotionCreate(BaseModel):
    title: str = ""
    link: str = ""
    images: list[str] = Field(default_factory=list)
    display_mode: DisplayMode = "fill"


class PromotionUpdate(BaseModel):
    title: str | None = None
    link: str | None = None
    images: list[str] | None = None
    display_mode: DisplayMode | None = None


class PromotionalSpaceUpdate(BaseModel):
    link: str = ""
    images: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Sponsor categories
# ---------------------------------------------------------------------------
@router.get("/categories")
def list_categories(
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return [c.model_dump() for c in sponsors.get_all_categories(store)]


@router.post("/categories")
def create_category(
    body: CategoryName,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(sponsors.create_category(store, body.name, actor_id=admin.uid))


@router.put("/categories/reorder")
def reorder_categories(
    body: Reorder,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(sponsors.reorder_categories(store, body.ids, actor_id=admin.uid))


@router.put("/categories/{category_id}")
def rename_category(
    category_id: str,
    body: CategoryName,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        sponsors.update_category_name(store, category_id, body.name, actor_id=admin.uid),
        not_found="Category not found",
    )


@router.delete("/categories/{category_id}")
def delete_category(
    category_id: str,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    """Refused with 400 while the category still has sponsors."""
    return unwrap(
        sponsors.delete_category(store, category_id, actor_id=admin.uid),
        not_found="Category not found",
    )


@router.put("/categories/{category_id}/sponsors/reorder")
def reorder_sponsors(
    category_id: str,
    body: Reorder,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(sponsors.reorder_sponsors(store, category_id, body.ids, actor_id=admin.uid))


# ---------------------------------------------------------------------------
# Sponsors
# ---------------------------------------------------------------------------
@router.get("")
def list_sponsors(
    category_id: str | None = None,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    if category_id:
        found = sponsors.get_sponsors_by_category(store, category_id)
    else:
        found = sponsors.get_all_sponsors(store)
    return [s.model_dump() for s in found]


@router.post("")
def create_sponsor(
    body: SponsorCreate,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(sponsors.create_sponsor(store, body.model_dump(), actor_id=admin.uid))


# ---------------------------------------------------------------------------
# Promotions
# ---------------------------------------------------------------------------
@router.get("/promotions")
def list_promotions(
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return [p.model_dump() for p in sponsors.get_all_promotions(store)]


@router.post("/promotions")
def create_promotion(
    body: PromotionCreate,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(sponsors.create_promotion(
        store, body.model_dump(), created_by=admin.uid, actor_id=admin.uid,
    ))


@router.put("/promotions/reorder")
def reorder_promotions(
    body: Reorder,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(sponsors.reorder_promotions(store, body.ids, actor_id=admin.uid))


@router.put("/promotions/{promotion_id}")
def update_promotion(
    promotion_id: str,
    body: PromotionUpdate,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        sponsors.update_promotion(
            store, promotion_id, body.model_dump(exclude_unset=True), actor_id=admin.uid,
        ),
        not_found="Promotion not found",
    )


@router.delete("/promotions/{promotion_id}")
def delete_promotion(
    promotion_id: str,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(sponsors.delete_promotion(store, promotion_id, actor_id=admin.uid),
                  not_found="Promotion not found")


# ---------------------------------------------------------------------------
# Sidebar promotional space
# ---------------------------------------------------------------------------
@router.get("/promotional-space")
def get_promotional_space(
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    space = sponsors.get_promotional_space(store)
    return space.model_dump() if space is not None else None


@router.put("/promotional-space")
def update_promotional_space(
    body: PromotionalSpaceUpdate,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(sponsors.update_promotional_space(
        store, link=body.link, images=body.images, updated_by=admin.uid, actor_id=admin.uid,
    ))


# ---------------------------------------------------------------------------
# Single sponsor
# ---------------------------------------------------------------------------
@router.put("/{sponsor_id}")
def update_sponsor(
    sponsor_id: str,
    body: SponsorUpdate,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        sponsors.update_sponsor(
            store, sponsor_id, body.model_dump(exclude_unset=True), actor_id=admin.uid,
        ),
        not_found="Sponsor not found",
    )


@router.delete("/{sponsor_id}")
def delete_sponsor(
    sponsor_id: str,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(sponsors.delete_sponsor(store, sponsor_id, actor_id=admin.uid),
                  not_found="Sponsor not found")
