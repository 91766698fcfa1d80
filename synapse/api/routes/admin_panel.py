"""
synapse.api.routes.admin_panel — Admin landing page
=====================================================

Any admin may open the panel.  What it shows is cut down to the admin's
permissions: management links, and the visibility toggles for the pages
those permissions own.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile

from synapse.api.deps import (
    csv_response,
    get_config,
    get_engine,
    get_store,
    require_permission,
    unwrap,
)
from synapse.api.rate_limit import rate_limited
from synapse.config import SynapseConfig
from synapse.constants import ADMIN_PANEL_ROUTE, MANAGEMENT_ROUTES, VISIBILITY_PERMISSIONS
from synapse.database.store import DocumentStore
from synapse.schemas import AdminProfile
from synapse.services.audit_service import (
    count_actions,
    export_audit_csv,
    get_audit_stats,
    get_recent_actions,
)
from synapse.services.image_service import upload_images
from synapse.services.settings_service import get_page_visibility, update_page_visibility

router = APIRouter(prefix="/admin-panel", tags=["admin"])

view_guard = require_permission(None, ADMIN_PANEL_ROUTE)
write_guard = rate_limited(None, ADMIN_PANEL_ROUTE)


def _toggleable_pages(admin: AdminProfile) -> list[str]:
    return [page for perm, page in VISIBILITY_PERMISSIONS.items() if perm in admin.permissions]


# ---------------------------------------------------------------------------
# Panel
# ---------------------------------------------------------------------------
@router.get("")
def panel(
    admin: AdminProfile = Depends(view_guard),
    store: DocumentStore = Depends(get_store),
):
    visibility = get_page_visibility(store)
    return {
        "admin": admin.model_dump(),
        "links": [
            {"permission": perm, **route}
            for perm, route in MANAGEMENT_ROUTES.items()
            if perm in admin.permissions
        ],
        "visibility": {page: getattr(visibility, page) for page in _toggleable_pages(admin)},
    }


@router.put("/visibility")
def set_visibility(
    updates: dict[str, bool],
    admin: AdminProfile = Depends(write_guard),
    store: DocumentStore = Depends(get_store),
):
    """Toggle public pages.  Every key must belong to one of the admin's permissions."""
    allowed = set(_toggleable_pages(admin))
    refused = sorted(set(updates) - allowed)
    if refused:
        raise HTTPException(403, f"Not allowed to change: {', '.join(refused)}")
    return unwrap(update_page_visibility(store, updates, actor_id=admin.uid))


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------
@router.post("/images")
async def upload(
    files: list[UploadFile],
    admin: AdminProfile = Depends(write_guard),
    cfg: SynapseConfig = Depends(get_config),
):
    """Compress uploads into data URLs for competition / sponsor / pass images."""
    batch = [
        (f.filename or "upload.png", await f.read(), f.content_type)
        for f in files
    ]
    return await upload_images(
        batch, max_dimension=cfg.image_max_dimension, quality=cfg.image_quality,
    )


# ---------------------------------------------------------------------------
# Audit Log
# ---------------------------------------------------------------------------
def audit_filters(
    collection: str | None = None,
    actor_id: str | None = None,
    action_type: str | None = None,
    target_id: str | None = None,
) -> dict[str, str | None]:
    return {
        "collection": collection,
        "actor_id": actor_id,
        "action_type": action_type,
        "target_id": target_id,
    }


@router.get("/audit")
def audit_log(
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=100),
    filters: dict = Depends(audit_filters),
    admin: AdminProfile = Depends(view_guard),
    engine=Depends(get_engine),
):
    """Paginated admin audit log, optionally narrowed to one collection,
    actor, action or target document."""
    return {
        "total": count_actions(engine, **filters),
        "page": page,
        "page_size": page_size,
        "entries": get_recent_actions(
            engine, limit=page_size, offset=(page - 1) * page_size, **filters,
        ),
    }


@router.get("/audit/stats")
def audit_stats(
    limit: int = Query(500, ge=1, le=5000),
    filters: dict = Depends(audit_filters),
    admin: AdminProfile = Depends(view_guard),
    engine=Depends(get_engine),
):
    return get_audit_stats(get_recent_actions(engine, limit=limit, **filters))


@router.get("/audit/export.csv")
def export_audit(
    limit: int = Query(1000, ge=1, le=10000),
    filters: dict = Depends(audit_filters),
    admin: AdminProfile = Depends(view_guard),
    engine=Depends(get_engine),
):
    entries = get_recent_actions(engine, limit=limit, **filters)
    return csv_response(export_audit_csv(entries), "audit_log")
