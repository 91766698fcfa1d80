"""
synapse.api.routes.recruitments — Recruitment application review
==================================================================
"""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from synapse.api.deps import csv_response, get_store, unwrap
from synapse.api.rate_limit import rate_limited
from synapse.constants import MANAGE_RECRUITMENTS, MANAGEMENT_ROUTES
from synapse.database.store import DocumentStore
from synapse.schemas import AdminProfile, ApplicationStatus
from synapse.services.application_service import (
    delete_application,
    export_applications_csv,
    get_all_applications,
    get_application,
    get_application_counts,
    update_application_status,
)

ROUTE = MANAGEMENT_ROUTES[MANAGE_RECRUITMENTS]["path"]
router = APIRouter(prefix=ROUTE, tags=["recruitments"])
guard = rate_limited(MANAGE_RECRUITMENTS, ROUTE)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class StatusUpdate(BaseModel):
    status: ApplicationStatus
    remark: str = ""


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------
@router.get("")
def list_applications(
    status: Literal["all", "pending", "reviewed", "accepted", "rejected"] = "all",
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    applications = get_all_applications(store)
    if status != "all":
        applications = [a for a in applications if a.status == status]
    return [a.model_dump() for a in applications]


@router.get("/counts")
def counts(
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return get_application_counts(store)


@router.get("/export.csv")
def export_csv(
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return csv_response(export_applications_csv(get_all_applications(store)),
                        "recruitment_applications")


@router.get("/{application_id}")
def get_one(
    application_id: str,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    application = get_application(store, application_id)
    if application is None or application.is_deleted:
        raise HTTPException(404, "Application not found")
    return application.model_dump()


@router.put("/{application_id}/status")
def set_status(
    application_id: str,
    body: StatusUpdate,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        update_application_status(
            store, application_id, body.status, admin.synapse_id, body.remark,
            actor_id=admin.uid,
        ),
        not_found="Application not found",
    )


@router.delete("/{application_id}")
def remove(
    application_id: str,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(delete_application(store, application_id, actor_id=admin.uid),
                  not_found="Application not found")
