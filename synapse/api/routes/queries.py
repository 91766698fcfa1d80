"""
synapse.api.routes.queries — Contact query inbox
==================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from synapse.api.deps import get_store, unwrap
from synapse.api.rate_limit import rate_limited
from synapse.constants import MANAGE_QUERIES, MANAGEMENT_ROUTES
from synapse.database.store import DocumentStore
from synapse.schemas import AdminProfile, QueryStatus
from synapse.services.query_service import (
    delete_query,
    get_all_queries,
    get_query,
    get_query_counts,
    update_query_status,
)

ROUTE = MANAGEMENT_ROUTES[MANAGE_QUERIES]["path"]
router = APIRouter(prefix=ROUTE, tags=["queries"])
guard = rate_limited(MANAGE_QUERIES, ROUTE)


class StatusUpdate(BaseModel):
    status: QueryStatus
    notes: str | None = None


@router.get("")
def list_queries(
    status: QueryStatus | None = None,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    queries = get_all_queries(store)
    if status is not None:
        queries = [q for q in queries if q.status == status]
    return [q.model_dump() for q in queries]


@router.get("/counts")
def counts(
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return get_query_counts(store)


@router.get("/{query_id}")
def get_one(
    query_id: str,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    query = get_query(store, query_id)
    if query is None:
        raise HTTPException(404, "Query not found")
    return query.model_dump()


@router.put("/{query_id}/status")
def set_status(
    query_id: str,
    body: StatusUpdate,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(
        update_query_status(store, query_id, body.status, admin.uid, body.notes,
                            actor_id=admin.uid),
        not_found="Query not found",
    )


@router.delete("/{query_id}")
def remove(
    query_id: str,
    admin: AdminProfile = Depends(guard),
    store: DocumentStore = Depends(get_store),
):
    return unwrap(delete_query(store, query_id, actor_id=admin.uid), not_found="Query not found")
