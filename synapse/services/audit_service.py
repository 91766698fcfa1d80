"""
synapse.services.audit_service — Audited Admin Mutations
=========================================================

Every admin write follows the same pattern:
  1. Open a store transaction
  2. Read the "before" snapshot
  3. Apply the change
  4. Write an ``admin_log`` row with before/after JSON
  5. Commit

When ``actor_id`` is ``None`` (seeding, user-initiated writes) the change
is applied without an audit row.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from synapse.database.models import AdminLog
from synapse.database.store import DocumentStore
from synapse.services.csv_export import format_timestamp, to_csv

logger = logging.getLogger(__name__)


def log_admin_action(
    store: DocumentStore,
    *,
    actor_id: str,
    action_type: str,
    collection: str,
    target_id: str | None,
    before: dict | None,
    after: dict | None,
    reason: str | None = None,
) -> None:
    """Insert a row into admin_log within the store's current transaction."""
    store.add_row(AdminLog(
        actor_id=actor_id,
        action_type=action_type,
        target_collection=collection,
        target_id=target_id,
        before_snapshot=before,
        after_snapshot=after,
        reason=reason,
    ))


def audited_set(
    store: DocumentStore,
    collection: str,
    doc_id: str,
    data: dict,
    *,
    actor_id: str | None,
    merge: bool = True,
) -> None:
    with store.transaction() as tx:
        before = tx.get(collection, doc_id)
        tx.set(collection, doc_id, data, merge=merge)
        if actor_id is not None:
            after = tx.get(collection, doc_id)
            log_admin_action(
                tx, actor_id=actor_id,
                action_type="UPDATE" if before else "CREATE",
                collection=collection, target_id=doc_id,
                before=before.data if before else None,
                after=after.data if after else None,
            )


def audited_update(
    store: DocumentStore,
    collection: str,
    doc_id: str,
    fields: dict,
    *,
    actor_id: str | None,
) -> None:
    """Partial update.  Raises ``DocumentNotFoundError`` if *doc_id* is gone."""
    with store.transaction() as tx:
        before = tx.get(collection, doc_id)
        tx.update(collection, doc_id, fields)
        if actor_id is not None:
            after = tx.get(collection, doc_id)
            log_admin_action(
                tx, actor_id=actor_id, action_type="UPDATE", collection=collection,
                target_id=doc_id,
                before=before.data if before else None,
                after=after.data if after else None,
            )


def audited_delete(
    store: DocumentStore,
    collection: str,
    doc_id: str,
    *,
    actor_id: str | None,
) -> bool:
    with store.transaction() as tx:
        before = tx.get(collection, doc_id)
        deleted = tx.delete(collection, doc_id)
        if deleted and actor_id is not None:
            log_admin_action(
                tx, actor_id=actor_id, action_type="DELETE", collection=collection,
                target_id=doc_id, before=before.data if before else None, after=None,
            )
        return deleted


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
AUDIT_CSV_HEADERS = [
    "Timestamp", "Action", "Collection", "Target ID", "Performed By", "Before", "After",
]


def _filtered(
    stmt,
    *,
    collection: str | None = None,
    actor_id: str | None = None,
    action_type: str | None = None,
    target_id: str | None = None,
):
    if collection:
        stmt = stmt.where(AdminLog.target_collection == collection)
    if actor_id:
        stmt = stmt.where(AdminLog.actor_id == actor_id)
    if action_type:
        stmt = stmt.where(AdminLog.action_type == action_type.upper())
    if target_id:
        stmt = stmt.where(AdminLog.target_id == target_id)
    return stmt


def get_recent_actions(
    engine,
    *,
    limit: int = 50,
    offset: int = 0,
    **filters: str | None,
) -> list[dict[str, Any]]:
    """Most recent audit rows, newest first, as plain dicts.

    Keyword filters (all optional, combined with AND): ``collection``,
    ``actor_id``, ``action_type`` and ``target_id``.
    """
    stmt = _filtered(select(AdminLog), **filters)
    with Session(engine) as session:
        rows = session.scalars(
            stmt.order_by(AdminLog.timestamp.desc(), AdminLog.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()
        return [
            {
                "id": r.id,
                "actor_id": r.actor_id,
                "action_type": r.action_type,
                "target_collection": r.target_collection,
                "target_id": r.target_id,
                "before": r.before_snapshot,
                "after": r.after_snapshot,
                "reason": r.reason,
                "timestamp": r.timestamp.isoformat() if r.timestamp else None,
            }
            for r in rows
        ]


def count_actions(engine, **filters: str | None) -> int:
    stmt = _filtered(select(func.count()).select_from(AdminLog), **filters)
    with Session(engine) as session:
        return session.scalar(stmt) or 0


def get_audit_stats(entries: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "total": len(entries),
        "by_action": dict(Counter(e["action_type"] for e in entries)),
        "by_collection": dict(Counter(e["target_collection"] for e in entries)),
        "unique_actors": len({e["actor_id"] for e in entries}),
    }


def export_audit_csv(entries: list[dict[str, Any]]) -> str:
    def snapshot(value: dict | None) -> str:
        return json.dumps(value, sort_keys=True, ensure_ascii=False) if value is not None else ""

    return to_csv(AUDIT_CSV_HEADERS, (
        [
            format_timestamp(e["timestamp"]), e["action_type"], e["target_collection"],
            e["target_id"], e["actor_id"], snapshot(e["before"]), snapshot(e["after"]),
        ]
        for e in entries
    ))
