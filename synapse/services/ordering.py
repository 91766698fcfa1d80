"""
synapse.services.ordering — Dense Manual Ordering
==================================================

Competitions, events, their categories, sponsor categories, sponsors
(per category) and promotions all carry a hand-maintained integer
``order``.  These helpers keep it dense and unique:

* :func:`next_order` — where a new member goes (``max + 1``, or *start*
  for an empty collection).
* :func:`reorder` — renumber to match a full ordering supplied by an admin.
* :func:`compact` — close the gap left by a delete.

Call :func:`reorder` and :func:`compact` on a transactional store.  The
audited wrappers below open ``store.transaction(collection)``, which locks
the collection so concurrent appends cannot both take ``max + 1``.
"""

from __future__ import annotations

import logging
from typing import Any

from synapse.database.store import DocumentStore
from synapse.services.audit_service import log_admin_action

logger = logging.getLogger(__name__)


def next_order(
    store: DocumentStore,
    collection: str,
    *,
    start: int,
    where: dict[str, Any] | None = None,
) -> int:
    orders = [
        s.data["order"] for s in store.list(collection, where=where)
        if isinstance(s.data.get("order"), int)
    ]
    return max(orders) + 1 if orders else start


def reorder(
    tx: DocumentStore,
    collection: str,
    ordered_ids: list[str],
    *,
    start: int,
    where: dict[str, Any] | None = None,
) -> None:
    """Set ``order = start + index`` for every id in *ordered_ids*.

    Raises
    ------
    ValueError
        If *ordered_ids* is not exactly the current membership (every
        member once, nothing else).  A partial list would leave two
        documents sharing an order value.
    """
    current = {s.id for s in tx.list(collection, where=where)}
    if len(set(ordered_ids)) != len(ordered_ids) or set(ordered_ids) != current:
        raise ValueError("Ordered IDs must list every item exactly once")

    for index, doc_id in enumerate(ordered_ids):
        tx.update(collection, doc_id, {"order": start + index})
    logger.info("Reordered %d %s", len(ordered_ids), collection)


def compact(
    tx: DocumentStore,
    collection: str,
    *,
    start: int,
    where: dict[str, Any] | None = None,
) -> None:
    """Renumber the remaining members ``start, start+1, …`` by current order."""
    members = tx.list(collection, where=where, order_by="order")
    for index, snap in enumerate(members):
        if snap.data.get("order") != start + index:
            tx.update(collection, snap.id, {"order": start + index})


# ---------------------------------------------------------------------------
# Audited create / delete / reorder for ordered collections
# ---------------------------------------------------------------------------
def create_ordered(
    store: DocumentStore,
    collection: str,
    data: dict,
    *,
    start: int,
    actor_id: str | None,
    scope_key: str | None = None,
) -> str:
    """Append a document at the end of its (optionally scoped) ordering.

    *scope_key* names a field whose value partitions the ordering, e.g.
    sponsors are ordered within their ``category_id``.
    """
    where = {scope_key: data[scope_key]} if scope_key else None
    with store.transaction(collection) as tx:
        doc = {**data, "order": next_order(tx, collection, start=start, where=where)}
        doc_id = tx.add(collection, doc)
        if actor_id is not None:
            log_admin_action(
                tx, actor_id=actor_id, action_type="CREATE", collection=collection,
                target_id=doc_id, before=None, after=tx.get(collection, doc_id).data,
            )
    return doc_id


def delete_ordered(
    store: DocumentStore,
    collection: str,
    doc_id: str,
    *,
    start: int,
    actor_id: str | None,
    scope_key: str | None = None,
) -> bool:
    """Delete a document and close the gap it leaves in the ordering."""
    with store.transaction(collection) as tx:
        before = tx.get(collection, doc_id)
        if before is None:
            return False
        tx.delete(collection, doc_id)
        where = {scope_key: before.data.get(scope_key)} if scope_key else None
        compact(tx, collection, start=start, where=where)
        if actor_id is not None:
            log_admin_action(
                tx, actor_id=actor_id, action_type="DELETE", collection=collection,
                target_id=doc_id, before=before.data, after=None,
            )
    return True


def reorder_audited(
    store: DocumentStore,
    collection: str,
    ordered_ids: list[str],
    *,
    start: int,
    actor_id: str | None,
    where: dict[str, Any] | None = None,
) -> None:
    """Transactional :func:`reorder` with one REORDER audit row."""
    with store.transaction(collection) as tx:
        before = {s.id: s.data.get("order") for s in tx.list(collection, where=where)}
        reorder(tx, collection, ordered_ids, start=start, where=where)
        if actor_id is not None:
            log_admin_action(
                tx, actor_id=actor_id, action_type="REORDER", collection=collection,
                target_id=None, before={"order": before},
                after={"order": {doc_id: start + i for i, doc_id in enumerate(ordered_ids)}},
            )
