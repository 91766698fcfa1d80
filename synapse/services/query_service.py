"""
synapse.services.query_service — Contact Form Inbox
===================================================

A sender who writes again before anyone has read their first message
does not open a second query: the new message is appended to the unread
one (with a ``--- New Query (...) ---`` separator), the subject becomes
the latest one and ``query_count`` goes up.  That keeps repeat senders
to a single inbox row.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from synapse.constants import CONTACT_QUERIES, QUERY_STATUSES
from synapse.database.store import (
    SERVER_TIMESTAMP,
    DocumentNotFoundError,
    DocumentStore,
    StoreError,
)
from synapse.schemas import ContactForm, ContactQuery, decode_many, decode_one
from synapse.services.audit_service import audited_delete, audited_update
from synapse.services.results import ServiceResult

logger = logging.getLogger(__name__)


def stacked_message(existing: str, form: ContactForm, *, at: datetime | None = None) -> str:
    stamp = (at or datetime.now(UTC)).strftime("%Y-%m-%d %H:%M:%S UTC")
    return f"{existing}\n\n--- New Query ({stamp}) ---\nSubject: {form.subject}\n{form.message}"


def _unread_from(store: DocumentStore, email: str) -> ContactQuery | None:
    found = decode_many(
        ContactQuery,
        store.list(CONTACT_QUERIES, where={"email": email, "status": "unread"}, order_by="submitted_at"),
    )
    return found[0] if found else None


def submit_contact_query(store: DocumentStore, form: ContactForm) -> ServiceResult:
    try:
        with store.transaction(CONTACT_QUERIES) as tx:
            existing = _unread_from(tx, form.email)
            if existing is not None:
                tx.update(CONTACT_QUERIES, existing.id, {
                    "message": stacked_message(existing.message, form),
                    "subject": form.subject,
                    "query_count": existing.query_count + 1,
                    "submitted_at": SERVER_TIMESTAMP,
                })
                return ServiceResult.ok(existing.id, stacked=True)
            doc_id = tx.add(CONTACT_QUERIES, {
                **form.model_dump(),
                "status": "unread",
                "submitted_at": SERVER_TIMESTAMP,
                "query_count": 1,
            })
    except StoreError:
        logger.exception("Error submitting contact query from %s", form.email)
        return ServiceResult.fail("Failed to submit query")
    logger.info("Contact query %s received", doc_id)
    return ServiceResult.ok(doc_id, stacked=False)


def get_all_queries(store: DocumentStore) -> list[ContactQuery]:
    try:
        return decode_many(
            ContactQuery, store.list(CONTACT_QUERIES, order_by="submitted_at", descending=True),
        )
    except StoreError:
        logger.exception("Error fetching queries")
        return []


def get_query(store: DocumentStore, query_id: str) -> ContactQuery | None:
    try:
        return decode_one(ContactQuery, store.get(CONTACT_QUERIES, query_id))
    except StoreError:
        logger.exception("Error fetching query %s", query_id)
        return None


def get_query_counts(store: DocumentStore) -> dict[str, int]:
    queries = get_all_queries(store)
    counts = {status: sum(1 for q in queries if q.status == status) for status in QUERY_STATUSES}
    counts["total"] = len(queries)
    return counts


def update_query_status(
    store: DocumentStore,
    query_id: str,
    status: str,
    admin_uid: str | None = None,
    notes: str | None = None,
    *,
    actor_id: str | None = None,
) -> ServiceResult:
    if status not in QUERY_STATUSES:
        return ServiceResult.fail(f"Invalid status {status!r}")
    fields: dict = {"status": status}
    if status == "read":
        fields["read_at"] = SERVER_TIMESTAMP
    elif status == "replied":
        fields["replied_at"] = SERVER_TIMESTAMP
        if admin_uid:
            fields["replied_by"] = admin_uid
    if notes is not None:
        fields["notes"] = notes
    try:
        audited_update(store, CONTACT_QUERIES, query_id, fields, actor_id=actor_id)
    except DocumentNotFoundError:
        return ServiceResult.fail("Query not found")
    except StoreError:
        logger.exception("Error updating query %s", query_id)
        return ServiceResult.fail("Failed to update status")
    return ServiceResult.ok(query_id)


def delete_query(store: DocumentStore, query_id: str, *, actor_id: str | None = None) -> ServiceResult:
    try:
        if not audited_delete(store, CONTACT_QUERIES, query_id, actor_id=actor_id):
            return ServiceResult.fail("Query not found")
    except StoreError:
        logger.exception("Error deleting query %s", query_id)
        return ServiceResult.fail("Failed to delete query")
    return ServiceResult.ok(query_id)
