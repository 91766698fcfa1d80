"""
synapse.database.store — Schemaless Document Store
===================================================

A small collection/document API over the ``documents`` table.

Every festival entity is a JSON document inside a named collection.  The
store knows nothing about entity shapes; services decode what comes back
into :mod:`synapse.schemas` models.  Queries are deliberately limited to
equality filters and a single order-by key, evaluated in Python after
loading the collection; collections here are small (hundreds of rows).

Single calls run in their own short transaction.  Multi-document
invariants (appending at the end of an ordering, reordering, renumbering
after a delete, the sponsor-category delete guard, one-per-user checks) go
through :meth:`DocumentStore.transaction`, which binds a second store to one
session so every read and write commits together.  Naming the collections
locks them for the whole transaction::

    with store.transaction("competitions") as tx:
        for index, doc_id in enumerate(ids, start=1):
            tx.update("competitions", doc_id, {"order": index})
"""

from __future__ import annotations

import copy
import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Engine, delete, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from synapse.database.models import Document

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """Raised when the underlying database rejects a read or write."""


class DocumentNotFoundError(StoreError):
    """Raised by :meth:`DocumentStore.update` when the target is missing."""


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


#: Placeholder replaced by the current UTC time (ISO-8601) on write.
SERVER_TIMESTAMP: Any = _ServerTimestamp()


def utc_now_iso() -> str:
    """Current UTC time in the fixed-width ISO format used for timestamps."""
    return datetime.now(UTC).isoformat(timespec="microseconds")


def _resolve_timestamps(value: Any, now: str) -> Any:
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, dict):
        return {k: _resolve_timestamps(v, now) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_timestamps(v, now) for v in value]
    return value


@dataclass(frozen=True, slots=True)
class Snapshot:
    """An immutable read of one document."""

    id: str
    data: dict = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def to_dict(self) -> dict:
        """Flatten into ``{"id": ..., **data}`` for schema validation."""
        return {**self.data, "id": self.id}


class DocumentStore:
    """Collection/document access backed by SQLAlchemy.

    Parameters
    ----------
    engine:
        Engine used to open sessions.
    session:
        When given, every call joins this session instead of opening its
        own, and nothing is committed until the owning transaction exits.
    """

    def __init__(self, engine: Engine, *, session: Session | None = None) -> None:
        self.engine = engine
        self._session = session

    # ------------------------------------------------------------------
    # Session plumbing
    # ------------------------------------------------------------------
    @contextmanager
    def _scope(self) -> Iterator[Session]:
        if self._session is not None:
            try:
                yield self._session
            except SQLAlchemyError as exc:
                raise StoreError(str(exc)) from exc
            return

        try:
            with Session(self.engine) as session:
                yield session
                session.commit()
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    @contextmanager
    def transaction(self, *collections: str) -> Iterator[DocumentStore]:
        """Yield a store bound to one session; commit on success.

        Each of *collections* is locked (see :meth:`lock`) before the
        body runs.  Nested calls join the outer transaction.
        """
        if self._session is not None:
            self.lock(*collections)
            yield self
            return
        try:
            with Session(self.engine) as session:
                try:
                    tx = DocumentStore(self.engine, session=session)
                    tx.lock(*collections)
                    yield tx
                    session.commit()
                except Exception:
                    session.rollback()
                    raise
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    def lock(self, *collections: str) -> None:
        """Hold a write lock on each of *collections* until the transaction ends.

        Row locks from ``SELECT ... FOR UPDATE`` do not cover documents that
        do not exist yet, so an append (``max + 1``) or an "is it empty"
        guard takes a transaction-scoped advisory lock per collection on
        PostgreSQL.  Locks are taken in name order.  Other dialects skip the
        lock.
        """
        if not collections:
            return
        if self._session is None:
            raise RuntimeError("lock() must be called inside transaction()")
        if self.engine.dialect.name != "postgresql":
            return
        with self._scope() as session:
            for name in sorted(set(collections)):
                session.execute(
                    text("SELECT pg_advisory_xact_lock(hashtext(:name))"), {"name": name},
                )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get(self, collection: str, doc_id: str) -> Snapshot | None:
        """Fetch one document, or ``None`` when it does not exist."""
        with self._scope() as session:
            row = session.get(Document, (collection, doc_id))
            if row is None:
                return None
            return Snapshot(id=row.id, data=copy.deepcopy(row.data or {}))

    def list(
        self,
        collection: str,
        *,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Snapshot]:
        """Return documents of *collection* matching every ``where`` pair.

        Documents missing the *order_by* field sort last in either
        direction.
        """
        stmt = select(Document).where(Document.collection == collection)
        if self._session is not None:
            stmt = stmt.with_for_update()
        with self._scope() as session:
            rows = session.scalars(stmt.order_by(Document.created_at, Document.id)).all()
            snaps = [Snapshot(id=r.id, data=copy.deepcopy(r.data or {})) for r in rows]

        if where:
            snaps = [
                s for s in snaps
                if all(s.data.get(k) == v for k, v in where.items())
            ]

        if order_by:
            present = [s for s in snaps if s.data.get(order_by) is not None]
            missing = [s for s in snaps if s.data.get(order_by) is None]
            present.sort(key=lambda s: s.data[order_by], reverse=descending)
            snaps = present + missing

        if limit is not None:
            snaps = snaps[:limit]
        return snaps

    def count(self, collection: str, *, where: dict[str, Any] | None = None) -> int:
        return len(self.list(collection, where=where))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def add(self, collection: str, data: dict) -> str:
        """Insert *data* under a generated id and return the id."""
        doc_id = uuid.uuid4().hex
        self.set(collection, doc_id, data)
        return doc_id

    def set(self, collection: str, doc_id: str, data: dict, *, merge: bool = False) -> None:
        """Create or overwrite a document (or merge into it with *merge*)."""
        resolved = _resolve_timestamps(data, utc_now_iso())
        with self._scope() as session:
            row = session.get(Document, (collection, doc_id))
            if row is None:
                session.add(Document(collection=collection, id=doc_id, data=resolved))
            elif merge:
                row.data = {**(row.data or {}), **resolved}
            else:
                row.data = resolved
            session.flush()

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        """Merge *fields* into an existing document.

        Raises
        ------
        DocumentNotFoundError
            If the document does not exist.
        """
        resolved = _resolve_timestamps(fields, utc_now_iso())
        with self._scope() as session:
            row = session.get(Document, (collection, doc_id))
            if row is None:
                raise DocumentNotFoundError(f"{collection}/{doc_id} does not exist")
            row.data = {**(row.data or {}), **resolved}
            session.flush()

    def add_row(self, row: Any) -> None:
        """Insert an ORM row (an audit entry) alongside document writes."""
        with self._scope() as session:
            session.add(row)
            session.flush()

    def delete(self, collection: str, doc_id: str) -> bool:
        """Remove a document.  Returns ``False`` when nothing was deleted."""
        with self._scope() as session:
            result = session.execute(
                delete(Document).where(
                    Document.collection == collection,
                    Document.id == doc_id,
                )
            )
            return bool(result.rowcount)
