"""
tests/test_store.py — Document Store
======================================
Collection/document reads and writes over the ``documents`` table,
server timestamps, and transactional rollback.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from synapse.database.store import SERVER_TIMESTAMP, DocumentNotFoundError, DocumentStore


class TestReadsAndWrites:
    def test_add_then_get(self, store):
        doc_id = store.add("things", {"name": "lamp"})
        snap = store.get("things", doc_id)
        assert snap is not None
        assert snap.id == doc_id
        assert snap.data == {"name": "lamp"}

    def test_get_missing_returns_none(self, store):
        assert store.get("things", "nope") is None

    def test_collections_are_separate(self, store):
        store.set("a", "same", {"v": 1})
        store.set("b", "same", {"v": 2})
        assert store.get("a", "same").data["v"] == 1
        assert store.get("b", "same").data["v"] == 2

    def test_set_overwrites_and_merge_merges(self, store):
        store.set("things", "x", {"a": 1, "b": 2})
        store.set("things", "x", {"a": 5}, merge=True)
        assert store.get("things", "x").data == {"a": 5, "b": 2}
        store.set("things", "x", {"c": 3})
        assert store.get("things", "x").data == {"c": 3}

    def test_update_missing_raises(self, store):
        with pytest.raises(DocumentNotFoundError):
            store.update("things", "ghost", {"a": 1})

    def test_delete_reports_whether_anything_went(self, store):
        store.set("things", "x", {})
        assert store.delete("things", "x") is True
        assert store.delete("things", "x") is False

    def test_server_timestamp_is_resolved(self, store):
        doc_id = store.add("things", {"at": SERVER_TIMESTAMP, "nested": [{"at": SERVER_TIMESTAMP}]})
        data = store.get("things", doc_id).data
        assert isinstance(data["at"], str) and data["at"].startswith("20")
        assert data["nested"][0]["at"] == data["at"]

    def test_snapshot_is_a_copy(self, store):
        store.set("things", "x", {"tags": ["a"]})
        store.get("things", "x").data["tags"].append("b")
        assert store.get("things", "x").data["tags"] == ["a"]


class TestQueries:
    @pytest.fixture(autouse=True)
    def _seed(self, store):
        store.set("people", "p1", {"team": "red", "score": 3})
        store.set("people", "p2", {"team": "blue", "score": 1})
        store.set("people", "p3", {"team": "red", "score": 2})
        store.set("people", "p4", {"team": "red"})

    def test_where_filters_on_equality(self, store):
        ids = {s.id for s in store.list("people", where={"team": "red"})}
        assert ids == {"p1", "p3", "p4"}

    def test_order_by_puts_missing_last(self, store):
        ids = [s.id for s in store.list("people", order_by="score")]
        assert ids == ["p2", "p3", "p1", "p4"]

    def test_descending_still_puts_missing_last(self, store):
        ids = [s.id for s in store.list("people", order_by="score", descending=True)]
        assert ids == ["p1", "p3", "p2", "p4"]

    def test_limit_and_count(self, store):
        assert len(store.list("people", order_by="score", limit=2)) == 2
        assert store.count("people", where={"team": "red"}) == 3


class TestTransactions:
    def test_commits_on_success(self, store):
        with store.transaction() as tx:
            tx.set("things", "a", {"v": 1})
            tx.set("things", "b", {"v": 2})
        assert store.count("things") == 2

    def test_rolls_back_on_error(self, store):
        store.set("things", "a", {"v": 1})
        with pytest.raises(ZeroDivisionError):
            with store.transaction() as tx:
                tx.update("things", "a", {"v": 99})
                tx.set("things", "b", {"v": 2})
                1 / 0
        assert store.get("things", "a").data["v"] == 1
        assert store.get("things", "b") is None

    def test_nested_transaction_joins_outer(self, store):
        with store.transaction() as tx:
            with tx.transaction() as inner:
                assert inner is tx
                inner.set("things", "a", {})
        assert store.get("things", "a") is not None


class TestCollectionLocks:
    @staticmethod
    def _postgres_tx():
        engine = MagicMock()
        engine.dialect.name = "postgresql"
        session = MagicMock()
        return DocumentStore(engine, session=session), session

    def test_lock_needs_a_transaction(self, store):
        with pytest.raises(RuntimeError):
            store.lock("things")

    def test_sqlite_transaction_with_locks_still_commits(self, store):
        with store.transaction("things", "others") as tx:
            tx.lock("things")
            tx.set("things", "a", {"v": 1})
        assert store.get("things", "a").data == {"v": 1}

    def test_postgres_takes_one_advisory_lock_per_collection_in_name_order(self):
        tx, session = self._postgres_tx()
        tx.lock("sponsors", "sponsor_categories", "sponsors")
        calls = session.execute.call_args_list
        assert [c.args[1] for c in calls] == [{"name": "sponsor_categories"}, {"name": "sponsors"}]
        assert all("pg_advisory_xact_lock" in str(c.args[0]) for c in calls)

    def test_nested_transaction_locks_what_it_names(self):
        tx, session = self._postgres_tx()
        with tx.transaction("competitions") as inner:
            assert inner is tx
        assert session.execute.call_args.args[1] == {"name": "competitions"}

    def test_no_collections_no_lock(self):
        tx, session = self._postgres_tx()
        with tx.transaction():
            pass
        session.execute.assert_not_called()
