"""
tests/test_queries.py — Contact Queries & Page Visibility
===========================================================
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from synapse.schemas import ContactForm
from synapse.services.query_service import (
    get_all_queries,
    get_query,
    get_query_counts,
    stacked_message,
    submit_contact_query,
    update_query_status,
)


def _contact(**overrides) -> ContactForm:
    fields = {
        "name": "Asha",
        "email": "asha@example.com",
        "subject": "Parking",
        "message": "Is there parking on day 2?",
    }
    fields.update(overrides)
    return ContactForm(**fields)


class TestStacking:
    def test_separator_format(self):
        at = datetime(2026, 2, 1, 10, 30, tzinfo=UTC)
        body = stacked_message("first", _contact(subject="Food", message="Veg options?"), at=at)
        assert body.startswith("first\n\n--- New Query (")
        assert body.endswith("---\nSubject: Food\nVeg options?")

    def test_repeat_sender_stacks_onto_unread(self, store):
        first = submit_contact_query(store, _contact())
        second = submit_contact_query(store, _contact(subject="Food", message="Veg options?"))
        assert first.extra["stacked"] is False
        assert second.extra["stacked"] is True
        assert second.id == first.id

        query = get_query(store, first.id)
        assert query.query_count == 2
        assert query.subject == "Food"
        assert "Is there parking on day 2?" in query.message
        assert "--- New Query (" in query.message
        assert len(get_all_queries(store)) == 1

    def test_read_query_starts_a_new_thread(self, store):
        first = submit_contact_query(store, _contact())
        assert update_query_status(store, first.id, "read").success
        second = submit_contact_query(store, _contact())
        assert second.extra["stacked"] is False
        assert second.id != first.id

    def test_other_senders_do_not_stack(self, store):
        submit_contact_query(store, _contact())
        other = submit_contact_query(store, _contact(email="ravi@example.com"))
        assert other.extra["stacked"] is False


class TestStatus:
    def test_replied_records_who(self, store):
        query_id = submit_contact_query(store, _contact()).id
        assert update_query_status(store, query_id, "replied", "admin-1", "Sent map").success
        query = get_query(store, query_id)
        assert query.replied_by == "admin-1"
        assert query.replied_at is not None
        assert query.notes == "Sent map"

    def test_read_sets_read_at(self, store):
        query_id = submit_contact_query(store, _contact()).id
        update_query_status(store, query_id, "read")
        assert get_query(store, query_id).read_at is not None

    def test_invalid_status_and_missing_query(self, store):
        query_id = submit_contact_query(store, _contact()).id
        assert update_query_status(store, query_id, "spam").error == "Invalid status 'spam'"
        assert update_query_status(store, "ghost", "read").error == "Query not found"

    def test_counts(self, store):
        first = submit_contact_query(store, _contact()).id
        submit_contact_query(store, _contact(email="ravi@example.com"))
        update_query_status(store, first, "archived")
        counts = get_query_counts(store)
        assert counts == {"unread": 1, "read": 0, "replied": 0, "archived": 1, "total": 2}


class TestQueriesApi:
    def test_contact_then_manage(self, client, store):
        from conftest import auth, make_admin

        resp = client.post("/api/contact", json=_contact().model_dump())
        assert resp.status_code == 200
        query_id = resp.json()["id"]
        assert client.post("/api/contact", json=_contact().model_dump()).json()["stacked"] is True

        make_admin(store, "admin-1", ["manage_queries"])
        headers = auth("admin-1")
        unread = client.get("/api/manage-queries", params={"status": "unread"}, headers=headers).json()
        assert [q["id"] for q in unread] == [query_id]

        resp = client.put(f"/api/manage-queries/{query_id}/status", headers=headers,
                          json={"status": "replied"})
        assert resp.status_code == 200
        assert client.get(f"/api/manage-queries/{query_id}", headers=headers).json()["replied_by"] == "admin-1"

        assert client.delete(f"/api/manage-queries/{query_id}", headers=headers).status_code == 200
        assert client.delete(f"/api/manage-queries/{query_id}", headers=headers).status_code == 404

    def test_contact_validation(self, client):
        resp = client.post("/api/contact", json={"name": "Asha", "email": "a@b.c", "subject": "", "message": "x"})
        assert resp.status_code == 422


class TestPageVisibility:
    def test_all_pages_visible_by_default(self, client):
        assert client.get("/api/page-visibility").json() == {
            "recruitments": True, "events": True, "competitions": True, "sponsors": True,
        }

    @pytest.mark.parametrize("page, path", [
        ("events", "/api/events"),
        ("events", "/api/day-passes"),
        ("competitions", "/api/competitions"),
        ("sponsors", "/api/sponsors"),
        ("recruitments", "/api/join/teams"),
    ])
    def test_hidden_page_is_404(self, client, store, page, path):
        from synapse.services.settings_service import update_page_visibility

        assert client.get(path).status_code == 200
        update_page_visibility(store, {page: False})
        resp = client.get(path)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Page not available"

    def test_admin_toggles_own_page(self, client, store):
        from conftest import auth, make_admin

        make_admin(store, "admin-1", ["manage_sponsors"])
        headers = auth("admin-1")
        resp = client.put("/api/admin-panel/visibility", headers=headers, json={"sponsors": False})
        assert resp.status_code == 200
        assert client.get("/api/page-visibility").json()["sponsors"] is False

    def test_admin_cannot_toggle_other_pages(self, client, store):
        from conftest import auth, make_admin

        make_admin(store, "admin-1", ["manage_sponsors"])
        resp = client.put("/api/admin-panel/visibility", headers=auth("admin-1"),
                          json={"sponsors": False, "events": False})
        assert resp.status_code == 403
        assert resp.json()["detail"] == "Not allowed to change: events"
        assert client.get("/api/page-visibility").json()["events"] is True
