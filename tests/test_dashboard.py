"""
tests/test_dashboard.py — User Dashboard
==========================================
"""

from __future__ import annotations

DAY_PASS = {"phone": "9876543210", "government_id_last4": "12AB", "selected_days": [1]}


def _application():
    from test_applications import _form

    return _form().model_dump()


class TestOverview:
    def test_signed_in_without_profile_needs_signup(self, client):
        from conftest import auth

        body = client.get("/api/user-dashboard", headers=auth("u1")).json()
        assert body == {"profile": None, "needs_signup": True}

    def test_fresh_profile(self, client, store):
        from conftest import auth, make_user

        make_user(store, "u1")
        body = client.get("/api/user-dashboard", headers=auth("u1")).json()
        assert body["needs_signup"] is False
        assert body["profile"]["synapse_id"] == "SYN-ASH-0001"
        assert body["is_admin"] is False
        assert body["is_volunteer"] is False
        assert body["application"] is None
        assert body["day_pass"] is None
        assert body["competitions"] == [] and body["events"] == []


class TestApplication:
    def test_submit_withdraw_reapply(self, client, store):
        from conftest import auth, make_user

        make_user(store, "u1")
        headers = auth("u1")
        assert client.post("/api/user-dashboard/application", headers=headers,
                           json=_application()).status_code == 200
        assert client.post("/api/user-dashboard/application", headers=headers,
                           json=_application()).status_code == 400

        assert client.delete("/api/user-dashboard/application", headers=headers).status_code == 200
        withdrawn = client.get("/api/user-dashboard", headers=headers).json()["application"]
        assert withdrawn["is_deleted"] is True
        assert client.delete("/api/user-dashboard/application", headers=headers).status_code == 404

        resp = client.post("/api/user-dashboard/application/reapply", headers=headers,
                           json=_application())
        assert resp.status_code == 200
        current = client.get("/api/user-dashboard", headers=headers).json()["application"]
        assert current["is_deleted"] is False
        assert current["status"] == "pending"

    def test_closed_recruitments(self, client, store):
        from conftest import auth, make_user

        from synapse.services.settings_service import update_page_visibility

        make_user(store, "u1")
        assert update_page_visibility(store, {"recruitments": False}).success
        resp = client.post("/api/user-dashboard/application", headers=auth("u1"), json=_application())
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Recruitments are closed"

    def test_signup_comes_first(self, client):
        from conftest import auth

        resp = client.post("/api/user-dashboard/application", headers=auth("u1"), json=_application())
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Complete signup first"


class TestDayPass:
    def test_register_and_add_days(self, client, store):
        from conftest import auth, make_user

        make_user(store, "u1")
        headers = auth("u1")
        resp = client.post("/api/user-dashboard/day-pass", headers=headers, json=DAY_PASS)
        assert resp.status_code == 200
        first_total = resp.json()["total_amount"]

        resp = client.post("/api/user-dashboard/day-pass/days", headers=headers, json={"days": [2]})
        assert resp.status_code == 200
        assert resp.json()["selected_days"] == [1, 2]
        assert resp.json()["total_amount"] >= first_total

        day_pass = client.get("/api/user-dashboard", headers=headers).json()["day_pass"]
        assert day_pass["selected_days"] == [1, 2]

    def test_second_registration_is_400(self, client, store):
        from conftest import auth, make_user

        make_user(store, "u1")
        headers = auth("u1")
        client.post("/api/user-dashboard/day-pass", headers=headers, json=DAY_PASS)
        assert client.post("/api/user-dashboard/day-pass", headers=headers,
                           json=DAY_PASS).status_code == 400

    def test_bad_phone_is_422(self, client, store):
        from conftest import auth, make_user

        make_user(store, "u1")
        resp = client.post("/api/user-dashboard/day-pass", headers=auth("u1"),
                           json={**DAY_PASS, "phone": "123"})
        assert resp.status_code == 422

    def test_adding_days_without_a_pass(self, client, store):
        from conftest import auth, make_user

        make_user(store, "u1")
        resp = client.post("/api/user-dashboard/day-pass/days", headers=auth("u1"), json={"days": [2]})
        assert resp.status_code == 400


class TestRegistrations:
    def test_unknown_competition(self, client, store):
        from conftest import auth, make_user

        make_user(store, "u1")
        resp = client.post("/api/user-dashboard/competitions/ghost/register", headers=auth("u1"),
                           json={"team_name": "Bolts", "team_members": [{"name": "Asha"}]})
        assert resp.status_code == 404

    def test_event_registration_shows_on_dashboard(self, client, store):
        from conftest import auth, make_user

        from synapse.services.event_service import create_event

        event_id = create_event(store, {"name": "DJ Night", "price": 0}).id
        make_user(store, "u1")
        headers = auth("u1")
        resp = client.post(f"/api/user-dashboard/events/{event_id}/register", headers=headers,
                           json={"name": "Asha Test", "email": "asha@example.com"})
        assert resp.status_code == 200
        events = client.get("/api/user-dashboard", headers=headers).json()["events"]
        assert [e["name"] for e in events] == ["DJ Night"]


class TestQR:
    def test_no_registrations_is_404(self, client, store):
        from conftest import auth, make_user

        make_user(store, "u1")
        assert client.get("/api/user-dashboard/qr", headers=auth("u1")).status_code == 404

    def test_payload_and_png(self, client, store):
        from conftest import auth, make_user

        from synapse.services.qr_service import decode_qr_payload

        make_user(store, "u1")
        headers = auth("u1")
        client.post("/api/user-dashboard/day-pass", headers=headers, json=DAY_PASS)

        qr = client.get("/api/user-dashboard/qr", headers=headers).json()["qr"]
        payload = decode_qr_payload(qr)
        assert payload.synapse_id == "SYN-ASH-0001"
        assert payload.government_id_last4 == "12AB"
        assert [r.id for r in payload.registrations] == ["day_1"]

        png = client.get("/api/user-dashboard/qr.png", headers=headers)
        assert png.status_code == 200
        assert png.headers["content-type"] == "image/png"
        assert png.content.startswith(b"\x89PNG")
