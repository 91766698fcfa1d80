"""
tests/test_rate_limit.py — Admin API Rate Limiting Tests
==========================================================
Admin mutation endpoints are rate-limited at 30/min per admin, returning
429 with a consistent error payload.
"""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from synapse.api.rate_limit import AdminRateLimiter
from synapse.database.models import AdminRateLimitEvent


# ---------------------------------------------------------------------------
# Unit tests for the AdminRateLimiter core (DB-backed)
# ---------------------------------------------------------------------------
class TestAdminRateLimiter:
    """The sliding-window limiter in isolation."""

    @pytest.fixture(autouse=True)
    def _limiter(self, db_engine):
        self.limiter = AdminRateLimiter(max_requests=5, window_seconds=60, engine=db_engine)
        self.engine = db_engine

    def test_allows_requests_within_limit(self):
        for _ in range(5):
            allowed, _ = self.limiter.check("admin-1")
            assert allowed
            self.limiter.record("admin-1")

    def test_blocks_after_limit_exceeded(self):
        limiter = AdminRateLimiter(max_requests=3, window_seconds=60, engine=self.engine)
        for _ in range(3):
            limiter.record("admin-1")

        allowed, state = limiter.check("admin-1")
        assert not allowed
        assert state.remaining == 0
        assert 0 < state.reset <= 61
        assert state.limit == 3

    def test_separate_admins_have_separate_limits(self):
        limiter = AdminRateLimiter(max_requests=2, window_seconds=60, engine=self.engine)
        limiter.record("admin-1")
        limiter.record("admin-1")

        assert not limiter.check("admin-1")[0]
        assert limiter.check("admin-2")[0]

    def test_remaining_count_decreases(self):
        assert self.limiter.check("admin-1")[1].remaining == 5
        assert self.limiter.record("admin-1").remaining == 4
        assert self.limiter.check("admin-1")[1].remaining == 4
        self.limiter.record("admin-1")
        assert self.limiter.check("admin-1")[1].remaining == 3

    def test_old_events_fall_out_of_the_window(self):
        from datetime import UTC, datetime, timedelta

        limiter = AdminRateLimiter(max_requests=2, window_seconds=60, engine=self.engine)
        stale = datetime.now(UTC) - timedelta(seconds=120)
        with Session(self.engine) as s:
            s.add_all([
                AdminRateLimitEvent(admin_id="admin-1", timestamp=stale),
                AdminRateLimitEvent(admin_id="admin-1", timestamp=stale),
            ])
            s.commit()

        allowed, state = limiter.check("admin-1")
        assert allowed
        assert state.remaining == 2

    def test_reset_clears_specific_admin(self):
        limiter = AdminRateLimiter(max_requests=2, window_seconds=60, engine=self.engine)
        limiter.record("admin-1")
        limiter.record("admin-1")
        limiter.record("admin-2")

        limiter.reset("admin-1")

        assert limiter.check("admin-1")[0]
        assert limiter.check("admin-2")[1].remaining == 1

    def test_reset_all(self):
        limiter = AdminRateLimiter(max_requests=2, window_seconds=60, engine=self.engine)
        limiter.record("admin-1")
        limiter.record("admin-2")

        limiter.reset()

        assert limiter.check("admin-1")[1].remaining == 2
        assert limiter.check("admin-2")[1].remaining == 2


# ---------------------------------------------------------------------------
# Integration tests with FastAPI TestClient
# ---------------------------------------------------------------------------
class TestRateLimitDependency:
    """The rate_limited() guard end-to-end."""

    @pytest.fixture
    def limited(self, client, store, db_engine):
        from conftest import make_admin

        from synapse.api.rate_limit import configure_rate_limiter

        make_admin(store, "admin-1", ["manage_queries"])
        make_admin(store, "admin-2", ["manage_queries"], first_name="Meera")
        return client, configure_rate_limiter(engine=db_engine, max_requests=3)

    def test_get_requests_not_rate_limited(self, limited):
        from conftest import auth

        client, _ = limited
        headers = auth("admin-1")
        for _ in range(5):
            assert client.get("/api/manage-queries", headers=headers).status_code == 200

    def test_mutations_are_counted(self, limited):
        from conftest import auth

        client, limiter = limited
        client.delete("/api/manage-queries/ghost", headers=auth("admin-1"))
        assert limiter.check("admin-1")[1].remaining == 2

    def test_returns_429_after_limit(self, limited):
        from conftest import auth

        client, limiter = limited
        for _ in range(3):
            limiter.record("admin-1")

        resp = client.delete("/api/manage-queries/ghost", headers=auth("admin-1"))
        assert resp.status_code == 429
        body = resp.json()
        assert body["detail"]["error"] == "rate_limit_exceeded"
        assert body["detail"]["retry_after"] > 0
        assert "Retry-After" in resp.headers

    def test_different_admins_have_separate_limits(self, limited):
        from conftest import auth

        client, limiter = limited
        for _ in range(3):
            limiter.record("admin-1")

        assert client.delete("/api/manage-queries/ghost", headers=auth("admin-1")).status_code == 429
        assert client.delete("/api/manage-queries/ghost", headers=auth("admin-2")).status_code == 404

    def test_unauthenticated_mutation_redirects_before_counting(self, limited):
        client, limiter = limited
        resp = client.delete("/api/manage-queries/ghost")
        assert resp.status_code == 303
        assert limiter.check("admin-1")[1].remaining == 3
