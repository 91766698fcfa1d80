"""
tests/test_session_store.py — Sessions & Auth Events
======================================================
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from synapse.services.session_service import (
    AuthEventType,
    SessionStore,
    configure_session_store,
    get_session_store,
    shutdown_session_store,
)


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2026, 2, 1, 10, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return _Clock()


@pytest.fixture
def sessions_at(db_engine, clock):
    return SessionStore(engine=db_engine, timeout_minutes=30, remember_me_days=7, clock=clock)


class TestLifecycle:
    def test_start_then_resolve(self, sessions_at):
        session = sessions_at.start("u1", email="u1@example.com")
        resolved = sessions_at.resolve(session.id)
        assert resolved.uid == "u1"
        assert resolved.email == "u1@example.com"

    def test_unknown_session(self, sessions_at):
        assert sessions_at.resolve("nope") is None

    def test_idle_timeout(self, sessions_at, clock):
        session = sessions_at.start("u1")
        clock.advance(minutes=29)
        assert sessions_at.resolve(session.id) is not None
        clock.advance(minutes=31)
        assert sessions_at.resolve(session.id) is None

    def test_activity_extends_the_session(self, sessions_at, clock):
        session = sessions_at.start("u1")
        for _ in range(4):
            clock.advance(minutes=20)
            assert sessions_at.resolve(session.id) is not None

    def test_remember_me_lasts_days(self, sessions_at, clock):
        session = sessions_at.start("u1", remember_me=True)
        clock.advance(days=6)
        assert sessions_at.resolve(session.id) is not None
        clock.advance(days=8)
        assert sessions_at.resolve(session.id) is None

    def test_end(self, sessions_at):
        session = sessions_at.start("u1")
        assert sessions_at.end(session.id) is True
        assert sessions_at.resolve(session.id) is None
        assert sessions_at.end(session.id) is False


class TestNotifications:
    def test_events_in_order(self, sessions_at, clock):
        seen = []
        sessions_at.subscribe(lambda e: seen.append((e.type, e.uid)))

        first = sessions_at.start("u1")
        sessions_at.end(first.id)
        second = sessions_at.start("u2")
        clock.advance(hours=1)
        sessions_at.resolve(second.id)

        assert seen == [
            (AuthEventType.SIGNED_IN, "u1"),
            (AuthEventType.SIGNED_OUT, "u1"),
            (AuthEventType.SIGNED_IN, "u2"),
            (AuthEventType.EXPIRED, "u2"),
        ]

    def test_expiry_is_announced_once(self, sessions_at, clock):
        seen = []
        sessions_at.subscribe(seen.append)
        session = sessions_at.start("u1")
        clock.advance(hours=1)
        sessions_at.resolve(session.id)
        sessions_at.resolve(session.id)
        assert [e.type for e in seen].count(AuthEventType.EXPIRED) == 1

    def test_unsubscribe(self, sessions_at):
        seen = []
        unsubscribe = sessions_at.subscribe(seen.append)
        unsubscribe()
        unsubscribe()
        sessions_at.start("u1")
        assert seen == []

    def test_failing_listener_does_not_block_others(self, sessions_at):
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        sessions_at.subscribe(broken)
        sessions_at.subscribe(seen.append)
        sessions_at.start("u1")
        assert len(seen) == 1


class TestSingleton:
    def test_unconfigured_store_raises(self):
        shutdown_session_store()
        with pytest.raises(RuntimeError):
            get_session_store()

    def test_configure_replaces_previous(self, db_engine):
        first = configure_session_store(engine=db_engine)
        second = configure_session_store(engine=db_engine, timeout_minutes=5)
        assert get_session_store() is second
        assert second is not first
        assert second.timeout == timedelta(minutes=5)
        shutdown_session_store()
