"""
synapse.services.session_service — Signed-in Sessions & Auth Events
====================================================================

One :class:`SessionStore` per process, configured at startup
(:func:`configure_session_store`) and torn down at shutdown.  It owns
three things:

1. **Session documents** in the ``sessions`` collection.  A session id is
   the ``jti`` claim of the bearer token, so a token is only honoured
   while its session document is live.
2. **Expiry.**  Sessions end after ``timeout_minutes`` of inactivity, or
   ``remember_me_days`` when the user ticked "remember me".  Activity is
   recorded at most once a minute.
3. **Auth-state notifications.**  Anything interested in sign-in,
   sign-out or expiry subscribes a callback::

       unsubscribe = get_session_store().subscribe(on_auth_event)
"""

from __future__ import annotations

import enum
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import Engine

from synapse.constants import SESSIONS
from synapse.database.store import SERVER_TIMESTAMP, DocumentStore, StoreError
from synapse.schemas import UserSession, decode_one

logger = logging.getLogger(__name__)

ACTIVITY_RESOLUTION = timedelta(seconds=60)


class AuthEventType(enum.StrEnum):
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"
    EXPIRED = "expired"


@dataclass(frozen=True, slots=True)
class AuthEvent:
    type: AuthEventType
    uid: str
    session_id: str


AuthListener = Callable[[AuthEvent], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionStore:
    """Persisted sessions plus a subscribe/notify hub for auth events."""

    def __init__(
        self,
        *,
        engine: Engine,
        timeout_minutes: int = 30,
        remember_me_days: int = 7,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = DocumentStore(engine)
        self.timeout = timedelta(minutes=timeout_minutes)
        self.remember_me = timedelta(days=remember_me_days)
        self._clock = clock
        self._listeners: list[AuthListener] = []

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------
    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        """Register *listener*; the returned callable unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: AuthEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # a failing listener is logged and skipped
                logger.exception("Auth listener %r failed on %s", listener, event.type)

    def close(self) -> None:
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def _lifetime(self, remember_me: bool) -> timedelta:
        return self.remember_me if remember_me else self.timeout

    def start(self, uid: str, *, email: str = "", remember_me: bool = False) -> UserSession:
        """Open a new session for *uid* and announce ``signed_in``.

        Raises :class:`StoreError` if the session cannot be persisted; a
        sign-in that cannot be recorded must fail.
        """
        now = self._clock()
        session_id = secrets.token_urlsafe(24)
        body = {
            "uid": uid,
            "email": email,
            "remember_me": remember_me,
            "created_at": SERVER_TIMESTAMP,
            "last_activity": now.isoformat(),
            "expires_at": (now + self._lifetime(remember_me)).isoformat(),
            "ended_at": None,
        }
        self.store.set(SESSIONS, session_id, body)
        logger.info("Session started for %s (remember_me=%s)", uid, remember_me)
        self._notify(AuthEvent(AuthEventType.SIGNED_IN, uid, session_id))
        return UserSession(id=session_id, **{**body, "created_at": now.isoformat()})

    def resolve(self, session_id: str) -> UserSession | None:
        """Return the live session for *session_id*, recording activity.

        Expired sessions are ended (``expired`` is announced) and ``None``
        is returned, as for unknown or signed-out ids.
        """
        try:
            session = decode_one(UserSession, self.store.get(SESSIONS, session_id))
            if session is None or session.ended_at is not None:
                return None

            now = self._clock()
            if now >= datetime.fromisoformat(session.expires_at):
                self.store.update(SESSIONS, session_id, {"ended_at": now.isoformat()})
                logger.info("Session for %s expired", session.uid)
                self._notify(AuthEvent(AuthEventType.EXPIRED, session.uid, session_id))
                return None

            if now - datetime.fromisoformat(session.last_activity) >= ACTIVITY_RESOLUTION:
                fields = {
                    "last_activity": now.isoformat(),
                    "expires_at": (now + self._lifetime(session.remember_me)).isoformat(),
                }
                self.store.update(SESSIONS, session_id, fields)
                session = session.model_copy(update=fields)
            return session
        except StoreError:
            logger.exception("Error resolving session %s", session_id)
            return None

    def end(self, session_id: str) -> bool:
        """Sign out.  Returns ``False`` if the session was not live."""
        try:
            session = decode_one(UserSession, self.store.get(SESSIONS, session_id))
            if session is None or session.ended_at is not None:
                return False
            self.store.update(SESSIONS, session_id, {"ended_at": self._clock().isoformat()})
        except StoreError:
            logger.exception("Error ending session %s", session_id)
            return False
        logger.info("Session ended for %s", session.uid)
        self._notify(AuthEvent(AuthEventType.SIGNED_OUT, session.uid, session_id))
        return True


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------
_session_store: SessionStore | None = None


def get_session_store() -> SessionStore:
    """Return the process-wide session store."""
    if _session_store is None:
        raise RuntimeError("Session store not configured — call configure_session_store() first")
    return _session_store


def configure_session_store(
    *,
    engine: Engine,
    timeout_minutes: int = 30,
    remember_me_days: int = 7,
) -> SessionStore:
    global _session_store
    if _session_store is not None:
        _session_store.close()
    _session_store = SessionStore(
        engine=engine,
        timeout_minutes=timeout_minutes,
        remember_me_days=remember_me_days,
    )
    return _session_store


def shutdown_session_store() -> None:
    global _session_store
    if _session_store is not None:
        _session_store.close()
    _session_store = None
