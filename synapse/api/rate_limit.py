"""
synapse.api.rate_limit — Per-Admin Mutation Rate Limiting
==========================================================

Admin write endpoints are throttled to 30 mutations per minute per admin
uid, counted in a sliding window stored in ``admin_rate_limit_events`` so
the limit survives restarts and is shared between workers.

Returns HTTP 429 with a ``Retry-After`` header when the limit is exceeded.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import Engine, delete, func, select
from sqlalchemy.orm import Session

from synapse.api.deps import require_permission
from synapse.database.models import AdminRateLimitEvent
from synapse.schemas import AdminProfile

logger = logging.getLogger(__name__)

# Default: 30 mutations per 60-second sliding window
DEFAULT_RATE_LIMIT = 30
DEFAULT_WINDOW_SECONDS = 60

# HTTP methods considered "mutations"
_MUTATION_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


@dataclass(frozen=True, slots=True)
class WindowState:
    remaining: int
    reset: int
    limit: int


class AdminRateLimiter:
    """Sliding window over ``admin_rate_limit_events`` rows, one per mutation."""

    def __init__(
        self,
        max_requests: int = DEFAULT_RATE_LIMIT,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
        *,
        engine: Engine,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.engine = engine

    def _window_start(self, now: datetime) -> datetime:
        return now - timedelta(seconds=self.window_seconds)

    def _prune(self, session: Session, admin_id: str, now: datetime) -> None:
        session.execute(
            delete(AdminRateLimitEvent).where(
                AdminRateLimitEvent.admin_id == admin_id,
                AdminRateLimitEvent.timestamp < self._window_start(now),
            )
        )

    def check(self, admin_id: str) -> tuple[bool, WindowState]:
        """Return ``(allowed, state)`` without recording anything.

        When refused, ``state.reset`` is the number of seconds until the
        oldest counted mutation leaves the window.
        """
        now = datetime.now(UTC)
        with Session(self.engine) as session:
            self._prune(session, admin_id, now)
            oldest = session.scalar(
                select(func.min(AdminRateLimitEvent.timestamp))
                .where(AdminRateLimitEvent.admin_id == admin_id)
            )
            count = session.scalar(
                select(func.count(AdminRateLimitEvent.id))
                .where(AdminRateLimitEvent.admin_id == admin_id)
            ) or 0
            session.commit()

        if count < self.max_requests:
            return True, WindowState(self.max_requests - count, self.window_seconds,
                                     self.max_requests)

        if oldest.tzinfo is None:
            oldest = oldest.replace(tzinfo=UTC)
        wait = (oldest + timedelta(seconds=self.window_seconds) - now).total_seconds()
        return False, WindowState(0, max(1, int(wait) + 1), self.max_requests)

    def record(self, admin_id: str) -> WindowState:
        """Count one mutation for *admin_id* and return the updated window."""
        now = datetime.now(UTC)
        with Session(self.engine) as session:
            self._prune(session, admin_id, now)
            session.add(AdminRateLimitEvent(admin_id=admin_id, timestamp=now))
            session.flush()
            count = session.scalar(
                select(func.count(AdminRateLimitEvent.id))
                .where(AdminRateLimitEvent.admin_id == admin_id)
            ) or 0
            session.commit()
        return WindowState(max(0, self.max_requests - count), self.window_seconds,
                           self.max_requests)

    def reset(self, admin_id: str | None = None) -> None:
        """Forget counted mutations for one admin, or for everyone."""
        stmt = delete(AdminRateLimitEvent)
        if admin_id is not None:
            stmt = stmt.where(AdminRateLimitEvent.admin_id == admin_id)
        with Session(self.engine) as session:
            session.execute(stmt)
            session.commit()


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------
_limiter: AdminRateLimiter | None = None


def get_rate_limiter() -> AdminRateLimiter:
    if _limiter is None:
        raise RuntimeError("Rate limiter not configured — call configure_rate_limiter() first")
    return _limiter


def configure_rate_limiter(
    *,
    engine: Engine,
    max_requests: int = DEFAULT_RATE_LIMIT,
    window_seconds: int = DEFAULT_WINDOW_SECONDS,
) -> AdminRateLimiter:
    global _limiter
    _limiter = AdminRateLimiter(max_requests, window_seconds, engine=engine)
    return _limiter


# ---------------------------------------------------------------------------
# FastAPI dependency, chains after require_permission
# ---------------------------------------------------------------------------
def rate_limited(permission: str | None, route: str):
    """Permission guard that also counts mutations against the admin's window.

    GET/HEAD/OPTIONS requests pass through uncounted.  Use in place of
    ``require_permission`` on management routers::

        router = APIRouter(dependencies=[Depends(rate_limited(MANAGE_EVENTS, "/manage-events"))])
    """
    guard = require_permission(permission, route)

    async def dependency(
        request: Request,
        admin: AdminProfile = Depends(guard),
    ) -> AdminProfile:
        if request.method not in _MUTATION_METHODS:
            return admin

        limiter = get_rate_limiter()
        allowed, info = await asyncio.to_thread(limiter.check, admin.uid)

        if not allowed:
            logger.warning(
                "Rate limit exceeded for admin %s: %d/%d requests in window",
                admin.uid, limiter.max_requests, limiter.window_seconds,
            )
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "error": "rate_limit_exceeded",
                    "message": (
                        f"Rate limit exceeded: {limiter.max_requests}"
                        " mutations per minute."
                    ),
                    "retry_after": info.reset,
                },
                headers={"Retry-After": str(info.reset)},
            )

        await asyncio.to_thread(limiter.record, admin.uid)
        return admin

    dependency.__name__ = f"rate_limited_{permission or 'admin'}"
    return dependency
