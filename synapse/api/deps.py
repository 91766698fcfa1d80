"""
synapse.api.deps — FastAPI dependency injection
=================================================

Authentication
--------------
Clients send ``Authorization: Bearer <jwt>``.  The token's ``jti`` names
a session document; a token whose session has ended or expired is
treated exactly like no token at all.

Guards
------
Management screens are guarded by one factory::

    admin: AdminProfile = Depends(require_permission(MANAGE_EVENTS, "/manage-events"))

* not signed in → :class:`LoginRequired` → 303 to ``/user-login?returnTo=…``
* no admin document, missing permission, or the lookup failed →
  :class:`AccessDenied` → 303 to ``/user-dashboard``

The exception handlers in :mod:`synapse.api.main` turn both into
redirects, so no management data is ever produced for a refused caller.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from fastapi.responses import Response
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from synapse.config import SynapseConfig, load_config
from synapse.constants import SCANNER_ROUTE
from synapse.database.engine import create_db_engine
from synapse.database.store import DocumentStore, StoreError
from synapse.schemas import AdminProfile, QRVolunteer
from synapse.services.qr_service import get_volunteer_by_user_id
from synapse.services.results import ServiceResult
from synapse.services.session_service import get_session_store
from synapse.services.user_service import get_admin_document

logger = logging.getLogger(__name__)

_WEAK_SECRETS = frozenset({
    "synapse-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> SynapseConfig:
    return load_config()


def get_store(engine: Annotated[Engine, Depends(get_engine)]) -> DocumentStore:
    return DocumentStore(engine)


# ---------------------------------------------------------------------------
# Tokens & the signed-in caller
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class CurrentUser:
    uid: str
    email: str
    name: str
    picture: str | None
    session_id: str


def issue_token(*, uid: str, email: str, name: str, picture: str | None,
                session_id: str, expires_at: datetime) -> str:
    payload = {
        "sub": uid,
        "email": email,
        "name": name,
        "picture": picture,
        "jti": session_id,
        "exp": expires_at,
        "iat": datetime.now(UTC),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def _resolve_caller(authorization: str | None) -> CurrentUser | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        return None
    session_id = payload.get("jti")
    if not session_id or not payload.get("sub"):
        return None
    session = get_session_store().resolve(session_id)
    if session is None or session.uid != payload["sub"]:
        return None
    return CurrentUser(
        uid=payload["sub"],
        email=payload.get("email", ""),
        name=payload.get("name", ""),
        picture=payload.get("picture"),
        session_id=session_id,
    )


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
) -> CurrentUser:
    """The signed-in caller.  Raises 401 if there is no live session."""
    user = _resolve_caller(authorization)
    if user is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Not signed in")
    return user


# ---------------------------------------------------------------------------
# Route guards
# ---------------------------------------------------------------------------
class LoginRequired(Exception):
    """The caller must sign in before visiting *return_to*."""

    def __init__(self, return_to: str) -> None:
        super().__init__(return_to)
        self.return_to = return_to


class AccessDenied(Exception):
    """Signed in, but not allowed on *route*."""

    def __init__(self, route: str) -> None:
        super().__init__(route)
        self.route = route


def require_signed_in(route: str):
    """Like :func:`get_current_user` but redirects to login instead of 401."""

    def dependency(
        authorization: Annotated[str | None, Header()] = None,
    ) -> CurrentUser:
        user = _resolve_caller(authorization)
        if user is None:
            raise LoginRequired(route)
        return user

    return dependency


def require_permission(permission: str | None, route: str):
    """Guard for an admin-only route.

    ``permission=None`` admits any admin (the admin panel itself).
    """

    def dependency(
        authorization: Annotated[str | None, Header()] = None,
        store: DocumentStore = Depends(get_store),
    ) -> AdminProfile:
        user = _resolve_caller(authorization)
        if user is None:
            raise LoginRequired(route)
        try:
            admin = get_admin_document(store, user.uid)
        except StoreError:
            logger.exception("Admin lookup failed for %s on %s", user.uid, route)
            raise AccessDenied(route)
        if admin is None or (permission is not None and permission not in admin.permissions):
            logger.info("Refused %s on %s (needs %s)", user.uid, route, permission)
            raise AccessDenied(route)
        return admin

    dependency.__name__ = f"require_{permission or 'admin'}"
    return dependency


def require_volunteer(route: str = SCANNER_ROUTE):
    """Guard for the scanner: the caller needs an active volunteer record."""

    def dependency(
        authorization: Annotated[str | None, Header()] = None,
        store: DocumentStore = Depends(get_store),
    ) -> QRVolunteer:
        user = _resolve_caller(authorization)
        if user is None:
            raise LoginRequired(route)
        try:
            volunteer = get_volunteer_by_user_id(store, user.uid)
        except StoreError:
            logger.exception("Volunteer lookup failed for %s", user.uid)
            raise AccessDenied(route)
        if volunteer is None or not volunteer.is_active:
            raise AccessDenied(route)
        return volunteer

    return dependency


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------
def unwrap(result: ServiceResult, *, not_found: str | None = None) -> dict:
    """Return the result body, or raise 400 (404 when the error is *not_found*)."""
    if result.success:
        return result.to_dict()
    code = 404 if not_found is not None and result.error == not_found else 400
    raise HTTPException(code, result.error)


def csv_response(body: str, prefix: str) -> Response:
    stamp = datetime.now(UTC).strftime("%Y-%m-%d")
    return Response(
        content=body,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{prefix}_{stamp}.csv"'},
    )
