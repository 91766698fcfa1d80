"""
synapse.api.auth — Google OAuth2, sessions & signup
=====================================================

Sign-in is Google's authorization-code flow.  The callback opens a
session (:class:`~synapse.services.session_service.SessionStore`) and
hands the frontend a bearer JWT whose ``jti`` is the session id::

    GET  /api/auth/login?returnTo=/manage-events&rememberMe=true
    →    accounts.google.com consent
    →    GET /api/auth/callback?code=…&state=…
    →    {FRONTEND_URL}/auth/callback?token=…&next=/manage-events

``next`` is ``/signup`` when the Google account has no profile yet; the
frontend then posts the signup form to ``/api/auth/signup`` (or
``/api/auth/signup-admin``).
"""

from __future__ import annotations

import logging
import os
import secrets
from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse
from sqlalchemy import delete

from synapse.api.deps import (
    CurrentUser,
    get_config,
    get_current_user,
    get_engine,
    get_store,
    issue_token,
    unwrap,
)
from synapse.config import SynapseConfig
from synapse.constants import DASHBOARD_ROUTE
from synapse.database.engine import get_session, run_db
from synapse.database.models import OAuthState
from synapse.database.store import DocumentStore, StoreError
from synapse.schemas import ProfileForm, ProfileUpdate
from synapse.services.session_service import get_session_store
from synapse.services.user_service import (
    create_admin_document,
    create_user_document,
    delete_account,
    get_user_or_admin_document,
    update_profile,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
GOOGLE_SCOPE = "openid email profile"

SIGNUP_ROUTE = "/signup"
OAUTH_STATE_TTL_SECONDS = 600


def _oauth_env() -> tuple[str, str, str, str]:
    """Return required OAuth env vars or raise a clear 500."""
    names = ("GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET", "GOOGLE_REDIRECT_URI", "FRONTEND_URL")
    values = {name: os.getenv(name, "").strip() for name in names}
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise HTTPException(
            status_code=500,
            detail="Google OAuth is not configured: missing " + ", ".join(missing),
        )
    return (
        values["GOOGLE_CLIENT_ID"],
        values["GOOGLE_CLIENT_SECRET"],
        values["GOOGLE_REDIRECT_URI"],
        values["FRONTEND_URL"].rstrip("/"),
    )


def safe_return_path(value: str | None) -> str | None:
    """Accept only same-site absolute paths (``/x``, never ``//host``)."""
    if not value or not value.startswith("/") or value.startswith("//"):
        return None
    return value


# ---------------------------------------------------------------------------
# OAuth state (one-time, 10 minute TTL)
# ---------------------------------------------------------------------------
def _store_oauth_state(engine, state: str, return_to: str | None, remember_me: bool) -> None:
    cutoff = datetime.now(UTC) - timedelta(seconds=OAUTH_STATE_TTL_SECONDS)
    with get_session(engine) as session:
        session.execute(delete(OAuthState).where(OAuthState.created_at < cutoff))
        session.add(OAuthState(state=state, return_to=return_to, remember_me=remember_me))


def _consume_oauth_state(engine, state: str) -> tuple[bool, str | None, bool]:
    """Return ``(valid, return_to, remember_me)`` and delete the state row."""
    cutoff = datetime.now(UTC) - timedelta(seconds=OAUTH_STATE_TTL_SECONDS)
    with get_session(engine) as session:
        session.execute(delete(OAuthState).where(OAuthState.created_at < cutoff))
        row = session.get(OAuthState, state)
        if row is None:
            return False, None, False
        found = (True, row.return_to, row.remember_me)
        session.delete(row)
        return found


async def _fetch_google_user(code: str, client_id: str, client_secret: str,
                             redirect_uri: str) -> dict:
    transport = httpx.AsyncHTTPTransport(retries=1)
    async with httpx.AsyncClient(timeout=10, transport=transport) as client:
        token_resp = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": client_id,
                "client_secret": client_secret,
            },
        )
        if token_resp.status_code != 200:
            logger.warning("Google token exchange failed: %s", token_resp.status_code)
            raise HTTPException(400, "OAuth token exchange failed")

        access_token = token_resp.json().get("access_token")
        if not access_token:
            raise HTTPException(400, "No access token returned")

        user_resp = await client.get(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
        )

    if user_resp.status_code != 200:
        raise HTTPException(400, "Failed to fetch Google user")
    info = user_resp.json()
    if not info.get("sub"):
        raise HTTPException(400, "Google user has no id")
    return info


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@router.get("/login")
async def login(
    return_to: str | None = Query(None, alias="returnTo"),
    remember_me: bool = Query(False, alias="rememberMe"),
    engine=Depends(get_engine),
):
    """Redirect to the Google consent screen."""
    client_id, _, redirect_uri, _ = _oauth_env()

    state = secrets.token_urlsafe(32)
    await run_db(_store_oauth_state, engine, state, safe_return_path(return_to), remember_me)

    query = urlencode(
        {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": GOOGLE_SCOPE,
            "state": state,
            "prompt": "select_account",
        }
    )
    return RedirectResponse(f"{GOOGLE_AUTHORIZE_URL}?{query}")


@router.get("/callback")
async def callback(
    code: str,
    state: str,
    cfg: SynapseConfig = Depends(get_config),
    engine=Depends(get_engine),
    store: DocumentStore = Depends(get_store),
):
    """Exchange the OAuth code, open a session and hand the token to the frontend."""
    client_id, client_secret, redirect_uri, frontend_url = _oauth_env()

    valid, return_to, remember_me = await run_db(_consume_oauth_state, engine, state)
    if not valid:
        raise HTTPException(400, "Invalid or expired OAuth state")

    info = await _fetch_google_user(code, client_id, client_secret, redirect_uri)
    uid = info["sub"]
    email = info.get("email", "")

    try:
        session = await run_db(get_session_store().start, uid, email=email,
                               remember_me=remember_me)
    except StoreError:
        logger.exception("Could not open a session for %s", uid)
        return RedirectResponse(f"{frontend_url}{SIGNUP_ROUTE}?auth_error=session")

    # The session document decides expiry; the token only has to outlive it.
    token = issue_token(
        uid=uid,
        email=email,
        name=info.get("name", ""),
        picture=info.get("picture"),
        session_id=session.id,
        expires_at=datetime.now(UTC) + timedelta(days=cfg.remember_me_days),
    )

    profile, _ = await run_db(get_user_or_admin_document, store, uid)
    next_path = (return_to or DASHBOARD_ROUTE) if profile is not None else SIGNUP_ROUTE
    query = urlencode({"token": token, "next": next_path})
    return RedirectResponse(f"{frontend_url}/auth/callback?{query}")


@router.get("/me")
def me(
    user: CurrentUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    """The signed-in identity plus its profile (``None`` until signup)."""
    profile, is_admin = get_user_or_admin_document(store, user.uid)
    return {
        "uid": user.uid,
        "email": user.email,
        "display_name": user.name,
        "photo_url": user.picture,
        "is_admin": is_admin,
        "profile": profile.model_dump() if profile is not None else None,
    }


@router.put("/me")
def edit_profile(
    updates: ProfileUpdate,
    user: CurrentUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    """Edit the caller's own profile.  The Synapse ID and permissions are fixed."""
    profile, is_admin = get_user_or_admin_document(store, user.uid)
    if profile is None:
        raise HTTPException(404, "Account not found")
    return unwrap(update_profile(store, user.uid, updates, admin=is_admin),
                  not_found="Account not found")


@router.post("/logout")
def logout(user: CurrentUser = Depends(get_current_user)):
    ended = get_session_store().end(user.session_id)
    return {"success": ended}


@router.post("/signup")
def signup(
    form: ProfileForm,
    user: CurrentUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    """Create the user profile and its ``SYN-XXX-0000`` id."""
    return unwrap(create_user_document(
        store, user.uid, email=user.email, form=form, photo_url=user.picture,
    ))


@router.post("/signup-admin")
def signup_admin(
    form: ProfileForm,
    user: CurrentUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    """Create an admin profile.  It holds no permissions until granted."""
    return unwrap(create_admin_document(
        store, user.uid, email=user.email, form=form, photo_url=user.picture,
    ))


@router.delete("/account")
def remove_account(
    user: CurrentUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    """Delete the profile, free its Synapse ID and sign out."""
    body = unwrap(delete_account(store, user.uid), not_found="Account not found")
    get_session_store().end(user.session_id)
    return body
