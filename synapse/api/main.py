"""
synapse.api.main — FastAPI application entry point
=====================================================

Run with::

    uvicorn synapse.api.main:app --reload --port 8000

or ``python -m synapse.api.main`` to use ``dashboard_port`` from
``config.yaml``.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from urllib.parse import urlencode

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

load_dotenv()

from synapse.api.auth import router as auth_router  # noqa: E402
from synapse.api.deps import (  # noqa: E402
    AccessDenied,
    LoginRequired,
    get_config,
    get_engine,
)
from synapse.api.rate_limit import configure_rate_limiter  # noqa: E402
from synapse.api.routes.admin_panel import router as admin_panel_router  # noqa: E402
from synapse.api.routes.competitions import router as competitions_router  # noqa: E402
from synapse.api.routes.dashboard import router as dashboard_router  # noqa: E402
from synapse.api.routes.events import router as events_router  # noqa: E402
from synapse.api.routes.public import router as public_router  # noqa: E402
from synapse.api.routes.qr_verification import router as qr_router  # noqa: E402
from synapse.api.routes.queries import router as queries_router  # noqa: E402
from synapse.api.routes.recruitments import router as recruitments_router  # noqa: E402
from synapse.api.routes.scanner import router as scanner_router  # noqa: E402
from synapse.api.routes.sponsors import router as sponsors_router  # noqa: E402
from synapse.constants import DASHBOARD_ROUTE, LOGIN_ROUTE  # noqa: E402
from synapse.database.engine import init_db, run_db  # noqa: E402
from synapse.services.session_service import (  # noqa: E402
    configure_session_store,
    shutdown_session_store,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and defaults, then wire the session store and limiter."""
    engine = app.dependency_overrides.get(get_engine, get_engine)()
    cfg = app.dependency_overrides.get(get_config, get_config)()

    await run_db(init_db, engine)
    configure_rate_limiter(engine=engine)
    sessions = configure_session_store(
        engine=engine,
        timeout_minutes=cfg.session_timeout_minutes,
        remember_me_days=cfg.remember_me_days,
    )
    sessions.subscribe(lambda event: logger.info("Auth %s: %s", event.type, event.uid))

    logger.info("%s API started — engine ready (%s)", cfg.festival_name, engine.url.database)
    yield
    shutdown_session_store()
    logger.info("Synapse API shutting down")


app = FastAPI(
    title="Synapse Festival API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Guard redirects
# ---------------------------------------------------------------------------
@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    query = urlencode({"returnTo": exc.return_to})
    return RedirectResponse(f"{LOGIN_ROUTE}?{query}", status_code=303)


@app.exception_handler(AccessDenied)
async def access_denied_handler(request: Request, exc: AccessDenied):
    return RedirectResponse(DASHBOARD_ROUTE, status_code=303)


# Mount routers
app.include_router(auth_router, prefix="/api")
app.include_router(public_router, prefix="/api")
app.include_router(dashboard_router, prefix="/api")
app.include_router(admin_panel_router, prefix="/api")
app.include_router(recruitments_router, prefix="/api")
app.include_router(competitions_router, prefix="/api")
app.include_router(events_router, prefix="/api")
app.include_router(sponsors_router, prefix="/api")
app.include_router(queries_router, prefix="/api")
app.include_router(qr_router, prefix="/api")
app.include_router(scanner_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    uvicorn.run(app, host="0.0.0.0", port=get_config().dashboard_port)
