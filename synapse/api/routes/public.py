"""
synapse.api.routes.public — Read-only public endpoints
=========================================================

Everything the marketing site shows without signing in.  Pages that can
be switched off from the admin panel answer 404 while hidden.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from synapse.api.deps import get_store, unwrap
from synapse.constants import (
    CLASSES,
    DEPARTMENTS,
    MAX_ANSWER_WORDS,
    RECRUITMENT_ROLES,
    RECRUITMENT_TEAMS,
)
from synapse.database.store import DocumentStore
from synapse.schemas import ContactForm
from synapse.services.competition_service import (
    get_active_competitions,
    get_competition_categories,
)
from synapse.services.day_pass_service import get_active_day_passes
from synapse.services.event_service import get_active_events, get_event_categories
from synapse.services.query_service import submit_contact_query
from synapse.services.settings_service import get_page_visibility, is_page_visible
from synapse.services.sponsor_service import (
    get_all_promotions,
    get_promotional_space,
    get_sponsors_grouped_by_category,
)

router = APIRouter(tags=["public"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def visible_page(page: str):
    """Dependency that 404s while *page* is hidden."""

    def dependency(store: DocumentStore = Depends(get_store)) -> DocumentStore:
        if not is_page_visible(store, page):
            raise HTTPException(404, "Page not available")
        return store

    dependency.__name__ = f"visible_{page}"
    return dependency


# ---------------------------------------------------------------------------
# Site settings
# ---------------------------------------------------------------------------
@router.get("/page-visibility")
def page_visibility(store: DocumentStore = Depends(get_store)):
    return get_page_visibility(store).model_dump(exclude={"id"})


# ---------------------------------------------------------------------------
# Events & day passes
# ---------------------------------------------------------------------------
@router.get("/events")
def list_events(store: DocumentStore = Depends(visible_page("events"))):
    return [e.model_dump() for e in get_active_events(store)]


@router.get("/events/categories")
def list_event_categories(store: DocumentStore = Depends(visible_page("events"))):
    return [c.model_dump() for c in get_event_categories(store)]


@router.get("/day-passes")
def list_day_passes(store: DocumentStore = Depends(visible_page("events"))):
    return [p.model_dump() for p in get_active_day_passes(store)]


# ---------------------------------------------------------------------------
# Competitions
# ---------------------------------------------------------------------------
@router.get("/competitions")
def list_competitions(store: DocumentStore = Depends(visible_page("competitions"))):
    return [c.model_dump() for c in get_active_competitions(store)]


@router.get("/competitions/categories")
def list_competition_categories(store: DocumentStore = Depends(visible_page("competitions"))):
    return [c.model_dump() for c in get_competition_categories(store)]


# ---------------------------------------------------------------------------
# Sponsors
# ---------------------------------------------------------------------------
@router.get("/sponsors")
def list_sponsors(store: DocumentStore = Depends(visible_page("sponsors"))):
    return [
        {
            "category": group["category"].model_dump(),
            "sponsors": [s.model_dump() for s in group["sponsors"]],
        }
        for group in get_sponsors_grouped_by_category(store)
    ]


@router.get("/promotions")
def list_promotions(store: DocumentStore = Depends(get_store)):
    return [p.model_dump() for p in get_all_promotions(store)]


@router.get("/promotional-space")
def promotional_space(store: DocumentStore = Depends(get_store)):
    space = get_promotional_space(store)
    return space.model_dump() if space is not None else None


# ---------------------------------------------------------------------------
# Contact & join form
# ---------------------------------------------------------------------------
@router.post("/contact")
def contact(form: ContactForm, store: DocumentStore = Depends(get_store)):
    return unwrap(submit_contact_query(store, form))


@router.get("/join/teams")
def join_options(store: DocumentStore = Depends(visible_page("recruitments"))):
    """Option lists for the recruitment form."""
    return {
        "teams": list(RECRUITMENT_TEAMS),
        "departments": list(DEPARTMENTS),
        "classes": list(CLASSES),
        "roles": list(RECRUITMENT_ROLES),
        "max_answer_words": MAX_ANSWER_WORDS,
    }
