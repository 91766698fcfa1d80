"""
synapse.constants — Shared Constants
=====================================

Single source of truth for collection names, permission strings, the
admin route map and the fixed option lists used by forms.  Import from
here instead of repeating string literals in services and routers.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Document store collections
# ---------------------------------------------------------------------------
USERS = "users"
ADMINS = "admins"
SYNAPSE_IDS = "synapse_ids"
ADMIN_SYNAPSE_IDS = "admin_synapse_ids"
SESSIONS = "sessions"

RECRUITMENT_APPLICATIONS = "recruitment_applications"
COMPETITIONS = "competitions"
COMPETITION_CATEGORIES = "competition_categories"
EVENTS = "events"
EVENT_CATEGORIES = "event_categories"
REGISTRATIONS = "registrations"
EVENT_REGISTRATIONS = "event_registrations"
SPONSORS = "sponsors"
SPONSOR_CATEGORIES = "sponsor_categories"
PROMOTIONS = "promotions"
PROMOTIONAL_SPACE = "promotional_space"
DAY_PASSES = "day_passes"
DAY_PASS_REGISTRATIONS = "day_pass_registrations"
QR_VOLUNTEERS = "qr_volunteers"
ATTENDANCES = "attendances"
CONTACT_QUERIES = "contact_queries"
SITE_SETTINGS = "site_settings"

# Fixed document ids inside single-document collections
PAGE_VISIBILITY_DOC = "page_visibility"
SIDEBAR_PROMO_DOC = "sidebar_promo"


# ---------------------------------------------------------------------------
# Admin permissions
# ---------------------------------------------------------------------------
MANAGE_RECRUITMENTS = "manage_recruitments"
MANAGE_QUERIES = "manage_queries"
MANAGE_SPONSORS = "manage_sponsors"
MANAGE_COMPETITIONS = "manage_competitions"
MANAGE_EVENTS = "manage_events"
MANAGE_QR_VERIFICATION = "manage_qr_verification"

ALL_PERMISSIONS: tuple[str, ...] = (
    MANAGE_RECRUITMENTS,
    MANAGE_QUERIES,
    MANAGE_SPONSORS,
    MANAGE_COMPETITIONS,
    MANAGE_EVENTS,
    MANAGE_QR_VERIFICATION,
)

# Permission → management screen (order matches the admin panel)
MANAGEMENT_ROUTES: dict[str, dict[str, str]] = {
    MANAGE_RECRUITMENTS: {
        "path": "/manage-recruitment-applications",
        "label": "Recruitment Applications",
    },
    MANAGE_QUERIES: {"path": "/manage-queries", "label": "Queries"},
    MANAGE_SPONSORS: {"path": "/manage-sponsors", "label": "Sponsors"},
    MANAGE_COMPETITIONS: {"path": "/manage-competitions", "label": "Competitions"},
    MANAGE_EVENTS: {"path": "/manage-events", "label": "Events & Day Passes"},
    MANAGE_QR_VERIFICATION: {
        "path": "/manage-qr-verification",
        "label": "QR Verification",
    },
}

# Permission → public page whose visibility that admin may toggle
VISIBILITY_PERMISSIONS: dict[str, str] = {
    MANAGE_RECRUITMENTS: "recruitments",
    MANAGE_EVENTS: "events",
    MANAGE_COMPETITIONS: "competitions",
    MANAGE_SPONSORS: "sponsors",
}

PAGE_KEYS: tuple[str, ...] = ("recruitments", "events", "competitions", "sponsors")

LOGIN_ROUTE = "/user-login"
DASHBOARD_ROUTE = "/user-dashboard"
SCANNER_ROUTE = "/scan-qr"
ADMIN_PANEL_ROUTE = "/admin-panel"


# ---------------------------------------------------------------------------
# Status vocabularies
# ---------------------------------------------------------------------------
APPLICATION_STATUSES = ("pending", "reviewed", "accepted", "rejected")
REGISTRATION_STATUSES = ("pending", "approved", "rejected")
PAYMENT_STATUSES = ("pending", "paid", "free")
QUERY_STATUSES = ("unread", "read", "replied", "archived")
IMAGE_DISPLAY_MODES = ("fill", "fit", "stretch", "tile", "centre")


# ---------------------------------------------------------------------------
# Recruitment form options
# ---------------------------------------------------------------------------
RECRUITMENT_TEAMS: tuple[str, ...] = (
    "Treasurer",
    "Documentation Team",
    "Media Team",
    "PR Team",
    "Decoration Team",
    "Stage Team",
    "Technical Team",
    "Sponsorship Team",
)

DEPARTMENTS: tuple[str, ...] = (
    "Computer Engineering",
    "Information Technology",
    "Electronics & Telecommunication",
    "Mechanical Engineering",
    "Civil Engineering",
    "Electrical Engineering",
    "Instrumentation Engineering",
)

CLASSES = ("FY", "SY", "TE", "BE")
RECRUITMENT_ROLES = ("core", "volunteer")
MAX_ANSWER_WORDS = 150


# ---------------------------------------------------------------------------
# Card presentation options for the competition / event editors
# ---------------------------------------------------------------------------
COMPETITION_ICONS: list[str] = [
    "💻", "🤖", "⚔️", "🎨", "🎮", "🧠", "📸", "🧩",
    "🚀", "💡", "🔧", "📱", "🌐", "🎯", "🏆", "⚡",
    "🎵", "📊", "🔬", "🎬", "✍️", "🎭", "🔥", "💎",
]

EVENT_ICONS: list[str] = [
    "🎉", "🎤", "🎸", "🎭", "🎨", "📸", "🎪", "🏆",
    "🎵", "💡", "🔥", "⚡", "🌟", "🎯", "🚀", "💎",
    "🍔", "☕", "🎬", "🎮", "🏃", "🧘", "📚", "🎓",
]

CARD_COLORS: list[str] = [
    "#00d4ff",  # cyan
    "#ff6b6b",  # red
    "#ffd93d",  # yellow
    "#ff00ff",  # magenta
    "#00ff88",  # green
    "#8a2be2",  # purple
    "#ff8c00",  # orange
    "#20b2aa",  # teal
    "#ff1493",  # pink
    "#32cd32",  # lime
]


# ---------------------------------------------------------------------------
# Day passes
# ---------------------------------------------------------------------------
FESTIVAL_DAYS: tuple[int, ...] = (1, 2, 3)

DEFAULT_DAY_PASSES: list[dict] = [
    {
        "day": 1,
        "price": 150,
        "events": ["Opening Ceremony", "Tech Talks & Workshops", "Gaming Zone Access"],
    },
    {
        "day": 2,
        "price": 100,
        "events": ["Hackathon Continues", "Cultural Events", "DJ Night Prelims"],
    },
    {
        "day": 3,
        "price": 50,
        "events": ["Grand Finale", "Prize Distribution", "DJ Night"],
    },
]


def day_pass_id(day: int) -> str:
    """Document id of the pass for festival *day*."""
    return f"day_{day}"
