"""
synapse.schemas — Domain Models
================================

Pydantic models for every document shape kept in the store, plus the
form inputs that create them.

The store hands back plain dicts.  Services never pass those dicts on;
they decode them through these models first (:func:`decode_many` /
:func:`decode_one`) so a malformed document is logged and skipped at
the service boundary instead of surfacing half-formed in a response.
"""

from __future__ import annotations

import logging
import re
from typing import Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from synapse.constants import (
    CLASSES,
    DEPARTMENTS,
    MAX_ANSWER_WORDS,
    RECRUITMENT_ROLES,
    RECRUITMENT_TEAMS,
)
from synapse.database.store import Snapshot

logger = logging.getLogger(__name__)

_MOBILE_RE = re.compile(r"^[6-9][0-9]{9}$")

ApplicationStatus = Literal["pending", "reviewed", "accepted", "rejected"]
RegistrationStatus = Literal["pending", "approved", "rejected"]
PaymentStatus = Literal["pending", "paid", "free"]
QueryStatus = Literal["unread", "read", "replied", "archived"]
DisplayMode = Literal["fill", "fit", "stretch", "tile", "centre"]


# ---------------------------------------------------------------------------
# Base + decoding helpers
# ---------------------------------------------------------------------------
class StoredModel(BaseModel):
    """A document read from the store.  Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None

    @classmethod
    def from_snapshot(cls, snap: Snapshot):
        return cls.model_validate(snap.to_dict())

    def to_document(self) -> dict:
        """Fields to persist (the id lives in the key, not the body)."""
        return self.model_dump(exclude={"id"})


M = TypeVar("M", bound=StoredModel)


def decode_one(model: type[M], snap: Snapshot | None) -> M | None:
    if snap is None:
        return None
    try:
        return model.from_snapshot(snap)
    except ValidationError as exc:
        logger.warning(
            "Skipping malformed %s document %s (%d errors)",
            model.__name__, snap.id, exc.error_count(),
        )
        return None


def decode_many(model: type[M], snaps: list[Snapshot]) -> list[M]:
    decoded = (decode_one(model, s) for s in snaps)
    return [d for d in decoded if d is not None]


def word_count(text: str) -> int:
    return len(text.split())


# ---------------------------------------------------------------------------
# Users & admins
# ---------------------------------------------------------------------------
class ProfileForm(BaseModel):
    """Details collected on the signup form."""

    first_name: str = Field(min_length=1, max_length=60)
    last_name: str = Field(default="", max_length=60)
    mobile_number: str = ""
    date_of_birth: str = ""
    gender: str = ""
    college: str = ""
    department: str = ""
    year_of_study: str = ""
    course_completion_year: str = ""

    @field_validator("mobile_number")
    @classmethod
    def _mobile(cls, v: str) -> str:
        if v and not _MOBILE_RE.match(v):
            raise ValueError("Mobile number must be a valid 10-digit number")
        return v


class ProfileUpdate(BaseModel):
    """Profile edits.  Only the fields sent are changed."""

    first_name: str | None = Field(default=None, min_length=1, max_length=60)
    last_name: str | None = Field(default=None, max_length=60)
    mobile_number: str | None = None
    date_of_birth: str | None = None
    gender: str | None = None
    college: str | None = None
    department: str | None = None
    year_of_study: str | None = None
    course_completion_year: str | None = None

    @field_validator("mobile_number")
    @classmethod
    def _mobile(cls, v: str | None) -> str | None:
        if v and not _MOBILE_RE.match(v):
            raise ValueError("Mobile number must be a valid 10-digit number")
        return v


class UserProfile(StoredModel):
    uid: str
    synapse_id: str
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    display_name: str = ""
    mobile_number: str = ""
    date_of_birth: str = ""
    gender: str = ""
    college: str = ""
    department: str = ""
    year_of_study: str = ""
    course_completion_year: str = ""
    photo_url: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class AdminProfile(UserProfile):
    permissions: list[str] = Field(default_factory=list)


class UserSession(StoredModel):
    uid: str
    email: str = ""
    remember_me: bool = False
    created_at: str | None = None
    last_activity: str
    expires_at: str
    ended_at: str | None = None


# ---------------------------------------------------------------------------
# Recruitment applications
# ---------------------------------------------------------------------------
class ApplicationForm(BaseModel):
    """The join form.  Every field is required."""

    name: str = Field(min_length=1, max_length=120)
    email: str = Field(min_length=3, max_length=200)
    contact: str
    whatsapp: str
    zprn_number: str = Field(min_length=1, max_length=40)
    department: str
    class_year: str
    division: str
    selected_teams: list[str] = Field(min_length=1)
    role: str
    skills: str = Field(min_length=1)
    contribution: str = Field(min_length=1)

    @field_validator("contact", "whatsapp")
    @classmethod
    def _mobile(cls, v: str) -> str:
        if not _MOBILE_RE.match(v):
            raise ValueError("must be a valid 10-digit mobile number")
        return v

    @field_validator("department")
    @classmethod
    def _department(cls, v: str) -> str:
        if v not in DEPARTMENTS:
            raise ValueError(f"unknown department {v!r}")
        return v

    @field_validator("class_year")
    @classmethod
    def _class(cls, v: str) -> str:
        if v not in CLASSES:
            raise ValueError(f"class must be one of {', '.join(CLASSES)}")
        return v

    @field_validator("division")
    @classmethod
    def _division(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) != 1 or not v.isalpha() or not v.isascii():
            raise ValueError("division must be a single letter A-Z")
        return v

    @field_validator("selected_teams")
    @classmethod
    def _teams(cls, v: list[str]) -> list[str]:
        if len(set(v)) != len(v):
            raise ValueError("each team can only be chosen once")
        unknown = [t for t in v if t not in RECRUITMENT_TEAMS]
        if unknown:
            raise ValueError(f"unknown teams: {', '.join(unknown)}")
        return v

    @field_validator("role")
    @classmethod
    def _role(cls, v: str) -> str:
        if v not in RECRUITMENT_ROLES:
            raise ValueError(f"role must be one of {', '.join(RECRUITMENT_ROLES)}")
        return v

    @field_validator("skills", "contribution")
    @classmethod
    def _word_limit(cls, v: str) -> str:
        if word_count(v) > MAX_ANSWER_WORDS:
            raise ValueError(f"must be at most {MAX_ANSWER_WORDS} words")
        return v


class RecruitmentApplication(StoredModel):
    synapse_id: str
    name: str
    email: str
    contact: str = ""
    whatsapp: str = ""
    zprn_number: str = ""
    department: str = ""
    class_year: str = ""
    division: str = ""
    selected_teams: list[str] = Field(default_factory=list)
    role: str = ""
    skills: str = ""
    contribution: str = ""
    status: ApplicationStatus = "pending"
    is_deleted: bool = False
    submitted_at: str | None = None
    reviewed_at: str | None = None
    reviewed_by: str | None = None
    remark: str = ""


# ---------------------------------------------------------------------------
# Competitions & events
# ---------------------------------------------------------------------------
class Category(StoredModel):
    name: str
    order: int = 0


class Competition(StoredModel):
    name: str
    category: str = ""
    description: str = ""
    team_size: str = ""
    entry_fee: float = 0
    prize_pool: str = ""
    icon: str = ""
    color: str = ""
    images: list[str] = Field(default_factory=list)
    image_display_mode: DisplayMode = "fill"
    image_position: str = "center"
    rules: str = ""
    venue: str = ""
    date: str = ""
    time: str = ""
    registration_link: str = ""
    order: int = 0
    is_active: bool = True
    created_at: str | None = None
    updated_at: str | None = None


class Event(StoredModel):
    name: str
    description: str = ""
    date: str = ""
    time: str = ""
    venue: str = ""
    price: float = 0
    capacity: int | None = None
    icon: str = ""
    color: str = ""
    images: list[str] = Field(default_factory=list)
    image_display_mode: DisplayMode = "fill"
    highlights: list[str] = Field(default_factory=list)
    rules: str = ""
    order: int = 0
    is_active: bool = True
    created_at: str | None = None
    updated_at: str | None = None


# ---------------------------------------------------------------------------
# Registrations
# ---------------------------------------------------------------------------
class TeamMember(BaseModel):
    name: str = Field(min_length=1)
    email: str = ""
    phone: str = ""
    role: str = ""


class RegistrationForm(BaseModel):
    team_name: str = Field(min_length=1, max_length=120)
    team_members: list[TeamMember] = Field(min_length=1)
    college_name: str = ""
    transaction_id: str = ""
    payment_screenshot: str = ""


class Registration(StoredModel):
    competition_id: str
    competition_name: str = ""
    user_id: str | None = None
    synapse_id: str | None = None
    team_name: str = ""
    team_members: list[TeamMember] = Field(default_factory=list)
    college_name: str = ""
    transaction_id: str = ""
    payment_screenshot: str = ""
    status: RegistrationStatus = "pending"
    notes: str = ""
    created_at: str | None = None


class EventRegistrationForm(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    phone: str = ""
    college_name: str = ""
    transaction_id: str = ""
    payment_screenshot: str = ""
    amount_paid: float = 0


class EventRegistration(StoredModel):
    event_id: str
    event_name: str = ""
    user_id: str | None = None
    synapse_id: str | None = None
    name: str
    email: str = ""
    phone: str = ""
    college_name: str = ""
    transaction_id: str = ""
    payment_screenshot: str = ""
    amount_paid: float = 0
    status: RegistrationStatus = "pending"
    attended: bool = False
    notes: str = ""
    created_at: str | None = None


# ---------------------------------------------------------------------------
# Sponsors
# ---------------------------------------------------------------------------
class Sponsor(StoredModel):
    title: str
    link: str = ""
    category_id: str
    category_name: str = ""
    images: list[str] = Field(default_factory=list)
    order: int = 0
    created_at: str | None = None
    updated_at: str | None = None


class Promotion(StoredModel):
    title: str = ""
    link: str = ""
    images: list[str] = Field(default_factory=list)
    display_mode: DisplayMode = "fill"
    order: int = 0
    created_by: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class PromotionalSpace(StoredModel):
    link: str = ""
    images: list[str] = Field(default_factory=list)
    updated_by: str | None = None
    updated_at: str | None = None


# ---------------------------------------------------------------------------
# Day passes
# ---------------------------------------------------------------------------
class DayPass(StoredModel):
    day: int = Field(ge=1)
    images: list[str] = Field(default_factory=list)
    price: float = 0
    events: list[str] = Field(default_factory=list)
    capacity: int = Field(default=0, ge=0)
    is_active: bool = True


class DayPassForm(BaseModel):
    phone: str
    college: str = ""
    government_id_last4: str
    selected_days: list[int] = Field(min_length=1)

    @field_validator("phone")
    @classmethod
    def _phone(cls, v: str) -> str:
        if not _MOBILE_RE.match(v):
            raise ValueError("must be a valid 10-digit mobile number")
        return v

    @field_validator("government_id_last4")
    @classmethod
    def _last4(cls, v: str) -> str:
        if not re.fullmatch(r"[0-9A-Za-z]{4}", v):
            raise ValueError("must be exactly the last 4 characters of the ID")
        return v.upper()


class DayPassRegistration(StoredModel):
    user_id: str
    synapse_id: str
    user_name: str = ""
    email: str = ""
    phone: str = ""
    college: str = ""
    government_id_last4: str = ""
    selected_days: list[int] = Field(default_factory=list)
    total_amount: float = 0
    status: RegistrationStatus = "approved"
    payment_status: PaymentStatus = "pending"
    transaction_id: str = ""
    created_at: str | None = None
    updated_at: str | None = None


# ---------------------------------------------------------------------------
# QR verification
# ---------------------------------------------------------------------------
class QRRegistrationRef(BaseModel):
    type: Literal["daypass", "competition", "event"]
    id: str
    name: str


class QRPayload(BaseModel):
    synapse_id: str
    government_id_last4: str
    registrations: list[QRRegistrationRef] = Field(default_factory=list)
    timestamp: int


class OfflineScan(BaseModel):
    """One scan captured while the scanner had no connection."""

    synapse_id: str = Field(min_length=1)
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    scanned_at: str | None = None
    registrations: list[QRRegistrationRef] = Field(default_factory=list)


class QRVolunteer(StoredModel):
    user_id: str
    synapse_id: str
    display_name: str = ""
    email: str = ""
    assigned_events: list[str] = Field(default_factory=list)
    is_active: bool = True
    created_by: str | None = None
    created_at: str | None = None


class Attendance(StoredModel):
    user_id: str
    synapse_id: str
    display_name: str = ""
    email: str = ""
    college: str = ""
    date: str
    attended: bool = True
    scanned_by: str = ""
    scanned_by_name: str = ""
    scanned_at: str | None = None
    synced_at: str | None = None
    offline_scanned: bool = False
    registrations: list[QRRegistrationRef] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Contact queries
# ---------------------------------------------------------------------------
class ContactForm(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    email: str = Field(min_length=3, max_length=200)
    subject: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=5000)


class ContactQuery(StoredModel):
    name: str
    email: str
    subject: str = ""
    message: str = ""
    status: QueryStatus = "unread"
    submitted_at: str | None = None
    read_at: str | None = None
    replied_at: str | None = None
    replied_by: str | None = None
    notes: str | None = None
    query_count: int = 1


# ---------------------------------------------------------------------------
# Site settings
# ---------------------------------------------------------------------------
class PageVisibility(StoredModel):
    recruitments: bool = True
    events: bool = True
    competitions: bool = True
    sponsors: bool = True
