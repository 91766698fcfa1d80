"""
synapse.services.user_service — Accounts & Synapse IDs
=======================================================

Users and admins are separate collections keyed by the identity
provider's uid.  Each account gets a human-readable Synapse ID:

    SYN-ABC-0007          regular users   (reserved in ``synapse_ids``)
    SYN-ADMIN-ABC-0003    admins          (reserved in ``admin_synapse_ids``)

``ABC`` comes from the first name; the number is the lowest one not
currently reserved in that collection, so deleting an account frees its
number for the next signup.
"""

from __future__ import annotations

import logging
import re

from synapse.constants import (
    ADMIN_SYNAPSE_IDS,
    ADMINS,
    ALL_PERMISSIONS,
    SYNAPSE_IDS,
    USERS,
)
from synapse.database.store import SERVER_TIMESTAMP, DocumentStore, StoreError
from synapse.schemas import (
    AdminProfile,
    ProfileForm,
    ProfileUpdate,
    UserProfile,
    decode_many,
    decode_one,
)
from synapse.services.audit_service import audited_update
from synapse.services.results import ServiceResult

logger = logging.getLogger(__name__)

_NON_LETTERS = re.compile(r"[^A-Z]")


# ---------------------------------------------------------------------------
# Synapse ID generation
# ---------------------------------------------------------------------------
def name_prefix(first_name: str) -> str:
    """First three letters of *first_name*, uppercased, padded with ``X``."""
    letters = _NON_LETTERS.sub("", first_name.upper())
    return letters.ljust(3, "X")[:3]


def first_free_number(used: set[int]) -> int:
    number = 1
    while number in used:
        number += 1
    return number


def _reserve_synapse_id(tx: DocumentStore, first_name: str, *, admin: bool) -> str:
    collection = ADMIN_SYNAPSE_IDS if admin else SYNAPSE_IDS
    used = {
        s.data["number"] for s in tx.list(collection)
        if isinstance(s.data.get("number"), int)
    }
    number = first_free_number(used)
    head = "SYN-ADMIN" if admin else "SYN"
    synapse_id = f"{head}-{name_prefix(first_name)}-{number:04d}"
    tx.set(collection, synapse_id, {
        "number": number,
        "synapse_id": synapse_id,
        "type": "admin" if admin else "user",
        "created_at": SERVER_TIMESTAMP,
    })
    return synapse_id


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_user_document(store: DocumentStore, uid: str) -> UserProfile | None:
    try:
        return decode_one(UserProfile, store.get(USERS, uid))
    except StoreError:
        logger.exception("Error fetching user document %s", uid)
        return None


def get_admin_document(store: DocumentStore, uid: str) -> AdminProfile | None:
    """The admin document for *uid*.

    Raises :class:`StoreError` instead of returning ``None`` on failure so
    the permission guard can log it; callers that only display data should
    use :func:`get_user_or_admin_document`.
    """
    return decode_one(AdminProfile, store.get(ADMINS, uid))


def get_user_or_admin_document(
    store: DocumentStore, uid: str,
) -> tuple[UserProfile | None, bool]:
    """Return ``(profile, is_admin)``; the admin collection is checked first."""
    try:
        admin = decode_one(AdminProfile, store.get(ADMINS, uid))
        if admin is not None:
            return admin, True
        return decode_one(UserProfile, store.get(USERS, uid)), False
    except StoreError:
        logger.exception("Error fetching profile for %s", uid)
        return None, False


def lookup_by_synapse_id(store: DocumentStore, synapse_id: str) -> UserProfile | None:
    """Find the account holding *synapse_id* (users first, then admins)."""
    try:
        users = decode_many(UserProfile, store.list(USERS, where={"synapse_id": synapse_id}))
        if users:
            return users[0]
        admins = decode_many(AdminProfile, store.list(ADMINS, where={"synapse_id": synapse_id}))
        return admins[0] if admins else None
    except StoreError:
        logger.exception("Error looking up user %s", synapse_id)
        return None


def list_admins(store: DocumentStore) -> list[AdminProfile]:
    try:
        return decode_many(AdminProfile, store.list(ADMINS, order_by="synapse_id"))
    except StoreError:
        logger.exception("Error listing admins")
        return []


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def _profile_body(uid: str, email: str, photo_url: str | None, form: ProfileForm) -> dict:
    display_name = f"{form.first_name} {form.last_name}".strip()
    return {
        **form.model_dump(),
        "uid": uid,
        "email": email,
        "display_name": display_name,
        "photo_url": photo_url,
        "created_at": SERVER_TIMESTAMP,
        "updated_at": SERVER_TIMESTAMP,
    }


def create_user_document(
    store: DocumentStore,
    uid: str,
    *,
    email: str,
    form: ProfileForm,
    photo_url: str | None = None,
) -> ServiceResult:
    """Create the user profile and reserve its Synapse ID atomically."""
    try:
        with store.transaction(USERS, ADMINS, SYNAPSE_IDS) as tx:
            if tx.get(USERS, uid) is not None or tx.get(ADMINS, uid) is not None:
                return ServiceResult.fail("An account already exists for this login")
            synapse_id = _reserve_synapse_id(tx, form.first_name, admin=False)
            tx.set(USERS, uid, {**_profile_body(uid, email, photo_url, form),
                                "synapse_id": synapse_id})
    except StoreError:
        logger.exception("Error creating user document for %s", uid)
        return ServiceResult.fail("Failed to create account. Please try again.")
    logger.info("Created user %s (%s)", uid, synapse_id)
    return ServiceResult.ok(uid, synapse_id=synapse_id)


def create_admin_document(
    store: DocumentStore,
    uid: str,
    *,
    email: str,
    form: ProfileForm,
    photo_url: str | None = None,
) -> ServiceResult:
    """Create an admin profile.  Permissions start empty."""
    try:
        with store.transaction(USERS, ADMINS, ADMIN_SYNAPSE_IDS) as tx:
            if tx.get(USERS, uid) is not None or tx.get(ADMINS, uid) is not None:
                return ServiceResult.fail("An account already exists for this login")
            synapse_id = _reserve_synapse_id(tx, form.first_name, admin=True)
            tx.set(ADMINS, uid, {**_profile_body(uid, email, photo_url, form),
                                 "synapse_id": synapse_id,
                                 "permissions": []})
    except StoreError:
        logger.exception("Error creating admin document for %s", uid)
        return ServiceResult.fail("Failed to create admin account. Please try again.")
    logger.info("Created admin %s (%s)", uid, synapse_id)
    return ServiceResult.ok(uid, synapse_id=synapse_id)


def update_profile(
    store: DocumentStore, uid: str, updates: ProfileUpdate, *, admin: bool,
) -> ServiceResult:
    """Apply profile edits and keep ``display_name`` in step with the name fields."""
    collection = ADMINS if admin else USERS
    fields = updates.model_dump(exclude_none=True)
    try:
        with store.transaction(collection) as tx:
            current = tx.get(collection, uid)
            if current is None:
                return ServiceResult.fail("Account not found")
            if "first_name" in fields or "last_name" in fields:
                merged = {**current.data, **fields}
                fields["display_name"] = (
                    f"{merged.get('first_name', '')} {merged.get('last_name', '')}".strip()
                )
            fields["updated_at"] = SERVER_TIMESTAMP
            tx.update(collection, uid, fields)
    except StoreError:
        logger.exception("Error updating profile %s", uid)
        return ServiceResult.fail("Failed to update profile.")
    logger.info("Profile %s updated (%s)", uid, ", ".join(sorted(fields)))
    return ServiceResult.ok(uid)


def set_admin_permissions(
    store: DocumentStore,
    uid: str,
    permissions: list[str],
    *,
    actor_id: str | None = None,
) -> ServiceResult:
    """Replace an admin's permission list (unknown strings are rejected)."""
    unknown = sorted(set(permissions) - set(ALL_PERMISSIONS))
    if unknown:
        return ServiceResult.fail(f"Unknown permissions: {', '.join(unknown)}")
    try:
        audited_update(
            store, ADMINS, uid,
            {"permissions": sorted(set(permissions)), "updated_at": SERVER_TIMESTAMP},
            actor_id=actor_id,
        )
    except StoreError:
        logger.exception("Error updating permissions for %s", uid)
        return ServiceResult.fail("Failed to update admin permissions.")
    return ServiceResult.ok(uid)


def delete_account(store: DocumentStore, uid: str) -> ServiceResult:
    """Delete the profile and release its Synapse ID for reuse."""
    profile, is_admin = get_user_or_admin_document(store, uid)
    if profile is None:
        return ServiceResult.fail("Account not found")
    try:
        with store.transaction() as tx:
            tx.delete(ADMINS if is_admin else USERS, uid)
            tx.delete(ADMIN_SYNAPSE_IDS if is_admin else SYNAPSE_IDS, profile.synapse_id)
    except StoreError:
        logger.exception("Error deleting account %s", uid)
        return ServiceResult.fail("Failed to delete account. Please try again.")
    logger.info("Deleted account %s, released %s", uid, profile.synapse_id)
    return ServiceResult.ok(uid)
