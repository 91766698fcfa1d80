"""
synapse.services.application_service — Recruitment Applications
================================================================

Lifecycle::

    pending ──▶ reviewed / accepted / rejected        (admin review)
       │
       └── withdrawn by the applicant ──▶ is_deleted=True, status=rejected

Withdrawn applications vanish from every admin listing and count but stay
visible to their applicant through :func:`get_application_by_synapse_id`.
Re-applying withdraws the current application and submits a fresh one;
the old document is left in place, flagged deleted.
"""

from __future__ import annotations

import logging

from synapse.constants import APPLICATION_STATUSES, RECRUITMENT_APPLICATIONS
from synapse.database.store import (
    SERVER_TIMESTAMP,
    DocumentNotFoundError,
    DocumentStore,
    StoreError,
)
from synapse.schemas import ApplicationForm, RecruitmentApplication, decode_many, decode_one
from synapse.services.audit_service import audited_delete, audited_update
from synapse.services.csv_export import format_timestamp, to_csv
from synapse.services.results import ServiceResult

logger = logging.getLogger(__name__)

WITHDRAWN_REMARK = "Deleted by applicant"

CSV_HEADERS = [
    "Synapse ID", "Name", "Email", "Contact", "WhatsApp", "ZPRN",
    "Department", "Class", "Division", "Teams (Priority)", "Role",
    "Skills", "Contribution", "Status", "Remark", "Submitted At",
]


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def _for_synapse_id(store: DocumentStore, synapse_id: str) -> list[RecruitmentApplication]:
    return decode_many(
        RecruitmentApplication,
        store.list(
            RECRUITMENT_APPLICATIONS,
            where={"synapse_id": synapse_id},
            order_by="submitted_at",
            descending=True,
        ),
    )


def get_application_by_synapse_id(
    store: DocumentStore, synapse_id: str,
) -> RecruitmentApplication | None:
    """The applicant's current application.

    The most recent non-deleted application wins.  When every application
    for *synapse_id* has been withdrawn, the most recent withdrawn one is
    returned so the applicant still sees its status.
    """
    try:
        apps = _for_synapse_id(store, synapse_id)
    except StoreError:
        logger.exception("Error fetching application for %s", synapse_id)
        return None
    active = [a for a in apps if not a.is_deleted]
    if active:
        return active[0]
    return apps[0] if apps else None


def get_application(store: DocumentStore, application_id: str) -> RecruitmentApplication | None:
    try:
        return decode_one(RecruitmentApplication, store.get(RECRUITMENT_APPLICATIONS, application_id))
    except StoreError:
        logger.exception("Error fetching application %s", application_id)
        return None


def get_all_applications(store: DocumentStore) -> list[RecruitmentApplication]:
    """Admin listing: non-deleted applications, newest first."""
    try:
        apps = decode_many(
            RecruitmentApplication,
            store.list(RECRUITMENT_APPLICATIONS, order_by="submitted_at", descending=True),
        )
    except StoreError:
        logger.exception("Error fetching applications")
        return []
    return [a for a in apps if not a.is_deleted]


def get_application_counts(store: DocumentStore) -> dict[str, int]:
    apps = get_all_applications(store)
    counts = {"total": len(apps)}
    for status in APPLICATION_STATUSES:
        counts[status] = sum(1 for a in apps if a.status == status)
    return counts


# ---------------------------------------------------------------------------
# Applicant writes
# ---------------------------------------------------------------------------
def submit_application(
    store: DocumentStore, synapse_id: str, form: ApplicationForm,
) -> ServiceResult:
    try:
        with store.transaction(RECRUITMENT_APPLICATIONS) as tx:
            existing = [a for a in _for_synapse_id(tx, synapse_id) if not a.is_deleted]
            if existing:
                return ServiceResult.fail("You have already submitted an application")
            doc_id = tx.add(RECRUITMENT_APPLICATIONS, {
                **form.model_dump(),
                "synapse_id": synapse_id,
                "status": "pending",
                "is_deleted": False,
                "remark": "",
                "submitted_at": SERVER_TIMESTAMP,
            })
    except StoreError:
        logger.exception("Error submitting application for %s", synapse_id)
        return ServiceResult.fail("Failed to submit application")
    logger.info("Application %s submitted by %s", doc_id, synapse_id)
    return ServiceResult.ok(doc_id)


def delete_own_application(
    store: DocumentStore, application_id: str, synapse_id: str,
) -> ServiceResult:
    """Withdraw an application.  Only its applicant may do this."""
    try:
        app = decode_one(RecruitmentApplication, store.get(RECRUITMENT_APPLICATIONS, application_id))
        if app is None or app.synapse_id != synapse_id:
            return ServiceResult.fail("Unauthorized")
        store.update(RECRUITMENT_APPLICATIONS, application_id, {
            "is_deleted": True,
            "status": "rejected",
            "remark": WITHDRAWN_REMARK,
        })
    except StoreError:
        logger.exception("Error withdrawing application %s", application_id)
        return ServiceResult.fail("Failed to delete application")
    logger.info("Application %s withdrawn by %s", application_id, synapse_id)
    return ServiceResult.ok(application_id)


def reapply(store: DocumentStore, synapse_id: str, form: ApplicationForm) -> ServiceResult:
    """Withdraw the current application (if any) and submit *form* fresh."""
    current = get_application_by_synapse_id(store, synapse_id)
    if current is not None and not current.is_deleted:
        withdrawn = delete_own_application(store, current.id, synapse_id)
        if not withdrawn.success:
            return withdrawn
    return submit_application(store, synapse_id, form)


# ---------------------------------------------------------------------------
# Admin writes
# ---------------------------------------------------------------------------
def update_application_status(
    store: DocumentStore,
    application_id: str,
    status: str,
    reviewed_by: str,
    remark: str | None = None,
    *,
    actor_id: str | None = None,
) -> ServiceResult:
    if status not in APPLICATION_STATUSES:
        return ServiceResult.fail(f"Invalid status {status!r}")
    try:
        audited_update(store, RECRUITMENT_APPLICATIONS, application_id, {
            "status": status,
            "reviewed_by": reviewed_by,
            "reviewed_at": SERVER_TIMESTAMP,
            "remark": remark or "",
        }, actor_id=actor_id)
    except DocumentNotFoundError:
        return ServiceResult.fail("Application not found")
    except StoreError:
        logger.exception("Error updating application %s", application_id)
        return ServiceResult.fail("Failed to update application status")
    logger.info("Application %s marked %s by %s", application_id, status, reviewed_by)
    return ServiceResult.ok(application_id)


def delete_application(
    store: DocumentStore, application_id: str, *, actor_id: str | None = None,
) -> ServiceResult:
    try:
        if not audited_delete(store, RECRUITMENT_APPLICATIONS, application_id, actor_id=actor_id):
            return ServiceResult.fail("Application not found")
    except StoreError:
        logger.exception("Error deleting application %s", application_id)
        return ServiceResult.fail("Failed to delete application")
    return ServiceResult.ok(application_id)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------
def export_applications_csv(applications: list[RecruitmentApplication]) -> str:
    return to_csv(CSV_HEADERS, (
        [
            a.synapse_id, a.name, a.email, a.contact, a.whatsapp, a.zprn_number,
            a.department, a.class_year, a.division, " > ".join(a.selected_teams),
            a.role, a.skills, a.contribution, a.status, a.remark,
            format_timestamp(a.submitted_at),
        ]
        for a in applications
    ))
