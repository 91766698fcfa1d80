"""
tests/test_applications.py — Recruitment Applications
=======================================================
Form validation, one-live-application-per-applicant, withdraw/reapply,
admin review, and the CSV export.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from synapse.schemas import ApplicationForm
from synapse.services.application_service import (
    delete_application,
    delete_own_application,
    export_applications_csv,
    get_all_applications,
    get_application,
    get_application_by_synapse_id,
    get_application_counts,
    reapply,
    submit_application,
    update_application_status,
)
from synapse.services.audit_service import get_recent_actions


def _form(**overrides) -> ApplicationForm:
    fields = {
        "name": "Asha Test",
        "email": "asha@example.com",
        "contact": "9876543210",
        "whatsapp": "9876543210",
        "zprn_number": "ZPRN123",
        "department": "Computer Engineering",
        "class_year": "SY",
        "division": "b",
        "selected_teams": ["Technical Team", "Media Team"],
        "role": "core",
        "skills": "Python and photography",
        "contribution": "Build the festival site",
    }
    fields.update(overrides)
    return ApplicationForm(**fields)


class TestApplicationForm:
    def test_division_is_normalised(self):
        assert _form(division=" c ").division == "C"

    @pytest.mark.parametrize("field, value", [
        ("contact", "12345"),
        ("department", "Astrology"),
        ("class_year", "PG"),
        ("division", "AB"),
        ("selected_teams", []),
        ("selected_teams", ["Media Team", "Media Team"]),
        ("selected_teams", ["Catering Team"]),
        ("role", "mascot"),
    ])
    def test_rejects_bad_values(self, field, value):
        with pytest.raises(ValidationError):
            _form(**{field: value})

    def test_word_limit(self):
        with pytest.raises(ValidationError):
            _form(skills="word " * 151)
        assert _form(skills="word " * 150).skills


class TestSubmitAndWithdraw:
    def test_submit_creates_pending_application(self, store):
        result = submit_application(store, "SYN-ASH-0001", _form())
        assert result.success
        app = get_application(store, result.id)
        assert app.status == "pending"
        assert app.is_deleted is False
        assert app.submitted_at is not None

    def test_second_live_application_is_refused(self, store):
        submit_application(store, "SYN-ASH-0001", _form())
        result = submit_application(store, "SYN-ASH-0001", _form())
        assert result.error == "You have already submitted an application"

    def test_withdraw_is_soft(self, store):
        app_id = submit_application(store, "SYN-ASH-0001", _form()).id
        assert delete_own_application(store, app_id, "SYN-ASH-0001").success

        app = get_application(store, app_id)
        assert app.is_deleted is True
        assert app.status == "rejected"
        assert get_all_applications(store) == []

    def test_only_the_applicant_may_withdraw(self, store):
        app_id = submit_application(store, "SYN-ASH-0001", _form()).id
        result = delete_own_application(store, app_id, "SYN-BHA-0002")
        assert result.error == "Unauthorized"
        assert get_application(store, app_id).is_deleted is False

    def test_withdrawn_application_is_still_shown_to_applicant(self, store):
        app_id = submit_application(store, "SYN-ASH-0001", _form()).id
        delete_own_application(store, app_id, "SYN-ASH-0001")
        current = get_application_by_synapse_id(store, "SYN-ASH-0001")
        assert current.id == app_id
        assert current.is_deleted is True

    def test_can_submit_again_after_withdrawing(self, store):
        first = submit_application(store, "SYN-ASH-0001", _form()).id
        delete_own_application(store, first, "SYN-ASH-0001")
        second = submit_application(store, "SYN-ASH-0001", _form(role="volunteer"))
        assert second.success
        assert get_application_by_synapse_id(store, "SYN-ASH-0001").id == second.id

    def test_reapply_replaces_live_application(self, store):
        first = submit_application(store, "SYN-ASH-0001", _form()).id
        result = reapply(store, "SYN-ASH-0001", _form(role="volunteer"))
        assert result.success
        assert get_application(store, first).is_deleted is True
        current = get_application_by_synapse_id(store, "SYN-ASH-0001")
        assert current.id == result.id
        assert current.role == "volunteer"


class TestAdminReview:
    def test_status_update_records_reviewer_and_audits(self, store):
        app_id = submit_application(store, "SYN-ASH-0001", _form()).id
        result = update_application_status(
            store, app_id, "accepted", "SYN-ADMIN-RAV-0001", "Welcome aboard",
            actor_id="admin-1",
        )
        assert result.success

        app = get_application(store, app_id)
        assert app.status == "accepted"
        assert app.reviewed_by == "SYN-ADMIN-RAV-0001"
        assert app.remark == "Welcome aboard"
        assert app.reviewed_at is not None

        entry = get_recent_actions(store.engine, limit=1)[0]
        assert entry["actor_id"] == "admin-1"
        assert entry["action_type"] == "UPDATE"
        assert entry["before"]["status"] == "pending"
        assert entry["after"]["status"] == "accepted"

    def test_unknown_status(self, store):
        app_id = submit_application(store, "SYN-ASH-0001", _form()).id
        result = update_application_status(store, app_id, "maybe", "SYN-ADMIN-RAV-0001")
        assert not result.success

    def test_missing_application(self, store):
        result = update_application_status(store, "ghost", "accepted", "SYN-ADMIN-RAV-0001")
        assert result.error == "Application not found"
        assert delete_application(store, "ghost").error == "Application not found"

    def test_counts_ignore_withdrawn(self, store):
        a = submit_application(store, "SYN-ASH-0001", _form()).id
        submit_application(store, "SYN-BHA-0002", _form())
        update_application_status(store, a, "reviewed", "SYN-ADMIN-RAV-0001")
        withdrawn = submit_application(store, "SYN-CHE-0003", _form()).id
        delete_own_application(store, withdrawn, "SYN-CHE-0003")

        counts = get_application_counts(store)
        assert counts["total"] == 2
        assert counts["pending"] == 1
        assert counts["reviewed"] == 1
        assert counts["rejected"] == 0


class TestExport:
    def test_header_only_when_empty(self):
        lines = export_applications_csv([]).splitlines()
        assert len(lines) == 1
        assert lines[0].startswith("Synapse ID,")

    def test_teams_keep_preference_order(self, store):
        app_id = submit_application(store, "SYN-ASH-0001", _form()).id
        body = export_applications_csv([get_application(store, app_id)])
        assert "Technical Team > Media Team" in body
        assert body.splitlines()[1].startswith("SYN-ASH-0001,")
