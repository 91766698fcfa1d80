"""
tests/test_registrations_csv.py — Competition & Event Registrations
=====================================================================
Registration lifecycle plus the CSV bodies admins download.
"""

from __future__ import annotations

import csv
import io

from synapse.schemas import (
    Competition,
    Event,
    EventRegistrationForm,
    RegistrationForm,
    TeamMember,
)
from synapse.services.csv_export import format_amount, format_timestamp, to_csv
from synapse.services.event_registration_service import (
    create_event_registration,
    export_event_registrations_csv,
    get_event_registration_stats,
    get_event_registrations_by_event,
    mark_event_attendance,
)
from synapse.services.registration_service import (
    CSV_HEADERS,
    create_registration,
    delete_registration,
    export_registrations_csv,
    get_all_registrations,
    get_registration_stats,
    get_registrations_by_user,
    update_registration_status,
)


def _team(n: int, name: str = "Byte Me") -> RegistrationForm:
    return RegistrationForm(
        team_name=name,
        team_members=[
            TeamMember(name=f"Member {i}", email=f"m{i}@example.com", phone=f"98765432{i:02d}")
            for i in range(1, n + 1)
        ],
        college_name="VIT, Pune",
    )


def _rows(body: str) -> list[list[str]]:
    return list(csv.reader(io.StringIO(body)))


HACKATHON = Competition(id="comp-1", name="Hackathon")
DJ_NIGHT = Event(id="event-1", name="DJ Night", price=200)


class TestCsvHelpers:
    def test_quoting_survives_a_csv_reader(self):
        body = to_csv(["a", "b"], [['say "hi", friend', "line\nbreak"], [None, 3]])
        assert _rows(body) == [["a", "b"], ['say "hi", friend', "line\nbreak"], ["", "3"]]

    def test_format_timestamp(self):
        assert format_timestamp("2026-02-01T10:20:30.123456+00:00") == "2026-02-01 10:20:30"
        assert format_timestamp(None) == ""
        assert format_timestamp("not a date") == "not a date"

    def test_format_amount(self):
        assert format_amount(150.0) == "150"
        assert format_amount(99.5) == "99.5"


class TestCompetitionRegistrations:
    def test_create_is_pending(self, store):
        result = create_registration(store, HACKATHON, _team(2), user_id="u1", synapse_id="SYN-ASH-0001")
        assert result.success
        reg = get_registrations_by_user(store, "u1")[0]
        assert reg.status == "pending"
        assert reg.competition_name == "Hackathon"
        assert reg.synapse_id == "SYN-ASH-0001"

    def test_closed_competition(self, store):
        closed = Competition(id="comp-2", name="Quiz", is_active=False)
        result = create_registration(store, closed, _team(1))
        assert result.error == "Registrations for this competition are closed"

    def test_status_and_notes(self, store):
        reg_id = create_registration(store, HACKATHON, _team(1)).id
        assert update_registration_status(store, reg_id, "approved", "paid at desk").success
        reg = get_all_registrations(store)[0]
        assert reg.status == "approved"
        assert reg.notes == "paid at desk"
        assert not update_registration_status(store, reg_id, "waitlisted").success
        assert update_registration_status(store, "ghost", "approved").error == "Registration not found"

    def test_stats_count_members(self, store):
        a = create_registration(store, HACKATHON, _team(3)).id
        create_registration(store, HACKATHON, _team(2, "Null Pointers"))
        update_registration_status(store, a, "rejected")
        stats = get_registration_stats(get_all_registrations(store))
        assert stats == {
            "total": 2, "pending": 1, "approved": 0, "rejected": 1, "total_members": 5,
        }

    def test_delete(self, store):
        reg_id = create_registration(store, HACKATHON, _team(1)).id
        assert delete_registration(store, reg_id).success
        assert delete_registration(store, reg_id).error == "Registration not found"


class TestCompetitionCsv:
    def test_member_slots_are_fixed(self, store):
        create_registration(store, HACKATHON, _team(6))
        rows = _rows(export_registrations_csv(get_all_registrations(store)))
        assert rows[0] == CSV_HEADERS
        assert len(rows[1]) == len(CSV_HEADERS)
        assert "Member 5" in rows[1]
        assert "Member 6" not in rows[1]

    def test_short_teams_leave_blank_slots(self, store):
        create_registration(store, HACKATHON, _team(1))
        row = dict(zip(CSV_HEADERS, _rows(export_registrations_csv(get_all_registrations(store)))[1]))
        assert row["Member 1 Name"] == "Member 1"
        assert row["Member 2 Name"] == ""
        assert row["College"] == "VIT, Pune"


class TestEventRegistrations:
    def _register(self, store, email: str, amount: float = 200) -> str:
        form = EventRegistrationForm(name="Asha", email=email, amount_paid=amount)
        return create_event_registration(store, DJ_NIGHT, form, user_id="u1").id

    def test_attendance_and_stats(self, store):
        a = self._register(store, "a@example.com")
        self._register(store, "b@example.com", amount=150)
        assert mark_event_attendance(store, a, True).success

        regs = get_event_registrations_by_event(store, "event-1")
        stats = get_event_registration_stats(regs)
        assert stats["total"] == 2
        assert stats["attended"] == 1
        assert stats["total_revenue"] == 350

    def test_csv_shows_attended_as_yes_no(self, store):
        a = self._register(store, "a@example.com")
        mark_event_attendance(store, a, True)
        rows = _rows(export_event_registrations_csv(get_event_registrations_by_event(store, "event-1")))
        assert rows[1][rows[0].index("Attended")] == "Yes"
        assert rows[1][rows[0].index("Amount Paid")] == "200"

    def test_closed_event(self, store):
        closed = Event(id="event-2", name="Comedy", is_active=False)
        form = EventRegistrationForm(name="Asha", email="a@example.com")
        assert not create_event_registration(store, closed, form).success
