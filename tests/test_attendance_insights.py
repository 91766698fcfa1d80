"""
tests/test_attendance_insights.py — Attendance Filters & Insights
===================================================================
"""

from __future__ import annotations

import pytest

from synapse.schemas import Attendance, QRRegistrationRef
from synapse.services.attendance_insights import (
    AttendanceFilter,
    apply_filters,
    detect_anomalies,
    generate_insights,
    get_attendance_trend,
    get_average_per_day,
    get_busiest_days,
    get_peak_hours,
    get_repeat_attendees,
    get_top_volunteers,
    get_volunteer_efficiency,
    predict_next_period,
)


def _scan(user: str, date: str, time: str = "10:00", *, by: str = "SYN-VIK-0002",
          offline: bool = False, refs: list[QRRegistrationRef] | None = None) -> Attendance:
    return Attendance(
        user_id=user,
        synapse_id=f"SYN-{user[:3].upper()}-0001",
        display_name=user.title(),
        email=f"{user}@example.com",
        college="VIT",
        date=date,
        scanned_by=by,
        scanned_by_name="Vikram" if by == "SYN-VIK-0002" else "Meera",
        scanned_at=f"{date}T{time}:00+00:00",
        offline_scanned=offline,
        registrations=refs or [],
    )


@pytest.fixture
def records() -> list[Attendance]:
    dj = QRRegistrationRef(type="event", id="e1", name="DJ Night")
    return [
        _scan("asha", "2026-03-06", "09:10", refs=[dj]),                # Friday
        _scan("bhavin", "2026-03-06", "09:40"),
        _scan("asha", "2026-03-07", "10:05", by="SYN-MEE-0003"),        # Saturday
        _scan("chitra", "2026-03-07", "10:20", offline=True),
        _scan("dev", "2026-03-07", "10:30", refs=[dj]),
        _scan("asha", "2026-03-08", "18:00", by="SYN-MEE-0003"),        # Sunday
    ]


class TestFilters:
    def test_no_criteria_keeps_everything(self, records):
        assert apply_filters(records, AttendanceFilter()) == records

    def test_search_is_case_insensitive_across_fields(self, records):
        found = apply_filters(records, AttendanceFilter(search="CHITRA@"))
        assert [a.user_id for a in found] == ["chitra"]
        by_name_only = AttendanceFilter(search="chitra@", search_fields=["display_name"])
        assert apply_filters(records, by_name_only) == []

    def test_date_range_is_inclusive(self, records):
        found = apply_filters(records, AttendanceFilter(date_from="2026-03-07", date_to="2026-03-08"))
        assert {a.date for a in found} == {"2026-03-07", "2026-03-08"}
        assert len(found) == 4

    def test_volunteer_offline_and_registration_filters(self, records):
        assert len(apply_filters(records, AttendanceFilter(scanned_by="SYN-MEE-0003"))) == 2
        assert [a.user_id for a in apply_filters(records, AttendanceFilter(offline_only=True))] == ["chitra"]
        dj = apply_filters(records, AttendanceFilter(registration_id="e1"))
        assert [a.user_id for a in dj] == ["asha", "dev"]
        assert apply_filters(records, AttendanceFilter(registration_type="competition")) == []

    def test_sorting(self, records):
        by_name = apply_filters(records, AttendanceFilter(sort_by="display_name", sort_order="desc"))
        assert by_name[0].user_id == "dev"
        by_time = apply_filters(records, AttendanceFilter(sort_by="scanned_at"))
        assert by_time[0].scanned_at.startswith("2026-03-06T09:10")
        assert by_time[-1].scanned_at.startswith("2026-03-08T18:00")


class TestTimePatterns:
    def test_peak_hours_busiest_first(self, records):
        assert get_peak_hours(records) == [
            {"hour": 10, "count": 3}, {"hour": 9, "count": 2}, {"hour": 18, "count": 1},
        ]

    def test_offset_times_count_in_utc(self):
        scan = _scan("asha", "2026-03-06").model_copy(
            update={"scanned_at": "2026-03-06T15:30:00+05:30"},
        )
        assert get_peak_hours([scan]) == [{"hour": 10, "count": 1}]

    def test_unparseable_times_are_skipped(self):
        scan = _scan("asha", "2026-03-06").model_copy(update={"scanned_at": "yesterday"})
        assert get_peak_hours([scan]) == []

    def test_busiest_days(self, records):
        assert get_busiest_days(records)[0] == {"day": "Saturday", "count": 3}

    def test_average_per_day(self, records):
        assert get_average_per_day(records) == 2
        assert get_average_per_day([]) == 0

    def test_trend(self, records):
        # earlier half: 2026-03-06 (2); later half: 03-07 (3) and 03-08 (1)
        assert get_attendance_trend(records) == {"trend": "stable", "change": 0}
        rising = records[:2] + [_scan(u, "2026-03-07") for u in ("e", "f", "g", "h")]
        assert get_attendance_trend(rising) == {"trend": "increasing", "change": 100}
        assert predict_next_period(rising) == 6

    def test_single_date_is_stable(self, records):
        assert get_attendance_trend(records[:2]) == {"trend": "stable", "change": 0}


class TestPeople:
    def test_top_volunteers(self, records):
        top = get_top_volunteers(records)
        assert [(v["synapse_id"], v["scans"]) for v in top] == [
            ("SYN-VIK-0002", 4), ("SYN-MEE-0003", 2),
        ]
        assert top[1]["name"] == "Meera"
        assert len(get_top_volunteers(records, 1)) == 1

    def test_efficiency(self, records):
        # Meera: two scans about 32 hours apart
        assert get_volunteer_efficiency(records, "SYN-MEE-0003") == 0
        quick = [_scan(u, "2026-03-06", f"10:{m:02d}") for u, m in (("a", 0), ("b", 15), ("c", 30))]
        assert get_volunteer_efficiency(quick, "SYN-VIK-0002") == 6
        assert get_volunteer_efficiency(quick[:1], "SYN-VIK-0002") == 0

    def test_repeat_attendees(self, records):
        assert get_repeat_attendees(records) == [{
            "user_id": "asha", "display_name": "Asha", "attendance_count": 3,
            "dates": ["2026-03-06", "2026-03-07", "2026-03-08"],
        }]


class TestAnomalies:
    def test_quiet_gate_has_none(self, records):
        assert detect_anomalies(records) == []
        assert detect_anomalies([]) == []

    def test_offline_rate(self, records):
        offline = [r.model_copy(update={"offline_scanned": True}) for r in records]
        anomalies = detect_anomalies(offline)
        assert anomalies[0]["type"] == "high_offline_rate"
        assert anomalies[0]["severity"] == "high"

    def test_duplicate_records(self, records):
        anomalies = detect_anomalies(records + [records[0], records[1]])
        assert [a["type"] for a in anomalies] == ["high_duplicate_rate"]
        assert anomalies[0]["description"].startswith("2 duplicate")


class TestSummary:
    def test_generate_insights(self, records):
        summary = generate_insights(records)
        assert summary["overview"]["total_scans"] == 6
        assert summary["overview"]["unique_attendees"] == 4
        assert summary["time"]["peak_hour"] == 10
        assert summary["time"]["busiest_day"] == "Saturday"
        assert len(summary["volunteers"]) == 2
        assert summary["anomalies"] == []

    def test_empty(self):
        summary = generate_insights([])
        assert summary["time"]["peak_hour"] is None
        assert summary["prediction"] == 0


class TestInsightsEndpoint:
    def test_filters_reach_the_dashboard(self, client, store, records):
        from conftest import auth, make_admin

        from synapse.services.qr_service import mark_attendance

        for record in records:
            assert mark_attendance(store, record).success
        make_admin(store, "admin-1", ["manage_qr_verification"])
        headers = auth("admin-1")

        body = client.get("/api/manage-qr-verification/attendance/insights", headers=headers).json()
        assert body["overview"]["total_scans"] == 6

        one_day = client.get("/api/manage-qr-verification/attendance/insights", headers=headers,
                             params={"date": "2026-03-07"}).json()
        assert one_day["overview"]["total_scans"] == 3

        listed = client.get("/api/manage-qr-verification/attendance", headers=headers,
                            params={"search": "asha", "sort_by": "date", "sort_order": "desc"}).json()
        assert [a["date"] for a in listed] == ["2026-03-08", "2026-03-07", "2026-03-06"]

        offline = client.get("/api/manage-qr-verification/attendance/stats", headers=headers,
                             params={"offline_only": "true"}).json()
        assert offline["total"] == 1

    def test_bad_sort_is_422(self, client, store):
        from conftest import auth, make_admin

        make_admin(store, "admin-1", ["manage_qr_verification"])
        resp = client.get("/api/manage-qr-verification/attendance", headers=auth("admin-1"),
                          params={"sort_by": "volunteer"})
        assert resp.status_code == 422
