"""
synapse.services.attendance_insights — Attendance Filters & Insights
=====================================================================

Pure functions over lists of :class:`~synapse.schemas.Attendance`.  The
attendance dashboard narrows records with :func:`apply_filters` and
summarises them with :func:`generate_insights`:

* peak scan hours and busiest weekdays (UTC, from ``scanned_at``)
* average scans per festival date and the trend between the earlier and
  later half of those dates
* top volunteers with their scan rate
* repeat attendees (present on more than one date)
* anomalies: a high share of offline scans, or duplicate records for the
  same person on the same date
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

from synapse.schemas import Attendance

logger = logging.getLogger(__name__)

SearchField = Literal["synapse_id", "display_name", "email", "college"]
SEARCH_FIELDS: tuple[SearchField, ...] = ("synapse_id", "display_name", "email", "college")

# Below this relative change (percent) the trend is reported as stable.
TREND_THRESHOLD = 5
OFFLINE_WARN_PERCENT = 30
OFFLINE_HIGH_PERCENT = 50
DUPLICATE_WARN_RATIO = 0.1


class AttendanceFilter(BaseModel):
    """Criteria for narrowing attendance records.  Every field is optional."""

    search: str = ""
    search_fields: list[SearchField] = Field(default_factory=lambda: list(SEARCH_FIELDS))
    date_from: str | None = None
    date_to: str | None = None
    scanned_by: str | None = None
    registration_id: str | None = None
    registration_type: Literal["daypass", "competition", "event"] | None = None
    offline_only: bool = False
    sort_by: Literal["date", "display_name", "scanned_at"] | None = None
    sort_order: Literal["asc", "desc"] = "asc"


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------
def _matches_search(record: Attendance, query: str, fields: list[str]) -> bool:
    return any(query in (getattr(record, f) or "").lower() for f in fields)


def _sort_key(sort_by: str):
    if sort_by == "display_name":
        return lambda a: a.display_name.lower()
    if sort_by == "scanned_at":
        return lambda a: _timestamp(a.scanned_at)
    return lambda a: a.date


def apply_filters(records: list[Attendance], criteria: AttendanceFilter) -> list[Attendance]:
    """Records matching every criterion, in the requested order.

    ``search`` is a case-insensitive substring match against any of
    ``search_fields``; ``date_from`` / ``date_to`` are inclusive.
    """
    found = list(records)
    query = criteria.search.strip().lower()
    if query:
        found = [a for a in found if _matches_search(a, query, criteria.search_fields)]
    if criteria.date_from:
        found = [a for a in found if a.date >= criteria.date_from]
    if criteria.date_to:
        found = [a for a in found if a.date <= criteria.date_to]
    if criteria.scanned_by:
        found = [a for a in found if a.scanned_by == criteria.scanned_by]
    if criteria.registration_id:
        found = [a for a in found if any(r.id == criteria.registration_id for r in a.registrations)]
    if criteria.registration_type:
        found = [
            a for a in found
            if any(r.type == criteria.registration_type for r in a.registrations)
        ]
    if criteria.offline_only:
        found = [a for a in found if a.offline_scanned]
    if criteria.sort_by:
        found.sort(key=_sort_key(criteria.sort_by), reverse=criteria.sort_order == "desc")
    return found


# ---------------------------------------------------------------------------
# Time patterns
# ---------------------------------------------------------------------------
def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        logger.warning("Ignoring unparseable scan time %r", value)
        return None
    # Naive times are taken as UTC.
    return parsed.replace(tzinfo=UTC) if parsed.tzinfo is None else parsed.astimezone(UTC)


def _timestamp(value: str | None) -> float:
    parsed = _parse_time(value)
    return parsed.timestamp() if parsed is not None else 0.0


def _scan_times(records: list[Attendance]) -> list[datetime]:
    return [t for t in (_parse_time(a.scanned_at) for a in records) if t is not None]


def get_peak_hours(records: list[Attendance]) -> list[dict]:
    """``[{"hour": 10, "count": 42}, ...]``, busiest first."""
    counts = Counter(t.hour for t in _scan_times(records))
    return [{"hour": h, "count": c} for h, c in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))]


def get_busiest_days(records: list[Attendance]) -> list[dict]:
    """``[{"day": "Friday", "count": 42}, ...]``, busiest first."""
    counts = Counter(t.strftime("%A") for t in _scan_times(records))
    return [{"day": d, "count": c} for d, c in counts.most_common()]


def get_average_per_day(records: list[Attendance]) -> int:
    if not records:
        return 0
    return round(len(records) / len({a.date for a in records}))


def get_attendance_trend(records: list[Attendance]) -> dict:
    """Compare the mean daily count of the later half of dates with the earlier half.

    Returns ``{"trend": "increasing" | "decreasing" | "stable", "change": pct}``.
    """
    per_date = Counter(a.date for a in records)
    dates = sorted(per_date)
    if len(dates) < 2:
        return {"trend": "stable", "change": 0}
    half = len(dates) // 2
    earlier = [per_date[d] for d in dates[:half]]
    recent = [per_date[d] for d in dates[half:]]
    earlier_avg = sum(earlier) / len(earlier)
    recent_avg = sum(recent) / len(recent)
    change = (recent_avg - earlier_avg) / earlier_avg * 100
    if abs(change) < TREND_THRESHOLD:
        return {"trend": "stable", "change": 0}
    return {"trend": "increasing" if change > 0 else "decreasing", "change": round(abs(change))}


def predict_next_period(records: list[Attendance]) -> int:
    """Average daily scans, scaled by the current trend."""
    average = get_average_per_day(records)
    trend = get_attendance_trend(records)
    if trend["trend"] == "increasing":
        return round(average * (1 + trend["change"] / 100))
    if trend["trend"] == "decreasing":
        return round(average * (1 - trend["change"] / 100))
    return average


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------
def get_volunteer_efficiency(records: list[Attendance], volunteer_synapse_id: str) -> int:
    """Scans per hour between the volunteer's first and last scan (0 if under two)."""
    times = sorted(_scan_times([a for a in records if a.scanned_by == volunteer_synapse_id]))
    if len(times) < 2:
        return 0
    hours = (times[-1] - times[0]).total_seconds() / 3600
    return round(len(times) / hours) if hours > 0 else 0


def get_top_volunteers(records: list[Attendance], limit: int = 5) -> list[dict]:
    names: dict[str, str] = {}
    counts: Counter[str] = Counter()
    for a in records:
        if not a.scanned_by:
            continue
        names.setdefault(a.scanned_by, a.scanned_by_name or "Unknown")
        counts[a.scanned_by] += 1
    return [
        {
            "synapse_id": sid,
            "name": names[sid],
            "scans": scans,
            "scans_per_hour": get_volunteer_efficiency(records, sid),
        }
        for sid, scans in counts.most_common(limit)
    ]


def get_repeat_attendees(records: list[Attendance]) -> list[dict]:
    """Attendees with more than one record, most frequent first."""
    names: dict[str, str] = {}
    dates: dict[str, list[str]] = defaultdict(list)
    for a in records:
        names.setdefault(a.user_id, a.display_name)
        dates[a.user_id].append(a.date)
    repeat = [
        {"user_id": uid, "display_name": names[uid], "attendance_count": len(seen),
         "dates": sorted(set(seen))}
        for uid, seen in dates.items() if len(seen) > 1
    ]
    repeat.sort(key=lambda r: (-r["attendance_count"], r["display_name"]))
    return repeat


# ---------------------------------------------------------------------------
# Anomalies
# ---------------------------------------------------------------------------
def detect_anomalies(records: list[Attendance]) -> list[dict]:
    if not records:
        return []
    anomalies = []

    offline_percent = sum(1 for a in records if a.offline_scanned) / len(records) * 100
    if offline_percent > OFFLINE_WARN_PERCENT:
        anomalies.append({
            "type": "high_offline_rate",
            "description": f"{offline_percent:.1f}% of scans were offline",
            "severity": "high" if offline_percent > OFFLINE_HIGH_PERCENT else "medium",
        })

    per_person_day = Counter((a.user_id, a.date) for a in records)
    duplicates = sum(n - 1 for n in per_person_day.values())
    if duplicates > len(records) * DUPLICATE_WARN_RATIO:
        anomalies.append({
            "type": "high_duplicate_rate",
            "description": f"{duplicates} duplicate attendance records detected",
            "severity": "high",
        })
    return anomalies


def generate_insights(records: list[Attendance]) -> dict:
    peak_hours = get_peak_hours(records)
    busiest_days = get_busiest_days(records)
    return {
        "overview": {
            "total_scans": len(records),
            "average_per_day": get_average_per_day(records),
            "unique_attendees": len({a.user_id for a in records}),
            "trend": get_attendance_trend(records),
        },
        "time": {
            "peak_hour": peak_hours[0]["hour"] if peak_hours else None,
            "busiest_day": busiest_days[0]["day"] if busiest_days else None,
            "peak_hours": peak_hours,
            "busiest_days": busiest_days,
        },
        "volunteers": get_top_volunteers(records, 3),
        "repeat_attendees": get_repeat_attendees(records),
        "anomalies": detect_anomalies(records),
        "prediction": predict_next_period(records),
    }
