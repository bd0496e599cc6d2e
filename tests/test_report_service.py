from __future__ import annotations

from datetime import date

import pytest

from floortrack.config import settings
from floortrack.exceptions import ValidationError
from floortrack.schemas.attendance import ClockState, WorkMode
from floortrack.services.report_service import ReportService, round_half_up

from .conftest import NOW, utc


@pytest.fixture
def service(db):
    return ReportService(db)


@pytest.fixture
def week(user, add_entries):
    """Mon 2026-10-12 office 09:30-18:00 with a 30 minute break, Tue remote 10:30-15:00, Wed clocked in 09:00."""
    add_entries(user, [
        ("clock_in", utc(2026, 10, 12, 9, 30)),
        ("break_start", utc(2026, 10, 12, 13, 0)),
        ("break_end", utc(2026, 10, 12, 13, 30)),
        ("clock_out", utc(2026, 10, 12, 18, 0)),
    ])
    add_entries(user, [
        ("clock_in", utc(2026, 10, 13, 10, 30)),
        ("clock_out", utc(2026, 10, 13, 15, 0)),
    ], work_mode="remote")
    add_entries(user, [("clock_in", utc(2026, 10, 14, 9, 0))])


def test_aggregate_fetches_once_for_the_whole_range(service, user, week, monkeypatch):
    calls = []
    original = service.event_log.list_for_local_range

    def counting(*args, **kwargs):
        calls.append(args)
        return original(*args, **kwargs)

    def per_day(*args, **kwargs):
        raise AssertionError("per-day fetch used by aggregate")

    monkeypatch.setattr(service.event_log, "list_for_local_range", counting)
    monkeypatch.setattr(service.event_log, "list_for_local_date", per_day)

    summaries = service.aggregate(user.id, date(2026, 10, 8), date(2026, 10, 14), 0, NOW)

    assert len(calls) == 1
    assert len(summaries) == 7


def test_aggregate_includes_empty_days_and_extends_only_today(service, user, week):
    summaries = service.aggregate(user.id, date(2026, 10, 10), date(2026, 10, 14), 0, NOW)
    by_date = {s.date: s for s in summaries}

    assert [s.date for s in summaries] == [
        date(2026, 10, 10), date(2026, 10, 11), date(2026, 10, 12), date(2026, 10, 13), date(2026, 10, 14)
    ]
    assert by_date[date(2026, 10, 10)].floor_minutes == 0
    assert by_date[date(2026, 10, 12)].floor_minutes == 480
    assert by_date[date(2026, 10, 12)].summary.break_minutes == 30
    assert by_date[date(2026, 10, 13)].summary.effective_work_mode == WorkMode.REMOTE
    # Today runs until NOW (12:00)
    assert by_date[date(2026, 10, 14)].floor_minutes == 180
    assert by_date[date(2026, 10, 14)].summary.state == ClockState.ON_FLOOR
    assert by_date[date(2026, 10, 12)].summary.state is None


def test_to_dict_only_carries_state_for_today(service, user, week):
    summaries = service.aggregate(user.id, date(2026, 10, 13), date(2026, 10, 14), 0, NOW)
    assert "state" not in summaries[0].to_dict(include_state=True)
    assert summaries[1].to_dict(include_state=True)["state"] == ClockState.ON_FLOOR
    assert "state" not in summaries[1].to_dict()


def test_status(service, user, week):
    status = service.status(user.id, 0, NOW)
    assert status["state"] == ClockState.ON_FLOOR
    assert status["floor_minutes"] == 180
    assert status["total_minutes"] == 180
    assert status["is_weekend"] is False
    assert len(status["entries"]) == 1


def test_status_for_empty_weekend_day(service, user):
    status = service.status(user.id, 0, utc(2026, 10, 17, 12, 0))
    assert status["state"] == ClockState.LOGGED_OUT
    assert status["entries"] == []
    assert status["is_weekend"] is True


def test_history_defaults_and_explicit_range(service, user, week):
    default = service.history(user.id, 0, now=NOW)
    assert default[0].date == date(2026, 9, 14)
    assert default[-1].date == date(2026, 10, 14)

    explicit = service.history(user.id, 0, "2026-10-12", "2026-10-13", NOW)
    assert [s.floor_minutes for s in explicit] == [480, 270]


@pytest.mark.parametrize("from_str,to_str,message", [
    ("2026-10-14", "2026-10-01", "must not be after"),
    ("2026/10/01", None, "Invalid date format"),
    ("2024-01-01", "2026-10-14", "cannot exceed"),
])
def test_history_rejects_bad_ranges(service, user, from_str, to_str, message):
    with pytest.raises(ValidationError, match=message):
        service.history(user.id, 0, from_str, to_str, NOW)


def test_analytics_window(service, user, week):
    summaries = service.analytics(user.id, 0, 7, NOW)
    assert len(summaries) == 7
    assert summaries[0].date == date(2026, 10, 8)
    assert summaries[-1].date == date(2026, 10, 14)

    assert len(service.analytics(user.id, 0, None, NOW)) == settings.DEFAULT_ANALYTICS_DAYS


@pytest.mark.parametrize("days", [0, -3, 10000])
def test_analytics_rejects_bad_days(service, user, days):
    with pytest.raises(ValidationError):
        service.analytics(user.id, 0, days, NOW)


def test_analytics_totals(service, user, week):
    totals = service.analytics_totals(user.id, 0, 7, NOW)
    assert totals == {
        "days": 7,
        "active_days": 3,
        "total_floor_minutes": 480 + 270 + 180,
        "total_break_minutes": 30,
        "avg_floor_minutes": 310,
    }


def test_weekly(service, user, week):
    days = service.weekly(user.id, 0, NOW)["days"]
    assert [d["day"] for d in days] == ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    assert days[0]["date"] == date(2026, 10, 12)
    assert [d["hours"] for d in days[:3]] == [8.0, 4.5, 3.0]
    assert [d["is_today"] for d in days] == [False, False, True, False, False, False, False]
    assert days[3]["hours"] == 0


def test_widgets(service, user, week, add_leave):
    add_leave(user, date(2026, 10, 9))
    add_leave(user, date(2026, 10, 13), "sick")

    widgets = service.widgets(user.id, 0, NOW)

    assert widgets["work_days"] == 3
    assert widgets["avg_floor_minutes"] == 310
    # 09:30 and 09:00 are on time, 10:30 is late
    assert widgets["punctuality_percent"] == 67
    assert widgets["target_met_days"] == 1
    assert widgets["office_days"] == 2
    assert widgets["remote_days"] == 1
    assert widgets["total_weekdays"] == 10
    # A worked day with a leave counts twice by default
    assert widgets["leave_count"] == 2
    assert widgets["attendance_percent"] == 50


def test_widgets_dedupe_leave_overlap(service, user, week, add_leave, monkeypatch):
    monkeypatch.setattr(settings, "ATTENDANCE_LEAVE_OVERLAP", "dedupe")
    add_leave(user, date(2026, 10, 9))
    add_leave(user, date(2026, 10, 13))

    widgets = service.widgets(user.id, 0, NOW)

    assert widgets["leave_count"] == 1
    assert widgets["attendance_percent"] == 40


def test_widgets_punctuality_ignores_seconds(service, user, add_entries):
    add_entries(user, [
        ("clock_in", utc(2026, 10, 13, 10, 0, 45)),
        ("clock_out", utc(2026, 10, 13, 18, 0)),
    ])
    widgets = service.widgets(user.id, 0, NOW)
    assert widgets["punctuality_percent"] == 100


def test_widgets_empty(service, user):
    widgets = service.widgets(user.id, 0, NOW)
    assert widgets["work_days"] == 0
    assert widgets["avg_floor_minutes"] == 0
    assert widgets["punctuality_percent"] == 0
    assert widgets["attendance_percent"] == 0


def test_widgets_use_local_dates(service, user, add_entries):
    # 2026-10-13 03:30 UTC is 09:00 in IST
    add_entries(user, [
        ("clock_in", utc(2026, 10, 13, 3, 30)),
        ("clock_out", utc(2026, 10, 13, 12, 30)),
    ])
    widgets = service.widgets(user.id, -330, NOW)
    assert widgets["work_days"] == 1
    assert widgets["punctuality_percent"] == 100
    assert widgets["target_met_days"] == 1


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(66.666) == 67
    assert round_half_up(0.49) == 0
