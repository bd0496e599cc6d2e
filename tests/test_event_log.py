from __future__ import annotations

from datetime import date

import pytest

from floortrack.exceptions import StateConflictError
from floortrack.models import TimeEntry
from floortrack.schemas.attendance import EntryType, WorkMode
from floortrack.services.event_log import EventLog
from floortrack.utils.datetime_utils import ensure_utc

from .conftest import utc

IST = -330


@pytest.fixture
def log(db, locks):
    return EventLog(db, locks)


def entry_types(db, user):
    entries = db.query(TimeEntry).filter(TimeEntry.user_id == user.id).order_by(
        TimeEntry.timestamp, TimeEntry.id
    ).all()
    return [e.entry_type for e in entries]


def test_append_full_day(log, db, user):
    log.append(user.id, EntryType.CLOCK_IN, 0, timestamp=utc(2026, 10, 14, 9, 0))
    log.append(user.id, EntryType.BREAK_START, 0, timestamp=utc(2026, 10, 14, 12, 0))
    log.append(user.id, EntryType.BREAK_END, 0, timestamp=utc(2026, 10, 14, 12, 30))
    log.append(user.id, EntryType.CLOCK_OUT, 0, timestamp=utc(2026, 10, 14, 17, 0))

    assert entry_types(db, user) == ["clock_in", "break_start", "break_end", "clock_out"]


def test_work_mode_only_on_clock_in(log, user):
    clock_in = log.append(user.id, EntryType.CLOCK_IN, 0, timestamp=utc(2026, 10, 14, 9, 0), work_mode=WorkMode.REMOTE)
    break_start = log.append(user.id, EntryType.BREAK_START, 0, timestamp=utc(2026, 10, 14, 10, 0), work_mode=WorkMode.REMOTE)
    assert clock_in.work_mode == "remote"
    assert break_start.work_mode is None


def test_clock_in_defaults_to_office(log, user):
    entry = log.append(user.id, EntryType.CLOCK_IN, 0, timestamp=utc(2026, 10, 14, 9, 0))
    assert entry.work_mode == "office"


def test_double_break_start_conflicts_without_appending(log, db, user):
    log.append(user.id, EntryType.CLOCK_IN, 0, timestamp=utc(2026, 10, 14, 9, 0))
    log.append(user.id, EntryType.BREAK_START, 0, timestamp=utc(2026, 10, 14, 12, 0))

    with pytest.raises(StateConflictError, match="Already on break"):
        log.append(user.id, EntryType.BREAK_START, 0, timestamp=utc(2026, 10, 14, 12, 5))

    assert entry_types(db, user) == ["clock_in", "break_start"]


def test_double_clock_in_conflicts(log, db, user):
    log.append(user.id, EntryType.CLOCK_IN, 0, timestamp=utc(2026, 10, 14, 9, 0))
    with pytest.raises(StateConflictError, match="Already logged in"):
        log.append(user.id, EntryType.CLOCK_IN, 0, timestamp=utc(2026, 10, 14, 9, 1))
    assert entry_types(db, user) == ["clock_in"]


def test_clock_out_on_break_closes_break_first(log, db, user):
    log.append(user.id, EntryType.CLOCK_IN, 0, timestamp=utc(2026, 10, 14, 9, 0))
    log.append(user.id, EntryType.BREAK_START, 0, timestamp=utc(2026, 10, 14, 16, 0))
    log.append(user.id, EntryType.CLOCK_OUT, 0, timestamp=utc(2026, 10, 14, 16, 30))

    entries = log.list_for_local_date(user.id, date(2026, 10, 14), 0)
    assert [e.entry_type for e in entries] == ["clock_in", "break_start", "break_end", "clock_out"]
    break_end, clock_out = entries[2], entries[3]
    assert break_end.is_auto is False
    assert clock_out.is_auto is False
    assert ensure_utc(break_end.timestamp) == ensure_utc(clock_out.timestamp) == utc(2026, 10, 14, 16, 30)


def test_append_earlier_than_last_event_is_rejected(log, user):
    log.append(user.id, EntryType.CLOCK_IN, 0, timestamp=utc(2026, 10, 14, 9, 0))
    with pytest.raises(StateConflictError, match="earlier than the last entry"):
        log.append(user.id, EntryType.CLOCK_OUT, 0, timestamp=utc(2026, 10, 14, 8, 0))


def test_transitions_are_checked_within_the_local_day(log, user):
    # 20:00 UTC is already 2026-10-15 in IST
    log.append(user.id, EntryType.CLOCK_IN, IST, timestamp=utc(2026, 10, 14, 20, 0))

    # 18:00 UTC is still 2026-10-14 in IST, a day with no events
    with pytest.raises(StateConflictError, match="You are not logged in"):
        log.append(user.id, EntryType.CLOCK_OUT, IST, timestamp=utc(2026, 10, 14, 18, 0))

    assert len(log.list_for_local_date(user.id, date(2026, 10, 15), IST)) == 1
    assert log.list_for_local_date(user.id, date(2026, 10, 14), IST) == []


def test_users_are_independent(log, user, other_user):
    log.append(user.id, EntryType.CLOCK_IN, 0, timestamp=utc(2026, 10, 14, 9, 0))
    log.append(other_user.id, EntryType.CLOCK_IN, 0, timestamp=utc(2026, 10, 14, 9, 0))
    assert log.count_for_local_date(user.id, date(2026, 10, 14), 0) == 1
    assert log.count_for_local_date(other_user.id, date(2026, 10, 14), 0) == 1


def test_list_for_local_range_single_query_ordered(log, user, add_entries):
    add_entries(user, [
        ("clock_in", utc(2026, 10, 12, 9, 0)),
        ("clock_out", utc(2026, 10, 12, 17, 0)),
        ("clock_in", utc(2026, 10, 14, 9, 0)),
        ("clock_in", utc(2026, 10, 20, 9, 0)),
    ])
    entries = log.list_for_local_range(user.id, date(2026, 10, 12), date(2026, 10, 14), 0)
    assert [ensure_utc(e.timestamp) for e in entries] == [
        utc(2026, 10, 12, 9, 0), utc(2026, 10, 12, 17, 0), utc(2026, 10, 14, 9, 0)
    ]
    assert log.list_for_local_range(user.id, date(2026, 10, 14), date(2026, 10, 12), 0) == []


def test_last_and_latest_entry(log, user, add_entries):
    add_entries(user, [
        ("clock_in", utc(2026, 10, 12, 9, 0)),
        ("clock_out", utc(2026, 10, 12, 17, 0)),
        ("clock_in", utc(2026, 10, 13, 9, 0)),
    ])
    assert log.last_for_local_date(user.id, date(2026, 10, 12), 0).entry_type == "clock_out"
    assert log.last_for_local_date(user.id, date(2026, 10, 11), 0) is None
    assert ensure_utc(log.latest_entry(user.id).timestamp) == utc(2026, 10, 13, 9, 0)


def test_insert_many_validates_the_whole_set(log, db, user):
    with pytest.raises(StateConflictError):
        log.insert_many(user.id, [
            (EntryType.CLOCK_IN, utc(2026, 10, 13, 9, 0), WorkMode.OFFICE),
            (EntryType.BREAK_END, utc(2026, 10, 13, 10, 0), None),
        ])
    assert entry_types(db, user) == []

    created = log.insert_many(user.id, [
        (EntryType.CLOCK_IN, utc(2026, 10, 13, 9, 0), WorkMode.REMOTE),
        (EntryType.BREAK_START, utc(2026, 10, 13, 12, 0), None),
        (EntryType.BREAK_END, utc(2026, 10, 13, 12, 30), None),
    ])
    assert len(created) == 3
    assert entry_types(db, user) == ["clock_in", "break_start", "break_end"]


def test_delete_for_local_date(log, user, add_entries):
    add_entries(user, [
        ("clock_in", utc(2026, 10, 13, 9, 0)),
        ("clock_out", utc(2026, 10, 13, 17, 0)),
        ("clock_in", utc(2026, 10, 14, 9, 0)),
    ])
    assert log.delete_for_local_date(user.id, date(2026, 10, 13), 0) == 2
    assert log.delete_for_local_date(user.id, date(2026, 10, 13), 0) == 0
    assert log.count_for_local_date(user.id, date(2026, 10, 14), 0) == 1


def test_writing_rolls_back_on_error(log, db, user):
    with pytest.raises(RuntimeError):
        with log.writing(user.id):
            log.append(user.id, EntryType.CLOCK_IN, 0, timestamp=utc(2026, 10, 14, 9, 0))
            raise RuntimeError("boom")
    assert entry_types(db, user) == []
