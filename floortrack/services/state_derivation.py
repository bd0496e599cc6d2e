"""
Clock state derivation over one local day's ordered events.

Everything here is pure: callers pass the events and the current instant.
The transition table below is the only place that decides which action may
follow which.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from floortrack.config import settings
from floortrack.exceptions import StateConflictError
from floortrack.schemas.attendance import ClockState, EntryType, WorkMode
from floortrack.utils.datetime_utils import ensure_utc, utc_now

# (last event type or None) -> {allowed next type: None, rejected next type: reason}
_NOT_LOGGED_IN = {
    EntryType.CLOCK_IN: None,
    EntryType.BREAK_START: "You must login first",
    EntryType.BREAK_END: "You are not on break",
    EntryType.CLOCK_OUT: "You are not logged in",
}
_ON_FLOOR = {
    EntryType.CLOCK_IN: "Already logged in. Logout first.",
    EntryType.BREAK_START: None,
    EntryType.BREAK_END: "You are not on break",
    EntryType.CLOCK_OUT: None,
}
_ON_BREAK = {
    EntryType.CLOCK_IN: "Already logged in. Logout first.",
    EntryType.BREAK_START: "Already on break",
    EntryType.BREAK_END: None,
    EntryType.CLOCK_OUT: None,
}

TRANSITIONS: Dict[Optional[EntryType], Dict[EntryType, Optional[str]]] = {
    None: _NOT_LOGGED_IN,
    EntryType.CLOCK_OUT: _NOT_LOGGED_IN,
    EntryType.CLOCK_IN: _ON_FLOOR,
    EntryType.BREAK_END: _ON_FLOOR,
    EntryType.BREAK_START: _ON_BREAK,
}


@dataclass
class DaySummary:
    """One local day's derived durations."""
    floor: timedelta = timedelta(0)
    break_time: timedelta = timedelta(0)
    work_mode: Optional[WorkMode] = None
    state: Optional[ClockState] = None
    first_clock_in: Optional[datetime] = None
    entries: List = field(default_factory=list)

    @property
    def floor_minutes(self) -> int:
        return duration_to_minutes(self.floor)

    @property
    def break_minutes(self) -> int:
        return duration_to_minutes(self.break_time)

    @property
    def total_minutes(self) -> int:
        # Sum of the reported parts, so floor + break == total always holds
        return self.floor_minutes + self.break_minutes

    @property
    def has_clock_in(self) -> bool:
        return self.first_clock_in is not None

    @property
    def effective_work_mode(self) -> WorkMode:
        return self.work_mode or WorkMode(settings.DEFAULT_WORK_MODE)


def duration_to_minutes(duration: timedelta) -> int:
    """Round half-up to whole minutes."""
    milliseconds = int(duration.total_seconds() * 1000)
    return (milliseconds + 30000) // 60000


def _entry_type(entry) -> EntryType:
    return EntryType(entry.entry_type)


def check_transition(last_type: Optional[EntryType], new_type: EntryType) -> None:
    """
    Raise StateConflictError when ``new_type`` may not follow ``last_type``.

    ``last_type`` is the type of the last event of the same local day, or
    None for an empty day.
    """
    reason = TRANSITIONS[last_type][new_type]
    if reason is not None:
        raise StateConflictError(reason)


def derive_state(entries: Sequence) -> ClockState:
    """Live state from the last event of the day."""
    if not entries:
        return ClockState.LOGGED_OUT

    last_type = _entry_type(entries[-1])
    if last_type in (EntryType.CLOCK_IN, EntryType.BREAK_END):
        return ClockState.ON_FLOOR
    if last_type == EntryType.BREAK_START:
        return ClockState.ON_BREAK
    return ClockState.LOGGED_OUT


def derive_summary(entries: Sequence, is_open_ended: bool = False, now: Optional[datetime] = None) -> DaySummary:
    """
    Walk one day's ordered events and total floor and break time.

    With ``is_open_ended`` (the day is today) an interval still open after
    the last event runs until ``now``; otherwise it stops at the last event.
    """
    summary = DaySummary(entries=list(entries))
    floor_start: Optional[datetime] = None
    break_start: Optional[datetime] = None

    for entry in entries:
        t = ensure_utc(entry.timestamp)
        entry_type = _entry_type(entry)

        if entry_type == EntryType.CLOCK_IN:
            if floor_start is None:
                floor_start = t
            if summary.first_clock_in is None:
                summary.first_clock_in = t
            if summary.work_mode is None and entry.work_mode:
                summary.work_mode = WorkMode(entry.work_mode)

        elif entry_type == EntryType.BREAK_START:
            if floor_start is not None:
                summary.floor += t - floor_start
                floor_start = None
            break_start = t

        elif entry_type == EntryType.BREAK_END:
            if break_start is not None:
                summary.break_time += t - break_start
                break_start = None
            if floor_start is None:
                floor_start = t

        elif entry_type == EntryType.CLOCK_OUT:
            if break_start is not None:
                summary.break_time += t - break_start
                break_start = None
            if floor_start is not None:
                summary.floor += t - floor_start
                floor_start = None

    if is_open_ended:
        current = ensure_utc(now) if now is not None else utc_now()
        if floor_start is not None and current > floor_start:
            summary.floor += current - floor_start
        if break_start is not None and current > break_start:
            summary.break_time += current - break_start
        summary.state = derive_state(entries)

    return summary


def validate_sequence(entries: Sequence) -> None:
    """
    Check that a whole day follows ``clock_in (break_start break_end)* clock_out?``
    with non-decreasing timestamps.

    Raises:
        StateConflictError: on the first offending event
    """
    last_type: Optional[EntryType] = None
    last_time: Optional[datetime] = None
    for entry in entries:
        t = ensure_utc(entry.timestamp)
        if last_time is not None and t < last_time:
            raise StateConflictError("Entries are out of order")
        check_transition(last_type, _entry_type(entry))
        last_type = _entry_type(entry)
        last_time = t
