"""
Tracker API routes: clock actions, live status and the aggregated views.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status, Query, Header, Response
from sqlalchemy.orm import Session

from floortrack.config import settings
from floortrack.database import get_db
from floortrack.exceptions import TrackerError
from floortrack.models.user import User
from floortrack.schemas.attendance import (
    AnalyticsTotalsResponse,
    ClockInRequest,
    DailySummaryResponse,
    DeleteDayResponse,
    ManualEntryRequest,
    MessageResponse,
    StatusResponse,
    TimeEntryResponse,
    WeeklyDay,
    WeeklyResponse,
    WidgetsResponse,
    WorkMode
)
from floortrack.services.report_service import ReportService
from floortrack.services.tracker_service import TrackerService
from floortrack.utils.auth import get_current_active_user
from floortrack.utils.datetime_utils import resolve_offset, utc_now
from floortrack.utils.validators import parse_days, parse_offset

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tracker", tags=["tracker"])

FALLBACK_HEADER = "X-Timezone-Fallback"


@dataclass
class TimezoneContext:
    """Offset used for this request; ``supplied`` is the raw client value."""
    offset: int
    supplied: Optional[int]

    @property
    def degraded(self) -> bool:
        return self.supplied is None


def get_now() -> datetime:
    """Current instant; overridable for deterministic tests."""
    return utc_now()


def get_timezone(
    response: Response,
    x_timezone_offset: Optional[str] = Header(None)
) -> TimezoneContext:
    """
    Resolve the client's offset from ``x-timezone-offset``.

    Without the header the server-local offset is used and the response is
    flagged with ``X-Timezone-Fallback: server-local``.
    """
    try:
        supplied = parse_offset(x_timezone_offset)
    except TrackerError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    offset, degraded = resolve_offset(supplied)
    if degraded:
        response.headers[FALLBACK_HEADER] = "server-local"
    return TimezoneContext(offset=offset, supplied=supplied)


def _bad_request(e: TrackerError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def _server_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"Failed to {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}"
    )


@router.get("/status", response_model=StatusResponse, summary="Current clock status")
def get_status(
    tz: TimezoneContext = Depends(get_timezone),
    now: datetime = Depends(get_now),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """
    Live status for the caller's local today.

    - Open intervals are extended to now
    - ``isWeekend`` reflects the caller's local date
    """
    try:
        data = ReportService(db).status(current_user.id, tz.offset, now)
        data["entries"] = [TimeEntryResponse.model_validate(e) for e in data["entries"]]
        return StatusResponse(**data)
    except TrackerError as e:
        raise _bad_request(e)
    except Exception as e:
        raise _server_error("get status", e)


@router.post("/clock-in", response_model=MessageResponse, summary="Clock in")
def clock_in(
    payload: Optional[ClockInRequest] = None,
    tz: TimezoneContext = Depends(get_timezone),
    now: datetime = Depends(get_now),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """
    Start today's session.

    - Rejected on the caller's local weekend
    - Rejected while already logged in
    - Stores the caller's offset for automatic clock-out
    """
    work_mode = payload.work_mode if payload else WorkMode(settings.DEFAULT_WORK_MODE)
    try:
        TrackerService(db).clock_in(
            current_user, tz.offset, work_mode=work_mode, now=now, remember_offset=not tz.degraded
        )
        return MessageResponse(message="Logged in successfully")
    except TrackerError as e:
        raise _bad_request(e)
    except Exception as e:
        raise _server_error("clock in", e)


@router.post("/break-start", response_model=MessageResponse, summary="Start a break")
def break_start(
    tz: TimezoneContext = Depends(get_timezone),
    now: datetime = Depends(get_now),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        TrackerService(db).break_start(current_user, tz.offset, now=now)
        return MessageResponse(message="Break started")
    except TrackerError as e:
        raise _bad_request(e)
    except Exception as e:
        raise _server_error("start break", e)


@router.post("/break-end", response_model=MessageResponse, summary="End a break")
def break_end(
    tz: TimezoneContext = Depends(get_timezone),
    now: datetime = Depends(get_now),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        TrackerService(db).break_end(current_user, tz.offset, now=now)
        return MessageResponse(message="Break ended, back to work!")
    except TrackerError as e:
        raise _bad_request(e)
    except Exception as e:
        raise _server_error("end break", e)


@router.post("/clock-out", response_model=MessageResponse, summary="Clock out")
def clock_out(
    tz: TimezoneContext = Depends(get_timezone),
    now: datetime = Depends(get_now),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """
    End today's session; an open break is closed at the same instant first.
    """
    try:
        TrackerService(db).clock_out(current_user, tz.offset, now=now)
        return MessageResponse(message="Logged out. See you tomorrow!")
    except TrackerError as e:
        raise _bad_request(e)
    except Exception as e:
        raise _server_error("clock out", e)


@router.get(
    "/history",
    response_model=List[DailySummaryResponse],
    response_model_exclude_none=True,
    summary="Daily summaries for a date range"
)
def get_history(
    from_: Optional[str] = Query(None, alias="from", description="YYYY-MM-DD, defaults to 30 days ago"),
    to: Optional[str] = Query(None, description="YYYY-MM-DD, defaults to today"),
    tz: TimezoneContext = Depends(get_timezone),
    now: datetime = Depends(get_now),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        summaries = ReportService(db).history(current_user.id, tz.offset, from_, to, now)
        return [DailySummaryResponse(**s.to_dict(include_state=True)) for s in summaries]
    except TrackerError as e:
        raise _bad_request(e)
    except Exception as e:
        raise _server_error("get history", e)


@router.get(
    "/analytics",
    response_model=List[DailySummaryResponse],
    response_model_exclude_none=True,
    summary="Daily summaries for the last N days"
)
def get_analytics(
    days: Optional[str] = Query(None, description="Window length, defaults to 7"),
    tz: TimezoneContext = Depends(get_timezone),
    now: datetime = Depends(get_now),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """
    Fixed-length series ending today, oldest first; empty days are zero.
    """
    try:
        summaries = ReportService(db).analytics(current_user.id, tz.offset, parse_days(days), now)
        return [DailySummaryResponse(**s.to_dict(include_state=True)) for s in summaries]
    except TrackerError as e:
        raise _bad_request(e)
    except Exception as e:
        raise _server_error("get analytics", e)


@router.get("/analytics/totals", response_model=AnalyticsTotalsResponse, summary="Totals for the last N days")
def get_analytics_totals(
    days: Optional[str] = Query(None, description="Window length, defaults to 7"),
    tz: TimezoneContext = Depends(get_timezone),
    now: datetime = Depends(get_now),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        return AnalyticsTotalsResponse(**ReportService(db).analytics_totals(current_user.id, tz.offset, parse_days(days), now))
    except TrackerError as e:
        raise _bad_request(e)
    except Exception as e:
        raise _server_error("get analytics totals", e)


@router.get("/weekly", response_model=WeeklyResponse, summary="Floor hours for the current week")
def get_weekly(
    tz: TimezoneContext = Depends(get_timezone),
    now: datetime = Depends(get_now),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        data = ReportService(db).weekly(current_user.id, tz.offset, now)
        return WeeklyResponse(days=[WeeklyDay(**d) for d in data["days"]])
    except TrackerError as e:
        raise _bad_request(e)
    except Exception as e:
        raise _server_error("get weekly data", e)


@router.get("/widgets", response_model=WidgetsResponse, summary="Dashboard widgets")
def get_widgets(
    tz: TimezoneContext = Depends(get_timezone),
    now: datetime = Depends(get_now),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        return WidgetsResponse(**ReportService(db).widgets(current_user.id, tz.offset, now))
    except TrackerError as e:
        raise _bad_request(e)
    except Exception as e:
        raise _server_error("get widgets", e)


@router.post("/manual-entry", response_model=MessageResponse, summary="Add a full day manually")
def add_manual_entry(
    payload: ManualEntryRequest,
    tz: TimezoneContext = Depends(get_timezone),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """
    Create clock-in, breaks and an optional clock-out for one local date.

    - Times are local ``HH:MM`` converted with ``timezoneOffset``
    - Rejected when the date already has entries or a leave
    """
    try:
        TrackerService(db).add_manual_entry(current_user, payload, header_offset=tz.supplied)
        return MessageResponse(message="Manual entry added successfully")
    except TrackerError as e:
        raise _bad_request(e)
    except Exception as e:
        raise _server_error("add manual entry", e)


@router.get("/entries/{entry_date}", response_model=List[TimeEntryResponse], summary="Entries for one local date")
def get_entries(
    entry_date: str,
    tz: TimezoneContext = Depends(get_timezone),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    try:
        entries = TrackerService(db).entries_for_day(current_user, entry_date, tz.offset)
        return [TimeEntryResponse.model_validate(e) for e in entries]
    except TrackerError as e:
        raise _bad_request(e)
    except Exception as e:
        raise _server_error("get entries", e)


@router.delete("/entries/{entry_date}", response_model=DeleteDayResponse, summary="Delete all entries for one local date")
def delete_entries(
    entry_date: str,
    tz: TimezoneContext = Depends(get_timezone),
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    """
    Remove a day's entries so it can be re-entered; an empty day deletes 0.
    """
    try:
        deleted = TrackerService(db).delete_day(current_user, entry_date, tz.offset)
        return DeleteDayResponse(message=f"Deleted {deleted} entries for {entry_date}", deleted=deleted)
    except TrackerError as e:
        raise _bad_request(e)
    except Exception as e:
        raise _server_error("delete entries", e)
