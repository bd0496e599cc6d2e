from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import datetime, date, timezone
from enum import Enum

class EntryType(str, Enum):
    CLOCK_IN = "clock_in"
    BREAK_START = "break_start"
    BREAK_END = "break_end"
    CLOCK_OUT = "clock_out"

class WorkMode(str, Enum):
    OFFICE = "office"
    REMOTE = "remote"

class ClockState(str, Enum):
    LOGGED_OUT = "logged_out"
    ON_FLOOR = "on_floor"
    ON_BREAK = "on_break"

class CamelModel(BaseModel):
    """Wire models whose JSON keys are camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class TimeEntryResponse(BaseModel):
    id: int
    user_id: int
    entry_type: EntryType
    timestamp: datetime
    work_mode: Optional[WorkMode] = None
    is_auto: bool = False

    model_config = ConfigDict(from_attributes=True)

    @field_validator("timestamp")
    @classmethod
    def timestamp_as_utc(cls, v: datetime) -> datetime:
        # SQLite hands back naive UTC wall-clock values
        return v.replace(tzinfo=timezone.utc) if v.tzinfo is None else v.astimezone(timezone.utc)

class DailySummaryResponse(CamelModel):
    date: date
    floor_minutes: int = 0
    break_minutes: int = 0
    total_minutes: int = 0
    work_mode: WorkMode = WorkMode.OFFICE
    state: Optional[ClockState] = None

class StatusResponse(CamelModel):
    state: ClockState
    floor_minutes: int = 0
    break_minutes: int = 0
    total_minutes: int = 0
    work_mode: WorkMode = WorkMode.OFFICE
    entries: List[TimeEntryResponse] = []
    is_weekend: bool = False

class ClockInRequest(BaseModel):
    work_mode: WorkMode = WorkMode.OFFICE

class BreakWindow(BaseModel):
    start: Optional[str] = None
    end: Optional[str] = None

class ManualEntryRequest(BaseModel):
    """Local HH:MM times for one local date; format checks happen in the service."""
    date: Optional[str] = None
    clock_in: Optional[str] = None
    clock_out: Optional[str] = None
    breaks: List[BreakWindow] = []
    work_mode: WorkMode = WorkMode.OFFICE
    timezone_offset: Optional[int] = Field(default=None, alias="timezoneOffset")

    model_config = ConfigDict(populate_by_name=True)

class WeeklyDay(CamelModel):
    date: date
    day: str
    hours: float = 0.0
    is_today: bool = False

class WeeklyResponse(BaseModel):
    days: List[WeeklyDay]

class WidgetsResponse(CamelModel):
    avg_floor_minutes: int = 0
    punctuality_percent: int = 0
    attendance_percent: int = 0
    target_met_days: int = 0
    work_days: int = 0
    total_weekdays: int = 0
    leave_count: int = 0
    office_days: int = 0
    remote_days: int = 0

class AnalyticsTotalsResponse(CamelModel):
    days: int
    active_days: int = 0
    total_floor_minutes: int = 0
    total_break_minutes: int = 0
    avg_floor_minutes: int = 0

class MessageResponse(BaseModel):
    message: str

class DeleteDayResponse(BaseModel):
    message: str
    deleted: int = 0
