from .attendance import (
    EntryType, WorkMode, ClockState,
    TimeEntryResponse, DailySummaryResponse, StatusResponse,
    ClockInRequest, BreakWindow, ManualEntryRequest,
    WeeklyDay, WeeklyResponse, WidgetsResponse, AnalyticsTotalsResponse,
    MessageResponse, DeleteDayResponse
)

__all__ = [
    "EntryType", "WorkMode", "ClockState",
    "TimeEntryResponse", "DailySummaryResponse", "StatusResponse",
    "ClockInRequest", "BreakWindow", "ManualEntryRequest",
    "WeeklyDay", "WeeklyResponse", "WidgetsResponse", "AnalyticsTotalsResponse",
    "MessageResponse", "DeleteDayResponse"
]
