"""
Report service layer: per-day aggregation over local date ranges, and the
status, history, analytics, weekly and widget views built on it.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, date, timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from floortrack.config import settings
from floortrack.exceptions import ValidationError
from floortrack.models.leave import LeaveRecord
from floortrack.schemas.attendance import WorkMode
from floortrack.services.event_log import EventLog
from floortrack.services.state_derivation import DaySummary, derive_summary
from floortrack.utils.datetime_utils import (
    WEEKDAY_NAMES, count_weekdays, get_week_start, is_weekend, iter_dates,
    local_date_of, local_today, to_local, utc_now
)
from floortrack.utils.validators import parse_date

logger = logging.getLogger(__name__)


@dataclass
class DatedSummary:
    """DaySummary tagged with its local date."""
    date: date
    summary: DaySummary

    @property
    def floor_minutes(self) -> int:
        return self.summary.floor_minutes

    def to_dict(self, include_state: bool = False) -> Dict:
        data = {
            "date": self.date,
            "floor_minutes": self.summary.floor_minutes,
            "break_minutes": self.summary.break_minutes,
            "total_minutes": self.summary.total_minutes,
            "work_mode": self.summary.effective_work_mode,
        }
        if include_state and self.summary.state is not None:
            data["state"] = self.summary.state
        return data


def round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


class ReportService:
    """報表業務邏輯服務"""

    def __init__(self, db: Session):
        self.db = db
        self.event_log = EventLog(db)

    def bucket_range(self, user_id: int, from_date: date, to_date: date, offset: int) -> "OrderedDict[date, list]":
        """
        單次查詢整個範圍，再依本地日期分組。

        Returns:
            每個本地日期 (含無記錄的日期) 對應的事件列表
        """
        buckets: "OrderedDict[date, list]" = OrderedDict((d, []) for d in iter_dates(from_date, to_date))
        for entry in self.event_log.list_for_local_range(user_id, from_date, to_date, offset):
            local_date = local_date_of(entry.timestamp, offset)
            if local_date in buckets:
                buckets[local_date].append(entry)
        return buckets

    def aggregate(
        self,
        user_id: int,
        from_date: date,
        to_date: date,
        offset: int,
        now: datetime = None
    ) -> List[DatedSummary]:
        """
        計算日期範圍內每個本地日期的摘要。

        Args:
            user_id: 用戶 ID
            from_date: 開始日期
            to_date: 結束日期
            offset: 偏移量 (JS 慣例)
            now: 當前時間 (可選)

        Returns:
            每日摘要列表，由舊到新，包含無記錄的日期
        """
        now = now or utc_now()
        today = local_today(offset, now)
        buckets = self.bucket_range(user_id, from_date, to_date, offset)
        return [
            DatedSummary(day, derive_summary(entries, is_open_ended=(day == today), now=now))
            for day, entries in buckets.items()
        ]

    def status(self, user_id: int, offset: int, now: datetime = None) -> Dict:
        """
        取得今日即時狀態。

        Returns:
            狀態、工時、休息時間、工作模式、今日事件與是否為週末
        """
        now = now or utc_now()
        today = local_today(offset, now)
        entries = self.event_log.list_for_local_date(user_id, today, offset)
        summary = derive_summary(entries, is_open_ended=True, now=now)
        return {
            "state": summary.state,
            "floor_minutes": summary.floor_minutes,
            "break_minutes": summary.break_minutes,
            "total_minutes": summary.total_minutes,
            "work_mode": summary.effective_work_mode,
            "entries": entries,
            "is_weekend": is_weekend(today),
        }

    def history(
        self,
        user_id: int,
        offset: int,
        from_str: Optional[str] = None,
        to_str: Optional[str] = None,
        now: datetime = None
    ) -> List[DatedSummary]:
        """
        取得歷史記錄，預設為最近 DEFAULT_HISTORY_DAYS 天。

        Raises:
            ValidationError: 如果日期格式錯誤或範圍不合法
        """
        now = now or utc_now()
        today = local_today(offset, now)
        to_date = parse_date(to_str) if to_str else today
        from_date = parse_date(from_str) if from_str else to_date - timedelta(days=settings.DEFAULT_HISTORY_DAYS)

        if from_date > to_date:
            raise ValidationError("'from' must not be after 'to'")
        if (to_date - from_date).days + 1 > settings.MAX_HISTORY_DAYS:
            raise ValidationError(f"Date range cannot exceed {settings.MAX_HISTORY_DAYS} days")

        return self.aggregate(user_id, from_date, to_date, offset, now)

    def analytics(self, user_id: int, offset: int, days: int = None, now: datetime = None) -> List[DatedSummary]:
        """取得最近 days 天 (含今天) 的每日摘要，由舊到新"""
        days = self._validate_days(days)
        now = now or utc_now()
        today = local_today(offset, now)
        return self.aggregate(user_id, today - timedelta(days=days - 1), today, offset, now)

    def analytics_totals(self, user_id: int, offset: int, days: int = None, now: datetime = None) -> Dict:
        """取得最近 days 天的合計統計"""
        days = self._validate_days(days)
        summaries = self.analytics(user_id, offset, days, now)
        active = [s for s in summaries if s.summary.has_clock_in]
        total_floor = sum(s.summary.floor_minutes for s in summaries)
        total_break = sum(s.summary.break_minutes for s in summaries)
        return {
            "days": days,
            "active_days": len(active),
            "total_floor_minutes": total_floor,
            "total_break_minutes": total_break,
            "avg_floor_minutes": round_half_up(total_floor / len(active)) if active else 0,
        }

    def weekly(self, user_id: int, offset: int, now: datetime = None) -> Dict:
        """
        取得本週 (週一至週日) 每日工時，單位為小時並取至小數一位。
        """
        now = now or utc_now()
        today = local_today(offset, now)
        monday = get_week_start(today)
        summaries = self.aggregate(user_id, monday, monday + timedelta(days=6), offset, now)

        days = []
        for item in summaries:
            days.append({
                "date": item.date,
                "day": WEEKDAY_NAMES[item.date.weekday()],
                "hours": round_half_up(item.floor_minutes / 6) / 10,
                "is_today": item.date == today,
            })
        return {"days": days}

    def widgets(self, user_id: int, offset: int, now: datetime = None) -> Dict:
        """
        計算儀表板小工具數據。

        以最近 WIDGET_WINDOW_DAYS 天 (含今天) 有上班打卡的日期為準：
        平均工時、準時率、達標天數、辦公室/遠端天數；出勤率只看本月。

        Returns:
            小工具統計字典
        """
        now = now or utc_now()
        today = local_today(offset, now)
        window_start = today - timedelta(days=settings.WIDGET_WINDOW_DAYS)
        summaries = self.aggregate(user_id, window_start, today, offset, now)
        worked = [s for s in summaries if s.summary.has_clock_in]

        cutoff = settings.punctuality_cutoff
        total_floor = 0
        target_met_days = 0
        early_days = 0
        office_days = 0
        remote_days = 0
        for item in worked:
            total_floor += item.floor_minutes
            if item.floor_minutes >= settings.FLOOR_TARGET_MINUTES:
                target_met_days += 1
            if item.summary.effective_work_mode == WorkMode.REMOTE:
                remote_days += 1
            else:
                office_days += 1
            first_in = to_local(item.summary.first_clock_in, offset)
            if first_in.time().replace(second=0, microsecond=0) <= cutoff:
                early_days += 1

        work_days = len(worked)
        month_start = today.replace(day=1)
        month_worked = {s.date for s in worked if month_start <= s.date <= today}
        leave_dates = self._leave_dates(user_id, month_start, today)
        leave_count = self._count_leave_days(leave_dates, month_worked)
        total_weekdays = count_weekdays(month_start, today)
        present_days = len(month_worked) + leave_count

        return {
            "avg_floor_minutes": round_half_up(total_floor / work_days) if work_days else 0,
            "punctuality_percent": round_half_up(early_days / work_days * 100) if work_days else 0,
            "attendance_percent": min(100, round_half_up(present_days / total_weekdays * 100)) if total_weekdays else 0,
            "target_met_days": target_met_days,
            "work_days": work_days,
            "total_weekdays": total_weekdays,
            "leave_count": leave_count,
            "office_days": office_days,
            "remote_days": remote_days,
        }

    def _leave_dates(self, user_id: int, from_date: date, to_date: date) -> List[date]:
        rows = self.db.query(LeaveRecord.date).filter(
            LeaveRecord.user_id == user_id,
            LeaveRecord.date >= from_date,
            LeaveRecord.date <= to_date
        ).all()
        return [row[0] for row in rows]

    def _count_leave_days(self, leave_dates: List[date], worked_dates: set) -> int:
        # A worked day that also has a leave counts twice unless dedupe is configured
        if settings.dedupe_leave_overlap:
            return len([d for d in leave_dates if d not in worked_dates])
        return len(leave_dates)

    def _validate_days(self, days: Optional[int]) -> int:
        if days is None:
            return settings.DEFAULT_ANALYTICS_DAYS
        if days < 1 or days > settings.MAX_HISTORY_DAYS:
            raise ValidationError(f"'days' must be between 1 and {settings.MAX_HISTORY_DAYS}")
        return days
