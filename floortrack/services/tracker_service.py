"""
Tracker service layer for clock actions and manual day entries.
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from floortrack.exceptions import StateConflictError, ValidationError
from floortrack.models.attendance import TimeEntry
from floortrack.models.leave import LeaveRecord
from floortrack.models.user import User
from floortrack.schemas.attendance import EntryType, WorkMode, ManualEntryRequest
from floortrack.services.event_log import EventLog
from floortrack.utils.datetime_utils import is_weekend, local_now, local_to_utc, resolve_offset, utc_now
from floortrack.utils.locks import UserLockRegistry, user_locks
from floortrack.utils.validators import parse_date, validate_manual_entry_times, validate_offset

logger = logging.getLogger(__name__)

class TrackerService:
    """打卡業務邏輯服務"""

    def __init__(self, db: Session, locks: UserLockRegistry = user_locks):
        self.db = db
        self.event_log = EventLog(db, locks)

    def clock_in(
        self,
        user: User,
        offset: int,
        work_mode: WorkMode = WorkMode.OFFICE,
        now: datetime = None,
        remember_offset: bool = True
    ) -> TimeEntry:
        """
        上班打卡。

        Args:
            user: 用戶
            offset: 本次請求的偏移量
            work_mode: 工作模式
            now: 當前時間 (可選)
            remember_offset: 是否將偏移量存為用戶的自動下班時區

        Returns:
            新建立的 clock_in 事件

        Raises:
            StateConflictError: 週末或已在上班狀態
        """
        now = now or utc_now()
        if is_weekend(local_now(offset, now).date()):
            raise StateConflictError("It's a weekend holiday! Enjoy your day off.")

        with self.event_log.writing(user.id):
            entry = self.event_log.append(
                user.id, EntryType.CLOCK_IN, offset, timestamp=now, work_mode=work_mode
            )
            if remember_offset:
                user.timezone_offset = offset

        logger.info(f"User {user.id} clocked in ({WorkMode(work_mode).value})")
        return entry

    def break_start(self, user: User, offset: int, now: datetime = None) -> TimeEntry:
        """開始休息"""
        entry = self.event_log.append(user.id, EntryType.BREAK_START, offset, timestamp=now)
        logger.info(f"User {user.id} started a break")
        return entry

    def break_end(self, user: User, offset: int, now: datetime = None) -> TimeEntry:
        """結束休息"""
        entry = self.event_log.append(user.id, EntryType.BREAK_END, offset, timestamp=now)
        logger.info(f"User {user.id} ended a break")
        return entry

    def clock_out(self, user: User, offset: int, now: datetime = None) -> TimeEntry:
        """下班打卡，休息中會先自動結束休息"""
        entry = self.event_log.append(user.id, EntryType.CLOCK_OUT, offset, timestamp=now)
        logger.info(f"User {user.id} clocked out")
        return entry

    def add_manual_entry(
        self,
        user: User,
        request: ManualEntryRequest,
        header_offset: Optional[int] = None
    ) -> List[TimeEntry]:
        """
        手動補登整天的打卡記錄。

        Args:
            user: 用戶
            request: 補登內容 (本地 HH:MM 時間)
            header_offset: 請求標頭的偏移量，本文未提供 timezoneOffset 時使用

        Returns:
            新建立的事件列表

        Raises:
            ValidationError: 如果資料格式不正確
            StateConflictError: 如果該日期已有記錄或請假
        """
        if not request.date or not request.clock_in:
            raise ValidationError("Date and login time are required")

        local_date = parse_date(request.date)
        breaks = validate_manual_entry_times(
            request.clock_in,
            request.clock_out,
            [(b.start, b.end) for b in request.breaks]
        )
        validate_offset(request.timezone_offset)
        offset, _ = resolve_offset(
            request.timezone_offset if request.timezone_offset is not None else header_offset
        )

        planned: List[Tuple[EntryType, datetime, Optional[WorkMode]]] = [
            (EntryType.CLOCK_IN, local_to_utc(local_date, request.clock_in, offset), request.work_mode)
        ]
        for start, end in breaks:
            planned.append((EntryType.BREAK_START, local_to_utc(local_date, start, offset), None))
            planned.append((EntryType.BREAK_END, local_to_utc(local_date, end, offset), None))
        if request.clock_out:
            planned.append((EntryType.CLOCK_OUT, local_to_utc(local_date, request.clock_out, offset), None))

        with self.event_log.writing(user.id):
            if self.event_log.count_for_local_date(user.id, local_date, offset) > 0:
                raise StateConflictError(
                    "Entries already exist for this date. Delete them first to add manual entries."
                )

            leave = self.db.query(LeaveRecord).filter(
                LeaveRecord.user_id == user.id,
                LeaveRecord.date == local_date
            ).first()
            if leave:
                raise StateConflictError(
                    f"You have a {leave.leave_type} leave on this date. Remove the leave first to add a manual entry."
                )

            created = self.event_log.insert_many(user.id, planned)

        logger.info(f"User {user.id} added {len(created)} manual entries for {local_date}")
        return created

    def delete_day(self, user: User, date_str: str, offset: int) -> int:
        """刪除某本地日期的所有記錄，供重新補登"""
        local_date = parse_date(date_str, "Invalid date format")
        return self.event_log.delete_for_local_date(user.id, local_date, offset)

    def entries_for_day(self, user: User, date_str: str, offset: int) -> List[TimeEntry]:
        """取得某本地日期的所有記錄"""
        local_date = parse_date(date_str, "Invalid date format")
        return self.event_log.list_for_local_date(user.id, local_date, offset)
