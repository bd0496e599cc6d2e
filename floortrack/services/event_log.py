"""
Append-only per-user event log backed by the time_entries table.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, date
from typing import Iterable, Iterator, List, Optional, Tuple

from sqlalchemy.orm import Session

from floortrack.config import settings
from floortrack.exceptions import StateConflictError
from floortrack.models.attendance import TimeEntry
from floortrack.models.user import User
from floortrack.schemas.attendance import EntryType, WorkMode
from floortrack.services.state_derivation import check_transition, validate_sequence
from floortrack.utils.datetime_utils import (
    ensure_utc, local_date_of, local_day_bounds, local_range_bounds, utc_now
)
from floortrack.utils.locks import UserLockRegistry, user_locks

logger = logging.getLogger(__name__)

class EventLog:
    """打卡事件日誌"""

    def __init__(self, db: Session, locks: UserLockRegistry = user_locks):
        self.db = db
        self.locks = locks
        self._depth = 0

    @contextmanager
    def writing(self, user_id: int) -> Iterator[None]:
        """
        用戶的寫入臨界區。

        取得該用戶的行程內鎖與資料列鎖 (SELECT ... FOR UPDATE)，
        最外層離開時提交，發生例外時回滾。
        """
        with self.locks.hold(user_id):
            outermost = self._depth == 0
            self._depth += 1
            try:
                if outermost:
                    self.db.query(User.id).filter(User.id == user_id).with_for_update().first()
                yield
                if outermost:
                    self.db.commit()
            except Exception:
                if outermost:
                    self.db.rollback()
                raise
            finally:
                self._depth -= 1

    def _query_between(self, user_id: int, start: datetime, end: datetime):
        return self.db.query(TimeEntry).filter(
            TimeEntry.user_id == user_id,
            TimeEntry.timestamp >= start,
            TimeEntry.timestamp <= end
        )

    def list_for_local_date(self, user_id: int, local_date: date, offset: int) -> List[TimeEntry]:
        """
        取得用戶某本地日期的所有事件。

        Args:
            user_id: 用戶 ID
            local_date: 用戶本地日期
            offset: 偏移量 (JS 慣例)

        Returns:
            依時間排序的事件列表
        """
        start, end = local_day_bounds(local_date, offset)
        return self._query_between(user_id, start, end).order_by(
            TimeEntry.timestamp, TimeEntry.id
        ).all()

    def list_for_local_range(self, user_id: int, from_date: date, to_date: date, offset: int) -> List[TimeEntry]:
        """
        取得用戶本地日期範圍 (含首尾) 的所有事件，單次查詢。

        Args:
            user_id: 用戶 ID
            from_date: 開始日期
            to_date: 結束日期
            offset: 偏移量 (JS 慣例)

        Returns:
            依時間排序的事件列表
        """
        if from_date > to_date:
            return []
        start, end = local_range_bounds(from_date, to_date, offset)
        return self._query_between(user_id, start, end).order_by(
            TimeEntry.timestamp, TimeEntry.id
        ).all()

    def last_for_local_date(self, user_id: int, local_date: date, offset: int) -> Optional[TimeEntry]:
        """取得用戶某本地日期的最後一筆事件"""
        start, end = local_day_bounds(local_date, offset)
        return self._query_between(user_id, start, end).order_by(
            TimeEntry.timestamp.desc(), TimeEntry.id.desc()
        ).first()

    def count_for_local_date(self, user_id: int, local_date: date, offset: int) -> int:
        """計算用戶某本地日期的事件數"""
        start, end = local_day_bounds(local_date, offset)
        return self._query_between(user_id, start, end).count()

    def latest_entry(self, user_id: int) -> Optional[TimeEntry]:
        """取得用戶最新的一筆事件"""
        return self.db.query(TimeEntry).filter(
            TimeEntry.user_id == user_id
        ).order_by(TimeEntry.timestamp.desc(), TimeEntry.id.desc()).first()

    def append(
        self,
        user_id: int,
        entry_type: EntryType,
        offset: int,
        timestamp: datetime = None,
        work_mode: WorkMode = None,
        is_auto: bool = False
    ) -> TimeEntry:
        """
        新增一筆事件，包含狀態轉換驗證。

        驗證以同一本地日期的最後一筆事件為基準；休息中下班會先補上
        同一時間的 break_end。

        Args:
            user_id: 用戶 ID
            entry_type: 事件類型
            offset: 偏移量 (JS 慣例)，決定事件屬於哪一個本地日期
            timestamp: 事件時間 (可選，默認當前時間)
            work_mode: 工作模式，僅 clock_in 使用
            is_auto: 是否為系統自動產生

        Returns:
            新建立的事件

        Raises:
            StateConflictError: 如果違反狀態轉換規則
        """
        timestamp = ensure_utc(timestamp or utc_now())
        entry_type = EntryType(entry_type)

        with self.writing(user_id):
            local_date = local_date_of(timestamp, offset)
            last = self.last_for_local_date(user_id, local_date, offset)
            last_type = EntryType(last.entry_type) if last else None

            check_transition(last_type, entry_type)
            if last is not None and timestamp < ensure_utc(last.timestamp):
                raise StateConflictError("Entry time is earlier than the last entry of the day")

            if entry_type == EntryType.CLOCK_OUT and last_type == EntryType.BREAK_START:
                self._add(user_id, EntryType.BREAK_END, timestamp, is_auto=is_auto)

            if entry_type == EntryType.CLOCK_IN:
                work_mode = WorkMode(work_mode or settings.DEFAULT_WORK_MODE)
            else:
                work_mode = None

            entry = self._add(user_id, entry_type, timestamp, work_mode=work_mode, is_auto=is_auto)

        return entry

    def insert_many(
        self,
        user_id: int,
        entries: Iterable[Tuple[EntryType, datetime, Optional[WorkMode]]]
    ) -> List[TimeEntry]:
        """
        一次寫入整組事件 (手動補登)。

        Args:
            user_id: 用戶 ID
            entries: (類型, 時間, 工作模式) 列表，需已依時間排序

        Returns:
            新建立的事件列表

        Raises:
            StateConflictError: 如果整組事件不符合狀態轉換規則
        """
        with self.writing(user_id):
            created = [
                TimeEntry(
                    user_id=user_id,
                    entry_type=EntryType(entry_type).value,
                    timestamp=ensure_utc(timestamp),
                    work_mode=WorkMode(work_mode).value if work_mode else None,
                    is_auto=False
                )
                for entry_type, timestamp, work_mode in entries
            ]
            validate_sequence(created)
            self.db.add_all(created)
            self.db.flush()

        return created

    def delete_for_local_date(self, user_id: int, local_date: date, offset: int) -> int:
        """
        刪除用戶某本地日期的所有事件。

        Returns:
            刪除的事件數 (沒有事件時為 0)
        """
        with self.writing(user_id):
            start, end = local_day_bounds(local_date, offset)
            deleted = self._query_between(user_id, start, end).delete(synchronize_session=False)

        logger.info(f"Deleted {deleted} entries for user {user_id} on {local_date}")
        return deleted

    def _add(
        self,
        user_id: int,
        entry_type: EntryType,
        timestamp: datetime,
        work_mode: WorkMode = None,
        is_auto: bool = False
    ) -> TimeEntry:
        entry = TimeEntry(
            user_id=user_id,
            entry_type=entry_type.value,
            timestamp=timestamp,
            work_mode=work_mode.value if work_mode else None,
            is_auto=is_auto
        )
        self.db.add(entry)
        self.db.flush()
        return entry
