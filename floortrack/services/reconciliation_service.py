"""
Automatic clock-out for sessions left open past their local day.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, date, timedelta
from typing import Callable, List, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import func
from sqlalchemy.orm import Session

from floortrack.config import settings
from floortrack.models.attendance import TimeEntry
from floortrack.models.user import User
from floortrack.schemas.attendance import EntryType
from floortrack.services.event_log import EventLog
from floortrack.utils.datetime_utils import end_of_local_day, ensure_utc, local_date_of, local_today, utc_now
from floortrack.utils.locks import UserLockRegistry, user_locks

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    """一次自動下班掃描的結果"""
    scanned: int = 0
    closed_days: int = 0
    created_entries: int = 0
    failed_users: List[int] = field(default_factory=list)


class ReconciliationService:
    """自動下班服務"""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Callable[[], datetime] = utc_now,
        offset_lookup: Optional[Callable[[User], Optional[int]]] = None,
        locks: UserLockRegistry = user_locks
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.offset_lookup = offset_lookup or (lambda user: user.timezone_offset)
        self.locks = locks

    def find_open_user_ids(self, db: Session) -> List[int]:
        """
        找出最新一筆事件不是 clock_out 的用戶。

        Returns:
            用戶 ID 列表
        """
        ranked = db.query(
            TimeEntry.user_id.label("user_id"),
            TimeEntry.entry_type.label("entry_type"),
            func.row_number().over(
                partition_by=TimeEntry.user_id,
                order_by=(TimeEntry.timestamp.desc(), TimeEntry.id.desc())
            ).label("rank")
        ).subquery()

        rows = db.query(ranked.c.user_id).filter(
            ranked.c.rank == 1,
            ranked.c.entry_type != EntryType.CLOCK_OUT.value
        ).order_by(ranked.c.user_id).all()
        return [row[0] for row in rows]

    def run(self, now: datetime = None) -> ReconciliationResult:
        """
        執行一次自動下班掃描。

        每個用戶各自處理；單一用戶失敗會記錄並略過，不影響其他用戶。

        Args:
            now: 當前時間 (可選，默認使用 clock)

        Returns:
            掃描結果
        """
        now = ensure_utc(now or self.clock())
        result = ReconciliationResult()

        db = self.session_factory()
        try:
            user_ids = self.find_open_user_ids(db)
        finally:
            db.close()

        for user_id in user_ids:
            result.scanned += 1
            db = self.session_factory()
            try:
                created = self.reconcile_user(db, user_id, now)
                if created:
                    result.closed_days += len(created)
                    result.created_entries += sum(created)
            except Exception as e:
                db.rollback()
                result.failed_users.append(user_id)
                logger.error(f"Auto clock-out failed for user {user_id}: {e}")
            finally:
                db.close()

        logger.info(
            f"Auto clock-out scan finished: {result.scanned} open users, "
            f"{result.closed_days} days closed, {len(result.failed_users)} failures"
        )
        return result

    def reconcile_user(self, db: Session, user_id: int, now: datetime) -> List[int]:
        """
        關閉單一用戶今天以前仍未下班的日期。

        檢查本地昨天，以及最新事件所在的本地日期 (若早於昨天)。

        Returns:
            每個被關閉日期新增的事件數
        """
        user = db.query(User).filter(User.id == user_id).first()
        if user is None:
            return []

        offset = self.offset_lookup(user)
        if offset is None:
            offset = 0

        event_log = EventLog(db, self.locks)
        today = local_today(offset, now)
        days = [today - timedelta(days=1)]

        latest = event_log.latest_entry(user_id)
        if latest is not None:
            latest_day = local_date_of(latest.timestamp, offset)
            if latest_day < days[0]:
                days.insert(0, latest_day)

        created = []
        for day in days:
            count = self._close_day(event_log, user_id, day, offset)
            if count:
                created.append(count)
        return created

    def _close_day(self, event_log: EventLog, user_id: int, day: date, offset: int) -> int:
        with event_log.writing(user_id):
            last = event_log.last_for_local_date(user_id, day, offset)
            if last is None or last.entry_type == EntryType.CLOCK_OUT.value:
                return 0

            closing_time = max(end_of_local_day(day, offset), ensure_utc(last.timestamp))
            was_on_break = last.entry_type == EntryType.BREAK_START.value
            event_log.append(user_id, EntryType.CLOCK_OUT, offset, timestamp=closing_time, is_auto=True)

        logger.info(f"Auto-logged out user {user_id} for {day} (local)")
        return 2 if was_on_break else 1


class ReconciliationScheduler:
    """
    Runs the reconciliation job once at startup and then on a fixed interval.
    """

    JOB_ID = "auto_clock_out"

    def __init__(self, service: ReconciliationService, interval_minutes: int = None):
        self.service = service
        self.interval_minutes = interval_minutes or settings.AUTO_CLOCK_OUT_INTERVAL_MINUTES
        self.scheduler = BackgroundScheduler(timezone="UTC")

    def start(self):
        """啟動排程器"""
        self.scheduler.add_job(
            func=self.run_now,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=self.JOB_ID,
            name="自動下班",
            next_run_time=utc_now(),
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )
        self.scheduler.start()
        logger.info(f"Auto clock-out scheduler started (every {self.interval_minutes} minutes)")

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def stop(self):
        """停止排程器"""
        if self.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Auto clock-out scheduler stopped")

    def run_now(self) -> Optional[ReconciliationResult]:
        try:
            return self.service.run()
        except Exception as e:
            logger.error(f"Auto clock-out scan failed: {e}")
            return None
