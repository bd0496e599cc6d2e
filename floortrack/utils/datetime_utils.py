"""
Timezone localization for client-asserted UTC offsets.

Offsets follow the JavaScript ``Date.getTimezoneOffset()`` convention: a
signed number of minutes with ``local = UTC - offset`` (IST is ``-330``,
US Eastern standard time is ``300``). They are fixed for the whole query
window; DST is not modeled.
"""

import logging
from datetime import datetime, date, time, timedelta, tzinfo
from typing import Iterator, Optional, Tuple, Union
import pytz

logger = logging.getLogger(__name__)

# Offsets beyond UTC-14:00 / UTC+14:00 do not exist
MAX_OFFSET_MINUTES = 14 * 60

WEEKDAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def utc_now() -> datetime:
    """獲取當前 UTC 時間"""
    return datetime.now(pytz.UTC)


def ensure_utc(dt: datetime) -> datetime:
    """將 naive 時間視為 UTC，aware 時間轉為 UTC"""
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def local_tz(offset: int) -> tzinfo:
    """獲取固定偏移時區 (offset 為 JS 慣例，故取負號)"""
    return pytz.FixedOffset(-offset)


def server_offset() -> int:
    """伺服器本地時區的偏移量 (JS 慣例)"""
    local_offset = datetime.now().astimezone().utcoffset() or timedelta(0)
    return -int(local_offset.total_seconds() // 60)


def resolve_offset(offset: Optional[int]) -> Tuple[int, bool]:
    """
    決定本次請求使用的偏移量。

    Args:
        offset: 用戶端提供的偏移量，可能為 None

    Returns:
        (偏移量, 是否為降級模式) 的元組；未提供時退回伺服器本地時間
    """
    if offset is not None:
        return offset, False

    fallback = server_offset()
    logger.warning(f"No client timezone offset supplied, falling back to server-local offset {fallback}")
    return fallback, True


def to_local(dt: datetime, offset: int) -> datetime:
    """將 UTC 時間轉換為用戶本地時間"""
    return ensure_utc(dt).astimezone(local_tz(offset))


def local_date_of(dt: datetime, offset: int) -> date:
    """UTC 時間在用戶本地的日曆日期"""
    return to_local(dt, offset).date()


def local_now(offset: int, now: Optional[datetime] = None) -> datetime:
    """獲取用戶本地當前時間"""
    return to_local(now or utc_now(), offset)


def local_today(offset: int, now: Optional[datetime] = None) -> date:
    """獲取用戶本地今天日期"""
    return local_now(offset, now).date()


def local_to_utc(local_date: date, local_time: Union[time, str], offset: int) -> datetime:
    """
    將用戶本地的日期與時間轉換為 UTC。

    Args:
        local_date: 本地日期
        local_time: 本地時間，或 HH:MM 字串
        offset: 偏移量 (JS 慣例)

    Returns:
        UTC 時間 (timezone-aware)
    """
    if isinstance(local_time, str):
        hours, minutes = (int(part) for part in local_time.split(":"))
        local_time = time(hours, minutes)
    naive = datetime.combine(local_date, local_time)
    return local_tz(offset).localize(naive).astimezone(pytz.UTC)


def local_day_bounds(local_date: date, offset: int) -> Tuple[datetime, datetime]:
    """
    本地日期在 UTC 的起訖時間。

    Returns:
        (本地 00:00:00, 本地 23:59:59.999999) 的 UTC 時間
    """
    start = local_to_utc(local_date, time.min, offset)
    end = local_to_utc(local_date, time.max, offset)
    return start, end


def local_range_bounds(from_date: date, to_date: date, offset: int) -> Tuple[datetime, datetime]:
    """日期範圍 (含首尾) 在 UTC 的起訖時間"""
    start, _ = local_day_bounds(from_date, offset)
    _, end = local_day_bounds(to_date, offset)
    return start, end


def end_of_local_day(local_date: date, offset: int) -> datetime:
    """本地日期 23:59:59 對應的 UTC 時間"""
    return local_to_utc(local_date, time(23, 59, 59), offset)


def is_weekend(local_date: date) -> bool:
    """判斷是否為週末"""
    return local_date.weekday() >= 5


def get_week_start(local_date: date) -> date:
    """獲取週開始日期 (週一)"""
    return local_date - timedelta(days=local_date.weekday())


def iter_dates(start_date: date, end_date: date) -> Iterator[date]:
    """逐日列舉日期範圍 (含首尾)"""
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


def count_weekdays(start_date: date, end_date: date) -> int:
    """計算日期範圍內的工作日數量 (排除週末)"""
    return sum(1 for d in iter_dates(start_date, end_date) if not is_weekend(d))


def format_date(d: Union[datetime, date]) -> str:
    """格式化為日期字符串 (YYYY-MM-DD)"""
    if isinstance(d, datetime):
        return d.date().strftime("%Y-%m-%d")
    return d.strftime("%Y-%m-%d")
