import re
from datetime import datetime, date
from typing import List, Optional, Tuple

from floortrack.exceptions import ValidationError
from floortrack.utils.datetime_utils import MAX_OFFSET_MINUTES

DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
TIME_PATTERN = re.compile(r'^\d{2}:\d{2}$')


def validate_date_format(date_str: str) -> Optional[date]:
    """驗證並解析日期格式 (YYYY-MM-DD)"""
    if not date_str or not DATE_PATTERN.match(date_str):
        return None
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").date()
    except ValueError:
        return None


def validate_time_format(time_str: str) -> bool:
    """驗證時間格式 (HH:MM)"""
    if not time_str or not TIME_PATTERN.match(time_str):
        return False
    hours, minutes = (int(part) for part in time_str.split(":"))
    return hours < 24 and minutes < 60


def parse_date(date_str: str, message: str = "Invalid date format. Use YYYY-MM-DD") -> date:
    """解析日期，格式錯誤時拋出 ValidationError"""
    parsed = validate_date_format(date_str)
    if parsed is None:
        raise ValidationError(message)
    return parsed


def parse_offset(raw: Optional[str]) -> Optional[int]:
    """
    解析 x-timezone-offset 標頭。

    Args:
        raw: 標頭原始值

    Returns:
        偏移分鐘數；未提供時返回 None

    Raises:
        ValidationError: 如果值不是整數或超出範圍
    """
    if raw is None or str(raw).strip() == "":
        return None
    try:
        offset = int(str(raw).strip())
    except ValueError:
        raise ValidationError("Invalid timezone offset")
    validate_offset(offset)
    return offset


def parse_days(raw: Optional[str]) -> Optional[int]:
    """解析 ?days= 查詢參數；未提供時返回 None，範圍由報表服務檢查"""
    if raw is None or str(raw).strip() == "":
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ValidationError("'days' must be an integer")


def validate_offset(offset: Optional[int]) -> None:
    """驗證偏移量範圍"""
    if offset is not None and abs(offset) > MAX_OFFSET_MINUTES:
        raise ValidationError("Invalid timezone offset")


def validate_manual_entry_times(
    clock_in: Optional[str],
    clock_out: Optional[str],
    breaks: List[Tuple[Optional[str], Optional[str]]]
) -> List[Tuple[str, str]]:
    """
    驗證手動補登的時間。

    所有時間都是同一本地日期的 HH:MM，因此可直接以字串比較先後。

    Args:
        clock_in: 上班時間
        clock_out: 下班時間 (可選)
        breaks: (開始, 結束) 休息時段列表

    Returns:
        依開始時間排序後的休息時段

    Raises:
        ValidationError: 如果任何時間不合法
    """
    if not validate_time_format(clock_in) or (clock_out and not validate_time_format(clock_out)):
        raise ValidationError("Invalid time format. Use HH:MM")

    if clock_out and clock_out <= clock_in:
        raise ValidationError("Logout time must be after login time")

    for start, end in breaks:
        if not validate_time_format(start) or not validate_time_format(end):
            raise ValidationError("Each break must have valid start and end times (HH:MM)")
        if end <= start:
            raise ValidationError("Break end time must be after break start time")
        if start < clock_in or (clock_out and end > clock_out):
            raise ValidationError("Break times must be within clock-in and clock-out times")

    ordered = sorted(breaks, key=lambda b: b[0])
    for previous, current in zip(ordered, ordered[1:]):
        if current[0] < previous[1]:
            raise ValidationError("Breaks must not overlap")

    return ordered
