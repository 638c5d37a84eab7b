"""Date and time-of-day parsing helpers."""

from __future__ import annotations

import datetime
import re
from typing import Any, Tuple

from dateutil import parser as date_parser

from careplan.models import TimeBlock

_TWELVE_HOUR_PATTERN = re.compile(r"(1[0-2]|0?[1-9])\s*:\s*([0-5]\d)\s*([AaPp])\.?\s*[Mm]\.?")


def parse_record_date(value: Any) -> datetime.date:
    """Parse a record date given as ``YYYY-MM-DD`` or a date object."""
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.datetime.strptime(value.strip(), "%Y-%m-%d").date()
        except ValueError:
            try:
                return date_parser.parse(value).date()
            except (ValueError, TypeError, OverflowError) as exc:
                raise ValueError(f"Invalid date: {value!r}") from exc
    raise ValueError(f"Invalid date: {value!r}")


def parse_time_of_day(value: Any) -> Tuple[int, int] | None:
    """Parse a 12-hour ``h:mm a`` string into a 24-hour ``(hour, minute)`` pair."""
    if not isinstance(value, str):
        return None
    match = _TWELVE_HOUR_PATTERN.fullmatch(value.strip())
    if not match:
        return None
    hour = int(match.group(1))
    minute = int(match.group(2))
    is_pm = match.group(3).upper() == "P"
    if is_pm and hour < 12:
        hour += 12
    if not is_pm and hour == 12:
        hour = 0
    return hour, minute


def format_twelve_hour(hour: int, minute: int) -> str:
    period = "AM" if hour < 12 else "PM"
    display_hour = 12 if hour % 12 == 0 else hour % 12
    return f"{display_hour}:{minute:02d} {period}"


def derive_time_block(value: Any) -> TimeBlock:
    parsed = parse_time_of_day(value)
    # 日本語: 解析できない時刻は午前9時扱い / English: Unparseable times count as 9 AM
    hour = parsed[0] if parsed else 9
    if 5 <= hour <= 11:
        return TimeBlock.MORNING
    if 12 <= hour <= 16:
        return TimeBlock.AFTERNOON
    if 17 <= hour <= 20:
        return TimeBlock.EVENING
    return TimeBlock.NIGHT


def time_sort_key(value: Any) -> Tuple[int, int]:
    parsed = parse_time_of_day(value)
    return parsed if parsed else (24, 0)


__all__ = [
    "parse_record_date",
    "parse_time_of_day",
    "format_twelve_hour",
    "derive_time_block",
    "time_sort_key",
]
