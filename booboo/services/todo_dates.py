"""
Date reasoning for todos.

All wall-clock reasoning happens in the configured TIMEZONE; everything that
leaves this module is a timezone-aware UTC datetime.

  bare date for `date` → 08:00 local
  bare date for `due`  → 23:59:59 local
  no `date` at all     → today 21:00 local
"""

import logging
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from ..core.config import get_settings
from ..schemas import TodoSchedule

logger = logging.getLogger(__name__)

DATE_DEFAULT_TIME = time(8, 0)
DUE_DEFAULT_TIME = time(23, 59, 59)
UNSCHEDULED_TIME = time(21, 0)

_BARE_DATE = re.compile(r"^\d{4}-\d{1,2}-\d{1,2}$")

FUTURE_RANGES = frozenset({"明天", "下禮拜", "下週", "下個月"})

# Longest first so 上禮拜 is not read as 禮拜
TIME_RANGE_WORDS = (
    "這個月", "上個月", "下個月", "上禮拜", "下禮拜",
    "這週", "本週", "上週", "下週", "本月", "今天", "明天", "昨天",
)

# Relative day words for the schedule fallback; 大後天 before 後天
_RELATIVE_DAYS = (("大後天", 3), ("後天", 2), ("明天", 1), ("今晚", 0), ("今天", 0))


def local_tz() -> ZoneInfo:
    return ZoneInfo(get_settings().timezone)


def now_local(now: Optional[datetime] = None) -> datetime:
    tz = local_tz()
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        return now.replace(tzinfo=tz)
    return now.astimezone(tz)


def _at(day: date, at: time, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, at, tzinfo=tz).astimezone(timezone.utc)


def parse_schedule_value(value: Optional[str], default_time: time) -> Optional[datetime]:
    """
    Bare YYYY-MM-DD gets `default_time`; a full instant keeps its time. Naive
    values are local. Unparseable input → None.
    """
    if not value:
        return None
    value = value.strip()
    tz = local_tz()
    try:
        if _BARE_DATE.match(value):
            y, m, d = (int(p) for p in value.split("-"))
            return _at(date(y, m, d), default_time, tz)
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable schedule value %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed.astimezone(timezone.utc)


def resolve_schedule(
    schedule: TodoSchedule, now: Optional[datetime] = None,
) -> tuple[datetime, Optional[datetime]]:
    """(date, due) in UTC. `date` always set; `due` only when stated."""
    when = parse_schedule_value(schedule.date, DATE_DEFAULT_TIME)
    if when is None:
        when = _at(now_local(now).date(), UNSCHEDULED_TIME, local_tz())
    due = parse_schedule_value(schedule.due, DUE_DEFAULT_TIME)
    return when, due


def relative_day_schedule(text: str, now: Optional[datetime] = None) -> TodoSchedule:
    """Deterministic stand-in for the date template: 今天/今晚/明天/後天/大後天."""
    today = now_local(now).date()
    for word, offset in _RELATIVE_DAYS:
        if word in (text or ""):
            day = today + timedelta(days=offset)
            if word == "今晚":
                return TodoSchedule(date=f"{day.isoformat()}T21:00:00")
            return TodoSchedule(date=day.isoformat())
    return TodoSchedule()


def detect_time_range(text: str) -> Optional[str]:
    for word in TIME_RANGE_WORDS:
        if word in (text or ""):
            return word
    return None


def _month_start(day: date, offset: int = 0) -> date:
    index = day.year * 12 + (day.month - 1) + offset
    return date(index // 12, index % 12 + 1, 1)


def time_range_window(
    label: Optional[str], now: Optional[datetime] = None,
) -> Optional[tuple[datetime, datetime]]:
    """Calendar window [start, end) in UTC for a time-range word; weeks start Monday."""
    if not label:
        return None
    tz = local_tz()
    today = now_local(now).date()
    monday = today - timedelta(days=today.weekday())

    if label == "今天":
        start, end = today, today + timedelta(days=1)
    elif label == "明天":
        start, end = today + timedelta(days=1), today + timedelta(days=2)
    elif label == "昨天":
        start, end = today - timedelta(days=1), today
    elif label in ("這週", "本週"):
        start, end = monday, monday + timedelta(days=7)
    elif label in ("上週", "上禮拜"):
        start, end = monday - timedelta(days=7), monday
    elif label in ("下週", "下禮拜"):
        start, end = monday + timedelta(days=7), monday + timedelta(days=14)
    elif label in ("這個月", "本月"):
        start, end = _month_start(today), _month_start(today, 1)
    elif label == "上個月":
        start, end = _month_start(today, -1), _month_start(today)
    elif label == "下個月":
        start, end = _month_start(today, 1), _month_start(today, 2)
    else:
        return None
    return _at(start, time(0), tz), _at(end, time(0), tz)


def day_window(value: str) -> Optional[tuple[datetime, datetime]]:
    """One local day [00:00, next 00:00) in UTC for a YYYY-MM-DD string."""
    start = parse_schedule_value((value or "")[:10], time(0))
    if start is None:
        return None
    return start, start + timedelta(days=1)


def to_local(value: datetime) -> datetime:
    """Stored instant (naive means UTC) in the configured timezone."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(local_tz())
