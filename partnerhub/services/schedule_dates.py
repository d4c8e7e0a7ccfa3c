"""Calendar maths for recurring report schedules. Weekdays are 0=Sunday .. 6=Saturday."""
from __future__ import annotations

import calendar
from datetime import datetime, time, timedelta
from typing import Optional

from partnerhub.db.models import ScheduleFrequency


DEFAULT_DAY_OF_WEEK = 1
DEFAULT_DAY_OF_MONTH = 1
DEFAULT_TIME_OF_DAY = "09:00:00"


def parse_time_of_day(value: Optional[str]) -> time:
    parts = (value or DEFAULT_TIME_OF_DAY).split(":")
    hour = int(parts[0])
    minute = int(parts[1]) if len(parts) > 1 else 0
    return time(hour, minute)


def sunday_based_weekday(moment: datetime) -> int:
    return (moment.weekday() + 1) % 7


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def days_until_weekday(current: int, target: int) -> int:
    # never the same day: a matching weekday means a full week out
    return (target - current + 7) % 7 or 7


def compute_next_send_at(
    frequency: str,
    now: datetime,
    day_of_week: Optional[int] = None,
    day_of_month: Optional[int] = None,
    time_of_day: Optional[str] = None,
) -> datetime:
    at = parse_time_of_day(time_of_day)
    base = now.replace(hour=at.hour, minute=at.minute, second=0, microsecond=0)

    if frequency == ScheduleFrequency.DAILY:
        return base + timedelta(days=1)

    if frequency in (ScheduleFrequency.WEEKLY, ScheduleFrequency.BIWEEKLY):
        target = DEFAULT_DAY_OF_WEEK if day_of_week is None else day_of_week
        offset = days_until_weekday(sunday_based_weekday(now), target)
        if frequency == ScheduleFrequency.BIWEEKLY:
            offset += 7
        return base + timedelta(days=offset)

    if frequency == ScheduleFrequency.MONTHLY:
        target = DEFAULT_DAY_OF_MONTH if day_of_month is None else day_of_month
        year, month = (now.year + 1, 1) if now.month == 12 else (now.year, now.month + 1)
        return base.replace(year=year, month=month, day=min(target, days_in_month(year, month)))

    raise ValueError(f"unknown schedule frequency: {frequency}")


def compute_deadline(now: datetime, deadline_days: int) -> datetime:
    return now + timedelta(days=deadline_days)
