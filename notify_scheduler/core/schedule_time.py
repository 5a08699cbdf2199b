from __future__ import annotations

import re
from datetime import date, time, timedelta
from enum import Enum


_TIME_RE = re.compile(r'^(?:\d{4}-\d{2}-\d{2}[ T])?(\d{1,2}):(\d{2})(?::(\d{2}))?$')


class Weekday(str, Enum):
    MONDAY = 'monday'
    TUESDAY = 'tuesday'
    WEDNESDAY = 'wednesday'
    THURSDAY = 'thursday'
    FRIDAY = 'friday'
    SATURDAY = 'saturday'
    SUNDAY = 'sunday'

    @classmethod
    def from_date(cls, day: date) -> 'Weekday':
        return _BY_INDEX[day.weekday()]

    @classmethod
    def parse(cls, value: object) -> 'Weekday | None':
        if isinstance(value, Weekday):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


_BY_INDEX = list(Weekday)


def week_of_month(day: date) -> int:
    """Which occurrence of its weekday this date is within the month (1-based)."""
    return (day.day - 1) // 7 + 1


def week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())


def weeks_between(anchor: date, day: date) -> int:
    return (week_start(day) - week_start(anchor)).days // 7


def parse_time_of_day(value: object) -> time | None:
    """Parse HH:MM, HH:MM:SS or a legacy 'YYYY-MM-DD HH:MM[:SS]' string.

    Returns None for anything else; callers treat that as "no slot".
    """
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        return None
    match = _TIME_RE.match(value.strip())
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    if hour > 23 or minute > 59 or second > 59:
        return None
    return time(hour, minute, second)


def lookahead_window(
    today: date,
    lookahead_days: int,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
) -> tuple[date, date] | None:
    if lookahead_days < 0:
        raise ValueError('lookahead_days must not be negative')
    first = today
    last = today + timedelta(days=lookahead_days)
    if start_date and start_date > first:
        first = start_date
    if end_date and end_date < last:
        last = end_date
    if first > last:
        return None
    return first, last


def iter_days(first: date, last: date):
    day = first
    while day <= last:
        yield day
        day += timedelta(days=1)


def time_label(at: time) -> str:
    """Slot label as stored on scheduled rows: HH:MM, or HH:MM:SS when seconds are set."""
    return at.strftime('%H:%M:%S') if at.second else at.strftime('%H:%M')
