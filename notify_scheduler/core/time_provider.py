from __future__ import annotations

from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from notify_scheduler.config import settings


APP_TIMEZONE = settings.app_timezone or "Asia/Kuala_Lumpur"
APP_ZONEINFO = ZoneInfo(APP_TIMEZONE)


class TimeProvider:
    def now(self) -> datetime:
        return datetime.now(APP_ZONEINFO)

    def today(self) -> date:
        return self.now().astimezone(APP_ZONEINFO).date()


def ensure_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        raise ValueError("Naive datetime not allowed in business logic")
    return dt


def combine_local(day: date, at: time) -> datetime:
    """Wall-clock date and time in the app zone as an aware instant."""
    return datetime.combine(day, at).replace(tzinfo=APP_ZONEINFO)


def as_app_aware(dt: datetime) -> datetime:
    # Naive values from session columns are app-local wall clock.
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return dt.replace(tzinfo=APP_ZONEINFO)
    return dt.astimezone(APP_ZONEINFO)


def to_storage(dt: datetime) -> datetime:
    """Aware instant -> naive UTC for DateTime columns."""
    return ensure_aware(dt).astimezone(timezone.utc).replace(tzinfo=None)


def from_storage(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone(APP_ZONEINFO)


default_time_provider = TimeProvider()
