from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Mapping

from notify_scheduler.core.schedule_time import Weekday


logger = logging.getLogger(__name__)

_WEEK_KEY_RE = re.compile(r'^week_([1-5])$')


class RecurrencePattern(str, Enum):
    WEEKLY = 'weekly'
    BI_WEEKLY = 'bi_weekly'
    MONTHLY = 'monthly'


class TimetableConfigError(ValueError):
    pass


DaySchedule = Mapping[Weekday, tuple[str, ...]]


def parse_recurrence(value: Any) -> RecurrencePattern:
    if isinstance(value, RecurrencePattern):
        return value
    try:
        return RecurrencePattern(str(value or '').strip().lower())
    except ValueError:
        raise TimetableConfigError(f'unknown recurrence pattern: {value!r}') from None


def _normalize_times(raw: Any) -> tuple[str, ...]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple)):
        return ()
    return tuple(item for item in raw if isinstance(item, str))


def _normalize_days(raw: Any, *, context: str) -> dict[Weekday, tuple[str, ...]]:
    days: dict[Weekday, tuple[str, ...]] = {}
    if not isinstance(raw, Mapping):
        logger.debug('timetable_schedule_ignored context=%s reason=not_a_mapping', context)
        return days
    for key, value in raw.items():
        weekday = Weekday.parse(key)
        if weekday is None:
            logger.debug('timetable_day_key_ignored context=%s key=%s', context, key)
            continue
        times = _normalize_times(value)
        if times:
            days[weekday] = times
    return days


@dataclass(frozen=True)
class TimetableSnapshot:
    """Read-only view of a class timetable as the scheduler sees it.

    ``weekly`` holds the day -> times mapping for weekly and bi-weekly
    timetables; ``monthly`` holds week-of-month -> day -> times for
    monthly ones. Only one of them is populated.
    """

    class_id: int
    recurrence: RecurrencePattern
    weekly: Mapping[Weekday, tuple[str, ...]] = field(default_factory=dict)
    monthly: Mapping[int, DaySchedule] = field(default_factory=dict)
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool = True

    @property
    def is_empty(self) -> bool:
        if self.recurrence is RecurrencePattern.MONTHLY:
            return not any(self.monthly.values())
        return not self.weekly

    def times_for(self, weekday: Weekday, week_number: int | None = None) -> tuple[str, ...]:
        if self.recurrence is RecurrencePattern.MONTHLY:
            return self.monthly.get(week_number or 0, {}).get(weekday, ())
        return self.weekly.get(weekday, ())

    @classmethod
    def from_mapping(
        cls,
        *,
        class_id: int,
        schedule: Any,
        recurrence: Any,
        start_date: date | None = None,
        end_date: date | None = None,
        is_active: bool = True,
    ) -> 'TimetableSnapshot':
        pattern = parse_recurrence(recurrence)
        if start_date and end_date and start_date > end_date:
            raise TimetableConfigError(f'start_date {start_date} is after end_date {end_date}')

        context = f'class:{class_id}'
        if pattern is RecurrencePattern.MONTHLY:
            monthly: dict[int, dict[Weekday, tuple[str, ...]]] = {}
            for key, value in (schedule or {}).items() if isinstance(schedule, Mapping) else ():
                match = _WEEK_KEY_RE.match(str(key).strip().lower())
                if not match:
                    logger.debug('timetable_week_key_ignored context=%s key=%s', context, key)
                    continue
                monthly[int(match.group(1))] = _normalize_days(value, context=context)
            return cls(
                class_id=class_id,
                recurrence=pattern,
                monthly=monthly,
                start_date=start_date,
                end_date=end_date,
                is_active=bool(is_active),
            )

        return cls(
            class_id=class_id,
            recurrence=pattern,
            weekly=_normalize_days(schedule or {}, context=context),
            start_date=start_date,
            end_date=end_date,
            is_active=bool(is_active),
        )

    @classmethod
    def from_model(cls, row) -> 'TimetableSnapshot':
        return cls.from_mapping(
            class_id=row.class_id,
            schedule=row.weekly_schedule,
            recurrence=row.recurrence_pattern,
            start_date=row.start_date,
            end_date=row.end_date,
            is_active=row.is_active,
        )
