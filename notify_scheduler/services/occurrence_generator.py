from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime

from notify_scheduler.config import settings
from notify_scheduler.core.schedule_time import (
    Weekday,
    iter_days,
    lookahead_window,
    parse_time_of_day,
    time_label,
    week_of_month,
    weeks_between,
)
from notify_scheduler.core.time_provider import TimeProvider, combine_local, default_time_provider
from notify_scheduler.domain.timetable import RecurrencePattern, TimetableSnapshot
from notify_scheduler.services.settings_service import NOTIFICATION_LOOKAHEAD_DAYS, ConfigProvider


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OccurrenceSlot:
    class_id: int
    session_date: date
    session_time: str
    starts_at: datetime

    def as_dict(self) -> dict:
        return {
            'class_id': self.class_id,
            'session_date': self.session_date.isoformat(),
            'session_time': self.session_time,
            'starts_at': self.starts_at.isoformat(),
        }


class OccurrenceGenerator:
    """Expands a recurring timetable into concrete future slots.

    Window is ``[max(today, start_date), min(today + lookahead, end_date)]``
    inclusive. Slots come out ordered by date, then in the order the times are
    declared for that day; nothing at or before ``now`` is emitted. Bi-weekly
    timetables keep every second Monday-based calendar week, counted from the
    week of ``start_date``, or from the first week in the window that has a
    scheduled day when there is no start date.
    """

    def __init__(
        self,
        config: ConfigProvider | None = None,
        *,
        time_provider: TimeProvider = default_time_provider,
    ) -> None:
        self.config = config
        self.time_provider = time_provider

    def default_lookahead_days(self) -> int:
        if self.config is None:
            return settings.notification_lookahead_days
        return self.config.get_int(NOTIFICATION_LOOKAHEAD_DAYS, settings.notification_lookahead_days)

    def _first_matching_day(self, timetable: TimetableSnapshot, first: date, last: date) -> date:
        for day in iter_days(first, last):
            if timetable.times_for(Weekday.from_date(day)):
                return day
        return first

    def generate(self, timetable: TimetableSnapshot, lookahead_days: int | None = None) -> list[OccurrenceSlot]:
        days = self.default_lookahead_days() if lookahead_days is None else lookahead_days
        if days < 0:
            raise ValueError('lookahead_days must not be negative')

        if not timetable.is_active or timetable.is_empty:
            return []

        now = self.time_provider.now()
        window = lookahead_window(
            self.time_provider.today(),
            days,
            start_date=timetable.start_date,
            end_date=timetable.end_date,
        )
        if window is None:
            return []
        first, last = window
        parity_anchor = timetable.start_date or self._first_matching_day(timetable, first, last)

        slots: list[OccurrenceSlot] = []
        for day in iter_days(first, last):
            if timetable.recurrence is RecurrencePattern.BI_WEEKLY and weeks_between(parity_anchor, day) % 2:
                continue
            weekday = Weekday.from_date(day)
            if timetable.recurrence is RecurrencePattern.MONTHLY:
                times = timetable.times_for(weekday, week_of_month(day))
            else:
                times = timetable.times_for(weekday)

            seen: set[str] = set()
            for raw_time in times:
                at = parse_time_of_day(raw_time)
                if at is None:
                    logger.debug('timetable_time_ignored class_id=%s date=%s value=%r', timetable.class_id, day, raw_time)
                    continue
                label = time_label(at)
                if label in seen:
                    continue
                seen.add(label)
                starts_at = combine_local(day, at)
                if starts_at <= now:
                    continue
                slots.append(
                    OccurrenceSlot(
                        class_id=timetable.class_id,
                        session_date=day,
                        session_time=label,
                        starts_at=starts_at,
                    )
                )
        return slots
