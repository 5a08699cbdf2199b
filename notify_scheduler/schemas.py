from datetime import date, datetime, time
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator

from notify_scheduler.core.schedule_time import Weekday, parse_time_of_day


def _check_day_map(value: Any, where: str) -> None:
    if not isinstance(value, dict):
        raise ValueError(f'{where} must map day names to time lists')
    for day, times in value.items():
        if Weekday.parse(day) is None:
            raise ValueError(f'{where}: unknown day {day!r}')
        if not isinstance(times, list) or not all(parse_time_of_day(item) for item in times):
            raise ValueError(f'{where}.{day} must be a list of HH:MM times')


class TimetableIn(BaseModel):
    weekly_schedule: dict[str, Any]
    recurrence_pattern: Literal['weekly', 'bi_weekly', 'monthly'] = 'weekly'
    start_date: date | None = None
    end_date: date | None = None
    duration_minutes: int = Field(default=60, ge=1, le=600)
    total_sessions: int | None = Field(default=None, ge=0)
    is_active: bool = True

    @model_validator(mode='after')
    def _validate_shape(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError('start_date must be on or before end_date')
        if self.recurrence_pattern == 'monthly':
            for key, value in self.weekly_schedule.items():
                if key not in {f'week_{n}' for n in range(1, 6)}:
                    raise ValueError(f'monthly schedule keys must be week_1..week_5, got {key!r}')
                _check_day_map(value, key)
        else:
            _check_day_map(self.weekly_schedule, 'weekly_schedule')
        return self


class ScheduleRunRequest(BaseModel):
    lookahead_days: int | None = Field(default=None, ge=0, le=366)


class ClassSessionCreateRequest(BaseModel):
    class_id: int
    session_date: date
    session_time: time
    duration_minutes: int | None = Field(default=None, ge=1, le=600)


class ClassSessionCompleteRequest(BaseModel):
    completed_at: datetime | None = None


class ScheduledNotificationOut(BaseModel):
    id: int
    class_id: int
    session_id: int | None
    rule_id: int
    status: str
    scheduled_at: str
    scheduled_session_date: date | None
    scheduled_session_time: str | None
    total_recipients: int
