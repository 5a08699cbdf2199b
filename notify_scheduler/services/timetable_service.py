from __future__ import annotations

import logging
from datetime import date
from typing import Any

from sqlalchemy.orm import Session

from notify_scheduler.domain.timetable import TimetableSnapshot
from notify_scheduler.models import ClassTimetable, SchoolClass


logger = logging.getLogger(__name__)


def get_timetable(db: Session, class_id: int) -> ClassTimetable | None:
    return db.query(ClassTimetable).filter(ClassTimetable.class_id == class_id).first()


def upsert_timetable(
    db: Session,
    school_class: SchoolClass,
    *,
    weekly_schedule: dict[str, Any],
    recurrence_pattern: str,
    start_date: date | None = None,
    end_date: date | None = None,
    duration_minutes: int = 60,
    total_sessions: int | None = None,
    is_active: bool = True,
) -> ClassTimetable:
    # Raises TimetableConfigError before anything is written.
    TimetableSnapshot.from_mapping(
        class_id=school_class.id,
        schedule=weekly_schedule,
        recurrence=recurrence_pattern,
        start_date=start_date,
        end_date=end_date,
        is_active=is_active,
    )
    row = get_timetable(db, school_class.id)
    if not row:
        row = ClassTimetable(class_id=school_class.id)
        db.add(row)
    row.weekly_schedule = weekly_schedule
    row.recurrence_pattern = recurrence_pattern
    row.start_date = start_date
    row.end_date = end_date
    row.duration_minutes = duration_minutes
    row.total_sessions = total_sessions
    row.is_active = is_active
    db.commit()
    db.refresh(row)
    logger.info('timetable_saved class_id=%s pattern=%s active=%s', school_class.id, recurrence_pattern, is_active)
    return row
