from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from notify_scheduler.core.time_provider import TimeProvider, default_time_provider
from notify_scheduler.db import SessionLocal
from notify_scheduler.domain.jobs.runtime import run_job
from notify_scheduler.models import ClassTimetable, SchoolClass
from notify_scheduler.services.notification_materializer import NotificationMaterializer


logger = logging.getLogger(__name__)

JOB_LABEL = 'timetable_notification_sweep'


def active_timetable_class_ids(db: Session) -> list[int]:
    rows = (
        db.query(SchoolClass.id)
        .join(ClassTimetable, ClassTimetable.class_id == SchoolClass.id)
        .filter(SchoolClass.status == 'active', ClassTimetable.is_active.is_(True))
        .order_by(SchoolClass.id.asc())
        .all()
    )
    return [int(class_id) for (class_id,) in rows]


def execute(
    *,
    lookahead_days: int | None = None,
    time_provider: TimeProvider = default_time_provider,
    session_factory=SessionLocal,
) -> dict:
    created_total = {'count': 0}

    def _job(db: Session, class_id: int) -> None:
        school_class = db.query(SchoolClass).filter(SchoolClass.id == class_id).first()
        if not school_class:
            return
        materializer = NotificationMaterializer(db, time_provider=time_provider)
        created = materializer.schedule_from_timetable(school_class, lookahead_days)
        created_total['count'] += len(created)

    summary = run_job(JOB_LABEL, _job, active_timetable_class_ids, session_factory=session_factory)
    summary['created'] = created_total['count']
    logger.info(
        'timetable_sweep_summary ok=%s failed=%s skipped=%s created=%s',
        summary['ok'],
        summary['failed'],
        summary['skipped'],
        summary['created'],
    )
    return summary
