from __future__ import annotations

import logging
from datetime import date, datetime, time

from sqlalchemy.orm import Session

from notify_scheduler.core.time_provider import TimeProvider, default_time_provider, ensure_aware, to_storage
from notify_scheduler.models import ClassSession, SchoolClass, SessionStatus
from notify_scheduler.services.notification_materializer import NotificationMaterializer


logger = logging.getLogger(__name__)


def _materializer(db: Session, time_provider: TimeProvider, materializer: NotificationMaterializer | None) -> NotificationMaterializer:
    return materializer or NotificationMaterializer(db, time_provider=time_provider)


def create_class_session(
    db: Session,
    *,
    class_id: int,
    session_date: date,
    session_time: time,
    duration_minutes: int | None = None,
    time_provider: TimeProvider = default_time_provider,
    materializer: NotificationMaterializer | None = None,
) -> tuple[ClassSession, list]:
    school_class = db.query(SchoolClass).filter(SchoolClass.id == class_id).first()
    if not school_class:
        raise ValueError('Class not found')
    row = ClassSession(
        class_id=class_id,
        session_date=session_date,
        session_time=session_time,
        duration_minutes=duration_minutes,
        status=SessionStatus.SCHEDULED.value,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    scheduled = _materializer(db, time_provider, materializer).schedule_session_reminders(row)
    logger.info('class_session_created session_id=%s class_id=%s reminders=%s', row.id, class_id, len(scheduled))
    return row, scheduled


def cancel_class_session(
    db: Session,
    session: ClassSession,
    *,
    time_provider: TimeProvider = default_time_provider,
    materializer: NotificationMaterializer | None = None,
) -> int:
    session.status = SessionStatus.CANCELLED.value
    db.commit()
    return _materializer(db, time_provider, materializer).cancel_session_notifications(session)


def complete_class_session(
    db: Session,
    session: ClassSession,
    *,
    completed_at: datetime | None = None,
    time_provider: TimeProvider = default_time_provider,
    materializer: NotificationMaterializer | None = None,
) -> list:
    if session.status == SessionStatus.CANCELLED.value:
        raise ValueError('Cancelled session cannot be completed')
    finished = ensure_aware(completed_at) if completed_at is not None else time_provider.now()
    session.status = SessionStatus.COMPLETED.value
    session.completed_at = to_storage(finished)
    db.commit()
    db.refresh(session)
    return _materializer(db, time_provider, materializer).schedule_session_followups(session)
