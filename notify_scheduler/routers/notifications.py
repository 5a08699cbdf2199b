from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from notify_scheduler.core.time_provider import from_storage
from notify_scheduler.db import get_db
from notify_scheduler.domain.timetable import TimetableConfigError, TimetableSnapshot
from notify_scheduler.models import SchoolClass, ScheduledNotification
from notify_scheduler.route_logging import EndpointNameRoute
from notify_scheduler.schemas import ScheduleRunRequest, ScheduledNotificationOut, TimetableIn
from notify_scheduler.services.notification_materializer import NotificationMaterializer
from notify_scheduler.services.notification_repository import ScheduledNotificationRepository
from notify_scheduler.services.notification_rules import initialize_default_rules
from notify_scheduler.services.occurrence_generator import OccurrenceGenerator
from notify_scheduler.services.placeholder_service import PLACEHOLDERS
from notify_scheduler.services.settings_service import DatabaseConfigProvider
from notify_scheduler.services.timetable_service import get_timetable, upsert_timetable


router = APIRouter(prefix='/classes', tags=['Notifications'], route_class=EndpointNameRoute)


def _class_or_404(db: Session, class_id: int) -> SchoolClass:
    row = db.query(SchoolClass).filter(SchoolClass.id == class_id).first()
    if not row:
        raise HTTPException(status_code=404, detail='Class not found')
    return row


def serialize_notification(row: ScheduledNotification) -> dict:
    return ScheduledNotificationOut(
        id=row.id,
        class_id=row.class_id,
        session_id=row.session_id,
        rule_id=row.rule_id,
        status=row.status,
        scheduled_at=from_storage(row.scheduled_at).isoformat(),
        scheduled_session_date=row.scheduled_session_date,
        scheduled_session_time=row.scheduled_session_time,
        total_recipients=row.total_recipients,
    ).model_dump()


@router.get('/notification-placeholders')
def placeholders():
    return {'placeholders': [f'{{{{{name}}}}}' for name in PLACEHOLDERS]}


@router.put('/{class_id}/timetable')
def save_timetable(class_id: int, payload: TimetableIn, db: Session = Depends(get_db)):
    school_class = _class_or_404(db, class_id)
    try:
        row = upsert_timetable(db, school_class, **payload.model_dump())
    except TimetableConfigError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return {'id': row.id, 'class_id': row.class_id, 'recurrence_pattern': row.recurrence_pattern}


@router.get('/{class_id}/notifications/preview-slots')
def preview_slots(class_id: int, lookahead_days: int | None = None, db: Session = Depends(get_db)):
    _class_or_404(db, class_id)
    timetable = get_timetable(db, class_id)
    if not timetable:
        return []
    try:
        snapshot = TimetableSnapshot.from_model(timetable)
        slots = OccurrenceGenerator(DatabaseConfigProvider(db)).generate(snapshot, lookahead_days)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return [slot.as_dict() for slot in slots]


@router.post('/{class_id}/notifications/schedule')
def schedule(class_id: int, payload: ScheduleRunRequest | None = None, db: Session = Depends(get_db)):
    school_class = _class_or_404(db, class_id)
    try:
        created = NotificationMaterializer(db).schedule_from_timetable(school_class, payload.lookahead_days if payload else None)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return {'created': len(created), 'notifications': [serialize_notification(row) for row in created]}


@router.get('/{class_id}/notifications')
def list_notifications(class_id: int, status: str | None = None, db: Session = Depends(get_db)):
    _class_or_404(db, class_id)
    statuses = [item.strip() for item in status.split(',') if item.strip()] if status else None
    rows = ScheduledNotificationRepository(db).list_for_class(class_id, statuses)
    return [serialize_notification(row) for row in rows]


@router.post('/{class_id}/notifications/cancel')
def cancel_notifications(class_id: int, db: Session = Depends(get_db)):
    _class_or_404(db, class_id)
    return {'cancelled': NotificationMaterializer(db).cancel_class_notifications(class_id)}


@router.post('/{class_id}/notification-rules/defaults')
def default_rules(class_id: int, db: Session = Depends(get_db)):
    school_class = _class_or_404(db, class_id)
    rows = initialize_default_rules(db, school_class)
    return [
        {'id': r.id, 'notification_type': r.notification_type, 'is_enabled': r.is_enabled}
        for r in rows
    ]
