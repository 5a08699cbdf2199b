from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from notify_scheduler.core.time_provider import as_app_aware
from notify_scheduler.db import get_db
from notify_scheduler.models import ClassSession
from notify_scheduler.route_logging import EndpointNameRoute
from notify_scheduler.routers.notifications import serialize_notification
from notify_scheduler.schemas import ClassSessionCompleteRequest, ClassSessionCreateRequest
from notify_scheduler.services.class_session_service import cancel_class_session, complete_class_session, create_class_session


router = APIRouter(prefix='/class-sessions', tags=['Class Sessions'], route_class=EndpointNameRoute)


def _session_or_404(db: Session, session_id: int) -> ClassSession:
    row = db.query(ClassSession).filter(ClassSession.id == session_id).first()
    if not row:
        raise HTTPException(status_code=404, detail='Class session not found')
    return row


@router.post('')
def create(payload: ClassSessionCreateRequest, db: Session = Depends(get_db)):
    try:
        row, scheduled = create_class_session(
            db,
            class_id=payload.class_id,
            session_date=payload.session_date,
            session_time=payload.session_time,
            duration_minutes=payload.duration_minutes,
        )
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {
        'id': row.id,
        'status': row.status,
        'notifications': [serialize_notification(item) for item in scheduled],
    }


@router.post('/{session_id}/cancel')
def cancel(session_id: int, db: Session = Depends(get_db)):
    row = _session_or_404(db, session_id)
    cancelled = cancel_class_session(db, row)
    return {'id': row.id, 'status': row.status, 'cancelled_notifications': cancelled}


@router.post('/{session_id}/complete')
def complete(session_id: int, payload: ClassSessionCompleteRequest | None = None, db: Session = Depends(get_db)):
    row = _session_or_404(db, session_id)
    completed_at = as_app_aware(payload.completed_at) if payload and payload.completed_at else None
    try:
        scheduled = complete_class_session(db, row, completed_at=completed_at)
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {
        'id': row.id,
        'status': row.status,
        'notifications': [serialize_notification(item) for item in scheduled],
    }
