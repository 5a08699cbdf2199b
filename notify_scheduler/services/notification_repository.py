from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from notify_scheduler.models import ACTIVE_NOTIFICATION_STATUSES, NotificationStatus, ScheduledNotification


logger = logging.getLogger(__name__)


def _slot_criteria(class_id: int, session_date: date, session_time: str) -> tuple:
    return (
        ScheduledNotification.class_id == class_id,
        ScheduledNotification.session_id.is_(None),
        ScheduledNotification.scheduled_session_date == session_date,
        ScheduledNotification.scheduled_session_time == session_time,
    )


class ScheduledNotificationRepository:
    """Storage boundary for scheduled notifications.

    ``scheduled_at`` arguments are naive UTC, the same shape as the column.
    The partial unique index on (class_id, scheduled_at, rule_id) over
    pending/processing rows is what actually prevents duplicates;
    ``exists_active`` only saves a round trip in the common case.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def exists_active(self, class_id: int, scheduled_at: datetime, rule_id: int) -> bool:
        row = (
            self.db.query(ScheduledNotification.id)
            .filter(
                ScheduledNotification.class_id == class_id,
                ScheduledNotification.scheduled_at == scheduled_at,
                ScheduledNotification.rule_id == rule_id,
                ScheduledNotification.status.in_(ACTIVE_NOTIFICATION_STATUSES),
            )
            .first()
        )
        return row is not None

    def insert_if_absent(
        self,
        *,
        class_id: int,
        rule_id: int,
        scheduled_at: datetime,
        total_recipients: int,
        session_id: int | None = None,
        scheduled_session_date=None,
        scheduled_session_time: str | None = None,
    ) -> ScheduledNotification | None:
        if self.exists_active(class_id, scheduled_at, rule_id):
            return None

        row = ScheduledNotification(
            class_id=class_id,
            session_id=session_id,
            scheduled_session_date=scheduled_session_date,
            scheduled_session_time=scheduled_session_time,
            rule_id=rule_id,
            status=NotificationStatus.PENDING.value,
            scheduled_at=scheduled_at,
            total_recipients=total_recipients,
        )
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info(
                'scheduled_notification_conflict class_id=%s rule_id=%s scheduled_at=%s',
                class_id,
                rule_id,
                scheduled_at.isoformat(),
            )
            return None
        self.db.refresh(row)
        return row

    def _cancel(self, *criteria) -> int:
        count = (
            self.db.query(ScheduledNotification)
            .filter(*criteria, ScheduledNotification.status.in_(ACTIVE_NOTIFICATION_STATUSES))
            .update(
                {
                    ScheduledNotification.status: NotificationStatus.CANCELLED.value,
                    ScheduledNotification.updated_at: datetime.utcnow(),
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        return int(count or 0)

    def attach_session(self, session_id: int, class_id: int, session_date: date, session_time: str) -> int:
        """Bind active timetable rows for this slot to the session that now occupies it."""
        count = (
            self.db.query(ScheduledNotification)
            .filter(
                *_slot_criteria(class_id, session_date, session_time),
                ScheduledNotification.status.in_(ACTIVE_NOTIFICATION_STATUSES),
            )
            .update({ScheduledNotification.session_id: session_id}, synchronize_session=False)
        )
        self.db.commit()
        return int(count or 0)

    def cancel_active_for_session(
        self,
        session_id: int,
        *,
        class_id: int | None = None,
        session_date: date | None = None,
        session_time: str | None = None,
    ) -> int:
        if class_id is None or session_date is None or session_time is None:
            return self._cancel(ScheduledNotification.session_id == session_id)
        # Timetable rows for the same slot belong to the session too.
        return self._cancel(
            or_(
                ScheduledNotification.session_id == session_id,
                and_(*_slot_criteria(class_id, session_date, session_time)),
            )
        )

    def cancel_active_for_class(self, class_id: int) -> int:
        return self._cancel(ScheduledNotification.class_id == class_id)

    def list_for_class(self, class_id: int, statuses: list[str] | tuple[str, ...] | None = None) -> list[ScheduledNotification]:
        query = self.db.query(ScheduledNotification).filter(ScheduledNotification.class_id == class_id)
        if statuses:
            query = query.filter(ScheduledNotification.status.in_(list(statuses)))
        return query.order_by(ScheduledNotification.scheduled_at.asc(), ScheduledNotification.id.asc()).all()

    def due(self, now_utc: datetime, *, limit: int = 100) -> list[ScheduledNotification]:
        return (
            self.db.query(ScheduledNotification)
            .filter(
                ScheduledNotification.status == NotificationStatus.PENDING.value,
                ScheduledNotification.scheduled_at <= now_utc,
            )
            .order_by(ScheduledNotification.scheduled_at.asc(), ScheduledNotification.id.asc())
            .limit(max(1, int(limit)))
            .all()
        )
