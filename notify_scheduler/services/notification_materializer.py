from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from notify_scheduler.core.schedule_time import time_label
from notify_scheduler.core.time_provider import TimeProvider, as_app_aware, default_time_provider, from_storage, to_storage
from notify_scheduler.domain.timetable import TimetableSnapshot
from notify_scheduler.metrics import record_scheduling_event, timed_service
from notify_scheduler.models import ClassSession, ClassTimetable, NotificationRule, SchoolClass, ScheduledNotification, SessionStatus
from notify_scheduler.services.notification_repository import ScheduledNotificationRepository
from notify_scheduler.services.notification_rules import FOLLOWUP, REMINDER, enabled_rules, minutes_after, minutes_before
from notify_scheduler.services.occurrence_generator import OccurrenceGenerator
from notify_scheduler.services.recipient_service import count_recipients
from notify_scheduler.services.settings_service import NOTIFICATIONS_ENABLED, ConfigProvider, DatabaseConfigProvider


logger = logging.getLogger(__name__)


class NotificationMaterializer:
    """Turns occurrences into pending ScheduledNotification rows.

    Every (occurrence, rule) pair goes through the same steps: fire time,
    future check, recipient snapshot, active-duplicate check on
    (class, scheduled_at, rule), insert. Pairs that fail a step are dropped
    silently; the caller gets the rows that were actually created.
    """

    def __init__(
        self,
        db: Session,
        *,
        config: ConfigProvider | None = None,
        repository: ScheduledNotificationRepository | None = None,
        generator: OccurrenceGenerator | None = None,
        recipient_counter=count_recipients,
        time_provider: TimeProvider = default_time_provider,
    ) -> None:
        self.db = db
        self.config = config or DatabaseConfigProvider(db)
        self.repository = repository or ScheduledNotificationRepository(db)
        self.generator = generator or OccurrenceGenerator(self.config, time_provider=time_provider)
        self.recipient_counter = recipient_counter
        self.time_provider = time_provider

    def _enabled(self) -> bool:
        return self.config.get_bool(NOTIFICATIONS_ENABLED, True)

    def _materialize(
        self,
        *,
        class_id: int,
        rule: NotificationRule,
        fire_at: datetime,
        session_id: int | None = None,
        slot_date: date | None = None,
        slot_time: str | None = None,
        recipients_cache: dict[int, int],
    ) -> ScheduledNotification | None:
        if fire_at <= self.time_provider.now():
            record_scheduling_event('past')
            return None

        if rule.id not in recipients_cache:
            recipients_cache[rule.id] = self.recipient_counter(self.db, rule)

        row = self.repository.insert_if_absent(
            class_id=class_id,
            rule_id=rule.id,
            scheduled_at=to_storage(fire_at),
            total_recipients=recipients_cache[rule.id],
            session_id=session_id,
            scheduled_session_date=slot_date,
            scheduled_session_time=slot_time,
        )
        if row is None:
            record_scheduling_event('duplicate')
            return None
        record_scheduling_event('created')
        return row

    def _session_start(self, session: ClassSession) -> datetime:
        return as_app_aware(session.session_datetime())

    @timed_service('schedule_session_reminders')
    def schedule_session_reminders(self, session: ClassSession) -> list[ScheduledNotification]:
        attached = self.repository.attach_session(session.id, session.class_id, session.session_date, time_label(session.session_time))
        if attached:
            logger.info('timetable_notifications_attached session_id=%s count=%s', session.id, attached)
        if not self._enabled():
            return []
        created: list[ScheduledNotification] = []
        recipients_cache: dict[int, int] = {}
        start = self._session_start(session)
        for rule in enabled_rules(self.db, session.class_id, REMINDER):
            offset = minutes_before(rule)
            if offset is None:
                logger.warning('notification_rule_without_offset rule_id=%s type=%s', rule.id, rule.notification_type)
                record_scheduling_event('no_offset')
                continue
            row = self._materialize(
                class_id=session.class_id,
                rule=rule,
                fire_at=start - timedelta(minutes=offset),
                session_id=session.id,
                slot_date=session.session_date,
                slot_time=time_label(session.session_time),
                recipients_cache=recipients_cache,
            )
            if row is not None:
                created.append(row)
        logger.info('session_reminders_scheduled session_id=%s created=%s', session.id, len(created))
        return created

    @timed_service('schedule_session_followups')
    def schedule_session_followups(self, session: ClassSession) -> list[ScheduledNotification]:
        if not self._enabled():
            return []
        created: list[ScheduledNotification] = []
        recipients_cache: dict[int, int] = {}
        if session.completed_at is not None:
            base = from_storage(session.completed_at)
        else:
            base = self._session_start(session)
        for rule in enabled_rules(self.db, session.class_id, FOLLOWUP):
            offset = minutes_after(rule)
            if offset is None:
                logger.warning('notification_rule_without_offset rule_id=%s type=%s', rule.id, rule.notification_type)
                record_scheduling_event('no_offset')
                continue
            row = self._materialize(
                class_id=session.class_id,
                rule=rule,
                fire_at=base + timedelta(minutes=offset),
                session_id=session.id,
                slot_date=session.session_date,
                slot_time=time_label(session.session_time),
                recipients_cache=recipients_cache,
            )
            if row is not None:
                created.append(row)
        logger.info('session_followups_scheduled session_id=%s created=%s', session.id, len(created))
        return created

    def schedule_for_session(self, session: ClassSession) -> list[ScheduledNotification]:
        return self.schedule_session_reminders(session) + self.schedule_session_followups(session)

    def _cancelled_slots(self, class_id: int, days: set[date]) -> set[tuple[date, str]]:
        if not days:
            return set()
        rows = (
            self.db.query(ClassSession.session_date, ClassSession.session_time)
            .filter(
                ClassSession.class_id == class_id,
                ClassSession.status == SessionStatus.CANCELLED.value,
                ClassSession.session_date.in_(sorted(days)),
            )
            .all()
        )
        return {(day, time_label(at)) for day, at in rows}

    @timed_service('schedule_from_timetable')
    def schedule_from_timetable(self, school_class: SchoolClass, lookahead_days: int | None = None) -> list[ScheduledNotification]:
        if lookahead_days is not None and lookahead_days < 0:
            raise ValueError('lookahead_days must not be negative')
        if not self._enabled():
            return []

        timetable_row = self.db.query(ClassTimetable).filter(ClassTimetable.class_id == school_class.id).first()
        if not timetable_row or not timetable_row.is_active:
            return []
        rules = enabled_rules(self.db, school_class.id, REMINDER)
        if not rules:
            return []

        snapshot = TimetableSnapshot.from_model(timetable_row)
        slots = self.generator.generate(snapshot, lookahead_days)
        cancelled = self._cancelled_slots(school_class.id, {slot.session_date for slot in slots})
        if cancelled:
            slots = [slot for slot in slots if (slot.session_date, slot.session_time) not in cancelled]

        created: list[ScheduledNotification] = []
        recipients_cache: dict[int, int] = {}
        for slot in slots:
            for rule in rules:
                offset = minutes_before(rule)
                if offset is None:
                    record_scheduling_event('no_offset')
                    continue
                row = self._materialize(
                    class_id=school_class.id,
                    rule=rule,
                    fire_at=slot.starts_at - timedelta(minutes=offset),
                    slot_date=slot.session_date,
                    slot_time=slot.session_time,
                    recipients_cache=recipients_cache,
                )
                if row is not None:
                    created.append(row)
        logger.info(
            'timetable_notifications_scheduled class_id=%s slots=%s rules=%s created=%s',
            school_class.id,
            len(slots),
            len(rules),
            len(created),
        )
        return created

    def cancel_session_notifications(self, session: ClassSession) -> int:
        count = self.repository.cancel_active_for_session(
            session.id,
            class_id=session.class_id,
            session_date=session.session_date,
            session_time=time_label(session.session_time),
        )
        logger.info('session_notifications_cancelled session_id=%s count=%s', session.id, count)
        return count

    def cancel_class_notifications(self, class_id: int) -> int:
        count = self.repository.cancel_active_for_class(class_id)
        logger.info('class_notifications_cancelled class_id=%s count=%s', class_id, count)
        return count
