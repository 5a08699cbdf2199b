from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from notify_scheduler.models import NotificationRule, SchoolClass


logger = logging.getLogger(__name__)

REMINDER_PREFIX = 'session_reminder_'
FOLLOWUP_PREFIX = 'session_followup_'

REMINDER = 'reminder'
FOLLOWUP = 'followup'

REMINDER_OFFSETS = {
    '24h': 1440,
    '3h': 180,
    '1h': 60,
    '30m': 30,
    '15m': 15,
}
FOLLOWUP_OFFSETS = {
    'immediate': 0,
    '1h': 60,
    '24h': 1440,
}

DEFAULT_RULE_TYPES = (
    'session_reminder_24h',
    'session_reminder_1h',
    'session_followup_immediate',
)


def rule_category(notification_type: str) -> str | None:
    if notification_type.startswith(REMINDER_PREFIX):
        return REMINDER
    if notification_type.startswith(FOLLOWUP_PREFIX):
        return FOLLOWUP
    return None


def minutes_before(rule: NotificationRule) -> int | None:
    """Reminder offset; None for followups or unknown suffixes."""
    if rule_category(rule.notification_type) != REMINDER:
        return None
    if rule.custom_minutes_before is not None:
        return max(0, int(rule.custom_minutes_before))
    return REMINDER_OFFSETS.get(rule.notification_type[len(REMINDER_PREFIX):])


def minutes_after(rule: NotificationRule) -> int | None:
    if rule_category(rule.notification_type) != FOLLOWUP:
        return None
    if rule.custom_minutes_after is not None:
        return max(0, int(rule.custom_minutes_after))
    return FOLLOWUP_OFFSETS.get(rule.notification_type[len(FOLLOWUP_PREFIX):])


def enabled_rules(db: Session, class_id: int, category: str) -> list[NotificationRule]:
    if category == REMINDER:
        prefix = REMINDER_PREFIX
    elif category == FOLLOWUP:
        prefix = FOLLOWUP_PREFIX
    else:
        raise ValueError(f'unknown rule category: {category}')
    return (
        db.query(NotificationRule)
        .filter(
            NotificationRule.class_id == class_id,
            NotificationRule.is_enabled.is_(True),
            NotificationRule.notification_type.like(f'{prefix}%'),
        )
        .order_by(NotificationRule.id.asc())
        .all()
    )


def initialize_default_rules(db: Session, school_class: SchoolClass) -> list[NotificationRule]:
    rows: list[NotificationRule] = []
    for notification_type in DEFAULT_RULE_TYPES:
        row = (
            db.query(NotificationRule)
            .filter(NotificationRule.class_id == school_class.id, NotificationRule.notification_type == notification_type)
            .first()
        )
        if not row:
            row = NotificationRule(class_id=school_class.id, notification_type=notification_type)
            db.add(row)
        row.is_enabled = False
        row.send_to_students = True
        row.send_to_teacher = True
        rows.append(row)
    db.commit()
    for row in rows:
        db.refresh(row)
    logger.info('default_notification_rules_initialized class_id=%s count=%s', school_class.id, len(rows))
    return rows
