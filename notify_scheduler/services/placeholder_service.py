from __future__ import annotations

import logging
import re
from datetime import date, time
from typing import Any

from jinja2 import Environment, TemplateSyntaxError
from sqlalchemy import func
from sqlalchemy.orm import Session

from notify_scheduler.core.schedule_time import parse_time_of_day
from notify_scheduler.models import ClassAttendance, ClassSession, ClassTimetable, ScheduledNotification, SchoolClass, SessionStatus, Student, Teacher


PLACEHOLDERS = (
    'student_name',
    'teacher_name',
    'class_name',
    'course_name',
    'session_date',
    'session_time',
    'session_datetime',
    'location',
    'meeting_url',
    'whatsapp_link',
    'duration',
    'remaining_sessions',
    'total_sessions',
    'attendance_rate',
)

_env = Environment(autoescape=False, keep_trailing_newline=True)
_PLAIN_TOKEN = re.compile(r'\{\{\s*(\w+)\s*\}\}')

logger = logging.getLogger(__name__)


def format_session_date(day: date) -> str:
    return day.strftime('%d %b %Y')


def format_session_time(at: time) -> str:
    return at.strftime('%I:%M %p').lstrip('0')


def format_duration(minutes: int | None) -> str:
    total = int(minutes or 0)
    if total <= 0:
        return ''
    hours, rest = divmod(total, 60)
    if hours and rest:
        return f'{hours}h {rest}m'
    if hours:
        return f'{hours}h'
    return f'{rest}m'


def attendance_rate(db: Session, student_id: int, class_id: int) -> float:
    base = (
        db.query(func.count(ClassAttendance.id))
        .join(ClassSession, ClassSession.id == ClassAttendance.session_id)
        .filter(ClassSession.class_id == class_id, ClassAttendance.student_id == student_id)
    )
    total = base.scalar() or 0
    if not total:
        return 0.0
    present = base.filter(ClassAttendance.status.in_(('present', 'late'))).scalar() or 0
    return round(present / total * 100, 1)


def _session_counts(db: Session, class_id: int) -> tuple[int, int]:
    total = db.query(func.count(ClassSession.id)).filter(ClassSession.class_id == class_id).scalar() or 0
    remaining = (
        db.query(func.count(ClassSession.id))
        .filter(ClassSession.class_id == class_id, ClassSession.status == SessionStatus.SCHEDULED.value)
        .scalar()
        or 0
    )
    return int(total), int(remaining)


def build_context(
    db: Session,
    notification: ScheduledNotification,
    *,
    student: Student | None = None,
    teacher: Teacher | None = None,
) -> dict[str, Any]:
    school_class: SchoolClass = notification.school_class
    course = school_class.course
    class_teacher = teacher or school_class.teacher
    session = notification.session if notification.session_id else None

    session_day: date | None = None
    session_at: time | None = None
    duration_minutes = school_class.duration_minutes
    if session is not None:
        session_day = session.session_date
        session_at = session.session_time
        duration_minutes = session.duration_minutes or duration_minutes
    else:
        session_day = notification.scheduled_session_date
        session_at = parse_time_of_day(notification.scheduled_session_time)

    total_sessions, remaining_sessions = _session_counts(db, school_class.id)
    if session is None:
        timetable = db.query(ClassTimetable).filter(ClassTimetable.class_id == school_class.id).first()
        total_label = str(timetable.total_sessions) if timetable and timetable.total_sessions else ''
        remaining_label = ''
    else:
        total_label = str(total_sessions)
        remaining_label = str(remaining_sessions)

    date_label = format_session_date(session_day) if session_day else ''
    time_label = format_session_time(session_at) if session_at else ''
    return {
        'student_name': student.name if student else '',
        'teacher_name': class_teacher.name if class_teacher else '',
        'class_name': school_class.title,
        'course_name': course.name if course else '',
        'session_date': date_label,
        'session_time': time_label,
        'session_datetime': f'{date_label} {time_label}'.strip(),
        'location': school_class.location or 'TBA',
        'meeting_url': school_class.meeting_url or '',
        'whatsapp_link': school_class.whatsapp_group_link or '',
        'duration': format_duration(duration_minutes),
        'remaining_sessions': remaining_label,
        'total_sessions': total_label,
        'attendance_rate': f'{attendance_rate(db, student.id, school_class.id)}%' if student else '',
    }


def render_template(content: str, context: dict[str, Any]) -> str:
    """Render ``{{ placeholder }}`` tokens; unknown names render blank.

    Content that is not valid template syntax (a stray ``{%`` or ``{#``) still
    gets its plain placeholders substituted and is otherwise left as written.
    """
    try:
        return _env.from_string(content or '').render(**context)
    except TemplateSyntaxError as exc:
        logger.warning('template_render_fallback line=%s error=%s', exc.lineno, exc.message)
        return _PLAIN_TOKEN.sub(lambda match: str(context.get(match.group(1), '')), content)


def render_for_recipient(
    db: Session,
    notification: ScheduledNotification,
    content: str,
    *,
    student: Student | None = None,
    teacher: Teacher | None = None,
) -> str:
    return render_template(content, build_context(db, notification, student=student, teacher=teacher))
