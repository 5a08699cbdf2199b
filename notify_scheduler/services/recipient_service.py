from __future__ import annotations

from sqlalchemy.orm import Session, selectinload

from notify_scheduler.models import ClassStudent, NotificationRule, SchoolClass


def list_recipients(db: Session, rule: NotificationRule) -> list[dict]:
    school_class = db.query(SchoolClass).filter(SchoolClass.id == rule.class_id).first()
    if not school_class:
        return []

    recipients: list[dict] = []
    if rule.send_to_students:
        links = (
            db.query(ClassStudent)
            .options(selectinload(ClassStudent.student))
            .filter(ClassStudent.class_id == school_class.id, ClassStudent.status == 'active')
            .order_by(ClassStudent.id.asc())
            .all()
        )
        for link in links:
            student = link.student
            if student is None or not student.is_contactable:
                continue
            recipients.append(
                {
                    'type': 'student',
                    'id': student.id,
                    'name': student.name or 'Pelajar',
                    'email': student.email or None,
                    'phone': student.phone_number or None,
                }
            )

    teacher = school_class.teacher
    if rule.send_to_teacher and teacher is not None and teacher.is_contactable:
        recipients.append(
            {
                'type': 'teacher',
                'id': teacher.id,
                'name': teacher.name or 'Guru',
                'email': teacher.email or None,
                'phone': teacher.phone_number or None,
            }
        )
    return recipients


def count_recipients(db: Session, rule: NotificationRule) -> int:
    return len(list_recipients(db, rule))
