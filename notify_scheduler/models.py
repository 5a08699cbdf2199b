from datetime import date, datetime, time
from enum import Enum

from sqlalchemy import JSON, Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text, Time, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from notify_scheduler.db import Base


class NotificationStatus(str, Enum):
    PENDING = 'pending'
    PROCESSING = 'processing'
    SENT = 'sent'
    CANCELLED = 'cancelled'
    FAILED = 'failed'


ACTIVE_NOTIFICATION_STATUSES = (NotificationStatus.PENDING.value, NotificationStatus.PROCESSING.value)
_ACTIVE_ROW_CLAUSE = text("status IN ('pending', 'processing')")


class SessionStatus(str, Enum):
    SCHEDULED = 'scheduled'
    ONGOING = 'ongoing'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    NO_SHOW = 'no_show'
    RESCHEDULED = 'rescheduled'


class Course(Base):
    __tablename__ = 'courses'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(180))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    classes: Mapped[list['SchoolClass']] = relationship('SchoolClass', back_populates='course')


class Teacher(Base):
    __tablename__ = 'teachers'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(120))
    email: Mapped[str] = mapped_column(String(255), default='')
    phone_number: Mapped[str] = mapped_column(String(30), default='')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    classes: Mapped[list['SchoolClass']] = relationship('SchoolClass', back_populates='teacher')

    @property
    def is_contactable(self) -> bool:
        return bool((self.email or '').strip() or (self.phone_number or '').strip())


class Student(Base):
    __tablename__ = 'students'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(120))
    email: Mapped[str] = mapped_column(String(255), default='')
    phone_number: Mapped[str] = mapped_column(String(30), default='')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    class_links: Mapped[list['ClassStudent']] = relationship('ClassStudent', back_populates='student')

    @property
    def is_contactable(self) -> bool:
        return bool((self.email or '').strip() or (self.phone_number or '').strip())


class SchoolClass(Base):
    __tablename__ = 'classes'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(180))
    course_id: Mapped[int | None] = mapped_column(ForeignKey('courses.id'), nullable=True, index=True)
    teacher_id: Mapped[int | None] = mapped_column(ForeignKey('teachers.id'), nullable=True, index=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    meeting_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    whatsapp_group_link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=60)
    status: Mapped[str] = mapped_column(String(20), default='active', index=True)  # draft|active|completed|cancelled|suspended
    email_channel_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    whatsapp_channel_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    course: Mapped['Course | None'] = relationship('Course', back_populates='classes')
    teacher: Mapped['Teacher | None'] = relationship('Teacher', back_populates='classes')
    timetable: Mapped['ClassTimetable | None'] = relationship('ClassTimetable', back_populates='school_class', uselist=False)
    sessions: Mapped[list['ClassSession']] = relationship('ClassSession', back_populates='school_class')
    student_links: Mapped[list['ClassStudent']] = relationship('ClassStudent', back_populates='school_class')
    notification_rules: Mapped[list['NotificationRule']] = relationship('NotificationRule', back_populates='school_class')


class ClassStudent(Base):
    __tablename__ = 'class_students'
    __table_args__ = (
        UniqueConstraint('class_id', 'student_id', name='uq_class_students_class_student'),
        Index('ix_class_students_class_status', 'class_id', 'status'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    class_id: Mapped[int] = mapped_column(ForeignKey('classes.id'), index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('students.id'), index=True)
    status: Mapped[str] = mapped_column(String(20), default='active')  # active|withdrawn|completed
    enrolled_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    school_class: Mapped['SchoolClass'] = relationship('SchoolClass', back_populates='student_links')
    student: Mapped['Student'] = relationship('Student', back_populates='class_links')


class ClassTimetable(Base):
    __tablename__ = 'class_timetables'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    class_id: Mapped[int] = mapped_column(ForeignKey('classes.id'), unique=True, index=True)
    weekly_schedule: Mapped[dict] = mapped_column(JSON, default=dict)
    recurrence_pattern: Mapped[str] = mapped_column(String(20), default='weekly')  # weekly|bi_weekly|monthly
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=60)
    total_sessions: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    school_class: Mapped['SchoolClass'] = relationship('SchoolClass', back_populates='timetable')


class ClassSession(Base):
    __tablename__ = 'class_sessions'
    __table_args__ = (
        Index('ix_class_sessions_class_date', 'class_id', 'session_date'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    class_id: Mapped[int] = mapped_column(ForeignKey('classes.id'), index=True)
    session_date: Mapped[date] = mapped_column(Date)
    session_time: Mapped[time] = mapped_column(Time)
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=SessionStatus.SCHEDULED.value, index=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)  # naive UTC
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    school_class: Mapped['SchoolClass'] = relationship('SchoolClass', back_populates='sessions')
    attendances: Mapped[list['ClassAttendance']] = relationship('ClassAttendance', back_populates='session')

    def session_datetime(self) -> datetime:
        # naive, app-local wall clock
        return datetime.combine(self.session_date, self.session_time)


class ClassAttendance(Base):
    __tablename__ = 'class_attendance'
    __table_args__ = (
        UniqueConstraint('session_id', 'student_id', name='uq_class_attendance_session_student'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    session_id: Mapped[int] = mapped_column(ForeignKey('class_sessions.id'), index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey('students.id'), index=True)
    status: Mapped[str] = mapped_column(String(20), default='present')  # present|late|absent|excused
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    session: Mapped['ClassSession'] = relationship('ClassSession', back_populates='attendances')


class NotificationRule(Base):
    __tablename__ = 'class_notification_rules'
    __table_args__ = (
        UniqueConstraint('class_id', 'notification_type', name='uq_notification_rules_class_type'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    class_id: Mapped[int] = mapped_column(ForeignKey('classes.id'), index=True)
    notification_type: Mapped[str] = mapped_column(String(60), index=True)  # session_reminder_24h|session_followup_immediate|...
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    send_to_students: Mapped[bool] = mapped_column(Boolean, default=True)
    send_to_teacher: Mapped[bool] = mapped_column(Boolean, default=True)
    custom_minutes_before: Mapped[int | None] = mapped_column(Integer, nullable=True)
    custom_minutes_after: Mapped[int | None] = mapped_column(Integer, nullable=True)
    email_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    whatsapp_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    subject: Mapped[str] = mapped_column(String(255), default='')
    content: Mapped[str] = mapped_column(Text, default='')
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    school_class: Mapped['SchoolClass'] = relationship('SchoolClass', back_populates='notification_rules')


class ScheduledNotification(Base):
    __tablename__ = 'scheduled_notifications'
    __table_args__ = (
        Index(
            'uq_scheduled_notifications_active_key',
            'class_id',
            'scheduled_at',
            'rule_id',
            unique=True,
            sqlite_where=_ACTIVE_ROW_CLAUSE,
            postgresql_where=_ACTIVE_ROW_CLAUSE,
        ),
        Index('ix_scheduled_notifications_status_scheduled_at', 'status', 'scheduled_at'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    class_id: Mapped[int] = mapped_column(ForeignKey('classes.id'), index=True)
    session_id: Mapped[int | None] = mapped_column(ForeignKey('class_sessions.id'), nullable=True, index=True)
    scheduled_session_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    scheduled_session_time: Mapped[str | None] = mapped_column(String(8), nullable=True)
    rule_id: Mapped[int] = mapped_column(ForeignKey('class_notification_rules.id'), index=True)
    status: Mapped[str] = mapped_column(String(20), default=NotificationStatus.PENDING.value)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime)  # naive UTC
    total_recipients: Mapped[int] = mapped_column(Integer, default=0)
    total_sent: Mapped[int] = mapped_column(Integer, default=0)
    total_failed: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str] = mapped_column(Text, default='')
    sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    school_class: Mapped['SchoolClass'] = relationship('SchoolClass')
    session: Mapped['ClassSession | None'] = relationship('ClassSession')
    rule: Mapped['NotificationRule'] = relationship('NotificationRule')

    @property
    def is_timetable_based(self) -> bool:
        return self.session_id is None and self.scheduled_session_date is not None


class Setting(Base):
    __tablename__ = 'settings'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    key: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(20), default='string')  # string|integer|boolean|json
    group: Mapped[str] = mapped_column(String(60), default='general', index=True)
    description: Mapped[str] = mapped_column(Text, default='')
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
