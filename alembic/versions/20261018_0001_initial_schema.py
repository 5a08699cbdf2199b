"""class notification scheduler tables

Revision ID: 20261018_0001
Revises: 
Create Date: 2026-10-18 00:01:00
"""

from alembic import op
import sqlalchemy as sa


revision = '20261018_0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'courses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=180), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_courses_id', 'courses', ['id'])

    for table in ('teachers', 'students'):
        op.create_table(
            table,
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=120), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=False, server_default=''),
            sa.Column('phone_number', sa.String(length=30), nullable=False, server_default=''),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )
        op.create_index(f'ix_{table}_id', table, ['id'])

    op.create_table(
        'classes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('title', sa.String(length=180), nullable=False),
        sa.Column('course_id', sa.Integer(), sa.ForeignKey('courses.id'), nullable=True),
        sa.Column('teacher_id', sa.Integer(), sa.ForeignKey('teachers.id'), nullable=True),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('meeting_url', sa.String(length=500), nullable=True),
        sa.Column('whatsapp_group_link', sa.String(length=500), nullable=True),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('email_channel_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('whatsapp_channel_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_classes_id', 'classes', ['id'])
    op.create_index('ix_classes_course_id', 'classes', ['course_id'])
    op.create_index('ix_classes_teacher_id', 'classes', ['teacher_id'])
    op.create_index('ix_classes_status', 'classes', ['status'])

    op.create_table(
        'class_students',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('class_id', sa.Integer(), sa.ForeignKey('classes.id'), nullable=False),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('enrolled_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('class_id', 'student_id', name='uq_class_students_class_student'),
    )
    op.create_index('ix_class_students_id', 'class_students', ['id'])
    op.create_index('ix_class_students_class_id', 'class_students', ['class_id'])
    op.create_index('ix_class_students_student_id', 'class_students', ['student_id'])
    op.create_index('ix_class_students_class_status', 'class_students', ['class_id', 'status'])

    op.create_table(
        'class_timetables',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('class_id', sa.Integer(), sa.ForeignKey('classes.id'), nullable=False),
        sa.Column('weekly_schedule', sa.JSON(), nullable=False),
        sa.Column('recurrence_pattern', sa.String(length=20), nullable=False, server_default='weekly'),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('total_sessions', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_class_timetables_id', 'class_timetables', ['id'])
    op.create_index('ix_class_timetables_class_id', 'class_timetables', ['class_id'], unique=True)
    op.create_index('ix_class_timetables_is_active', 'class_timetables', ['is_active'])

    op.create_table(
        'class_sessions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('class_id', sa.Integer(), sa.ForeignKey('classes.id'), nullable=False),
        sa.Column('session_date', sa.Date(), nullable=False),
        sa.Column('session_time', sa.Time(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='scheduled'),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_class_sessions_id', 'class_sessions', ['id'])
    op.create_index('ix_class_sessions_class_id', 'class_sessions', ['class_id'])
    op.create_index('ix_class_sessions_status', 'class_sessions', ['status'])
    op.create_index('ix_class_sessions_class_date', 'class_sessions', ['class_id', 'session_date'])

    op.create_table(
        'class_attendance',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('class_sessions.id'), nullable=False),
        sa.Column('student_id', sa.Integer(), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='present'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('session_id', 'student_id', name='uq_class_attendance_session_student'),
    )
    op.create_index('ix_class_attendance_id', 'class_attendance', ['id'])
    op.create_index('ix_class_attendance_session_id', 'class_attendance', ['session_id'])
    op.create_index('ix_class_attendance_student_id', 'class_attendance', ['student_id'])

    op.create_table(
        'class_notification_rules',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('class_id', sa.Integer(), sa.ForeignKey('classes.id'), nullable=False),
        sa.Column('notification_type', sa.String(length=60), nullable=False),
        sa.Column('is_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('send_to_students', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('send_to_teacher', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('custom_minutes_before', sa.Integer(), nullable=True),
        sa.Column('custom_minutes_after', sa.Integer(), nullable=True),
        sa.Column('email_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('whatsapp_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('subject', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('content', sa.Text(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('class_id', 'notification_type', name='uq_notification_rules_class_type'),
    )
    op.create_index('ix_class_notification_rules_id', 'class_notification_rules', ['id'])
    op.create_index('ix_class_notification_rules_class_id', 'class_notification_rules', ['class_id'])
    op.create_index('ix_class_notification_rules_notification_type', 'class_notification_rules', ['notification_type'])
    op.create_index('ix_class_notification_rules_is_enabled', 'class_notification_rules', ['is_enabled'])

    op.create_table(
        'scheduled_notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('class_id', sa.Integer(), sa.ForeignKey('classes.id'), nullable=False),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('class_sessions.id'), nullable=True),
        sa.Column('scheduled_session_date', sa.Date(), nullable=True),
        sa.Column('scheduled_session_time', sa.String(length=8), nullable=True),
        sa.Column('rule_id', sa.Integer(), sa.ForeignKey('class_notification_rules.id'), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('scheduled_at', sa.DateTime(), nullable=False),
        sa.Column('total_recipients', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_sent', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_failed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_message', sa.Text(), nullable=False, server_default=''),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_scheduled_notifications_id', 'scheduled_notifications', ['id'])
    op.create_index('ix_scheduled_notifications_class_id', 'scheduled_notifications', ['class_id'])
    op.create_index('ix_scheduled_notifications_session_id', 'scheduled_notifications', ['session_id'])
    op.create_index('ix_scheduled_notifications_rule_id', 'scheduled_notifications', ['rule_id'])
    op.create_index('ix_scheduled_notifications_status_scheduled_at', 'scheduled_notifications', ['status', 'scheduled_at'])

    op.create_table(
        'settings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('key', sa.String(length=120), nullable=False),
        sa.Column('value', sa.Text(), nullable=True),
        sa.Column('type', sa.String(length=20), nullable=False, server_default='string'),
        sa.Column('group', sa.String(length=60), nullable=False, server_default='general'),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_settings_id', 'settings', ['id'])
    op.create_index('ix_settings_key', 'settings', ['key'], unique=True)
    op.create_index('ix_settings_group', 'settings', ['group'])


def downgrade() -> None:
    for table in (
        'settings',
        'scheduled_notifications',
        'class_notification_rules',
        'class_attendance',
        'class_sessions',
        'class_timetables',
        'class_students',
        'classes',
        'students',
        'teachers',
        'courses',
    ):
        op.drop_table(table)
