"""scheduled notification active dedup index

Revision ID: 20261018_0002
Revises: 20261018_0001
Create Date: 2026-10-18 00:02:00
"""

from alembic import op
import sqlalchemy as sa


revision = '20261018_0002'
down_revision = '20261018_0001'
branch_labels = None
depends_on = None

_ACTIVE = sa.text("status IN ('pending', 'processing')")


def upgrade() -> None:
    # Keep the earliest active row per key before the unique index goes on.
    op.execute(
        """
        UPDATE scheduled_notifications
        SET status = 'cancelled'
        WHERE status IN ('pending', 'processing')
          AND id NOT IN (
            SELECT MIN(id)
            FROM scheduled_notifications
            WHERE status IN ('pending', 'processing')
            GROUP BY class_id, scheduled_at, rule_id
          )
        """
    )
    op.create_index(
        'uq_scheduled_notifications_active_key',
        'scheduled_notifications',
        ['class_id', 'scheduled_at', 'rule_id'],
        unique=True,
        sqlite_where=_ACTIVE,
        postgresql_where=_ACTIVE,
    )


def downgrade() -> None:
    op.drop_index('uq_scheduled_notifications_active_key', table_name='scheduled_notifications')
