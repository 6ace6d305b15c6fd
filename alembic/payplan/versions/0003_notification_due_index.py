"""add partial index for due queued notifications

Revision ID: 0003_notification_due_index
Revises: 0002_confirmation_event_immutability
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


revision = "0003_notification_due_index"
down_revision = "0002_confirmation_event_immutability"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_index(
        "ix_notification_records_queued_send_at",
        "notification_records",
        ["send_at"],
        postgresql_where=sa.text("status = 'QUEUED'"),
    )
    op.create_index(
        "ix_portal_links_work_unit_scope",
        "portal_links",
        ["work_unit_id", "scope", "expires_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_portal_links_work_unit_scope", table_name="portal_links")
    op.drop_index("ix_notification_records_queued_send_at", table_name="notification_records")
