"""restrict obligations.status to the stored lifecycle statuses

Revision ID: 0004_obligation_status_check
Revises: 0003_notification_due_index
Create Date: 2026-10-17
"""

from alembic import op


revision = "0004_obligation_status_check"
down_revision = "0003_notification_due_index"
branch_labels = None
depends_on = None

# OVERDUE is derived at read time and never written.
STORED_STATUSES = ("DRAFT", "SENT", "VIEWED", "CONFIRMED", "VERIFIED", "CANCELLED")


def upgrade() -> None:
    op.create_check_constraint(
        "ck_obligations_status",
        "obligations",
        "status IN (%s)" % ", ".join(f"'{status}'" for status in STORED_STATUSES),
    )


def downgrade() -> None:
    op.drop_constraint("ck_obligations_status", "obligations", type_="check")
