"""initial payplan schema

Revision ID: 0001_payplan
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_payplan"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "clients",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("external_ref", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("addressee_name", sa.String(), nullable=False),
        sa.Column("primary_email", sa.String(), nullable=True),
        sa.Column("entity_type", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("owner_id", "external_ref", name="uq_clients_owner_ref"),
    )
    op.create_index("ix_clients_owner_id", "clients", ["owner_id"])

    op.create_table(
        "work_units",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("batch_id", sa.String(), nullable=False),
        sa.Column("client_id", sa.String(), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("snapshot", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("batch_id", "client_id", name="uq_work_units_batch_client"),
    )
    op.create_index("ix_work_units_owner_id", "work_units", ["owner_id"])
    op.create_index("ix_work_units_batch_id", "work_units", ["batch_id"])
    op.create_index("ix_work_units_client_id", "work_units", ["client_id"])

    op.create_table(
        "obligations",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("work_unit_id", sa.String(), sa.ForeignKey("work_units.id"), nullable=False),
        sa.Column("scope", sa.String(), nullable=False),
        sa.Column("jurisdiction_code", sa.String(length=2), nullable=True),
        sa.Column("payment_type", sa.String(), nullable=False),
        sa.Column("quarter", sa.Integer(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("tax_year", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("method", sa.String(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("identity_key", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("state_version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_by_email", sa.String(), nullable=True),
        sa.Column("confirmed_date", sa.Date(), nullable=True),
        sa.Column("confirmed_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("confirmation_number", sa.String(), nullable=True),
        sa.Column("confirmation_note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("work_unit_id", "identity_key", name="uq_obligations_identity"),
    )
    op.create_index("ix_obligations_owner_id", "obligations", ["owner_id"])
    op.create_index("ix_obligations_work_unit_id", "obligations", ["work_unit_id"])
    op.create_index("ix_obligations_tax_year", "obligations", ["tax_year"])
    op.create_index("ix_obligations_status", "obligations", ["status"])

    op.create_table(
        "portal_links",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("client_id", sa.String(), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("work_unit_id", sa.String(), sa.ForeignKey("work_units.id"), nullable=False),
        sa.Column("scope", sa.String(), nullable=False),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_portal_links_owner_id", "portal_links", ["owner_id"])
    op.create_index("ix_portal_links_client_id", "portal_links", ["client_id"])
    op.create_index("ix_portal_links_work_unit_id", "portal_links", ["work_unit_id"])
    op.create_index("ix_portal_links_token_hash", "portal_links", ["token_hash"], unique=True)

    op.create_table(
        "confirmation_events",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("obligation_id", sa.String(), sa.ForeignKey("obligations.id"), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("actor_type", sa.String(), nullable=False),
        sa.Column("actor_email", sa.String(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_confirmation_events_owner_id", "confirmation_events", ["owner_id"])
    op.create_index("ix_confirmation_events_obligation_id", "confirmation_events", ["obligation_id"])

    op.create_table(
        "notification_records",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("client_id", sa.String(), sa.ForeignKey("clients.id"), nullable=True),
        sa.Column("work_unit_id", sa.String(), sa.ForeignKey("work_units.id"), nullable=True),
        sa.Column("portal_link_id", sa.String(), sa.ForeignKey("portal_links.id"), nullable=True),
        sa.Column("channel", sa.String(), nullable=False),
        sa.Column("message_type", sa.String(), nullable=False),
        sa.Column("recipient", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("send_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("provider_message_id", sa.String(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notification_records_owner_id", "notification_records", ["owner_id"])
    op.create_index("ix_notification_records_client_id", "notification_records", ["client_id"])
    op.create_index("ix_notification_records_work_unit_id", "notification_records", ["work_unit_id"])
    op.create_index("ix_notification_records_due", "notification_records", ["status", "send_at"])


def downgrade() -> None:
    op.drop_table("notification_records")
    op.drop_table("confirmation_events")
    op.drop_table("portal_links")
    op.drop_table("obligations")
    op.drop_table("work_units")
    op.drop_table("clients")
