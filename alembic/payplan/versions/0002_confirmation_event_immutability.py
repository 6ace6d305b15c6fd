"""enforce append-only confirmation events

Revision ID: 0002_confirmation_event_immutability
Revises: 0001_payplan
Create Date: 2026-10-17
"""

from alembic import op


revision = "0002_confirmation_event_immutability"
down_revision = "0001_payplan"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        """
        CREATE OR REPLACE FUNCTION prevent_confirmation_event_mutation()
        RETURNS trigger
        LANGUAGE plpgsql
        AS $$
        BEGIN
            RAISE EXCEPTION 'confirmation_events is append-only; % is not allowed', TG_OP;
        END;
        $$;
        """
    )
    op.execute(
        """
        CREATE TRIGGER trg_confirmation_events_immutable
        BEFORE UPDATE OR DELETE ON confirmation_events
        FOR EACH ROW
        EXECUTE FUNCTION prevent_confirmation_event_mutation();
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_confirmation_events_immutable ON confirmation_events;")
    op.execute("DROP FUNCTION IF EXISTS prevent_confirmation_event_mutation();")
