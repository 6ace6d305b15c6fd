"""Planner database models.

This DB is the source of truth for clients, work units (one per batch/client
pair) and the payment obligations synchronized from their intake documents.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payplan.common.db import Base, JsonColumn
from payplan.common.state_machine import DRAFT, STORED_STATUSES


class Client(Base):
    """End client known to one operator account."""

    __tablename__ = "clients"
    __table_args__ = (UniqueConstraint("owner_id", "external_ref", name="uq_clients_owner_ref"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    owner_id: Mapped[str] = mapped_column(String, index=True)
    external_ref: Mapped[str] = mapped_column(String)
    name: Mapped[str] = mapped_column(String, default="")
    addressee_name: Mapped[str] = mapped_column(String, default="")
    primary_email: Mapped[str | None] = mapped_column(String, nullable=True)
    entity_type: Mapped[str] = mapped_column(String, default="individual")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class WorkUnit(Base):
    """Reconciliation scope: one intake snapshot and the obligations derived from it."""

    __tablename__ = "work_units"
    __table_args__ = (UniqueConstraint("batch_id", "client_id", name="uq_work_units_batch_client"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    owner_id: Mapped[str] = mapped_column(String, index=True)
    batch_id: Mapped[str] = mapped_column(String, index=True)
    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id"), index=True)
    snapshot: Mapped[dict] = mapped_column(JsonColumn, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    client: Mapped[Client] = relationship(lazy="joined")


class Obligation(Base):
    """One federal or state payment amount and its lifecycle status."""

    __tablename__ = "obligations"
    __table_args__ = (
        UniqueConstraint("work_unit_id", "identity_key", name="uq_obligations_identity"),
        CheckConstraint(
            "status IN (%s)" % ", ".join(f"'{status}'" for status in STORED_STATUSES),
            name="ck_obligations_status",
        ),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    owner_id: Mapped[str] = mapped_column(String, index=True)
    work_unit_id: Mapped[str] = mapped_column(ForeignKey("work_units.id"), index=True)
    scope: Mapped[str] = mapped_column(String)
    jurisdiction_code: Mapped[str | None] = mapped_column(String(2), nullable=True)
    payment_type: Mapped[str] = mapped_column(String)
    quarter: Mapped[int | None] = mapped_column(Integer, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    tax_year: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    method: Mapped[str | None] = mapped_column(String, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer)
    identity_key: Mapped[str] = mapped_column(String)
    status: Mapped[str] = mapped_column(String, default=DRAFT, index=True)
    state_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    confirmed_by_email: Mapped[str | None] = mapped_column(String, nullable=True)
    confirmed_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    confirmed_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    confirmation_number: Mapped[str | None] = mapped_column(String, nullable=True)
    confirmation_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
