"""Notification persistence models (one row per instruction-send attempt)."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from payplan.common.claims import QUEUED
from payplan.common.db import Base, JsonColumn

EMAIL_CHANNEL = "EMAIL"
QUARTERLY_INSTRUCTIONS = "QUARTERLY_PAYMENT_INSTRUCTIONS"


class NotificationRecord(Base):
    """Queued, sent or failed delivery of quarterly payment instructions.

    Created `QUEUED`; the dispatcher moves it exactly once to `SENT` or
    `FAILED`. Nothing re-queues a record.
    """

    __tablename__ = "notification_records"
    __table_args__ = (Index("ix_notification_records_due", "status", "send_at"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    owner_id: Mapped[str] = mapped_column(String, index=True)
    client_id: Mapped[str | None] = mapped_column(ForeignKey("clients.id"), nullable=True, index=True)
    work_unit_id: Mapped[str | None] = mapped_column(ForeignKey("work_units.id"), nullable=True, index=True)
    portal_link_id: Mapped[str | None] = mapped_column(ForeignKey("portal_links.id"), nullable=True)
    channel: Mapped[str] = mapped_column(String, default=EMAIL_CHANNEL)
    message_type: Mapped[str] = mapped_column(String, default=QUARTERLY_INSTRUCTIONS)
    recipient: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, default=QUEUED)
    send_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    provider_message_id: Mapped[str | None] = mapped_column(String, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    meta: Mapped[dict] = mapped_column("metadata", JsonColumn, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
