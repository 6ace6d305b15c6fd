"""Portal database models: hashed access links and the confirmation audit trail."""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from payplan.common.db import Base, JsonColumn

PLAN_SCOPE = "PLAN"


class PortalLink(Base):
    """Access grant for one work unit; only the token's sha256 is stored."""

    __tablename__ = "portal_links"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    owner_id: Mapped[str] = mapped_column(String, index=True)
    client_id: Mapped[str] = mapped_column(ForeignKey("clients.id"), index=True)
    work_unit_id: Mapped[str] = mapped_column(ForeignKey("work_units.id"), index=True)
    scope: Mapped[str] = mapped_column(String, default=PLAN_SCOPE)
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class ConfirmationEvent(Base):
    """Immutable audit row appended whenever a client moves an obligation."""

    __tablename__ = "confirmation_events"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid4()))
    owner_id: Mapped[str] = mapped_column(String, index=True)
    obligation_id: Mapped[str] = mapped_column(ForeignKey("obligations.id"), index=True)
    event_type: Mapped[str] = mapped_column(String)
    actor_type: Mapped[str] = mapped_column(String)
    actor_email: Mapped[str | None] = mapped_column(String, nullable=True)
    meta: Mapped[dict] = mapped_column("metadata", JsonColumn, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
