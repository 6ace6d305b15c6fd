"""API request/response schemas for notification endpoints."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class QuarterEmailRequest(BaseModel):
    """Operator request to send a quarter's instructions now or later."""

    action: Literal["send", "schedule"]
    tax_year: int
    quarter: int
    send_at: datetime | None = None


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    work_unit_id: str | None
    client_id: str | None
    portal_link_id: str | None
    channel: str
    message_type: str
    recipient: str | None
    status: str
    send_at: datetime
    sent_at: datetime | None
    provider_message_id: str | None
    error_message: str | None
    meta: dict = Field(default_factory=dict)


class EmailPreview(BaseModel):
    subject: str
    html: str
    text: str
    count: int


class DispatchReport(BaseModel):
    """Counts from one dispatcher pass."""

    ok: bool = True
    processed: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
