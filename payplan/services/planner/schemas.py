"""API request/response schemas for planner endpoints."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from payplan.common.state_machine import display_status


class SyncResponse(BaseModel):
    """Outcome of one work-unit synchronization pass."""

    work_unit_id: str
    client_id: str
    client_ref: str
    created: int = 0
    updated: int = 0
    reinstated: int = 0
    cancelled: int = 0
    unchanged: int = 0
    locked: int = 0
    skipped: int = 0


class SessionSyncResponse(BaseModel):
    batch_id: str
    session_id: str
    results: list[SyncResponse]


class ObligationResponse(BaseModel):
    id: str
    work_unit_id: str
    scope: str
    jurisdiction_code: str | None
    payment_type: str
    quarter: int | None
    due_date: date | None
    amount: Decimal | None
    tax_year: int | None
    notes: str | None
    method: str | None
    sort_order: int
    identity_key: str
    status: str
    display_status: str
    confirmed_at: datetime | None = None
    confirmed_by_email: str | None = None
    confirmed_date: date | None = None
    confirmed_amount: Decimal | None = None
    confirmation_number: str | None = None
    confirmation_note: str | None = None


class ObligationPatch(BaseModel):
    """Operator edit of non-identity obligation fields.

    Omitted fields are left as they are; explicit nulls clear them. Values
    go through the same lenient parsers as intake documents.
    """

    payment_type: str | None = Field(default=None, min_length=1)
    quarter: Any = None
    due_date: Any = None
    amount: Any = None
    tax_year: Any = None
    method: str | None = None
    notes: str | None = None


def obligation_response(obligation, today: date) -> ObligationResponse:
    """Serialize an obligation with its read-time display status."""

    data = {name: getattr(obligation, name) for name in ObligationResponse.model_fields if name != "display_status"}
    return ObligationResponse(
        **data,
        display_status=display_status(obligation.status, obligation.due_date, today),
    )
