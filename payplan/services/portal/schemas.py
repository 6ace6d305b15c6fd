"""API request/response schemas for the client portal."""

from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, Field


class ConfirmationSubmission(BaseModel):
    """Client-submitted proof that one obligation was paid."""

    obligation_id: str = Field(default="", validation_alias=AliasChoices("obligation_id", "paymentId"))
    email: str = ""
    paid_date: Any = Field(default=None, validation_alias=AliasChoices("paid_date", "paidDate"))
    paid_amount: Any = Field(default=None, validation_alias=AliasChoices("paid_amount", "paidAmount"))
    confirmation_number: str | None = Field(
        default=None, validation_alias=AliasChoices("confirmation_number", "confirmationNumber")
    )
    note: str | None = None


class PortalObligation(BaseModel):
    id: str
    scope: str
    jurisdiction_code: str | None
    payment_type: str
    quarter: int | None
    tax_year: int | None
    due_date: date | None
    amount: Decimal | None
    method: str | None
    status: str
    display_status: str


class PortalView(BaseModel):
    """Checklist shown to the end client behind a portal link."""

    client_name: str
    obligations: list[PortalObligation]
    total: int
    confirmed: int
    remaining: int
    next_due: date | None


class ConfirmationResponse(BaseModel):
    ok: bool = True
    obligation_id: str
    status: str
