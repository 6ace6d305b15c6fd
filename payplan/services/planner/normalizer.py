"""Canonical intake-document normalization.

The intake wizard, autosave, bulk import and assistant patches all produce the
same loosely-typed JSON. `normalize_client_data` and `normalize_session` coerce
any input into fully-defaulted pydantic documents and never raise: malformed
values degrade to defaults so a document can always be re-opened. Keys this
module does not know are carried through untouched, which keeps older and
newer snapshot versions loadable.
"""

from collections.abc import Mapping
from datetime import timedelta
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from payplan.common.clock import today_utc, utcnow
from payplan.services.planner.parsing import as_text, normalize_date_text

PAYMENT_METHODS = ("electronic", "mail")
ENTITY_TYPES = ("individual", "business")


class _Document(BaseModel):
    model_config = ConfigDict(extra="allow", alias_generator=to_camel)


class IntakePayment(_Document):
    type: str = "Estimated"
    quarter: str = ""
    due_date: str = ""
    amount: str = ""
    tax_period: str = ""
    description: str = ""
    method: str = ""


class StatePaymentGroup(_Document):
    state_name: str
    payments: list[IntakePayment] = Field(default_factory=list)


class IntakeDocument(_Document):
    """Normalized per-client intake data."""

    addressee_name: str = ""
    primary_email: str = ""
    sender_name: str = ""
    payment_due_date: str = ""
    show_due_date_reminder: bool = True
    show_disclaimers: bool = True
    entity_type: str = "individual"
    business_type: str = ""
    entity_id: str = ""
    entity_name: str = ""
    ca_corp_form: str = ""
    federal_payments: list[IntakePayment] = Field(default_factory=list)
    state_payments: list[StatePaymentGroup] = Field(default_factory=list)

    def snapshot(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class IntakeClient(_Document):
    client_id: str
    data: IntakeDocument


class IntakeSession(_Document):
    version: int = 1
    id: str
    name: str = "Untitled Session"
    created_at: str
    updated_at: str
    clients: list[IntakeClient] = Field(default_factory=list)


def _as_record(value: Any) -> dict:
    return dict(value) if isinstance(value, Mapping) else {}


def _as_list(value: Any) -> list:
    return list(value) if isinstance(value, (list, tuple)) else []


def _as_flag(value: Any) -> bool:
    """True unless explicitly false."""

    if value is False:
        return False
    return not (isinstance(value, str) and value.strip().lower() == "false")


def _extras(source: dict, model: type[BaseModel]) -> dict:
    known = set()
    for name, field in model.model_fields.items():
        known.add(name)
        known.add(field.alias or name)
    return {key: value for key, value in source.items() if isinstance(key, str) and key not in known}


def normalize_payment(value: Any) -> IntakePayment:
    source = _as_record(value)
    payment_type = as_text(source.get("type")) or "Estimated"
    is_estimated = "estimated" in payment_type.lower()
    method = as_text(source.get("method")).lower()
    return IntakePayment.model_validate(
        {
            **_extras(source, IntakePayment),
            "type": payment_type,
            "quarter": as_text(source.get("quarter")).upper() if is_estimated else "",
            "dueDate": normalize_date_text(source.get("dueDate")),
            "amount": as_text(source.get("amount")),
            "taxPeriod": as_text(source.get("taxPeriod")),
            "description": as_text(source.get("description")),
            "method": method if method in PAYMENT_METHODS else "",
        }
    )


def normalize_state_group(value: Any) -> StatePaymentGroup | None:
    source = _as_record(value)
    state_name = as_text(source.get("stateName"))
    if not state_name:
        return None
    return StatePaymentGroup.model_validate(
        {
            **_extras(source, StatePaymentGroup),
            "stateName": state_name,
            "payments": [normalize_payment(item) for item in _as_list(source.get("payments"))],
        }
    )


def normalize_client_data(value: Any) -> IntakeDocument:
    """Coerce one client's intake data into a canonical document."""

    source = _as_record(value)
    entity_type = as_text(source.get("entityType")).lower()
    default_due = (today_utc() + timedelta(days=7)).isoformat()
    groups = (normalize_state_group(item) for item in _as_list(source.get("statePayments")))
    return IntakeDocument.model_validate(
        {
            **_extras(source, IntakeDocument),
            "addresseeName": as_text(source.get("addresseeName")),
            "primaryEmail": as_text(source.get("primaryEmail")),
            "senderName": as_text(source.get("senderName")),
            "paymentDueDate": normalize_date_text(source.get("paymentDueDate")) or default_due,
            "showDueDateReminder": _as_flag(source.get("showDueDateReminder")),
            "showDisclaimers": _as_flag(source.get("showDisclaimers")),
            "entityType": entity_type if entity_type in ENTITY_TYPES else "individual",
            "businessType": as_text(source.get("businessType")),
            "entityId": as_text(source.get("entityId")),
            "entityName": as_text(source.get("entityName")),
            "caCorpForm": as_text(source.get("caCorpForm")),
            "federalPayments": [normalize_payment(item) for item in _as_list(source.get("federalPayments"))],
            "statePayments": [group for group in groups if group is not None],
        }
    )


def normalize_session(value: Any) -> IntakeSession:
    """Coerce a whole wizard session; clients without an id are dropped."""

    source = _as_record(value)
    now = utcnow().isoformat()
    version = source.get("version")
    clients = []
    for item in _as_list(source.get("clients")):
        client = _as_record(item)
        client_id = as_text(client.get("clientId"))
        if not client_id:
            continue
        clients.append(IntakeClient(clientId=client_id, data=normalize_client_data(client.get("data"))))
    return IntakeSession.model_validate(
        {
            **_extras(source, IntakeSession),
            "version": version if isinstance(version, int) and not isinstance(version, bool) else 1,
            "id": as_text(source.get("id")) or str(uuid4()),
            "name": as_text(source.get("name")) or "Untitled Session",
            "createdAt": as_text(source.get("createdAt")) or now,
            "updatedAt": now,
            "clients": clients,
        }
    )
