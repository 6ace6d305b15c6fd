"""Flatten a normalized intake document into obligation candidates.

Identity is positional: federal entries are numbered 1..N and state entries
`group_index * 100 + payment_index + 1`, so at most 99 payments fit in one
state group before keys collide. Moving an entry inside the document changes
its key, which a resync treats as cancel-old/create-new.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from payplan.common.logging import logger
from payplan.services.planner.jurisdictions import state_code
from payplan.services.planner.normalizer import IntakeDocument, IntakePayment
from payplan.services.planner.parsing import parse_amount, parse_date, parse_quarter, parse_tax_year

FEDERAL = "federal"
STATE = "state"
STATE_GROUP_STRIDE = 100


@dataclass(frozen=True)
class ObligationCandidate:
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

    @property
    def identity_key(self) -> str:
        return identity_key(self.scope, self.jurisdiction_code, self.sort_order)


def identity_key(scope: str, jurisdiction_code: str | None, sort_order: int) -> str:
    return f"{scope}|{jurisdiction_code or ''}|{sort_order}"


def _candidate(
    payment: IntakePayment, scope: str, jurisdiction_code: str | None, default_type: str, sort_order: int
) -> ObligationCandidate:
    return ObligationCandidate(
        scope=scope,
        jurisdiction_code=jurisdiction_code,
        payment_type=payment.type.strip() or default_type,
        quarter=parse_quarter(payment.quarter),
        due_date=parse_date(payment.due_date),
        amount=parse_amount(payment.amount),
        tax_year=parse_tax_year(payment.tax_period),
        notes=payment.description or None,
        method=payment.method or None,
        sort_order=sort_order,
    )


def extract_candidates(document: IntakeDocument) -> list[ObligationCandidate]:
    """Return every obligation the document describes, in document order."""

    candidates: list[ObligationCandidate] = []
    for index, payment in enumerate(document.federal_payments):
        candidates.append(_candidate(payment, FEDERAL, None, "Federal", index + 1))

    for group_index, group in enumerate(document.state_payments):
        code = state_code(group.state_name)
        if code is None:
            logger.debug("unknown_jurisdiction dropped=%s payments=%s", group.state_name, len(group.payments))
            continue
        for payment_index, payment in enumerate(group.payments):
            sort_order = group_index * STATE_GROUP_STRIDE + payment_index + 1
            candidates.append(_candidate(payment, STATE, code, "State", sort_order))
    return candidates


def is_complete(candidate: ObligationCandidate) -> bool:
    """Whether a candidate may be persisted as a usable obligation."""

    if candidate.scope == FEDERAL:
        return bool(candidate.payment_type) and candidate.due_date is not None and candidate.amount is not None
    return bool(candidate.jurisdiction_code)
