"""Diff extracted candidates against persisted obligations.

`plan_sync` is pure: it decides which candidates become new obligations,
which records get refreshed or reinstated, and which are soft-cancelled. The
planner service applies the plan inside one transaction.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable

from payplan.common.logging import logger
from payplan.common.state_machine import CANCELLED, LOCKED_STATUSES, can_transition
from payplan.services.planner.extractor import ObligationCandidate, is_complete

MUTABLE_FIELDS = (
    "scope",
    "jurisdiction_code",
    "payment_type",
    "quarter",
    "due_date",
    "amount",
    "tax_year",
    "notes",
    "method",
    "sort_order",
)


@dataclass
class ObligationUpdate:
    record: Any
    changes: dict[str, Any]
    reinstate: bool = False


@dataclass
class SyncPlan:
    creates: list[ObligationCandidate] = field(default_factory=list)
    updates: list[ObligationUpdate] = field(default_factory=list)
    cancels: list[Any] = field(default_factory=list)
    unchanged: list[Any] = field(default_factory=list)
    locked: list[Any] = field(default_factory=list)
    skipped: list[ObligationCandidate] = field(default_factory=list)

    @property
    def reinstated(self) -> int:
        return sum(1 for update in self.updates if update.reinstate)

    def counts(self) -> dict[str, int]:
        return {
            "created": len(self.creates),
            "updated": len(self.updates) - self.reinstated,
            "reinstated": self.reinstated,
            "cancelled": len(self.cancels),
            "unchanged": len(self.unchanged),
            "locked": len(self.locked),
            "skipped": len(self.skipped),
        }


def field_changes(record: Any, candidate: ObligationCandidate) -> dict[str, Any]:
    """Mutable fields whose candidate value differs from the stored one."""

    changes = {}
    for name in MUTABLE_FIELDS:
        value = getattr(candidate, name)
        if getattr(record, name) != value:
            changes[name] = value
    return changes


def plan_sync(existing: Iterable[Any], candidates: Iterable[ObligationCandidate]) -> SyncPlan:
    """Build the create/update/cancel plan for one work unit.

    Confirmed and verified records are never touched. Cancelled records that
    reappear are reinstated to `DRAFT`; any other record missing from the
    candidates is cancelled.
    """

    plan = SyncPlan()
    by_key = {record.identity_key: record for record in existing}
    seen: set[str] = set()

    for candidate in candidates:
        key = candidate.identity_key
        if not is_complete(candidate):
            plan.skipped.append(candidate)
            continue
        if key in seen:
            logger.warning("identity_key_collision key=%s", key)
            plan.skipped.append(candidate)
            continue
        seen.add(key)

        record = by_key.get(key)
        if record is None:
            plan.creates.append(candidate)
            continue
        if record.status in LOCKED_STATUSES:
            plan.locked.append(record)
            continue
        changes = field_changes(record, candidate)
        reinstate = record.status == CANCELLED
        if changes or reinstate:
            plan.updates.append(ObligationUpdate(record=record, changes=changes, reinstate=reinstate))
        else:
            plan.unchanged.append(record)

    for key, record in by_key.items():
        if key in seen:
            continue
        if record.status in LOCKED_STATUSES:
            plan.locked.append(record)
        elif record.status != CANCELLED and can_transition(record.status, CANCELLED):
            plan.cancels.append(record)
    return plan

