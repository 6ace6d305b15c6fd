"""Version-guarded obligation writes shared by every service.

All status changes go through the state machine, and single-row writes are
guarded by `(id, state_version)` so a concurrent writer makes the stale one
fail instead of silently overwriting it.
"""

from sqlalchemy import update
from sqlalchemy.orm.attributes import set_committed_value

from payplan.common.errors import Conflict
from payplan.common.state_machine import validate_transition
from payplan.services.planner.models import Obligation


def guarded_update(db, obligation: Obligation, **values) -> None:
    """Write `values` to one obligation and bump its version, or raise Conflict."""

    current_version = obligation.state_version
    result = db.execute(
        update(Obligation)
        .where(Obligation.id == obligation.id, Obligation.state_version == current_version)
        .values(state_version=current_version + 1, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise Conflict(
            f"optimistic concurrency conflict for obligation {obligation.id} "
            f"(expected version {current_version})"
        )
    for name, value in values.items():
        set_committed_value(obligation, name, value)
    set_committed_value(obligation, "state_version", current_version + 1)


def transition(db, obligation: Obligation, new_status: str, **values) -> None:
    """Apply one validated status transition plus any extra column values."""

    validate_transition(obligation.status, new_status)
    guarded_update(db, obligation, status=new_status, **values)


def bulk_transition(db, criteria: list, from_status: str, to_status: str) -> int:
    """Move every obligation matching `criteria` and `from_status`; return the count."""

    validate_transition(from_status, to_status)
    result = db.execute(
        update(Obligation)
        .where(*criteria, Obligation.status == from_status)
        .values(status=to_status, state_version=Obligation.state_version + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
