"""Obligation payment-status state machine shared by every service.

`OVERDUE` is not a stored state; it is derived at read time by
`display_status`.
"""

from datetime import date

DRAFT = "DRAFT"
SENT = "SENT"
VIEWED = "VIEWED"
CONFIRMED = "CONFIRMED"
VERIFIED = "VERIFIED"
CANCELLED = "CANCELLED"
OVERDUE = "OVERDUE"

STORED_STATUSES = (DRAFT, SENT, VIEWED, CONFIRMED, VERIFIED, CANCELLED)

ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    DRAFT: {SENT, CONFIRMED, CANCELLED},
    SENT: {VIEWED, CONFIRMED, CANCELLED},
    VIEWED: {CONFIRMED, CANCELLED},
    CONFIRMED: {VERIFIED},
    VERIFIED: set(),
    CANCELLED: {DRAFT},
}

# Statuses sync and the portal never move an obligation out of.
LOCKED_STATUSES = frozenset({CONFIRMED, VERIFIED})
# Statuses that no longer count as outstanding work for the client.
SETTLED_STATUSES = frozenset({CONFIRMED, VERIFIED, CANCELLED})


class InvalidTransition(ValueError):
    """Raised when a status change is not permitted."""

    def __init__(self, current: str, new: str) -> None:
        super().__init__(f"Invalid transition: {current} -> {new}")
        self.current = current
        self.new = new


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, set())


def validate_transition(current: str, new: str) -> None:
    """Raise when a transition is not allowed by the state machine."""

    if not can_transition(current, new):
        raise InvalidTransition(current, new)


def is_confirmable(status: str) -> bool:
    return can_transition(status, CONFIRMED)


def display_status(status: str, due_date: date | None, today: date) -> str:
    """Return the status shown to users, deriving `OVERDUE` from the due date."""

    if status in SETTLED_STATUSES or due_date is None:
        return status
    if due_date < today:
        return OVERDUE
    return status
