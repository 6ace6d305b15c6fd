"""Unit tests for obligation status state-machine guardrails."""

from datetime import date

import pytest

from payplan.common.state_machine import (
    ALLOWED_TRANSITIONS,
    CANCELLED,
    CONFIRMED,
    DRAFT,
    OVERDUE,
    SENT,
    STORED_STATUSES,
    VERIFIED,
    VIEWED,
    InvalidTransition,
    display_status,
    is_confirmable,
    validate_transition,
)


def test_valid_transition():
    """Sanity check: a legal transition should pass."""

    validate_transition(DRAFT, SENT)
    validate_transition(VIEWED, CONFIRMED)
    validate_transition(CANCELLED, DRAFT)


def test_invalid_transition():
    """Illegal transitions raise and carry both statuses."""

    with pytest.raises(InvalidTransition) as exc_info:
        validate_transition(SENT, DRAFT)
    assert exc_info.value.current == SENT
    assert exc_info.value.new == DRAFT
    assert isinstance(exc_info.value, ValueError)


def test_verified_is_terminal():
    for status in STORED_STATUSES:
        with pytest.raises(InvalidTransition):
            validate_transition(VERIFIED, status)


def test_confirmed_only_moves_to_verified():
    assert ALLOWED_TRANSITIONS[CONFIRMED] == {VERIFIED}
    with pytest.raises(InvalidTransition):
        validate_transition(CONFIRMED, CANCELLED)


def test_overdue_is_never_a_stored_target():
    assert OVERDUE not in STORED_STATUSES
    for targets in ALLOWED_TRANSITIONS.values():
        assert OVERDUE not in targets


def test_confirmable_statuses():
    assert is_confirmable(DRAFT)
    assert is_confirmable(SENT)
    assert is_confirmable(VIEWED)
    assert not is_confirmable(CONFIRMED)
    assert not is_confirmable(VERIFIED)
    assert not is_confirmable(CANCELLED)


def test_display_status_derives_overdue():
    today = date(2026, 4, 20)
    assert display_status(SENT, date(2026, 4, 15), today) == OVERDUE
    assert display_status(DRAFT, date(2026, 4, 20), today) == DRAFT
    assert display_status(VIEWED, None, today) == VIEWED


def test_display_status_keeps_settled_statuses():
    today = date(2026, 4, 20)
    past = date(2026, 1, 15)
    assert display_status(CONFIRMED, past, today) == CONFIRMED
    assert display_status(VERIFIED, past, today) == VERIFIED
    assert display_status(CANCELLED, past, today) == CANCELLED
