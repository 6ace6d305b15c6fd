"""Unit tests for intake document normalization."""

from datetime import timedelta

from payplan.common.clock import today_utc
from payplan.services.planner.normalizer import (
    normalize_client_data,
    normalize_payment,
    normalize_session,
    normalize_state_group,
)


def test_empty_input_gets_defaults():
    """Any input, even None, becomes a fully-defaulted document."""

    document = normalize_client_data(None)
    assert document.addressee_name == ""
    assert document.entity_type == "individual"
    assert document.federal_payments == []
    assert document.state_payments == []
    assert document.show_due_date_reminder is True
    assert document.payment_due_date == (today_utc() + timedelta(days=7)).isoformat()


def test_flags_are_true_unless_explicitly_false():
    assert normalize_client_data({"showDisclaimers": False}).show_disclaimers is False
    assert normalize_client_data({"showDisclaimers": "false"}).show_disclaimers is False
    assert normalize_client_data({"showDisclaimers": 0}).show_disclaimers is True
    assert normalize_client_data({"showDisclaimers": None}).show_disclaimers is True


def test_unknown_entity_type_falls_back():
    assert normalize_client_data({"entityType": "Business"}).entity_type == "business"
    assert normalize_client_data({"entityType": "trust"}).entity_type == "individual"


def test_payment_coercion():
    payment = normalize_payment(
        {"type": "Estimated", "quarter": "q2", "dueDate": "6/15/2026", "amount": 5000, "method": "Wire"}
    )
    assert payment.quarter == "Q2"
    assert payment.due_date == "2026-06-15"
    assert payment.amount == "5000"
    assert payment.method == ""


def test_quarter_cleared_for_non_estimated_payments():
    payment = normalize_payment({"type": "Extension", "quarter": "Q1"})
    assert payment.type == "Extension"
    assert payment.quarter == ""


def test_payment_defaults_from_garbage():
    payment = normalize_payment("not a payment")
    assert payment.type == "Estimated"
    assert payment.amount == ""


def test_state_group_without_name_is_dropped():
    assert normalize_state_group({"payments": [{}]}) is None
    document = normalize_client_data({"statePayments": [{"stateName": ""}, {"stateName": "Oregon"}, "junk"]})
    assert [group.state_name for group in document.state_payments] == ["Oregon"]


def test_unknown_keys_are_preserved():
    document = normalize_client_data(
        {"customNote": "keep me", "federalPayments": [{"amount": "1", "legacyId": 7}]}
    )
    snapshot = document.snapshot()
    assert snapshot["customNote"] == "keep me"
    assert snapshot["federalPayments"][0]["legacyId"] == 7
    assert "addresseeName" in snapshot


def test_session_drops_clients_without_id():
    session = normalize_session(
        {
            "id": "s-1",
            "version": True,
            "clients": [{"clientId": "c-1", "data": {"addresseeName": "Ada"}}, {"data": {}}, 5],
        }
    )
    assert session.id == "s-1"
    assert session.version == 1
    assert session.name == "Untitled Session"
    assert [client.client_id for client in session.clients] == ["c-1"]
    assert session.clients[0].data.addressee_name == "Ada"


def test_session_from_garbage():
    session = normalize_session(["nope"])
    assert session.id
    assert session.clients == []
