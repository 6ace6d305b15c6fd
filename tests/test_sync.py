"""Planner service tests against an in-memory database."""

from decimal import Decimal

import pytest
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from payplan.common.errors import Conflict, InvalidRequest, NotFound
from payplan.common.state_machine import CANCELLED, CONFIRMED, DRAFT, OVERDUE, InvalidTransition, VERIFIED
from payplan.services.planner.models import Client, Obligation, WorkUnit
from payplan.services.planner.schemas import ObligationPatch
from payplan.services.planner.service import PlannerService
from payplan.services.planner.transitions import guarded_update, transition


@pytest.fixture
def planner(session_factory):
    return PlannerService(session_factory)


def _obligations(session_factory, work_unit_id):
    with session_factory() as db:
        rows = db.execute(
            select(Obligation).where(Obligation.work_unit_id == work_unit_id).order_by(Obligation.identity_key)
        ).scalars().all()
        return {row.identity_key: row for row in rows}


def test_first_sync_creates_client_work_unit_and_drafts(planner, session_factory, make_document):
    result = planner.sync_client("owner-1", "batch-1", "client-a", make_document())
    assert result.created == 3

    with session_factory() as db:
        client = db.get(Client, result.client_id)
        assert client.primary_email == "ada@example.com"
        assert client.name == "Ada Lovelace"
        work_unit = db.get(WorkUnit, result.work_unit_id)
        assert work_unit.snapshot["primaryEmail"] == "ada@example.com"

    obligations = _obligations(session_factory, result.work_unit_id)
    assert set(obligations) == {"federal||1", "federal||2", "state|CA|1"}
    assert all(o.status == DRAFT for o in obligations.values())
    assert obligations["state|CA|1"].amount == Decimal("1200.00")


def test_resync_is_idempotent(planner, session_factory, make_document):
    first = planner.sync_client("owner-1", "batch-1", "client-a", make_document())
    before = {k: o.state_version for k, o in _obligations(session_factory, first.work_unit_id).items()}

    second = planner.sync_client("owner-1", "batch-1", "client-a", make_document())
    assert second.work_unit_id == first.work_unit_id
    assert second.created == 0
    assert second.updated == 0
    assert second.unchanged == 3
    after = {k: o.state_version for k, o in _obligations(session_factory, first.work_unit_id).items()}
    assert after == before


def test_resync_preserves_confirmed_payment(planner, session_factory, make_document):
    result = planner.sync_client("owner-1", "batch-1", "client-a", make_document())
    with session_factory() as db:
        obligation = db.execute(
            select(Obligation).where(Obligation.identity_key == "federal||1")
        ).scalar_one()
        transition(db, obligation, CONFIRMED, confirmed_by_email="ada@example.com")
        db.commit()

    document = make_document()
    document["federalPayments"][0]["amount"] = "9999"
    resync = planner.sync_client("owner-1", "batch-1", "client-a", document)
    assert resync.locked == 1

    obligations = _obligations(session_factory, result.work_unit_id)
    confirmed = obligations["federal||1"]
    assert confirmed.status == CONFIRMED
    assert confirmed.amount == Decimal("5000.00")
    assert confirmed.confirmed_by_email == "ada@example.com"


def test_resync_keeps_confirmation_when_other_entries_come_and_go(planner, session_factory, make_document):
    result = planner.sync_client("owner-1", "batch-1", "client-a", make_document())
    with session_factory() as db:
        obligation = db.execute(
            select(Obligation).where(Obligation.identity_key == "federal||1")
        ).scalar_one()
        transition(db, obligation, CONFIRMED, confirmed_by_email="ada@example.com")
        db.commit()
    before = _obligations(session_factory, result.work_unit_id)["federal||1"]

    document = make_document(states=[])
    document["federalPayments"].append(
        {"type": "Estimated", "quarter": "Q3", "dueDate": "2026-09-15", "amount": "2500", "taxPeriod": "2026"}
    )
    resync = planner.sync_client("owner-1", "batch-1", "client-a", document)
    assert resync.created == 1
    assert resync.cancelled == 1

    obligations = _obligations(session_factory, result.work_unit_id)
    confirmed = obligations["federal||1"]
    assert confirmed.status == CONFIRMED
    assert confirmed.confirmed_by_email == "ada@example.com"
    assert confirmed.state_version == before.state_version
    assert confirmed.amount == Decimal("5000.00")
    assert obligations["federal||3"].status == DRAFT
    assert obligations["state|CA|1"].status == CANCELLED


def test_reordered_state_groups_get_new_identities(planner, session_factory, make_document):
    result = planner.sync_client("owner-1", "batch-1", "client-a", make_document())
    california = make_document()["statePayments"][0]
    oregon = {
        "stateName": "Oregon",
        "payments": [{"type": "Estimated", "quarter": "Q1", "dueDate": "2026-04-15", "amount": "300", "taxPeriod": "2026"}],
    }

    resync = planner.sync_client("owner-1", "batch-1", "client-a", make_document(states=[oregon, california]))
    assert resync.created == 2
    assert resync.cancelled == 1

    obligations = _obligations(session_factory, result.work_unit_id)
    assert obligations["state|CA|1"].status == CANCELLED
    assert obligations["state|CA|101"].status == DRAFT
    assert obligations["state|CA|101"].amount == Decimal("1200.00")
    assert obligations["state|OR|1"].status == DRAFT
    assert obligations["federal||1"].status == DRAFT


def test_removed_entries_are_soft_cancelled_then_reinstated(planner, session_factory, make_document):
    result = planner.sync_client("owner-1", "batch-1", "client-a", make_document())

    removed = planner.sync_client("owner-1", "batch-1", "client-a", make_document(states=[]))
    assert removed.cancelled == 1
    obligations = _obligations(session_factory, result.work_unit_id)
    assert obligations["state|CA|1"].status == CANCELLED

    restored = planner.sync_client("owner-1", "batch-1", "client-a", make_document())
    assert restored.reinstated == 1
    obligations = _obligations(session_factory, result.work_unit_id)
    assert obligations["state|CA|1"].status == DRAFT
    assert len(obligations) == 3


def test_batches_get_separate_work_units(planner, make_document):
    first = planner.sync_client("owner-1", "batch-1", "client-a", make_document())
    second = planner.sync_client("owner-1", "batch-2", "client-a", make_document())
    assert first.client_id == second.client_id
    assert first.work_unit_id != second.work_unit_id


def test_sync_session_runs_every_client(planner, make_document):
    snapshot = {
        "id": "session-1",
        "clients": [
            {"clientId": "client-a", "data": make_document()},
            {"clientId": "client-b", "data": make_document(email="bob@example.com", states=[])},
            {"data": make_document()},
        ],
    }
    result = planner.sync_session("owner-1", "batch-1", snapshot)
    assert result.session_id == "session-1"
    assert [r.client_ref for r in result.results] == ["client-a", "client-b"]
    assert [r.created for r in result.results] == [3, 2]


def test_blank_client_ref_is_rejected(planner, make_document):
    with pytest.raises(InvalidRequest):
        planner.sync_client("owner-1", "batch-1", "  ", make_document())


def test_operator_edit_and_verify(planner, session_factory, make_document):
    result = planner.sync_client("owner-1", "batch-1", "client-a", make_document())
    obligation = _obligations(session_factory, result.work_unit_id)["federal||2"]

    edited = planner.edit_obligation(
        "owner-1", obligation.id, ObligationPatch(amount="$7,500", notes="  revised  ")
    )
    assert edited.amount == Decimal("7500.00")
    assert edited.notes == "revised"
    assert edited.status == DRAFT
    assert edited.state_version == obligation.state_version + 1

    with pytest.raises(InvalidTransition):
        planner.verify_obligation("owner-1", obligation.id)

    with session_factory() as db:
        row = db.get(Obligation, obligation.id)
        transition(db, row, CONFIRMED)
        db.commit()
    assert planner.verify_obligation("owner-1", obligation.id).status == VERIFIED


def test_operator_cancel(planner, session_factory, make_document):
    result = planner.sync_client("owner-1", "batch-1", "client-a", make_document())
    obligation = _obligations(session_factory, result.work_unit_id)["federal||1"]
    assert planner.cancel_obligation("owner-1", obligation.id).status == CANCELLED
    with pytest.raises(NotFound):
        planner.cancel_obligation("someone-else", obligation.id)


def test_list_obligations_scoped_to_owner(planner, make_document):
    result = planner.sync_client("owner-1", "batch-1", "client-a", make_document())
    obligations = planner.list_obligations("owner-1", result.work_unit_id)
    assert {o.identity_key for o in obligations[:2]} == {"federal||1", "state|CA|1"}
    assert obligations[2].identity_key == "federal||2"
    with pytest.raises(NotFound):
        planner.list_obligations("owner-2", result.work_unit_id)


def test_stale_version_write_conflicts(planner, session_factory, make_document):
    result = planner.sync_client("owner-1", "batch-1", "client-a", make_document())
    stale = _obligations(session_factory, result.work_unit_id)["federal||1"]

    planner.edit_obligation("owner-1", stale.id, ObligationPatch(notes="first"))
    with session_factory() as db:
        with pytest.raises(Conflict):
            guarded_update(db, stale, notes="second")


def test_overdue_cannot_be_stored(planner, session_factory, make_document):
    result = planner.sync_client("owner-1", "batch-1", "client-a", make_document())
    with session_factory() as db:
        with pytest.raises(IntegrityError):
            db.execute(
                update(Obligation).where(Obligation.work_unit_id == result.work_unit_id).values(status=OVERDUE)
            )
        db.rollback()
    assert {o.status for o in _obligations(session_factory, result.work_unit_id).values()} == {DRAFT}
