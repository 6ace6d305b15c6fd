"""Planner logic.

Normalizes intake documents, reconciles the extracted obligations against
what a work unit already holds, and applies operator edits. Every pass is one
transaction guarded by the per-work-unit lock.
"""

from datetime import date
from typing import Any

from sqlalchemy import select

from payplan.common.clock import today_utc
from payplan.common.errors import InvalidRequest, NotFound
from payplan.common.locks import serialize_work_unit
from payplan.common.logging import logger, work_unit_id_ctx
from payplan.common.metrics import sync_latency_seconds, sync_operations_total, sync_runs_total
from payplan.common.state_machine import CANCELLED, DRAFT, VERIFIED
from payplan.services.planner.extractor import extract_candidates
from payplan.services.planner.models import Client, Obligation, WorkUnit
from payplan.services.planner.normalizer import IntakeDocument, normalize_client_data, normalize_session
from payplan.services.planner.parsing import parse_amount, parse_date, parse_quarter, parse_tax_year
from payplan.services.planner.reconcile import SyncPlan, plan_sync
from payplan.services.planner.schemas import ObligationPatch, SessionSyncResponse, SyncResponse
from payplan.services.planner.transitions import guarded_update, transition


class PlannerService:
    """Owns work-unit synchronization and operator obligation edits."""

    def __init__(self, session_factory, service_name: str = "planner") -> None:
        self.session_factory = session_factory
        self.service_name = service_name

    def sync_session(self, owner_id: str, batch_id: str, raw_session: Any) -> SessionSyncResponse:
        """Synchronize every client of a wizard session, one transaction each."""

        session = normalize_session(raw_session)
        results = [
            self.sync_client(owner_id, batch_id, client.client_id, client.data)
            for client in session.clients
        ]
        return SessionSyncResponse(batch_id=batch_id, session_id=session.id, results=results)

    def sync_client(self, owner_id: str, batch_id: str, client_ref: str, raw_document: Any) -> SyncResponse:
        """Reconcile one client's intake document into its work unit."""

        client_ref = client_ref.strip()
        if not client_ref:
            raise InvalidRequest("client reference is required")
        document = (
            raw_document if isinstance(raw_document, IntakeDocument) else normalize_client_data(raw_document)
        )
        sync_runs_total.labels(service=self.service_name).inc()
        with sync_latency_seconds.labels(service=self.service_name).time():
            with self.session_factory() as db:
                with serialize_work_unit(db, owner_id, batch_id, client_ref):
                    client = self._upsert_client(db, owner_id, client_ref, document)
                    work_unit = self._upsert_work_unit(db, owner_id, batch_id, client, document)
                    token = work_unit_id_ctx.set(work_unit.id)
                    try:
                        existing = db.execute(
                            select(Obligation).where(Obligation.work_unit_id == work_unit.id)
                        ).scalars().all()
                        plan = plan_sync(existing, extract_candidates(document))
                        self._apply(db, owner_id, work_unit, plan)
                        db.commit()
                        counts = plan.counts()
                        logger.info(
                            "sync_applied batch_id=%s client_ref=%s %s",
                            batch_id,
                            client_ref,
                            " ".join(f"{name}={value}" for name, value in counts.items()),
                        )
                    finally:
                        work_unit_id_ctx.reset(token)
        for operation, value in counts.items():
            if value:
                sync_operations_total.labels(service=self.service_name, operation=operation).inc(value)
        return SyncResponse(work_unit_id=work_unit.id, client_id=client.id, client_ref=client_ref, **counts)

    def _upsert_client(self, db, owner_id: str, client_ref: str, document: IntakeDocument) -> Client:
        client = db.execute(
            select(Client).where(Client.owner_id == owner_id, Client.external_ref == client_ref)
        ).scalar_one_or_none()
        if client is None:
            client = Client(owner_id=owner_id, external_ref=client_ref)
            db.add(client)
        client.name = document.entity_name or document.addressee_name or client_ref
        client.addressee_name = document.addressee_name
        client.primary_email = document.primary_email.lower() or None
        client.entity_type = document.entity_type
        db.flush()
        return client

    def _upsert_work_unit(self, db, owner_id: str, batch_id: str, client: Client, document: IntakeDocument) -> WorkUnit:
        work_unit = db.execute(
            select(WorkUnit).where(WorkUnit.batch_id == batch_id, WorkUnit.client_id == client.id)
        ).scalar_one_or_none()
        if work_unit is None:
            work_unit = WorkUnit(owner_id=owner_id, batch_id=batch_id, client_id=client.id)
            db.add(work_unit)
        work_unit.snapshot = document.snapshot()
        db.flush()
        return work_unit

    def _apply(self, db, owner_id: str, work_unit: WorkUnit, plan: SyncPlan) -> None:
        for candidate in plan.creates:
            db.add(
                Obligation(
                    owner_id=owner_id,
                    work_unit_id=work_unit.id,
                    scope=candidate.scope,
                    jurisdiction_code=candidate.jurisdiction_code,
                    payment_type=candidate.payment_type,
                    quarter=candidate.quarter,
                    due_date=candidate.due_date,
                    amount=candidate.amount,
                    tax_year=candidate.tax_year,
                    notes=candidate.notes,
                    method=candidate.method,
                    sort_order=candidate.sort_order,
                    identity_key=candidate.identity_key,
                    status=DRAFT,
                    state_version=0,
                )
            )
        for item in plan.updates:
            if item.reinstate:
                transition(db, item.record, DRAFT, **item.changes)
            else:
                guarded_update(db, item.record, **item.changes)
        for record in plan.cancels:
            transition(db, record, CANCELLED)
        db.flush()

    def get_work_unit(self, db, owner_id: str, work_unit_id: str) -> WorkUnit:
        work_unit = db.get(WorkUnit, work_unit_id)
        if work_unit is None or work_unit.owner_id != owner_id:
            raise NotFound("work unit not found")
        return work_unit

    def list_obligations(self, owner_id: str, work_unit_id: str, include_cancelled: bool = True) -> list[Obligation]:
        """Obligations of one work unit ordered by due date, then position."""

        with self.session_factory() as db:
            self.get_work_unit(db, owner_id, work_unit_id)
            query = select(Obligation).where(Obligation.work_unit_id == work_unit_id)
            if not include_cancelled:
                query = query.where(Obligation.status != CANCELLED)
            query = query.order_by(Obligation.due_date.is_(None), Obligation.due_date, Obligation.sort_order)
            return list(db.execute(query).scalars().all())

    def _get_obligation(self, db, owner_id: str, obligation_id: str) -> Obligation:
        obligation = db.get(Obligation, obligation_id)
        if obligation is None or obligation.owner_id != owner_id:
            raise NotFound("payment not found")
        return obligation

    def edit_obligation(self, owner_id: str, obligation_id: str, patch: ObligationPatch) -> Obligation:
        """Operator edit of an obligation's non-identity fields; status is untouched."""

        provided = patch.model_fields_set
        values: dict[str, Any] = {}
        if "payment_type" in provided:
            if not (patch.payment_type or "").strip():
                raise InvalidRequest("payment type is required")
            values["payment_type"] = patch.payment_type.strip()
        if "quarter" in provided:
            values["quarter"] = parse_quarter(patch.quarter)
        if "due_date" in provided:
            values["due_date"] = parse_date(patch.due_date)
        if "amount" in provided:
            values["amount"] = parse_amount(patch.amount)
        if "tax_year" in provided:
            values["tax_year"] = parse_tax_year(patch.tax_year)
        if "method" in provided:
            values["method"] = (patch.method or "").strip() or None
        if "notes" in provided:
            values["notes"] = (patch.notes or "").strip() or None

        with self.session_factory() as db:
            obligation = self._get_obligation(db, owner_id, obligation_id)
            if values:
                guarded_update(db, obligation, **values)
                db.commit()
                logger.info("obligation_edited obligation_id=%s fields=%s", obligation.id, sorted(values))
            return obligation

    def cancel_obligation(self, owner_id: str, obligation_id: str) -> Obligation:
        """Explicit operator removal; the record is kept as `CANCELLED`."""

        with self.session_factory() as db:
            obligation = self._get_obligation(db, owner_id, obligation_id)
            transition(db, obligation, CANCELLED)
            db.commit()
            logger.info("obligation_cancelled obligation_id=%s", obligation.id)
            return obligation

    def verify_obligation(self, owner_id: str, obligation_id: str) -> Obligation:
        """Operator-only upgrade of a client confirmation to `VERIFIED`."""

        with self.session_factory() as db:
            obligation = self._get_obligation(db, owner_id, obligation_id)
            transition(db, obligation, VERIFIED)
            db.commit()
            logger.info("obligation_verified obligation_id=%s", obligation.id)
            return obligation

    @staticmethod
    def today() -> date:
        return today_utc()
