"""Quarterly instruction scheduling and the time-driven dispatcher.

Operators queue one `NotificationRecord` per request. The dispatcher claims
due records in bounded batches and settles each one exactly once: `SENT`
together with the covered `DRAFT -> SENT` obligation flips in one
transaction, or `FAILED` with the reason. Failed records are never retried
automatically; a new operator request is the retry.
"""

from datetime import datetime

from sqlalchemy import select

from payplan.common.claims import FAILED, QUEUED, SENT, claim_due_batch, claim_one, finalize, update_queue_backlog_metrics
from payplan.common.clock import as_utc, utcnow
from payplan.common.config import settings
from payplan.common.errors import InvalidRequest, NotFound
from payplan.common.logging import logger, notification_id_ctx, work_unit_id_ctx
from payplan.common.metrics import (
    dispatch_latency_seconds,
    notifications_failed_total,
    notifications_queued_total,
    notifications_sent_total,
)
from payplan.common.state_machine import CANCELLED, DRAFT
from payplan.common.state_machine import SENT as OBLIGATION_SENT
from payplan.common.tracing import tracer
from payplan.services.notification.emails import CHECKLIST_PLACEHOLDER, build_quarterly_instructions
from payplan.services.notification.models import NotificationRecord
from payplan.services.notification.schemas import DispatchReport, EmailPreview
from payplan.services.notification.transport import TransportError, build_transport
from payplan.services.planner.models import Client, Obligation, WorkUnit
from payplan.services.planner.parsing import MAX_TAX_YEAR, MIN_TAX_YEAR
from payplan.services.planner.transitions import bulk_transition
from payplan.services.portal.tokens import PortalTokenService

MAX_ERROR_LENGTH = 2000


class DispatchAbort(Exception):
    """A queued record can no longer be delivered; the message is the reason."""


def _meta_int(meta, key: str) -> int | None:
    if not isinstance(meta, dict):
        return None
    try:
        return int(meta.get(key))
    except (TypeError, ValueError):
        return None


def validate_period(tax_year: int, quarter: int) -> None:
    if not isinstance(quarter, int) or not 1 <= quarter <= 4:
        raise InvalidRequest("quarter must be between 1 and 4")
    if not isinstance(tax_year, int) or not MIN_TAX_YEAR <= tax_year <= MAX_TAX_YEAR:
        raise InvalidRequest("tax year is out of range")


def quarter_obligations(db, work_unit_id: str, tax_year: int, quarter: int) -> list[Obligation]:
    """Non-cancelled obligations of one quarter, ordered as they are presented."""

    return list(
        db.execute(
            select(Obligation)
            .where(
                Obligation.work_unit_id == work_unit_id,
                Obligation.tax_year == tax_year,
                Obligation.quarter == quarter,
                Obligation.status != CANCELLED,
            )
            .order_by(Obligation.due_date.is_(None), Obligation.due_date, Obligation.sort_order)
        ).scalars().all()
    )


class NotificationService:
    """Queues instruction emails and drains due records."""

    def __init__(
        self,
        session_factory,
        transport=None,
        tokens: PortalTokenService | None = None,
        service_name: str = "notification",
        batch_size: int | None = None,
        claim_timeout_seconds: int | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.transport = transport or build_transport()
        self.tokens = tokens or PortalTokenService(service_name=service_name)
        self.service_name = service_name
        self.batch_size = batch_size or settings.dispatch_batch_size
        self.claim_timeout_seconds = claim_timeout_seconds or settings.dispatch_claim_timeout_seconds

    def _work_unit(self, db, owner_id: str, work_unit_id: str) -> WorkUnit:
        work_unit = db.get(WorkUnit, work_unit_id)
        if work_unit is None or work_unit.owner_id != owner_id:
            raise NotFound("work unit not found")
        return work_unit

    def schedule_quarter_email(
        self,
        owner_id: str,
        work_unit_id: str,
        tax_year: int,
        quarter: int,
        send_at: datetime | None = None,
        now: datetime | None = None,
    ) -> NotificationRecord:
        """Queue one instruction email; due requests are delivered inline."""

        validate_period(tax_year, quarter)
        now = now or utcnow()
        send_at = as_utc(send_at) or now
        with self.session_factory() as db:
            work_unit = self._work_unit(db, owner_id, work_unit_id)
            client = work_unit.client
            if client is None:
                raise NotFound("client not found")
            if not client.primary_email:
                raise InvalidRequest("client email is required")
            obligations = quarter_obligations(db, work_unit.id, tax_year, quarter)
            if not obligations:
                raise InvalidRequest(f"No payments found for Q{quarter} {tax_year}")
            record = NotificationRecord(
                owner_id=owner_id,
                client_id=client.id,
                work_unit_id=work_unit.id,
                recipient=client.primary_email,
                status=QUEUED,
                send_at=send_at,
                meta={
                    "tax_year": tax_year,
                    "quarter": quarter,
                    "obligation_ids": [obligation.id for obligation in obligations],
                },
            )
            db.add(record)
            db.commit()
            record_id = record.id
        notifications_queued_total.labels(service=self.service_name).inc()
        logger.info("notification_queued notification_id=%s work_unit_id=%s send_at=%s", record_id, work_unit_id, send_at)

        if send_at <= now:
            self.dispatch_now(record_id, now)
        return self.get_record(owner_id, record_id)

    def get_record(self, owner_id: str, record_id: str) -> NotificationRecord:
        with self.session_factory() as db:
            record = db.get(NotificationRecord, record_id)
            if record is None or record.owner_id != owner_id:
                raise NotFound("notification not found")
            return record

    def list_records(self, owner_id: str, work_unit_id: str) -> list[NotificationRecord]:
        with self.session_factory() as db:
            self._work_unit(db, owner_id, work_unit_id)
            return list(
                db.execute(
                    select(NotificationRecord)
                    .where(NotificationRecord.work_unit_id == work_unit_id)
                    .order_by(NotificationRecord.send_at.desc())
                ).scalars().all()
            )

    def preview_quarter_email(self, owner_id: str, work_unit_id: str, tax_year: int, quarter: int) -> EmailPreview:
        """Render the email a send would produce, with a placeholder link."""

        validate_period(tax_year, quarter)
        with self.session_factory() as db:
            work_unit = self._work_unit(db, owner_id, work_unit_id)
            obligations = quarter_obligations(db, work_unit.id, tax_year, quarter)
            email = build_quarterly_instructions(work_unit.client, quarter, tax_year, obligations, CHECKLIST_PLACEHOLDER)
        return EmailPreview(subject=email.subject, html=email.html, text=email.text, count=len(obligations))

    def dispatch_now(self, record_id: str, now: datetime | None = None) -> str:
        """Claim and deliver one queued record regardless of its send time."""

        now = now or utcnow()
        with self.session_factory() as db:
            claimed = claim_one(db, NotificationRecord, record_id, now)
            db.commit()
        if not claimed:
            return "skipped"
        return self._dispatch(record_id)

    def process_due(self, now: datetime | None = None, limit: int | None = None) -> DispatchReport:
        """Dispatcher entry point: claim a bounded batch of due records and settle each."""

        now = now or utcnow()
        report = DispatchReport()
        with dispatch_latency_seconds.labels(service=self.service_name).time():
            with self.session_factory() as db:
                record_ids = claim_due_batch(
                    db,
                    NotificationRecord,
                    now,
                    limit=limit or self.batch_size,
                    claim_timeout_seconds=self.claim_timeout_seconds,
                )
                db.commit()
            for record_id in record_ids:
                try:
                    outcome = self._dispatch(record_id)
                except Exception as exc:
                    logger.exception("notification_dispatch_error notification_id=%s", record_id)
                    outcome = self._settle_after_error(record_id, exc)
                report.processed += 1
                if outcome == "sent":
                    report.sent += 1
                elif outcome == "failed":
                    report.failed += 1
                else:
                    report.skipped += 1
            with self.session_factory() as db:
                update_queue_backlog_metrics(db, NotificationRecord, self.service_name, utcnow())
        if report.processed:
            logger.info(
                "dispatch_pass processed=%s sent=%s failed=%s skipped=%s",
                report.processed,
                report.sent,
                report.failed,
                report.skipped,
            )
        return report

    def _prepare(self, db, record: NotificationRecord):
        quarter = _meta_int(record.meta, "quarter")
        tax_year = _meta_int(record.meta, "tax_year")
        if not quarter or not tax_year:
            raise DispatchAbort("Missing taxYear/quarter metadata")

        client = db.get(Client, record.client_id) if record.client_id else None
        if client is None or client.owner_id != record.owner_id:
            raise DispatchAbort("Client not found")
        work_unit = db.get(WorkUnit, record.work_unit_id) if record.work_unit_id else None
        if work_unit is None or work_unit.owner_id != record.owner_id or work_unit.client_id != client.id:
            raise DispatchAbort("Work unit not found")

        obligation_ids = record.meta.get("obligation_ids")
        if isinstance(obligation_ids, list) and obligation_ids:
            obligations = list(
                db.execute(
                    select(Obligation)
                    .where(
                        Obligation.work_unit_id == work_unit.id,
                        Obligation.id.in_([str(item) for item in obligation_ids]),
                        Obligation.status != CANCELLED,
                    )
                    .order_by(Obligation.due_date.is_(None), Obligation.due_date, Obligation.sort_order)
                ).scalars().all()
            )
        else:
            obligations = quarter_obligations(db, work_unit.id, tax_year, quarter)
        if not obligations:
            raise DispatchAbort(f"No payments found for Q{quarter} {tax_year}")

        recipient = client.primary_email or record.recipient
        if not recipient:
            raise DispatchAbort("Missing recipient email")
        return client, work_unit, obligations, recipient, quarter, tax_year

    def _dispatch(self, record_id: str) -> str:
        """Deliver one claimed record; returns `sent`, `failed` or `skipped`.

        Any error between the claim and the commit rolls the session back and
        settles the record as `FAILED`, including a malformed transport result
        or a failed commit after the mail went out.
        """

        ctx_token = notification_id_ctx.set(record_id)
        failure: tuple[str, str] | None = None
        try:
            with tracer.start_as_current_span("dispatch_notification"), self.session_factory() as db:
                record = db.get(NotificationRecord, record_id)
                if record is None or record.status != QUEUED:
                    return "skipped"
                wu_token = work_unit_id_ctx.set(record.work_unit_id or "")
                stage = "delivery"
                try:
                    client, work_unit, obligations, recipient, quarter, tax_year = self._prepare(db, record)
                    issued = self.tokens.issue(db, work_unit)
                    email = build_quarterly_instructions(client, quarter, tax_year, obligations, issued.url)
                    result = self.transport.send(recipient, email.subject, email.html, email.text)
                    message_id = getattr(result, "message_id", None)
                    if not isinstance(message_id, str) or not message_id.strip():
                        raise TransportError("transport returned no message id")

                    stage = "finalize"
                    obligation_ids = [obligation.id for obligation in obligations]
                    won = finalize(
                        db,
                        NotificationRecord,
                        record_id,
                        SENT,
                        sent_at=utcnow(),
                        provider_message_id=message_id,
                        portal_link_id=issued.link.id,
                        recipient=recipient,
                        error_message=None,
                        metadata={**record.meta, "obligation_ids": obligation_ids},
                    )
                    if not won:
                        db.rollback()
                        logger.warning("notification_already_settled notification_id=%s", record_id)
                        return "skipped"
                    flipped = bulk_transition(db, [Obligation.id.in_(obligation_ids)], DRAFT, OBLIGATION_SENT)
                    db.commit()
                except DispatchAbort as exc:
                    db.rollback()
                    failure = (str(exc), "missing_reference")
                except Exception as exc:
                    db.rollback()
                    logger.error("notification_%s_failed error=%s", stage, exc)
                    failure = (str(exc) or exc.__class__.__name__, stage)
                finally:
                    work_unit_id_ctx.reset(wu_token)

                if failure is None:
                    notifications_sent_total.labels(service=self.service_name).inc()
                    logger.info(
                        "notification_sent notification_id=%s link_id=%s obligations=%s drafts_sent=%s",
                        record_id,
                        issued.link.id,
                        len(obligation_ids),
                        flipped,
                    )
                    return "sent"
            return self._fail(record_id, *failure)
        finally:
            notification_id_ctx.reset(ctx_token)

    def _settle_after_error(self, record_id: str, exc: Exception) -> str:
        """Best-effort `FAILED` settlement; a record we cannot touch stays claimed until it goes stale."""

        try:
            return self._fail(record_id, str(exc) or exc.__class__.__name__, "internal")
        except Exception:
            logger.exception("notification_settle_failed notification_id=%s", record_id)
            return "failed"

    def _fail(self, record_id: str, message: str, reason: str) -> str:
        with self.session_factory() as db:
            won = finalize(db, NotificationRecord, record_id, FAILED, error_message=message[:MAX_ERROR_LENGTH])
            db.commit()
        if not won:
            return "skipped"
        notifications_failed_total.labels(service=self.service_name, reason=reason).inc()
        logger.warning("notification_failed notification_id=%s reason=%s error=%s", record_id, reason, message)
        return "failed"
