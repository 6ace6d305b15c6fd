"""Client portal logic: link views and confirmation intake.

Every token failure surfaces as the same "link not found" so callers cannot
tell an expired link from a guess.
"""

from datetime import datetime

from sqlalchemy import select

from payplan.common.clock import utcnow
from payplan.common.errors import Conflict, InvalidRequest, NotFound
from payplan.common.logging import logger, work_unit_id_ctx
from payplan.common.metrics import confirmations_total
from payplan.common.state_machine import (
    CANCELLED,
    CONFIRMED,
    SENT,
    SETTLED_STATUSES,
    VERIFIED,
    VIEWED,
    display_status,
    is_confirmable,
)
from payplan.services.planner.models import Client, Obligation
from payplan.services.planner.parsing import parse_amount, parse_date
from payplan.services.planner.transitions import bulk_transition, transition
from payplan.services.portal.models import ConfirmationEvent
from payplan.services.portal.schemas import ConfirmationSubmission, PortalObligation, PortalView
from payplan.services.portal.tokens import PortalTokenService

MAX_EMAIL_LENGTH = 320
LINK_NOT_FOUND = "link not found"


class PortalService:
    """Resolves portal links for end clients and records their confirmations."""

    def __init__(self, session_factory, tokens: PortalTokenService | None = None, service_name: str = "portal") -> None:
        self.session_factory = session_factory
        self.tokens = tokens or PortalTokenService(service_name=service_name)
        self.service_name = service_name

    def view(self, token: str, now: datetime | None = None) -> PortalView:
        """Open the checklist; the first view flips every `SENT` obligation to `VIEWED`."""

        now = now or utcnow()
        with self.session_factory() as db:
            link = self.tokens.resolve(db, token, now)
            if link is None:
                raise NotFound(LINK_NOT_FOUND)
            self.tokens.touch(db, link, now)
            viewed = bulk_transition(db, [Obligation.work_unit_id == link.work_unit_id], SENT, VIEWED)
            db.commit()
            if viewed:
                logger.info("portal_viewed link_id=%s work_unit_id=%s viewed=%s", link.id, link.work_unit_id, viewed)

            client = db.get(Client, link.client_id)
            obligations = db.execute(
                select(Obligation)
                .where(Obligation.work_unit_id == link.work_unit_id, Obligation.status != CANCELLED)
                .order_by(Obligation.due_date.is_(None), Obligation.due_date, Obligation.sort_order)
            ).scalars().all()

        today = now.date()
        items = [
            PortalObligation(
                id=obligation.id,
                scope=obligation.scope,
                jurisdiction_code=obligation.jurisdiction_code,
                payment_type=obligation.payment_type,
                quarter=obligation.quarter,
                tax_year=obligation.tax_year,
                due_date=obligation.due_date,
                amount=obligation.amount,
                method=obligation.method,
                status=obligation.status,
                display_status=display_status(obligation.status, obligation.due_date, today),
            )
            for obligation in obligations
        ]
        confirmed = sum(1 for item in items if item.status in (CONFIRMED, VERIFIED))
        next_due = next((item.due_date for item in items if item.status not in SETTLED_STATUSES), None)
        client_name = (client.name or client.addressee_name) if client else ""
        return PortalView(
            client_name=client_name or "Client",
            obligations=items,
            total=len(items),
            confirmed=confirmed,
            remaining=len(items) - confirmed,
            next_due=next_due,
        )

    def confirm(self, token: str, submission: ConfirmationSubmission, now: datetime | None = None) -> Obligation:
        """Move one obligation of the link's work unit to `CONFIRMED` and audit it."""

        now = now or utcnow()
        with self.session_factory() as db:
            link = self.tokens.resolve(db, token, now)
            if link is None:
                confirmations_total.labels(service=self.service_name, outcome="not_found").inc()
                raise NotFound(LINK_NOT_FOUND)

            obligation_id = submission.obligation_id.strip()
            email = submission.email.strip().lower()
            if not obligation_id or not email:
                raise InvalidRequest("payment id and email are required")
            if "@" not in email or len(email) > MAX_EMAIL_LENGTH:
                raise InvalidRequest("invalid email")

            obligation = db.execute(
                select(Obligation).where(
                    Obligation.id == obligation_id,
                    Obligation.work_unit_id == link.work_unit_id,
                    Obligation.owner_id == link.owner_id,
                )
            ).scalar_one_or_none()
            if obligation is None:
                confirmations_total.labels(service=self.service_name, outcome="not_found").inc()
                raise NotFound("payment not found")
            if not is_confirmable(obligation.status):
                confirmations_total.labels(service=self.service_name, outcome="rejected").inc()
                raise Conflict(f"payment is {obligation.status.lower()} and cannot be confirmed")

            confirmed_date = parse_date(submission.paid_date)
            confirmed_amount = parse_amount(submission.paid_amount)
            confirmation_number = (submission.confirmation_number or "").strip() or None
            note = (submission.note or "").strip() or None

            token_ctx = work_unit_id_ctx.set(link.work_unit_id)
            try:
                transition(
                    db,
                    obligation,
                    CONFIRMED,
                    confirmed_at=now,
                    confirmed_by_email=email,
                    confirmed_date=confirmed_date,
                    confirmed_amount=confirmed_amount,
                    confirmation_number=confirmation_number,
                    confirmation_note=note,
                )
                db.add(
                    ConfirmationEvent(
                        owner_id=link.owner_id,
                        obligation_id=obligation.id,
                        event_type=CONFIRMED,
                        actor_type="CLIENT",
                        actor_email=email,
                        meta={
                            "paid_date": confirmed_date.isoformat() if confirmed_date else None,
                            "paid_amount": str(confirmed_amount) if confirmed_amount is not None else None,
                            "confirmation_number": confirmation_number,
                            "note": note,
                            "portal_link_id": link.id,
                        },
                    )
                )
                self.tokens.touch(db, link, now)
                db.commit()
                logger.info("obligation_confirmed obligation_id=%s link_id=%s", obligation.id, link.id)
            finally:
                work_unit_id_ctx.reset(token_ctx)
            confirmations_total.labels(service=self.service_name, outcome="confirmed").inc()
            return obligation
