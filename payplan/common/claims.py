"""Claim/finalize helpers for time-driven queue tables.

These utilities are model-agnostic: any table with `id`, `status`, `send_at`
and `claimed_at` columns can be drained by concurrent workers. A claim only
stamps `claimed_at`; the row stays `QUEUED` until a worker commits the
`QUEUED`-guarded finalize update, which is the single commit point.
"""

from datetime import datetime, timedelta

from sqlalchemy import func, or_, select, update

from payplan.common.clock import as_utc
from payplan.common.metrics import notification_queue_oldest_due_age_seconds, notification_queue_pending_total

QUEUED = "QUEUED"
SENT = "SENT"
FAILED = "FAILED"


def claim_due_batch(db, queue_model, now: datetime, limit: int = 25, claim_timeout_seconds: int = 300) -> list[str]:
    """Atomically claim up to `limit` due rows and return their ids.

    Rows claimed by another worker are skipped until the claim goes stale.
    """

    table = queue_model.__table__
    stale_before = now - timedelta(seconds=claim_timeout_seconds)
    claim_ids = (
        select(table.c.id)
        .where(
            table.c.status == QUEUED,
            table.c.send_at <= now,
            or_(table.c.claimed_at.is_(None), table.c.claimed_at < stale_before),
        )
        .order_by(table.c.send_at)
        .limit(limit)
        .with_for_update(skip_locked=True)
    )
    rows = db.execute(
        update(table)
        .where(table.c.id.in_(claim_ids))
        .values(claimed_at=now)
        .returning(table.c.id, table.c.send_at)
    ).all()
    return [row.id for row in sorted(rows, key=lambda row: row.send_at)]


def claim_one(db, queue_model, record_id: str, now: datetime) -> bool:
    """Claim a single queued row regardless of its due time."""

    table = queue_model.__table__
    result = db.execute(
        update(table)
        .where(table.c.id == record_id, table.c.status == QUEUED)
        .values(claimed_at=now)
    )
    return result.rowcount == 1


def finalize(db, queue_model, record_id: str, status: str, **values) -> bool:
    """Move one `QUEUED` row to a terminal status; False when another worker won."""

    table = queue_model.__table__
    result = db.execute(
        update(table)
        .where(table.c.id == record_id, table.c.status == QUEUED)
        .values(status=status, **values)
    )
    return result.rowcount == 1


def update_queue_backlog_metrics(db, queue_model, service_name: str, now: datetime) -> None:
    """Update service-level gauges for queued depth and oldest due age."""

    table = queue_model.__table__
    pending_count = db.execute(
        select(func.count()).select_from(table).where(table.c.status == QUEUED)
    ).scalar_one()
    oldest_due = db.execute(
        select(func.min(table.c.send_at)).where(table.c.status == QUEUED, table.c.send_at <= now)
    ).scalar_one()
    age_seconds = 0.0
    if oldest_due is not None:
        age_seconds = max(0.0, (now - as_utc(oldest_due)).total_seconds())
    notification_queue_pending_total.labels(service=service_name).set(float(pending_count))
    notification_queue_oldest_due_age_seconds.labels(service=service_name).set(age_seconds)
