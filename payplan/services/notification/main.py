"""HTTP surface for quarterly instruction emails and the dispatcher trigger."""

import hmac

from fastapi import Depends, FastAPI, Header, HTTPException

from payplan.common.config import settings
from payplan.common.db import SessionLocal
from payplan.common.errors import InvalidRequest
from payplan.common.http import install_error_handlers, install_http_middleware, require_operator
from payplan.common.logging import configure_logging
from payplan.common.metrics import metrics_response
from payplan.common.rate_limit import build_limiter
from payplan.common.startup import log_startup_config
from payplan.common.tracing import instrument_app, setup_tracing
from payplan.services.notification.schemas import (
    DispatchReport,
    EmailPreview,
    NotificationResponse,
    QuarterEmailRequest,
)
from payplan.services.notification.service import NotificationService

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(
    settings.service_name,
    [
        "SERVICE_NAME",
        "DATABASE_URL",
        "PORTAL_BASE_URL",
        "EMAIL_TRANSPORT",
        "SMTP_HOST",
        "SMTP_PASSWORD",
        "CRON_SECRET",
        "DISPATCH_BATCH_SIZE",
    ],
)
service = NotificationService(SessionLocal)
limiter = build_limiter("operator")

app = FastAPI(title="Payplan Notification")
install_http_middleware(app)
install_error_handlers(app)
instrument_app(app)


def require_cron(x_cron_secret: str | None = Header(default=None)) -> None:
    """When CRON_SECRET is set, the dispatcher trigger must present it."""

    if settings.cron_secret and not hmac.compare_digest(x_cron_secret or "", settings.cron_secret):
        raise HTTPException(status_code=401, detail="invalid cron secret")


@app.post("/work-units/{work_unit_id}/quarter-email", response_model=NotificationResponse)
def quarter_email(work_unit_id: str, req: QuarterEmailRequest, owner_id: str = Depends(require_operator)):
    """Send a quarter's instructions now, or schedule them for `send_at`."""

    limiter.hit(owner_id)
    if req.action == "schedule" and req.send_at is None:
        raise InvalidRequest("send_at is required for scheduling")
    send_at = req.send_at if req.action == "schedule" else None
    return service.schedule_quarter_email(owner_id, work_unit_id, req.tax_year, req.quarter, send_at=send_at)


@app.get("/work-units/{work_unit_id}/quarter-email/preview", response_model=EmailPreview)
def quarter_email_preview(
    work_unit_id: str,
    tax_year: int,
    quarter: int,
    owner_id: str = Depends(require_operator),
):
    """Render the instructions email with a placeholder checklist link."""

    return service.preview_quarter_email(owner_id, work_unit_id, tax_year, quarter)


@app.get("/work-units/{work_unit_id}/notifications", response_model=list[NotificationResponse])
def list_notifications(work_unit_id: str, owner_id: str = Depends(require_operator)):
    return service.list_records(owner_id, work_unit_id)


@app.get("/notifications/{notification_id}", response_model=NotificationResponse)
def get_notification(notification_id: str, owner_id: str = Depends(require_operator)):
    return service.get_record(owner_id, notification_id)


@app.post("/notifications/process", response_model=DispatchReport)
def process_notifications(_: None = Depends(require_cron)):
    """Run one dispatcher pass over due queued records."""

    return service.process_due()


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@app.get("/health")
def health():
    """Container health probe endpoint."""

    return {"ok": True}
