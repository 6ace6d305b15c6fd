"""Unauthenticated client portal: checklist view and payment confirmation."""

from fastapi import FastAPI

from payplan.common.config import settings
from payplan.common.db import SessionLocal
from payplan.common.http import install_error_handlers, install_http_middleware
from payplan.common.logging import configure_logging
from payplan.common.metrics import metrics_response
from payplan.common.rate_limit import build_limiter
from payplan.common.startup import log_startup_config
from payplan.common.tracing import instrument_app, setup_tracing
from payplan.services.portal.schemas import ConfirmationResponse, ConfirmationSubmission, PortalView
from payplan.services.portal.service import PortalService
from payplan.services.portal.tokens import hash_token

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(
    settings.service_name,
    ["SERVICE_NAME", "DATABASE_URL", "REDIS_URL", "PORTAL_LINK_TTL_DAYS", "RATE_LIMIT_PER_MINUTE"],
)
service = PortalService(SessionLocal)
limiter = build_limiter("portal")

app = FastAPI(title="Payplan Client Portal")
install_http_middleware(app)
install_error_handlers(app)
instrument_app(app)


def _actor(token: str) -> str:
    # Bucket by token digest so raw tokens never reach the limiter store.
    return hash_token(token)[:32]


@app.get("/p/{token}", response_model=PortalView)
def portal_view(token: str):
    """Resolve a portal link and return the client's payment checklist."""

    limiter.hit(_actor(token))
    return service.view(token)


@app.post("/p/{token}/confirm", response_model=ConfirmationResponse)
def confirm_payment(token: str, submission: ConfirmationSubmission):
    """Record the client's confirmation for one payment."""

    limiter.hit(_actor(token))
    obligation = service.confirm(token, submission)
    return ConfirmationResponse(obligation_id=obligation.id, status=obligation.status)


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@app.get("/health")
def health():
    """Container health probe endpoint."""

    return {"ok": True}
