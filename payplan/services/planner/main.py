"""HTTP surface for intake synchronization and operator obligation actions."""

from typing import Any

from fastapi import Body, Depends, FastAPI

from payplan.common.config import settings
from payplan.common.db import SessionLocal
from payplan.common.http import install_error_handlers, install_http_middleware, require_operator
from payplan.common.logging import configure_logging
from payplan.common.metrics import metrics_response
from payplan.common.startup import log_startup_config
from payplan.common.tracing import instrument_app, setup_tracing
from payplan.services.planner.schemas import (
    ObligationPatch,
    ObligationResponse,
    SessionSyncResponse,
    SyncResponse,
    obligation_response,
)
from payplan.services.planner.service import PlannerService

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(settings.service_name, ["SERVICE_NAME", "DATABASE_URL", "API_KEY"])
service = PlannerService(SessionLocal)

app = FastAPI(title="Payplan Planner")
install_http_middleware(app)
install_error_handlers(app)
instrument_app(app)


@app.put("/batches/{batch_id}/session", response_model=SessionSyncResponse)
def sync_session(batch_id: str, snapshot: Any = Body(default=None), owner_id: str = Depends(require_operator)):
    """Synchronize every client of an intake session snapshot."""

    if isinstance(snapshot, dict) and isinstance(snapshot.get("snapshot"), dict):
        snapshot = snapshot["snapshot"]
    return service.sync_session(owner_id, batch_id, snapshot)


@app.put("/batches/{batch_id}/clients/{client_ref}", response_model=SyncResponse)
def sync_client(
    batch_id: str,
    client_ref: str,
    document: Any = Body(default=None),
    owner_id: str = Depends(require_operator),
):
    """Synchronize one client's intake document into its work unit."""

    return service.sync_client(owner_id, batch_id, client_ref, document)


@app.get("/work-units/{work_unit_id}/obligations", response_model=list[ObligationResponse])
def list_obligations(work_unit_id: str, include_cancelled: bool = True, owner_id: str = Depends(require_operator)):
    """List a work unit's obligations with their display status."""

    today = service.today()
    obligations = service.list_obligations(owner_id, work_unit_id, include_cancelled=include_cancelled)
    return [obligation_response(obligation, today) for obligation in obligations]


@app.patch("/obligations/{obligation_id}", response_model=ObligationResponse)
def edit_obligation(obligation_id: str, patch: ObligationPatch, owner_id: str = Depends(require_operator)):
    """Operator edit of obligation fields."""

    return obligation_response(service.edit_obligation(owner_id, obligation_id, patch), service.today())


@app.delete("/obligations/{obligation_id}", response_model=ObligationResponse)
def cancel_obligation(obligation_id: str, owner_id: str = Depends(require_operator)):
    """Operator removal; the obligation is soft-cancelled."""

    return obligation_response(service.cancel_obligation(owner_id, obligation_id), service.today())


@app.post("/obligations/{obligation_id}/verify", response_model=ObligationResponse)
def verify_obligation(obligation_id: str, owner_id: str = Depends(require_operator)):
    """Operator upgrade of a confirmed obligation to verified."""

    return obligation_response(service.verify_obligation(owner_id, obligation_id), service.today())


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@app.get("/health")
def health():
    """Container health probe endpoint."""

    return {"ok": True}
