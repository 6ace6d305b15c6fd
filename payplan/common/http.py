"""FastAPI glue shared by the service entrypoints."""

from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from payplan.common.config import settings
from payplan.common.errors import PayplanError
from payplan.common.logging import trace_id_ctx
from payplan.common.metrics import http_request_duration_seconds, http_requests_total
from payplan.common.state_machine import InvalidTransition


def install_http_middleware(app: FastAPI) -> None:
    """Record request count/latency and bind a trace id for every HTTP call."""

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        token = trace_id_ctx.set(request.headers.get("x-trace-id") or str(uuid4()))
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            return response
        finally:
            trace_id_ctx.reset(token)
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=settings.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=settings.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()


def require_operator(
    x_api_key: str | None = Header(default=None),
    x_owner_id: str | None = Header(default=None),
) -> str:
    """Reject calls without the operator API key; return the owner id."""

    if not settings.api_key or x_api_key != settings.api_key:
        raise HTTPException(status_code=401, detail="invalid API key")
    owner_id = (x_owner_id or "").strip()
    if not owner_id:
        raise HTTPException(status_code=400, detail="missing x-owner-id header")
    return owner_id


def install_error_handlers(app: FastAPI) -> None:
    """Map domain errors to JSON error responses with their status codes."""

    @app.exception_handler(PayplanError)
    async def payplan_error_handler(_: Request, exc: PayplanError):
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    @app.exception_handler(InvalidTransition)
    async def transition_error_handler(_: Request, exc: InvalidTransition):
        return JSONResponse(status_code=409, content={"detail": str(exc)})
