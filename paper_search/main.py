import logging
import time
import uuid

from fastapi import FastAPI, HTTPException, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse

from paper_search.api.routes import get_source_store, get_sync_orchestrator, router
from paper_search.core.config import settings
from paper_search.core.logging import clear_request_context, configure_logging, log_event, set_request_context
from paper_search.services.startup_guards import StartupValidationError, validate_required_settings

configure_logging()
app = FastAPI(title="Paper Search Service API", version=settings.APP_VERSION)
app.include_router(router)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    started = time.perf_counter()
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    set_request_context(request_id=request_id)
    request.state.request_id = request_id

    status_code = 500
    error_code = None
    try:
        response = await call_next(request)
        status_code = response.status_code
        if status_code >= 400:
            error_code = str(status_code)
        response.headers["X-Request-ID"] = request_id
        return response
    except Exception:
        error_code = "internal_server_error"
        raise
    finally:
        log_event(
            "api.request.completed",
            payload={
                "endpoint": request.url.path,
                "method": request.method,
                "status_code": status_code,
                "duration_ms": int((time.perf_counter() - started) * 1000),
                "error_code": error_code,
            },
        )
        clear_request_context()


@app.exception_handler(HTTPException)
async def contract_error_handler(request: Request, exc: HTTPException):
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        return JSONResponse(status_code=exc.status_code, content=exc.detail)
    return await http_exception_handler(request, exc)


@app.on_event("startup")
def _startup_validation() -> None:
    try:
        validate_required_settings()
    except StartupValidationError as exc:
        log_event("startup.failed", level=logging.ERROR, payload={"error_code": exc.error_code, "error": str(exc)}, plane="control")
        raise RuntimeError(f"{exc.error_code}: {exc}") from exc
    checkpoint = get_sync_orchestrator().recover()
    log_event(
        "startup.completed",
        payload={"resume_after": checkpoint.last_id, "total_indexed": checkpoint.total_indexed},
        plane="control",
    )


@app.on_event("shutdown")
async def _graceful_shutdown() -> None:
    orchestrator = get_sync_orchestrator()
    if orchestrator.is_running:
        await orchestrator.stop()
    get_source_store().close()
