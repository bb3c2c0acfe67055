"""
Skill Portal - Main Application.

FastAPI application for the portal's administrative control plane: tiered
safe actions, delayed-action queue, versioned settings and action log.
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager, suppress
from typing import Callable
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from skillportal import __version__
from skillportal.config import get_settings
from skillportal.exceptions import PortalException
from skillportal.modules import (
    audit_router,
    pending_actions_router,
    safe_actions_router,
    settings_history_router,
    settings_router,
)
from skillportal.modules.audit.outbox import get_audit_outbox
from skillportal.modules.settings.service import SettingsService
from skillportal.schemas import HealthResponse

logging.basicConfig(
    level=get_settings().app_log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("skillportal")


async def flush_outbox_periodically(
    interval: float,
    service_factory: Callable[[], SettingsService] = SettingsService,
) -> None:
    """Retry audit records parked by this process until cancelled."""
    service = None
    while True:
        await asyncio.sleep(interval)
        if not len(get_audit_outbox()):
            continue
        service = service or service_factory()
        try:
            await service.flush_outbox()
        except PortalException as e:
            logger.error(f"Audit outbox flush failed: {e.code} - {e.message}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    logger.info(f"Starting Skill Portal API v{__version__} [env={settings.app_env}]")
    if settings.auth_insecure_dev_bypass and not settings.is_production:
        logger.warning("AUTH_INSECURE_DEV_BYPASS is on: every request acts as a local super admin")

    flusher = asyncio.create_task(flush_outbox_periodically(settings.safe_actions.outbox_flush_interval_seconds))
    yield
    flusher.cancel()
    with suppress(asyncio.CancelledError):
        await flusher
    if len(get_audit_outbox()):
        logger.critical(f"Shutting down with {len(get_audit_outbox())} unwritten audit record(s)")


app = FastAPI(
    title="Skill Portal API",
    description="Administrative control plane for the student skill-registration portal.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """Tag each request with an ID and log it."""
    request_id = request.headers.get("X-Request-ID") or str(uuid4())
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    logger.info(f"[{request_id}] {request.method} {request.url.path} -> {response.status_code}")
    return response


def _error_response(status_code: int, code: str, message: str, details=None, request_id=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": code,
                "message": message,
                "details": details,
                "request_id": request_id,
            }
        },
    )


@app.exception_handler(PortalException)
async def portal_exception_handler(request: Request, exc: PortalException):
    request_id = str(exc.request_id) if exc.request_id else getattr(request.state, "request_id", None)
    if exc.code == "AUDIT_WRITE_FAILED":
        logger.critical(f"[{request_id}] {exc.code} - {exc.message} {exc.details}")
    elif exc.status_code >= 500:
        logger.error(f"[{request_id}] {exc.code} - {exc.message} {exc.details}")
    else:
        logger.warning(f"[{request_id}] {exc.code} - {exc.message}")
    return _error_response(exc.status_code, exc.code, exc.message, exc.details, request_id)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled exception on {request.url.path}")
    message = str(exc) if get_settings().app_debug else "An unexpected error occurred"
    return _error_response(500, "INTERNAL_ERROR", message, request_id=getattr(request.state, "request_id", None))


@app.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check():
    """Degraded while audit records await a retry."""
    settings = get_settings()
    return HealthResponse(
        status="degraded" if len(get_audit_outbox()) else "healthy",
        version=__version__,
        features=settings.features.to_dict(),
        app_env=settings.app_env,
        is_production=settings.is_production,
    )


app.include_router(safe_actions_router)
app.include_router(pending_actions_router)
app.include_router(settings_router)
app.include_router(settings_history_router)
app.include_router(audit_router)
