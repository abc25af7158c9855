"""FastAPI application factory."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from piano_crm import __version__
from piano_crm.api.ai import router as ai_router
from piano_crm.api.dashboard import router as dashboard_router
from piano_crm.api.email import cron_router
from piano_crm.api.email import router as email_router
from piano_crm.api.files import router as files_router
from piano_crm.api.settings import router as settings_router
from piano_crm.api.students import router as students_router
from piano_crm.config import Settings, get_settings
from piano_crm.db import ensure_core_schema, get_engine
from piano_crm.exceptions import (
    AIModelUnavailableError,
    AIRateLimitError,
    AuthenticationError,
    CrmError,
    NotFoundError,
    ValidationError,
)

logger = structlog.get_logger()

# Most specific first; anything else derived from CrmError is a 500.
_STATUS_BY_ERROR: tuple[tuple[type[CrmError], int], ...] = (
    (NotFoundError, 404),
    (ValidationError, 400),
    (AuthenticationError, 401),
    (AIRateLimitError, 429),
    (AIModelUnavailableError, 503),
)


def status_for(exc: CrmError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


async def _crm_error_handler(request: Request, exc: CrmError) -> JSONResponse:
    status = status_for(exc)
    log = logger.error if status >= 500 else logger.warning
    log("request_failed", path=request.url.path, status=status, error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(status_code=status, content={"error": str(exc)})


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed bodies share the ValidationError contract: 400 with a single message.
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg', 'invalid')}" if field else first.get("msg", message)
    logger.warning("request_invalid", path=request.url.path, error=message)
    return JSONResponse(status_code=400, content={"error": message})


def create_app(settings: Settings | None = None, engine: Engine | None = None) -> FastAPI:
    """Build the API application.

    Args:
        settings: Application settings. If None, uses default settings.
        engine: Database engine. If None, one is created from settings.
    """

    settings = settings or get_settings()

    app = FastAPI(title="Piano CRM", version=__version__, debug=settings.debug)
    app.state.settings = settings
    app.state.engine = engine if engine is not None else get_engine()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(CrmError, _crm_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    app.include_router(students_router)
    app.include_router(email_router)
    app.include_router(cron_router)
    app.include_router(ai_router)
    app.include_router(files_router)
    app.include_router(settings_router)
    app.include_router(dashboard_router)

    @app.on_event("startup")
    def _startup() -> None:
        ensure_core_schema(app.state.engine)
        logger.info("api_started", version=__version__)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app
