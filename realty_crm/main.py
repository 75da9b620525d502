# realty_crm/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .errors import CRMError, is_unique_violation
from .logging_config import configure_logging
from .middleware.request_context import RequestContextMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware
from .responses import fail

from .routers.health import router as health_router
from .routers.properties import router as properties_router
from .routers.leads import router as leads_router
from .routers.viewings import router as viewings_router
from .routers.dcsr_reports import router as dcsr_reports_router
from .routers.calendar import router as calendar_router
from .routers.agent_reports import router as agent_reports_router
from .routers.settings import router as settings_router

API_PREFIX = "/api"

log = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    val = getattr(settings, "cors_allow_origins", ["*"])
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(CRMError)
    async def _crm_error(request: Request, exc: CRMError):
        if exc.status_code >= 500:
            log.error("request_failed", extra={"summary": exc.message})
        return fail(exc.status_code, exc.message, exc.error)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        msg = f"{loc}: {first.get('msg')}" if loc else str(first.get("msg") or "Invalid request")
        return fail(400, "Validation failed", msg)

    @app.exception_handler(IntegrityError)
    async def _integrity_error(request: Request, exc: IntegrityError):
        if is_unique_violation(exc):
            return fail(409, "Resource already exists", str(exc.orig))
        return fail(400, "Constraint violation", str(exc.orig))

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        return fail(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        log.exception("unhandled_error")
        return fail(500, "Internal server error", str(exc))


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Realty CRM", version=settings.app_version)

    # request id must wrap the logging middleware so its id is set first
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestContextMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _install_error_handlers(app)

    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(properties_router, prefix=API_PREFIX)
    app.include_router(leads_router, prefix=API_PREFIX)
    app.include_router(viewings_router, prefix=API_PREFIX)
    app.include_router(dcsr_reports_router, prefix=API_PREFIX)
    app.include_router(calendar_router, prefix=API_PREFIX)
    app.include_router(agent_reports_router, prefix=API_PREFIX)
    app.include_router(settings_router, prefix=API_PREFIX)
    return app


app = create_app()
