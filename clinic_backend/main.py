"""
Clinic Staff Backend - Main Application Entry Point
"""
import logging
from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from clinic_backend.api.router import api_router
from clinic_backend.core.config import settings
from clinic_backend.core.errors import (
    AppError,
    app_error_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from clinic_backend.core.logging import setup_logging
from clinic_backend.core.middleware import RequestLoggingMiddleware
from clinic_backend.db.init_db import init_db
from clinic_backend.db.session import engine

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


def _mask_database_url(url: str) -> str:
    """Mask password in DATABASE_URL for safe logging; show full path for sqlite."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return "***"
    if parsed.scheme.startswith("sqlite"):
        return url
    if parsed.password:
        netloc = f"{parsed.username}:****@{parsed.hostname or ''}"
        if parsed.port:
            netloc += f":{parsed.port}"
        return urlunparse(parsed._replace(netloc=netloc))
    return url


# Create FastAPI app
app = FastAPI(
    title="Clinic Staff Backend",
    description="Staff authentication, SMS MFA and invitation onboarding",
    version=settings.VERSION or "1.0.0"
)

# Configure CORS - must be before other middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(RequestLoggingMiddleware)

# Register exception handlers
app.add_exception_handler(AppError, app_error_handler)
# Starlette base class so routing 404/405 share the envelope
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include all API routes under /api/v1
app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def startup_log_config() -> None:
    """Log DATABASE_URL at startup so it can be verified against Alembic."""
    masked = _mask_database_url(settings.DATABASE_URL)
    logger.info("DATABASE_URL (app): %s", masked)
    logger.info("Environment: %s, SMS backend: %s", settings.APP_ENV, settings.SMS_BACKEND)


@app.on_event("startup")
def startup_init_db() -> None:
    init_db(engine)


# Handle missing table errors with a clear message
def _is_no_such_table(err: BaseException) -> bool:
    msg = str(err).lower()
    return "no such table" in msg or "does not exist" in msg


async def _handle_operational_error(request, exc: OperationalError):
    if _is_no_such_table(exc):
        logger.error("Schema missing: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Run alembic upgrade head"},
        )
    return await generic_exception_handler(request, exc)


app.add_exception_handler(OperationalError, _handle_operational_error)
