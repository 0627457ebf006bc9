"""
Central error handling for the Clinic Staff Backend

Domain exceptions raised by the service layer, and the FastAPI exception
handlers that render them (and everything else) with one JSON envelope.
"""
import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors the API reports to clients as-is"""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "APP_ERROR"
    default_detail: str = "Request could not be processed"

    def __init__(self, detail: Optional[str] = None, errors: Optional[Dict[str, Any]] = None):
        self.detail = detail or self.default_detail
        self.errors = errors
        super().__init__(self.detail)


class ValidationError(AppError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "VALIDATION_ERROR"
    default_detail = "Validation error"


class AuthError(AppError):
    """Authentication failures. Messages stay generic to avoid account enumeration."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "AUTH_ERROR"
    default_detail = "Could not validate credentials"


class InvalidCredentials(AuthError):
    error_code = "INVALID_CREDENTIALS"
    default_detail = "Invalid credentials"


class AccountInactive(AuthError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "ACCOUNT_INACTIVE"
    default_detail = "Account is inactive"


class InvalidCode(AuthError):
    error_code = "INVALID_CODE"
    default_detail = "Invalid MFA code"


class InvalidOrExpiredToken(AuthError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "INVALID_OR_EXPIRED_TOKEN"
    default_detail = "Invalid or expired invitation token"


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "FORBIDDEN"
    default_detail = "Unauthorized"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"
    default_detail = "Conflict"


class DuplicateInvitation(ConflictError):
    error_code = "DUPLICATE_INVITATION"
    default_detail = "Invitation already sent to this email"


class LastAdminError(ConflictError):
    error_code = "LAST_ADMIN"
    default_detail = "Operation would leave the system without an active admin"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"
    default_detail = "Not found"


class PhoneRequired(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "PHONE_REQUIRED"
    default_detail = "No phone number on file for this account"


class NotificationError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "NOTIFICATION_FAILED"
    default_detail = "Could not deliver the verification code"


def _error_body(request: Request, status_code: int, detail: Any, **extra: Any) -> Dict[str, Any]:
    body = {
        "error": True,
        "status_code": status_code,
        "detail": detail,
        "path": str(request.url.path),
    }
    body.update({k: v for k, v in extra.items() if v is not None})
    return body


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """
    Handle domain errors raised by the service layer

    Args:
        request: FastAPI request object
        exc: AppError instance

    Returns:
        JSONResponse with error details
    """
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.error_code, request.url.path, exc.detail)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(
            request,
            exc.status_code,
            exc.detail,
            error_code=exc.error_code,
            errors=exc.errors,
        ),
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handle HTTPException with consistent JSON response format

    Args:
        request: FastAPI request object
        exc: HTTPException instance

    Returns:
        JSONResponse with error details
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.status_code, exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle RequestValidationError with consistent JSON response format

    Does not leak internal validation details in production.
    """
    from clinic_backend.core.config import settings

    # In production, return generic error message
    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_body(
                request, 422, "Validation error: Invalid request data", error_code=ValidationError.error_code
            ),
        )

    # Sanitize for JSON: e.g. ctx.error ValueError -> str
    errors = []
    for e in exc.errors():
        err = dict(e)
        if "ctx" in err and isinstance(err["ctx"], dict):
            err["ctx"] = {
                k: (str(v) if not isinstance(v, (str, int, float, bool, type(None))) else v)
                for k, v in err["ctx"].items()
            }
        errors.append(err)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body(
            request, 422, "Validation error", error_code=ValidationError.error_code, errors=errors
        ),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions with consistent JSON response format

    Does not leak internal error details in production.
    """
    from clinic_backend.core.config import settings

    logger.error("Unhandled exception: %s", exc, exc_info=True)

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(request, 500, "Internal server error"),
        )

    # In development/staging, return error details
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            request,
            500,
            str(exc),
            traceback=traceback.format_exc() if settings.APP_ENV == "local" else None,
        ),
    )
