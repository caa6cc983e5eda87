"""
Central error handling for the leave lifecycle backend

Services raise DomainError subclasses tagged with an ErrorKind; the HTTP
status is chosen here, at the transport boundary.
"""
import enum
import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "*",
    "Access-Control-Allow-Headers": "*",
}


class ErrorKind(str, enum.Enum):
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    VALIDATION = "VALIDATION"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    CONFLICT = "CONFLICT"
    STATE = "STATE"


ERROR_KIND_STATUS = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INSUFFICIENT_BALANCE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.STATE: status.HTTP_409_CONFLICT,
}


class DomainError(Exception):
    """Base class for leave engine errors."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.context = context or {}
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return ERROR_KIND_STATUS[self.kind]


class NotFoundError(DomainError):
    """Entity does not exist, or the actor may not see it."""
    kind = ErrorKind.NOT_FOUND


class ForbiddenError(DomainError):
    """Role or hierarchy check failed, or a self-action was attempted."""
    kind = ErrorKind.FORBIDDEN


class LeaveValidationError(DomainError):
    """Date, weekday, holiday, cap or field rule violated."""
    kind = ErrorKind.VALIDATION


class InsufficientBalanceError(DomainError):
    kind = ErrorKind.INSUFFICIENT_BALANCE


class ConflictError(DomainError):
    """An overlapping leave day already exists."""
    kind = ErrorKind.CONFLICT


class StateError(DomainError):
    """Action not permitted in the request's current status."""
    kind = ErrorKind.STATE


async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    """
    Render a DomainError with the standard error envelope

    Args:
        request: FastAPI request object
        exc: DomainError instance

    Returns:
        JSONResponse whose status code is derived from the error kind
    """
    content = {
        "error": True,
        "status_code": exc.status_code,
        "kind": exc.kind.value,
        "detail": exc.message,
        "path": str(request.url.path),
    }
    if exc.context:
        content["context"] = exc.context
    return JSONResponse(status_code=exc.status_code, content=content, headers=CORS_HEADERS)


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
        content={
            "error": True,
            "status_code": exc.status_code,
            "detail": exc.detail,
            "path": str(request.url.path)
        },
        headers={**CORS_HEADERS, **(exc.headers or {})},
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle RequestValidationError with consistent JSON response format

    Does not leak internal validation details in production.
    """
    from app.core.config import settings

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "status_code": 422,
                "detail": "Validation error: Invalid request data",
                "path": str(request.url.path)
            }
        )

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
        content={
            "error": True,
            "status_code": 422,
            "detail": "Validation error",
            "errors": errors,
            "path": str(request.url.path)
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions with consistent JSON response format

    Does not leak internal error details in production.
    """
    from app.core.config import settings

    logger.error("Unhandled exception: %s", exc, exc_info=True)

    if settings.APP_ENV == "prod":
        detail = "Internal server error"
        extra = {}
    else:
        detail = str(exc)
        extra = {"traceback": traceback.format_exc() if settings.APP_ENV == "local" else None}

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": True,
            "status_code": 500,
            "detail": detail,
            "path": str(request.url.path),
            **extra,
        },
        headers=CORS_HEADERS,
    )
