"""Domain error taxonomy and its HTTP rendering.

Services raise these; routers never build error payloads by hand. Every
response carries a stable ``kind`` and a human-readable ``message``.
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class LeaseKeeperError(Exception):
    """Base class for errors surfaced to callers."""

    kind = "Internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFound(LeaseKeeperError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND


class Forbidden(LeaseKeeperError):
    kind = "Forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class ValidationFailed(LeaseKeeperError):
    kind = "ValidationFailed"
    status_code = 422  # Starlette renamed the constant to HTTP_422_UNPROCESSABLE_CONTENT


class Conflict(LeaseKeeperError):
    kind = "Conflict"
    status_code = status.HTTP_409_CONFLICT


class Unauthenticated(LeaseKeeperError):
    kind = "Unauthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED


class Internal(LeaseKeeperError):
    kind = "Internal"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(kind: str, message: str, details: Optional[Any] = None) -> dict[str, Any]:
    body: dict[str, Any] = {"kind": kind, "message": message}
    if details is not None:
        body["details"] = details
    return {"error": body}


async def handle_domain_error(request: Request, exc: LeaseKeeperError) -> JSONResponse:
    headers = None
    if isinstance(exc, Unauthenticated):
        headers = {"WWW-Authenticate": "Bearer"}
    if isinstance(exc, Internal):
        logger.error(f"[ERROR] {request.method} {request.url.path}: {exc.message}")
        message = "An internal error occurred"
    else:
        message = exc.message
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.kind, message, exc.details),
        headers=headers,
    )


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(loc) for loc in err.get("loc", ()) if loc != "body"),
            "message": err.get("msg"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=error_body(ValidationFailed.kind, "Request validation failed", details),
    )


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"[ERROR] Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(Internal.kind, "An internal error occurred"),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LeaseKeeperError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)
