"""Error Handlers — every failure leaves the API as the same {"error": {...}} envelope.

Invariants:
    - OrbitError → its own to_response(), status from the error
    - HTTPException (route guards) → code derived from the status, detail as message
    - RequestValidationError → 400 VALIDATION_ERROR with per-field details
    - Anything else → 500 INTERNAL_ERROR, no internal details in the body

Design Decisions:
    - Plain handler functions registered with add_exception_handler so tests can
      call them directly
    - 5xx logged at error, everything else at warning
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from orbit.core.errors import ErrorCategory, ErrorSeverity, OrbitError

logger = logging.getLogger(__name__)

_HTTP_CODES = {
    status.HTTP_400_BAD_REQUEST: ("BAD_REQUEST", ErrorCategory.VALIDATION),
    status.HTTP_401_UNAUTHORIZED: ("UNAUTHORIZED", ErrorCategory.AUTHENTICATION),
    status.HTTP_404_NOT_FOUND: ("NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND),
    status.HTTP_405_METHOD_NOT_ALLOWED: ("METHOD_NOT_ALLOWED", ErrorCategory.VALIDATION),
}


def _envelope(
    code: str, message: str, category: ErrorCategory, severity: ErrorSeverity, **more,
) -> dict:
    return {"error": {
        "code": code,
        "message": message,
        "category": category.value,
        "severity": severity.value,
        **more,
    }}


async def handle_orbit_error(request: Request, exc: OrbitError) -> JSONResponse:
    log = logger.error if exc.http_status >= 500 else logger.warning
    log(
        f"{exc.code} on {request.url.path}: {exc.message}",
        extra={
            "error_code": exc.code,
            "owner_id": exc.context.owner_id,
            "attempt": exc.context.attempt,
        },
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


async def handle_http_exception(
    request: Request, exc: StarletteHTTPException,
) -> JSONResponse:
    code, category = _HTTP_CODES.get(
        exc.status_code, ("HTTP_ERROR", ErrorCategory.INTERNAL),
    )
    logger.warning(
        f"{exc.status_code} on {request.url.path}: {exc.detail}",
        extra={"error_code": code},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(code, str(exc.detail), category, ErrorSeverity.ERROR),
        headers=getattr(exc, "headers", None),
    )


async def handle_validation_error(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in e["loc"]),
            "message": e["msg"],
            "type": e["type"],
        }
        for e in exc.errors()
    ]
    logger.warning(
        f"Invalid request on {request.url.path}: {len(details)} field error(s)",
        extra={"error_code": "VALIDATION_ERROR"},
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_envelope(
            "VALIDATION_ERROR", "Invalid request data", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, details=details,
        ),
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.url.path}: {exc}",
        exc_info=True,
        extra={"error_code": "INTERNAL_ERROR"},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_envelope(
            "INTERNAL_ERROR", "An unexpected error occurred", ErrorCategory.INTERNAL,
            ErrorSeverity.CRITICAL,
        ),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OrbitError, handle_orbit_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
