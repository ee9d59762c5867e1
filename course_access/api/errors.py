"""Domain error -> HTTP response mapping.

The one place CourseAccessError subclasses meet status codes.  Lookup
walks the exception's MRO, so PaymentNotCompleted inherits the 402 of
PaymentRequired and every *NotAvailable inherits NotAvailableError's 404.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from course_access.core.errors import (
    AlreadyEnrolled,
    AuthenticationRequired,
    CourseAccessError,
    NotAvailableError,
    NotEnrolled,
    NotFoundError,
    PaymentMismatch,
    PaymentRequired,
    PermissionDenied,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: dict[type[CourseAccessError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    NotAvailableError: status.HTTP_404_NOT_FOUND,
    AlreadyEnrolled: status.HTTP_409_CONFLICT,
    NotEnrolled: status.HTTP_403_FORBIDDEN,
    PaymentRequired: status.HTTP_402_PAYMENT_REQUIRED,
    PaymentMismatch: status.HTTP_400_BAD_REQUEST,
    PermissionDenied: status.HTTP_403_FORBIDDEN,
    AuthenticationRequired: status.HTTP_401_UNAUTHORIZED,
}


def status_for(exc: CourseAccessError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return status.HTTP_400_BAD_REQUEST


async def course_access_error_handler(
    request: Request, exc: CourseAccessError
) -> JSONResponse:
    status_code = status_for(exc)
    logger.info(
        "%s %s rejected: %s (%d)",
        request.method,
        request.url.path,
        exc.code,
        status_code,
    )
    headers = None
    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=status_code, content=exc.to_dict(), headers=headers
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "internal_error"},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CourseAccessError, course_access_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)
