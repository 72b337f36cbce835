"""FastAPI error handlers for docgate exceptions.

This module converts docgate exceptions into JSON responses. Bodies carry
the error category and a short message, never verification internals.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from docgate.core.exceptions import (
    BackendError,
    ConfigurationError,
    DocGateError,
    RateLimitedError,
    SigningError,
    UnauthorizedError,
    ValidationError,
)

logger = logging.getLogger(__name__)


async def docgate_exception_handler(
    request: Request,
    exc: DocGateError
) -> JSONResponse:
    """Handle docgate exceptions.

    Args:
        request: The FastAPI request
        exc: The docgate exception

    Returns:
        JSONResponse with error details
    """
    if isinstance(exc, RateLimitedError):
        status_code = 429
        error_type = "rate_limited"
    elif isinstance(exc, UnauthorizedError):
        status_code = 403
        error_type = "unauthorized"
    elif isinstance(exc, ValidationError):
        status_code = 400
        error_type = "validation_error"
    elif isinstance(exc, BackendError):
        status_code = 500
        error_type = "backend_error"
    elif isinstance(exc, SigningError):
        status_code = 500
        error_type = "signing_error"
    elif isinstance(exc, ConfigurationError):
        status_code = 500
        error_type = "configuration_error"
    else:
        status_code = 500
        error_type = "internal_error"

    content = {
        "error": error_type,
        "message": exc.message,
    }

    if isinstance(exc, ValidationError):
        content["reason"] = exc.reason.value
        if exc.field:
            content["field"] = exc.field
    if isinstance(exc, RateLimitedError) and exc.retry_after:
        content["retry_after"] = exc.retry_after

    headers = {}
    if isinstance(exc, RateLimitedError) and exc.retry_after:
        headers["Retry-After"] = str(exc.retry_after)

    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")

    return JSONResponse(
        status_code=status_code,
        content=content,
        headers=headers if headers else None,
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """Handle unexpected exceptions.

    Args:
        request: The FastAPI request
        exc: The exception

    Returns:
        JSONResponse with generic error message
    """
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred. Please try again later.",
        },
    )


def register_error_handlers(app: FastAPI, include_generic: bool = True) -> None:
    """Register all docgate error handlers with a FastAPI app.

    Args:
        app: The FastAPI application
        include_generic: Whether to include a generic handler for all exceptions
    """
    app.add_exception_handler(DocGateError, docgate_exception_handler)

    if include_generic:
        app.add_exception_handler(Exception, generic_exception_handler)
