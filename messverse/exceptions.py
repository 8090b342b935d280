"""
Error types for the gallery API and the handlers that render them.

Every error a handler can raise deliberately derives from ``ApiError`` and is
rendered as ``{"error": message}`` with its status code. Anything else is
logged with its traceback and answered with a generic 500.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "Server error"


class ApiError(Exception):
    """Base class for errors that map directly to an HTTP response."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def public_message(self) -> str:
        return self.message

    def headers(self) -> dict[str, str]:
        return {}

    def to_dict(self) -> dict:
        return {"error": self.public_message()}


class ValidationError(ApiError):
    status_code = 400


class PayloadTooLarge(ApiError):
    status_code = 413


class Unauthorized(ApiError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class RateLimited(ApiError):
    status_code = 429

    def __init__(self, retry_after: int, message: str = "Too many requests"):
        super().__init__(message)
        self.retry_after = retry_after

    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}

    def to_dict(self) -> dict:
        return {"error": self.message, "retryAfter": self.retry_after}


class NotFound(ApiError):
    status_code = 404


class InvalidIdentifier(ApiError):
    status_code = 400

    def __init__(self, identifier: str):
        super().__init__(f"Invalid id: {identifier}")
        self.identifier = identifier


class UpstreamFailure(ApiError):
    """The media host rejected or failed a call. Details stay server-side."""

    status_code = 500

    def public_message(self) -> str:
        return GENERIC_SERVER_ERROR


class InternalError(ApiError):
    status_code = 500

    def public_message(self) -> str:
        return GENERIC_SERVER_ERROR


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s",
            request.method,
            request.url.path,
            exc.message,
            exc_info=exc.__cause__ or exc,
        )
    return JSONResponse(
        status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers()
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:])
        message = f"{field}: {first.get('msg', 'invalid value')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return await api_error_handler(request, ValidationError(message))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": GENERIC_SERVER_ERROR})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
