"""
FastAPI application entry point for the gallery backend.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from messverse.config import Settings, get_settings
from messverse.dependencies import AppContext, build_context
from messverse.exceptions import (
    PayloadTooLarge,
    register_exception_handlers,
    unhandled_error_handler,
)
from messverse.guards import API_KEY_HEADER
from messverse.routes import health_router, router

logger = logging.getLogger(__name__)
access_logger = logging.getLogger("messverse.access")

# Room for form fields and multipart boundaries around the file itself.
MULTIPART_OVERHEAD_BYTES = 64 * 1024


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One line per request: method, path, status and duration."""

    async def dispatch(self, request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        access_logger.info(
            "%s %s %s %.1f ms",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response


class CatchAllErrorsMiddleware(BaseHTTPMiddleware):
    """Turn unexpected failures into the generic 500 inside CORS and access logging."""

    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            return await unhandled_error_handler(request, exc)


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject oversized bodies from Content-Length before any form parsing."""

    def __init__(self, app, *, max_body_bytes: int) -> None:
        super().__init__(app)
        self._max_body_bytes = max_body_bytes

    async def dispatch(self, request, call_next):
        declared = request.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > self._max_body_bytes:
            logger.info(
                "Rejected %s %s with %s byte body",
                request.method,
                request.url.path,
                declared,
            )
            exc = PayloadTooLarge("Request body too large")
            return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
        return await call_next(request)


@asynccontextmanager
async def lifespan(app: FastAPI):
    context: AppContext = app.state.context
    try:
        context.db.connect()
    except Exception:
        logger.exception("Could not connect to the database")
        raise
    logger.info(
        "Gallery backend ready (db=%s, media=%s, api key %s)",
        type(context.db).__name__,
        type(context.media).__name__,
        "enabled" if context.settings.api_key_enabled else "disabled",
    )

    yield

    logger.info("Shutting down gallery backend")
    context.db.close()


def create_app(
    settings: Optional[Settings] = None, context: Optional[AppContext] = None
) -> FastAPI:
    if context is None:
        context = build_context(settings or get_settings())
    settings = context.settings

    app = FastAPI(title="MessVerse Backend", version="0.1.0", lifespan=lifespan)
    app.state.context = context

    # Last added runs outermost: access log, CORS, body size, error catch-all.
    app.add_middleware(CatchAllErrorsMiddleware)
    app.add_middleware(
        BodySizeLimitMiddleware,
        max_body_bytes=settings.max_upload_bytes + MULTIPART_OVERHEAD_BYTES,
    )
    origins = settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", API_KEY_HEADER],
    )
    app.add_middleware(AccessLogMiddleware)
    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(router, prefix="/api")
    return app
