"""
Dependency wiring for the FastAPI app.

Shared handles are built once per process into an ``AppContext`` that lives on
``app.state``; route dependencies read them from there.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Request

from messverse.config import Settings
from messverse.db import DbClient, InMemoryDbClient, SqlDbClient
from messverse.media import CloudinaryMediaStore, InMemoryMediaStore, MediaStoreClient
from messverse.rate_limiter import FixedWindowRateLimiter

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    db: DbClient
    media: MediaStoreClient
    rate_limiter: FixedWindowRateLimiter


def build_db_client(settings: Settings) -> DbClient:
    if settings.use_in_memory_backends or not settings.database_url:
        logger.warning("DATABASE_URL not set; using in-memory database")
        return InMemoryDbClient()
    return SqlDbClient(settings.database_url)


def build_media_store(settings: Settings) -> MediaStoreClient:
    if settings.use_in_memory_backends or not settings.cloudinary_configured:
        logger.warning("Cloudinary credentials not set; using in-memory media store")
        return InMemoryMediaStore()
    return CloudinaryMediaStore(
        cloud_name=settings.cloudinary_cloud_name or "",
        api_key=settings.cloudinary_api_key or "",
        api_secret=settings.cloudinary_api_secret or "",
    )


def build_rate_limiter(settings: Settings) -> FixedWindowRateLimiter:
    return FixedWindowRateLimiter(
        settings.rate_limit_max,
        settings.rate_limit_window_seconds,
        max_buckets=settings.rate_limit_max_buckets,
    )


def build_context(settings: Settings) -> AppContext:
    return AppContext(
        settings=settings,
        db=build_db_client(settings),
        media=build_media_store(settings),
        rate_limiter=build_rate_limiter(settings),
    )


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_settings_dep(request: Request) -> Settings:
    return get_context(request).settings


def get_db_client(request: Request) -> DbClient:
    return get_context(request).db


def get_media_store(request: Request) -> MediaStoreClient:
    return get_context(request).media


def get_rate_limiter(request: Request) -> FixedWindowRateLimiter:
    return get_context(request).rate_limiter
