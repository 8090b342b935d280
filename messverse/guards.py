"""
Request guards for mutating routes: shared-key check and per-client rate limit.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import Depends, Header, Request

from messverse.config import Settings
from messverse.dependencies import get_rate_limiter, get_settings_dep
from messverse.exceptions import RateLimited, Unauthorized
from messverse.rate_limiter import FixedWindowRateLimiter

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-MV-KEY"
MUTATE_SCOPE = "mutate"


def client_address(request: Request, *, trust_forwarded_for: bool = False) -> str:
    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def enforce_rate_limit(
    request: Request,
    limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
    settings: Settings = Depends(get_settings_dep),
) -> None:
    address = client_address(request, trust_forwarded_for=settings.trust_forwarded_for)
    decision = limiter.check(f"{MUTATE_SCOPE}:{address}")
    if not decision.allowed:
        logger.info("Rate limited %s on %s %s", address, request.method, request.url.path)
        raise RateLimited(decision.retry_after)


def require_api_key(
    x_mv_key: Optional[str] = Header(default=None, alias=API_KEY_HEADER),
    settings: Settings = Depends(get_settings_dep),
) -> None:
    # No configured key means the gate is open.
    if not settings.api_key_enabled:
        return
    presented = (x_mv_key or "").encode("utf-8")
    if not presented or not secrets.compare_digest(presented, settings.api_key.encode("utf-8")):
        raise Unauthorized()
