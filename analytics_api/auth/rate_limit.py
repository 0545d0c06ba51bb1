"""
FastAPI dependencies for rate limit enforcement.

Two dependencies:
  • enforce_rate_limit        — authenticated routes; counts per API key
  • enforce_client_rate_limit — open routes (registration); counts per
                                client address

Order in request pipeline: AUTH → RATE LIMIT → ROUTER LOGIC.

On limit exceeded, returns 429 with a generic message. Remaining quota and
retry-after are not exposed.
"""

from __future__ import annotations

import logging

from fastapi import Depends, Request

from analytics_api.auth.dependencies import AuthContext, get_current_application
from analytics_api.core.errors import RateLimited
from analytics_api.dependencies import get_rate_limiter
from analytics_api.services.rate_limiter import ANONYMOUS_IDENTIFIER, RateLimiter

logger = logging.getLogger(__name__)


def rate_limit_identifier(request: Request, auth: AuthContext | None = None) -> str:
    """Credential id when authenticated, else client address, else 'anonymous'."""
    if auth is not None:
        return f"key:{auth.api_key_id}"
    if request.client and request.client.host:
        return f"ip:{request.client.host}"
    return ANONYMOUS_IDENTIFIER


async def _check(limiter: RateLimiter, identifier: str) -> None:
    try:
        allowed = await limiter.admit(identifier)
    except Exception:
        # admit() handles store errors itself; anything reaching here is a bug.
        logger.exception("Rate limiter failed for %s", identifier)
        allowed = limiter.fail_open

    if not allowed:
        raise RateLimited()


async def enforce_rate_limit(
    request: Request,
    auth: AuthContext = Depends(get_current_application),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> AuthContext:
    """
    Count the request against the caller's API key.

    Returns the AuthContext so routers can access app_id/api_key_id.
    """
    await _check(limiter, rate_limit_identifier(request, auth))
    return auth


async def enforce_client_rate_limit(
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> None:
    """Count an unauthenticated request against the client address."""
    await _check(limiter, rate_limit_identifier(request))
