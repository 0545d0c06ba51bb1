"""
FastAPI dependency for API key authentication.

Flow:
  1. Extract the secret from `x-api-key`, or from
     `Authorization: ApiKey <secret>`
  2. Scan live keys and bcrypt-verify (services.key_validator)
  3. Return AuthContext (app_id + api_key_id)

Security:
  • 401 "Missing API key" when no credential is presented,
    401 "Invalid or expired API key" for every other failure
    (unknown, revoked, expired, store error)
  • Raw secrets are NEVER logged
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from analytics_api.core.database import get_db_session
from analytics_api.core.errors import InvalidCredential
from analytics_api.services.key_validator import validate_key

logger = logging.getLogger(__name__)

_AUTH_SCHEME = "apikey"


@dataclass(frozen=True, slots=True)
class AuthContext:
    """Authenticated request context injected into every protected route.

    Attributes:
        app_id:     The application (tenant) that owns the key.
        api_key_id: The specific key used for this request.
                    The rate limiter counts requests against it.
    """

    app_id: uuid.UUID
    api_key_id: uuid.UUID


def extract_api_key(
    x_api_key: str | None,
    authorization: str | None,
) -> str | None:
    """Pick the presented secret; `x-api-key` wins over Authorization."""
    if x_api_key and x_api_key.strip():
        return x_api_key.strip()

    if not authorization:
        return None
    parts = authorization.split(" ", maxsplit=1)
    if len(parts) != 2 or parts[0].lower() != _AUTH_SCHEME:
        return None
    return parts[1].strip() or None


async def get_current_application(
    x_api_key: str | None = Header(default=None, alias="x-api-key"),
    authorization: str | None = Header(default=None, alias="Authorization"),
    session: AsyncSession = Depends(get_db_session),
) -> AuthContext:
    """
    FastAPI dependency — resolves the presented API key to an AuthContext.

    Usage in routers:
        Auth = Annotated[AuthContext, Depends(get_current_application)]
    """
    secret = extract_api_key(x_api_key, authorization)
    if secret is None:
        raise InvalidCredential("Missing API key")

    try:
        api_key = await validate_key(session, secret)
    except Exception:
        logger.exception("Unexpected error during API key validation")
        raise InvalidCredential()

    if api_key is None:
        raise InvalidCredential()

    return AuthContext(app_id=api_key.app_id, api_key_id=api_key.id)
