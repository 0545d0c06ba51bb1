"""
API key lifecycle — issue, revoke, regenerate.

The plaintext secret exists only inside these functions and in the
IssuedKey / return value handed back to the caller. It is never written
to the database and never logged; only its bcrypt hash and the key id are.

NotFound propagates to the caller unchanged. Store errors are not
retried here — the caller retries the whole operation.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from analytics_api.auth.hashing import generate_secret, hash_secret_async
from analytics_api.core.config import settings
from analytics_api.core.database import utcnow
from analytics_api.core.errors import NotFound
from analytics_api.models.application import Application
from analytics_api.services import credential_store

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IssuedKey:
    """A freshly issued key. `secret` is the only copy of the plaintext."""

    secret: str
    key_id: uuid.UUID
    expires_at: datetime.datetime | None


def _default_expiry() -> datetime.datetime:
    return utcnow() + datetime.timedelta(days=settings.API_KEY_TTL_DAYS)


async def issue_key(
    session: AsyncSession,
    application_id: uuid.UUID,
) -> IssuedKey:
    """
    Issue a new key for an existing application.

    Raises NotFound if the application does not exist.
    """
    application = await credential_store.find_application(session, application_id)
    if application is None:
        raise NotFound("Application not found")

    secret = generate_secret()
    key_hash = await hash_secret_async(secret)
    expires_at = _default_expiry()
    api_key = await credential_store.insert(
        session,
        app_id=application_id,
        key_hash=key_hash,
        expires_at=expires_at,
    )

    logger.info("Issued API key %s for application %s", api_key.id, application_id)
    return IssuedKey(secret=secret, key_id=api_key.id, expires_at=expires_at)


async def register_application(
    session: AsyncSession,
    name: str,
    owner_email: str,
    meta: dict | None = None,
) -> tuple[Application, IssuedKey]:
    """Create an application and its first key in one transaction."""
    application = await credential_store.insert_application(
        session, name=name, owner_email=owner_email, meta=meta,
    )
    issued = await issue_key(session, application.id)
    return application, issued


async def revoke(session: AsyncSession, key_id: uuid.UUID) -> None:
    """
    Soft-delete a key. Revoking an already-revoked key succeeds.

    Raises NotFound for an unknown key id.
    """
    if not await credential_store.update_revoked(session, key_id, revoked=True):
        raise NotFound("API key not found")
    logger.info("Revoked API key %s", key_id)


async def regenerate(session: AsyncSession, key_id: uuid.UUID) -> str:
    """
    Replace a key's secret in place and return the new plaintext.

    Keeps the key id, its application and its expiry; clears `revoked`
    and resets `created_at`. The previous secret stops validating as soon
    as the UPDATE commits.

    Raises NotFound for an unknown key id.
    """
    secret = generate_secret()
    key_hash = await hash_secret_async(secret)
    if not await credential_store.update_hash_and_reactivate(session, key_id, key_hash):
        raise NotFound("API key not found")

    logger.info("Regenerated API key %s", key_id)
    return secret
