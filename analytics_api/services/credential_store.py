"""
Credential store — persistence for applications and hashed API keys.

Thin query layer over the applications / api_keys tables. It knows
nothing about secrets or bcrypt; it only stores and returns hashes.

Every write is a single-row INSERT or UPDATE committed immediately, so
concurrent lifecycle calls on the same key resolve to last-writer-wins
at the row level without extra locking.

update_* functions return False when no row matched so the lifecycle
layer can raise NotFound.
"""

from __future__ import annotations

import datetime
import uuid

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from analytics_api.core.database import utcnow
from analytics_api.models.api_key import APIKey
from analytics_api.models.application import Application


# ── Applications ────────────────────────────────────────────
async def insert_application(
    session: AsyncSession,
    name: str,
    owner_email: str,
    meta: dict | None = None,
) -> Application:
    """Create an application row. Flushed, not committed — caller owns the txn."""
    application = Application(name=name, owner_email=owner_email, meta=meta)
    session.add(application)
    await session.flush()
    return application


async def find_application(
    session: AsyncSession,
    application_id: uuid.UUID,
) -> Application | None:
    return await session.get(Application, application_id)


# ── API keys ────────────────────────────────────────────────
async def insert(
    session: AsyncSession,
    app_id: uuid.UUID,
    key_hash: str,
    expires_at: datetime.datetime | None,
) -> APIKey:
    """Persist a new key hash and commit. Returns the refreshed row."""
    api_key = APIKey(app_id=app_id, key_hash=key_hash, expires_at=expires_at)
    session.add(api_key)
    await session.commit()
    await session.refresh(api_key)
    return api_key


async def find_by_id(
    session: AsyncSession,
    key_id: uuid.UUID,
) -> APIKey | None:
    stmt = select(APIKey).where(APIKey.id == key_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def find_latest_for_application(
    session: AsyncSession,
    app_id: uuid.UUID,
) -> APIKey | None:
    """Newest non-revoked key of an application, expired or not."""
    stmt = (
        select(APIKey)
        .where(APIKey.app_id == app_id, APIKey.revoked.is_(False))
        .order_by(APIKey.created_at.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def find_eligible_ordered_by_recency(
    session: AsyncSession,
    limit: int,
    now: datetime.datetime | None = None,
) -> list[APIKey]:
    """
    Live keys (not revoked, not expired), newest first, at most `limit`.

    SQL: SELECT * FROM api_keys
         WHERE revoked = false AND (expires_at IS NULL OR expires_at > :now)
         ORDER BY created_at DESC LIMIT :limit

    `now` is bound from Python rather than using the DB clock so
    expiry is judged by the same clock that computed it at issuance.
    """
    now = now or utcnow()
    stmt = (
        select(APIKey)
        .where(
            APIKey.revoked.is_(False),
            or_(APIKey.expires_at.is_(None), APIKey.expires_at > now),
        )
        .order_by(APIKey.created_at.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def update_revoked(
    session: AsyncSession,
    key_id: uuid.UUID,
    revoked: bool = True,
) -> bool:
    stmt = update(APIKey).where(APIKey.id == key_id).values(revoked=revoked)
    result = await session.execute(stmt)
    await session.commit()
    return result.rowcount > 0


async def update_hash_and_reactivate(
    session: AsyncSession,
    key_id: uuid.UUID,
    key_hash: str,
) -> bool:
    """Swap the stored hash, clear `revoked`, and reset `created_at` in one UPDATE."""
    stmt = (
        update(APIKey)
        .where(APIKey.id == key_id)
        .values(key_hash=key_hash, revoked=False, created_at=utcnow())
    )
    result = await session.execute(stmt)
    await session.commit()
    return result.rowcount > 0
