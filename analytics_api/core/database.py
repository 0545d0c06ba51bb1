"""
Async database engine, session factory, and ORM base.

Rules enforced:
  • Every DB call goes through AsyncSession.
  • Sessions are request-scoped via FastAPI's Depends(get_db_session).
  • One declarative Base for every model (applications, api_keys, events)
    so Alembic autogenerate sees the whole schema.
  • Timestamps are always timezone-aware UTC — see utcnow().
"""

import datetime
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from analytics_api.core.config import settings

# ── Engine ──────────────────────────────────────────────────
# pool_pre_ping: drop stale connections before reuse
# echo: SQL logging — only in debug mode
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

# ── Session factory ─────────────────────────────────────────
async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,  # avoid lazy-load issues after commit
)


# ── ORM Base ────────────────────────────────────────────────
class Base(DeclarativeBase):
    """Shared declarative base for all SQLAlchemy models."""


def utcnow() -> datetime.datetime:
    """Current time as an aware UTC datetime (column defaults, expiry math)."""
    return datetime.datetime.now(datetime.timezone.utc)


# ── Dependency ──────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a scoped async session for one request.

    Services commit their own writes; this generator only
    guarantees the session is closed on exit.
    """
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
