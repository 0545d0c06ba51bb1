"""Root test configuration.

Points settings at in-memory backends BEFORE any analytics_api import so the
module-level engine and settings never look for Postgres or Redis, then
provides:

  • engine / session_factory / session — fresh in-memory SQLite per test
  • fast_bcrypt (autouse) — cost factor 4 so hashing doesn't dominate runtime
  • FakeClock — manually advanced clock for window / TTL expiry
"""

from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SHARED_STORE_BACKEND", "memory")

import uuid  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

import analytics_api.models.api_key  # noqa: E402,F401
import analytics_api.models.event  # noqa: E402,F401
from analytics_api.core.config import settings  # noqa: E402
from analytics_api.core.database import Base  # noqa: E402
from analytics_api.models.application import Application  # noqa: E402


class FakeClock:
    """Monotonic-style clock that only moves when told to."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def engine():
    """One in-memory SQLite database per test, schema created from the models."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def application(session: AsyncSession) -> Application:
    app = Application(
        id=uuid.uuid4(),
        name="Test App",
        owner_email="owner@example.com",
        meta={"company": "Test Corp"},
    )
    session.add(app)
    await session.commit()
    return app
