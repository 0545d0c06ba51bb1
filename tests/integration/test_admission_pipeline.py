"""Integration tests: HTTP → auth → rate limit → handler.

The app runs in-process over httpx.ASGITransport against in-memory SQLite,
with the rate limiter and summary cache swapped for memory-backed ones via
app.dependency_overrides.

Verifies:
  - registration issues a working key, shown once
  - 401 for missing / unknown / revoked / regenerated-away keys
  - both credential forms (x-api-key, Authorization: ApiKey)
  - event summaries are cached per tenant and filter set
  - 429 once a caller is over its window
  - errors render as {"error": <message>}
"""

from __future__ import annotations

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from analytics_api.core.database import get_db_session
from analytics_api.dependencies import get_rate_limiter, get_summary_cache
from analytics_api.main import app
from analytics_api.services.rate_limiter import LocalCounterTable, MemoryCounterStore, RateLimiter
from analytics_api.services.summary_cache import MemoryCacheStore, SummaryCache

pytestmark = pytest.mark.asyncio


def _limiter(max_requests: int) -> RateLimiter:
    return RateLimiter(
        store=MemoryCounterStore(),
        fallback=LocalCounterTable(),
        max_requests=max_requests,
        window_ms=60_000,
    )


async def _make_client(session_factory, limiter: RateLimiter):
    async def override_db_session():
        async with session_factory() as session:
            yield session

    cache = SummaryCache(MemoryCacheStore(), default_ttl=60)

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    app.dependency_overrides[get_summary_cache] = lambda: cache
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest_asyncio.fixture
async def client(session_factory):
    async with await _make_client(session_factory, _limiter(1000)) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def tight_client(session_factory):
    async with await _make_client(session_factory, _limiter(3)) as ac:
        yield ac
    app.dependency_overrides.clear()


async def register(client: AsyncClient, name: str = "Shop") -> dict:
    resp = await client.post(
        "/api/auth/register",
        json={"name": name, "owner_email": "owner@example.com", "meta": {"plan": "free"}},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def auth_headers(token: str) -> dict[str, str]:
    return {"x-api-key": token}


# ─── Registration and key management ─────────────────────────────────────────


class TestRegistration:
    async def test_register_returns_app_and_token(self, client) -> None:
        body = await register(client)

        assert body["app"]["name"] == "Shop"
        assert body["app"]["meta"] == {"plan": "free"}
        assert len(body["api_key"]["token"]) == 64
        assert body["api_key"]["expires_at"] is not None

    async def test_invalid_payload_shape(self, client) -> None:
        resp = await client.post("/api/auth/register", json={"name": "Shop", "owner_email": "nope"})

        assert resp.status_code == 422
        assert resp.json()["error"] == "Invalid request"
        assert resp.json()["details"]

    async def test_api_key_metadata_has_no_secret(self, client) -> None:
        body = await register(client)
        resp = await client.get("/api/auth/api-key", params={"app_id": body["app"]["id"]})

        assert resp.status_code == 200
        data = resp.json()
        assert data["id"] == body["api_key"]["id"]
        assert "key_hash" not in data
        assert body["api_key"]["token"] not in resp.text

    async def test_api_key_unknown_app(self, client) -> None:
        resp = await client.get("/api/auth/api-key", params={"app_id": str(uuid.uuid4())})

        assert resp.status_code == 404
        assert resp.json() == {"error": "No API key found"}

    async def test_revoke_unknown_key(self, client) -> None:
        resp = await client.post("/api/auth/revoke", json={"key_id": str(uuid.uuid4())})
        assert resp.status_code == 404

    async def test_regenerate_unknown_key(self, client) -> None:
        resp = await client.post("/api/auth/regenerate", json={"key_id": str(uuid.uuid4())})
        assert resp.status_code == 404


# ─── Authentication ──────────────────────────────────────────────────────────


class TestAuthentication:
    async def test_missing_key(self, client) -> None:
        resp = await client.get("/api/analytics/event-summary")

        assert resp.status_code == 401
        assert resp.json() == {"error": "Missing API key"}

    async def test_unknown_key(self, client) -> None:
        await register(client)
        resp = await client.get(
            "/api/analytics/event-summary", headers=auth_headers("f" * 64),
        )

        assert resp.status_code == 401
        assert resp.json() == {"error": "Invalid or expired API key"}

    async def test_authorization_header_form(self, client) -> None:
        token = (await register(client))["api_key"]["token"]
        resp = await client.post(
            "/api/analytics/collect",
            json={"event": "page_view"},
            headers={"Authorization": f"ApiKey {token}"},
        )
        assert resp.status_code == 201

    async def test_revoked_key_is_rejected(self, client) -> None:
        body = await register(client)
        token = body["api_key"]["token"]

        resp = await client.post("/api/auth/revoke", json={"key_id": body["api_key"]["id"]})
        assert resp.status_code == 200
        assert resp.json() == {"revoked": True}

        resp = await client.get("/api/analytics/event-summary", headers=auth_headers(token))
        assert resp.status_code == 401

    async def test_regenerate_replaces_secret(self, client) -> None:
        body = await register(client)
        old_token = body["api_key"]["token"]

        resp = await client.post("/api/auth/regenerate", json={"key_id": body["api_key"]["id"]})
        assert resp.status_code == 200
        new_token = resp.json()["key"]
        assert new_token != old_token

        old = await client.get("/api/analytics/event-summary", headers=auth_headers(old_token))
        new = await client.get("/api/analytics/event-summary", headers=auth_headers(new_token))
        assert old.status_code == 401
        assert new.status_code == 200


# ─── Collection and reads ────────────────────────────────────────────────────


class TestAnalytics:
    async def test_collect_single_and_batch(self, client) -> None:
        token = (await register(client))["api_key"]["token"]

        single = await client.post(
            "/api/analytics/collect",
            json={"event": "page_view", "device": "mobile", "user_id": "u1"},
            headers=auth_headers(token),
        )
        batch = await client.post(
            "/api/analytics/collect",
            json={"events": [
                {"event_type": "click", "device": "desktop", "user_id": "u1"},
                {"event_type": "click", "user_id": "u2"},
            ]},
            headers=auth_headers(token),
        )

        assert single.status_code == 201 and single.json() == {"accepted": 1}
        assert batch.status_code == 201 and batch.json() == {"accepted": 2}

    async def test_collect_rejects_unknown_fields(self, client) -> None:
        token = (await register(client))["api_key"]["token"]
        resp = await client.post(
            "/api/analytics/collect",
            json={"event": "click", "app_id": str(uuid.uuid4())},
            headers=auth_headers(token),
        )
        assert resp.status_code == 422

    async def test_event_summary_counts(self, client) -> None:
        token = (await register(client))["api_key"]["token"]
        await client.post(
            "/api/analytics/collect",
            json={"events": [
                {"event": "click", "device": "mobile", "user_id": "u1"},
                {"event": "click", "device": "mobile", "user_id": "u2"},
                {"event": "click", "user_id": "u2"},
                {"event": "page_view", "device": "desktop", "user_id": "u3"},
            ]},
            headers=auth_headers(token),
        )

        resp = await client.get(
            "/api/analytics/event-summary",
            params={"event": "click"},
            headers=auth_headers(token),
        )

        assert resp.status_code == 200
        assert resp.json() == {
            "event": "click",
            "count": 3,
            "unique_users": 2,
            "device_data": {"mobile": 2, "unknown": 1},
        }

    async def test_event_summary_is_cached(self, client) -> None:
        token = (await register(client))["api_key"]["token"]
        headers = auth_headers(token)
        await client.post("/api/analytics/collect", json={"event": "click"}, headers=headers)

        first = await client.get("/api/analytics/event-summary", headers=headers)
        await client.post("/api/analytics/collect", json={"event": "click"}, headers=headers)
        second = await client.get("/api/analytics/event-summary", headers=headers)
        filtered = await client.get(
            "/api/analytics/event-summary", params={"event": "click"}, headers=headers,
        )

        assert first.json()["count"] == 1
        assert second.json() == first.json()
        # A different filter set is a different cache entry.
        assert filtered.json()["count"] == 2

    async def test_event_summary_is_tenant_scoped(self, client) -> None:
        token_a = (await register(client, "Tenant A"))["api_key"]["token"]
        token_b = (await register(client, "Tenant B"))["api_key"]["token"]
        await client.post(
            "/api/analytics/collect", json={"event": "click"}, headers=auth_headers(token_a),
        )

        a = await client.get("/api/analytics/event-summary", headers=auth_headers(token_a))
        b = await client.get("/api/analytics/event-summary", headers=auth_headers(token_b))

        assert a.json()["count"] == 1
        assert b.json()["count"] == 0

    async def test_user_stats(self, client) -> None:
        token = (await register(client))["api_key"]["token"]
        headers = auth_headers(token)
        await client.post(
            "/api/analytics/collect",
            json={"events": [
                {"event": "click", "user_id": "u1", "metadata": {"browser": "firefox"}},
                {"event": "page_view", "user_id": "u1"},
                {"event": "click", "user_id": "u2"},
            ]},
            headers=headers,
        )

        resp = await client.get(
            "/api/analytics/user-stats", params={"user_id": "u1"}, headers=headers,
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["user_id"] == "u1"
        assert data["total_events"] == 2
        assert {e["event"] for e in data["recent_events"]} == {"click", "page_view"}

    async def test_user_stats_requires_user_id(self, client) -> None:
        token = (await register(client))["api_key"]["token"]
        resp = await client.get("/api/analytics/user-stats", headers=auth_headers(token))
        assert resp.status_code == 422


# ─── Rate limiting ───────────────────────────────────────────────────────────


class TestRateLimiting:
    async def test_over_limit_returns_429(self, tight_client) -> None:
        # Registration itself counts against the client address, not the key.
        token = (await register(tight_client))["api_key"]["token"]
        headers = auth_headers(token)

        statuses = [
            (await tight_client.get("/api/analytics/event-summary", headers=headers)).status_code
            for _ in range(4)
        ]

        assert statuses == [200, 200, 200, 429]
        resp = await tight_client.get("/api/analytics/event-summary", headers=headers)
        assert resp.json() == {"error": "Rate limit exceeded"}

    async def test_invalid_keys_are_rejected_before_counting(self, tight_client) -> None:
        """Auth runs before the limiter, so an unknown key keeps getting 401."""
        for _ in range(5):
            resp = await tight_client.get(
                "/api/analytics/event-summary", headers=auth_headers("f" * 64),
            )
            assert resp.status_code == 401


# ─── System ──────────────────────────────────────────────────────────────────


async def test_health(client) -> None:
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
