"""
Analytics router — event collection and aggregated reads.

Every endpoint runs AUTH → RATE LIMIT before the handler, and every
query is scoped to the authenticated application.

Endpoints:
  POST /api/analytics/collect        — one event or {"events": [...]} (201)
  GET  /api/analytics/event-summary  — count / unique users / device split,
                                       served through the summary cache
  GET  /api/analytics/user-stats     — one end user's recent activity
"""

import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from analytics_api.auth.dependencies import AuthContext
from analytics_api.auth.rate_limit import enforce_rate_limit
from analytics_api.core.config import settings
from analytics_api.core.database import get_db_session
from analytics_api.dependencies import get_summary_cache
from analytics_api.schemas.analytics import (
    CollectResponse,
    EventBatchIn,
    EventIn,
    EventSummaryOut,
    UserStatsOut,
)
from analytics_api.services import events
from analytics_api.services.summary_cache import SummaryCache, build_summary_cache_key

router = APIRouter(tags=["Analytics"])

# Type aliases for cleaner signatures
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Auth = Annotated[AuthContext, Depends(enforce_rate_limit)]
Cache = Annotated[SummaryCache, Depends(get_summary_cache)]


# ── 1. Collect ──────────────────────────────────────────────
@router.post(
    "/collect",
    response_model=CollectResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Ingest one or many tracking events",
)
async def collect(
    payload: EventBatchIn | EventIn,
    request: Request,
    session: DbSession,
    auth: Auth,
) -> CollectResponse:
    """
    Events are always stored under the caller's application; the client
    address fills in ip_address when the event doesn't carry one.
    """
    batch = payload.events if isinstance(payload, EventBatchIn) else [payload]
    client_ip = request.client.host if request.client else None
    now = datetime.datetime.now(datetime.timezone.utc)

    rows = [
        {
            "event_type": event.event_type,
            "url": event.url,
            "referrer": event.referrer,
            "device": event.device,
            "ip_address": event.ip_address or client_ip,
            "timestamp": event.timestamp or now,
            "metadata_": event.metadata,
            "user_id": event.user_id,
        }
        for event in batch
    ]

    accepted = await events.insert_events(session, auth.app_id, rows)
    return CollectResponse(accepted=accepted)


# ── 2. Event summary (cached) ───────────────────────────────
@router.get(
    "/event-summary",
    response_model=EventSummaryOut,
    summary="Event count, unique users and device split over a date range",
    description=(
        "Defaults to the last 7 days. Results are cached per "
        "(application, event, start, end) for a short TTL."
    ),
)
async def event_summary(
    session: DbSession,
    auth: Auth,
    cache: Cache,
    event: str | None = Query(default=None, max_length=255, examples=["page_view"]),
    start_date: datetime.datetime | None = Query(default=None),
    end_date: datetime.datetime | None = Query(default=None),
) -> EventSummaryOut:
    # Key on what the caller asked for, not on the resolved defaults,
    # so open-ended queries still hit within the TTL.
    cache_key = build_summary_cache_key(auth.app_id, event, start_date, end_date)

    now = datetime.datetime.now(datetime.timezone.utc)
    end = end_date or now
    start = start_date or now - datetime.timedelta(days=settings.SUMMARY_DEFAULT_LOOKBACK_DAYS)

    async def compute() -> dict:
        return await events.summarize_events(session, auth.app_id, event, start, end)

    summary = await cache.get_or_compute(
        cache_key,
        compute,
        ttl_seconds=settings.SUMMARY_CACHE_TTL_SECONDS,
    )
    return EventSummaryOut.model_validate(summary)


# ── 3. User stats ───────────────────────────────────────────
@router.get(
    "/user-stats",
    response_model=UserStatsOut,
    summary="Recent activity of one end user",
)
async def get_user_stats(
    session: DbSession,
    auth: Auth,
    user_id: str = Query(..., min_length=1, max_length=255),
) -> UserStatsOut:
    stats = await events.user_stats(session, auth.app_id, user_id)
    return UserStatsOut.model_validate(stats)
