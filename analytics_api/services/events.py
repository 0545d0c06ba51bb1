"""
Event queries — batch insert, range summary, per-user stats.

All aggregation happens in SQL (COUNT / COUNT DISTINCT / GROUP BY);
Python only reshapes the rows. Every query is scoped to one app_id.

summarize_events() is the expensive query the summary cache wraps; its
return value must stay JSON-serializable.
"""

from __future__ import annotations

import datetime
import uuid
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from analytics_api.models.event import Event

RECENT_EVENTS_LIMIT = 50
UNKNOWN_DEVICE = "unknown"


async def insert_events(
    session: AsyncSession,
    app_id: uuid.UUID,
    rows: list[dict[str, Any]],
) -> int:
    """Persist a batch of events for one application. Returns the count stored."""
    session.add_all(Event(app_id=app_id, **row) for row in rows)
    await session.commit()
    return len(rows)


async def summarize_events(
    session: AsyncSession,
    app_id: uuid.UUID,
    event_type: str | None,
    start: datetime.datetime,
    end: datetime.datetime,
) -> dict[str, Any]:
    """
    Count, distinct users and per-device split for events in [start, end].

    SQL (three queries over the same filter):
        SELECT COUNT(*) ...
        SELECT COUNT(DISTINCT user_id) ...
        SELECT device, COUNT(*) ... GROUP BY device
    """
    filters = [
        Event.app_id == app_id,
        Event.timestamp.between(start, end),
    ]
    if event_type:
        filters.append(Event.event_type == event_type)

    total = await session.scalar(select(func.count()).select_from(Event).where(*filters))
    unique_users = await session.scalar(
        select(func.count(func.distinct(Event.user_id))).where(*filters)
    )
    device_rows = (
        await session.execute(
            select(Event.device, func.count().label("cnt"))
            .where(*filters)
            .group_by(Event.device)
        )
    ).all()

    device_data: dict[str, int] = {}
    for row in device_rows:
        device = row.device or UNKNOWN_DEVICE
        device_data[device] = device_data.get(device, 0) + int(row.cnt)

    return {
        "event": event_type or "all",
        "count": int(total or 0),
        "unique_users": int(unique_users or 0),
        "device_data": device_data,
    }


async def user_stats(
    session: AsyncSession,
    app_id: uuid.UUID,
    user_id: str,
) -> dict[str, Any]:
    """Total events and the most recent events of one end user of an app."""
    filters = [Event.app_id == app_id, Event.user_id == user_id]

    total = await session.scalar(select(func.count()).select_from(Event).where(*filters))
    recent = (
        await session.execute(
            select(Event)
            .where(*filters)
            .order_by(Event.timestamp.desc())
            .limit(RECENT_EVENTS_LIMIT)
        )
    ).scalars().all()

    return {
        "user_id": user_id,
        "total_events": int(total or 0),
        "recent_events": [
            {
                "id": event.id,
                "event": event.event_type,
                "timestamp": event.timestamp,
                "metadata": event.metadata_,
            }
            for event in recent
        ],
        "device_details": (recent[0].metadata_ or {}) if recent else {},
    }
