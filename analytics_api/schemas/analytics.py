"""
Pydantic v2 schemas for event collection and analytics reads.

Separation:
  • EventIn / EventBatchIn — what the CLIENT sends.
  • *Out                   — what the SERVER returns.

Timestamps are normalized to UTC on the way in; naive values are
taken as UTC.
"""

from __future__ import annotations

import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# ── Request schemas ─────────────────────────────────────────
class EventIn(BaseModel):
    """One tracking event. `event` is accepted as an alias of `event_type`."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    event_type: str = Field(
        default="unknown",
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices("event_type", "event"),
        examples=["page_view"],
    )
    url: str | None = Field(default=None, max_length=2048, examples=["/pricing"])
    referrer: str | None = Field(default=None, max_length=2048)
    device: str | None = Field(default=None, max_length=255, examples=["mobile"])
    ip_address: str | None = Field(default=None, max_length=64)
    timestamp: datetime.datetime | None = Field(
        default=None,
        description="When the event happened. Defaults to server receive time.",
    )
    metadata: dict[str, Any] | None = Field(default=None)
    user_id: str | None = Field(default=None, max_length=255, examples=["user-123"])

    @field_validator("timestamp")
    @classmethod
    def _to_utc(cls, value: datetime.datetime | None) -> datetime.datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=datetime.timezone.utc)
        return value.astimezone(datetime.timezone.utc)


class EventBatchIn(BaseModel):
    """Several events in one request: {"events": [...]}."""

    model_config = ConfigDict(extra="forbid")

    events: list[EventIn] = Field(..., min_length=1)


# ── Response schemas ────────────────────────────────────────
class CollectResponse(BaseModel):
    accepted: int


class EventSummaryOut(BaseModel):
    """Aggregated counts for one (app, event filter, date range)."""

    event: str
    count: int
    unique_users: int
    device_data: dict[str, int]


class RecentEventOut(BaseModel):
    id: int
    event: str
    timestamp: datetime.datetime
    metadata: dict[str, Any] | None


class UserStatsOut(BaseModel):
    user_id: str
    total_events: int
    recent_events: list[RecentEventOut]
    device_details: dict[str, Any]
