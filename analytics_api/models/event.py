"""
SQLAlchemy model for the `events` table.

Each row is one tracking event submitted by a client application
(page view, click, form submit, …). The admission layer never writes
here directly; the collect route does, and the summary query reads it.

Design notes:
  • metadata_ is JSONB on Postgres for arbitrary client payloads.
  • The composite (app_id, event_type, timestamp) index backs the
    event-summary range scan.
"""

import datetime
import uuid

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from analytics_api.core.database import Base, utcnow


class Event(Base):
    """One tracking event, scoped to an application."""

    __tablename__ = "events"

    # ── Primary key ─────────────────────────────────────────
    # BIGINT on Postgres; SQLite only autoincrements INTEGER PKs.
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"),
        primary_key=True,
        autoincrement=True,
    )

    # ── Tenant ──────────────────────────────────────────────
    app_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # ── Event data ──────────────────────────────────────────
    event_type: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    referrer: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    device: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    timestamp: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )

    # Column named `metadata_` because `metadata` is reserved on
    # declarative classes; maps to DB column `metadata`.
    metadata_: Mapped[dict | None] = mapped_column(
        "metadata",
        JSON().with_variant(JSONB, "postgresql"),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_events_app_event_time", "app_id", "event_type", "timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"<Event id={self.id} app={self.app_id!s:.8} "
            f"type={self.event_type!r}>"
        )
