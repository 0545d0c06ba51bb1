"""
Application model — one registered tenant.

An application owns API keys and tracking events. It is created once on
registration and never mutated by the admission layer; deleting it
cascades to its keys and events.
"""

import datetime
import uuid

from sqlalchemy import JSON, Boolean, DateTime, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from analytics_api.core.database import Base, utcnow


class Application(Base):
    """A tenant: the top-level isolation boundary for keys and events."""

    __tablename__ = "applications"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_email: Mapped[str] = mapped_column(String(255), nullable=False)
    active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default="true",
    )
    # Column named `meta` in the DB; free-form tenant data (company, plan, …)
    meta: Mapped[dict | None] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"),
        nullable=True,
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Application id={self.id!s:.8} name={self.name!r}>"
