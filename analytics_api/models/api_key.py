"""
API key model — credential bound to exactly one application.

Security notes:
  • Raw API keys are NEVER stored. Only a salted bcrypt hash is persisted.
  • `revoked` is a soft delete: revoked rows stay for the audit trail.
  • Regeneration keeps the row id and swaps the hash in place, so the old
    secret stops working while the key keeps its identity.
"""

import datetime
import uuid

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from analytics_api.core.database import Base, utcnow


class APIKey(Base):
    """Hashed API key belonging to an application."""

    __tablename__ = "api_keys"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    app_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    key_hash: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )
    expires_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    revoked: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
    )

    # Supports the validator's "live keys, newest first" scan.
    __table_args__ = (
        Index("ix_api_keys_revoked_created_at", "revoked", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<APIKey id={self.id!s:.8} app={self.app_id!s:.8} "
            f"revoked={self.revoked}>"
        )
