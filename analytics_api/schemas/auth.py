"""
Pydantic v2 schemas for application registration and key management.

The plaintext token appears in exactly two responses — RegisterResponse
and RegenerateResponse — and nowhere else. APIKeyOut never carries the
hash.
"""

from __future__ import annotations

import datetime
import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field


# ── Requests ────────────────────────────────────────────────
class RegisterRequest(BaseModel):
    """Payload accepted by POST /api/auth/register."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        examples=["Marketing Site"],
    )
    owner_email: EmailStr = Field(..., examples=["owner@example.com"])
    meta: dict[str, Any] | None = Field(
        default=None,
        examples=[{"company": "Acme"}],
        description="Free-form application metadata.",
    )


class KeyIdRequest(BaseModel):
    """Body of POST /api/auth/revoke and /api/auth/regenerate."""

    key_id: uuid.UUID


# ── Responses ───────────────────────────────────────────────
class ApplicationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    owner_email: str
    active: bool
    meta: dict[str, Any] | None
    created_at: datetime.datetime


class IssuedKeyOut(BaseModel):
    """A new key. `token` is shown once and cannot be retrieved again."""

    id: uuid.UUID
    token: str
    expires_at: datetime.datetime | None


class RegisterResponse(BaseModel):
    app: ApplicationOut
    api_key: IssuedKeyOut


class APIKeyOut(BaseModel):
    """Key metadata — no hash, no secret."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    app_id: uuid.UUID
    created_at: datetime.datetime
    expires_at: datetime.datetime | None
    revoked: bool


class RevokeResponse(BaseModel):
    revoked: bool = True


class RegenerateResponse(BaseModel):
    key: str
