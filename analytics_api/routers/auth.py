"""
Auth router — application registration and API key management.

Endpoints:
  POST /api/auth/register    — create application + first key (201)
  GET  /api/auth/api-key     — newest non-revoked key metadata for an app
  POST /api/auth/revoke      — soft-delete a key
  POST /api/auth/regenerate  — new secret for an existing key id

Registration is rate limited per client address; the key management
routes are rate limited the same way.
"""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from analytics_api.auth.rate_limit import enforce_client_rate_limit
from analytics_api.core.database import get_db_session
from analytics_api.core.errors import NotFound
from analytics_api.schemas.auth import (
    APIKeyOut,
    ApplicationOut,
    IssuedKeyOut,
    KeyIdRequest,
    RegenerateResponse,
    RegisterRequest,
    RegisterResponse,
    RevokeResponse,
)
from analytics_api.services import api_keys, credential_store

router = APIRouter(
    tags=["Auth"],
    dependencies=[Depends(enforce_client_rate_limit)],
)

DbSession = Annotated[AsyncSession, Depends(get_db_session)]


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register an application and issue its first API key",
)
async def register(payload: RegisterRequest, session: DbSession) -> RegisterResponse:
    """The returned token is the only copy of the secret — store it now."""
    application, issued = await api_keys.register_application(
        session,
        name=payload.name,
        owner_email=str(payload.owner_email),
        meta=payload.meta,
    )
    return RegisterResponse(
        app=ApplicationOut.model_validate(application),
        api_key=IssuedKeyOut(
            id=issued.key_id,
            token=issued.secret,
            expires_at=issued.expires_at,
        ),
    )


@router.get(
    "/api-key",
    response_model=APIKeyOut,
    summary="Latest active API key of an application (metadata only)",
)
async def get_api_key(
    session: DbSession,
    app_id: uuid.UUID = Query(..., description="Application id"),
) -> APIKeyOut:
    api_key = await credential_store.find_latest_for_application(session, app_id)
    if api_key is None:
        raise NotFound("No API key found")
    return APIKeyOut.model_validate(api_key)


@router.post(
    "/revoke",
    response_model=RevokeResponse,
    summary="Revoke an API key",
)
async def revoke(payload: KeyIdRequest, session: DbSession) -> RevokeResponse:
    await api_keys.revoke(session, payload.key_id)
    return RevokeResponse(revoked=True)


@router.post(
    "/regenerate",
    response_model=RegenerateResponse,
    summary="Replace an API key's secret, keeping its id",
)
async def regenerate(payload: KeyIdRequest, session: DbSession) -> RegenerateResponse:
    """The old secret stops working immediately; the new one is shown once."""
    secret = await api_keys.regenerate(session, payload.key_id)
    return RegenerateResponse(key=secret)
