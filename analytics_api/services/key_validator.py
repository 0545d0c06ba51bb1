"""
API key validation — presented secret → live APIKey row, or None.

Keys are stored as salted bcrypt hashes, so a presented secret cannot be
looked up by equality. Instead:

  1. Load the live keys (not revoked, not expired), newest first,
     capped at KEY_VALIDATION_SCAN_LIMIT.
  2. bcrypt-verify the secret against each candidate in that order.
  3. Return the first match.

Scaling ceiling: every miss costs one bcrypt verify per live key, so a
wrong secret costs roughly limit × (tens of ms) of CPU. Fine for a few
thousand live keys. Past that, tokens should carry the key id
(`<key_id>.<secret>`) so validation is one indexed lookup plus one
verify.

validate_key() never raises. Anything that goes wrong, including the
database being unreachable, is logged and reported as "no match" so
the auth dependency answers 401 rather than 500.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from analytics_api.auth.hashing import BCRYPT_MAX_INPUT_BYTES, verify_secret_async
from analytics_api.core.config import settings
from analytics_api.models.api_key import APIKey
from analytics_api.services import credential_store

logger = logging.getLogger(__name__)


async def validate_key(
    session: AsyncSession,
    presented_secret: str | None,
    scan_limit: int | None = None,
) -> APIKey | None:
    """
    Find the live key whose hash matches `presented_secret`.

    Candidates are checked sequentially, newest first, so the same secret
    always resolves to the same key.
    """
    if not presented_secret:
        return None
    if len(presented_secret.encode("utf-8")) > BCRYPT_MAX_INPUT_BYTES:
        return None

    limit = scan_limit or settings.KEY_VALIDATION_SCAN_LIMIT

    try:
        candidates = await credential_store.find_eligible_ordered_by_recency(
            session, limit=limit,
        )
        for candidate in candidates:
            if await verify_secret_async(presented_secret, candidate.key_hash):
                return candidate
    except SQLAlchemyError:
        logger.warning("Credential store unavailable during key validation", exc_info=True)
        return None
    except Exception:
        logger.warning("Key validation failed", exc_info=True)
        return None

    if len(candidates) >= limit:
        # The matching key may exist beyond the scan window.
        logger.debug("Key validation scanned the full window of %d live keys without a match", limit)
    return None
