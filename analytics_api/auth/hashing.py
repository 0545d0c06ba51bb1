"""
API key secret generation and hashing.

Security notes:
  • Secrets are 32 random bytes (256 bits) rendered as 64 hex chars.
  • Only a salted bcrypt hash is stored. The cost factor comes from
    BCRYPT_ROUNDS (default 12, roughly tens of ms per verify) so a
    leaked api_keys table is expensive to brute force offline.
  • bcrypt only reads the first 72 bytes of its input and recent releases
    reject anything longer, so oversized presented secrets are refused
    before they reach checkpw().
  • bcrypt is CPU-bound; the async wrappers run it on a worker thread so
    one slow verify never stalls the event loop.
"""

import asyncio
import secrets

import bcrypt

from analytics_api.core.config import settings

SECRET_BYTES = 32
BCRYPT_MAX_INPUT_BYTES = 72


def generate_secret() -> str:
    """Return a fresh plaintext secret. Shown to the caller once, never stored."""
    return secrets.token_hex(SECRET_BYTES)


def hash_secret(secret: str, rounds: int | None = None) -> str:
    """Salted one-way bcrypt hash of `secret`, as a str for the key_hash column."""
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(secret.encode("utf-8"), salt).decode("utf-8")


def verify_secret(secret: str, key_hash: str) -> bool:
    """
    Check `secret` against a stored bcrypt hash.

    Returns False (rather than raising) for inputs bcrypt cannot take:
    empty or over-long secrets and malformed hashes.
    """
    raw = secret.encode("utf-8")
    if not raw or len(raw) > BCRYPT_MAX_INPUT_BYTES:
        return False
    try:
        return bcrypt.checkpw(raw, key_hash.encode("utf-8"))
    except ValueError:
        return False


async def hash_secret_async(secret: str) -> str:
    return await asyncio.to_thread(hash_secret, secret)


async def verify_secret_async(secret: str, key_hash: str) -> bool:
    return await asyncio.to_thread(verify_secret, secret, key_hash)
