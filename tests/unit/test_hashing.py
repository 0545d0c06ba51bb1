"""Unit tests for analytics_api/auth/hashing.py."""

from __future__ import annotations

import pytest

from analytics_api.auth.hashing import (
    BCRYPT_MAX_INPUT_BYTES,
    generate_secret,
    hash_secret,
    hash_secret_async,
    verify_secret,
    verify_secret_async,
)


class TestGenerateSecret:
    def test_is_64_hex_chars(self) -> None:
        secret = generate_secret()
        assert len(secret) == 64
        int(secret, 16)

    def test_secrets_are_unique(self) -> None:
        assert len({generate_secret() for _ in range(50)}) == 50


class TestHashAndVerify:
    def test_hash_is_not_the_secret(self) -> None:
        secret = generate_secret()
        key_hash = hash_secret(secret)
        assert secret not in key_hash
        assert key_hash.startswith("$2")

    def test_hash_is_salted(self) -> None:
        secret = generate_secret()
        assert hash_secret(secret) != hash_secret(secret)

    def test_uses_configured_rounds(self) -> None:
        assert hash_secret("s3cret", rounds=5).split("$")[2] == "05"

    def test_round_trip(self) -> None:
        secret = generate_secret()
        assert verify_secret(secret, hash_secret(secret)) is True

    def test_wrong_secret(self) -> None:
        assert verify_secret(generate_secret(), hash_secret(generate_secret())) is False

    def test_empty_secret_rejected(self) -> None:
        assert verify_secret("", hash_secret("x")) is False

    def test_oversized_secret_rejected(self) -> None:
        secret = "a" * (BCRYPT_MAX_INPUT_BYTES + 1)
        assert verify_secret(secret, hash_secret("a" * BCRYPT_MAX_INPUT_BYTES)) is False

    def test_malformed_hash_rejected(self) -> None:
        assert verify_secret("s3cret", "not-a-bcrypt-hash") is False

    @pytest.mark.asyncio
    async def test_async_wrappers(self) -> None:
        secret = generate_secret()
        key_hash = await hash_secret_async(secret)
        assert await verify_secret_async(secret, key_hash) is True
        assert await verify_secret_async(secret + "x", key_hash) is False
