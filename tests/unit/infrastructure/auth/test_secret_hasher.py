"""
Unit tests for secret hashing and one-time token generation.
"""

import pytest

from tarot_auth.infrastructure.auth.secret_hasher import (
    SecretHasher,
    digest_token,
    generate_token,
)


class TestSecretHasher:
    """Test bcrypt hashing of passwords and refresh tokens."""

    @pytest.fixture
    def hasher(self):
        return SecretHasher(rounds=4)

    def test_hash_and_verify(self, hasher):
        hashed = hasher.hash("Secret123")

        assert hashed != "Secret123"
        assert hashed.startswith("$2b$04$")
        assert hasher.verify("Secret123", hashed) is True
        assert hasher.verify("Secret124", hashed) is False

    def test_hashes_are_salted(self, hasher):
        assert hasher.hash("Secret123") != hasher.hash("Secret123")

    def test_long_secrets_are_not_truncated(self, hasher):
        # Refresh JWTs exceed bcrypt's 72 byte input limit
        base = "x" * 100
        hashed = hasher.hash(base + "a")

        assert hasher.verify(base + "a", hashed) is True
        assert hasher.verify(base + "b", hashed) is False

    def test_verify_rejects_empty_and_malformed_input(self, hasher):
        hashed = hasher.hash("Secret123")

        assert hasher.verify("", hashed) is False
        assert hasher.verify("Secret123", "") is False
        assert hasher.verify("Secret123", None) is False
        assert hasher.verify("Secret123", "not-a-bcrypt-hash") is False

    def test_empty_secret_round_trips(self, hasher):
        hashed = hasher.hash("")

        assert hasher.verify("", hashed) is True
        assert hasher.verify("x", hashed) is False

    def test_verify_dummy_never_matches(self, hasher):
        assert hasher.verify_dummy("Secret123") is False
        assert hasher.verify_dummy("") is False

    def test_needs_rehash(self, hasher):
        weak = SecretHasher(rounds=4).hash("Secret123")

        assert hasher.needs_rehash(weak) is False
        assert SecretHasher(rounds=5).needs_rehash(weak) is True
        assert hasher.needs_rehash("garbage") is False


class TestOneTimeTokens:
    """Test opaque token generation and digests."""

    def test_generate_token_length_and_uniqueness(self):
        tokens = {generate_token() for _ in range(50)}

        assert len(tokens) == 50
        assert all(len(token) == 64 for token in tokens)

    def test_digest_is_stable_and_differs_from_token(self):
        token = generate_token()

        assert digest_token(token) == digest_token(token)
        assert digest_token(token) != token
        assert len(digest_token(token)) == 64
