"""
Unit tests for configuration loading.
"""

from datetime import timedelta

import pytest

from tarot_auth.infrastructure.config import (
    DEV_ACCESS_SECRET,
    AuthConfig,
    ConfigurationError,
    parse_duration,
)


class TestParseDuration:
    """Test duration strings."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("15m", timedelta(minutes=15)),
            ("7d", timedelta(days=7)),
            ("1h", timedelta(hours=1)),
            ("30s", timedelta(seconds=30)),
            ("900", timedelta(seconds=900)),
        ],
    )
    def test_valid_durations(self, value, expected):
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["", "soon", "5w", "0m", "-1h"])
    def test_invalid_durations(self, value):
        with pytest.raises(ConfigurationError):
            parse_duration(value)


class TestAuthConfig:
    """Test environment loading and validation."""

    def test_defaults(self):
        config = AuthConfig.from_env({})

        assert config.tokens.access_ttl == timedelta(minutes=15)
        assert config.tokens.refresh_ttl == timedelta(days=7)
        assert config.tokens.issuer == "tarot-auth"
        assert config.tokens.audience == "tarot-app"
        assert config.tokens.refresh_audience == "tarot-app/refresh"
        assert config.accounts.hash_rounds == 10
        assert config.accounts.password_reset_ttl == timedelta(hours=1)
        assert config.accounts.email_confirmation_ttl == timedelta(hours=24)
        assert config.accounts.admin_usernames == frozenset({"admin"})
        assert config.rate_limit.limit == 20
        assert config.rate_limit.redis_url is None
        assert config.is_production is False

    def test_values_from_environment(self):
        config = AuthConfig.from_env(
            {
                "JWT_ACCESS_SECRET": "a" * 32,
                "JWT_REFRESH_SECRET": "b" * 32,
                "JWT_ACCESS_TTL": "5m",
                "PASSWORD_HASH_ROUNDS": "12",
                "ADMIN_USERNAMES": "admin, oracle ,",
                "REDIS_URL": "redis://cache:6379/0",
                "AUTH_RATE_LIMIT": "5",
                "LOG_LEVEL": "debug",
                "LOG_FORMAT": "JSON",
            }
        )

        assert config.tokens.access_ttl == timedelta(minutes=5)
        assert config.accounts.hash_rounds == 12
        assert config.accounts.admin_usernames == frozenset({"admin", "oracle"})
        assert config.rate_limit.redis_url == "redis://cache:6379/0"
        assert config.rate_limit.limit == 5
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_development_allows_default_secrets_with_warning(self, caplog):
        config = AuthConfig.from_env({"ENVIRONMENT": "development"})

        assert config.tokens.access_secret == DEV_ACCESS_SECRET
        assert "development JWT secrets" in caplog.text

    def test_production_rejects_default_secrets(self):
        with pytest.raises(ConfigurationError):
            AuthConfig.from_env({"ENVIRONMENT": "production"})

    def test_production_rejects_shared_secret(self):
        with pytest.raises(ConfigurationError):
            AuthConfig.from_env(
                {"ENVIRONMENT": "production", "JWT_ACCESS_SECRET": "s", "JWT_REFRESH_SECRET": "s"}
            )

    def test_production_with_distinct_secrets(self):
        config = AuthConfig.from_env(
            {"ENVIRONMENT": "production", "JWT_ACCESS_SECRET": "a1", "JWT_REFRESH_SECRET": "b2"}
        )

        assert config.is_production is True

    @pytest.mark.parametrize("rounds", ["3", "32", "many"])
    def test_rejects_bad_hash_rounds(self, rounds):
        with pytest.raises(ConfigurationError):
            AuthConfig.from_env({"PASSWORD_HASH_ROUNDS": rounds})

    def test_rejects_non_positive_rate_limit(self):
        with pytest.raises(ConfigurationError):
            AuthConfig.from_env({"AUTH_RATE_LIMIT": "0"})
