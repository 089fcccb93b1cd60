"""Tests for configuration settings.

Tests the Config class and environment variable handling.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from shareguard.common.config.settings import (
    DEFAULT_JWT_SECRET,
    Config,
    Environment,
    LogLevel,
    StoreBackend,
    get_config,
    reset_config,
)
from shareguard.common.exceptions import ConfigurationError
from shareguard.store import InMemoryKeyedStore, create_store


class TestEnums:
    """Tests for configuration enums."""

    def test_environment_from_string(self):
        assert Environment("development") == Environment.DEVELOPMENT
        assert Environment("production") == Environment.PRODUCTION

    def test_log_level_values(self):
        assert [level.value for level in LogLevel] == ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

    def test_store_backend_values(self):
        assert StoreBackend.MEMORY.value == "memory"
        assert StoreBackend.REDIS.value == "redis"


class TestConfig:
    """Tests for Config class."""

    def test_default_config(self):
        """Test Config with no environment overrides."""
        with patch.dict(os.environ, {}, clear=True):
            config = Config()

        assert config.environment == Environment.DEVELOPMENT
        assert config.debug is False
        assert config.log_level == LogLevel.INFO
        assert config.api_port == 8000
        assert config.store_backend == StoreBackend.MEMORY
        assert config.jwt_secret == DEFAULT_JWT_SECRET
        assert config.jwt_expiry_minutes == 60
        assert config.scoring_timezone == "UTC"
        assert config.otp_ttl_seconds == 300
        assert config.suspension_seconds == 3600
        assert (config.login_rate_limit, config.login_rate_window_seconds) == (5, 900)
        assert (config.otp_verify_rate_limit, config.otp_verify_rate_window_seconds) == (5, 600)
        assert (config.signup_rate_limit, config.signup_rate_window_seconds) == (3, 3600)
        assert config.geoip_database is None
        assert config.admin_key is None
        assert config.cors_origins == []
        assert config.email_enabled is False
        assert config.docs_enabled is True

    def test_values_from_env(self):
        with patch.dict(os.environ, {
            "SHAREGUARD_API_PORT": "9000",
            "SHAREGUARD_SCORING_TIMEZONE": "Asia/Kolkata",
            "SHAREGUARD_GEOIP_DATABASE": "/data/GeoLite2-City.mmdb",
            "SHAREGUARD_CORS_ORIGINS": "https://app.example.com, https://admin.example.com",
            "SHAREGUARD_ALERT_EMAIL_RECIPIENTS": "security@example.com",
        }, clear=True):
            config = Config()

        assert config.api_port == 9000
        assert config.scoring_timezone == "Asia/Kolkata"
        assert config.geoip_database == Path("/data/GeoLite2-City.mmdb")
        assert config.cors_origins == ["https://app.example.com", "https://admin.example.com"]
        assert config.alert_email_recipients == ["security@example.com"]

    def test_redis_backend_requires_url(self):
        with patch.dict(os.environ, {"SHAREGUARD_STORE_BACKEND": "redis"}, clear=True):
            with pytest.raises(ConfigurationError, match="SHAREGUARD_REDIS_URL"):
                Config()

    def test_production_requires_jwt_secret(self):
        with patch.dict(os.environ, {"SHAREGUARD_ENVIRONMENT": "production"}, clear=True):
            with pytest.raises(ConfigurationError, match="SHAREGUARD_JWT_SECRET"):
                Config()

    def test_production_disables_docs_by_default(self):
        with patch.dict(os.environ, {
            "SHAREGUARD_ENVIRONMENT": "production",
            "SHAREGUARD_JWT_SECRET": "s3cret",
        }, clear=True):
            config = Config()

        assert config.is_production is True
        assert config.is_development is False
        assert config.docs_enabled is False

    def test_docs_override(self):
        with patch.dict(os.environ, {"SHAREGUARD_ENABLE_DOCS": "false"}, clear=True):
            assert Config().docs_enabled is False

    def test_non_positive_token_expiry_rejected(self):
        with patch.dict(os.environ, {"SHAREGUARD_JWT_EXPIRY_MINUTES": "0"}, clear=True):
            with pytest.raises(ConfigurationError):
                Config()

    def test_email_enabled(self):
        with patch.dict(os.environ, {
            "SHAREGUARD_MAIL_USERNAME": "alerts",
            "SHAREGUARD_MAIL_PASSWORD": "pw",
            "SHAREGUARD_MAIL_FROM": "alerts@example.com",
        }, clear=True):
            assert Config().email_enabled is True


class TestCreateStore:

    def test_memory_backend(self):
        with patch.dict(os.environ, {}, clear=True):
            assert isinstance(create_store(Config()), InMemoryKeyedStore)

    def test_redis_backend(self):
        with patch.dict(os.environ, {
            "SHAREGUARD_STORE_BACKEND": "redis",
            "SHAREGUARD_REDIS_URL": "redis://localhost:6379/0",
        }, clear=True):
            config = Config()
        with patch("shareguard.store.redis_store.RedisKeyedStore") as store_cls:
            create_store(config)
        store_cls.assert_called_once_with(url="redis://localhost:6379/0")
        store_cls.return_value.check_server_version.assert_called_once_with()


class TestGetConfig:
    """Tests for get_config singleton function."""

    def test_get_config_returns_same_instance(self):
        reset_config()
        assert get_config() is get_config()

    def test_reset_config(self):
        reset_config()
        first = get_config()
        reset_config()
        assert get_config() is not first
