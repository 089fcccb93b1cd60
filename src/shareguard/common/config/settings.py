"""Configuration management - Centralized configuration for ShareGuard.

Provides environment-aware configuration with sensible defaults.
All configuration is loaded from environment variables with fallbacks.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from shareguard.common.exceptions import ConfigurationError


DEFAULT_JWT_SECRET = "change-me-in-production"


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class StoreBackend(str, Enum):
    """Keyed store backend types."""
    MEMORY = "memory"
    REDIS = "redis"


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_optional_path(name: str) -> Optional[Path]:
    raw = os.getenv(name)
    return Path(raw) if raw else None


@dataclass
class Config:
    """Central configuration object for ShareGuard.

    All settings can be overridden via environment variables prefixed with SHAREGUARD_.

    Example:
        SHAREGUARD_ENVIRONMENT=production
        SHAREGUARD_JWT_SECRET=...
        SHAREGUARD_STORE_BACKEND=redis
        SHAREGUARD_REDIS_URL=redis://localhost:6379/0

    The redis store backend needs Redis server 7.0 or later.
    """

    # Core settings
    environment: Environment = field(
        default_factory=lambda: Environment(
            os.getenv("SHAREGUARD_ENVIRONMENT", "development")
        )
    )
    debug: bool = field(
        default_factory=lambda: os.getenv("SHAREGUARD_DEBUG", "false").lower() == "true"
    )
    log_level: LogLevel = field(
        default_factory=lambda: LogLevel(os.getenv("SHAREGUARD_LOG_LEVEL", "INFO"))
    )

    # API settings
    api_host: str = field(
        default_factory=lambda: os.getenv("SHAREGUARD_API_HOST", "0.0.0.0")
    )
    api_port: int = field(
        default_factory=lambda: int(os.getenv("SHAREGUARD_API_PORT", "8000"))
    )
    admin_key: Optional[str] = field(
        default_factory=lambda: os.getenv("SHAREGUARD_ADMIN_KEY")
    )

    # Token settings
    jwt_secret: str = field(
        default_factory=lambda: os.getenv("SHAREGUARD_JWT_SECRET", DEFAULT_JWT_SECRET)
    )
    jwt_algorithm: str = field(
        default_factory=lambda: os.getenv("SHAREGUARD_JWT_ALGORITHM", "HS256")
    )
    jwt_expiry_minutes: int = field(
        default_factory=lambda: int(os.getenv("SHAREGUARD_JWT_EXPIRY_MINUTES", "60"))
    )

    # Keyed store
    store_backend: StoreBackend = field(
        default_factory=lambda: StoreBackend(
            os.getenv("SHAREGUARD_STORE_BACKEND", "memory")
        )
    )
    # Redis server 7.0 or later
    redis_url: Optional[str] = field(
        default_factory=lambda: os.getenv("SHAREGUARD_REDIS_URL")
    )

    # Risk signals
    geoip_database: Optional[Path] = field(
        default_factory=lambda: _env_optional_path("SHAREGUARD_GEOIP_DATABASE")
    )
    scoring_timezone: str = field(
        default_factory=lambda: os.getenv("SHAREGUARD_SCORING_TIMEZONE", "UTC")
    )

    # OTP and suspension
    otp_ttl_seconds: int = field(
        default_factory=lambda: int(os.getenv("SHAREGUARD_OTP_TTL_SECONDS", "300"))
    )
    suspension_seconds: int = field(
        default_factory=lambda: int(os.getenv("SHAREGUARD_SUSPENSION_SECONDS", "3600"))
    )

    # Rate limits (attempts per window)
    login_rate_limit: int = field(
        default_factory=lambda: int(os.getenv("SHAREGUARD_LOGIN_RATE_LIMIT", "5"))
    )
    login_rate_window_seconds: int = field(
        default_factory=lambda: int(os.getenv("SHAREGUARD_LOGIN_RATE_WINDOW", "900"))
    )
    otp_verify_rate_limit: int = field(
        default_factory=lambda: int(os.getenv("SHAREGUARD_OTP_VERIFY_RATE_LIMIT", "5"))
    )
    otp_verify_rate_window_seconds: int = field(
        default_factory=lambda: int(os.getenv("SHAREGUARD_OTP_VERIFY_RATE_WINDOW", "600"))
    )
    signup_rate_limit: int = field(
        default_factory=lambda: int(os.getenv("SHAREGUARD_SIGNUP_RATE_LIMIT", "3"))
    )
    signup_rate_window_seconds: int = field(
        default_factory=lambda: int(os.getenv("SHAREGUARD_SIGNUP_RATE_WINDOW", "3600"))
    )
    cors_origins: List[str] = field(
        default_factory=lambda: _env_list("SHAREGUARD_CORS_ORIGINS")
    )
    enable_docs: Optional[bool] = field(
        default_factory=lambda: (
            os.getenv("SHAREGUARD_ENABLE_DOCS").lower() == "true"
            if os.getenv("SHAREGUARD_ENABLE_DOCS") else None
        )
    )

    # Alert channels
    slack_webhook_url: Optional[str] = field(
        default_factory=lambda: os.getenv("SHAREGUARD_SLACK_WEBHOOK_URL")
    )
    discord_webhook_url: Optional[str] = field(
        default_factory=lambda: os.getenv("SHAREGUARD_DISCORD_WEBHOOK_URL")
    )
    alert_webhook_url: Optional[str] = field(
        default_factory=lambda: os.getenv("SHAREGUARD_ALERT_WEBHOOK_URL")
    )
    alert_webhook_secret: Optional[str] = field(
        default_factory=lambda: os.getenv("SHAREGUARD_ALERT_WEBHOOK_SECRET")
    )
    dashboard_url: str = field(
        default_factory=lambda: os.getenv(
            "SHAREGUARD_DASHBOARD_URL", "http://localhost:8000/admin/dashboard"
        )
    )
    alert_email_recipients: List[str] = field(
        default_factory=lambda: _env_list("SHAREGUARD_ALERT_EMAIL_RECIPIENTS")
    )
    http_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("SHAREGUARD_HTTP_TIMEOUT", "5.0"))
    )
    dispatcher_queue_size: int = field(
        default_factory=lambda: int(os.getenv("SHAREGUARD_DISPATCH_QUEUE_SIZE", "1000"))
    )

    # SMTP (email alerts and OTP delivery)
    mail_server: str = field(
        default_factory=lambda: os.getenv("SHAREGUARD_MAIL_SERVER", "smtp.gmail.com")
    )
    mail_port: int = field(
        default_factory=lambda: int(os.getenv("SHAREGUARD_MAIL_PORT", "587"))
    )
    mail_username: Optional[str] = field(
        default_factory=lambda: os.getenv("SHAREGUARD_MAIL_USERNAME")
    )
    mail_password: Optional[str] = field(
        default_factory=lambda: os.getenv("SHAREGUARD_MAIL_PASSWORD")
    )
    mail_from: Optional[str] = field(
        default_factory=lambda: os.getenv("SHAREGUARD_MAIL_FROM")
    )

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.store_backend == StoreBackend.REDIS and not self.redis_url:
            raise ConfigurationError(
                "SHAREGUARD_REDIS_URL must be set when using the redis store backend"
            )

        if self.environment == Environment.PRODUCTION:
            if self.jwt_secret == DEFAULT_JWT_SECRET:
                raise ConfigurationError(
                    "SHAREGUARD_JWT_SECRET must be set in production"
                )
            if self.debug:
                import warnings
                warnings.warn(
                    "Debug mode is enabled in production environment",
                    RuntimeWarning,
                    stacklevel=2
                )

        if self.jwt_expiry_minutes <= 0:
            raise ConfigurationError("SHAREGUARD_JWT_EXPIRY_MINUTES must be positive")

    @property
    def email_enabled(self) -> bool:
        """Whether SMTP delivery is configured."""
        return bool(self.mail_username and self.mail_password and self.mail_from)

    @property
    def docs_enabled(self) -> bool:
        """OpenAPI docs are on outside production unless overridden."""
        if self.enable_docs is not None:
            return self.enable_docs
        return not self.is_production

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT


# Singleton instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance.

    Returns:
        Config: The global configuration singleton.
    """
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
