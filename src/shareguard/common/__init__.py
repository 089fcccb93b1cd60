"""Common utilities - logging, config, exceptions."""

from shareguard.common.logging.logger import configure_logging, get_logger
from shareguard.common.config import Config, get_config, reset_config
from shareguard.common.exceptions import (
    ShareGuardError,
    ConfigurationError,
    ValidationError,
    InvalidCredentials,
    UserAlreadyExists,
    InvalidOTP,
    RateLimited,
    SuspiciousActivity,
    AccountSuspended,
    InvalidToken,
    SessionNotFound,
    ExternalDeliveryFailure,
    DependencyUnavailable,
)

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    # Config
    "Config",
    "get_config",
    "reset_config",
    # Exceptions
    "ShareGuardError",
    "ConfigurationError",
    "ValidationError",
    "InvalidCredentials",
    "UserAlreadyExists",
    "InvalidOTP",
    "RateLimited",
    "SuspiciousActivity",
    "AccountSuspended",
    "InvalidToken",
    "SessionNotFound",
    "ExternalDeliveryFailure",
    "DependencyUnavailable",
]
