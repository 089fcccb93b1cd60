"""Custom exceptions for ShareGuard.

Provides a hierarchy of exceptions for different error types.
All ShareGuard exceptions inherit from ShareGuardError.

Only InvalidCredentials, RateLimited, SuspiciousActivity, InvalidToken and
SessionNotFound are fatal to a login request. Everything else is recovered
locally with a neutral fallback.
"""

from typing import Any, Dict, List, Optional


class ShareGuardError(Exception):
    """Base exception for all ShareGuard errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "SHAREGUARD_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(ShareGuardError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFIG_ERROR", details=details)


class ValidationError(ShareGuardError):
    """Raised when input validation fails."""

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class InvalidCredentials(ShareGuardError):
    """Raised when the email/password pair does not match a user."""

    status_code = 400

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message, code="INVALID_CREDENTIALS")


class UserAlreadyExists(ShareGuardError):
    """Raised on signup with an email that is already registered."""

    status_code = 400

    def __init__(self, email: str):
        super().__init__(
            "User already exists",
            code="USER_EXISTS",
            details={"email": email},
        )


class InvalidOTP(ShareGuardError):
    """Raised when an OTP is wrong, missing or expired."""

    status_code = 400

    def __init__(self, message: str = "Invalid or expired OTP"):
        super().__init__(message, code="INVALID_OTP")


class RateLimited(ShareGuardError):
    """Raised when a caller exceeds a rate limit window."""

    status_code = 429

    def __init__(self, message: str, retry_after: int):
        self.retry_after = retry_after
        super().__init__(
            message,
            code="RATE_LIMITED",
            details={"retry_after": retry_after},
        )


class SuspiciousActivity(ShareGuardError):
    """Raised when a login is denied for suspected spoofing or automation."""

    status_code = 403

    def __init__(
        self,
        message: str = "Suspicious activity detected",
        warnings: Optional[List[str]] = None,
        code: str = "SUSPICIOUS_ACTIVITY",
    ):
        self.warnings = list(warnings or [])
        super().__init__(message, code=code, details={"warnings": self.warnings})


class AccountSuspended(SuspiciousActivity):
    """Raised when a temporarily suspended user tries to authenticate."""

    def __init__(self, user_id: str):
        super().__init__(
            "Account temporarily suspended",
            code="ACCOUNT_SUSPENDED",
        )
        self.details["user_id"] = user_id


class InvalidToken(ShareGuardError):
    """Raised when a bearer token is missing, malformed or expired."""

    status_code = 401

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message, code="INVALID_TOKEN")


class SessionNotFound(ShareGuardError):
    """Raised when a token is valid but its session is gone."""

    status_code = 401

    def __init__(self, user_id: str, device_id: str):
        super().__init__(
            "Session expired or logged out",
            code="SESSION_NOT_FOUND",
            details={"user_id": user_id, "device_id": device_id},
        )


class ExternalDeliveryFailure(ShareGuardError):
    """Raised by an alert or OTP channel when delivery fails.

    Never surfaced to end users; the dispatcher logs and drops it.
    """

    def __init__(
        self,
        message: str,
        channel: str,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        details["channel"] = channel
        super().__init__(message, code="DELIVERY_FAILED", details=details)


class DependencyUnavailable(ShareGuardError):
    """Raised when geolocation or the keyed store cannot be reached."""

    def __init__(
        self,
        message: str,
        dependency: str,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        details["dependency"] = dependency
        super().__init__(message, code="DEPENDENCY_UNAVAILABLE", details=details)
