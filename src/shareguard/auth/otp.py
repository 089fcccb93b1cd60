"""One-time passwords for new-device and impossible-travel challenges."""

import logging
import secrets
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from shareguard.alerts.channels.email import Mailer
from shareguard.common.exceptions import ExternalDeliveryFailure, InvalidOTP
from shareguard.data.schemas import User
from shareguard.persistence.repository import UserRepository

logger = logging.getLogger(__name__)


class OTPSender(ABC):
    """Delivers an OTP code to a user."""

    @abstractmethod
    def send(self, email: str, code: str) -> None:
        """Deliver the code.

        Raises:
            ExternalDeliveryFailure: If delivery fails
        """
        pass


class EmailOTPSender(OTPSender):

    def __init__(self, mailer: Mailer, ttl_seconds: int = 300):
        self._mailer = mailer
        self._ttl_minutes = max(1, ttl_seconds // 60)

    def send(self, email: str, code: str) -> None:
        self._mailer.send(
            [email],
            subject="OTP Verification - New Device Login",
            body=f"Your OTP for new device login is: {code}. Valid for {self._ttl_minutes} minutes.",
            as_html=False,
        )


class LoggingOTPSender(OTPSender):
    """Development sender. Records that a code was issued without delivering it."""

    def send(self, email: str, code: str) -> None:
        logger.info("OTP issued (no delivery channel configured)", extra={"email": email})


class OTPService:
    """Issues and verifies six-digit codes stored on the user record."""

    def __init__(
        self,
        users: UserRepository,
        sender: OTPSender,
        ttl_seconds: int = 300,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._users = users
        self._sender = sender
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.time

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def issue(self, user: User) -> str:
        """Generate, store and send a new code. Delivery failures are logged."""
        code = f"{secrets.randbelow(900000) + 100000}"
        self._users.update(
            user.user_id,
            otp_code=code,
            otp_expires_at=self._now() + timedelta(seconds=self.ttl_seconds),
        )
        try:
            self._sender.send(user.email, code)
        except ExternalDeliveryFailure as e:
            logger.error(f"OTP delivery failed: {e.message}", extra={"user_id": user.user_id})
        return code

    def verify(self, user: User, code: str) -> None:
        """Check a code and consume it.

        Raises:
            InvalidOTP: If no code is pending, it does not match, or it expired
        """
        current = self._users.get_by_id(user.user_id) or user
        expires_at = current.otp_expires_at
        if expires_at is not None and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        if not current.otp_code or expires_at is None:
            raise InvalidOTP("No OTP pending")
        if expires_at <= self._now():
            raise InvalidOTP("OTP expired")
        if not secrets.compare_digest(current.otp_code, str(code)):
            raise InvalidOTP("Invalid OTP")

        self._users.update(user.user_id, otp_code=None, otp_expires_at=None)
