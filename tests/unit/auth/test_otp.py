"""Unit tests for OTPService."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from aiosmtplib.errors import SMTPException

from shareguard.alerts.channels.email import Mailer
from shareguard.auth import EmailOTPSender, OTPService
from shareguard.common.exceptions import ExternalDeliveryFailure, InvalidOTP
from shareguard.data.schemas import User
from shareguard.persistence import InMemoryUserRepository


@pytest.fixture
def users():
    repo = InMemoryUserRepository()
    repo.create(User(
        user_id="usr_1",
        email="viewer@example.com",
        password_hash="x",
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    ))
    return repo


@pytest.fixture
def user(users):
    return users.get_by_id("usr_1")


@pytest.fixture
def otp(users, otp_sender, clock):
    return OTPService(users, otp_sender, ttl_seconds=300, clock=clock)


class TestOTPService:

    def test_issue_stores_and_sends(self, otp, users, user, otp_sender, clock):
        code = otp.issue(user)

        assert len(code) == 6 and code.isdigit()
        assert otp_sender.sent == [("viewer@example.com", code)]
        stored = users.get_by_id("usr_1")
        assert stored.otp_code == code
        assert stored.otp_expires_at.timestamp() == clock() + 300

    def test_verify_consumes_code(self, otp, users, user):
        code = otp.issue(user)
        otp.verify(user, code)

        assert users.get_by_id("usr_1").otp_code is None
        with pytest.raises(InvalidOTP, match="No OTP pending"):
            otp.verify(user, code)

    def test_wrong_code(self, otp, user):
        code = otp.issue(user)
        wrong = "000000" if code != "000000" else "111111"

        with pytest.raises(InvalidOTP, match="Invalid OTP"):
            otp.verify(user, wrong)

    def test_expired_code(self, otp, user, clock):
        code = otp.issue(user)
        clock.advance(300)

        with pytest.raises(InvalidOTP, match="expired"):
            otp.verify(user, code)

    def test_reissue_replaces_code(self, otp, user, otp_sender):
        first = otp.issue(user)
        second = otp.issue(user)
        if first != second:
            with pytest.raises(InvalidOTP):
                otp.verify(user, first)
        otp.verify(user, second)

    def test_delivery_failure_still_issues(self, users, user, clock):
        sender = MagicMock()
        sender.send.side_effect = ExternalDeliveryFailure("smtp down", channel="email")
        otp = OTPService(users, sender, clock=clock)

        code = otp.issue(user)

        assert users.get_by_id("usr_1").otp_code == code


def test_email_sender_uses_plain_text():
    mailer = MagicMock()
    EmailOTPSender(mailer, ttl_seconds=300).send("viewer@example.com", "123456")

    args, kwargs = mailer.send.call_args
    assert args[0] == ["viewer@example.com"]
    assert "123456" in kwargs["body"]
    assert "5 minutes" in kwargs["body"]
    assert kwargs["as_html"] is False


def test_smtp_rejection_does_not_fail_issue(users, user, clock):
    with patch("shareguard.alerts.channels.email.FastMail") as fastmail_cls:
        fastmail_cls.return_value.send_message = AsyncMock(
            side_effect=SMTPException("554 transaction failed")
        )
        otp = OTPService(users, EmailOTPSender(Mailer(MagicMock())), clock=clock)

        code = otp.issue(user)

    assert users.get_by_id("usr_1").otp_code == code
