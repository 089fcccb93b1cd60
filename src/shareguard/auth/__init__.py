"""Auth - credentials, tokens, OTP, suspensions and rate limits."""

from shareguard.auth.passwords import PasswordHasher
from shareguard.auth.tokens import TokenClaims, TokenService
from shareguard.auth.suspensions import Suspensions
from shareguard.auth.rate_limit import RateLimiter
from shareguard.auth.otp import EmailOTPSender, LoggingOTPSender, OTPSender, OTPService

__all__ = [
    "PasswordHasher",
    "TokenClaims",
    "TokenService",
    "Suspensions",
    "RateLimiter",
    "OTPSender",
    "EmailOTPSender",
    "LoggingOTPSender",
    "OTPService",
]
