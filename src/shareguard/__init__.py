"""ShareGuard - adaptive login risk scoring and session enforcement."""

__version__ = "0.1.0"
__author__ = "ShareGuard Team"

from shareguard.orchestration.login_flow import (
    LoginChallenge,
    LoginOrchestrator,
    LoginRequest,
    LoginSuccess,
)

__all__ = [
    "LoginOrchestrator",
    "LoginRequest",
    "LoginSuccess",
    "LoginChallenge",
]
