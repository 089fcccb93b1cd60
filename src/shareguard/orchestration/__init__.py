"""Orchestration - the login decision pipeline."""

from shareguard.orchestration.login_flow import (
    LoginChallenge,
    LoginOrchestrator,
    LoginOutcome,
    LoginRequest,
    LoginStage,
    LoginSuccess,
)

__all__ = [
    "LoginOrchestrator",
    "LoginRequest",
    "LoginStage",
    "LoginSuccess",
    "LoginChallenge",
    "LoginOutcome",
]
