"""API - HTTP gateway over the authentication service.

Endpoints:
    POST   /auth/signup
    POST   /auth/login
    POST   /auth/verify-otp
    POST   /auth/logout
    GET    /auth/sessions
    DELETE /auth/sessions/{deviceId}
    /admin/...  (X-Admin-Key)
"""

from shareguard.api.gateway import app
from shareguard.api.schemas import (
    ChallengeResponse,
    ErrorResponse,
    LoginBody,
    LoginResponse,
)
from shareguard.api.service import AuthService

__all__ = [
    "app",
    "LoginBody",
    "LoginResponse",
    "ChallengeResponse",
    "ErrorResponse",
    "AuthService",
]
