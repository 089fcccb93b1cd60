"""API Schemas - Request/Response models for the API Gateway.

Wire names are camelCase; Python attributes stay snake_case.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shareguard.data.schemas import Plan


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class SignupRequest(CamelModel):
    """Request body for POST /auth/signup."""
    email: str = Field(..., min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=6, max_length=128)
    plan: Plan = Field(default=Plan.BASIC)


class LoginBody(CamelModel):
    """Request body for POST /auth/login.

    fingerprint carries the client-collected signals (screen, canvas,
    webgl, fonts, ...). Request headers supply the rest.
    """
    email: str
    password: str
    fingerprint: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "email": "viewer@example.com",
                "password": "correct horse",
                "fingerprint": {
                    "screenResolution": "1920x1080",
                    "timezone": "Asia/Kolkata",
                    "canvas": "a1b2c3",
                    "webgl": "ANGLE (NVIDIA)",
                    "fonts": "Arial,Helvetica",
                    "hardwareConcurrency": 8,
                },
            }
        },
    )


class VerifyOTPRequest(CamelModel):
    """Request body for POST /auth/verify-otp."""
    email: str
    otp: str = Field(..., min_length=6, max_length=6)
    fingerprint: Optional[Dict[str, Any]] = None


class TerminateSessionRequest(CamelModel):
    user_id: str
    device_id: str


class BlockUserRequest(CamelModel):
    user_id: str
    duration: int = Field(default=3600, gt=0, description="Seconds")


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class TrustSummary(CamelModel):
    score: int = Field(..., ge=0, le=100)
    level: str


class SignupResponse(CamelModel):
    message: str = "User created successfully"
    user_id: str
    email: str
    plan: Plan


class LoginResponse(CamelModel):
    """200 response for a completed login."""
    token: str
    device_id: str
    trust_score: TrustSummary
    active_sessions: int
    max_sessions: int


class ChallengeResponse(CamelModel):
    """200 response when an OTP is required before the login can complete."""
    otp_required: bool = True
    reason: Optional[str] = None
    trust_score: Optional[TrustSummary] = None


class MessageResponse(CamelModel):
    message: str


class SessionView(CamelModel):
    device_id: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    trust_score: Optional[int] = None
    location: Optional[Dict[str, Any]] = None
    created_at: datetime
    last_activity: datetime
    is_current: bool = False
    device_trusted: Optional[bool] = None
    device_first_seen: Optional[datetime] = None


class SessionListResponse(CamelModel):
    sessions: List[SessionView]
    total: int
    max_sessions: int


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Error code")
    message: str = Field(..., description="Human-readable error message")
    details: Dict[str, Any] = Field(default_factory=dict)
    request_id: Optional[str] = Field(default=None, description="Request ID for debugging")
    retry_after: Optional[int] = Field(default=None, alias="retryAfter")
    warnings: Optional[List[str]] = None

    model_config = ConfigDict(populate_by_name=True)
