"""User schema - canonical definition."""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class Plan(str, Enum):
    """Subscription tier. Determines the concurrent session limit."""
    BASIC = "BASIC"
    STANDARD = "STANDARD"
    PREMIUM = "PREMIUM"


class User(BaseModel):
    """User entity schema.

    Holds credentials, plan and the pending OTP challenge, if any.
    """
    user_id: str = Field(..., description="Unique user identifier")
    email: str = Field(..., description="Login email, unique per user")
    password_hash: str = Field(..., description="bcrypt hash of the password")
    plan: Plan = Field(default=Plan.BASIC, description="Subscription plan")
    created_at: datetime = Field(..., description="Signup timestamp")
    otp_code: Optional[str] = Field(default=None, description="Pending OTP code")
    otp_expires_at: Optional[datetime] = Field(default=None, description="Pending OTP expiry")
    password_changed_at: Optional[datetime] = Field(
        default=None, description="Last password change, if any"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "user_id": "usr_4f1c2a9e0b7d",
                "email": "viewer@example.com",
                "password_hash": "$2b$12$...",
                "plan": "STANDARD",
                "created_at": "2026-01-25T14:30:00Z",
            }
        }
    }
