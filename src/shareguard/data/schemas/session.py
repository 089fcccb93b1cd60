"""Session schema - canonical definition."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class GeoLocation(BaseModel):
    """Coarse geographic location resolved from an IP address."""
    country: str = Field(..., description="ISO 3166-1 alpha-2 country code")
    city: Optional[str] = Field(default=None, description="City name")
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    captured_at: Optional[datetime] = Field(default=None, description="When the location was observed")


class Session(BaseModel):
    """Live authenticated (user, device) binding.

    Keyed uniquely by (user_id, device_id); creating a session for an
    existing key replaces it.
    """
    user_id: str = Field(..., description="Associated user identifier")
    device_id: str = Field(..., description="Associated device identifier")
    token: str = Field(..., description="Bearer token issued for this session")
    ip_address: Optional[str] = Field(default=None, description="Client IP address")
    user_agent: Optional[str] = Field(default=None)
    trust_score: Optional[int] = Field(default=None, ge=0, le=100)
    location: Optional[GeoLocation] = Field(default=None)
    created_at: datetime = Field(..., description="Session creation timestamp")
    last_activity: datetime = Field(..., description="Last authenticated request")

    model_config = {
        "json_schema_extra": {
            "example": {
                "user_id": "usr_4f1c2a9e0b7d",
                "device_id": "9b2e4c...",
                "token": "eyJhbGciOi...",
                "ip_address": "203.0.113.10",
                "user_agent": "Mozilla/5.0 ...",
                "trust_score": 72,
                "created_at": "2026-01-25T14:30:00Z",
                "last_activity": "2026-01-25T14:45:00Z",
            }
        }
    }


class SessionLogEntry(BaseModel):
    """Durable copy of a session used for analytics."""
    user_id: str
    device_id: str
    created_at: datetime
    is_active: bool = True
