"""Geo check schemas."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from shareguard.data.schemas.session import GeoLocation


class GeoCheckResult(BaseModel):
    """Outcome of comparing a login's location with the previous one."""
    is_impossible: bool = False
    reason: str = ""
    risk_score: int = Field(default=0, ge=0, le=100)
    current_location: Optional[GeoLocation] = None
    last_location: Optional[GeoLocation] = None
    distance_km: Optional[float] = None
    elapsed_minutes: Optional[float] = None


class LocationHistoryEntry(BaseModel):
    """One row of the per-user location log kept for analytics."""
    device_id: str
    country: str
    city: Optional[str] = None
    ip_address: str
    captured_at: datetime
