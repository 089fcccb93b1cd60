"""Device schema - canonical definition."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class DeviceRecord(BaseModel):
    """A device approved for a user.

    device_id is the fingerprint hash (not the raw components).
    created_at doubles as the first-seen timestamp used for device age.
    """
    user_id: str = Field(..., description="Owning user identifier")
    device_id: str = Field(..., description="Hashed device fingerprint")
    user_agent: Optional[str] = Field(default=None)
    ip_address: Optional[str] = Field(default=None)
    trusted: bool = Field(default=True, description="Whether the device is trusted")
    created_at: datetime = Field(..., description="First time device was approved")
    last_login: datetime = Field(..., description="Most recent login from this device")
