"""Alert context - the per-login facts alert rules are evaluated against."""

from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from shareguard.data.schemas import AlertSubject, GeoCheckResult, GeoLocation


class AlertContext(BaseModel):
    """Assembled by the login orchestrator once per evaluation."""
    user_id: str
    email: Optional[str] = None
    device_id: str = ""
    ip_address: Optional[str] = None
    geo_check: Optional[GeoCheckResult] = None
    trust_score: Optional[int] = Field(default=None, ge=0, le=100)
    trust_level: Optional[str] = None
    location: Optional[GeoLocation] = None
    is_new_device: bool = False
    device_user_count: int = 0
    active_sessions: int = 0
    max_sessions: int = 1
    failed_attempts: int = 0
    is_vpn: bool = False
    location_change_count: int = 0
    password_changed: bool = False
    login_hour: Optional[int] = Field(default=None, ge=0, le=23)

    def subject(self) -> AlertSubject:
        return AlertSubject(
            user_id=self.user_id,
            email=self.email,
            device_id=self.device_id or None,
            ip_address=self.ip_address,
            location=self.location,
        )

    def template_fields(self) -> Dict[str, Any]:
        """Values available to rule message templates."""
        fields = {name: getattr(self, name) for name in type(self).model_fields}
        fields["country"] = self.location.country if self.location else "unknown"
        fields["city"] = (self.location.city if self.location else None) or "unknown"
        return fields
