"""Alert schemas."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4
from pydantic import BaseModel, Field

from shareguard.data.schemas.session import GeoLocation


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ActionKind(str, Enum):
    """Side effects a triggered rule may request."""
    EMAIL = "email"
    SLACK = "slack"
    DISCORD = "discord"
    WEBHOOK = "webhook"
    BLOCK_SESSION = "block_session"
    TEMPORARY_BLOCK = "temporary_block"
    FLAG = "flag"
    LOG = "log"


class AlertSubject(BaseModel):
    """Snapshot of who and where an alert is about."""
    user_id: str
    email: Optional[str] = None
    device_id: Optional[str] = None
    ip_address: Optional[str] = None
    location: Optional[GeoLocation] = None


class AlertRecord(BaseModel):
    """A triggered rule. Persisted append-only."""
    alert_id: str = Field(default_factory=lambda: f"alt_{uuid4().hex[:12]}")
    rule_id: str
    rule_name: str
    severity: Severity
    message: str
    context: AlertSubject
    timestamp: datetime
