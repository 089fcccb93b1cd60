"""Data schemas - canonical Pydantic definitions."""

from shareguard.data.schemas.user import Plan, User
from shareguard.data.schemas.device import DeviceRecord
from shareguard.data.schemas.session import GeoLocation, Session, SessionLogEntry
from shareguard.data.schemas.fingerprint import (
    FingerprintChange,
    FingerprintDiff,
    FingerprintMetadata,
    FingerprintResult,
    SpoofAssessment,
)
from shareguard.data.schemas.geo import GeoCheckResult, LocationHistoryEntry
from shareguard.data.schemas.trust import TrustFactor, TrustLevel, TrustScoreRecord
from shareguard.data.schemas.alert import ActionKind, AlertRecord, AlertSubject, Severity

__all__ = [
    "Plan",
    "User",
    "DeviceRecord",
    "GeoLocation",
    "Session",
    "SessionLogEntry",
    "FingerprintChange",
    "FingerprintDiff",
    "FingerprintMetadata",
    "FingerprintResult",
    "SpoofAssessment",
    "GeoCheckResult",
    "LocationHistoryEntry",
    "TrustFactor",
    "TrustLevel",
    "TrustScoreRecord",
    "ActionKind",
    "AlertRecord",
    "AlertSubject",
    "Severity",
]
