"""Fingerprint schemas."""

from datetime import datetime
from typing import Dict, List, Literal, Union
from pydantic import BaseModel, Field


ComponentValue = Union[str, int, float]


class SpoofAssessment(BaseModel):
    """Result of spoofing / automation detection. Derived, never stored."""
    is_suspicious: bool = Field(..., description="risk_score above the suspicious threshold")
    should_block: bool = Field(..., description="risk_score above the block threshold")
    risk_score: int = Field(..., ge=0, le=100)
    warnings: List[str] = Field(default_factory=list)


class FingerprintMetadata(BaseModel):
    """Human-readable device description for display."""
    browser_info: str
    os_info: str
    device_info: str
    generated_at: datetime


class FingerprintResult(BaseModel):
    """Output of FingerprintGenerator.generate."""
    device_id: str = Field(..., description="SHA-256 over the canonical component string")
    components: Dict[str, ComponentValue]
    metadata: FingerprintMetadata


class FingerprintChange(BaseModel):
    field: str
    old_value: ComponentValue
    new_value: ComponentValue


class FingerprintDiff(BaseModel):
    """Changes between two component sets on the critical keys."""
    changes: List[FingerprintChange] = Field(default_factory=list)
    suspicion_level: Literal["LOW", "MEDIUM", "HIGH"] = "LOW"

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)

    @property
    def change_count(self) -> int:
        return len(self.changes)
