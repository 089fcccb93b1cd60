"""Trust score schemas."""

from datetime import datetime
from enum import Enum
from typing import List
from pydantic import BaseModel, Field


class TrustLevel(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    CRITICAL = "CRITICAL"


class TrustFactor(BaseModel):
    """Contribution of one sub-score to the total."""
    name: str
    contribution: int


class TrustScoreRecord(BaseModel):
    """Confidence (0-100) that a user/device/network combination is legitimate."""
    score: int = Field(..., ge=0, le=100)
    level: TrustLevel
    factors: List[TrustFactor] = Field(default_factory=list)
    computed_at: datetime

    def summary(self) -> dict:
        return {"score": self.score, "level": self.level.value}
