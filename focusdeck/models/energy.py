"""Energy state data model for focusdeck."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class EnergyLevel(str, Enum):
    """Self-reported energy level."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EnergyStability(str, Enum):
    """Whether the reported energy is expected to hold."""
    STABLE = "stable"
    VOLATILE = "volatile"


class EnergyState(BaseModel):
    """Immutable energy snapshot used for a single decision."""

    level: EnergyLevel = Field(..., description="Energy level")
    stability: EnergyStability = Field(EnergyStability.STABLE, description="Energy stability")
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0, description="Confidence in the state")

    class Config:
        """Pydantic configuration."""
        frozen = True
