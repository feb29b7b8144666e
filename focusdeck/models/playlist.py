"""Playlist data model for focusdeck."""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from focusdeck.models.energy import EnergyState
from focusdeck.models.task import Task


class Playlist(BaseModel):
    """Bounded, ordered set of tasks proposed for right now.

    Playlists are produced fresh on every call and never mutated in place.
    """

    tasks: List[Task] = Field(default_factory=list, description="Proposed tasks, in order")
    generated_at: datetime = Field(..., description="Reference time the playlist was built for")
    energy_used: EnergyState = Field(..., description="Energy snapshot used for the decision")
    explanation: str = Field("", description="Human-readable explanation of the selection")
    warnings: List[str] = Field(default_factory=list, description="Informational warnings")
    fallback: Optional[str] = Field(None, description="Fallback tier that produced this playlist, if any")
    detox_mode: Optional[str] = Field(None, description="Detox mode active during selection")


class InvariantViolation(BaseModel):
    """Structured result returned when a playlist breaks one or more invariants."""

    error: str = Field(..., description="Summary of the failure")
    invalid_invariants: List[str] = Field(
        default_factory=list, description="Ids of the invariants that failed, highest priority first"
    )
