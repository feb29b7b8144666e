"""Session data model for focusdeck."""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field

from focusdeck.models.energy import EnergyState
from focusdeck.models.playlist import Playlist
from focusdeck.models.task import Task


class SessionState(str, Enum):
    """Session lifecycle states."""
    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"  # Only ever reached through explicit user confirmation
    EXHAUSTED = "EXHAUSTED"
    BLOCKED = "BLOCKED"  # External constraint conflict


class TimeWindow(BaseModel):
    """Start/end pair for a session slot."""

    start: datetime = Field(..., description="Slot start")
    end: datetime = Field(..., description="Slot end")


class Session(BaseModel):
    """A playlist bound to a time slot."""

    id: str = Field(..., description="Session identifier (one per time slot)")
    time_slot: TimeWindow = Field(..., description="Time slot the session occupies")
    state: SessionState = Field(SessionState.PLANNED, description="Lifecycle state")
    playlist: Playlist = Field(..., description="Bound playlist")
    predicted_energy: EnergyState = Field(..., description="Energy predicted for the slot")
    fixed_tasks: List[Task] = Field(default_factory=list, description="Scheduled tasks occupying the slot")
    duration: int = Field(..., ge=0, description="Slot length in minutes")
    label: str = Field("", description="Display label for the slot")
    blocked_reason: Optional[str] = Field(None, description="Why the session was blocked")
