"""Task data model for focusdeck."""

from datetime import datetime
from typing import List, Optional
from enum import Enum
from pydantic import BaseModel, Field

from focusdeck.models.energy import EnergyState


class TaskStatus(str, Enum):
    """Task status enumeration."""
    TODO = "todo"
    ACTIVE = "active"
    FROZEN = "frozen"  # Set aside by detox; not selectable until unfrozen
    DONE = "done"


class Effort(str, Enum):
    """Effort required by a task."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Urgency(str, Enum):
    """Urgency enumeration."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Impact(str, Enum):
    """Impact enumeration."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CompletionRecord(BaseModel):
    """One past completion of a task."""

    date: datetime = Field(..., description="When the task was completed")
    actual_duration: int = Field(..., ge=0, description="Minutes actually spent")
    energy: Optional[EnergyState] = Field(None, description="Energy reported at completion")


class ProposalRecord(BaseModel):
    """One time the task was proposed in a playlist."""

    date: datetime = Field(..., description="When the task was proposed")
    session_id: Optional[str] = Field(None, description="Session the proposal belonged to")


class Task(BaseModel):
    """Canonical Task model."""

    id: str = Field(..., description="Unique task identifier")
    title: str = Field(..., description="Task title")
    description: Optional[str] = Field(None, description="Task notes or description")
    duration: int = Field(30, ge=0, description="Estimated duration in minutes")
    effort: Effort = Field(Effort.MEDIUM, description="Effort required")
    urgency: Urgency = Field(Urgency.MEDIUM, description="Urgency")
    impact: Impact = Field(Impact.MEDIUM, description="Impact")
    deadline: Optional[datetime] = Field(None, description="Task deadline")
    scheduled_time: Optional[str] = Field(
        None,
        description="Fixed clock time (HH:MM or HHhMM) on the deadline day or the reference day",
    )
    category: str = Field("general", description="Free label used for diversity")
    completion_history: List[CompletionRecord] = Field(
        default_factory=list, description="Past completions"
    )
    proposal_history: List[ProposalRecord] = Field(
        default_factory=list, description="Past proposals (used for completion rate)"
    )
    created_at: Optional[datetime] = Field(None, description="Task creation timestamp")
    last_activated: Optional[datetime] = Field(None, description="Last time the task was started")
    status: TaskStatus = Field(TaskStatus.TODO, description="Task status")

    def is_selectable(self) -> bool:
        """Done and frozen tasks are never proposed."""
        return self.status not in (TaskStatus.DONE, TaskStatus.FROZEN)
