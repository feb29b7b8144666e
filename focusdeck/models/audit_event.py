"""AuditEvent data model for focusdeck."""

from datetime import datetime
from enum import Enum
from typing import Dict, Any
from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Audit event type enumeration."""
    TASK_CREATED = "task_created"
    PLAYLIST_GENERATED = "playlist_generated"
    PLAYLIST_VALIDATED = "playlist_validated"
    FALLBACK_APPLIED = "fallback_applied"
    SESSION_CREATED = "session_created"
    SESSION_TRANSITIONED = "session_transitioned"
    TRIAGE_EVALUATED = "triage_evaluated"


class AuditEvent(BaseModel):
    """Decision trace handed to the audit sink once a decision has completed."""

    id: str = Field(..., description="Unique audit event identifier")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Event timestamp")
    event_type: AuditEventType = Field(..., description="Type of audit event")
    entity_id: str = Field(..., description="ID of the entity this event relates to")
    details: Dict[str, Any] = Field(default_factory=dict, description="Additional event details")

    class Config:
        """Pydantic configuration."""
        use_enum_values = True
