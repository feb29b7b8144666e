"""Data models for focusdeck."""

from focusdeck.models.energy import EnergyState, EnergyLevel, EnergyStability
from focusdeck.models.task import (
    Task,
    TaskStatus,
    Effort,
    Urgency,
    Impact,
    CompletionRecord,
    ProposalRecord,
)
from focusdeck.models.playlist import Playlist, InvariantViolation
from focusdeck.models.session import Session, SessionState, TimeWindow
from focusdeck.models.audit_event import AuditEvent, AuditEventType

__all__ = [
    "EnergyState",
    "EnergyLevel",
    "EnergyStability",
    "Task",
    "TaskStatus",
    "Effort",
    "Urgency",
    "Impact",
    "CompletionRecord",
    "ProposalRecord",
    "Playlist",
    "InvariantViolation",
    "Session",
    "SessionState",
    "TimeWindow",
    "AuditEvent",
    "AuditEventType",
]
