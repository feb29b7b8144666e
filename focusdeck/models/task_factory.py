"""Task creation factory for focusdeck.

This module centralizes task creation logic and ensures consistent
default values across the engine and the API layer.
"""

import uuid
from datetime import datetime
from typing import Optional, Dict, Any

from focusdeck.models.task import Task, TaskStatus, Effort, Urgency, Impact
from focusdeck.models.constants import (
    DEFAULT_DURATION_MINUTES,
    DEFAULT_EFFORT,
    DEFAULT_URGENCY,
    DEFAULT_IMPACT,
    DEFAULT_CATEGORY,
)


def create_task_defaults() -> Dict[str, Any]:
    """Get default task values as a dictionary."""
    return {
        "status": TaskStatus.TODO,
        "description": None,
        "duration": DEFAULT_DURATION_MINUTES,
        "effort": DEFAULT_EFFORT,
        "urgency": DEFAULT_URGENCY,
        "impact": DEFAULT_IMPACT,
        "deadline": None,
        "scheduled_time": None,
        "category": DEFAULT_CATEGORY,
    }


def create_task_base(
    title: str,
    description: Optional[str] = None,
    duration: Optional[int] = None,
    effort: Optional[Effort] = None,
    urgency: Optional[Urgency] = None,
    impact: Optional[Impact] = None,
    deadline: Optional[datetime] = None,
    scheduled_time: Optional[str] = None,
    category: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Task:
    """Create a task with defaults, allowing overrides.

    Args:
        title: Task title (required)
        description: Task notes
        duration: Estimated duration in minutes (defaults to constant)
        effort: Effort level (defaults to constant)
        urgency: Urgency (defaults to constant)
        impact: Impact (defaults to constant)
        deadline: Task deadline
        scheduled_time: Fixed clock time ("HH:MM")
        category: Diversity label (defaults to "general")
        created_at: Creation timestamp (defaults to now, UTC)

    Returns:
        Task object with defaults applied
    """
    if not title or not title.strip():
        raise ValueError("Task title is required")

    defaults = create_task_defaults()

    return Task(
        id=str(uuid.uuid4()),
        title=title.strip(),
        description=description if description is not None else defaults["description"],
        duration=duration if duration is not None else defaults["duration"],
        effort=effort if effort is not None else defaults["effort"],
        urgency=urgency if urgency is not None else defaults["urgency"],
        impact=impact if impact is not None else defaults["impact"],
        deadline=deadline if deadline is not None else defaults["deadline"],
        scheduled_time=scheduled_time if scheduled_time is not None else defaults["scheduled_time"],
        category=category if category else defaults["category"],
        created_at=created_at if created_at is not None else datetime.utcnow(),
        status=defaults["status"],
    )
