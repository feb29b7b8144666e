"""Impossible-deadline detection and triage for focusdeck.

Compares the time the day's tasks require with the time available. Past a
1.5x overload the engine enters TRIAGE: it offers options (defer, negotiate,
delegate, abandon) without applying any of them, and orders tasks by
priority so the survival fallback can pick what still fits.
"""

import math
from datetime import datetime
from typing import List, Sequence

from pydantic import BaseModel, Field

from focusdeck.engine.time_constraints import align_to, as_utc
from focusdeck.models.constants import TRIAGE_LOAD_RATIO
from focusdeck.models.task import Impact, Task, Urgency


_URGENCY_RANK = {Urgency.URGENT: 4, Urgency.HIGH: 3, Urgency.MEDIUM: 2, Urgency.LOW: 1}
_IMPACT_RANK = {Impact.HIGH: 3, Impact.MEDIUM: 2, Impact.LOW: 1}


class DeadlineAnalysis(BaseModel):
    """Load versus availability for a set of tasks."""

    load_ratio: float = Field(..., description="Required minutes / available minutes (inf if none available)")
    overloaded_tasks: List[Task] = Field(default_factory=list, description="Tasks behind the overload, longest first")
    total_time_required: int = Field(..., description="Sum of task durations in minutes")
    time_available: int = Field(..., description="Available minutes")


class TriageOptions(BaseModel):
    """Informational options offered in TRIAGE; never applied automatically."""

    defer: bool = False
    negotiate: bool = False
    delegate: bool = False
    abandon: bool = False


class TriageMode(BaseModel):
    active: bool
    tasks_to_triage: List[Task] = Field(default_factory=list)
    options: TriageOptions = Field(default_factory=TriageOptions)
    alert_message: str = ""


class OptimizedLoad(BaseModel):
    """Tasks kept after triage and the time they use."""

    selected_tasks: List[Task] = Field(default_factory=list)
    total_time: int = 0
    remaining_time: int = 0


def analyze_deadlines(tasks: Sequence[Task], available_minutes: int) -> DeadlineAnalysis:
    """Compute the load ratio of the given tasks against the available time.

    Args:
        tasks: Tasks due in the period
        available_minutes: Time available in minutes

    Returns:
        DeadlineAnalysis; overloaded tasks are listed only past the triage ratio
    """
    if available_minutes < 0:
        raise ValueError(f"available_minutes must be >= 0, got {available_minutes}")

    required = sum(task.duration for task in tasks)
    if available_minutes > 0:
        ratio = required / available_minutes
    else:
        ratio = math.inf

    overloaded = sorted(tasks, key=lambda t: t.duration, reverse=True) if ratio > TRIAGE_LOAD_RATIO else []
    return DeadlineAnalysis(
        load_ratio=ratio,
        overloaded_tasks=overloaded,
        total_time_required=required,
        time_available=available_minutes,
    )


def determine_triage_mode(analysis: DeadlineAnalysis) -> TriageMode:
    """TRIAGE is active when the load ratio exceeds 1.5."""
    active = analysis.load_ratio > TRIAGE_LOAD_RATIO
    if not active:
        return TriageMode(active=False)

    has_tasks = bool(analysis.overloaded_tasks)
    ratio = "inf" if math.isinf(analysis.load_ratio) else f"{analysis.load_ratio:.2f}"
    return TriageMode(
        active=True,
        tasks_to_triage=analysis.overloaded_tasks,
        options=TriageOptions(defer=has_tasks, negotiate=has_tasks, delegate=has_tasks, abandon=has_tasks),
        alert_message=(
            f"{analysis.total_time_required} min of work for {analysis.time_available} min available "
            f"(ratio {ratio}x)"
        ),
    )


def _triage_key(task: Task):
    deadline = as_utc(task.deadline).timestamp() if task.deadline is not None else math.inf
    return (
        -_URGENCY_RANK[Urgency(task.urgency)],
        -_IMPACT_RANK[Impact(task.impact)],
        deadline,
        task.duration,
    )


def triage_tasks_by_priority(tasks: Sequence[Task]) -> List[Task]:
    """Order by urgency, then impact, then nearest deadline, then shortest duration.

    Tasks without a deadline sort after dated ones of equal urgency and impact.
    """
    return sorted(tasks, key=_triage_key)


def select_within_available_time(triaged_tasks: Sequence[Task], available_minutes: int) -> OptimizedLoad:
    """Take tasks in triage order while they fit in the available time.

    A task that does not fit is skipped; later, shorter tasks may still fit.
    """
    selected: List[Task] = []
    total = 0
    for task in triaged_tasks:
        if total + task.duration <= available_minutes:
            selected.append(task)
            total += task.duration

    return OptimizedLoad(
        selected_tasks=selected,
        total_time=total,
        remaining_time=max(0, available_minutes - total),
    )


def generate_deadline_suggestions(triage: TriageMode) -> List[str]:
    """User-facing lines describing the overload and the available options."""
    if not triage.active:
        return []

    suggestions = ["Deadline overload detected", triage.alert_message, "Possible actions:"]
    if triage.options.defer:
        suggestions.append("Defer some tasks")
    if triage.options.negotiate:
        suggestions.append("Negotiate deadlines")
    if triage.options.delegate:
        suggestions.append("Delegate tasks")
    if triage.options.abandon:
        suggestions.append("Drop tasks that no longer matter")
    return suggestions


def tasks_due_by(tasks: Sequence[Task], reference: datetime) -> List[Task]:
    """Selectable tasks whose deadline falls on or before the reference day."""
    day = reference.date()
    return [
        task for task in tasks
        if task.is_selectable()
        and task.deadline is not None
        and align_to(task.deadline, reference).date() <= day
    ]
