"""Temporal pool classification for focusdeck.

Buckets tasks into OVERDUE, TODAY, SOON and AVAILABLE relative to a reference
time and applies the pool size limits. Pools are derived on every call and
never stored.

Golden rule: while OVERDUE or TODAY holds anything, SOON and AVAILABLE are
invisible to selection.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Sequence

from pydantic import BaseModel, Field

from focusdeck.engine.time_constraints import align_to, as_utc, scheduled_datetime
from focusdeck.models.constants import (
    AVAILABLE_POOL_LIMIT,
    SCHEDULED_GRACE_SECONDS,
    SOON_MAX_DAYS,
    SOON_MIN_DAYS,
    SOON_POOL_LIMIT,
)
from focusdeck.models.task import Impact, Task, Urgency


class TaskPool(str, Enum):
    """Temporal priority classes."""
    OVERDUE = "OVERDUE"
    TODAY = "TODAY"
    SOON = "SOON"
    AVAILABLE = "AVAILABLE"


class TaskPools(BaseModel):
    """Tasks bucketed by pool for one reference time."""

    reference_date: datetime
    overdue: List[Task] = Field(default_factory=list)
    today: List[Task] = Field(default_factory=list)
    soon: List[Task] = Field(default_factory=list)
    available: List[Task] = Field(default_factory=list)


SOON_URGENCY_BONUS = {Urgency.URGENT: 0.3, Urgency.HIGH: 0.2, Urgency.MEDIUM: 0.1, Urgency.LOW: 0.0}
SOON_IMPACT_BONUS = {Impact.HIGH: 0.2, Impact.MEDIUM: 0.1, Impact.LOW: 0.0}


def assign_task_to_pool(task: Task, reference: datetime) -> TaskPool:
    """Classify a task against the reference time.

    Args:
        task: Task to classify
        reference: Reference time ("now")

    Returns:
        The pool the task belongs to
    """
    if task.deadline is None:
        return TaskPool.AVAILABLE

    today = reference.date()
    deadline_day = align_to(task.deadline, reference).date()

    if deadline_day < today:
        return TaskPool.OVERDUE

    if deadline_day == today:
        start = scheduled_datetime(task, today, reference.tzinfo)
        if start is not None and reference - start >= timedelta(seconds=SCHEDULED_GRACE_SECONDS):
            return TaskPool.OVERDUE
        return TaskPool.TODAY

    days_until = (deadline_day - today).days
    if SOON_MIN_DAYS <= days_until <= SOON_MAX_DAYS:
        return TaskPool.SOON

    return TaskPool.AVAILABLE


def calculate_soon_score(task: Task, reference: datetime) -> float:
    """Ranking score used to keep the best SOON tasks.

    Base 0.5 plus urgency and impact bonuses, degraded by 0.1 for every day
    beyond day 2 until the deadline, floored at 0.1.
    """
    score = 0.5 + SOON_URGENCY_BONUS[Urgency(task.urgency)] + SOON_IMPACT_BONUS[Impact(task.impact)]

    if task.deadline is not None:
        days_until = (align_to(task.deadline, reference).date() - reference.date()).days
        degradation = max(0.0, (days_until - SOON_MIN_DAYS) * 0.1)
        score = max(0.1, score - degradation)

    return score


def _last_touched(task: Task) -> datetime:
    """Most recent completion, activation or creation of a task."""
    moments = [as_utc(record.date) for record in task.completion_history]
    if task.last_activated is not None:
        moments.append(as_utc(task.last_activated))
    if task.created_at is not None:
        moments.append(as_utc(task.created_at))
    return max(moments) if moments else datetime.min.replace(tzinfo=timezone.utc)


def build_task_pools(tasks: Sequence[Task], reference: datetime) -> TaskPools:
    """Distribute selectable tasks into pools and apply the pool limits.

    SOON keeps its best 3 tasks by SOON score; the rest are demoted to
    AVAILABLE. AVAILABLE keeps the 10 most recently touched tasks.
    """
    pools = TaskPools(reference_date=reference)

    for task in tasks:
        if not task.is_selectable():
            continue
        pool = assign_task_to_pool(task, reference)
        if pool == TaskPool.OVERDUE:
            pools.overdue.append(task)
        elif pool == TaskPool.TODAY:
            pools.today.append(task)
        elif pool == TaskPool.SOON:
            pools.soon.append(task)
        else:
            pools.available.append(task)

    soon = sorted(pools.soon, key=lambda t: calculate_soon_score(t, reference), reverse=True)
    available = pools.available + soon[SOON_POOL_LIMIT:]
    soon = soon[:SOON_POOL_LIMIT]

    if len(available) > AVAILABLE_POOL_LIMIT:
        available = sorted(available, key=_last_touched, reverse=True)[:AVAILABLE_POOL_LIMIT]

    return pools.model_copy(update={"soon": soon, "available": available})


def get_eligible_tasks(pools: TaskPools) -> List[Task]:
    """Apply the golden rule to the pools."""
    if pools.overdue or pools.today:
        return [*pools.overdue, *pools.today]
    return [*pools.soon, *pools.available]
