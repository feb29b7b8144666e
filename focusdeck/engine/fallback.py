"""Fallback cascade for focusdeck.

Used when a candidate playlist breaks an invariant or when nothing is
eligible. The cascade is an ordered list of rules; each rule has a predicate
deciding whether it applies and a strategy building the playlist. The first
rule that applies and yields a playlist wins. The last rule always yields
one, so a decision never ends without a playlist.

Every strategy's tasks pass through `_fit`, which keeps only energy-compatible
tasks within the capacity ceiling, the time budget and the task cap.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from focusdeck.engine.capacity import calculate_task_cost
from focusdeck.engine.deadlines import (
    analyze_deadlines,
    determine_triage_mode,
    select_within_available_time,
    tasks_due_by,
    triage_tasks_by_priority,
)
from focusdeck.engine.energy import is_energy_compatible, require_energy
from focusdeck.engine.invariants import is_quick_win
from focusdeck.models.constants import (
    DEFAULT_FALLBACK_MAX_TASKS,
    DEFAULT_TRIAGE_AVAILABLE_MINUTES,
    MAX_TASKS,
    SURVIVAL_MAX_TASKS,
)
from focusdeck.models.energy import EnergyLevel, EnergyState
from focusdeck.models.playlist import Playlist
from focusdeck.models.task import Task

logger = logging.getLogger(__name__)

HISTORY_RATIO_MIN = 0.5
HISTORY_RATIO_MAX = 2.0
OVERCONSTRAINED_MAX_TASKS = 2

_STRUCTURAL_VIOLATIONS = {"max_tasks", "total_load", "energy_mismatch"}


@dataclass(frozen=True)
class FallbackContext:
    """Inputs shared by every fallback rule."""

    tasks: Tuple[Task, ...]
    energy: EnergyState
    reference_time: datetime
    max_load: float
    time_budget: Optional[int] = None
    max_tasks: int = MAX_TASKS
    reason: str = ""
    violations: Tuple[str, ...] = ()
    available_minutes: int = DEFAULT_TRIAGE_AVAILABLE_MINUTES
    detox_mode: Optional[str] = None


@dataclass(frozen=True)
class FallbackRule:
    """One cascade tier: when it applies and how it builds a playlist."""

    name: str
    applies: Callable[[FallbackContext], bool]
    strategy: Callable[[FallbackContext], Optional[Playlist]]


def _fit(tasks: Sequence[Task], ctx: FallbackContext, limit: int) -> List[Task]:
    """Greedy trim to energy, capacity, time budget and task cap."""
    kept: List[Task] = []
    load = 0.0
    minutes = 0
    for task in tasks:
        if len(kept) >= min(limit, ctx.max_tasks):
            break
        if not is_energy_compatible(task.effort, ctx.energy):
            continue
        cost = calculate_task_cost(task, ctx.energy)
        if load + cost > ctx.max_load:
            continue
        if ctx.time_budget is not None and minutes + task.duration > ctx.time_budget:
            continue
        kept.append(task)
        load += cost
        minutes += task.duration
    return kept


def _playlist(ctx: FallbackContext, name: str, tasks: List[Task], explanation: str, warnings: List[str]) -> Playlist:
    if ctx.reason:
        explanation = f"{explanation} ({ctx.reason})"
    return Playlist(
        tasks=tasks,
        generated_at=ctx.reference_time,
        energy_used=ctx.energy,
        explanation=explanation,
        warnings=warnings,
        fallback=name,
        detox_mode=ctx.detox_mode,
    )


def _history_ratio(task: Task) -> Optional[float]:
    if not task.completion_history or task.duration == 0:
        return None
    planned = task.duration * len(task.completion_history)
    actual = sum(record.actual_duration for record in task.completion_history)
    return actual / planned


# Predicates

def is_low_energy(ctx: FallbackContext) -> bool:
    return EnergyLevel(ctx.energy.level) == EnergyLevel.LOW


def is_overconstrained(ctx: FallbackContext) -> bool:
    return not ctx.tasks or bool(_STRUCTURAL_VIOLATIONS.intersection(ctx.violations))


def has_inconsistent_history(ctx: FallbackContext) -> bool:
    return "completion_rate" in ctx.violations


def is_deadline_overload(ctx: FallbackContext) -> bool:
    due = tasks_due_by(ctx.tasks, ctx.reference_time)
    if not due:
        return False
    return determine_triage_mode(analyze_deadlines(due, ctx.available_minutes)).active


# Strategies

def low_energy_strategy(ctx: FallbackContext) -> Optional[Playlist]:
    """One easy task to start gently."""
    tasks = _fit([t for t in ctx.tasks if is_quick_win(t)], ctx, limit=1)
    if not tasks:
        return None
    return _playlist(
        ctx, "low_energy", tasks,
        "Energy is low, so one simple task is proposed",
        ["Energy looks low. A single easy task is suggested to get started."],
    )


def overconstrained_strategy(ctx: FallbackContext) -> Optional[Playlist]:
    """The shortest energy-compatible tasks."""
    shortest = sorted(ctx.tasks, key=lambda t: t.duration)
    tasks = _fit(shortest, ctx, limit=OVERCONSTRAINED_MAX_TASKS)
    if not tasks:
        return None
    return _playlist(
        ctx, "overconstrained", tasks,
        "Too many constraints at once, so the playlist was simplified",
        ["Busy day. The playlist was lightened so you can focus."],
    )


def inconsistent_history_strategy(ctx: FallbackContext) -> Optional[Playlist]:
    """Tasks whose past actual durations stayed close to plan."""
    consistent = []
    for task in ctx.tasks:
        ratio = _history_ratio(task)
        if ratio is not None and HISTORY_RATIO_MIN <= ratio <= HISTORY_RATIO_MAX:
            consistent.append(task)
    tasks = _fit(consistent, ctx, limit=DEFAULT_FALLBACK_MAX_TASKS)
    if not tasks:
        return None
    return _playlist(
        ctx, "inconsistent_history", tasks,
        "Past sessions varied a lot, so tasks with a reliable track record were picked",
        ["Your habits seem to be shifting. Here is a fresh start for today."],
    )


def survival_strategy(ctx: FallbackContext) -> Optional[Playlist]:
    """Triage-ordered tasks that fit in the available time."""
    due = tasks_due_by(ctx.tasks, ctx.reference_time)
    triage = determine_triage_mode(analyze_deadlines(due, ctx.available_minutes))
    ordered = triage_tasks_by_priority(ctx.tasks)
    fitting = select_within_available_time(ordered, ctx.available_minutes).selected_tasks
    tasks = _fit(fitting, ctx, limit=SURVIVAL_MAX_TASKS)
    if not tasks:
        return None
    return _playlist(
        ctx, "survival", tasks,
        "Survival mode: only the most pressing tasks that still fit",
        [f"Survival mode active: {triage.alert_message}"],
    )


def default_strategy(ctx: FallbackContext) -> Playlist:
    """A small subset of the input; always returns, possibly with no tasks."""
    tasks = _fit(ctx.tasks, ctx, limit=DEFAULT_FALLBACK_MAX_TASKS)
    warnings = ["A balanced starter playlist was generated."]
    if not tasks:
        warnings = ["No task fits right now. Taking a break is a valid choice."]
    return _playlist(ctx, "default", tasks, "Default fallback applied", warnings)


FALLBACK_CASCADE: Tuple[FallbackRule, ...] = (
    FallbackRule("low_energy", is_low_energy, low_energy_strategy),
    FallbackRule("overconstrained", is_overconstrained, overconstrained_strategy),
    FallbackRule("inconsistent_history", has_inconsistent_history, inconsistent_history_strategy),
    FallbackRule("survival", is_deadline_overload, survival_strategy),
    FallbackRule("default", lambda ctx: True, default_strategy),
)


def run_fallback_cascade(ctx: FallbackContext) -> Playlist:
    """Evaluate the cascade in order and return the first playlist produced."""
    require_energy(ctx.energy)
    for rule in FALLBACK_CASCADE:
        if not rule.applies(ctx):
            continue
        playlist = rule.strategy(ctx)
        if playlist is not None:
            logger.warning(
                f"Fallback '{rule.name}' applied ({len(playlist.tasks)} tasks): {ctx.reason or 'no reason given'}"
            )
            return playlist
        logger.debug(f"Fallback '{rule.name}' applies but produced nothing; continuing")

    # The default rule always yields a playlist
    raise RuntimeError("Fallback cascade ended without a playlist")
