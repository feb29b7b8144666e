"""Playlist invariants for focusdeck.

Stateless predicates over a candidate playlist. All of them must hold for a
playlist to be accepted as-is. A violation is a result, not an exception:
`validate_playlist` returns either the unchanged playlist or an
`InvariantViolation` naming the failed invariants, highest priority first.
"""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Sequence, Tuple, Union

from focusdeck.engine.capacity import calculate_task_cost
from focusdeck.engine.energy import is_energy_compatible, require_energy
from focusdeck.models.constants import (
    MAX_MICRO_TASKS,
    MAX_TASKS,
    MICRO_TASK_MAX_MINUTES,
    MIN_COMPLETION_RATE,
    QUICK_WIN_MAX_MINUTES,
)
from focusdeck.models.energy import EnergyState
from focusdeck.models.playlist import InvariantViolation, Playlist
from focusdeck.models.task import Effort, Task

logger = logging.getLogger(__name__)

# Floating point slack when comparing summed costs to a ceiling
_LOAD_TOLERANCE = 1e-9


class InvariantPriority(IntEnum):
    """Priority pyramid used to rank conflicting invariants."""
    CRITICAL = 0     # Never violable
    STRUCTURAL = 1   # Shapes every playlist
    PROTECTIVE = 2   # Protects the user; may be traded off with explicit friction


@dataclass(frozen=True)
class InvariantDefinition:
    id: str
    name: str
    priority: InvariantPriority
    violable: bool


INVARIANT_HIERARCHY: Tuple[InvariantDefinition, ...] = (
    InvariantDefinition("session_end_explicit", "Sessions only complete on explicit confirmation",
                        InvariantPriority.CRITICAL, False),
    InvariantDefinition("user_sovereignty", "The engine never refuses the user outright",
                        InvariantPriority.CRITICAL, False),
    InvariantDefinition("scheduled_time_immutable", "Fixed blocks are never overridden",
                        InvariantPriority.CRITICAL, False),
    InvariantDefinition("energy_mismatch", "No task beyond the current energy level",
                        InvariantPriority.STRUCTURAL, False),
    InvariantDefinition("total_load", "Total cost within the capacity ceiling",
                        InvariantPriority.STRUCTURAL, False),
    InvariantDefinition("max_tasks", "At most 5 tasks (7 micro-tasks)",
                        InvariantPriority.STRUCTURAL, True),
    InvariantDefinition("min_quick_win", "At least one quick win when one exists",
                        InvariantPriority.PROTECTIVE, True),
    InvariantDefinition("completion_rate", "Playlist historically completable at 70%",
                        InvariantPriority.PROTECTIVE, True),
)

PLAYLIST_INVARIANTS = ("max_tasks", "min_quick_win", "total_load", "energy_mismatch", "completion_rate")


def get_invariant(invariant_id: str) -> Optional[InvariantDefinition]:
    for definition in INVARIANT_HIERARCHY:
        if definition.id == invariant_id:
            return definition
    return None


def get_invariant_priority(invariant_id: str) -> Optional[InvariantPriority]:
    """Priority of an invariant, or None when the id is unknown."""
    definition = get_invariant(invariant_id)
    return definition.priority if definition is not None else None


def rank_invariants(invariant_ids: Sequence[str]) -> List[str]:
    """Order invariant ids by priority; unknown ids go last, ties keep input order."""
    def _key(invariant_id: str) -> int:
        priority = get_invariant_priority(invariant_id)
        return len(InvariantPriority) if priority is None else int(priority)

    return sorted(invariant_ids, key=_key)


@dataclass(frozen=True)
class InvariantContext:
    """Everything the playlist predicates need, and nothing else."""

    tasks: Tuple[Task, ...]
    energy: EnergyState
    max_load: float
    # Tasks the playlist was drawn from; enables the quick-win waiver
    available_tasks: Optional[Tuple[Task, ...]] = None
    max_tasks: int = MAX_TASKS


@dataclass(frozen=True)
class InvariantReport:
    max_tasks: bool
    min_quick_win: bool
    total_load: bool
    energy_mismatch: bool
    completion_rate: bool
    failed: Tuple[str, ...] = field(default=())

    @property
    def all_valid(self) -> bool:
        return not self.failed


def is_quick_win(task: Task) -> bool:
    return task.duration <= QUICK_WIN_MAX_MINUTES and task.effort == Effort.LOW


def is_micro_task(task: Task) -> bool:
    return task.duration < MICRO_TASK_MAX_MINUTES


def check_max_tasks(tasks: Sequence[Task], max_tasks: int = MAX_TASKS) -> bool:
    """At most 5 tasks, or at most 7 when every task is a micro-task."""
    if len(tasks) <= max_tasks:
        return True
    return len(tasks) <= MAX_MICRO_TASKS and all(is_micro_task(t) for t in tasks)


def check_min_quick_win(tasks: Sequence[Task], available_tasks: Optional[Sequence[Task]] = None) -> bool:
    """At least one quick win, waived when none exists among the available tasks."""
    if any(is_quick_win(t) for t in tasks):
        return True
    return available_tasks is not None and not any(is_quick_win(t) for t in available_tasks)


def check_total_load(tasks: Sequence[Task], energy: EnergyState, max_load: float) -> bool:
    total = sum(calculate_task_cost(t, energy) for t in tasks)
    return total <= max_load + _LOAD_TOLERANCE


def check_energy_mismatch(tasks: Sequence[Task], energy: EnergyState) -> bool:
    return all(is_energy_compatible(t.effort, energy) for t in tasks)


def task_completion_rate(task: Task) -> Optional[float]:
    """Historical completion ratio of a task, or None without any history.

    Uses completed / proposed when proposals were recorded. Otherwise falls
    back to duration accuracy: the planned and average actual durations'
    smaller-to-larger ratio.
    """
    if task.proposal_history:
        return min(1.0, len(task.completion_history) / len(task.proposal_history))

    if not task.completion_history:
        return None

    average_actual = sum(r.actual_duration for r in task.completion_history) / len(task.completion_history)
    planned = float(task.duration)
    if max(planned, average_actual) == 0:
        return 1.0
    return min(planned, average_actual) / max(planned, average_actual)


def check_completion_rate(tasks: Sequence[Task]) -> bool:
    """Average completion ratio of the tasks with history is at least 70%."""
    rates = [rate for rate in (task_completion_rate(t) for t in tasks) if rate is not None]
    if not rates:
        return True
    return sum(rates) / len(rates) >= MIN_COMPLETION_RATE


def check_all_invariants(context: InvariantContext) -> InvariantReport:
    """Run every playlist predicate against the context."""
    require_energy(context.energy)
    results = {
        "max_tasks": check_max_tasks(context.tasks, context.max_tasks),
        "min_quick_win": check_min_quick_win(context.tasks, context.available_tasks),
        "total_load": check_total_load(context.tasks, context.energy, context.max_load),
        "energy_mismatch": check_energy_mismatch(context.tasks, context.energy),
        "completion_rate": check_completion_rate(context.tasks),
    }
    failed = tuple(rank_invariants([name for name in PLAYLIST_INVARIANTS if not results[name]]))
    return InvariantReport(failed=failed, **results)


def validate_playlist(
    playlist: Playlist,
    energy: EnergyState,
    max_load: float,
    available_tasks: Optional[Sequence[Task]] = None,
    max_tasks: int = MAX_TASKS,
) -> Union[Playlist, InvariantViolation]:
    """Validate a playlist against every invariant.

    Args:
        playlist: Playlist to check
        energy: Energy state the playlist is meant for
        max_load: Active capacity ceiling (weighted minutes)
        available_tasks: Tasks the playlist was drawn from, if known
        max_tasks: Task-count ceiling

    Returns:
        The unchanged playlist, or an InvariantViolation listing the failures
    """
    energy = require_energy(energy)
    report = check_all_invariants(
        InvariantContext(
            tasks=tuple(playlist.tasks),
            energy=energy,
            max_load=max_load,
            available_tasks=tuple(available_tasks) if available_tasks is not None else None,
            max_tasks=max_tasks,
        )
    )
    if report.all_valid:
        return playlist

    logger.debug(f"Playlist failed invariants: {', '.join(report.failed)}")
    return InvariantViolation(
        error="Playlist violates one or more invariants",
        invalid_invariants=list(report.failed),
    )
