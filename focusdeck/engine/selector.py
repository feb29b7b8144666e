"""Playlist selection for focusdeck.

Pipeline for one decision:

    pools -> detox -> golden rule -> eligibility -> time conflicts
          -> quick win -> score -> greedy admission -> diversity
          -> invariants -> (fallback cascade on failure)

Selection is a pure function of its inputs; nothing is stored between calls.
"""

import logging
import time
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from focusdeck.config import EngineSettings, get_settings
from focusdeck.engine.capacity import CapacityBudget, calculate_session_capacity, calculate_task_cost
from focusdeck.engine.detox import (
    DetoxMode,
    DetoxRecommendation,
    apply_detox_to_pools,
    calculate_task_age_index,
    get_detox_mode,
    recommend_detox_actions,
)
from focusdeck.engine.energy import is_energy_compatible, require_energy
from focusdeck.engine.fallback import FallbackContext, run_fallback_cascade
from focusdeck.engine.invariants import is_micro_task, is_quick_win, validate_playlist
from focusdeck.engine.pools import build_task_pools, get_eligible_tasks
from focusdeck.engine.scoring import score_task, sort_by_score
from focusdeck.engine.time_constraints import align_to, resolve_time_conflicts
from focusdeck.models.constants import MAX_MICRO_TASKS, MAX_SAME_CATEGORY, MAX_TASKS
from focusdeck.models.energy import EnergyStability, EnergyState
from focusdeck.models.playlist import InvariantViolation, Playlist
from focusdeck.models.task import Task, TaskStatus

logger = logging.getLogger(__name__)


def filter_eligible_tasks(tasks: Sequence[Task], reference: datetime) -> List[Task]:
    """Keep overdue, due-today and undated tasks, plus future tasks already started."""
    today = reference.date()
    eligible = []
    for task in tasks:
        if task.deadline is None or align_to(task.deadline, reference).date() <= today:
            eligible.append(task)
        elif task.completion_history or task.status == TaskStatus.ACTIVE:
            eligible.append(task)
    return eligible


def check_diversity(tasks: Sequence[Task], max_same_category: int = MAX_SAME_CATEGORY) -> bool:
    """True when no category appears more than `max_same_category` times."""
    counts = Counter(task.category for task in tasks)
    return all(count <= max_same_category for count in counts.values())


def enforce_diversity(tasks: Sequence[Task], max_same_category: int = MAX_SAME_CATEGORY) -> List[Task]:
    """Drop the most recently admitted offending task until the list is diverse."""
    kept = list(tasks)
    while len(kept) > 1 and not check_diversity(kept, max_same_category):
        counts = Counter(task.category for task in kept)
        for index in range(len(kept) - 1, -1, -1):
            if counts[kept[index].category] > max_same_category:
                logger.debug(f"Diversity: dropping task {kept[index].id} ({kept[index].category})")
                del kept[index]
                break
    return kept


def resolve_capacity_ceiling(
    energy: EnergyState,
    settings: EngineSettings,
    budget: Optional[CapacityBudget] = None,
    session_duration_minutes: Optional[int] = None,
) -> float:
    """Active capacity ceiling: the tightest of session, budget and daily limits."""
    ceiling = settings.max_load
    if budget is not None:
        ceiling = min(ceiling, budget.remaining)
    if session_duration_minutes is not None:
        ceiling = min(ceiling, calculate_session_capacity(session_duration_minutes, energy))
    return ceiling


@dataclass(frozen=True)
class CandidateSet:
    """Tasks a decision may draw from, after pools, detox and eligibility."""

    visible: Tuple[Task, ...]
    eligible: Tuple[Task, ...]
    tai: float
    detox_mode: DetoxMode
    recommendation: DetoxRecommendation


def collect_candidates(
    tasks: Sequence[Task], reference_time: datetime, detox_consecutive_days: int = 0
) -> CandidateSet:
    """Pools, detox restrictions, golden rule, eligibility and fixed-time conflicts."""
    selectable = [task for task in tasks if task.is_selectable()]

    pools = build_task_pools(selectable, reference_time)
    tai = calculate_task_age_index(selectable, reference_time)
    detox_mode = get_detox_mode(tai, detox_consecutive_days)
    recommendation = recommend_detox_actions(detox_mode)
    pools = apply_detox_to_pools(pools, recommendation)

    visible = get_eligible_tasks(pools)
    eligible = filter_eligible_tasks(visible, reference_time)
    eligible = resolve_time_conflicts(eligible, reference_time.date(), reference_time.tzinfo)
    return CandidateSet(
        visible=tuple(visible),
        eligible=tuple(eligible),
        tai=tai,
        detox_mode=detox_mode,
        recommendation=recommendation,
    )


def build_fallback_context(
    tasks: Sequence[Task],
    energy: EnergyState,
    reference_time: datetime,
    ceiling: float,
    settings: EngineSettings,
    *,
    session_duration_minutes: Optional[int] = None,
    reason: str = "",
    violations: Sequence[str] = (),
    detox_mode: Optional[DetoxMode] = None,
) -> FallbackContext:
    if session_duration_minutes is not None:
        available = session_duration_minutes
    else:
        available = settings.triage_available_min
    return FallbackContext(
        tasks=tuple(tasks),
        energy=energy,
        reference_time=reference_time,
        max_load=ceiling,
        time_budget=session_duration_minutes,
        max_tasks=settings.max_tasks,
        reason=reason,
        violations=tuple(violations),
        available_minutes=available,
        detox_mode=detox_mode.value if detox_mode is not None else None,
    )


def _explain(energy: EnergyState, quick_win: Optional[Task], detox_mode: DetoxMode) -> str:
    parts = []
    if EnergyStability(energy.stability) == EnergyStability.VOLATILE:
        parts.append("Your energy seems changeable, so the playlist is lighter.")
    if quick_win is not None:
        parts.append("It starts with a quick task to build momentum.")
    if detox_mode != DetoxMode.NONE:
        parts.append("Detox is active to help catch up on older tasks.")
    return " ".join(parts) or "A selection of tasks suited to your day."


def generate_playlist(
    tasks: Sequence[Task],
    energy: EnergyState,
    reference_time: datetime,
    *,
    budget: Optional[CapacityBudget] = None,
    session_duration_minutes: Optional[int] = None,
    detox_consecutive_days: int = 0,
    recent_tasks: Sequence[Task] = (),
    settings: Optional[EngineSettings] = None,
) -> Playlist:
    """Build the playlist to propose right now.

    Args:
        tasks: Task snapshot (any status; done and frozen tasks are ignored)
        energy: Current energy state (required)
        reference_time: "Now" for the decision
        budget: Remaining daily budget, if one is being tracked
        session_duration_minutes: Session length bounding the playlist, if any
        detox_consecutive_days: Days the TAI has stayed above the threshold
        recent_tasks: Recently selected tasks, for diversity scoring
        settings: Engine settings (defaults to the environment)

    Returns:
        A playlist that satisfies every invariant, or a fallback playlist
    """
    energy = require_energy(energy)
    settings = settings or get_settings()
    started = time.perf_counter()

    ceiling = resolve_capacity_ceiling(energy, settings, budget, session_duration_minutes)
    candidates = collect_candidates(tasks, reference_time, detox_consecutive_days)
    eligible = candidates.eligible
    detox_mode = candidates.detox_mode

    def fallback(pool: Sequence[Task], reason: str, violations: Sequence[str] = ()) -> Playlist:
        return run_fallback_cascade(
            build_fallback_context(
                pool, energy, reference_time, ceiling, settings,
                session_duration_minutes=session_duration_minutes,
                reason=reason,
                violations=violations,
                detox_mode=detox_mode,
            )
        )

    if not eligible:
        playlist = fallback(candidates.visible, "no eligible tasks")
        _log_latency(started, settings)
        return playlist

    # A lowered cap is never raised back by the micro-task allowance
    max_tasks = settings.max_tasks
    if max_tasks == MAX_TASKS and all(is_micro_task(task) for task in eligible):
        max_tasks = MAX_MICRO_TASKS

    scores = sort_by_score([score_task(task, energy, recent_tasks) for task in eligible])

    admitted: List[Task] = []
    load = 0.0
    minutes = 0

    def admit(task: Task) -> bool:
        nonlocal load, minutes
        if len(admitted) >= max_tasks or not is_energy_compatible(task.effort, energy):
            return False
        cost = calculate_task_cost(task, energy)
        if load + cost > ceiling:
            return False
        if session_duration_minutes is not None and minutes + task.duration > session_duration_minutes:
            return False
        admitted.append(task)
        load += cost
        minutes += task.duration
        return True

    quick_win = None
    for scored in scores:
        if is_quick_win(scored.task) and admit(scored.task):
            quick_win = scored.task
            break

    for scored in scores:
        if scored.task is quick_win:
            continue
        admit(scored.task)

    admitted = enforce_diversity(admitted)

    if not admitted:
        playlist = fallback(eligible, "no task fits the current energy and capacity")
        _log_latency(started, settings)
        return playlist

    warnings = []
    if detox_mode != DetoxMode.NONE:
        warnings.append(candidates.recommendation.message)

    candidate = Playlist(
        tasks=admitted,
        generated_at=reference_time,
        energy_used=energy,
        explanation=_explain(energy, quick_win, detox_mode),
        warnings=warnings,
        detox_mode=detox_mode.value,
    )

    result = validate_playlist(candidate, energy, ceiling, available_tasks=eligible)
    if isinstance(result, InvariantViolation):
        playlist = fallback(eligible, ", ".join(result.invalid_invariants), result.invalid_invariants)
    else:
        playlist = result

    logger.debug(
        f"Generated playlist with {len(playlist.tasks)} tasks from {len(eligible)} eligible "
        f"(ceiling {ceiling:.1f}, detox {detox_mode.value})"
    )
    _log_latency(started, settings)
    return playlist


def _log_latency(started: float, settings: EngineSettings) -> None:
    elapsed_ms = (time.perf_counter() - started) * 1000
    if elapsed_ms > settings.decision_budget_ms:
        logger.warning(f"Playlist decision took {elapsed_ms:.1f} ms (budget {settings.decision_budget_ms} ms)")
