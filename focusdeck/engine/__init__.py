"""Task selection and session engine for focusdeck."""

from focusdeck.engine.energy import is_energy_compatible, predict_energy_state
from focusdeck.engine.capacity import calculate_task_cost, calculate_session_capacity
from focusdeck.engine.pools import TaskPool, build_task_pools, get_eligible_tasks
from focusdeck.engine.detox import DetoxMode, calculate_task_age_index, get_detox_mode
from focusdeck.engine.scoring import score_task
from focusdeck.engine.invariants import validate_playlist, get_invariant_priority
from focusdeck.engine.fallback import run_fallback_cascade, FALLBACK_CASCADE
from focusdeck.engine.selector import generate_playlist
from focusdeck.engine.deadlines import analyze_deadlines, determine_triage_mode
from focusdeck.engine.sessions import (
    InvalidSessionTransition,
    create_session,
    start_session,
    complete_session,
    exhaust_session,
    block_session,
    plan_day,
)

__all__ = [
    "is_energy_compatible",
    "predict_energy_state",
    "calculate_task_cost",
    "calculate_session_capacity",
    "TaskPool",
    "build_task_pools",
    "get_eligible_tasks",
    "DetoxMode",
    "calculate_task_age_index",
    "get_detox_mode",
    "score_task",
    "validate_playlist",
    "get_invariant_priority",
    "run_fallback_cascade",
    "FALLBACK_CASCADE",
    "generate_playlist",
    "analyze_deadlines",
    "determine_triage_mode",
    "InvalidSessionTransition",
    "create_session",
    "start_session",
    "complete_session",
    "exhaust_session",
    "block_session",
    "plan_day",
]
