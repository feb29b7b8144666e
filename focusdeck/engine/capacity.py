"""Capacity calculation for focusdeck.

Turns a task into a cognitive cost and tracks a daily or session budget.
Costs are expressed in weighted minutes:

    cost = duration x effort factor x stability penalty

Budgets are immutable records; every update returns a new budget.
"""

from typing import List

from pydantic import BaseModel, Field

from focusdeck.engine.energy import get_stability_penalty, require_energy
from focusdeck.models.constants import (
    DEFAULT_MAX_LOAD,
    EFFORT_FACTORS,
    EXHAUSTED_RATIO,
    NEAR_EXHAUSTION_RATIO,
    SESSION_LOAD_PER_MINUTE,
)
from focusdeck.models.energy import EnergyState
from focusdeck.models.task import Effort, Task


class LoadRecord(BaseModel):
    """Cost booked against a budget."""

    cost: float = Field(..., ge=0.0)
    status: str = Field("planned", description="planned, in_progress or done")


class CapacityBudget(BaseModel):
    """Daily or session capacity budget."""

    max_load: float = Field(..., ge=0.0)
    used_load: float = Field(0.0, ge=0.0)
    remaining: float = Field(..., ge=0.0)
    tasks_today: List[LoadRecord] = Field(default_factory=list)


def get_effort_factor(effort: Effort) -> float:
    return EFFORT_FACTORS[Effort(effort)]


def calculate_task_cost(task: Task, energy: EnergyState) -> float:
    """Cognitive cost of a task under the given energy state."""
    energy = require_energy(energy)
    return task.duration * get_effort_factor(task.effort) * get_stability_penalty(energy.stability)


def calculate_session_capacity(duration_minutes: float, energy: EnergyState) -> float:
    """Capacity ceiling for a session of the given length.

    A stable slot holds its own length in medium-effort work; volatile
    energy shrinks the ceiling by the stability penalty.
    """
    energy = require_energy(energy)
    if duration_minutes < 0:
        raise ValueError(f"Session duration must be >= 0, got {duration_minutes}")
    return duration_minutes * SESSION_LOAD_PER_MINUTE / get_stability_penalty(energy.stability)


def initialize_daily_capacity(max_load: float = DEFAULT_MAX_LOAD) -> CapacityBudget:
    """Fresh budget with nothing booked."""
    if max_load < 0:
        raise ValueError(f"max_load must be >= 0, got {max_load}")
    return CapacityBudget(max_load=max_load, used_load=0.0, remaining=max_load)


def can_add_task(budget: CapacityBudget, cost: float) -> bool:
    return budget.remaining >= cost


def update_daily_capacity(budget: CapacityBudget, cost: float, status: str = "planned") -> CapacityBudget:
    """Book a cost against the budget and return the updated budget."""
    used = budget.used_load + cost
    return CapacityBudget(
        max_load=budget.max_load,
        used_load=used,
        remaining=max(0.0, budget.max_load - used),
        tasks_today=[*budget.tasks_today, LoadRecord(cost=cost, status=status)],
    )


def apply_cognitive_debt(budget: CapacityBudget, debt_ratio: float) -> CapacityBudget:
    """Shrink the budget by a fraction of its maximum (debt mode)."""
    if not 0.0 <= debt_ratio <= 1.0:
        raise ValueError(f"debt_ratio must be within [0, 1], got {debt_ratio}")
    max_load = max(0.0, budget.max_load * (1.0 - debt_ratio))
    return budget.model_copy(
        update={"max_load": max_load, "remaining": max(0.0, max_load - budget.used_load)}
    )


def is_capacity_near_exhaustion(budget: CapacityBudget, threshold: float = NEAR_EXHAUSTION_RATIO) -> bool:
    return budget.remaining < budget.max_load * threshold


def is_capacity_exhausted(budget: CapacityBudget, threshold: float = EXHAUSTED_RATIO) -> bool:
    return budget.remaining < budget.max_load * threshold
