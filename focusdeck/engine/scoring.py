"""Task scoring for focusdeck.

Computes a weighted desirability score per task. The weights are fixed:

    total = 0.40 * energy_alignment
          + 0.20 * urgency
          + 0.15 * impact
          + 0.10 * effort_balance
          + 0.10 * behavioral_pattern
          + 0.05 * diversity

Scoring is deterministic - same inputs always produce the same score.
"""

from typing import Dict, List, Sequence

from pydantic import BaseModel, Field

from focusdeck.engine.energy import is_energy_compatible
from focusdeck.models.energy import EnergyStability, EnergyState
from focusdeck.models.task import Effort, Impact, Task, Urgency


SCORE_WEIGHTS = {
    "energy_alignment": 0.40,
    "urgency": 0.20,
    "impact": 0.15,
    "effort_balance": 0.10,
    "behavioral_pattern": 0.10,
    "diversity": 0.05,
}

URGENCY_SCORES = {Urgency.URGENT: 1.0, Urgency.HIGH: 0.8, Urgency.MEDIUM: 0.5, Urgency.LOW: 0.2}
IMPACT_SCORES = {Impact.HIGH: 1.0, Impact.MEDIUM: 0.6, Impact.LOW: 0.3}

_EFFORT_VALUES = {Effort.LOW: 1, Effort.MEDIUM: 2, Effort.HIGH: 3}
_IMPACT_VALUES = {Impact.LOW: 1, Impact.MEDIUM: 2, Impact.HIGH: 3}


class TaskScore(BaseModel):
    """Score of one task with its per-criterion breakdown."""

    task: Task
    total_score: float
    breakdown: Dict[str, float] = Field(default_factory=dict)


def calculate_energy_alignment_score(task: Task, energy: EnergyState) -> float:
    if not is_energy_compatible(task.effort, energy):
        return 0.1
    if energy.stability == EnergyStability.STABLE:
        return 0.9
    return 0.7


def calculate_urgency_score(task: Task) -> float:
    return URGENCY_SCORES[Urgency(task.urgency)]


def calculate_impact_score(task: Task) -> float:
    return IMPACT_SCORES[Impact(task.impact)]


def calculate_effort_balance_score(task: Task) -> float:
    """Impact/effort ratio normalized into [0, 1]."""
    ratio = _IMPACT_VALUES[Impact(task.impact)] / _EFFORT_VALUES[Effort(task.effort)]
    return min(1.0, ratio / 3)


def calculate_behavioral_pattern_score(task: Task) -> float:
    """How reliably the user finishes this task within its planned duration.

    0.5 without history, 0.9 when actual time averages under 80% of plan,
    0.3 when it averages over 120%, 0.7 otherwise.
    """
    if not task.completion_history:
        return 0.5

    planned = task.duration * len(task.completion_history)
    actual = sum(record.actual_duration for record in task.completion_history)

    if actual < planned * 0.8:
        return 0.9
    if actual > planned * 1.2:
        return 0.3
    return 0.7


def calculate_diversity_score(task: Task, recent_tasks: Sequence[Task]) -> float:
    """1.0 when no recent task shares the category, down to a floor of 0.1."""
    if not recent_tasks:
        return 1.0
    same_category = sum(1 for recent in recent_tasks if recent.category == task.category)
    return max(0.1, 1.0 - same_category / len(recent_tasks))


def score_task(task: Task, energy: EnergyState, recent_tasks: Sequence[Task] = ()) -> TaskScore:
    """Score a task against the current energy and recently selected tasks."""
    breakdown = {
        "energy_alignment": calculate_energy_alignment_score(task, energy),
        "urgency": calculate_urgency_score(task),
        "impact": calculate_impact_score(task),
        "effort_balance": calculate_effort_balance_score(task),
        "behavioral_pattern": calculate_behavioral_pattern_score(task),
        "diversity": calculate_diversity_score(task, recent_tasks),
    }
    total = sum(SCORE_WEIGHTS[name] * value for name, value in breakdown.items())
    return TaskScore(task=task, total_score=total, breakdown=breakdown)


def sort_by_score(scores: Sequence[TaskScore]) -> List[TaskScore]:
    """Highest score first; ties keep their input order."""
    return sorted(scores, key=lambda s: s.total_score, reverse=True)
