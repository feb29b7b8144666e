"""Energy model for focusdeck.

Normalizes the user's energy state, predicts it for a time of day and judges
whether a task's effort fits the energy available.
"""

from typing import Any, Dict, Optional

from focusdeck.models.energy import EnergyState, EnergyLevel, EnergyStability
from focusdeck.models.task import Effort


STABILITY_PENALTIES = {
    EnergyStability.STABLE: 1.0,
    EnergyStability.VOLATILE: 1.3,
}

# Efforts each energy level can take on
COMPATIBLE_EFFORTS = {
    EnergyLevel.LOW: {Effort.LOW},
    EnergyLevel.MEDIUM: {Effort.LOW, Effort.MEDIUM},
    EnergyLevel.HIGH: {Effort.LOW, Effort.MEDIUM, Effort.HIGH},
}

# Default circadian table: (start_hour, end_hour, level, stability, confidence)
CIRCADIAN_TABLE = [
    (6, 10, EnergyLevel.MEDIUM, EnergyStability.STABLE, 0.8),     # morning
    (10, 14, EnergyLevel.HIGH, EnergyStability.STABLE, 0.8),      # midday
    (14, 18, EnergyLevel.MEDIUM, EnergyStability.VOLATILE, 0.6),  # afternoon
    (18, 22, EnergyLevel.LOW, EnergyStability.STABLE, 0.8),       # evening
]
NIGHT_ENERGY = (EnergyLevel.LOW, EnergyStability.VOLATILE, 0.5)


def create_energy_state(
    level: EnergyLevel,
    stability: EnergyStability = EnergyStability.STABLE,
    confidence: Optional[float] = None,
) -> EnergyState:
    """Build an energy state from a user self-report."""
    return EnergyState(level=level, stability=stability, confidence=confidence)


def require_energy(energy: Optional[EnergyState]) -> EnergyState:
    """Fail fast when a decision is requested without an energy snapshot."""
    if energy is None:
        raise ValueError("An energy state is required for this decision")
    return energy


def get_stability_penalty(stability: EnergyStability) -> float:
    """Cost multiplier for the energy stability (never changes compatibility)."""
    return STABILITY_PENALTIES[EnergyStability(stability)]


def is_energy_compatible(effort: Effort, energy: EnergyState) -> bool:
    """Check whether a task of the given effort fits the energy level.

    Low energy only takes low-effort tasks, medium energy takes low or
    medium, high energy takes anything.
    """
    energy = require_energy(energy)
    return Effort(effort) in COMPATIBLE_EFFORTS[EnergyLevel(energy.level)]


def predict_energy_state(hour: int, user_pattern: Optional[Dict[str, Any]] = None) -> EnergyState:
    """Predict the energy state for an hour of the day.

    Args:
        hour: Hour of day (0-23)
        user_pattern: Optional partial override with any of
            "level", "stability", "confidence"

    Returns:
        Predicted energy state
    """
    if not 0 <= hour <= 23:
        raise ValueError(f"hour must be in 0-23, got {hour}")

    level, stability, confidence = NIGHT_ENERGY
    for start, end, slot_level, slot_stability, slot_confidence in CIRCADIAN_TABLE:
        if start <= hour < end:
            level, stability, confidence = slot_level, slot_stability, slot_confidence
            break

    if user_pattern:
        level = user_pattern.get("level") or level
        stability = user_pattern.get("stability") or stability
        if user_pattern.get("confidence") is not None:
            confidence = user_pattern["confidence"]

    return EnergyState(level=level, stability=stability, confidence=confidence)
