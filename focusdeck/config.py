"""Runtime configuration for focusdeck.

Values come from the environment (optionally a local `.env` file) and fall
back to the engine constants.
"""

import os
from pydantic import BaseModel, Field
from dotenv import load_dotenv

from focusdeck.models.constants import (
    DEFAULT_MAX_LOAD,
    MAX_TASKS,
    DEFAULT_DAY_START,
    DEFAULT_DAY_END,
    DEFAULT_TRANSITION_BUFFER_MINUTES,
    DEFAULT_TRIAGE_AVAILABLE_MINUTES,
    DECISION_BUDGET_MS,
)

load_dotenv()


class EngineSettings(BaseModel):
    """Tunable engine settings."""

    max_load: float = Field(DEFAULT_MAX_LOAD, gt=0, description="Daily capacity in weighted minutes")
    max_tasks: int = Field(MAX_TASKS, ge=1, le=MAX_TASKS, description="Maximum tasks per playlist")
    day_start: str = Field(DEFAULT_DAY_START, description="Start of the planning day (HH:MM)")
    day_end: str = Field(DEFAULT_DAY_END, description="End of the planning day (HH:MM)")
    transition_buffer_min: int = Field(
        DEFAULT_TRANSITION_BUFFER_MINUTES, ge=0, description="Buffer kept around fixed blocks"
    )
    triage_available_min: int = Field(
        DEFAULT_TRIAGE_AVAILABLE_MINUTES,
        ge=0,
        description="Available minutes assumed for triage when no session length is given",
    )
    decision_budget_ms: int = Field(DECISION_BUDGET_MS, ge=1, description="Advisory latency budget")


def get_settings() -> EngineSettings:
    """Build settings from the environment.

    Unset variables keep their defaults. Malformed values raise ValueError.
    """
    return EngineSettings(
        max_load=float(os.getenv("FOCUSDECK_MAX_LOAD", str(DEFAULT_MAX_LOAD))),
        max_tasks=int(os.getenv("FOCUSDECK_MAX_TASKS", str(MAX_TASKS))),
        day_start=os.getenv("FOCUSDECK_DAY_START", DEFAULT_DAY_START),
        day_end=os.getenv("FOCUSDECK_DAY_END", DEFAULT_DAY_END),
        transition_buffer_min=int(
            os.getenv("FOCUSDECK_TRANSITION_BUFFER_MIN", str(DEFAULT_TRANSITION_BUFFER_MINUTES))
        ),
        triage_available_min=int(
            os.getenv("FOCUSDECK_TRIAGE_AVAILABLE_MIN", str(DEFAULT_TRIAGE_AVAILABLE_MINUTES))
        ),
        decision_budget_ms=int(os.getenv("FOCUSDECK_DECISION_BUDGET_MS", str(DECISION_BUDGET_MS))),
    )
