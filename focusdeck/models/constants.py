"""Constants for focusdeck.

This module centralizes the magic numbers used by the decision engine.
"""

from focusdeck.models.task import Effort, Impact, Urgency


# Task defaults
DEFAULT_DURATION_MINUTES = 30
DEFAULT_EFFORT = Effort.MEDIUM
DEFAULT_URGENCY = Urgency.MEDIUM
DEFAULT_IMPACT = Impact.MEDIUM
DEFAULT_CATEGORY = "general"

# Capacity (weighted minutes: duration x effort factor x stability penalty)
EFFORT_FACTORS = {Effort.LOW: 1.0, Effort.MEDIUM: 1.5, Effort.HIGH: 2.5}
DEFAULT_MAX_LOAD = 600.0  # 10 load-hours per day
SESSION_LOAD_PER_MINUTE = 1.5  # A stable slot holds its own length in medium-effort work
NEAR_EXHAUSTION_RATIO = 0.4
EXHAUSTED_RATIO = 0.2

# Playlist shape
MAX_TASKS = 5
MAX_MICRO_TASKS = 7
MICRO_TASK_MAX_MINUTES = 5  # strictly below
QUICK_WIN_MAX_MINUTES = 15
MAX_SAME_CATEGORY = 2
MIN_COMPLETION_RATE = 0.70

# Pools
SOON_MIN_DAYS = 2
SOON_MAX_DAYS = 7
SOON_POOL_LIMIT = 3
AVAILABLE_POOL_LIMIT = 10
SCHEDULED_GRACE_SECONDS = 60

# Detox
TAI_THRESHOLD = 2.0
DETOX_BLOCK_DAYS = 3
DETOX_TODAY_CAP = 2

# Triage
TRIAGE_LOAD_RATIO = 1.5
SURVIVAL_MAX_TASKS = 3
DEFAULT_FALLBACK_MAX_TASKS = 3
DEFAULT_TRIAGE_AVAILABLE_MINUTES = 120

# Time constraints
DEFAULT_FIXED_BLOCK_MINUTES = 30
DEFAULT_TRANSITION_BUFFER_MINUTES = 10
DEFAULT_DAY_START = "08:00"
DEFAULT_DAY_END = "20:00"

# Advisory decision latency
DECISION_BUDGET_MS = 100
