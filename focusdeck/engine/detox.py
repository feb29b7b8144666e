"""Task Age Index and detox friction for focusdeck.

The Task Age Index (TAI) is the mean backlog age in days. When it stays above
the threshold, detox escalates friction: a soft notice, then a review
suggestion, then restrictions on the pools. Detox only ever adds friction.
Every restriction comes with a "proceed anyway" path; the engine never
refuses an action outright.
"""

import logging
from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from focusdeck.engine.pools import TaskPools
from focusdeck.engine.time_constraints import align_to
from focusdeck.models.constants import DETOX_BLOCK_DAYS, DETOX_TODAY_CAP, TAI_THRESHOLD
from focusdeck.models.task import Task

logger = logging.getLogger(__name__)


class DetoxMode(str, Enum):
    """Detox escalation ladder."""
    NONE = "NONE"
    WARNING = "WARNING"
    SUGGESTION = "SUGGESTION"
    BLOCK = "BLOCK"


class DetoxRecommendation(BaseModel):
    """Mode label plus the restrictions it recommends."""

    mode: DetoxMode
    friction_level: float = Field(0.0, ge=0.0, le=1.0)
    freeze_soon: bool = False
    today_cap: Optional[int] = None
    review_before_add: bool = False
    proceed_anyway_allowed: bool = True
    message: str = ""


class FrictionPrompt(BaseModel):
    """What the UI should show before a new task is added."""

    allowed: bool = True
    requires_review: bool = False
    title: str = ""
    message: str = ""
    options: List[str] = Field(default_factory=list)


class DetoxTracker(BaseModel):
    """Consecutive-day counter for the TAI threshold."""

    consecutive_days: int = Field(0, ge=0)
    last_day: Optional[date] = None


_RECOMMENDATIONS = {
    DetoxMode.NONE: DetoxRecommendation(mode=DetoxMode.NONE),
    DetoxMode.WARNING: DetoxRecommendation(
        mode=DetoxMode.WARNING,
        friction_level=0.2,
        message="Quite a few older tasks are waiting. A quick review soon might help.",
    ),
    DetoxMode.SUGGESTION: DetoxRecommendation(
        mode=DetoxMode.SUGGESTION,
        friction_level=0.5,
        message="A short review session is suggested to clear older tasks.",
    ),
    DetoxMode.BLOCK: DetoxRecommendation(
        mode=DetoxMode.BLOCK,
        friction_level=0.7,
        freeze_soon=True,
        today_cap=DETOX_TODAY_CAP,
        review_before_add=True,
        message="Backlog review recommended before adding new tasks. You can always proceed anyway.",
    ),
}


def calculate_task_age_index(tasks: Sequence[Task], reference: datetime) -> float:
    """Mean age in days of the tasks with a known creation date (0 if none)."""
    ages = [
        max(0.0, (reference - align_to(task.created_at, reference)).total_seconds() / 86400)
        for task in tasks
        if task.created_at is not None
    ]
    if not ages:
        return 0.0
    return sum(ages) / len(ages)


def get_detox_mode(tai: float, consecutive_days: int) -> DetoxMode:
    """Resolve the detox mode from the TAI and days spent above the threshold."""
    if tai <= TAI_THRESHOLD:
        return DetoxMode.NONE
    if consecutive_days < 1:
        return DetoxMode.WARNING
    if consecutive_days < DETOX_BLOCK_DAYS:
        return DetoxMode.SUGGESTION
    return DetoxMode.BLOCK


def recommend_detox_actions(mode: DetoxMode) -> DetoxRecommendation:
    return _RECOMMENDATIONS[DetoxMode(mode)]


def apply_detox_to_pools(pools: TaskPools, recommendation: DetoxRecommendation) -> TaskPools:
    """Apply the recommended restrictions to the pools.

    Frozen SOON tasks leave selection for now; they are not modified.
    """
    update = {}
    if recommendation.freeze_soon and pools.soon:
        logger.debug(f"Detox {recommendation.mode.value}: freezing {len(pools.soon)} SOON tasks")
        update["soon"] = []
    if recommendation.today_cap is not None and len(pools.today) > recommendation.today_cap:
        update["today"] = pools.today[: recommendation.today_cap]
    if not update:
        return pools
    return pools.model_copy(update=update)


def check_task_addition(recommendation: DetoxRecommendation) -> FrictionPrompt:
    """Friction to show when the user adds a task; never a refusal."""
    if not recommendation.review_before_add:
        return FrictionPrompt(message=recommendation.message)
    return FrictionPrompt(
        allowed=True,
        requires_review=True,
        title="Older tasks are piling up",
        message=recommendation.message,
        options=["review_now", "proceed_anyway"],
    )


def track_daily_tai(tracker: DetoxTracker, tai: float, day: date) -> Tuple[DetoxTracker, DetoxMode]:
    """Record one day's TAI and return the new tracker with the resulting mode.

    The streak counts days above the threshold including `day`; the mode is
    resolved from the days already completed before it, so the first day
    above the threshold yields WARNING. A gap in the recorded days restarts
    the streak. Re-recording the same day leaves the streak unchanged.
    """
    if tracker.last_day == day:
        return tracker, get_detox_mode(tai, max(0, tracker.consecutive_days - 1))

    if tai <= TAI_THRESHOLD:
        streak = 0
    elif tracker.last_day is not None and (day - tracker.last_day).days == 1 and tracker.consecutive_days:
        streak = tracker.consecutive_days + 1
    else:
        streak = 1

    new_tracker = DetoxTracker(consecutive_days=streak, last_day=day)
    return new_tracker, get_detox_mode(tai, max(0, streak - 1))
