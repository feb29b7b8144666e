"""Time constraint handling for focusdeck.

Tasks with a scheduled clock time become fixed blocks on their day. Fixed
blocks carve the planning day into free slots, and movable tasks that would
run into a fixed block are kept out of that slot's candidates. All intervals
are half-open [start, end).
"""

import logging
import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from focusdeck.models.constants import (
    DEFAULT_DAY_END,
    DEFAULT_DAY_START,
    DEFAULT_FIXED_BLOCK_MINUTES,
    DEFAULT_TRANSITION_BUFFER_MINUTES,
)
from focusdeck.models.task import Task

logger = logging.getLogger(__name__)

_CLOCK_RE = re.compile(r"^\s*(\d{1,2})[:h](\d{2})\s*$")


class FixedBlock(BaseModel):
    """Calendar interval occupied by a scheduled task."""

    task: Task
    start: datetime
    end: datetime


class FreeSlot(BaseModel):
    """Interval of the planning day left free by fixed blocks."""

    start: datetime
    end: datetime
    duration: int = Field(..., description="Length in minutes")


def parse_scheduled_time(value: Optional[str]) -> Optional[time]:
    """Parse "HH:MM" or "HHhMM"; returns None for missing or malformed values."""
    if not value:
        return None
    match = _CLOCK_RE.match(value)
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return time(hours, minutes)


def parse_clock(value: str) -> time:
    """Strict variant of parse_scheduled_time used for configuration values."""
    parsed = parse_scheduled_time(value)
    if parsed is None:
        raise ValueError(f"Invalid clock time: {value!r} (expected HH:MM)")
    return parsed


def as_utc(moment: datetime) -> datetime:
    """Timezone-aware UTC view of a datetime. Naive values are taken as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def align_to(moment: datetime, reference: datetime) -> datetime:
    """Express a datetime in the timezone convention of the reference.

    Naive values are taken as UTC, so a naive and an aware datetime can be
    subtracted or compared once one is aligned to the other.
    """
    if reference.tzinfo is None:
        if moment.tzinfo is None:
            return moment
        return moment.astimezone(timezone.utc).replace(tzinfo=None)
    return as_utc(moment).astimezone(reference.tzinfo)


def scheduled_datetime(task: Task, day: date, tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """Datetime at which a scheduled task starts on the given day."""
    clock = parse_scheduled_time(task.scheduled_time)
    if clock is None:
        return None
    return datetime.combine(day, clock, tzinfo=tz)


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval overlap test."""
    return a_start < b_end and b_start < a_end


def identify_fixed_blocks(tasks: Sequence[Task], day: date, tz: Optional[tzinfo] = None) -> List[FixedBlock]:
    """Fixed blocks for the given day, sorted by start time.

    A scheduled task with a deadline on another day does not occupy this day.
    Tasks without a duration occupy a default-length block.
    """
    day_start = datetime.combine(day, time.min, tzinfo=tz)
    blocks: List[FixedBlock] = []
    for task in tasks:
        if not task.is_selectable():
            continue
        if task.deadline is not None and align_to(task.deadline, day_start).date() != day:
            continue
        start = scheduled_datetime(task, day, tz)
        if start is None:
            continue
        minutes = task.duration or DEFAULT_FIXED_BLOCK_MINUTES
        blocks.append(FixedBlock(task=task, start=start, end=start + timedelta(minutes=minutes)))

    return sorted(blocks, key=lambda b: b.start)


def calculate_free_slots(
    blocks: Sequence[FixedBlock],
    day: date,
    day_start: str = DEFAULT_DAY_START,
    day_end: str = DEFAULT_DAY_END,
    transition_buffer: int = DEFAULT_TRANSITION_BUFFER_MINUTES,
    tz: Optional[tzinfo] = None,
) -> List[FreeSlot]:
    """Free slots of the day window once fixed blocks and their buffers are removed.

    Slots shorter than the transition buffer are discarded.
    """
    window_start = datetime.combine(day, parse_clock(day_start), tzinfo=tz)
    window_end = datetime.combine(day, parse_clock(day_end), tzinfo=tz)
    if window_end <= window_start:
        raise ValueError(f"Day window is empty: {day_start} - {day_end}")

    buffer = timedelta(minutes=transition_buffer)
    busy = []
    for block in sorted(blocks, key=lambda b: b.start):
        start = max(window_start, block.start - buffer)
        end = min(window_end, block.end + buffer)
        if start >= end:
            continue
        if busy and start <= busy[-1][1]:
            busy[-1] = (busy[-1][0], max(busy[-1][1], end))
        else:
            busy.append((start, end))

    slots: List[FreeSlot] = []
    cursor = window_start
    for start, end in busy + [(window_end, window_end)]:
        if start > cursor:
            minutes = int((start - cursor).total_seconds() // 60)
            if minutes > 0 and minutes >= transition_buffer:
                slots.append(FreeSlot(start=cursor, end=start, duration=minutes))
        cursor = max(cursor, end)

    return slots


def resolve_time_conflicts(tasks: Sequence[Task], day: date, tz: Optional[tzinfo] = None) -> List[Task]:
    """Drop scheduled tasks whose block collides with an earlier fixed block.

    Earlier blocks are immutable; the later colliding task is left out.
    Input order is preserved for the tasks that remain.
    """
    kept: List[FixedBlock] = []
    dropped = set()
    for block in identify_fixed_blocks(tasks, day, tz):
        if any(intervals_overlap(block.start, block.end, k.start, k.end) for k in kept):
            logger.debug(f"Task {block.task.id} collides with an earlier fixed block; excluded")
            dropped.add(block.task.id)
        else:
            kept.append(block)

    return [task for task in tasks if task.id not in dropped]


def candidates_for_slot(
    tasks: Sequence[Task],
    blocks: Sequence[FixedBlock],
    slot_start: datetime,
) -> List[Task]:
    """Movable tasks that can start at the slot without running into a fixed block.

    Tasks that own a fixed block are never candidates; they are bound to the
    session as fixed tasks instead.
    """
    fixed_ids = {block.task.id for block in blocks}
    candidates = []
    for task in tasks:
        if task.id in fixed_ids:
            continue
        task_end = slot_start + timedelta(minutes=task.duration)
        if any(intervals_overlap(slot_start, task_end, b.start, b.end) for b in blocks):
            continue
        candidates.append(task)
    return candidates
