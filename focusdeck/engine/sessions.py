"""Session lifecycle for focusdeck.

A session binds a playlist to a time slot and moves through:

    PLANNED -> IN_PROGRESS -> COMPLETED | EXHAUSTED | BLOCKED
    PLANNED -> BLOCKED

COMPLETED is only reachable with explicit user confirmation. Elapsed time or
finished tasks can only suggest EXHAUSTED; the engine never completes a
session on its own. Every transition returns a new Session record.
"""

import logging
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field

from focusdeck.config import EngineSettings, get_settings
from focusdeck.engine.capacity import calculate_session_capacity
from focusdeck.engine.deadlines import (
    DeadlineAnalysis,
    TriageMode,
    analyze_deadlines,
    determine_triage_mode,
    generate_deadline_suggestions,
    tasks_due_by,
)
from focusdeck.engine.energy import predict_energy_state
from focusdeck.engine.invariants import InvariantContext, check_all_invariants
from focusdeck.engine.selector import generate_playlist
from focusdeck.engine.time_constraints import (
    FixedBlock,
    FreeSlot,
    align_to,
    calculate_free_slots,
    candidates_for_slot,
    identify_fixed_blocks,
    intervals_overlap,
    resolve_time_conflicts,
)
from focusdeck.models.energy import EnergyLevel, EnergyStability, EnergyState
from focusdeck.models.session import Session, SessionState, TimeWindow
from focusdeck.models.task import Task

logger = logging.getLogger(__name__)

# Free slots longer than this are split into several sessions
MAX_SESSION_MINUTES = 120


class InvalidSessionTransition(ValueError):
    """Raised when a session is asked to move to a state it cannot reach."""


ALLOWED_TRANSITIONS: Dict[SessionState, FrozenSet[SessionState]] = {
    SessionState.PLANNED: frozenset({SessionState.IN_PROGRESS, SessionState.BLOCKED}),
    SessionState.IN_PROGRESS: frozenset(
        {SessionState.COMPLETED, SessionState.EXHAUSTED, SessionState.BLOCKED}
    ),
    SessionState.COMPLETED: frozenset(),
    SessionState.EXHAUSTED: frozenset(),
    SessionState.BLOCKED: frozenset(),
}


class StandardTimeSlot(BaseModel):
    """Default slot of the day with its expected energy."""

    start_time: str
    end_time: str
    energy: EnergyState
    label: str


class SessionProgress(BaseModel):
    """Read-only progress report; never changes the session state."""

    session_id: str
    state: SessionState
    elapsed_minutes: int = 0
    remaining_minutes: int = 0
    completed_tasks: int = 0
    total_tasks: int = 0
    suggest_exhausted: bool = False
    suggestion_reason: Optional[str] = None
    can_complete: bool = Field(False, description="Whether the user may confirm completion now")


class DayPlan(BaseModel):
    """Sessions built around the fixed blocks of one day."""

    day: date
    fixed_blocks: List[FixedBlock] = Field(default_factory=list)
    free_slots: List[FreeSlot] = Field(default_factory=list)
    sessions: List[Session] = Field(default_factory=list)
    deadline_analysis: DeadlineAnalysis
    triage: TriageMode
    suggestions: List[str] = Field(default_factory=list)


def generate_standard_time_slots() -> List[StandardTimeSlot]:
    return [
        StandardTimeSlot(
            start_time="08:00", end_time="10:00",
            energy=EnergyState(level=EnergyLevel.MEDIUM, stability=EnergyStability.STABLE),
            label="Morning - warming up",
        ),
        StandardTimeSlot(
            start_time="10:00", end_time="12:00",
            energy=EnergyState(level=EnergyLevel.HIGH, stability=EnergyStability.STABLE),
            label="Morning - energy peak",
        ),
        StandardTimeSlot(
            start_time="12:00", end_time="14:00",
            energy=EnergyState(level=EnergyLevel.MEDIUM, stability=EnergyStability.VOLATILE),
            label="Early afternoon - post-lunch dip",
        ),
        StandardTimeSlot(
            start_time="14:00", end_time="16:00",
            energy=EnergyState(level=EnergyLevel.MEDIUM, stability=EnergyStability.VOLATILE),
            label="Afternoon - picking back up",
        ),
        StandardTimeSlot(
            start_time="16:00", end_time="18:00",
            energy=EnergyState(level=EnergyLevel.MEDIUM, stability=EnergyStability.STABLE),
            label="Late afternoon - final stretch",
        ),
        StandardTimeSlot(
            start_time="18:00", end_time="20:00",
            energy=EnergyState(level=EnergyLevel.LOW, stability=EnergyStability.STABLE),
            label="Evening - light tasks",
        ),
    ]


def label_for_time(moment: datetime) -> str:
    """Label of the standard slot containing the given time, or empty."""
    clock = moment.strftime("%H:%M")
    for slot in generate_standard_time_slots():
        if slot.start_time <= clock < slot.end_time:
            return slot.label
    return ""


def session_id_for(start: datetime) -> str:
    """Sessions are unique per time slot, so the id derives from the slot start."""
    return f"session_{start:%Y%m%dT%H%M}"


def _overlap_minutes(start: datetime, end: datetime, block: FixedBlock) -> int:
    overlap = min(end, block.end) - max(start, block.start)
    return max(0, int(overlap.total_seconds() // 60))


def create_session(
    start: datetime,
    end: datetime,
    tasks: Sequence[Task],
    *,
    energy: Optional[EnergyState] = None,
    energy_pattern: Optional[Dict[str, Any]] = None,
    label: Optional[str] = None,
    reference_time: Optional[datetime] = None,
    detox_consecutive_days: int = 0,
    settings: Optional[EngineSettings] = None,
) -> Session:
    """Create a PLANNED session for a time slot.

    Predicts energy for the slot unless one is given, binds the fixed blocks
    that fall inside it and builds a playlist bounded by the time left over.
    The selector validates that playlist against a ceiling no looser than
    the slot capacity and falls back on failure, so session creation itself
    never fails for a rule violation.

    Args:
        start: Slot start
        end: Slot end (must be after start)
        tasks: Task snapshot
        energy: Energy for the slot; predicted from the start hour when omitted
        energy_pattern: User-specific override for the prediction
        label: Display label; defaults to the standard slot label
        reference_time: "Now" for pool classification (defaults to start)
        detox_consecutive_days: Days the TAI has stayed above the threshold
        settings: Engine settings (defaults to the environment)

    Returns:
        New session in PLANNED state
    """
    end = align_to(end, start)
    if end <= start:
        raise ValueError(f"Session end {end} must be after start {start}")

    settings = settings or get_settings()
    reference = align_to(reference_time, start) if reference_time is not None else start
    if energy is None:
        energy = predict_energy_state(start.hour, energy_pattern)

    duration = int((end - start).total_seconds() // 60)

    blocks = identify_fixed_blocks(tasks, start.date(), start.tzinfo)
    in_slot = [b for b in blocks if intervals_overlap(start, end, b.start, b.end)]
    fixed_minutes = sum(_overlap_minutes(start, end, b) for b in in_slot)
    available = max(0, duration - fixed_minutes)

    movable = candidates_for_slot(tasks, blocks, start)
    playlist = generate_playlist(
        movable,
        energy,
        reference,
        session_duration_minutes=available,
        detox_consecutive_days=detox_consecutive_days,
        settings=settings,
    )

    session = Session(
        id=session_id_for(start),
        time_slot=TimeWindow(start=start, end=end),
        state=SessionState.PLANNED,
        playlist=playlist,
        predicted_energy=energy,
        fixed_tasks=[b.task for b in in_slot],
        duration=duration,
        label=label if label is not None else label_for_time(start),
    )
    logger.debug(f"Created session {session.id} ({duration} min, {len(playlist.tasks)} tasks)")
    return session


def transition_session(
    session: Session,
    target: SessionState,
    *,
    user_confirmed: bool = False,
    reason: Optional[str] = None,
) -> Session:
    """Move a session to a new state.

    Raises:
        InvalidSessionTransition: if the move is not allowed from the current
            state, or targets COMPLETED without user confirmation
    """
    current = SessionState(session.state)
    target = SessionState(target)

    if target == SessionState.COMPLETED and not user_confirmed:
        raise InvalidSessionTransition(
            f"Session {session.id} can only be completed with explicit user confirmation"
        )
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidSessionTransition(
            f"Session {session.id} cannot move from {current.value} to {target.value}"
        )

    update: Dict[str, Any] = {"state": target}
    if target == SessionState.BLOCKED:
        update["blocked_reason"] = reason
    logger.info(f"Session {session.id}: {current.value} -> {target.value}")
    return session.model_copy(update=update)


def start_session(session: Session) -> Session:
    return transition_session(session, SessionState.IN_PROGRESS)


def complete_session(session: Session, user_confirmed: bool) -> Session:
    """Complete a session; only an explicit user confirmation may do this."""
    return transition_session(session, SessionState.COMPLETED, user_confirmed=user_confirmed)


def exhaust_session(session: Session) -> Session:
    return transition_session(session, SessionState.EXHAUSTED)


def block_session(session: Session, reason: str) -> Session:
    """Block a session because of an external constraint conflict."""
    return transition_session(session, SessionState.BLOCKED, reason=reason)


def check_session_progress(
    session: Session, now: datetime, completed_task_ids: Iterable[str] = ()
) -> SessionProgress:
    """Report progress and, at most, suggest EXHAUSTED.

    Elapsed time past the slot or every bound task being done yields a
    suggestion only. The session is returned untouched by the caller's
    choice; completion still needs the user's confirmation.
    """
    state = SessionState(session.state)
    done = set(completed_task_ids)
    playlist_ids = [task.id for task in session.playlist.tasks]
    completed = sum(1 for task_id in playlist_ids if task_id in done)

    start = session.time_slot.start
    elapsed = max(0, int((align_to(now, start) - start).total_seconds() // 60))
    remaining = max(0, session.duration - elapsed)

    reason = None
    if state == SessionState.IN_PROGRESS:
        if elapsed >= session.duration:
            reason = "The planned time for this session is over"
        elif playlist_ids and completed == len(playlist_ids):
            reason = "Every task of this session is done"

    return SessionProgress(
        session_id=session.id,
        state=state,
        elapsed_minutes=elapsed,
        remaining_minutes=remaining,
        completed_tasks=completed,
        total_tasks=len(playlist_ids),
        suggest_exhausted=reason is not None,
        suggestion_reason=reason,
        can_complete=state == SessionState.IN_PROGRESS,
    )


def is_session_valid(
    session: Session,
    max_load: Optional[float] = None,
    available_tasks: Optional[Sequence[Task]] = None,
) -> bool:
    """Check a session's playlist against every invariant.

    Uses the session's own capacity when no ceiling is given. Pass the tasks
    the playlist was drawn from to allow the quick-win waiver.
    """
    if max_load is None:
        max_load = calculate_session_capacity(session.duration, session.predicted_energy)
    report = check_all_invariants(
        InvariantContext(
            tasks=tuple(session.playlist.tasks),
            energy=session.predicted_energy,
            max_load=max_load,
            available_tasks=tuple(available_tasks) if available_tasks is not None else None,
        )
    )
    return report.all_valid


def _split_slot(slot: FreeSlot, max_minutes: int = MAX_SESSION_MINUTES) -> List[FreeSlot]:
    pieces = []
    cursor = slot.start
    while cursor < slot.end:
        piece_end = min(slot.end, cursor + timedelta(minutes=max_minutes))
        minutes = int((piece_end - cursor).total_seconds() // 60)
        pieces.append(FreeSlot(start=cursor, end=piece_end, duration=minutes))
        cursor = piece_end
    return pieces


def plan_day(
    tasks: Sequence[Task],
    day: date,
    *,
    energy_pattern: Optional[Dict[str, Any]] = None,
    detox_consecutive_days: int = 0,
    settings: Optional[EngineSettings] = None,
    tz: Optional[tzinfo] = None,
) -> DayPlan:
    """Plan a day: fixed blocks, free slots and one session per free slot.

    Free slots longer than two hours are split. A task is proposed in at
    most one session of the day. Deadline overload is measured against the
    total free time.
    """
    settings = settings or get_settings()
    selectable = [task for task in tasks if task.is_selectable()]
    kept = resolve_time_conflicts(selectable, day, tz)

    blocks = identify_fixed_blocks(kept, day, tz)
    free_slots = calculate_free_slots(
        blocks, day, settings.day_start, settings.day_end, settings.transition_buffer_min, tz
    )

    sessions: List[Session] = []
    planned_ids = set()
    for slot in free_slots:
        for piece in _split_slot(slot):
            remaining = [task for task in kept if task.id not in planned_ids]
            session = create_session(
                piece.start,
                piece.end,
                remaining,
                energy_pattern=energy_pattern,
                detox_consecutive_days=detox_consecutive_days,
                settings=settings,
            )
            planned_ids.update(task.id for task in session.playlist.tasks)
            sessions.append(session)

    available = sum(slot.duration for slot in free_slots)
    due = tasks_due_by(kept, datetime.combine(day, time.min, tzinfo=tz))
    analysis = analyze_deadlines(due, available)
    triage = determine_triage_mode(analysis)

    logger.info(f"Planned {day}: {len(blocks)} fixed blocks, {len(sessions)} sessions")
    return DayPlan(
        day=day,
        fixed_blocks=blocks,
        free_slots=free_slots,
        sessions=sessions,
        deadline_analysis=analysis,
        triage=triage,
        suggestions=generate_deadline_suggestions(triage),
    )
