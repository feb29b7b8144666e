"""FastAPI web application for focusdeck."""

import logging
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from focusdeck.config import get_settings
from focusdeck.engine.deadlines import (
    DeadlineAnalysis,
    OptimizedLoad,
    TriageMode,
    analyze_deadlines,
    determine_triage_mode,
    generate_deadline_suggestions,
    select_within_available_time,
    tasks_due_by,
    triage_tasks_by_priority,
)
from focusdeck.engine.detox import (
    DetoxMode,
    DetoxRecommendation,
    DetoxTracker,
    FrictionPrompt,
    calculate_task_age_index,
    check_task_addition,
    get_detox_mode,
    recommend_detox_actions,
    track_daily_tai,
)
from focusdeck.engine.invariants import validate_playlist
from focusdeck.engine.selector import generate_playlist
from focusdeck.engine.sessions import (
    DayPlan,
    InvalidSessionTransition,
    SessionProgress,
    block_session,
    check_session_progress,
    complete_session,
    create_session,
    exhaust_session,
    plan_day,
    start_session,
)
from focusdeck.models.audit_event import AuditEvent, AuditEventType
from focusdeck.models.energy import EnergyState
from focusdeck.models.playlist import InvariantViolation, Playlist
from focusdeck.models.session import Session
from focusdeck.models.task import Effort, Impact, Task, Urgency
from focusdeck.models.task_factory import create_task_base

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="focusdeck API",
    description="Proposes a small, bounded set of tasks for right now",
    version="0.1.0"
)

# In-memory storage standing in for the persistence collaborator
tasks_store: Dict[str, Task] = {}
sessions_store: Dict[str, Session] = {}
audit_log: List[AuditEvent] = []
detox_state: Dict[str, DetoxTracker] = {"tracker": DetoxTracker()}


# Request models
class TaskCreateRequest(BaseModel):
    """Request body for task creation."""
    title: str
    description: Optional[str] = None
    duration: Optional[int] = Field(None, ge=0)
    effort: Optional[Effort] = None
    urgency: Optional[Urgency] = None
    impact: Optional[Impact] = None
    deadline: Optional[datetime] = None
    scheduled_time: Optional[str] = None
    category: Optional[str] = None


class PlaylistRequest(BaseModel):
    """Request body for playlist generation."""
    energy: EnergyState
    reference_time: Optional[datetime] = None
    session_duration_minutes: Optional[int] = Field(None, ge=0)
    detox_consecutive_days: Optional[int] = Field(None, ge=0)
    task_ids: Optional[List[str]] = Field(None, description="Restrict the decision to these tasks")


class ValidateRequest(BaseModel):
    playlist: Playlist
    energy: EnergyState
    max_load: float = Field(..., ge=0)
    available_task_ids: Optional[List[str]] = None


class SessionCreateRequest(BaseModel):
    """Request body for session creation."""
    start: datetime
    end: datetime
    energy: Optional[EnergyState] = Field(None, description="Omit to predict from the slot start")
    label: Optional[str] = None
    reference_time: Optional[datetime] = None
    detox_consecutive_days: Optional[int] = Field(None, ge=0)


class CompleteRequest(BaseModel):
    user_confirmed: bool = False


class BlockRequest(BaseModel):
    reason: str


class TriageRequest(BaseModel):
    available_minutes: Optional[int] = Field(None, ge=0)
    reference_time: Optional[datetime] = None
    task_ids: Optional[List[str]] = None


# Response models
class TaskCreateResponse(BaseModel):
    """Created task plus the detox friction to show, if any."""
    task: Task
    friction: FrictionPrompt


class ValidationResponse(BaseModel):
    valid: bool
    playlist: Optional[Playlist] = None
    violation: Optional[InvariantViolation] = None


class DetoxResponse(BaseModel):
    """Current Task Age Index and the resulting detox mode."""
    tai: float
    consecutive_days: int
    mode: DetoxMode
    recommendation: DetoxRecommendation


class TriageResponse(BaseModel):
    analysis: DeadlineAnalysis
    triage: TriageMode
    ordered_tasks: List[Task]
    selection: OptimizedLoad
    suggestions: List[str] = Field(default_factory=list)


def _record(event_type: AuditEventType, entity_id: str, details: Optional[Dict[str, Any]] = None) -> None:
    """Append a decision trace once the decision has completed."""
    audit_log.append(
        AuditEvent(
            id=str(uuid.uuid4()),
            event_type=event_type,
            entity_id=entity_id,
            details=details or {},
        )
    )


def _select_tasks(task_ids: Optional[List[str]]) -> List[Task]:
    if task_ids is None:
        return list(tasks_store.values())
    missing = [task_id for task_id in task_ids if task_id not in tasks_store]
    if missing:
        raise HTTPException(status_code=404, detail=f"Unknown task ids: {', '.join(missing)}")
    return [tasks_store[task_id] for task_id in task_ids]


def _get_session(session_id: str) -> Session:
    session = sessions_store.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return session


def _current_detox_mode(now: datetime) -> DetoxMode:
    tracker = detox_state["tracker"]
    tai = calculate_task_age_index([t for t in tasks_store.values() if t.is_selectable()], now)
    return get_detox_mode(tai, tracker.consecutive_days)


def _transition(session_id: str, action, *args) -> Session:
    session = _get_session(session_id)
    previous = session.state
    try:
        updated = action(session, *args)
    except InvalidSessionTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    sessions_store[session_id] = updated
    _record(
        AuditEventType.SESSION_TRANSITIONED,
        session_id,
        {"from": previous.value, "to": updated.state.value, "blocked_reason": updated.blocked_reason},
    )
    return updated


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "version": "0.1.0"}


@app.post("/tasks", response_model=TaskCreateResponse, status_code=201)
async def create_task(request: TaskCreateRequest):
    """Create a task. Detox may add friction but never refuses the task."""
    try:
        task = create_task_base(
            title=request.title,
            description=request.description,
            duration=request.duration,
            effort=request.effort,
            urgency=request.urgency,
            impact=request.impact,
            deadline=request.deadline,
            scheduled_time=request.scheduled_time,
            category=request.category,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    friction = check_task_addition(recommend_detox_actions(_current_detox_mode(datetime.utcnow())))
    tasks_store[task.id] = task
    _record(AuditEventType.TASK_CREATED, task.id, {"title": task.title, "requires_review": friction.requires_review})
    return TaskCreateResponse(task=task, friction=friction)


@app.get("/tasks", response_model=List[Task])
async def list_tasks():
    return list(tasks_store.values())


@app.get("/tasks/{task_id}", response_model=Task)
async def get_task(task_id: str):
    task = tasks_store.get(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
    return task


@app.post("/playlist", response_model=Playlist)
async def build_playlist(request: PlaylistRequest):
    """Generate the playlist to propose right now."""
    tasks = _select_tasks(request.task_ids)
    reference = request.reference_time or datetime.utcnow()
    detox_days = request.detox_consecutive_days
    if detox_days is None:
        detox_days = detox_state["tracker"].consecutive_days

    try:
        playlist = generate_playlist(
            tasks,
            request.energy,
            reference,
            session_duration_minutes=request.session_duration_minutes,
            detox_consecutive_days=detox_days,
            settings=get_settings(),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    event_type = AuditEventType.FALLBACK_APPLIED if playlist.fallback else AuditEventType.PLAYLIST_GENERATED
    _record(
        event_type,
        "playlist",
        {
            "task_ids": [t.id for t in playlist.tasks],
            "fallback": playlist.fallback,
            "detox_mode": playlist.detox_mode,
            "warnings": playlist.warnings,
        },
    )
    return playlist


@app.post("/playlist/validate", response_model=ValidationResponse)
async def validate(request: ValidateRequest):
    """Validate a playlist; rule violations are reported, not raised."""
    available = None
    if request.available_task_ids is not None:
        available = _select_tasks(request.available_task_ids)

    try:
        result = validate_playlist(request.playlist, request.energy, request.max_load, available_tasks=available)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if isinstance(result, InvariantViolation):
        response = ValidationResponse(valid=False, violation=result)
    else:
        response = ValidationResponse(valid=True, playlist=result)
    _record(
        AuditEventType.PLAYLIST_VALIDATED,
        "playlist",
        {"valid": response.valid, "invalid_invariants": result.invalid_invariants if not response.valid else []},
    )
    return response


@app.post("/sessions", response_model=Session, status_code=201)
async def create_session_endpoint(request: SessionCreateRequest):
    """Create a PLANNED session for a time slot (one per slot)."""
    detox_days = request.detox_consecutive_days
    if detox_days is None:
        detox_days = detox_state["tracker"].consecutive_days

    try:
        session = create_session(
            request.start,
            request.end,
            list(tasks_store.values()),
            energy=request.energy,
            label=request.label,
            reference_time=request.reference_time,
            detox_consecutive_days=detox_days,
            settings=get_settings(),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if session.id in sessions_store:
        raise HTTPException(status_code=409, detail=f"A session already exists for slot {session.id}")

    sessions_store[session.id] = session
    _record(
        AuditEventType.SESSION_CREATED,
        session.id,
        {
            "task_ids": [t.id for t in session.playlist.tasks],
            "fixed_task_ids": [t.id for t in session.fixed_tasks],
            "fallback": session.playlist.fallback,
        },
    )
    return session


@app.get("/sessions/{session_id}", response_model=Session)
async def get_session(session_id: str):
    return _get_session(session_id)


@app.post("/sessions/{session_id}/start", response_model=Session)
async def start_session_endpoint(session_id: str):
    return _transition(session_id, start_session)


@app.post("/sessions/{session_id}/complete", response_model=Session)
async def complete_session_endpoint(session_id: str, request: CompleteRequest):
    """Complete a session; requires user_confirmed=true."""
    return _transition(session_id, complete_session, request.user_confirmed)


@app.post("/sessions/{session_id}/exhaust", response_model=Session)
async def exhaust_session_endpoint(session_id: str):
    return _transition(session_id, exhaust_session)


@app.post("/sessions/{session_id}/block", response_model=Session)
async def block_session_endpoint(session_id: str, request: BlockRequest):
    return _transition(session_id, block_session, request.reason)


@app.get("/sessions/{session_id}/progress", response_model=SessionProgress)
async def session_progress(
    session_id: str,
    now: Optional[datetime] = None,
    completed: List[str] = Query(default=[]),
):
    """Progress report; may suggest EXHAUSTED but never changes the session."""
    session = _get_session(session_id)
    return check_session_progress(session, now or datetime.utcnow(), completed)


@app.get("/detox", response_model=DetoxResponse)
async def detox(now: Optional[datetime] = None):
    """Record today's Task Age Index and report the detox mode."""
    now = now or datetime.utcnow()
    tai = calculate_task_age_index([t for t in tasks_store.values() if t.is_selectable()], now)
    tracker, mode = track_daily_tai(detox_state["tracker"], tai, now.date())
    detox_state["tracker"] = tracker
    return DetoxResponse(
        tai=tai,
        consecutive_days=tracker.consecutive_days,
        mode=mode,
        recommendation=recommend_detox_actions(mode),
    )


@app.post("/triage", response_model=TriageResponse)
async def triage(request: TriageRequest):
    """Check the due tasks for deadline overload and propose a triage order."""
    reference = request.reference_time or datetime.utcnow()
    if request.task_ids is not None:
        tasks = _select_tasks(request.task_ids)
    else:
        tasks = tasks_due_by(list(tasks_store.values()), reference)
    available = request.available_minutes
    if available is None:
        available = get_settings().triage_available_min

    analysis = analyze_deadlines(tasks, available)
    mode = determine_triage_mode(analysis)
    ordered = triage_tasks_by_priority(tasks)
    selection = select_within_available_time(ordered, available)

    _record(
        AuditEventType.TRIAGE_EVALUATED,
        "triage",
        {"load_ratio": None if analysis.load_ratio == float("inf") else analysis.load_ratio, "active": mode.active},
    )
    return TriageResponse(
        analysis=analysis,
        triage=mode,
        ordered_tasks=ordered,
        selection=selection,
        suggestions=generate_deadline_suggestions(mode),
    )


@app.get("/day-plan", response_model=DayPlan)
async def day_plan(day: Optional[date] = None):
    """Plan sessions around the fixed blocks of a day. Sessions are not stored."""
    day = day or datetime.utcnow().date()
    try:
        plan = plan_day(
            list(tasks_store.values()),
            day,
            detox_consecutive_days=detox_state["tracker"].consecutive_days,
            settings=get_settings(),
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Day plan for {day}: {len(plan.sessions)} sessions")
    return plan


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
