"""Tests for the session lifecycle and day planning."""

from datetime import timedelta, timezone

import pytest

from focusdeck.config import EngineSettings
from focusdeck.engine import selector
from focusdeck.engine.sessions import (
    InvalidSessionTransition,
    block_session,
    check_session_progress,
    complete_session,
    create_session,
    exhaust_session,
    generate_standard_time_slots,
    is_session_valid,
    plan_day,
    start_session,
    transition_session,
)
from focusdeck.models.energy import EnergyLevel
from focusdeck.models.session import SessionState
from focusdeck.models.task import Effort, Urgency


@pytest.fixture
def slot(reference_time):
    start = reference_time.replace(hour=10)
    return start, start + timedelta(hours=1)


@pytest.fixture
def planned_session(slot, make_task, quick_win_task, engine_settings):
    start, end = slot
    return create_session(start, end, [quick_win_task, make_task(category="work")], settings=engine_settings)


class TestCreateSession:
    """Test create_session()."""

    def test_basic_session(self, planned_session):
        assert planned_session.id == "session_20260310T1000"
        assert planned_session.state == SessionState.PLANNED
        assert planned_session.label == "Morning - energy peak"
        assert planned_session.duration == 60
        assert planned_session.predicted_energy.level == EnergyLevel.HIGH
        assert planned_session.playlist.tasks

    def test_explicit_energy_and_label(self, slot, quick_win_task, low_energy, engine_settings):
        start, end = slot
        session = create_session(start, end, [quick_win_task], energy=low_energy, label="Focus", settings=engine_settings)
        assert session.predicted_energy == low_energy
        assert session.label == "Focus"

    def test_fixed_tasks_are_bound(self, slot, make_task, quick_win_task, engine_settings):
        start, end = slot
        meeting = make_task(title="Call", scheduled_time="10:30", duration=20)
        report = make_task(duration=30, category="work")
        too_long = make_task(duration=45, category="other")

        session = create_session(start, end, [meeting, quick_win_task, report, too_long], settings=engine_settings)

        assert [t.id for t in session.fixed_tasks] == [meeting.id]
        playlist_ids = {t.id for t in session.playlist.tasks}
        assert meeting.id not in playlist_ids
        assert too_long.id not in playlist_ids
        assert sum(t.duration for t in session.playlist.tasks) <= 40

    def test_end_before_start_raises(self, slot, sample_task, engine_settings):
        start, _ = slot
        with pytest.raises(ValueError):
            create_session(start, start, [sample_task], settings=engine_settings)

    def test_rule_violation_never_fails_creation(self, reference_time, make_task, engine_settings):
        """Evening energy is low; heavy tasks leave a fallback playlist instead of an error."""
        start = reference_time.replace(hour=18)
        tasks = [make_task(effort=Effort.HIGH, category=f"c{i}") for i in range(3)]

        session = create_session(start, start + timedelta(hours=1), tasks, settings=engine_settings)

        assert session.playlist.fallback is not None
        assert session.playlist.tasks == []

    def test_candidates_are_collected_once(self, monkeypatch, slot, make_task, quick_win_task, engine_settings):
        calls = []
        collect = selector.collect_candidates

        def counting_collect(*args, **kwargs):
            calls.append(args)
            return collect(*args, **kwargs)

        monkeypatch.setattr(selector, "collect_candidates", counting_collect)
        start, end = slot

        create_session(start, end, [quick_win_task, make_task(category="work")], settings=engine_settings)

        assert len(calls) == 1


class TestTimezoneAwareSessions:
    """Aware slots work with naive task timestamps and naive "now" values."""

    def test_aware_slot(self, aware_reference_time, make_task, quick_win_task, engine_settings):
        start = aware_reference_time.replace(hour=10)
        session = create_session(
            start, start + timedelta(hours=1), [quick_win_task, make_task(category="work")], settings=engine_settings
        )

        assert session.id == "session_20260310T1000"
        assert session.duration == 60
        assert session.playlist.tasks

    def test_naive_end_and_reference_with_aware_start(self, aware_reference_time, reference_time, quick_win_task, engine_settings):
        start = aware_reference_time.replace(hour=10)
        end = reference_time.replace(hour=11)

        session = create_session(start, end, [quick_win_task], reference_time=reference_time, settings=engine_settings)

        assert session.duration == 60
        assert session.time_slot.end.tzinfo == timezone.utc

    def test_progress_with_naive_now(self, aware_reference_time, reference_time, quick_win_task, engine_settings):
        start = aware_reference_time.replace(hour=10)
        session = start_session(create_session(start, start + timedelta(hours=1), [quick_win_task], settings=engine_settings))

        progress = check_session_progress(session, reference_time.replace(hour=10, minute=30))

        assert progress.elapsed_minutes == 30
        assert progress.remaining_minutes == 30

    def test_plan_day_in_utc(self, make_task, quick_win_task, reference_time, engine_settings):
        lunch = make_task(title="Lunch", scheduled_time="12:00", duration=60, deadline=reference_time.replace(hour=18))

        plan = plan_day([lunch, quick_win_task], reference_time.date(), settings=engine_settings, tz=timezone.utc)

        assert [b.task.id for b in plan.fixed_blocks] == [lunch.id]
        assert plan.sessions[0].time_slot.start.tzinfo == timezone.utc
        assert lunch.id not in [t.id for s in plan.sessions for t in s.playlist.tasks]


class TestTransitions:
    """Test the state machine."""

    def test_start_then_complete_with_confirmation(self, planned_session):
        running = start_session(planned_session)
        done = complete_session(running, user_confirmed=True)

        assert running.state == SessionState.IN_PROGRESS
        assert done.state == SessionState.COMPLETED
        assert planned_session.state == SessionState.PLANNED

    def test_completion_requires_confirmation(self, planned_session):
        running = start_session(planned_session)
        with pytest.raises(InvalidSessionTransition):
            complete_session(running, user_confirmed=False)

    def test_cannot_complete_from_planned(self, planned_session):
        with pytest.raises(InvalidSessionTransition):
            complete_session(planned_session, user_confirmed=True)

    def test_exhaust_only_from_in_progress(self, planned_session):
        with pytest.raises(InvalidSessionTransition):
            exhaust_session(planned_session)
        assert exhaust_session(start_session(planned_session)).state == SessionState.EXHAUSTED

    @pytest.mark.parametrize("started", [False, True])
    def test_block_records_reason(self, planned_session, started):
        session = start_session(planned_session) if started else planned_session
        blocked = block_session(session, "Meeting moved")
        assert blocked.state == SessionState.BLOCKED
        assert blocked.blocked_reason == "Meeting moved"

    @pytest.mark.parametrize("target", list(SessionState))
    def test_terminal_states_are_final(self, planned_session, target):
        blocked = block_session(planned_session, "conflict")
        with pytest.raises(InvalidSessionTransition):
            transition_session(blocked, target, user_confirmed=True)

    def test_invalid_transition_is_value_error(self, planned_session):
        with pytest.raises(ValueError):
            transition_session(planned_session, SessionState.PLANNED)


class TestProgress:
    """Progress only ever suggests."""

    def test_time_elapsed_suggests_exhausted(self, planned_session, slot):
        start, _ = slot
        running = start_session(planned_session)

        progress = check_session_progress(running, start + timedelta(minutes=70))

        assert progress.suggest_exhausted
        assert progress.state == SessionState.IN_PROGRESS
        assert progress.remaining_minutes == 0
        assert running.state == SessionState.IN_PROGRESS

    def test_all_tasks_done_suggests_exhausted(self, planned_session, slot):
        start, _ = slot
        running = start_session(planned_session)
        done_ids = [t.id for t in running.playlist.tasks]

        progress = check_session_progress(running, start + timedelta(minutes=20), done_ids)

        assert progress.suggest_exhausted
        assert progress.completed_tasks == progress.total_tasks
        assert progress.can_complete

    def test_midway_no_suggestion(self, planned_session, slot):
        start, _ = slot
        progress = check_session_progress(start_session(planned_session), start + timedelta(minutes=20))
        assert not progress.suggest_exhausted
        assert progress.elapsed_minutes == 20
        assert progress.remaining_minutes == 40

    def test_planned_session_cannot_complete(self, planned_session, slot):
        start, _ = slot
        progress = check_session_progress(planned_session, start + timedelta(minutes=90))
        assert not progress.suggest_exhausted
        assert not progress.can_complete


class TestSessionValidity:
    """Test is_session_valid()."""

    def test_created_session_is_valid(self, planned_session):
        assert is_session_valid(planned_session)

    def test_energy_mismatch_is_invalid(self, planned_session, make_task, low_energy):
        heavy = planned_session.playlist.model_copy(update={"tasks": [make_task(effort=Effort.HIGH)]})
        session = planned_session.model_copy(update={"playlist": heavy, "predicted_energy": low_energy})
        assert not is_session_valid(session)


class TestStandardSlots:
    def test_six_slots_over_the_day(self):
        slots = generate_standard_time_slots()
        assert len(slots) == 6
        assert slots[0].start_time == "08:00"
        assert slots[-1].end_time == "20:00"
        assert slots[-1].energy.level == EnergyLevel.LOW
        assert all(a.end_time == b.start_time for a, b in zip(slots, slots[1:]))


class TestPlanDay:
    """Test plan_day()."""

    def test_sessions_around_fixed_block(self, make_task, quick_win_task, reference_time, engine_settings):
        lunch = make_task(title="Lunch", scheduled_time="12:00", duration=60)
        tasks = [lunch, quick_win_task] + [make_task(duration=30, category=f"c{i}") for i in range(6)]

        plan = plan_day(tasks, reference_time.date(), settings=engine_settings)

        assert [b.task.id for b in plan.fixed_blocks] == [lunch.id]
        assert [s.duration for s in plan.free_slots] == [230, 410]
        assert len(plan.sessions) == 6
        assert all(s.duration <= 120 for s in plan.sessions)
        proposed = [t.id for s in plan.sessions for t in s.playlist.tasks]
        assert len(proposed) == len(set(proposed))
        assert lunch.id not in proposed
        assert not plan.triage.active

    def test_deadline_overload_triage(self, make_task, reference_time):
        settings = EngineSettings(day_start="08:00", day_end="10:00")
        due = reference_time.replace(hour=18)
        tasks = [
            make_task(duration=180, urgency=Urgency.URGENT, deadline=due),
            make_task(duration=120, urgency=Urgency.HIGH, deadline=due),
            make_task(duration=90, deadline=due),
        ]

        plan = plan_day(tasks, reference_time.date(), settings=settings)

        assert plan.deadline_analysis.load_ratio == pytest.approx(3.25)
        assert plan.triage.active
        assert plan.suggestions[0] == "Deadline overload detected"
        assert len(plan.sessions) == 1

    def test_session_ids_are_unique(self, make_task, reference_time, engine_settings):
        plan = plan_day([make_task()], reference_time.date(), settings=engine_settings)
        ids = [s.id for s in plan.sessions]
        assert len(ids) == len(set(ids))
        assert ids[0] == "session_20260310T0800"
