"""Tests for the Task Age Index and detox friction ladder.

Detox must only ever add friction: every mode keeps a "proceed anyway" path.
"""

from datetime import timedelta

import pytest

from focusdeck.engine.detox import (
    DetoxMode,
    DetoxTracker,
    apply_detox_to_pools,
    calculate_task_age_index,
    check_task_addition,
    get_detox_mode,
    recommend_detox_actions,
    track_daily_tai,
)
from focusdeck.engine.pools import TaskPools


class TestTaskAgeIndex:
    """Test calculate_task_age_index()."""

    def test_mean_age_in_days(self, make_task, reference_time):
        """Tasks created 2 and 5 days ago give a TAI of 3.5."""
        tasks = [
            make_task(created_at=reference_time - timedelta(days=2)),
            make_task(created_at=reference_time - timedelta(days=5)),
        ]
        assert calculate_task_age_index(tasks, reference_time) == pytest.approx(3.5)

    def test_tasks_without_creation_date_are_ignored(self, make_task, reference_time):
        tasks = [make_task(created_at=reference_time - timedelta(days=4)), make_task(created_at=None)]
        assert calculate_task_age_index(tasks, reference_time) == pytest.approx(4.0)

    def test_naive_and_aware_creation_dates(self, make_task, reference_time, aware_reference_time):
        """Naive creation dates are read as UTC against an aware reference."""
        tasks = [
            make_task(created_at=reference_time - timedelta(days=1)),
            make_task(created_at=aware_reference_time - timedelta(days=3)),
        ]
        assert calculate_task_age_index(tasks, aware_reference_time) == pytest.approx(2.0)
        assert calculate_task_age_index(tasks, reference_time) == pytest.approx(2.0)

    def test_no_dated_tasks(self, make_task, reference_time):
        assert calculate_task_age_index([], reference_time) == 0.0
        assert calculate_task_age_index([make_task(created_at=None)], reference_time) == 0.0


class TestDetoxMode:
    """Test get_detox_mode() escalation ladder."""

    def test_scenario_high_tai_long_streak(self):
        """TAI 3.5 above threshold for 5 days resolves to the strongest tier."""
        mode = get_detox_mode(3.5, 5)
        assert mode == DetoxMode.BLOCK

    @pytest.mark.parametrize(
        "tai, days, expected",
        [
            (2.0, 10, DetoxMode.NONE),
            (1.0, 0, DetoxMode.NONE),
            (2.5, 0, DetoxMode.WARNING),
            (2.5, 1, DetoxMode.SUGGESTION),
            (2.5, 2, DetoxMode.SUGGESTION),
            (2.5, 3, DetoxMode.BLOCK),
        ],
    )
    def test_ladder(self, tai, days, expected):
        assert get_detox_mode(tai, days) == expected


class TestRecommendations:
    """Test recommend_detox_actions() and check_task_addition()."""

    def test_block_restrictions(self):
        rec = recommend_detox_actions(DetoxMode.BLOCK)
        assert rec.freeze_soon
        assert rec.today_cap == 2
        assert rec.review_before_add
        assert rec.proceed_anyway_allowed

    def test_suggestion_has_no_restrictions(self):
        rec = recommend_detox_actions(DetoxMode.SUGGESTION)
        assert not rec.freeze_soon
        assert rec.today_cap is None
        assert rec.message

    def test_every_mode_allows_proceeding(self):
        """No detox mode is a hard refusal."""
        for mode in DetoxMode:
            assert recommend_detox_actions(mode).proceed_anyway_allowed
            assert check_task_addition(recommend_detox_actions(mode)).allowed

    def test_block_requires_review_with_proceed_option(self):
        prompt = check_task_addition(recommend_detox_actions(DetoxMode.BLOCK))
        assert prompt.allowed
        assert prompt.requires_review
        assert "proceed_anyway" in prompt.options

    def test_none_requires_nothing(self):
        prompt = check_task_addition(recommend_detox_actions(DetoxMode.NONE))
        assert not prompt.requires_review
        assert prompt.options == []


class TestApplyDetoxToPools:
    """Test apply_detox_to_pools()."""

    def test_block_freezes_soon_and_caps_today(self, make_task, reference_time):
        pools = TaskPools(
            reference_date=reference_time,
            today=[make_task() for _ in range(4)],
            soon=[make_task() for _ in range(2)],
        )

        restricted = apply_detox_to_pools(pools, recommend_detox_actions(DetoxMode.BLOCK))

        assert restricted.soon == []
        assert [t.id for t in restricted.today] == [t.id for t in pools.today[:2]]
        assert len(pools.soon) == 2

    def test_warning_leaves_pools_untouched(self, make_task, reference_time):
        pools = TaskPools(reference_date=reference_time, soon=[make_task()])
        assert apply_detox_to_pools(pools, recommend_detox_actions(DetoxMode.WARNING)) is pools


class TestTrackDailyTai:
    """Test track_daily_tai() explicit state passing."""

    def test_streak_escalates_day_by_day(self, reference_time):
        day = reference_time.date()
        tracker = DetoxTracker()
        modes = []
        for offset in range(4):
            tracker, mode = track_daily_tai(tracker, 3.0, day + timedelta(days=offset))
            modes.append(mode)

        assert tracker.consecutive_days == 4
        assert modes == [DetoxMode.WARNING, DetoxMode.SUGGESTION, DetoxMode.SUGGESTION, DetoxMode.BLOCK]

    def test_gap_restarts_streak(self, reference_time):
        day = reference_time.date()
        tracker, _ = track_daily_tai(DetoxTracker(), 3.0, day)
        tracker, mode = track_daily_tai(tracker, 3.0, day + timedelta(days=2))

        assert tracker.consecutive_days == 1
        assert mode == DetoxMode.WARNING

    def test_back_under_threshold_resets(self, reference_time):
        day = reference_time.date()
        tracker = DetoxTracker(consecutive_days=5, last_day=day - timedelta(days=1))
        tracker, mode = track_daily_tai(tracker, 1.5, day)

        assert tracker.consecutive_days == 0
        assert mode == DetoxMode.NONE

    def test_same_day_is_idempotent(self, reference_time):
        day = reference_time.date()
        first, mode_first = track_daily_tai(DetoxTracker(), 3.0, day)
        second, mode_second = track_daily_tai(first, 3.0, day)

        assert second == first
        assert mode_second == mode_first

    def test_input_tracker_not_mutated(self, reference_time):
        tracker = DetoxTracker()
        track_daily_tai(tracker, 3.0, reference_time.date())
        assert tracker.consecutive_days == 0
        assert tracker.last_day is None
