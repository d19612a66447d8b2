"""Tests for RoutineEngine."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest

from routine.cards import NO_CANDIDATES_MESSAGE
from routine.engine import RoutineEngine
from routine.models import (
    AutonomyTier,
    CandidateItem,
    FeedbackAction,
    FeedbackContext,
    FeedbackCounts,
    FeedbackEvent,
    ItemKind,
    PreferenceVector,
)
from routine.store import ConcurrentUpdateError, StoreError

# Monday, noon
NOW = datetime(2024, 6, 3, 12, 0, 0, tzinfo=timezone.utc)
USER = "u_1"


def _accept(**kwargs) -> FeedbackEvent:
    return FeedbackEvent(FeedbackAction.ACCEPT, context=FeedbackContext(hour=12), **kwargs)


def _make_mock_store(**overrides) -> MagicMock:
    store = MagicMock()
    store.get_daily_plan.return_value = None
    store.get_preference_vector.return_value = PreferenceVector()
    store.list_active_candidates.return_value = []
    store.list_recent_feedback.return_value = []
    store.count_feedback_today.return_value = FeedbackCounts()
    store.sum_session_duration_today.return_value = 0
    for name, value in overrides.items():
        setattr(store, name, value)
    return store


class TestConstruction:
    def test_rejects_zero_attempts(self, store) -> None:
        with pytest.raises(ValueError, match="commit_attempts"):
            RoutineEngine(store, commit_attempts=0)


class TestGeneratePlan:
    def test_builds_cards(self, engine) -> None:
        plan = engine.generate_plan(USER, now=NOW)
        assert plan.user_id == USER
        assert plan.plan_date == NOW.date()
        assert [c.id for c in plan.cards] == ["card_1", "card_2", "card_3", "card_4"]
        assert plan.total_candidates == 6
        assert plan.message is None
        assert plan.cognitive_load.tier is AutonomyTier.MANUAL

    def test_no_candidates_gives_message(self, store) -> None:
        plan = RoutineEngine(store).generate_plan(USER, now=NOW)
        assert plan.cards == []
        assert plan.message == NO_CANDIDATES_MESSAGE

    def test_persists_plan(self, engine, seeded_store) -> None:
        engine.generate_plan(USER, now=NOW)
        assert seeded_store.get_daily_plan(USER, NOW.date()) is not None

    def test_returns_stored_plan_for_same_day(self, engine, seeded_store) -> None:
        first = engine.generate_plan(USER, now=NOW)
        seeded_store.add_candidate(USER, CandidateItem("t_new", ItemKind.TASK, "New task"))
        second = engine.generate_plan(USER, now=NOW + timedelta(hours=2))
        assert second.generated_at == first.generated_at
        assert second.total_candidates == 6

    def test_force_rebuilds(self, engine, seeded_store) -> None:
        engine.generate_plan(USER, now=NOW)
        seeded_store.add_candidate(USER, CandidateItem("t_new", ItemKind.TASK, "New task"))
        plan = engine.generate_plan(USER, now=NOW + timedelta(hours=2), force=True)
        assert plan.total_candidates == 7
        assert plan.generated_at == NOW + timedelta(hours=2)

    def test_new_day_builds_new_plan(self, engine) -> None:
        engine.generate_plan(USER, now=NOW)
        plan = engine.generate_plan(USER, now=NOW + timedelta(days=1))
        assert plan.plan_date == (NOW + timedelta(days=1)).date()

    def test_filters_by_frequency(self, engine, seeded_store) -> None:
        seeded_store.add_candidate(
            USER, CandidateItem("t_hike", ItemKind.TASK, "Hike", frequency="weekends")
        )
        plan = engine.generate_plan(USER, now=NOW)
        assert plan.total_candidates == 6

    def test_insights_reflect_preferences(self, engine, seeded_store) -> None:
        seeded_store.put_preference_vector(
            USER, PreferenceVector(accept_rate=0.75, total_decisions=8, suggestion_confidence=0.8)
        )
        plan = engine.generate_plan(USER, now=NOW)
        assert plan.insights.accept_rate == 0.75
        assert plan.insights.total_learned == 8
        assert plan.insights.confidence == 0.8

    def test_activity_failure_degrades_load(self) -> None:
        store = _make_mock_store()
        store.count_feedback_today.side_effect = StoreError("activity offline")
        with patch("routine.engine.logger") as mock_logger:
            plan = RoutineEngine(store).generate_plan(USER, now=NOW)
        assert plan.cognitive_load.score == 50
        assert plan.cognitive_load.tier is AutonomyTier.ASSIST
        assert plan.cognitive_load.degraded is True
        mock_logger.exception.assert_called_once()

    def test_preference_failure_propagates(self) -> None:
        store = _make_mock_store()
        store.get_preference_vector.side_effect = StoreError("db down")
        with pytest.raises(StoreError):
            RoutineEngine(store).generate_plan(USER, now=NOW)
        store.put_daily_plan.assert_not_called()

    def test_candidate_failure_propagates(self) -> None:
        store = _make_mock_store()
        store.list_active_candidates.side_effect = StoreError("db down")
        with pytest.raises(StoreError):
            RoutineEngine(store).generate_plan(USER, now=NOW)

    def test_passes_recent_feedback_limit(self) -> None:
        store = _make_mock_store()
        RoutineEngine(store, recent_feedback_limit=7).generate_plan(USER, now=NOW)
        store.list_recent_feedback.assert_called_once_with(USER, 7)


class TestCurrentLoad:
    def test_fresh_user(self, engine) -> None:
        load = engine.current_load(USER, now=NOW)
        assert load.breakdown["decisions"].value == 0
        assert load.breakdown["time_of_day"].value == 10
        assert load.score == 10

    def test_counts_todays_feedback_and_sessions(self, engine, seeded_store) -> None:
        for action in ("accept", "accept", "override", "ignore"):
            engine.submit_feedback(USER, FeedbackEvent(FeedbackAction(action)), now=NOW)
        seeded_store.record_session(USER, NOW, 30 * 60_000)
        load = engine.current_load(USER, now=NOW)
        assert load.breakdown["decisions"].value == 12
        assert load.breakdown["overrides"].value == 13
        assert load.breakdown["time_on_site"].value == 7
        assert load.score == 42
        assert load.tier is AutonomyTier.ASSIST

    def test_yesterdays_activity_ignored(self, engine) -> None:
        engine.submit_feedback(USER, _accept(), now=NOW - timedelta(days=1))
        assert engine.current_load(USER, now=NOW).breakdown["decisions"].value == 0

    def test_day_starts_at_local_midnight(self, store) -> None:
        store.count_feedback_today = MagicMock(return_value=FeedbackCounts())
        RoutineEngine(store).current_load(USER, now=NOW)
        since = store.count_feedback_today.call_args.args[1]
        assert since == datetime(2024, 6, 3, 0, 0, 0, tzinfo=timezone.utc)

    def test_naive_now_is_local_time(self, engine) -> None:
        naive = datetime(2024, 6, 3, 12, 0, 0)
        engine.submit_feedback(USER, FeedbackEvent(FeedbackAction.OVERRIDE), now=naive)
        load = engine.current_load(USER, now=naive.astimezone())
        assert load.degraded is False
        assert load.breakdown["overrides"].value == 25


class TestSubmitFeedback:
    def test_learns_and_persists(self, engine, seeded_store) -> None:
        stored = engine.submit_feedback(USER, _accept(item_id="t_report"), now=NOW)
        assert stored.version == 1
        assert stored.total_accepts == 1
        assert stored.afternoon_task_weight == pytest.approx(0.6)
        assert seeded_store.get_preference_vector(USER).total_accepts == 1

    def test_stamps_created_at(self, engine, seeded_store) -> None:
        engine.submit_feedback(USER, _accept(), now=NOW)
        assert seeded_store.list_recent_feedback(USER, 1)[0].created_at == NOW

    def test_keeps_given_created_at(self, engine, seeded_store) -> None:
        earlier = NOW - timedelta(minutes=5)
        engine.submit_feedback(USER, _accept(created_at=earlier), now=NOW)
        assert seeded_store.list_recent_feedback(USER, 1)[0].created_at == earlier

    def test_successive_feedback_builds_on_stored_vector(self, engine) -> None:
        for _ in range(3):
            stored = engine.submit_feedback(USER, _accept(), now=NOW)
        assert stored.version == 3
        assert stored.consecutive_accepts == 3
        assert stored.suggestion_confidence == pytest.approx(0.6)

    def test_feedback_shapes_next_plan(self, engine) -> None:
        override = FeedbackEvent(
            FeedbackAction.OVERRIDE,
            item_id="t_report",
            chosen_alternative="Review pull requests",
            context=FeedbackContext(hour=12),
        )
        engine.submit_feedback(USER, override, now=NOW)
        engine.submit_feedback(USER, override, now=NOW)
        plan = engine.generate_plan(USER, now=NOW, force=True)
        assert plan.cards[0].items[0].candidate.item_id == "t_review"

    def test_retries_on_conflict(self) -> None:
        store = _make_mock_store()
        store.commit_feedback.side_effect = [
            ConcurrentUpdateError("stale"),
            PreferenceVector(version=2, total_decisions=1),
        ]
        stored = RoutineEngine(store, commit_attempts=3).submit_feedback(USER, _accept(), now=NOW)
        assert stored.version == 2
        assert store.commit_feedback.call_count == 2
        assert store.get_preference_vector.call_count == 2

    def test_gives_up_after_attempts(self) -> None:
        store = _make_mock_store()
        store.commit_feedback.side_effect = ConcurrentUpdateError("stale")
        with patch("routine.engine.logger") as mock_logger:
            with pytest.raises(ConcurrentUpdateError):
                RoutineEngine(store, commit_attempts=3).submit_feedback(USER, _accept(), now=NOW)
        assert store.commit_feedback.call_count == 3
        mock_logger.warning.assert_called_once()

    def test_store_error_propagates(self) -> None:
        store = _make_mock_store()
        store.commit_feedback.side_effect = StoreError("db down")
        with pytest.raises(StoreError):
            RoutineEngine(store).submit_feedback(USER, _accept(), now=NOW)
        assert store.commit_feedback.call_count == 1

    def test_commits_against_read_version(self) -> None:
        store = _make_mock_store()
        store.get_preference_vector.return_value = PreferenceVector(version=4)
        store.commit_feedback.return_value = PreferenceVector(version=5)
        RoutineEngine(store).submit_feedback(USER, _accept(), now=NOW)
        assert store.commit_feedback.call_args.kwargs["expected_version"] == 4


class TestProfiles:
    def test_create_profile(self, engine, seeded_store) -> None:
        stored = engine.create_profile(USER, work_style="deep_work", break_preference="long")
        assert stored.focus_duration_preference == 90.0
        assert stored.high_effort_preference == 0.7
        assert stored.break_frequency_weight == 0.4
        assert seeded_store.get_preference_vector(USER).version == 1

    def test_existing_profile_rejected(self, engine) -> None:
        engine.create_profile(USER)
        with pytest.raises(ValueError, match="already has"):
            engine.create_profile(USER)

    def test_unknown_work_style(self, engine) -> None:
        with pytest.raises(ValueError, match="work_style"):
            engine.create_profile(USER, work_style="chaotic")


class TestFeedbackSummary:
    def test_summarises_recent_feedback(self, engine) -> None:
        for action in ("accept", "override", "accept", "ignore"):
            engine.submit_feedback(USER, FeedbackEvent(FeedbackAction(action)), now=NOW)
        summary = engine.feedback_summary(USER)
        assert summary.total == 4
        assert summary.accepts == 2
        assert summary.accept_rate == pytest.approx(0.5)

    def test_respects_limit(self, engine) -> None:
        for action in ("accept", "override", "ignore"):
            engine.submit_feedback(USER, FeedbackEvent(FeedbackAction(action)), now=NOW)
        summary = engine.feedback_summary(USER, limit=1)
        assert summary.total == 1
        assert summary.ignores == 1
