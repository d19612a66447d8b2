"""Tests for the learning updater."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from routine.learning import (
    LEARNING_RATE,
    MAX_PREFERRED_ALTERNATIVES,
    apply_feedback,
    learn_from_event,
    summarize_feedback,
)
from routine.models import (
    WEIGHT_FIELDS,
    FeedbackAction,
    FeedbackContext,
    FeedbackEvent,
    PreferenceVector,
)

MORNING = datetime(2024, 6, 3, 9, 0, 0, tzinfo=timezone.utc)
AFTERNOON = datetime(2024, 6, 3, 14, 0, 0, tzinfo=timezone.utc)

_AT_NINE = FeedbackContext(hour=9)


def _repeat(prefs: PreferenceVector, action: str, times: int, **kwargs) -> PreferenceVector:
    for _ in range(times):
        prefs = apply_feedback(prefs, action, now=MORNING, **kwargs)
    return prefs


class TestAccept:
    def test_raises_band_weight(self, default_prefs) -> None:
        updated = apply_feedback(default_prefs, "accept", _AT_NINE, now=MORNING)
        assert updated.morning_task_weight == pytest.approx(0.6)
        assert updated.afternoon_task_weight == 0.5

    def test_three_accepts_raise_confidence_once(self, default_prefs) -> None:
        updated = _repeat(default_prefs, "accept", 3, context=_AT_NINE)
        assert updated.consecutive_accepts == 3
        assert updated.suggestion_confidence == pytest.approx(0.6)

    def test_confidence_keeps_rising_on_streak(self, default_prefs) -> None:
        updated = _repeat(default_prefs, "accept", 4, context=_AT_NINE)
        assert updated.suggestion_confidence == pytest.approx(0.7)

    def test_confidence_clamped_at_one(self) -> None:
        prefs = PreferenceVector(suggestion_confidence=0.95, consecutive_accepts=5)
        updated = apply_feedback(prefs, "accept", _AT_NINE, now=MORNING)
        assert updated.suggestion_confidence == 1.0

    def test_focus_card_raises_high_effort(self, default_prefs) -> None:
        context = FeedbackContext(card_items=("Focus on: Write report",), hour=9)
        updated = apply_feedback(default_prefs, "accept", context, now=MORNING)
        assert updated.high_effort_preference == pytest.approx(0.5 + LEARNING_RATE / 2)

    def test_plain_card_leaves_high_effort(self, default_prefs) -> None:
        context = FeedbackContext(card_items=("Lunch Break",), hour=9)
        updated = apply_feedback(default_prefs, "accept", context, now=MORNING)
        assert updated.high_effort_preference == 0.5

    def test_resets_override_streak_only(self) -> None:
        prefs = PreferenceVector(consecutive_overrides=2, consecutive_ignores=6, needs_recalibration=True)
        updated = apply_feedback(prefs, "accept", _AT_NINE, now=MORNING)
        assert updated.consecutive_overrides == 0
        assert updated.consecutive_ignores == 6
        assert updated.needs_recalibration is True


class TestOverride:
    def test_lowers_band_weight(self, default_prefs) -> None:
        updated = apply_feedback(default_prefs, "override", _AT_NINE, now=MORNING)
        assert updated.morning_task_weight == pytest.approx(0.4)

    def test_high_load_raises_override_tendency(self, default_prefs) -> None:
        context = FeedbackContext(cognitive_load=70, hour=9)
        updated = apply_feedback(default_prefs, "override", context, now=MORNING)
        assert updated.high_load_override_tendency == pytest.approx(0.6)

    def test_moderate_load_leaves_override_tendency(self, default_prefs) -> None:
        context = FeedbackContext(cognitive_load=66, hour=9)
        updated = apply_feedback(default_prefs, "override", context, now=MORNING)
        assert updated.high_load_override_tendency == 0.5

    def test_streak_lowers_confidence(self, default_prefs) -> None:
        updated = _repeat(default_prefs, "override", 3, context=_AT_NINE)
        assert updated.consecutive_overrides == 3
        assert updated.consecutive_accepts == 0
        assert updated.suggestion_confidence == pytest.approx(0.4)

    def test_remembers_chosen_alternative(self, default_prefs) -> None:
        context = FeedbackContext(cognitive_load=40, original_items=("Write report",), hour=9)
        updated = apply_feedback(
            default_prefs, "override", context, now=MORNING, chosen_alternative="Go for a run"
        )
        assert len(updated.preferred_alternatives) == 1
        alt = updated.preferred_alternatives[0]
        assert alt.chosen == "Go for a run"
        assert alt.original == ("Write report",)
        assert alt.hour == 9
        assert alt.cognitive_load == 40

    def test_alternatives_capped_oldest_first(self, default_prefs) -> None:
        prefs = default_prefs
        for i in range(MAX_PREFERRED_ALTERNATIVES + 5):
            prefs = apply_feedback(prefs, "override", _AT_NINE, now=MORNING, chosen_alternative=f"alt {i}")
        assert len(prefs.preferred_alternatives) == MAX_PREFERRED_ALTERNATIVES
        assert prefs.preferred_alternatives[0].chosen == "alt 5"
        assert prefs.preferred_alternatives[-1].chosen == "alt 24"


class TestIgnore:
    def test_softer_weight_change(self, default_prefs) -> None:
        updated = apply_feedback(default_prefs, "ignore", _AT_NINE, now=MORNING)
        assert updated.morning_task_weight == pytest.approx(0.47)

    def test_five_ignores_flag_recalibration(self, default_prefs) -> None:
        four = _repeat(default_prefs, "ignore", 4, context=_AT_NINE)
        assert four.needs_recalibration is False
        five = apply_feedback(four, "ignore", _AT_NINE, now=MORNING)
        assert five.consecutive_ignores == 5
        assert five.needs_recalibration is True

    def test_streak_survives_accept_and_override(self, default_prefs) -> None:
        prefs = _repeat(default_prefs, "ignore", 3, context=_AT_NINE)
        prefs = apply_feedback(prefs, "accept", _AT_NINE, now=MORNING)
        prefs = apply_feedback(prefs, "ignore", _AT_NINE, now=MORNING)
        prefs = apply_feedback(prefs, "override", _AT_NINE, now=MORNING)
        assert prefs.consecutive_ignores == 4
        prefs = apply_feedback(prefs, "ignore", _AT_NINE, now=MORNING)
        assert prefs.consecutive_ignores == 5
        assert prefs.needs_recalibration is True


class TestInvariants:
    def test_input_not_mutated(self, default_prefs) -> None:
        before = default_prefs.copy()
        apply_feedback(default_prefs, "override", _AT_NINE, now=MORNING, chosen_alternative="Nap")
        assert default_prefs == before

    def test_weights_stay_in_unit_interval(self) -> None:
        high = PreferenceVector(morning_task_weight=0.98)
        low = PreferenceVector(morning_task_weight=0.02)
        assert apply_feedback(high, "accept", _AT_NINE, now=MORNING).morning_task_weight == 1.0
        assert apply_feedback(low, "override", _AT_NINE, now=MORNING).morning_task_weight == 0.0

    def test_long_mixed_sequence(self, default_prefs) -> None:
        prefs = default_prefs
        actions = ["accept", "override", "ignore", "accept", "accept", "ignore"] * 10
        for action in actions:
            prefs = apply_feedback(prefs, action, _AT_NINE, now=MORNING)
            assert all(0.0 <= getattr(prefs, name) <= 1.0 for name in WEIGHT_FIELDS)
        assert prefs.total_decisions == len(actions)
        assert prefs.total_accepts + prefs.total_overrides + prefs.total_ignores == prefs.total_decisions
        assert prefs.accept_rate + prefs.override_rate + prefs.ignore_rate == pytest.approx(1.0)
        assert prefs.accept_rate == pytest.approx(0.5)

    def test_counters_never_decrease(self, default_prefs) -> None:
        prefs = default_prefs
        for action in ["accept", "ignore", "override", "accept"]:
            updated = apply_feedback(prefs, action, _AT_NINE, now=MORNING)
            assert updated.total_decisions == prefs.total_decisions + 1
            assert updated.total_accepts >= prefs.total_accepts
            prefs = updated

    def test_stamps_last_learned_at(self, default_prefs) -> None:
        assert apply_feedback(default_prefs, "ignore", now=MORNING).last_learned_at == MORNING

    def test_band_from_now_when_context_has_no_hour(self, default_prefs) -> None:
        updated = apply_feedback(default_prefs, "accept", FeedbackContext(), now=AFTERNOON)
        assert updated.afternoon_task_weight == pytest.approx(0.6)
        assert updated.morning_task_weight == 0.5

    def test_unknown_action_raises(self, default_prefs) -> None:
        with pytest.raises(ValueError):
            apply_feedback(default_prefs, "snooze", now=MORNING)


class TestLearnFromEvent:
    def test_uses_event_fields(self, default_prefs) -> None:
        event = FeedbackEvent(
            FeedbackAction.OVERRIDE,
            chosen_alternative="Nap",
            context=FeedbackContext(hour=14),
            created_at=AFTERNOON,
        )
        updated = learn_from_event(default_prefs, event)
        assert updated.afternoon_task_weight == pytest.approx(0.4)
        assert updated.preferred_alternatives[0].chosen == "Nap"
        assert updated.last_learned_at == AFTERNOON


class TestSummarizeFeedback:
    def test_empty(self) -> None:
        summary = summarize_feedback([])
        assert summary.total == 0
        assert summary.accept_rate == 0.0

    def test_counts_and_rates(self) -> None:
        events = [FeedbackEvent(FeedbackAction(a)) for a in ("accept", "accept", "override", "ignore")]
        summary = summarize_feedback(events)
        assert (summary.accepts, summary.overrides, summary.ignores) == (2, 1, 1)
        assert summary.accept_rate == pytest.approx(0.5)
        assert summary.ignore_rate == pytest.approx(0.25)
