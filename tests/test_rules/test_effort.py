"""Tests for EffortRule."""

from __future__ import annotations

import pytest

from routine.models import CandidateItem, ItemKind, PreferenceVector
from routine.rules.effort import EffortRule


@pytest.fixture
def rule() -> EffortRule:
    return EffortRule()


def _task(effort: int | None) -> CandidateItem:
    return CandidateItem("t1", ItemKind.TASK, "Task", effort=effort)


class TestAdjust:
    @pytest.mark.parametrize("effort", [4, 5])
    def test_high_effort_uses_high_preference(self, rule, effort: int) -> None:
        prefs = PreferenceVector(high_effort_preference=0.7)
        assert rule.adjust(_task(effort), prefs, 10, ()) == pytest.approx(14.0)

    def test_reluctant_user_penalised_for_high_effort(self, rule) -> None:
        prefs = PreferenceVector(high_effort_preference=0.3)
        assert rule.adjust(_task(5), prefs, 10, ()) == pytest.approx(-4.0)

    @pytest.mark.parametrize("effort", [1, 2])
    def test_low_effort_uses_low_preference(self, rule, effort: int) -> None:
        prefs = PreferenceVector(low_effort_preference=0.6)
        assert rule.adjust(_task(effort), prefs, 10, ()) == pytest.approx(12.0)

    def test_medium_effort_is_neutral(self, rule, default_prefs) -> None:
        assert rule.adjust(_task(3), default_prefs, 10, ()) == 0.0

    def test_unrated_is_neutral(self, rule, default_prefs) -> None:
        assert rule.adjust(_task(None), default_prefs, 10, ()) == 0.0
