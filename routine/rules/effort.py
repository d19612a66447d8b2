"""Effort-alignment scoring rule."""

from __future__ import annotations

from collections.abc import Sequence

from routine.models import CandidateItem, FeedbackEvent, PreferenceVector
from routine.rules.base import ScoringRule

HIGH_EFFORT = 4
LOW_EFFORT = 2

_EFFORT_SCALE = 20
_RELUCTANT_THRESHOLD = 0.4
_RELUCTANT_PENALTY = 10


class EffortRule(ScoringRule):
    """Rewards items whose effort matches what the user has learned to take on.

    ============  ==============================================
    Effort        Adjustment
    ============  ==============================================
    ≥ 4           ``+high_effort_preference × 20``; a further
                  −10 when that preference is below 0.4
    ≤ 2           ``+low_effort_preference × 20``
    3 / unrated   0
    ============  ==============================================
    """

    def adjust(
        self,
        item: CandidateItem,
        prefs: PreferenceVector,
        hour: int,
        recent_feedback: Sequence[FeedbackEvent],
    ) -> float:
        if item.effort is None:
            return 0.0
        if item.effort >= HIGH_EFFORT:
            points = prefs.high_effort_preference * _EFFORT_SCALE
            if prefs.high_effort_preference < _RELUCTANT_THRESHOLD:
                points -= _RELUCTANT_PENALTY
            return points
        if item.effort <= LOW_EFFORT:
            return prefs.low_effort_preference * _EFFORT_SCALE
        return 0.0
