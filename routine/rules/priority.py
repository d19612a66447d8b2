"""Explicit-signal scoring rules: low-confidence compensation and priority tags."""

from __future__ import annotations

from collections.abc import Sequence

from routine.models import CandidateItem, FeedbackEvent, PreferenceVector
from routine.rules.base import ScoringRule

_LOW_CONFIDENCE_THRESHOLD = 0.3
_EXPLICIT_TIME_BONUS = 10

TAG_BONUSES: dict[str, int] = {
    "urgent": 20,
    "important": 15,
    "quick": 5,
}


class LowConfidenceRule(ScoringRule):
    """Leans on the user's own preferred time while the model is unsure."""

    def adjust(
        self,
        item: CandidateItem,
        prefs: PreferenceVector,
        hour: int,
        recent_feedback: Sequence[FeedbackEvent],
    ) -> float:
        if prefs.suggestion_confidence < _LOW_CONFIDENCE_THRESHOLD and item.preferred_time:
            return float(_EXPLICIT_TIME_BONUS)
        return 0.0


class TagRule(ScoringRule):
    """Adds the bonus for each priority tag on the item (bonuses stack)."""

    def adjust(
        self,
        item: CandidateItem,
        prefs: PreferenceVector,
        hour: int,
        recent_feedback: Sequence[FeedbackEvent],
    ) -> float:
        return float(sum(bonus for tag, bonus in TAG_BONUSES.items() if tag in item.tags))
