"""Time-of-day scoring rule driven by the learned band weights."""

from __future__ import annotations

from collections.abc import Sequence

from routine.models import CandidateItem, FeedbackEvent, PreferenceVector
from routine.preferences import TimeBand, band_weight, time_band_for_hour
from routine.rules.base import ScoringRule

_BAND_SCALE = 30
_STRONG_MORNING_THRESHOLD = 0.6
_STRONG_MORNING_BONUS = 10
_EVENING_HIGH_EFFORT_PENALTY = 15
_HIGH_EFFORT = 4


class TimeBandRule(ScoringRule):
    """Adds ``band_weight × 30`` for the band the current hour falls in.

    A strong morning preference (weight above 0.6) earns a further flat
    bonus, and demanding items (effort ≥ 4) are penalised in the evening.
    """

    def adjust(
        self,
        item: CandidateItem,
        prefs: PreferenceVector,
        hour: int,
        recent_feedback: Sequence[FeedbackEvent],
    ) -> float:
        band = time_band_for_hour(hour)
        weight = band_weight(prefs, hour)
        points = weight * _BAND_SCALE

        if band is TimeBand.MORNING and weight > _STRONG_MORNING_THRESHOLD:
            points += _STRONG_MORNING_BONUS
        elif band is TimeBand.EVENING and item.effort is not None and item.effort >= _HIGH_EFFORT:
            points -= _EVENING_HIGH_EFFORT_PENALTY
        return points
