"""Clock-driven scoring rules: preferred-time proximity and meal windows."""

from __future__ import annotations

from collections.abc import Sequence

from routine.models import CandidateItem, FeedbackEvent, ItemKind, MealType, PreferenceVector
from routine.rules.base import ScoringRule

# (max hour distance, bonus), checked in order
_PROXIMITY_STEPS = ((1, 35), (2, 25), (3, 10))

# Canonical local-hour window [start, end) for each meal
MEAL_WINDOWS: dict[MealType, tuple[int, int]] = {
    MealType.BREAKFAST: (6, 10),
    MealType.LUNCH: (11, 14),
    MealType.DINNER: (17, 21),
}

# One-hour shoulder either side of a window that still counts as half-relevant
_MEAL_SHOULDERS: dict[MealType, tuple[int, int]] = {
    MealType.BREAKFAST: (10, 11),
    MealType.LUNCH: (14, 15),
    MealType.DINNER: (16, 17),
}

_MEAL_WINDOW_BONUS = 35
_SNACK_BONUS = 10

_SNACK_RELEVANCE = 0.6
_UNKNOWN_MEAL_RELEVANCE = 0.5
_OFF_WINDOW_RELEVANCE = 0.2


def in_meal_window(meal_type: MealType | None, hour: int) -> bool:
    """Whether *hour* falls inside the canonical window for *meal_type*."""
    window = MEAL_WINDOWS.get(meal_type) if meal_type else None
    return window is not None and window[0] <= hour < window[1]


def meal_relevance(item: CandidateItem, hour: int) -> float:
    """Return how relevant a meal is right now, in ``[0, 1]``.

    ``1.0`` inside the canonical window, ``0.5`` in the shoulder hour,
    ``0.2`` otherwise.  Snacks are always ``0.6``; meals without a known
    type sit at ``0.5``.
    """
    if item.meal_type is None:
        return _UNKNOWN_MEAL_RELEVANCE
    if item.meal_type is MealType.SNACK:
        return _SNACK_RELEVANCE
    if in_meal_window(item.meal_type, hour):
        return 1.0
    shoulder = _MEAL_SHOULDERS.get(item.meal_type)
    if shoulder and shoulder[0] <= hour < shoulder[1]:
        return 0.5
    return _OFF_WINDOW_RELEVANCE


class PreferredTimeRule(ScoringRule):
    """Step bonus by distance between now and the item's preferred hour."""

    def adjust(
        self,
        item: CandidateItem,
        prefs: PreferenceVector,
        hour: int,
        recent_feedback: Sequence[FeedbackEvent],
    ) -> float:
        preferred = item.preferred_hour
        if preferred is None:
            return 0.0
        distance = abs(hour - preferred)
        for max_distance, bonus in _PROXIMITY_STEPS:
            if distance <= max_distance:
                return float(bonus)
        return 0.0


class MealTimingRule(ScoringRule):
    """Boosts meals whose canonical window contains the current hour."""

    def adjust(
        self,
        item: CandidateItem,
        prefs: PreferenceVector,
        hour: int,
        recent_feedback: Sequence[FeedbackEvent],
    ) -> float:
        if item.kind is not ItemKind.MEAL or item.meal_type is None:
            return 0.0
        if item.meal_type is MealType.SNACK:
            return float(_SNACK_BONUS)
        if in_meal_window(item.meal_type, hour):
            return float(_MEAL_WINDOW_BONUS)
        return 0.0
