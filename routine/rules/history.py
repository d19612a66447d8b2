"""Feedback-history scoring rule and the item/feedback correlation helpers."""

from __future__ import annotations

from collections.abc import Sequence

from routine.models import (
    CandidateItem,
    FeedbackAction,
    FeedbackEvent,
    PreferenceVector,
)
from routine.rules.base import ScoringRule

_ACTION_POINTS = {
    FeedbackAction.ACCEPT: 8,
    FeedbackAction.OVERRIDE: -12,
    FeedbackAction.IGNORE: -5,
}
_CHOSEN_ALTERNATIVE_POINTS = 15


def matches_item(event: FeedbackEvent, item: CandidateItem) -> bool:
    """Return ``True`` if *event* was feedback about *item*.

    When both sides carry a stable identifier the identifiers decide.
    Otherwise falls back to the legacy join: the item's title appearing as
    a substring of the suggested text or of any recorded card item.
    Overlapping titles (``"Read"`` vs ``"Read news"``) can over-match on
    the fallback path.
    """
    if event.item_id and item.item_id:
        return event.item_id == item.item_id
    if not item.title:
        return False
    if event.item_value and item.title in event.item_value:
        return True
    return any(item.title in entry for entry in event.context.card_items)


def was_accepted(item: CandidateItem, recent_feedback: Sequence[FeedbackEvent]) -> bool:
    """Whether any recent accept refers to *item*."""
    return any(
        e.action is FeedbackAction.ACCEPT and matches_item(e, item) for e in recent_feedback
    )


def times_chosen_as_alternative(item: CandidateItem, recent_feedback: Sequence[FeedbackEvent]) -> int:
    """How often the user named *item* as what they did instead."""
    return sum(1 for e in recent_feedback if e.chosen_alternative == item.title)


class FeedbackHistoryRule(ScoringRule):
    """Adjusts by how the user has recently responded to this item.

    =====================================  ======
    Signal (per event)                     Points
    =====================================  ======
    Accepted                               +8
    Overridden                             −12
    Ignored                                −5
    Named as the chosen alternative        +15
    =====================================  ======
    """

    def adjust(
        self,
        item: CandidateItem,
        prefs: PreferenceVector,
        hour: int,
        recent_feedback: Sequence[FeedbackEvent],
    ) -> float:
        if not recent_feedback:
            return 0.0
        points = sum(
            _ACTION_POINTS[e.action] for e in recent_feedback if matches_item(e, item)
        )
        points += times_chosen_as_alternative(item, recent_feedback) * _CHOSEN_ALTERNATIVE_POINTS
        return float(points)
