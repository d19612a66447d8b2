"""Abstract base class for all scoring rules."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from routine.models import CandidateItem, FeedbackEvent, PreferenceVector


class ScoringRule(ABC):
    """Abstract base class for one additive adjustment to an item's score.

    Each rule encapsulates a single signal (time of day, effort, timing,
    feedback history, priority tags).  The
    :class:`~routine.scorer.DecisionScorer` starts every item from a base
    score and adds each rule's adjustment in a fixed order.  Rules are
    independent of one another and must not keep state between calls.
    """

    @abstractmethod
    def adjust(
        self,
        item: CandidateItem,
        prefs: PreferenceVector,
        hour: int,
        recent_feedback: Sequence[FeedbackEvent],
    ) -> float:
        """Return the points this rule adds to (or removes from) *item*.

        Args:
            item: The candidate being scored.
            prefs: The user's current preference vector.
            hour: Current local hour (0–23).
            recent_feedback: The user's recent feedback, newest first.

        Returns:
            A signed adjustment; ``0`` when the rule does not apply.
        """
