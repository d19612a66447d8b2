"""Decision scorer: ranks candidate items against learned preferences."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

import numpy as np

from routine.cognitive_load import round_half_up
from routine.models import CandidateItem, FeedbackEvent, Frequency, PreferenceVector
from routine.rules.base import ScoringRule
from routine.rules.effort import EffortRule
from routine.rules.history import FeedbackHistoryRule
from routine.rules.priority import LowConfidenceRule, TagRule
from routine.rules.time_band import TimeBandRule
from routine.rules.timing import MealTimingRule, PreferredTimeRule

logger = logging.getLogger(__name__)

BASE_SCORE = 50


@dataclass(frozen=True)
class ScoredItem:
    item: CandidateItem
    score: int


def default_rules() -> tuple[ScoringRule, ...]:
    """The fixed rule order every score is built from."""
    return (
        TimeBandRule(),
        EffortRule(),
        PreferredTimeRule(),
        MealTimingRule(),
        FeedbackHistoryRule(),
        LowConfidenceRule(),
        TagRule(),
    )


class DecisionScorer:
    """Scores candidate items for ranking.

    Every item starts at :data:`BASE_SCORE`; each
    :class:`~routine.rules.base.ScoringRule` adds its adjustment in order.
    The total is rounded half-up and floored at zero.  Only relative order
    is meaningful.

    The scorer is stateless: identical inputs always give identical scores.

    Args:
        rules: Override the rule list (tests use this to isolate a rule).
            Defaults to :func:`default_rules`.
    """

    def __init__(self, rules: Sequence[ScoringRule] | None = None) -> None:
        self._rules = tuple(rules) if rules is not None else default_rules()

    def score(
        self,
        item: CandidateItem,
        prefs: PreferenceVector,
        hour: int,
        recent_feedback: Sequence[FeedbackEvent] = (),
    ) -> int:
        """Return the non-negative integer score of *item* at *hour*."""
        total = float(BASE_SCORE)
        for rule in self._rules:
            total += rule.adjust(item, prefs, hour, recent_feedback)
        return max(0, round_half_up(total))

    def rank(
        self,
        items: Sequence[CandidateItem],
        prefs: PreferenceVector,
        hour: int,
        recent_feedback: Sequence[FeedbackEvent] = (),
    ) -> list[ScoredItem]:
        """Score *items* and return them best-first.

        The sort is stable, so equal scores keep their input order.
        """
        if not items:
            return []
        scores = np.array(
            [self.score(item, prefs, hour, recent_feedback) for item in items], dtype=np.int64
        )
        order = np.argsort(-scores, kind="stable")
        ranked = [ScoredItem(items[i], int(scores[i])) for i in order]
        logger.debug(
            "Ranked %d items at hour %d: %s",
            len(ranked),
            hour,
            [(s.item.title, s.score) for s in ranked],
        )
        return ranked


def is_applicable(item: CandidateItem, day: date) -> bool:
    """Whether *item* should be considered on *day* given its frequency.

    ``daily`` and ``weekly`` items are always eligible; ``weekdays`` only
    Monday–Friday and ``weekends`` only Saturday–Sunday.
    """
    weekend = day.weekday() >= 5
    if item.frequency is Frequency.WEEKDAYS:
        return not weekend
    if item.frequency is Frequency.WEEKENDS:
        return weekend
    return True
