"""Card assembler: bundles top-ranked items into compressed decision cards."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from routine.models import (
    AutonomyTier,
    CandidateItem,
    CardAssembly,
    CardItem,
    CardPriority,
    CompressedCard,
    FeedbackEvent,
    ItemKind,
    MealType,
    PreferenceVector,
    ReasonCode,
)
from routine.rationale import (
    item_reasons,
    meal_reasons,
    render_rationale,
    wind_down_reasons,
)
from routine.rules.effort import LOW_EFFORT
from routine.rules.timing import meal_relevance
from routine.scorer import DecisionScorer

logger = logging.getLogger(__name__)

NO_CANDIDATES_MESSAGE = "No active decisions found. Add some tasks, meals, or breaks first!"
NOTHING_FITS_MESSAGE = "Nothing fits right now. Add a task to get a focus block."

_BREAK_FREQUENCY_THRESHOLD = 0.3
_CONFIDENT_ASSIST_THRESHOLD = 0.6
_MEAL_RELEVANCE_THRESHOLD = 0.5
_WIND_DOWN_HOUR = 18

_DEFAULT_BREAK_MINUTES = 10
_MEAL_MINUTES = 30
_WIND_DOWN_MINUTES = 20
_BONUS_MINUTES = 30

_MEAL_TITLES = {
    MealType.BREAKFAST: "Breakfast Time",
    MealType.LUNCH: "Lunch Break",
    MealType.DINNER: "Dinner Time",
    MealType.SNACK: "Snack Break",
}


def max_cards_for(tier: AutonomyTier, confidence: float) -> int:
    """How many cards a tier may show.

    ======  ===========================================
    Tier    Cards
    ======  ===========================================
    auto    2
    assist  3 when confidence > 0.6, otherwise 4
    manual  4
    ======  ===========================================
    """
    if tier is AutonomyTier.AUTO:
        return 2
    if tier is AutonomyTier.ASSIST:
        return 3 if confidence > _CONFIDENT_ASSIST_THRESHOLD else 4
    return 4


class CardAssembler:
    """Turns a candidate set into at most four compressed decision cards.

    Candidates are ranked by the :class:`~routine.scorer.DecisionScorer`,
    split by kind, then placed into fixed slots:

    ========  =========================================================
    Slot      Content
    ========  =========================================================
    card_1    Top task, plus the top break if the user likes breaks
    card_2    Top meal, only when it is relevant at this hour
    card_3    Second task, plus a break unless the tier is ``auto``
    card_4    ``manual`` only: an evening wind-down or a bonus task
    ========  =========================================================

    Slots after the first are skipped once the tier's card limit
    (:func:`max_cards_for`) is reached.

    Args:
        scorer: The scorer used for ranking.  Defaults to a
            :class:`~routine.scorer.DecisionScorer` with the standard rules.
    """

    def __init__(self, scorer: DecisionScorer | None = None) -> None:
        self._scorer = scorer or DecisionScorer()

    def assemble(
        self,
        candidates: Sequence[CandidateItem],
        prefs: PreferenceVector,
        hour: int,
        tier: AutonomyTier,
        recent_feedback: Sequence[FeedbackEvent] = (),
    ) -> CardAssembly:
        """Build the cards for one plan.

        Args:
            candidates: The user's candidate items (inactive ones are skipped).
            prefs: The user's preference vector.
            hour: Current local hour.
            tier: Autonomy tier from the cognitive-load estimate.
            recent_feedback: Recent feedback, newest first.

        Returns:
            A :class:`~routine.models.CardAssembly`.  When no cards can be
            built its ``message`` explains why; this never raises for empty
            input.
        """
        active = [c for c in candidates if c.active]
        if not active:
            return CardAssembly(cards=[], message=NO_CANDIDATES_MESSAGE)

        ranked = [s.item for s in self._scorer.rank(active, prefs, hour, recent_feedback)]
        tasks = [c for c in ranked if c.kind is ItemKind.TASK]
        meals = [c for c in ranked if c.kind is ItemKind.MEAL]
        breaks = [c for c in ranked if c.kind is ItemKind.BREAK]

        limit = max_cards_for(tier, prefs.suggestion_confidence)
        cards: list[CompressedCard] = []

        if tasks:
            cards.append(self._primary_block(tasks[0], breaks, prefs, hour, tier, recent_feedback))

        if meals and len(cards) < limit and meal_relevance(meals[0], hour) > _MEAL_RELEVANCE_THRESHOLD:
            cards.append(self._meal_block(meals[0], prefs, tier))

        if len(tasks) > 1 and len(cards) < limit:
            cards.append(self._secondary_block(tasks[1], breaks, prefs, hour, tier, recent_feedback))

        if tier is AutonomyTier.MANUAL and len(cards) < limit:
            extra = self._extra_block(tasks, prefs, hour, tier)
            if extra is not None:
                cards.append(extra)

        logger.debug(
            "Assembled %d/%d cards (tier=%s, hour=%d) from %d candidates.",
            len(cards),
            limit,
            tier.value,
            hour,
            len(active),
        )
        return CardAssembly(cards=cards, message=None if cards else NOTHING_FITS_MESSAGE)

    # ------------------------------------------------------------------
    # Slots
    # ------------------------------------------------------------------

    def _primary_block(
        self,
        task: CandidateItem,
        breaks: list[CandidateItem],
        prefs: PreferenceVector,
        hour: int,
        tier: AutonomyTier,
        recent_feedback: Sequence[FeedbackEvent],
    ) -> CompressedCard:
        items = [CardItem(ItemKind.TASK, task, f"Focus on: {task.title}")]
        duration = _task_minutes(task, prefs)
        if breaks and prefs.break_frequency_weight > _BREAK_FREQUENCY_THRESHOLD:
            top_break = breaks[0]
            minutes = top_break.break_duration or _DEFAULT_BREAK_MINUTES
            items.append(CardItem(ItemKind.BREAK, top_break, f"Then: {top_break.title} ({minutes}min)"))
            duration += minutes
        reasons = item_reasons(task, prefs, hour, recent_feedback)
        return CompressedCard(
            id="card_1",
            title=f"{_period_name(hour)} Focus Block",
            items=items,
            duration_minutes=duration,
            reasons=reasons,
            rationale_text=render_rationale(reasons),
            tier=tier,
            priority=CardPriority.HIGH,
        )

    def _meal_block(self, meal: CandidateItem, prefs: PreferenceVector, tier: AutonomyTier) -> CompressedCard:
        reasons = meal_reasons(prefs)
        return CompressedCard(
            id="card_2",
            title=_MEAL_TITLES.get(meal.meal_type, "Meal Time"),
            items=[CardItem(ItemKind.MEAL, meal, meal.title)],
            duration_minutes=_MEAL_MINUTES,
            reasons=reasons,
            rationale_text=render_rationale(reasons, meal.meal_type),
            tier=tier,
            priority=CardPriority.MEDIUM,
        )

    def _secondary_block(
        self,
        task: CandidateItem,
        breaks: list[CandidateItem],
        prefs: PreferenceVector,
        hour: int,
        tier: AutonomyTier,
        recent_feedback: Sequence[FeedbackEvent],
    ) -> CompressedCard:
        items = [CardItem(ItemKind.TASK, task, f"Next up: {task.title}")]
        duration = _task_minutes(task, prefs)
        if (
            breaks
            and tier is not AutonomyTier.AUTO
            and prefs.break_frequency_weight > _BREAK_FREQUENCY_THRESHOLD
        ):
            second_break = breaks[1] if len(breaks) > 1 else breaks[0]
            items.append(CardItem(ItemKind.BREAK, second_break, f"Break: {second_break.title}"))
            duration += second_break.break_duration or _DEFAULT_BREAK_MINUTES
        reasons = item_reasons(task, prefs, hour, recent_feedback)
        return CompressedCard(
            id="card_3",
            title="Next Block",
            items=items,
            duration_minutes=duration,
            reasons=reasons,
            rationale_text=render_rationale(reasons),
            tier=tier,
            priority=CardPriority.MEDIUM,
        )

    def _extra_block(
        self,
        tasks: list[CandidateItem],
        prefs: PreferenceVector,
        hour: int,
        tier: AutonomyTier,
    ) -> CompressedCard | None:
        if hour >= _WIND_DOWN_HOUR:
            light = next(
                (t for t in tasks if t.effort is not None and t.effort <= LOW_EFFORT),
                tasks[2] if len(tasks) > 2 else None,
            )
            if light is None:
                return None
            reasons = wind_down_reasons(prefs)
            return CompressedCard(
                id="card_4",
                title="Evening Wind-down",
                items=[CardItem(ItemKind.TASK, light, f"Light task: {light.title}")],
                duration_minutes=light.estimated_minutes or _WIND_DOWN_MINUTES,
                reasons=reasons,
                rationale_text=render_rationale(reasons),
                tier=tier,
                priority=CardPriority.LOW,
            )

        if len(tasks) <= 2:
            return None
        third = tasks[2]
        reasons = [ReasonCode.SPARE_CAPACITY]
        return CompressedCard(
            id="card_4",
            title="Bonus Block",
            items=[CardItem(ItemKind.TASK, third, f"Also: {third.title}")],
            duration_minutes=third.estimated_minutes or _BONUS_MINUTES,
            reasons=reasons,
            rationale_text=render_rationale(reasons),
            tier=tier,
            priority=CardPriority.LOW,
        )


def generate_cards(
    candidates: Sequence[CandidateItem],
    prefs: PreferenceVector,
    hour: int,
    tier: AutonomyTier,
    recent_feedback: Sequence[FeedbackEvent] = (),
) -> CardAssembly:
    """Rank *candidates* and assemble cards with the default scorer."""
    return CardAssembler().assemble(candidates, prefs, hour, tier, recent_feedback)


def _task_minutes(task: CandidateItem, prefs: PreferenceVector) -> int:
    if task.estimated_minutes:
        return task.estimated_minutes
    return int(round(prefs.focus_duration_preference))


def _period_name(hour: int) -> str:
    if 5 <= hour < 12:
        return "Morning"
    if 12 <= hour < 17:
        return "Afternoon"
    if 17 <= hour < 21:
        return "Evening"
    return "Night"
