"""Reason codes behind each card, and their plain-English rendering."""

from __future__ import annotations

from collections.abc import Sequence

from routine.models import CandidateItem, FeedbackEvent, MealType, PreferenceVector, ReasonCode
from routine.preferences import TimeBand, band_weight, time_band_for_hour
from routine.rules.effort import HIGH_EFFORT, LOW_EFFORT
from routine.rules.history import times_chosen_as_alternative, was_accepted

_CONFIDENT_ACCEPT_RATE = 0.7
_PREFERRED_TIME_WINDOW = 2

DEFAULT_RATIONALE = "Based on your schedule and preferences."

_PHRASES: dict[ReasonCode, str] = {
    ReasonCode.CONFIDENT: "your routine model is confident",
    ReasonCode.MORNING_PRODUCTIVE: "you're most productive in mornings",
    ReasonCode.MORNING_FOCUS: "morning is a good time for focused work",
    ReasonCode.AFTERNOON_STRONG: "you tend to handle tasks well in the afternoon",
    ReasonCode.EVENING_LIGHT_MATCH: "a light evening task matches your pattern",
    ReasonCode.EVENING_WIND_DOWN: "winding down for the evening",
    ReasonCode.HANDLES_CHALLENGE: "you've shown you can handle challenging tasks",
    ReasonCode.RECENTLY_ACCEPTED: "you accepted this recently",
    ReasonCode.CHOSEN_BEFORE: "you specifically chose this before",
    ReasonCode.PREFERRED_TIME: "matches your preferred time",
    ReasonCode.URGENT: "marked urgent",
    ReasonCode.IMPORTANT: "marked as important",
    ReasonCode.MEAL_TIME: "it's {meal} time based on your schedule",
    ReasonCode.MEAL_TIME_CONFIDENT: "your routine says it's {meal} time",
    ReasonCode.EVENING_LIGHT_HABIT: "you sometimes do light tasks in the evening",
    ReasonCode.EVENING_LIGHT_TASK: "winding down with a lighter task for the evening",
    ReasonCode.SPARE_CAPACITY: "you have capacity for one more task today",
}


def item_reasons(
    item: CandidateItem,
    prefs: PreferenceVector,
    hour: int,
    recent_feedback: Sequence[FeedbackEvent] = (),
) -> list[ReasonCode]:
    """Collect the reasons an item was picked, lead reason first.

    Rules are checked in a fixed order: time band, effort, feedback
    history, preferred time, then priority tags.  A high accept rate puts
    :attr:`ReasonCode.CONFIDENT` in front, but only when some other reason
    already applies.
    """
    reasons: list[ReasonCode] = []
    band = time_band_for_hour(hour)
    weight = band_weight(prefs, hour)

    if band is TimeBand.MORNING:
        if weight > 0.6:
            reasons.append(ReasonCode.MORNING_PRODUCTIVE)
        elif weight > 0.5:
            reasons.append(ReasonCode.MORNING_FOCUS)
    elif band is TimeBand.AFTERNOON:
        if weight > 0.6:
            reasons.append(ReasonCode.AFTERNOON_STRONG)
    elif weight > 0.4 and item.effort is not None and item.effort <= LOW_EFFORT:
        reasons.append(ReasonCode.EVENING_LIGHT_MATCH)
    else:
        reasons.append(ReasonCode.EVENING_WIND_DOWN)

    if item.effort is not None and item.effort >= HIGH_EFFORT and prefs.high_effort_preference > 0.6:
        reasons.append(ReasonCode.HANDLES_CHALLENGE)

    if recent_feedback:
        if was_accepted(item, recent_feedback):
            reasons.append(ReasonCode.RECENTLY_ACCEPTED)
        if times_chosen_as_alternative(item, recent_feedback):
            reasons.append(ReasonCode.CHOSEN_BEFORE)

    preferred = item.preferred_hour
    if preferred is not None and abs(hour - preferred) <= _PREFERRED_TIME_WINDOW:
        reasons.append(ReasonCode.PREFERRED_TIME)

    if prefs.accept_rate > _CONFIDENT_ACCEPT_RATE and reasons:
        reasons.insert(0, ReasonCode.CONFIDENT)

    if "urgent" in item.tags:
        reasons.append(ReasonCode.URGENT)
    elif "important" in item.tags:
        reasons.append(ReasonCode.IMPORTANT)
    return reasons


def meal_reasons(prefs: PreferenceVector) -> list[ReasonCode]:
    if prefs.accept_rate > _CONFIDENT_ACCEPT_RATE:
        return [ReasonCode.MEAL_TIME_CONFIDENT]
    return [ReasonCode.MEAL_TIME]


def wind_down_reasons(prefs: PreferenceVector) -> list[ReasonCode]:
    if prefs.evening_task_weight > 0.5:
        return [ReasonCode.EVENING_LIGHT_HABIT]
    return [ReasonCode.EVENING_LIGHT_TASK]


def render_rationale(reasons: Sequence[ReasonCode], meal_type: MealType | None = None) -> str:
    """Join reason phrases into one sentence.

    The first phrase becomes the capitalised lead clause, the rest follow
    comma-separated, e.g. ``"Matches your preferred time, marked urgent."``
    """
    if not reasons:
        return DEFAULT_RATIONALE
    meal = meal_type.value if meal_type else "meal"
    phrases = [_PHRASES[code].format(meal=meal) for code in reasons]
    text = ", ".join(phrases)
    return text[0].upper() + text[1:] + "."
