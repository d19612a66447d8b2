"""Learning updater: adjusts a preference vector from accept/override/ignore feedback."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from routine.models import (
    FeedbackAction,
    FeedbackContext,
    FeedbackEvent,
    FeedbackSummary,
    PreferenceVector,
    PreferredAlternative,
    clamp,
)
from routine.preferences import band_field, time_band_for_hour

logger = logging.getLogger(__name__)

LEARNING_RATE = 0.1
MAX_PREFERRED_ALTERNATIVES = 20

_IGNORE_SCALE = 0.3              # ignores are a softer signal than overrides
_HIGH_EFFORT_SCALE = 0.5
_CONFIDENCE_STREAK = 3
_RECALIBRATION_IGNORES = 5
_HIGH_LOAD_THRESHOLD = 66

# Card-item wording that marks demanding work ("Focus on: ...", "Deep work")
_EFFORT_TERMS = ("focus", "deep")


def apply_feedback(
    prefs: PreferenceVector,
    action: FeedbackAction | str,
    context: FeedbackContext | None = None,
    now: datetime | None = None,
    chosen_alternative: str | None = None,
) -> PreferenceVector:
    """Return a new preference vector updated from one feedback action.

    *prefs* is never mutated.  The time band adjusted is the one containing
    ``context.hour`` (or ``now.hour`` when the context has none).

    ========  ==========================================================
    Action    Learning
    ========  ==========================================================
    accept    band weight +α; focus/deep card items raise
              ``high_effort_preference`` by α/2; accept streak of 3+
              raises ``suggestion_confidence`` by α
    override  band weight −α; load above 66 raises
              ``high_load_override_tendency`` by α; override streak of
              3+ lowers ``suggestion_confidence`` by α; a named
              alternative is remembered (last 20 kept)
    ignore    band weight −0.3α; an ignore count of 5+ sets
              ``needs_recalibration`` (accepts and overrides leave the
              ignore count and the flag alone)
    ========  ==========================================================

    Every action then bumps ``total_decisions`` and its own counter,
    recomputes the three rates and stamps ``last_learned_at``.  All weights
    are clamped to ``[0, 1]``.

    Args:
        prefs: The current vector.
        action: What the user did.
        context: Situation at the time of feedback.
        now: Timestamp of the update; defaults to the current local time.
        chosen_alternative: What the user did instead, for overrides.

    Returns:
        The updated :class:`~routine.models.PreferenceVector`.

    Raises:
        ValueError: If *action* is not a known :class:`FeedbackAction`.
    """
    action = FeedbackAction(action)
    context = context or FeedbackContext()
    now = now or datetime.now().astimezone()
    hour = context.hour if context.hour is not None else now.hour

    updated = prefs.copy()
    weight_field = band_field(time_band_for_hour(hour))

    if action is FeedbackAction.ACCEPT:
        _nudge(updated, weight_field, LEARNING_RATE)
        if any(term in entry.lower() for entry in context.card_items for term in _EFFORT_TERMS):
            _nudge(updated, "high_effort_preference", LEARNING_RATE * _HIGH_EFFORT_SCALE)
        updated.consecutive_accepts += 1
        updated.consecutive_overrides = 0
        if updated.consecutive_accepts >= _CONFIDENCE_STREAK:
            _nudge(updated, "suggestion_confidence", LEARNING_RATE)
        updated.total_accepts += 1

    elif action is FeedbackAction.OVERRIDE:
        _nudge(updated, weight_field, -LEARNING_RATE)
        if context.cognitive_load is not None and context.cognitive_load > _HIGH_LOAD_THRESHOLD:
            _nudge(updated, "high_load_override_tendency", LEARNING_RATE)
        updated.consecutive_overrides += 1
        updated.consecutive_accepts = 0
        if updated.consecutive_overrides >= _CONFIDENCE_STREAK:
            _nudge(updated, "suggestion_confidence", -LEARNING_RATE)
        if chosen_alternative:
            updated.preferred_alternatives.append(
                PreferredAlternative(
                    original=context.original_items,
                    chosen=chosen_alternative,
                    hour=hour,
                    cognitive_load=context.cognitive_load,
                )
            )
            del updated.preferred_alternatives[:-MAX_PREFERRED_ALTERNATIVES]
        updated.total_overrides += 1

    else:
        _nudge(updated, weight_field, -LEARNING_RATE * _IGNORE_SCALE)
        updated.consecutive_ignores += 1
        if updated.consecutive_ignores >= _RECALIBRATION_IGNORES:
            updated.needs_recalibration = True
        updated.total_ignores += 1

    updated.total_decisions += 1
    updated.accept_rate = updated.total_accepts / updated.total_decisions
    updated.override_rate = updated.total_overrides / updated.total_decisions
    updated.ignore_rate = updated.total_ignores / updated.total_decisions
    updated.last_learned_at = now

    logger.debug(
        "Learned from %s at hour %d: %s=%.2f confidence=%.2f accept_rate=%.2f",
        action.value,
        hour,
        weight_field,
        getattr(updated, weight_field),
        updated.suggestion_confidence,
        updated.accept_rate,
    )
    return updated.clamped()


def learn_from_event(
    prefs: PreferenceVector, event: FeedbackEvent, now: datetime | None = None
) -> PreferenceVector:
    """:func:`apply_feedback` for a recorded :class:`FeedbackEvent`."""
    return apply_feedback(
        prefs,
        event.action,
        event.context,
        now=now or event.created_at,
        chosen_alternative=event.chosen_alternative,
    )


def summarize_feedback(events: Sequence[FeedbackEvent]) -> FeedbackSummary:
    """Count actions in *events* and derive their rates."""
    summary = FeedbackSummary(total=len(events))
    for event in events:
        if event.action is FeedbackAction.ACCEPT:
            summary.accepts += 1
        elif event.action is FeedbackAction.OVERRIDE:
            summary.overrides += 1
        else:
            summary.ignores += 1
    if summary.total:
        summary.accept_rate = summary.accepts / summary.total
        summary.override_rate = summary.overrides / summary.total
        summary.ignore_rate = summary.ignores / summary.total
    return summary


def _nudge(prefs: PreferenceVector, name: str, delta: float) -> None:
    setattr(prefs, name, clamp(getattr(prefs, name) + delta))
