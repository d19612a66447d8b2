"""Default and onboarding preference vectors, and time-band helpers."""

from __future__ import annotations

import logging
from enum import Enum

from routine.models import PreferenceVector

logger = logging.getLogger(__name__)


class TimeBand(str, Enum):
    """Coarse part of the day a learned time weight applies to.

    Night hours fold into ``evening``: the vector carries no separate night
    weight.
    """

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


# TimeBand -> PreferenceVector attribute holding its weight
_BAND_FIELDS = {
    TimeBand.MORNING: "morning_task_weight",
    TimeBand.AFTERNOON: "afternoon_task_weight",
    TimeBand.EVENING: "evening_task_weight",
}

_WORK_STYLES = ("flexible", "structured", "deep_work")


def time_band_for_hour(hour: int) -> TimeBand:
    """Return the band for a local *hour*: ``[6,12)``, ``[12,17)``, else evening."""
    if 6 <= hour < 12:
        return TimeBand.MORNING
    if 12 <= hour < 17:
        return TimeBand.AFTERNOON
    return TimeBand.EVENING


def band_field(band: TimeBand) -> str:
    """Name of the :class:`PreferenceVector` attribute for *band*."""
    return _BAND_FIELDS[band]


def band_weight(prefs: PreferenceVector, hour: int) -> float:
    """Learned weight for the band containing *hour*."""
    return getattr(prefs, band_field(time_band_for_hour(hour)))


def default_vector() -> PreferenceVector:
    """The neutral vector used when a user has no stored preferences."""
    return PreferenceVector()


def onboarding_vector(work_style: str = "flexible", break_preference: str = "short") -> PreferenceVector:
    """Seed a new user's vector from their onboarding answers.

    Args:
        work_style: ``flexible``, ``structured`` or ``deep_work``.
        break_preference: ``short`` (5–10 min) or ``long`` (15–20 min).

    Returns:
        A fresh :class:`PreferenceVector` with style-dependent effort, break
        and focus-duration priors; everything else at its default.

    Raises:
        ValueError: If *work_style* is not recognised.
    """
    if work_style not in _WORK_STYLES:
        raise ValueError(
            f"work_style must be one of {', '.join(_WORK_STYLES)}, got {work_style!r}"
        )
    vector = PreferenceVector(
        high_effort_preference=0.7 if work_style == "deep_work" else 0.5,
        low_effort_preference=0.6 if work_style == "flexible" else 0.5,
        break_frequency_weight=0.6 if break_preference == "short" else 0.4,
        focus_duration_preference={"deep_work": 90.0, "structured": 50.0}.get(work_style, 30.0),
    )
    logger.debug(
        "Onboarding vector for work_style=%r break_preference=%r: %s",
        work_style,
        break_preference,
        vector,
    )
    return vector
