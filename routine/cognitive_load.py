"""Cognitive load estimator: today's activity -> 0–100 fatigue score and tier."""

from __future__ import annotations

import logging
import math

import numpy as np

from routine.models import ActivitySnapshot, AutonomyTier, CognitiveLoadResult, LoadComponent

logger = logging.getLogger(__name__)

_DECISIONS_CAP = 30
_DECISIONS_SATURATION = 10        # decisions/day at which the cap is reached

_OVERRIDES_CAP = 25
_OVERRIDE_RATE_SATURATION = 0.5

_TIME_ON_SITE_CAP = 20
_TIME_ON_SITE_GRACE_MINUTES = 15  # free minutes before fatigue accrues
_TIME_ON_SITE_RAMP_MINUTES = 45   # minutes from grace to cap

_TIME_OF_DAY_CAP = 25

# (start_hour, width_hours, points_at_start, points_at_end).  The bands tile
# the whole day; night starts at 21:00 and wraps past midnight.
_TIME_OF_DAY_BANDS = (
    (6, 6, 0, 5),
    (12, 5, 10, 15),
    (17, 4, 15, 20),
    (21, 9, 20, 25),
)

_MANUAL_MAX_SCORE = 33
_ASSIST_MAX_SCORE = 66

DEFAULT_SCORE = 50

_TIER_DESCRIPTIONS = {
    AutonomyTier.MANUAL: "You're fresh! Full control mode - all options available.",
    AutonomyTier.ASSIST: "Balanced mode - I'll suggest, you decide.",
    AutonomyTier.AUTO: "You seem tired. I'll handle the routine stuff.",
}


def estimate_cognitive_load(activity: ActivitySnapshot) -> CognitiveLoadResult:
    """Convert today's activity into a load score and autonomy tier.

    Four independently capped contributions are summed and clamped to 100:

    ============  ====  ==========================================
    Component     Cap   Saturates at
    ============  ====  ==========================================
    decisions     30    10 decisions today
    overrides     25    50% of today's decisions overridden
    time_on_site  20    60 minutes (nothing below 15 minutes)
    time_of_day   25    late night; mornings contribute 0–5
    ============  ====  ==========================================

    Args:
        activity: Today's counts and the current local hour.

    Returns:
        A :class:`~routine.models.CognitiveLoadResult`.
    """
    breakdown = {
        "decisions": _decisions_component(activity.decisions_today),
        "overrides": _overrides_component(activity.decisions_today, activity.overrides_today),
        "time_on_site": _time_on_site_component(activity.session_ms_today),
        "time_of_day": _time_of_day_component(activity.hour),
    }
    score = int(np.clip(sum(c.value for c in breakdown.values()), 0, 100))
    tier = tier_for_score(score)
    logger.debug(
        "Cognitive load %d (%s): %s",
        score,
        tier.value,
        {name: c.value for name, c in breakdown.items()},
    )
    return CognitiveLoadResult(
        score=score,
        tier=tier,
        breakdown=breakdown,
        description=describe_tier(tier),
    )


def default_load(hour: int | None = None) -> CognitiveLoadResult:
    """The safe fallback used when today's activity cannot be read.

    Returns ``score=50`` / ``assist`` with every component zeroed and the
    result flagged as ``degraded``.
    """
    breakdown = {
        "decisions": LoadComponent(0, _DECISIONS_CAP),
        "overrides": LoadComponent(0, _OVERRIDES_CAP),
        "time_on_site": LoadComponent(0, _TIME_ON_SITE_CAP),
        "time_of_day": LoadComponent(0, _TIME_OF_DAY_CAP, observed=hour if hour is not None else 0),
    }
    return CognitiveLoadResult(
        score=DEFAULT_SCORE,
        tier=AutonomyTier.ASSIST,
        breakdown=breakdown,
        description=describe_tier(AutonomyTier.ASSIST),
        degraded=True,
    )


def tier_for_score(score: int) -> AutonomyTier:
    """Map a load score to its tier: ``≤33`` manual, ``≤66`` assist, else auto."""
    if score <= _MANUAL_MAX_SCORE:
        return AutonomyTier.MANUAL
    if score <= _ASSIST_MAX_SCORE:
        return AutonomyTier.ASSIST
    return AutonomyTier.AUTO


def describe_tier(tier: AutonomyTier) -> str:
    """User-facing one-line description of *tier*."""
    return _TIER_DESCRIPTIONS.get(tier, "Assist mode active.")


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


def _decisions_component(count: int) -> LoadComponent:
    count = max(0, count)
    value = min(_DECISIONS_CAP, round_half_up(count / _DECISIONS_SATURATION * _DECISIONS_CAP))
    return LoadComponent(value, _DECISIONS_CAP, observed=count)


def _overrides_component(count: int, overrides: int) -> LoadComponent:
    if count <= 0:
        return LoadComponent(0, _OVERRIDES_CAP)
    rate = max(0, overrides) / count
    value = min(_OVERRIDES_CAP, round_half_up(rate / _OVERRIDE_RATE_SATURATION * _OVERRIDES_CAP))
    return LoadComponent(value, _OVERRIDES_CAP, observed=round_half_up(rate * 100))


def _time_on_site_component(total_ms: int) -> LoadComponent:
    minutes = round_half_up(max(0, total_ms) / 60000)
    ramp = max(0, minutes - _TIME_ON_SITE_GRACE_MINUTES) / _TIME_ON_SITE_RAMP_MINUTES
    value = min(_TIME_ON_SITE_CAP, round_half_up(ramp * _TIME_ON_SITE_CAP))
    return LoadComponent(value, _TIME_ON_SITE_CAP, observed=minutes)


def _time_of_day_component(hour: int) -> LoadComponent:
    value = 0
    for start, width, low, high in _TIME_OF_DAY_BANDS:
        offset = (hour - start) % 24
        if offset < width:
            value = round_half_up(float(np.interp(offset, [0, width], [low, high])))
            break
    return LoadComponent(min(_TIME_OF_DAY_CAP, value), _TIME_OF_DAY_CAP, observed=hour)
