"""Core domain dataclasses shared across all routine engine modules."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from enum import Enum
from typing import Any


class ItemKind(str, Enum):
    """Categories of recurring activity a user can register."""

    TASK = "task"
    MEAL = "meal"
    BREAK = "break"


class MealType(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


class Frequency(str, Enum):
    """How often a candidate item recurs."""

    DAILY = "daily"
    WEEKLY = "weekly"
    WEEKDAYS = "weekdays"
    WEEKENDS = "weekends"


class FeedbackAction(str, Enum):
    """The user's response to a suggestion."""

    ACCEPT = "accept"
    OVERRIDE = "override"
    IGNORE = "ignore"


class AutonomyTier(str, Enum):
    """How much the engine decides on the user's behalf.

    Derived from the cognitive-load score: a fresh user gets ``manual``
    (all options), a tired one gets ``auto`` (strong defaults, few cards).
    """

    MANUAL = "manual"
    ASSIST = "assist"
    AUTO = "auto"


class CardPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ReasonCode(str, Enum):
    """Structured explanation tags attached to each card.

    Human phrasing lives in :mod:`routine.rationale`; the codes are what a
    presentation layer should key off.
    """

    CONFIDENT = "confident"
    MORNING_PRODUCTIVE = "morning_productive"
    MORNING_FOCUS = "morning_focus"
    AFTERNOON_STRONG = "afternoon_strong"
    EVENING_LIGHT_MATCH = "evening_light_match"
    EVENING_WIND_DOWN = "evening_wind_down"
    HANDLES_CHALLENGE = "handles_challenge"
    RECENTLY_ACCEPTED = "recently_accepted"
    CHOSEN_BEFORE = "chosen_before"
    PREFERRED_TIME = "preferred_time"
    URGENT = "urgent"
    IMPORTANT = "important"
    MEAL_TIME = "meal_time"
    MEAL_TIME_CONFIDENT = "meal_time_confident"
    EVENING_LIGHT_HABIT = "evening_light_habit"
    EVENING_LIGHT_TASK = "evening_light_task"
    SPARE_CAPACITY = "spare_capacity"


# ---------------------------------------------------------------------------
# Candidate items
# ---------------------------------------------------------------------------


@dataclass
class CandidateItem:
    """A recurring user-defined activity eligible for recommendation.

    Attributes:
        item_id: Stable identifier, carried through feedback context.
        kind: Task, meal or break.
        title: Human-readable label (also the legacy feedback join key).
        effort: Perceived effort on a 1–5 scale, ``None`` if unrated.
        estimated_minutes: Expected task duration.
        meal_type: Only meaningful for meals.
        break_duration: Only meaningful for breaks, in minutes.
        preferred_time: ``"HH:MM"`` local time the user prefers, if any.
        tags: Free-form labels; ``urgent``, ``important`` and ``quick``
            carry scoring bonuses.
        frequency: Recurrence rule used to filter items for a given day.
        active: Inactive items are never recommended.
    """

    item_id: str
    kind: ItemKind
    title: str
    effort: int | None = None
    estimated_minutes: int | None = None
    meal_type: MealType | None = None
    break_duration: int | None = None
    preferred_time: str | None = None
    tags: set[str] = field(default_factory=set)
    frequency: Frequency = Frequency.DAILY
    active: bool = True

    def __post_init__(self) -> None:
        self.kind = ItemKind(self.kind)
        self.frequency = Frequency(self.frequency)
        if self.meal_type is not None:
            self.meal_type = MealType(self.meal_type)
        if self.effort is not None and not 1 <= self.effort <= 5:
            raise ValueError(f"Effort must be between 1 and 5, got {self.effort!r}")
        self.tags = set(self.tags)

    @property
    def preferred_hour(self) -> int | None:
        """Hour component of :attr:`preferred_time`, or ``None``."""
        if not self.preferred_time:
            return None
        return int(self.preferred_time.split(":")[0])

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "kind": self.kind.value,
            "title": self.title,
            "effort": self.effort,
            "estimated_minutes": self.estimated_minutes,
            "meal_type": self.meal_type.value if self.meal_type else None,
            "break_duration": self.break_duration,
            "preferred_time": self.preferred_time,
            "tags": sorted(self.tags),
            "frequency": self.frequency.value,
            "active": self.active,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CandidateItem:
        return cls(
            item_id=str(data["item_id"]),
            kind=data["kind"],
            title=data["title"],
            effort=_opt_int(data.get("effort")),
            estimated_minutes=_opt_int(data.get("estimated_minutes")),
            meal_type=data.get("meal_type"),
            break_duration=_opt_int(data.get("break_duration")),
            preferred_time=data.get("preferred_time"),
            tags=set(data.get("tags") or ()),
            frequency=data.get("frequency") or Frequency.DAILY,
            active=bool(data.get("active", True)),
        )


# ---------------------------------------------------------------------------
# Feedback
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FeedbackContext:
    """Situation the user was in when responding to a suggestion.

    Attributes:
        cognitive_load: Load score shown to the user at the time.
        card_items: Action texts of the card that was answered
            (e.g. ``"Focus on: Write report"``).
        original_items: Titles of the items originally suggested.
        hour: Local hour of the response.  When ``None`` the updater
            uses the hour of its ``now`` argument.
    """

    cognitive_load: int | None = None
    card_items: tuple[str, ...] = ()
    original_items: tuple[str, ...] = ()
    hour: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "card_items", tuple(self.card_items))
        object.__setattr__(self, "original_items", tuple(self.original_items))

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> FeedbackContext:
        data = data or {}
        return cls(
            cognitive_load=_opt_int(data.get("cognitive_load")),
            card_items=_str_tuple(data.get("card_items"), "card_items"),
            original_items=_str_tuple(data.get("original_items"), "original_items"),
            hour=_opt_int(data.get("hour")),
        )


@dataclass(frozen=True)
class FeedbackEvent:
    """A single recorded response to a suggestion.  Immutable once created.

    Attributes:
        action: Accept, override or ignore.
        item_id: Stable identifier of the suggested item, when known.
        item_value: Text of what was suggested.
        chosen_alternative: Title of what the user did instead (overrides).
        context: :class:`FeedbackContext` captured with the response.
        created_at: When the response was recorded.
    """

    action: FeedbackAction
    item_id: str | None = None
    item_value: str | None = None
    chosen_alternative: str | None = None
    context: FeedbackContext = field(default_factory=FeedbackContext)
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "action", FeedbackAction(self.action))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FeedbackEvent:
        """Build an event from a request payload.

        Raises:
            ValueError: If ``action`` is missing or not one of
                ``accept``/``override``/``ignore``, or ``created_at`` is not
                an ISO 8601 timestamp.
        """
        action = data.get("action")
        if action is None:
            raise ValueError("action is required")
        try:
            action = FeedbackAction(action)
        except ValueError:
            allowed = ", ".join(a.value for a in FeedbackAction)
            raise ValueError(f"Invalid action {action!r}; expected one of {allowed}") from None
        return cls(
            action=action,
            item_id=data.get("item_id"),
            item_value=data.get("item_value"),
            chosen_alternative=data.get("chosen_alternative") or data.get("override_value"),
            context=FeedbackContext.from_dict(data.get("context")),
            created_at=parse_timestamp(data.get("created_at"), "created_at"),
        )


@dataclass(frozen=True)
class FeedbackCounts:
    """Today's feedback tally, as reported by the store."""

    total: int = 0
    overrides: int = 0


@dataclass
class FeedbackSummary:
    total: int = 0
    accepts: int = 0
    overrides: int = 0
    ignores: int = 0
    accept_rate: float = 0.0
    override_rate: float = 0.0
    ignore_rate: float = 0.0


# ---------------------------------------------------------------------------
# Preference vector
# ---------------------------------------------------------------------------


@dataclass
class PreferredAlternative:
    """An override where the user named what they did instead."""

    original: tuple[str, ...]
    chosen: str
    hour: int
    cognitive_load: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "original": list(self.original),
            "chosen": self.chosen,
            "hour": self.hour,
            "cognitive_load": self.cognitive_load,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PreferredAlternative:
        return cls(
            original=tuple(data.get("original") or ()),
            chosen=data["chosen"],
            hour=int(data["hour"]),
            cognitive_load=_opt_int(data.get("cognitive_load")),
        )


# Fields bounded to [0, 1]; re-clamped after every update.
WEIGHT_FIELDS: tuple[str, ...] = (
    "morning_task_weight",
    "afternoon_task_weight",
    "evening_task_weight",
    "high_effort_preference",
    "low_effort_preference",
    "break_frequency_weight",
    "suggestion_confidence",
    "high_load_override_tendency",
)

COUNTER_FIELDS: tuple[str, ...] = (
    "consecutive_accepts",
    "consecutive_overrides",
    "consecutive_ignores",
    "total_decisions",
    "total_accepts",
    "total_overrides",
    "total_ignores",
    "version",
)

RATE_FIELDS: tuple[str, ...] = ("accept_rate", "override_rate", "ignore_rate")


@dataclass
class PreferenceVector:
    """Learned behavioural weights and counters for a single user.

    Every field carries its neutral default here, so readers never need
    ``or 0.5``-style fallbacks.  Weights in :data:`WEIGHT_FIELDS` stay within
    ``[0, 1]``; cumulative counters only ever grow.

    Only :func:`routine.learning.apply_feedback` produces modified vectors;
    ``version`` is owned by the store.
    """

    morning_task_weight: float = 0.5
    afternoon_task_weight: float = 0.5
    evening_task_weight: float = 0.3
    high_effort_preference: float = 0.5
    low_effort_preference: float = 0.5
    break_frequency_weight: float = 0.5
    focus_duration_preference: float = 50.0
    suggestion_confidence: float = 0.5
    high_load_override_tendency: float = 0.5

    consecutive_accepts: int = 0
    consecutive_overrides: int = 0
    consecutive_ignores: int = 0

    total_decisions: int = 0
    total_accepts: int = 0
    total_overrides: int = 0
    total_ignores: int = 0

    accept_rate: float = 0.0
    override_rate: float = 0.0
    ignore_rate: float = 0.0

    needs_recalibration: bool = False
    last_learned_at: datetime | None = None
    preferred_alternatives: list[PreferredAlternative] = field(default_factory=list)

    version: int = 0

    def copy(self) -> PreferenceVector:
        """Return an independent copy (alternatives list included)."""
        return replace(self, preferred_alternatives=copy.deepcopy(self.preferred_alternatives))

    def clamped(self) -> PreferenceVector:
        """Return a copy with every weight clamped to ``[0, 1]``."""
        result = self.copy()
        for name in WEIGHT_FIELDS:
            setattr(result, name, clamp(getattr(result, name)))
        for name in COUNTER_FIELDS:
            setattr(result, name, max(0, getattr(result, name)))
        if result.focus_duration_preference <= 0:
            result.focus_duration_preference = PreferenceVector.focus_duration_preference
        return result

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "preferred_alternatives":
                value = [alt.to_dict() for alt in value]
            data[f.name] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> PreferenceVector:
        """Build a vector from a stored document, filling defaults once.

        Missing or ``None`` keys keep their defaults, unknown keys are
        ignored, numeric types are coerced and weights are clamped.
        """
        vector = cls()
        if not data:
            return vector
        for f in fields(cls):
            value = data.get(f.name)
            if value is None:
                continue
            if f.name in COUNTER_FIELDS:
                value = int(value)
            elif f.name == "needs_recalibration":
                value = bool(value)
            elif f.name == "preferred_alternatives":
                value = [PreferredAlternative.from_dict(alt) for alt in value]
            elif f.name != "last_learned_at":
                value = float(value)
            setattr(vector, f.name, value)
        return vector.clamped()


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp *value* into ``[low, high]``."""
    return max(low, min(high, value))


# ---------------------------------------------------------------------------
# Cognitive load
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ActivitySnapshot:
    """Today's activity, as read from the store for the load estimator.

    Attributes:
        decisions_today: Feedback events recorded since local midnight.
        overrides_today: How many of those were overrides.
        session_ms_today: Summed session durations in milliseconds.
        hour: Current local hour (0–23).
    """

    decisions_today: int = 0
    overrides_today: int = 0
    session_ms_today: int = 0
    hour: int = 12


@dataclass
class LoadComponent:
    """One capped contribution to the cognitive-load score.

    Attributes:
        value: Points contributed.
        cap: Maximum points this component can contribute.
        observed: The raw measurement (count, rate percent, minutes, hour).
    """

    value: int
    cap: int
    observed: float = 0

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value, "cap": self.cap, "observed": self.observed}


@dataclass
class CognitiveLoadResult:
    score: int
    tier: AutonomyTier
    breakdown: dict[str, LoadComponent]
    description: str = ""
    degraded: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "tier": self.tier.value,
            "breakdown": {name: c.to_dict() for name, c in self.breakdown.items()},
            "description": self.description,
            "degraded": self.degraded,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CognitiveLoadResult:
        return cls(
            score=int(data["score"]),
            tier=AutonomyTier(data["tier"]),
            breakdown={
                name: LoadComponent(
                    value=int(c["value"]), cap=int(c["cap"]), observed=c.get("observed", 0)
                )
                for name, c in (data.get("breakdown") or {}).items()
            },
            description=data.get("description", ""),
            degraded=bool(data.get("degraded", False)),
        )


# ---------------------------------------------------------------------------
# Cards and plans
# ---------------------------------------------------------------------------


@dataclass
class CardItem:
    kind: ItemKind
    candidate: CandidateItem
    action_text: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "candidate": self.candidate.to_dict(),
            "action_text": self.action_text,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CardItem:
        return cls(
            kind=ItemKind(data["kind"]),
            candidate=CandidateItem.from_dict(data["candidate"]),
            action_text=data["action_text"],
        )


@dataclass
class CompressedCard:
    """A bundle of recommended items presented as one decision point.

    Attributes:
        id: Slot identifier (``card_1`` … ``card_4``); stable per slot so
            feedback can reference it.
        title: Short heading, e.g. ``"Morning Focus Block"``.
        items: Ordered items with their action phrasing.
        duration_minutes: Combined duration of the items.
        reasons: Structured :class:`ReasonCode` list behind the rationale.
        rationale_text: Human-readable rendering of *reasons*.
        tier: Autonomy tier the card was generated under.
        priority: Display priority.
    """

    id: str
    title: str
    items: list[CardItem]
    duration_minutes: int
    reasons: list[ReasonCode]
    rationale_text: str
    tier: AutonomyTier
    priority: CardPriority

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "items": [item.to_dict() for item in self.items],
            "duration_minutes": self.duration_minutes,
            "reasons": [r.value for r in self.reasons],
            "rationale_text": self.rationale_text,
            "tier": self.tier.value,
            "priority": self.priority.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CompressedCard:
        return cls(
            id=data["id"],
            title=data["title"],
            items=[CardItem.from_dict(item) for item in data.get("items") or ()],
            duration_minutes=int(data["duration_minutes"]),
            reasons=[ReasonCode(r) for r in data.get("reasons") or ()],
            rationale_text=data.get("rationale_text", ""),
            tier=AutonomyTier(data["tier"]),
            priority=CardPriority(data["priority"]),
        )


@dataclass
class CardAssembly:
    """Output of one card-assembly pass.

    ``message`` explains an empty or short result to the user; it is
    ``None`` when cards were produced normally.
    """

    cards: list[CompressedCard] = field(default_factory=list)
    message: str | None = None


@dataclass
class PlanInsights:
    accept_rate: float = 0.0
    total_learned: int = 0
    confidence: float = 0.5

    def to_dict(self) -> dict[str, Any]:
        return {
            "accept_rate": self.accept_rate,
            "total_learned": self.total_learned,
            "confidence": self.confidence,
        }


@dataclass
class DailyPlan:
    """A day's generated plan; persisted as a snapshot by the plan store."""

    user_id: str
    plan_date: date
    cards: list[CompressedCard]
    cognitive_load: CognitiveLoadResult
    message: str | None = None
    total_candidates: int = 0
    generated_at: datetime | None = None
    insights: PlanInsights = field(default_factory=PlanInsights)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "plan_date": self.plan_date.isoformat(),
            "cards": [card.to_dict() for card in self.cards],
            "cognitive_load": self.cognitive_load.to_dict(),
            "message": self.message,
            "total_candidates": self.total_candidates,
            "generated_at": self.generated_at,
            "insights": self.insights.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DailyPlan:
        insights = data.get("insights") or {}
        return cls(
            user_id=data["user_id"],
            plan_date=date.fromisoformat(data["plan_date"]),
            cards=[CompressedCard.from_dict(card) for card in data.get("cards") or ()],
            cognitive_load=CognitiveLoadResult.from_dict(data["cognitive_load"]),
            message=data.get("message"),
            total_candidates=int(data.get("total_candidates") or 0),
            generated_at=data.get("generated_at"),
            insights=PlanInsights(
                accept_rate=float(insights.get("accept_rate", 0.0)),
                total_learned=int(insights.get("total_learned", 0)),
                confidence=float(insights.get("confidence", 0.5)),
            ),
        )


def _opt_int(value: Any) -> int | None:
    return None if value is None else int(value)


def parse_timestamp(value: Any, name: str = "timestamp") -> datetime | None:
    """Parse an ISO 8601 string or datetime into an aware datetime.

    Naive values are taken as local time.

    Raises:
        ValueError: If *value* is neither ``None``, a datetime nor an
            ISO 8601 string.
    """
    if value is None:
        return None
    if isinstance(value, str):
        text = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"{name} must be an ISO 8601 timestamp, got {value!r}") from None
    if not isinstance(value, datetime):
        raise ValueError(f"{name} must be an ISO 8601 timestamp, got {value!r}")
    return value if value.tzinfo is not None else value.astimezone()


def _str_tuple(value: Any, name: str) -> tuple[str, ...]:
    # a bare string is one entry, not a sequence of characters
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"{name} must be a list of strings, got {value!r}")
    return tuple(str(entry) for entry in value)
