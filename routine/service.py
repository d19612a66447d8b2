"""Planning service: the request boundary in front of :class:`RoutineEngine`.

Requests and responses are plain dicts so any transport can sit on top.
Every response carries a ``status`` from :class:`Status`; failures add an
``error`` message and never raise to the caller.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any

import config
from routine.cognitive_load import describe_tier
from routine.engine import RoutineEngine
from routine.models import FeedbackEvent, parse_timestamp
from routine.store import ConcurrentUpdateError, StoreError

logger = logging.getLogger(__name__)


class Status(str, Enum):
    OK = "ok"
    INVALID_ARGUMENT = "invalid_argument"
    CONFLICT = "conflict"
    UNAVAILABLE = "unavailable"
    INTERNAL = "internal"


class PlanningService:
    """Validates raw requests, calls the engine and maps failures to statuses.

    ==========================  ======================
    Failure                     Status
    ==========================  ======================
    Missing/empty ``user_id``   ``invalid_argument``
    ``ValueError``              ``invalid_argument``
    ``ConcurrentUpdateError``   ``conflict``
    ``StoreError``              ``unavailable``
    anything else               ``internal`` (logged)
    ==========================  ======================

    Args:
        engine: The :class:`~routine.engine.RoutineEngine`.
        warn_threshold_ms: Plan requests slower than this log a warning.
    """

    def __init__(
        self,
        engine: RoutineEngine,
        warn_threshold_ms: float = config.PLAN_WARN_THRESHOLD_MS,
    ) -> None:
        self._engine = engine
        self._warn_threshold_ms = warn_threshold_ms

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    def handle_generate_plan(self, request: dict[str, Any]) -> dict[str, Any]:
        """Build (or fetch) today's plan.

        Args:
            request: ``{"user_id": str, "force": bool?, "now": str?}``;
                ``now`` is an ISO 8601 timestamp overriding the clock.

        Returns:
            ``{"status": "ok", "plan": {...}}`` on success.
        """
        user_id = request.get("user_id")
        if not user_id:
            return _error(Status.INVALID_ARGUMENT, "user_id must be non-empty")

        start_ms = time.monotonic() * 1000
        try:
            now = parse_timestamp(request.get("now"), "now")
            plan = self._engine.generate_plan(user_id, now=now, force=bool(request.get("force")))
        except Exception as exc:
            return self._failure(exc, "generating plan", user_id)
        finally:
            elapsed_ms = time.monotonic() * 1000 - start_ms
            if elapsed_ms > self._warn_threshold_ms:
                logger.warning(
                    "Plan generation for user=%r took %.1fms (threshold: %dms)",
                    user_id,
                    elapsed_ms,
                    self._warn_threshold_ms,
                )
            else:
                logger.debug("Plan generation for user=%r took %.1fms", user_id, elapsed_ms)

        payload = plan.to_dict()
        if plan.generated_at is not None:
            payload["generated_at"] = plan.generated_at.isoformat()
        payload["cognitive_load"]["mode"] = describe_tier(plan.cognitive_load.tier)
        return {"status": Status.OK.value, "plan": payload}

    def handle_cognitive_load(self, request: dict[str, Any]) -> dict[str, Any]:
        """Report the user's current cognitive load and autonomy tier."""
        user_id = request.get("user_id")
        if not user_id:
            return _error(Status.INVALID_ARGUMENT, "user_id must be non-empty")
        try:
            now = parse_timestamp(request.get("now"), "now")
            load = self._engine.current_load(user_id, now=now)
        except Exception as exc:
            return self._failure(exc, "estimating cognitive load", user_id)
        return {"status": Status.OK.value, "cognitive_load": load.to_dict()}

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    def handle_feedback(self, request: dict[str, Any]) -> dict[str, Any]:
        """Record accept/override/ignore feedback and learn from it.

        Args:
            request: ``{"user_id": str, "action": str, "item_id": str?,
                "item_value": str?, "chosen_alternative": str?,
                "context": {...}?, "created_at": str?, "now": str?}``.
                Timestamps without an offset are read as local time.

        Returns:
            ``{"status": "ok", "learned": {...}}`` with the updated rates and
            confidence.  Nothing is written unless the status is ``ok``.
        """
        user_id = request.get("user_id")
        if not user_id:
            return _error(Status.INVALID_ARGUMENT, "user_id must be non-empty")
        try:
            now = parse_timestamp(request.get("now"), "now")
            event = FeedbackEvent.from_dict(request)
            vector = self._engine.submit_feedback(user_id, event, now=now)
        except Exception as exc:
            return self._failure(exc, "recording feedback", user_id)
        return {
            "status": Status.OK.value,
            "learned": {
                "action": event.action.value,
                "total_decisions": vector.total_decisions,
                "accept_rate": vector.accept_rate,
                "override_rate": vector.override_rate,
                "ignore_rate": vector.ignore_rate,
                "suggestion_confidence": vector.suggestion_confidence,
                "needs_recalibration": vector.needs_recalibration,
            },
        }

    def handle_feedback_summary(self, request: dict[str, Any]) -> dict[str, Any]:
        user_id = request.get("user_id")
        if not user_id:
            return _error(Status.INVALID_ARGUMENT, "user_id must be non-empty")
        try:
            summary = self._engine.feedback_summary(user_id)
        except Exception as exc:
            return self._failure(exc, "summarising feedback", user_id)
        return {
            "status": Status.OK.value,
            "summary": {
                "total": summary.total,
                "accepts": summary.accepts,
                "overrides": summary.overrides,
                "ignores": summary.ignores,
                "accept_rate": summary.accept_rate,
                "override_rate": summary.override_rate,
                "ignore_rate": summary.ignore_rate,
            },
        }

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def handle_create_profile(self, request: dict[str, Any]) -> dict[str, Any]:
        """Create the onboarding preference vector for a new user."""
        user_id = request.get("user_id")
        if not user_id:
            return _error(Status.INVALID_ARGUMENT, "user_id must be non-empty")
        try:
            vector = self._engine.create_profile(
                user_id,
                work_style=request.get("work_style") or "flexible",
                break_preference=request.get("break_preference") or "short",
            )
        except Exception as exc:
            return self._failure(exc, "creating profile", user_id)
        return {
            "status": Status.OK.value,
            "profile": {
                "focus_duration_preference": vector.focus_duration_preference,
                "high_effort_preference": vector.high_effort_preference,
                "low_effort_preference": vector.low_effort_preference,
                "break_frequency_weight": vector.break_frequency_weight,
            },
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _failure(exc: Exception, doing: str, user_id: str) -> dict[str, Any]:
        # Called from inside an except block. ConcurrentUpdateError is checked
        # before its StoreError base.
        if isinstance(exc, ValueError):
            return _error(Status.INVALID_ARGUMENT, str(exc))
        if isinstance(exc, ConcurrentUpdateError):
            logger.warning("Conflict %s for user=%r: %s", doing, user_id, exc)
            return _error(Status.CONFLICT, str(exc))
        if isinstance(exc, StoreError):
            logger.error("Store unavailable %s for user=%r: %s", doing, user_id, exc)
            return _error(Status.UNAVAILABLE, "Routine store unavailable.")
        logger.exception("Unexpected error %s for user=%r", doing, user_id)
        return _error(Status.INTERNAL, f"Internal error {doing}.")


def _error(status: Status, message: str) -> dict[str, Any]:
    return {"status": status.value, "error": message}
