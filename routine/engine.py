"""Routine engine: runs plan generation and feedback learning against the store."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, time

import config
from routine.cards import CardAssembler
from routine.cognitive_load import default_load, estimate_cognitive_load
from routine.learning import learn_from_event, summarize_feedback
from routine.models import (
    ActivitySnapshot,
    CognitiveLoadResult,
    DailyPlan,
    FeedbackEvent,
    FeedbackSummary,
    PlanInsights,
    PreferenceVector,
    parse_timestamp,
)
from routine.preferences import default_vector, onboarding_vector
from routine.scorer import is_applicable
from routine.store import ConcurrentUpdateError, RoutineStore

logger = logging.getLogger(__name__)


class RoutineEngine:
    """Coordinates the estimator, scorer, card assembler and learning updater.

    Plan generation:

    1. Return today's stored plan unless ``force`` is set.
    2. Read the preference vector (default if the user has none), the
       active candidates applicable today and recent feedback.
    3. Estimate cognitive load from today's activity.  A failed activity
       read degrades to the default load instead of failing the plan.
    4. Assemble cards and persist the plan snapshot.

    Feedback submission re-reads the vector, applies the update and commits
    event and vector together under the vector's version.  Version conflicts
    are retried up to ``commit_attempts`` times.

    Args:
        store: The :class:`~routine.store.RoutineStore` to read and write.
        assembler: Card assembler; defaults to one with the standard scorer.
        recent_feedback_limit: Feedback events passed to the scorer.
        commit_attempts: Attempts before a version conflict propagates.
    """

    def __init__(
        self,
        store: RoutineStore,
        assembler: CardAssembler | None = None,
        recent_feedback_limit: int = config.RECENT_FEEDBACK_LIMIT,
        commit_attempts: int = config.FEEDBACK_COMMIT_ATTEMPTS,
    ) -> None:
        if commit_attempts < 1:
            raise ValueError(f"commit_attempts must be at least 1, got {commit_attempts!r}")
        self._store = store
        self._assembler = assembler or CardAssembler()
        self._recent_feedback_limit = recent_feedback_limit
        self._commit_attempts = commit_attempts

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    def generate_plan(
        self, user_id: str, now: datetime | None = None, force: bool = False
    ) -> DailyPlan:
        """Return today's plan for *user_id*, building it if needed.

        Args:
            user_id: The user to plan for.
            now: Current local time; defaults to the system clock.
            force: Rebuild even if a plan for today is already stored.

        Returns:
            The :class:`~routine.models.DailyPlan`.  An empty candidate set
            yields a plan with no cards and an explanatory message.

        Raises:
            StoreError: If preferences, candidates, feedback or plans cannot
                be read or written.
        """
        now = _local_now(now)
        plan_date = now.date()

        if not force:
            cached = self._store.get_daily_plan(user_id, plan_date)
            if cached is not None:
                logger.debug("Returning stored plan for user=%r on %s.", user_id, plan_date)
                return cached

        prefs = self._preferences(user_id)
        candidates = [
            c for c in self._store.list_active_candidates(user_id) if is_applicable(c, plan_date)
        ]
        recent = self._store.list_recent_feedback(user_id, self._recent_feedback_limit)
        load = self.current_load(user_id, now)

        assembly = self._assembler.assemble(candidates, prefs, now.hour, load.tier, recent)
        plan = DailyPlan(
            user_id=user_id,
            plan_date=plan_date,
            cards=assembly.cards,
            cognitive_load=load,
            message=assembly.message,
            total_candidates=len(candidates),
            generated_at=now,
            insights=PlanInsights(
                accept_rate=prefs.accept_rate,
                total_learned=prefs.total_decisions,
                confidence=prefs.suggestion_confidence,
            ),
        )
        self._store.put_daily_plan(user_id, plan)
        logger.info(
            "Generated plan for user=%r: %d cards from %d candidates (load=%d, tier=%s).",
            user_id,
            len(plan.cards),
            len(candidates),
            load.score,
            load.tier.value,
        )
        return plan

    def current_load(self, user_id: str, now: datetime | None = None) -> CognitiveLoadResult:
        """Estimate *user_id*'s cognitive load from activity since local midnight.

        Never raises: any failure reading activity returns the default
        ``50``/``assist`` result marked ``degraded``.
        """
        now = _local_now(now)
        since = _start_of_day(now)
        try:
            counts = self._store.count_feedback_today(user_id, since)
            session_ms = self._store.sum_session_duration_today(user_id, since)
        except Exception:
            logger.exception(
                "Failed to read activity for user=%r; using default cognitive load.", user_id
            )
            return default_load(now.hour)

        return estimate_cognitive_load(
            ActivitySnapshot(
                decisions_today=counts.total,
                overrides_today=counts.overrides,
                session_ms_today=session_ms,
                hour=now.hour,
            )
        )

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    def submit_feedback(
        self, user_id: str, event: FeedbackEvent, now: datetime | None = None
    ) -> PreferenceVector:
        """Learn from *event* and persist it together with the updated vector.

        Args:
            user_id: The user giving feedback.
            event: The parsed feedback; ``created_at`` defaults to *now*.
            now: Current local time; defaults to the system clock.

        Returns:
            The stored :class:`~routine.models.PreferenceVector`.

        Raises:
            ConcurrentUpdateError: If every commit attempt lost a race.
            StoreError: If the store fails.
        """
        now = _local_now(now)
        event = replace(event, created_at=parse_timestamp(event.created_at) or now)

        attempt = 0
        while True:
            attempt += 1
            current = self._preferences(user_id)
            updated = learn_from_event(current, event, now=now)
            try:
                stored = self._store.commit_feedback(
                    user_id, event, updated, expected_version=current.version
                )
            except ConcurrentUpdateError:
                if attempt >= self._commit_attempts:
                    logger.warning(
                        "Giving up on %s feedback for user=%r after %d conflicting attempts.",
                        event.action.value,
                        user_id,
                        attempt,
                    )
                    raise
                logger.debug(
                    "Version conflict on attempt %d for user=%r; retrying.", attempt, user_id
                )
                continue
            break

        logger.info(
            "Recorded %s feedback for user=%r (accept_rate=%.2f, confidence=%.2f).",
            event.action.value,
            user_id,
            stored.accept_rate,
            stored.suggestion_confidence,
        )
        if stored.needs_recalibration and not current.needs_recalibration:
            logger.info("User=%r has ignored enough suggestions to need recalibration.", user_id)
        return stored

    def feedback_summary(self, user_id: str, limit: int | None = None) -> FeedbackSummary:
        """Totals and rates over the user's most recent feedback."""
        limit = self._recent_feedback_limit if limit is None else limit
        return summarize_feedback(self._store.list_recent_feedback(user_id, limit))

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def create_profile(
        self, user_id: str, work_style: str = "flexible", break_preference: str = "short"
    ) -> PreferenceVector:
        """Store the onboarding vector for a new user.

        Raises:
            ValueError: If the user already has a vector, or *work_style*
                is unknown.
            ConcurrentUpdateError: If another writer created it first.
        """
        if self._store.get_preference_vector(user_id) is not None:
            raise ValueError(f"User {user_id!r} already has a preference profile")
        vector = onboarding_vector(work_style, break_preference)
        stored = self._store.put_preference_vector(user_id, vector, expected_version=0)
        logger.info(
            "Created profile for user=%r (work_style=%s, breaks=%s).",
            user_id,
            work_style,
            break_preference,
        )
        return stored

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _preferences(self, user_id: str) -> PreferenceVector:
        prefs = self._store.get_preference_vector(user_id)
        if prefs is None:
            logger.debug("No preference vector for user=%r; using defaults.", user_id)
            return default_vector()
        return prefs


def _local_now(now: datetime | None) -> datetime:
    # naive values are local wall-clock time
    return parse_timestamp(now, "now") or datetime.now().astimezone()


def _start_of_day(now: datetime) -> datetime:
    return datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
