"""Routine store: the persistence boundary for vectors, candidates, feedback and plans."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import date, datetime

from google.protobuf.struct_pb2 import Struct

from routine.models import (
    CandidateItem,
    DailyPlan,
    FeedbackAction,
    FeedbackCounts,
    FeedbackEvent,
    PreferenceVector,
)
from routine.serialization import (
    plan_to_struct,
    struct_to_plan,
    struct_to_vector,
    vector_to_struct,
)

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when the backing store cannot complete a read or write."""


class ConcurrentUpdateError(StoreError):
    """A versioned write found the stored vector changed since it was read."""


class RoutineStore(ABC):
    """Abstract accessor for everything the engine reads and persists.

    Implementations raise :class:`StoreError` on I/O failure.  Preference
    vectors are versioned: a write that names an ``expected_version`` only
    succeeds if the stored version still matches, and every successful
    write bumps the version by one.  A user with no stored vector is at
    version ``0``.
    """

    # ------------------------------------------------------------------
    # Preference vectors
    # ------------------------------------------------------------------

    @abstractmethod
    def get_preference_vector(self, user_id: str) -> PreferenceVector | None:
        """Return the stored vector, or ``None`` if the user has none yet."""

    @abstractmethod
    def put_preference_vector(
        self,
        user_id: str,
        vector: PreferenceVector,
        expected_version: int | None = None,
    ) -> PreferenceVector:
        """Store *vector* and return it with its new version.

        Raises:
            ConcurrentUpdateError: If *expected_version* is given and does
                not match the stored version.
        """

    # ------------------------------------------------------------------
    # Candidates and feedback
    # ------------------------------------------------------------------

    @abstractmethod
    def list_active_candidates(self, user_id: str) -> list[CandidateItem]:
        ...

    @abstractmethod
    def list_recent_feedback(self, user_id: str, limit: int) -> list[FeedbackEvent]:
        """Return up to *limit* feedback events, newest first."""

    @abstractmethod
    def commit_feedback(
        self,
        user_id: str,
        event: FeedbackEvent,
        vector: PreferenceVector,
        expected_version: int,
    ) -> PreferenceVector:
        """Record *event* and store *vector* in one atomic step.

        Either both writes happen or neither does.

        Raises:
            ConcurrentUpdateError: If the stored vector version is no longer
                *expected_version*.
        """

    # ------------------------------------------------------------------
    # Activity
    # ------------------------------------------------------------------

    @abstractmethod
    def count_feedback_today(self, user_id: str, since: datetime) -> FeedbackCounts:
        """Count feedback events (and overrides among them) at or after *since*."""

    @abstractmethod
    def sum_session_duration_today(self, user_id: str, since: datetime) -> int:
        """Total milliseconds of sessions ended at or after *since*."""

    # ------------------------------------------------------------------
    # Daily plans
    # ------------------------------------------------------------------

    @abstractmethod
    def get_daily_plan(self, user_id: str, plan_date: date) -> DailyPlan | None:
        ...

    @abstractmethod
    def put_daily_plan(self, user_id: str, plan: DailyPlan) -> None:
        ...


class InMemoryRoutineStore(RoutineStore):
    """Thread-safe in-memory :class:`RoutineStore`.

    Vectors and plan snapshots are kept as ``Struct`` documents, exactly as
    a document database would hold them, so every read returns a fresh
    object and callers can never mutate stored state in place.  Candidates
    are copied on the way in and on the way out for the same reason.

    Intended for local runs and tests; nothing survives the process.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._vectors: dict[str, Struct] = {}
        self._candidates: dict[str, list[CandidateItem]] = {}
        self._feedback: dict[str, list[FeedbackEvent]] = {}
        self._sessions: dict[str, list[tuple[datetime, int]]] = {}
        self._plans: dict[tuple[str, date], Struct] = {}

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def add_candidate(self, user_id: str, item: CandidateItem) -> None:
        with self._lock:
            self._candidates.setdefault(user_id, []).append(replace(item))

    def record_session(self, user_id: str, ended_at: datetime, duration_ms: int) -> None:
        """Record a finished session of *duration_ms* milliseconds.

        Raises:
            ValueError: If *duration_ms* is negative.
        """
        if duration_ms < 0:
            raise ValueError(f"Session duration must be non-negative, got {duration_ms!r}")
        with self._lock:
            self._sessions.setdefault(user_id, []).append((ended_at, duration_ms))

    # ------------------------------------------------------------------
    # Preference vectors
    # ------------------------------------------------------------------

    def get_preference_vector(self, user_id: str) -> PreferenceVector | None:
        with self._lock:
            document = self._vectors.get(user_id)
        if document is None:
            return None
        return struct_to_vector(document)

    def put_preference_vector(
        self,
        user_id: str,
        vector: PreferenceVector,
        expected_version: int | None = None,
    ) -> PreferenceVector:
        with self._lock:
            return self._write_vector(user_id, vector, expected_version)

    # ------------------------------------------------------------------
    # Candidates and feedback
    # ------------------------------------------------------------------

    def list_active_candidates(self, user_id: str) -> list[CandidateItem]:
        with self._lock:
            return [replace(c) for c in self._candidates.get(user_id, ()) if c.active]

    def list_recent_feedback(self, user_id: str, limit: int) -> list[FeedbackEvent]:
        if limit <= 0:
            return []
        with self._lock:
            events = self._feedback.get(user_id, [])
            return list(reversed(events[-limit:]))

    def commit_feedback(
        self,
        user_id: str,
        event: FeedbackEvent,
        vector: PreferenceVector,
        expected_version: int,
    ) -> PreferenceVector:
        with self._lock:
            stored = self._write_vector(user_id, vector, expected_version)
            self._feedback.setdefault(user_id, []).append(event)
        logger.debug(
            "Committed %s feedback for user=%r at version %d.",
            event.action.value,
            user_id,
            stored.version,
        )
        return stored

    # ------------------------------------------------------------------
    # Activity
    # ------------------------------------------------------------------

    def count_feedback_today(self, user_id: str, since: datetime) -> FeedbackCounts:
        with self._lock:
            today = [
                e
                for e in self._feedback.get(user_id, ())
                if e.created_at is not None and e.created_at >= since
            ]
        overrides = sum(1 for e in today if e.action is FeedbackAction.OVERRIDE)
        return FeedbackCounts(total=len(today), overrides=overrides)

    def sum_session_duration_today(self, user_id: str, since: datetime) -> int:
        with self._lock:
            return sum(ms for ended_at, ms in self._sessions.get(user_id, ()) if ended_at >= since)

    # ------------------------------------------------------------------
    # Daily plans
    # ------------------------------------------------------------------

    def get_daily_plan(self, user_id: str, plan_date: date) -> DailyPlan | None:
        with self._lock:
            document = self._plans.get((user_id, plan_date))
        if document is None:
            return None
        return struct_to_plan(document)

    def put_daily_plan(self, user_id: str, plan: DailyPlan) -> None:
        document = plan_to_struct(plan)
        with self._lock:
            self._plans[(user_id, plan.plan_date)] = document

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _write_vector(
        self,
        user_id: str,
        vector: PreferenceVector,
        expected_version: int | None,
    ) -> PreferenceVector:
        """Version-checked write.  Caller must hold ``self._lock``."""
        current = self._vectors.get(user_id)
        current_version = struct_to_vector(current).version if current is not None else 0
        if expected_version is not None and expected_version != current_version:
            raise ConcurrentUpdateError(
                f"Preference vector for user {user_id!r} is at version "
                f"{current_version}, expected {expected_version}"
            )
        stored = replace(vector.copy(), version=current_version + 1)
        self._vectors[user_id] = vector_to_struct(stored)
        return stored
