"""Shared pytest fixtures for all routine engine tests."""

from __future__ import annotations

import pytest

from routine.engine import RoutineEngine
from routine.models import CandidateItem, ItemKind, PreferenceVector
from routine.store import InMemoryRoutineStore

USER = "u_1"

# ---------------------------------------------------------------------------
# Candidate fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def task_report() -> CandidateItem:
    return CandidateItem(
        "t_report",
        ItemKind.TASK,
        "Write quarterly report",
        effort=5,
        estimated_minutes=90,
        preferred_time="09:00",
        tags={"important"},
    )


@pytest.fixture
def task_inbox() -> CandidateItem:
    return CandidateItem(
        "t_inbox", ItemKind.TASK, "Clear inbox", effort=2, estimated_minutes=20, tags={"quick"}
    )


@pytest.fixture
def task_review() -> CandidateItem:
    return CandidateItem("t_review", ItemKind.TASK, "Review pull requests", effort=3, estimated_minutes=45)


@pytest.fixture
def meal_lunch() -> CandidateItem:
    return CandidateItem("m_lunch", ItemKind.MEAL, "Salad bowl", meal_type="lunch")


@pytest.fixture
def break_walk() -> CandidateItem:
    return CandidateItem("b_walk", ItemKind.BREAK, "Short walk", break_duration=15)


@pytest.fixture
def break_stretch() -> CandidateItem:
    return CandidateItem("b_stretch", ItemKind.BREAK, "Stretch", break_duration=5)


@pytest.fixture
def sample_candidates(
    task_report, task_inbox, task_review, meal_lunch, break_walk, break_stretch
) -> list[CandidateItem]:
    """Three tasks of differing effort, a lunch and two breaks."""
    return [task_report, task_inbox, task_review, meal_lunch, break_walk, break_stretch]


# ---------------------------------------------------------------------------
# Preference fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def default_prefs() -> PreferenceVector:
    """A brand-new user's vector (cold-start case)."""
    return PreferenceVector()


@pytest.fixture
def morning_person() -> PreferenceVector:
    """A user who has learned to favour mornings."""
    return PreferenceVector(morning_task_weight=0.8, suggestion_confidence=0.7)


# ---------------------------------------------------------------------------
# Store / engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> InMemoryRoutineStore:
    return InMemoryRoutineStore()


@pytest.fixture
def seeded_store(store, sample_candidates) -> InMemoryRoutineStore:
    for item in sample_candidates:
        store.add_candidate(USER, item)
    return store


@pytest.fixture
def engine(seeded_store) -> RoutineEngine:
    return RoutineEngine(seeded_store, recent_feedback_limit=50, commit_attempts=3)
