"""Entry point: wires store, engine and service, then runs a local demo day."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

import config
from routine.engine import RoutineEngine
from routine.models import CandidateItem, ItemKind
from routine.service import PlanningService, Status
from routine.store import InMemoryRoutineStore, RoutineStore

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_DEMO_USER = "demo"

_DEMO_CANDIDATES = [
    CandidateItem("t_report", ItemKind.TASK, "Write quarterly report", effort=5,
                  estimated_minutes=90, preferred_time="09:00", tags={"important"}),
    CandidateItem("t_inbox", ItemKind.TASK, "Clear inbox", effort=2, estimated_minutes=20,
                  tags={"quick"}),
    CandidateItem("t_review", ItemKind.TASK, "Review pull requests", effort=3,
                  estimated_minutes=45),
    CandidateItem("m_lunch", ItemKind.MEAL, "Salad bowl", meal_type="lunch"),
    CandidateItem("b_walk", ItemKind.BREAK, "Short walk", break_duration=15),
    CandidateItem("b_stretch", ItemKind.BREAK, "Stretch", break_duration=5),
]


def build_service(store: RoutineStore) -> PlanningService:
    """Construct the planning service with all dependencies wired.

    Args:
        store: The :class:`~routine.store.RoutineStore` backing the engine.

    Returns:
        A ready :class:`~routine.service.PlanningService`.
    """
    engine = RoutineEngine(
        store=store,
        recent_feedback_limit=config.RECENT_FEEDBACK_LIMIT,
        commit_attempts=config.FEEDBACK_COMMIT_ATTEMPTS,
    )
    return PlanningService(engine, warn_threshold_ms=config.PLAN_WARN_THRESHOLD_MS)


def seed_demo_store(now: datetime) -> InMemoryRoutineStore:
    """Return an in-memory store holding the demo user's candidates and a session."""
    store = InMemoryRoutineStore()
    for item in _DEMO_CANDIDATES:
        store.add_candidate(_DEMO_USER, item)
    store.record_session(_DEMO_USER, now - timedelta(minutes=5), duration_ms=25 * 60_000)
    return store


def main() -> None:
    """Run one planning round for a seeded demo user.

    Sequence:
    1. Seed an in-memory store and create the user's onboarding profile.
    2. Generate today's plan and log each card.
    3. Accept the first card and regenerate the plan with what was learned.
    """
    now = datetime.now().astimezone()
    service = build_service(seed_demo_store(now))

    service.handle_create_profile(
        {"user_id": _DEMO_USER, "work_style": "deep_work", "break_preference": "short"}
    )

    response = service.handle_generate_plan({"user_id": _DEMO_USER})
    if response["status"] != Status.OK.value:
        logger.error("Plan generation failed: %s", response.get("error"))
        return
    _log_plan(response["plan"])

    cards = response["plan"]["cards"]
    if cards:
        first = cards[0]
        service.handle_feedback(
            {
                "user_id": _DEMO_USER,
                "action": "accept",
                "item_id": first["items"][0]["candidate"]["item_id"],
                "item_value": first["items"][0]["action_text"],
                "context": {
                    "cognitive_load": response["plan"]["cognitive_load"]["score"],
                    "card_items": [item["action_text"] for item in first["items"]],
                    "hour": now.hour,
                },
            }
        )

    response = service.handle_generate_plan({"user_id": _DEMO_USER, "force": True})
    if response["status"] == Status.OK.value:
        _log_plan(response["plan"])


def _log_plan(plan: dict) -> None:
    load = plan["cognitive_load"]
    logger.info("Cognitive load %d (%s): %s", load["score"], load["tier"], load["mode"])
    if plan["message"]:
        logger.info(plan["message"])
    for card in plan["cards"]:
        logger.info(
            "[%s] %s, %d min: %s | %s",
            card["priority"],
            card["title"],
            card["duration_minutes"],
            "; ".join(item["action_text"] for item in card["items"]),
            card["rationale_text"],
        )


if __name__ == "__main__":
    main()
