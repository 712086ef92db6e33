"""
Quest lifecycle: available → active → completed → claimed.

"available" is never stored. A quest without a user row is available when its
gates pass and locked otherwise (see derive_status).
"""
import logging
from dataclasses import dataclass, field

from supabase import Client

from .. import db as store
from .. import notify
from . import rewards, seeding, stats
from .catalog import (
    ACHIEVEMENT, ACTIVE, AVAILABLE, CLAIMED, COMPLETED, LOCKED,
    Objective, Quest, has_daily_login,
)
from .errors import QuestNotFound, QuestRejected
from .seeding import SeededObjective

logger = logging.getLogger(__name__)


def derive_status(quest: Quest, user_quest: dict | None, level: int,
                  prerequisite_status: str | None = None) -> str:
    if user_quest:
        return user_quest["status"]
    if not quest.is_active or level < quest.min_level:
        return LOCKED
    if quest.prerequisite_quest_id and prerequisite_status != CLAIMED:
        return LOCKED
    return AVAILABLE


def load_quest(db: Client, quest_id: int) -> Quest:
    row = store.get_quest(db, quest_id)
    if not row:
        raise QuestNotFound(quest_id)
    return Quest.from_row(row)


def load_objectives(db: Client, quest_id: int) -> list[Objective]:
    return [Objective.from_row(row) for row in store.get_objectives(db, quest_id)]


# ── Accept ────────────────────────────────────────────────────────────────────

@dataclass
class AcceptResult:
    quest_id: int
    status: str
    objectives: list[SeededObjective] = field(default_factory=list)

    @property
    def any_progress(self) -> bool:
        return any(o.current_amount > 0 for o in self.objectives)


def start_quest(db: Client, user_id: int, quest: Quest, objectives: list[Objective]) -> AcceptResult:
    """Write the active row and seed progress. Unguarded; callers check the gates."""
    store.upsert_user_quest(db, user_id, quest.id, {
        "status": ACTIVE,
        "started_at": store.utcnow(),
        "completed_at": None,
        "claimed_at": None,
    })
    seeded = seeding.seed(db, user_id, quest.id, objectives)

    status = ACTIVE
    if seeded and all(s.is_completed for s in seeded):
        store.transition_user_quest(db, user_id, quest.id, ACTIVE,
                                    {"status": COMPLETED, "completed_at": store.utcnow()})
        status = COMPLETED
        logger.info("Quest %s accepted already complete for user %s", quest.id, user_id)
    return AcceptResult(quest.id, status, seeded)


def accept_quest(db: Client, user_id: int, quest_id: int) -> AcceptResult:
    quest = load_quest(db, quest_id)
    if not quest.is_active:
        raise QuestRejected("inactive", f"Quest {quest.display_name!r} is not available")

    objectives = load_objectives(db, quest_id)
    if has_daily_login(objectives):
        raise QuestRejected("auto_managed", "This quest completes automatically when you log in")

    level = store.get_player_level(db, user_id)
    if level < quest.min_level:
        raise QuestRejected("level_too_low", f"You need to be at least level {quest.min_level}")

    if quest.prerequisite_quest_id:
        prereq = store.get_user_quest(db, user_id, quest.prerequisite_quest_id)
        if not prereq or prereq.get("status") != CLAIMED:
            raise QuestRejected("prerequisite_unmet", "You must finish the previous quest first")

    existing = store.get_user_quest(db, user_id, quest_id)
    status = (existing or {}).get("status")
    if status == ACTIVE:
        raise QuestRejected("already_active", "Quest is already active")
    if status == COMPLETED:
        raise QuestRejected("awaiting_claim", "Quest already completed, claim your reward")
    if status == CLAIMED and not quest.is_repeatable:
        raise QuestRejected("already_claimed", "Quest already completed")

    result = start_quest(db, user_id, quest, objectives)
    logger.info("User %s accepted quest %s (%s)", user_id, quest_id, result.status)
    return result


# ── Claim ─────────────────────────────────────────────────────────────────────

@dataclass
class ClaimResult:
    quest_id: int
    rewards: list[dict] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    notified: bool = False


def claim_quest(db: Client, user_id: int, quest_id: int) -> ClaimResult:
    """
    completed → claimed, then pay out. The conditional transition runs first
    so rewards go out at most once per completion even under concurrent claims.
    A failing grant is logged and reported but does not undo the claim.
    """
    quest = load_quest(db, quest_id)
    user_quest = store.get_user_quest(db, user_id, quest_id)
    if not user_quest:
        raise QuestRejected("not_started", "Quest not started")
    if user_quest.get("status") != COMPLETED:
        raise QuestRejected("not_completed", "Quest not completed yet")

    won = store.transition_user_quest(db, user_id, quest_id, COMPLETED,
                                      {"status": CLAIMED, "claimed_at": store.utcnow()})
    if not won:
        raise QuestRejected("not_completed", "Quest not completed yet")

    result = ClaimResult(quest_id)

    if quest.reward_gold > 0:
        try:
            rewards.grant_gold(db, user_id, quest.reward_gold)
            result.rewards.append({"type": "gold", "amount": quest.reward_gold})
        except Exception:
            logger.exception("Gold reward failed for user %s quest %s", user_id, quest_id)
            result.failed.append("gold")

    if quest.reward_experience > 0:
        try:
            level = rewards.grant_experience(db, user_id, quest.reward_experience)
            result.rewards.append({"type": "experience", "amount": quest.reward_experience, "level": level})
        except Exception:
            logger.exception("Experience reward failed for user %s quest %s", user_id, quest_id)
            result.failed.append("experience")

    if quest.reward_item_id:
        try:
            name = rewards.grant_item(db, user_id, quest.reward_item_id, quest.reward_item_quantity)
            result.rewards.append({"type": "item", "amount": quest.reward_item_quantity, "name": name})
        except Exception:
            logger.exception("Item reward failed for user %s quest %s", user_id, quest_id)
            result.failed.append("item")

    counters = {"quests_completed": 1}
    if quest.category == ACHIEVEMENT:
        counters["achievements_earned"] = 1
    try:
        stats.increment_many(db, user_id, counters)
    except Exception:
        logger.exception("Could not record claim statistics for user %s", user_id)
        result.failed.append("statistics")

    if quest.category == ACHIEVEMENT:
        result.notified = notify.notify_achievement(db, user_id, quest)

    logger.info("User %s claimed quest %s: %s", user_id, quest_id, result.rewards)
    return result


# ── Abandon ───────────────────────────────────────────────────────────────────

def abandon_quest(db: Client, user_id: int, quest_id: int) -> None:
    load_quest(db, quest_id)
    if has_daily_login(load_objectives(db, quest_id)):
        raise QuestRejected("not_abandonable", "This quest cannot be abandoned")

    user_quest = store.get_user_quest(db, user_id, quest_id)
    if not user_quest or user_quest.get("status") != ACTIVE:
        raise QuestRejected("not_active", "Quest is not active")

    store.delete_progress(db, user_id, quest_id)
    store.delete_user_quest(db, user_id, quest_id)
    logger.info("User %s abandoned quest %s", user_id, quest_id)


# ── Read models ───────────────────────────────────────────────────────────────

def _objective_views(objectives: list[Objective], progress: dict[int, dict]) -> list[dict]:
    views = []
    for o in objectives:
        row = progress.get(o.id) or {}
        views.append({
            "id": o.id,
            "objective_type": o.type,
            "target_id": o.target_id,
            "target_name": o.target_name,
            "description": o.description,
            "required_amount": o.required_amount,
            "current_amount": row.get("current_amount") or 0,
            "is_completed": bool(row.get("is_completed")),
        })
    return views


def _quest_view(db: Client, user_id: int, quest: Quest, user_quest: dict | None,
                level: int, prerequisite_status: str | None) -> dict:
    objectives = _objective_views(load_objectives(db, quest.id), store.get_user_progress(db, user_id, quest.id))
    user_quest = user_quest or {}
    return {
        "id": quest.id,
        "name": quest.name,
        "display_name": quest.display_name,
        "description": quest.description,
        "category": quest.category,
        "is_repeatable": quest.is_repeatable,
        "min_level": quest.min_level,
        "prerequisite_quest_id": quest.prerequisite_quest_id,
        "prerequisite_completed": not quest.prerequisite_quest_id or prerequisite_status == CLAIMED,
        "reward_gold": quest.reward_gold,
        "reward_experience": quest.reward_experience,
        "reward_item_id": quest.reward_item_id,
        "reward_item_quantity": quest.reward_item_quantity,
        "status": derive_status(quest, user_quest or None, level, prerequisite_status),
        "started_at": user_quest.get("started_at"),
        "completed_at": user_quest.get("completed_at"),
        "claimed_at": user_quest.get("claimed_at"),
        "objectives": objectives,
        "total_objectives": len(objectives),
        "completed_objectives": sum(1 for o in objectives if o["is_completed"]),
    }


def list_quests(db: Client, user_id: int) -> list[dict]:
    """Active catalog quests up to the user's level, with derived status and progress."""
    level = store.get_player_level(db, user_id)
    user_quests = store.get_user_quests(db, user_id)
    views = []
    for row in store.get_quests(db, active_only=True):
        quest = Quest.from_row(row)
        if quest.min_level > level:
            continue
        prereq_status = (user_quests.get(quest.prerequisite_quest_id) or {}).get("status")
        views.append(_quest_view(db, user_id, quest, user_quests.get(quest.id), level, prereq_status))
    return views


def get_quest_detail(db: Client, user_id: int, quest_id: int) -> dict:
    quest = load_quest(db, quest_id)
    level = store.get_player_level(db, user_id)
    prereq_status = None
    if quest.prerequisite_quest_id:
        prereq_status = (store.get_user_quest(db, user_id, quest.prerequisite_quest_id) or {}).get("status")
    return _quest_view(db, user_id, quest, store.get_user_quest(db, user_id, quest_id), level, prereq_status)


def claimable_count(db: Client, user_id: int) -> int:
    return store.count_user_quests_with_status(db, user_id, COMPLETED)
