"""
Objective matching — fans a counter increment or a specific-target event out
to every open objective of the user's active quests.
"""
import logging
from typing import Protocol

from supabase import Client

from .. import db as store
from . import progress

logger = logging.getLogger(__name__)

# Ledger counter → generic ("any target") objective type.
COUNTER_OBJECTIVES: dict[str, str] = {
    "monsters_killed":          "kill_monster",
    "bosses_killed":            "kill_boss",
    "players_killed":           "defeat_player",
    "resources_collected":      "collect_resource",
    "items_crafted":            "craft_item",
    "equipment_crafted":        "craft_equipment",
    "buildings_built":          "build_building",
    "buildings_upgraded":       "upgrade_building",
    "distance_traveled":        "travel_distance",
    "gold_earned":              "earn_gold",
    "gold_spent":               "spend_gold",
    "trades_completed":         "complete_trade",
    "messages_sent":            "send_message",
    "legendary_items_obtained": "obtain_legendary",
    "epic_items_obtained":      "obtain_epic",
    "rare_items_obtained":      "obtain_rare",
}


def objective_type_for(counter: str) -> str | None:
    return COUNTER_OBJECTIVES.get(counter)


class ProgressSink(Protocol):
    """Where ledger events go. Swapping this for a queue publisher moves fan-out off the request."""

    def counter_incremented(self, db: Client, user_id: int, counter: str, amount: int) -> None: ...

    def target_progressed(self, db: Client, user_id: int, objective_type: str,
                          target_id: int, amount: int) -> None: ...


class DirectProgressSink:
    def counter_incremented(self, db: Client, user_id: int, counter: str, amount: int) -> None:
        on_counter_increment(db, user_id, counter, amount)

    def target_progressed(self, db: Client, user_id: int, objective_type: str,
                          target_id: int, amount: int) -> None:
        on_target_event(db, user_id, objective_type, target_id, amount)


DIRECT_SINK = DirectProgressSink()


def _advance_all(db: Client, user_id: int, objectives: list[dict], amount: int) -> int:
    """Advance each objective on its own; one failure does not stop the rest."""
    advanced = 0
    for objective in objectives:
        try:
            progress.advance(db, user_id, objective["quest_id"], objective["id"], amount)
            advanced += 1
        except Exception:
            logger.exception("Failed to advance objective %s (quest %s) for user %s",
                             objective["id"], objective["quest_id"], user_id)
    return advanced


def on_counter_increment(db: Client, user_id: int, counter: str, amount: int) -> int:
    """Returns how many objectives were advanced."""
    objective_type = objective_type_for(counter)
    if not objective_type or amount <= 0:
        return 0
    objectives = store.find_open_objectives(db, user_id, objective_type)
    return _advance_all(db, user_id, objectives, amount)


def on_target_event(db: Client, user_id: int, objective_type: str, target_id: int, amount: int = 1) -> int:
    if amount <= 0:
        return 0
    objectives = store.find_open_objectives(db, user_id, objective_type, target_id=target_id)
    return _advance_all(db, user_id, objectives, amount)


# ── Absolute-value objectives ─────────────────────────────────────────────────

def _raise_to(db: Client, user_id: int, objective_type: str, value: int) -> int:
    """Advance open objectives of ``objective_type`` so their progress reaches ``value``."""
    advanced = 0
    for objective in store.find_open_objectives(db, user_id, objective_type):
        try:
            row = progress.raise_to(db, user_id, objective["quest_id"], objective["id"], value)
        except Exception:
            logger.exception("Failed to raise objective %s (quest %s) for user %s",
                             objective["id"], objective["quest_id"], user_id)
            continue
        if row and row.get("raised"):
            advanced += 1
    return advanced


def on_level_reached(db: Client, user_id: int, level: int) -> int:
    return _raise_to(db, user_id, "reach_level", level)


def on_guild_joined(db: Client, user_id: int) -> int:
    return _raise_to(db, user_id, "join_guild", 1)
