"""
Statistics ledger — lifetime per-user counters and the event-source helpers
that feed them. Every write fans out to the progress sink afterwards.
"""
import logging

from supabase import Client

from .. import db as store
from .errors import UnknownCounter
from .matcher import DIRECT_SINK, ProgressSink

logger = logging.getLogger(__name__)

COUNTERS: tuple[str, ...] = (
    # combat
    "monsters_killed", "bosses_killed", "players_killed", "deaths",
    "total_damage_dealt", "total_damage_received",
    # collection
    "resources_collected", "wood_collected", "stone_collected",
    "iron_ore_collected", "herbs_collected",
    # crafting / building
    "items_crafted", "equipment_crafted", "buildings_built", "buildings_upgraded",
    # travel
    "distance_traveled", "tiles_walked",
    # economy
    "gold_earned", "gold_spent", "items_sold", "items_bought",
    # social
    "messages_sent", "trades_completed",
    # time
    "collection_time_minutes", "crafting_time_minutes",
    # misc
    "quests_completed", "achievements_earned", "logins",
    # rarity
    "legendary_items_obtained", "epic_items_obtained", "rare_items_obtained",
)
_COUNTER_SET = frozenset(COUNTERS)

# Substring of a collected item's name → per-material counter.
MATERIAL_COUNTERS: dict[str, str] = {
    "holz": "wood_collected",
    "wood": "wood_collected",
    "ast": "wood_collected",
    "stein": "stone_collected",
    "stone": "stone_collected",
    "eisenerz": "iron_ore_collected",
    "iron_ore": "iron_ore_collected",
    "iron ore": "iron_ore_collected",
    "kraut": "herbs_collected",
    "kräuter": "herbs_collected",
    "herb": "herbs_collected",
}

RARITY_COUNTERS: dict[str, str] = {
    "rare": "rare_items_obtained",
    "epic": "epic_items_obtained",
    "legendary": "legendary_items_obtained",
}


def _validated(deltas: dict[str, int]) -> dict[str, int]:
    clean = {}
    for counter, amount in deltas.items():
        if counter not in _COUNTER_SET:
            raise UnknownCounter(counter)
        if amount < 0:
            raise ValueError(f"Counter {counter} only grows, got amount={amount}")
        if amount:
            clean[counter] = int(amount)
    return clean


def increment(db: Client, user_id: int, counter: str, amount: int = 1,
              sink: ProgressSink = DIRECT_SINK) -> None:
    increment_many(db, user_id, {counter: amount}, sink=sink)


def increment_many(db: Client, user_id: int, deltas: dict[str, int],
                   sink: ProgressSink = DIRECT_SINK) -> None:
    """
    One atomic ledger write for all counters, then one fan-out per counter.
    The ledger write is authoritative: a failing fan-out is logged and the
    counters stay incremented.
    """
    deltas = _validated(deltas)
    if not deltas:
        return
    store.increment_stats(db, user_id, deltas)

    for counter, amount in deltas.items():
        try:
            sink.counter_incremented(db, user_id, counter, amount)
        except Exception:
            logger.exception("Quest fan-out failed for user=%s counter=%s +%d", user_id, counter, amount)


def get_statistics(db: Client, user_id: int) -> dict[str, int]:
    row = store.get_stats(db, user_id)
    return {counter: row.get(counter) or 0 for counter in COUNTERS}


def _target_event(sink: ProgressSink, db: Client, user_id: int,
                  objective_type: str, target_id: int | None, amount: int) -> None:
    if target_id is None:
        return
    try:
        sink.target_progressed(db, user_id, objective_type, target_id, amount)
    except Exception:
        logger.exception("Target fan-out failed for user=%s %s target=%s", user_id, objective_type, target_id)


# ── Event sources ─────────────────────────────────────────────────────────────

def track_kill(db: Client, user_id: int, monster_type_id: int | None,
               is_boss: bool = False, sink: ProgressSink = DIRECT_SINK) -> None:
    deltas = {"monsters_killed": 1}
    if is_boss:
        deltas["bosses_killed"] = 1
    increment_many(db, user_id, deltas, sink=sink)
    _target_event(sink, db, user_id, "kill_specific_monster", monster_type_id, 1)


def material_counter(item_name: str | None) -> str | None:
    name = (item_name or "").lower()
    for key, counter in MATERIAL_COUNTERS.items():
        if key in name:
            return counter
    return None


def track_item_collected(db: Client, user_id: int, item_id: int | None, item_name: str | None,
                         quantity: int = 1, sink: ProgressSink = DIRECT_SINK) -> None:
    deltas = {"resources_collected": quantity}
    counter = material_counter(item_name)
    if counter:
        deltas[counter] = quantity
    increment_many(db, user_id, deltas, sink=sink)
    _target_event(sink, db, user_id, "collect_specific_item", item_id, quantity)


def track_crafting(db: Client, user_id: int, item_id: int | None,
                   is_equipment: bool = False, sink: ProgressSink = DIRECT_SINK) -> None:
    deltas = {"items_crafted": 1}
    if is_equipment:
        deltas["equipment_crafted"] = 1
    increment_many(db, user_id, deltas, sink=sink)
    _target_event(sink, db, user_id, "craft_specific_item", item_id, 1)


def track_building(db: Client, user_id: int, building_id: int | None,
                   is_upgrade: bool = False, sink: ProgressSink = DIRECT_SINK) -> None:
    increment(db, user_id, "buildings_upgraded" if is_upgrade else "buildings_built", 1, sink=sink)
    if not is_upgrade:
        _target_event(sink, db, user_id, "build_specific_building", building_id, 1)


def track_travel(db: Client, user_id: int, distance: float,
                 sink: ProgressSink = DIRECT_SINK) -> None:
    tiles = round(distance)
    increment_many(db, user_id, {"distance_traveled": tiles, "tiles_walked": tiles}, sink=sink)


def track_item_obtained(db: Client, user_id: int, rarity: str,
                        sink: ProgressSink = DIRECT_SINK) -> None:
    counter = RARITY_COUNTERS.get((rarity or "").lower())
    if counter:
        increment(db, user_id, counter, 1, sink=sink)
