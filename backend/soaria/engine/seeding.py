"""
Retroactive seeding — pre-fills objective progress at accept time from what
the player has already accomplished.

Each objective type that can be seeded registers a source. Types without a
source (daily_login, visit_location, anything new) seed to 0.
"""
import logging
from dataclasses import dataclass
from typing import Callable

from supabase import Client

from .. import db as store
from .catalog import Objective
from .matcher import COUNTER_OBJECTIVES

logger = logging.getLogger(__name__)

SeedSource = Callable[[Client, int, Objective, dict], int]

_SOURCES: dict[str, SeedSource] = {}


def register(objective_type: str) -> Callable[[SeedSource], SeedSource]:
    def decorator(fn: SeedSource) -> SeedSource:
        _SOURCES[objective_type] = fn
        return fn
    return decorator


def source_for(objective_type: str) -> SeedSource | None:
    return _SOURCES.get(objective_type)


def _ledger_source(counter: str) -> SeedSource:
    def from_ledger(db: Client, user_id: int, objective: Objective, stats: dict) -> int:
        return stats.get(counter) or 0
    return from_ledger


for _counter, _objective_type in COUNTER_OBJECTIVES.items():
    register(_objective_type)(_ledger_source(_counter))


@register("reach_level")
def _level(db: Client, user_id: int, objective: Objective, stats: dict) -> int:
    return store.get_player_level(db, user_id)


@register("join_guild")
def _guild(db: Client, user_id: int, objective: Objective, stats: dict) -> int:
    return 1 if store.has_guild_membership(db, user_id) else 0


@register("kill_specific_monster")
def _monster_kills(db: Client, user_id: int, objective: Objective, stats: dict) -> int:
    if objective.target_id is None:
        return 0
    return store.count_monster_kills(db, user_id, objective.target_id)


@register("collect_specific_item")
def _inventory(db: Client, user_id: int, objective: Objective, stats: dict) -> int:
    # Historical totals aren't kept; what is held now is a lower bound.
    if objective.target_id is None:
        return 0
    return store.get_inventory_quantity(db, user_id, objective.target_id)


@register("craft_specific_item")
def _equipment(db: Client, user_id: int, objective: Objective, stats: dict) -> int:
    if objective.target_id is None:
        return 0
    return store.count_owned_equipment(db, user_id, objective.target_id)


@register("build_specific_building")
def _buildings(db: Client, user_id: int, objective: Objective, stats: dict) -> int:
    if objective.target_id is None:
        return 0
    return store.count_owned_buildings(db, user_id, objective.target_id)


@register("daily_login")
def _daily_login(db: Client, user_id: int, objective: Objective, stats: dict) -> int:
    return 0


@dataclass
class SeededObjective:
    objective_id: int
    current_amount: int
    is_completed: bool


def retroactive_amount(db: Client, user_id: int, objective: Objective, stats: dict) -> int:
    """Lifetime amount clamped to the requirement."""
    source = source_for(objective.type)
    if source is None:
        return 0
    return max(0, min(source(db, user_id, objective, stats), objective.required_amount))


def seed(db: Client, user_id: int, quest_id: int, objectives: list[Objective]) -> list[SeededObjective]:
    """
    Write a progress row for every objective, overwriting what was there.
    Same sources in, same rows out.
    """
    stats = store.get_stats(db, user_id)
    seeded = []
    for objective in objectives:
        amount = retroactive_amount(db, user_id, objective, stats)
        done = amount >= objective.required_amount
        store.upsert_progress(db, user_id, quest_id, objective.id,
                              {"current_amount": amount, "is_completed": done})
        seeded.append(SeededObjective(objective.id, amount, done))
    if any(s.current_amount for s in seeded):
        logger.info("Seeded quest %s for user %s: %s", quest_id, user_id,
                    {s.objective_id: s.current_amount for s in seeded})
    return seeded
