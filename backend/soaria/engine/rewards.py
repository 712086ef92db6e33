"""
Reward dispatch for claimed quests. Level math is pure; grants hit the store.
"""
import logging

from supabase import Client

from .. import db as store
from . import matcher, stats

logger = logging.getLogger(__name__)


def xp_for_next_level(level: int) -> int:
    """Experience needed to go from ``level`` to ``level + 1``."""
    return level * 100


def apply_experience(level: int, experience: int, gain: int) -> tuple[int, int]:
    """
    Returns (new_level, new_experience).
    Experience is stored relative to the current level; surplus carries over
    across as many level-ups as it pays for.
    """
    level = max(level, 1)
    experience = max(experience, 0) + max(gain, 0)
    while experience >= xp_for_next_level(level):
        experience -= xp_for_next_level(level)
        level += 1
    return level, experience


def grant_gold(db: Client, user_id: int, amount: int) -> None:
    store.add_gold(db, user_id, amount)
    # Feeds earn_gold objectives; completing those never claims, so this stops here.
    stats.increment(db, user_id, "gold_earned", amount)


def grant_experience(db: Client, user_id: int, amount: int) -> int:
    """Adds experience, recomputes the level and returns the new level."""
    player = store.get_player_stats(db, user_id)
    old_level = player.get("level") or 1
    new_level, new_exp = apply_experience(old_level, player.get("experience") or 0, amount)
    store.update_player_stats(db, user_id, {"level": new_level, "experience": new_exp})
    if new_level > old_level:
        logger.info("User %s reached level %d", user_id, new_level)
        matcher.on_level_reached(db, user_id, new_level)
    return new_level


def grant_item(db: Client, user_id: int, item_id: int, quantity: int) -> str:
    """Adds the item to the inventory and returns its display name."""
    store.add_inventory_item(db, user_id, item_id, quantity)
    item = store.get_item(db, item_id)
    return (item or {}).get("display_name") or "Item"
