import os
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

from supabase import create_client, Client

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_client() -> Client:
    url = os.environ["SUPABASE_URL"]
    key = os.environ["SUPABASE_SERVICE_KEY"]
    return create_client(url, key)


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


# ── Players (read-only collaborators) ─────────────────────────────────────────

def get_user(db: Client, user_id: int) -> dict | None:
    res = db.table("users").select("id, username, gold").eq("id", user_id).execute()
    return res.data[0] if res.data else None


def get_player_stats(db: Client, user_id: int) -> dict:
    res = db.table("player_stats").select("user_id, level, experience").eq("user_id", user_id).execute()
    return res.data[0] if res.data else {}


def get_player_level(db: Client, user_id: int) -> int:
    return get_player_stats(db, user_id).get("level") or 1


def update_player_stats(db: Client, user_id: int, updates: dict) -> None:
    db.table("player_stats").update(updates).eq("user_id", user_id).execute()


def has_guild_membership(db: Client, user_id: int) -> bool:
    res = db.table("guild_members").select("id").eq("user_id", user_id).limit(1).execute()
    return bool(res.data)


def count_monster_kills(db: Client, user_id: int, monster_type_id: int) -> int:
    """Won fights of this user against world NPCs of one monster type."""
    res = (
        db.table("combat_log")
        .select("id, world_npcs!inner(monster_type_id)", count="exact")
        .eq("attacker_user_id", user_id)
        .eq("winner", "attacker")
        .eq("world_npcs.monster_type_id", monster_type_id)
        .execute()
    )
    return res.count or 0


def get_inventory_quantity(db: Client, user_id: int, item_id: int) -> int:
    res = db.table("user_inventory").select("quantity").eq("user_id", user_id).eq("item_id", item_id).execute()
    return res.data[0]["quantity"] if res.data else 0


def count_owned_equipment(db: Client, user_id: int, equipment_type_id: int) -> int:
    res = (
        db.table("user_equipment")
        .select("id", count="exact")
        .eq("user_id", user_id)
        .eq("equipment_type_id", equipment_type_id)
        .execute()
    )
    return res.count or 0


def count_owned_buildings(db: Client, user_id: int, building_id: int) -> int:
    res = (
        db.table("user_buildings")
        .select("id", count="exact")
        .eq("user_id", user_id)
        .eq("building_id", building_id)
        .execute()
    )
    return res.count or 0


def get_item(db: Client, item_id: int) -> dict | None:
    res = db.table("items").select("id, display_name").eq("id", item_id).execute()
    return res.data[0] if res.data else None


# ── Reward grants ─────────────────────────────────────────────────────────────

def add_gold(db: Client, user_id: int, amount: int) -> None:
    db.rpc("add_user_gold", {"p_user_id": user_id, "p_amount": amount}).execute()


def add_inventory_item(db: Client, user_id: int, item_id: int, quantity: int) -> None:
    db.rpc("add_inventory_item", {"p_user_id": user_id, "p_item_id": item_id, "p_quantity": quantity}).execute()


# ── Statistics ledger ─────────────────────────────────────────────────────────

def get_stats(db: Client, user_id: int) -> dict:
    res = db.table("user_statistics").select("*").eq("user_id", user_id).execute()
    return res.data[0] if res.data else {}


def increment_stats(db: Client, user_id: int, deltas: dict[str, int]) -> None:
    """Atomic upsert-then-add for every counter in ``deltas``."""
    db.rpc("increment_user_statistics", {"p_user_id": user_id, "p_deltas": deltas}).execute()


# ── Quest catalog ─────────────────────────────────────────────────────────────

def get_quest(db: Client, quest_id: int) -> dict | None:
    res = db.table("quests").select("*").eq("id", quest_id).execute()
    return res.data[0] if res.data else None


def get_quest_by_name(db: Client, name: str) -> dict | None:
    res = db.table("quests").select("*").eq("name", name).execute()
    return res.data[0] if res.data else None


def get_quests(db: Client, active_only: bool = True) -> list[dict]:
    query = db.table("quests").select("*")
    if active_only:
        query = query.eq("is_active", True)
    res = query.order("sort_order").order("id").execute()
    return res.data or []


def get_objectives(db: Client, quest_id: int) -> list[dict]:
    res = db.table("quest_objectives").select("*").eq("quest_id", quest_id).order("sort_order").execute()
    return res.data or []


def get_objectives_of_type(db: Client, objective_type: str) -> list[dict]:
    res = db.table("quest_objectives").select("*").eq("objective_type", objective_type).execute()
    return res.data or []


def insert_quest(db: Client, quest: dict[str, Any]) -> dict:
    res = db.table("quests").insert(quest).execute()
    return res.data[0]


def insert_objectives(db: Client, objectives: list[dict[str, Any]]) -> None:
    if objectives:
        db.table("quest_objectives").insert(objectives).execute()


# ── User quests (state machine rows) ──────────────────────────────────────────

def get_user_quest(db: Client, user_id: int, quest_id: int) -> dict | None:
    res = db.table("user_quests").select("*").eq("user_id", user_id).eq("quest_id", quest_id).execute()
    return res.data[0] if res.data else None


def get_user_quests(db: Client, user_id: int) -> dict[int, dict]:
    res = db.table("user_quests").select("*").eq("user_id", user_id).execute()
    return {row["quest_id"]: row for row in (res.data or [])}


def upsert_user_quest(db: Client, user_id: int, quest_id: int, updates: dict) -> None:
    db.table("user_quests").upsert(
        {"user_id": user_id, "quest_id": quest_id, **updates}, on_conflict="user_id,quest_id"
    ).execute()


def transition_user_quest(db: Client, user_id: int, quest_id: int,
                          from_status: str, updates: dict) -> bool:
    """Conditional status change. True only for the caller whose update matched."""
    res = (
        db.table("user_quests")
        .update(updates)
        .eq("user_id", user_id)
        .eq("quest_id", quest_id)
        .eq("status", from_status)
        .execute()
    )
    if not res.data:
        logger.debug("Transition from %s skipped for user %s quest %s", from_status, user_id, quest_id)
    return bool(res.data)


def delete_user_quest(db: Client, user_id: int, quest_id: int) -> None:
    db.table("user_quests").delete().eq("user_id", user_id).eq("quest_id", quest_id).execute()


def count_user_quests_with_status(db: Client, user_id: int, status: str) -> int:
    res = (
        db.table("user_quests")
        .select("id", count="exact")
        .eq("user_id", user_id)
        .eq("status", status)
        .execute()
    )
    return res.count or 0


# ── Objective progress ────────────────────────────────────────────────────────

def get_user_progress(db: Client, user_id: int, quest_id: int) -> dict[int, dict]:
    res = db.table("user_quest_progress").select("*").eq("user_id", user_id).eq("quest_id", quest_id).execute()
    return {row["objective_id"]: row for row in (res.data or [])}


def upsert_progress(db: Client, user_id: int, quest_id: int, objective_id: int, updates: dict) -> None:
    db.table("user_quest_progress").upsert(
        {"user_id": user_id, "quest_id": quest_id, "objective_id": objective_id, **updates},
        on_conflict="user_id,objective_id",
    ).execute()


def delete_progress(db: Client, user_id: int, quest_id: int) -> None:
    db.table("user_quest_progress").delete().eq("user_id", user_id).eq("quest_id", quest_id).execute()


def advance_progress(db: Client, user_id: int, quest_id: int, objective_id: int, amount: int) -> dict | None:
    """
    Atomic increment-and-check of one objective.
    Returns {"current_amount", "is_completed", "newly_completed"} or None when
    the objective no longer exists.
    """
    res = db.rpc("advance_quest_progress", {
        "p_user_id": user_id,
        "p_quest_id": quest_id,
        "p_objective_id": objective_id,
        "p_amount": amount,
    }).execute()
    return res.data[0] if res.data else None


def raise_progress(db: Client, user_id: int, quest_id: int, objective_id: int, value: int) -> dict | None:
    """
    Atomic ``current_amount = greatest(current_amount, least(value, required))``.
    Same result keys as advance_progress plus ``raised``.
    """
    res = db.rpc("raise_quest_progress", {
        "p_user_id": user_id,
        "p_quest_id": quest_id,
        "p_objective_id": objective_id,
        "p_value": value,
    }).execute()
    return res.data[0] if res.data else None


def find_open_objectives(db: Client, user_id: int, objective_type: str,
                         target_id: int | None = None) -> list[dict]:
    """
    Objectives of ``objective_type`` in quests the user has active whose
    progress is not completed yet. ``target_id=None`` matches only "any"
    objectives (target_id is null); otherwise the exact target.
    """
    active = (
        db.table("user_quests")
        .select("quest_id")
        .eq("user_id", user_id)
        .eq("status", "active")
        .execute()
    )
    quest_ids = [row["quest_id"] for row in (active.data or [])]
    if not quest_ids:
        return []

    query = (
        db.table("quest_objectives")
        .select("*")
        .in_("quest_id", quest_ids)
        .eq("objective_type", objective_type)
    )
    if target_id is None:
        query = query.is_("target_id", "null")
    else:
        query = query.eq("target_id", target_id)
    objectives = query.execute().data or []
    if not objectives:
        return []

    done = (
        db.table("user_quest_progress")
        .select("objective_id")
        .eq("user_id", user_id)
        .eq("is_completed", True)
        .in_("objective_id", [o["id"] for o in objectives])
        .execute()
    )
    done_ids = {row["objective_id"] for row in (done.data or [])}
    return [o for o in objectives if o["id"] not in done_ids]


def count_incomplete_objectives(db: Client, user_id: int, quest_id: int) -> int:
    objectives = get_objectives(db, quest_id)
    progress = get_user_progress(db, user_id, quest_id)
    return sum(1 for o in objectives if not (progress.get(o["id"]) or {}).get("is_completed"))


# ── Notifications ─────────────────────────────────────────────────────────────

def get_webhook(db: Client, event_type: str) -> dict | None:
    res = (
        db.table("discord_webhooks")
        .select("webhook_url, message_template")
        .eq("event_type", event_type)
        .eq("enabled", True)
        .limit(1)
        .execute()
    )
    return res.data[0] if res.data else None
