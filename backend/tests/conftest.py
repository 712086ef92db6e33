"""
In-memory stand-in for the soaria.db query functions.

Every function the engine calls through ``soaria.db`` is replaced by a method
of FakeStore with the same signature, so engine and API tests run without a
Supabase project. Semantics mirror the SQL/RPC behaviour (clamped atomic
advance, conditional transitions, merge-on-upsert).
"""
import itertools
from unittest.mock import MagicMock

import pytest

import soaria.db


class FakeStore:
    def __init__(self):
        self._ids = itertools.count(1)
        self.users: dict[int, dict] = {}
        self.player_stats: dict[int, dict] = {}
        self.stats: dict[int, dict] = {}
        self.quests: dict[int, dict] = {}
        self.objectives: dict[int, dict] = {}
        self.user_quests: dict[tuple[int, int], dict] = {}
        self.progress: dict[tuple[int, int], dict] = {}
        self.inventory: dict[tuple[int, int], int] = {}
        self.items: dict[int, dict] = {}
        self.guild_members: set[int] = set()
        self.monster_kills: dict[tuple[int, int], int] = {}
        self.equipment: dict[tuple[int, int], int] = {}
        self.buildings: dict[tuple[int, int], int] = {}
        self.webhooks: dict[str, dict] = {}
        self.stat_writes: list[tuple[int, dict]] = []

    # ── test helpers ──────────────────────────────────────────────────────────

    def add_user(self, user_id: int = 1, level: int = 1, experience: int = 0, username: str = "Hero") -> int:
        self.users[user_id] = {"id": user_id, "username": username, "gold": 0}
        self.player_stats[user_id] = {"user_id": user_id, "level": level, "experience": experience}
        return user_id

    def add_quest(self, objectives=(("kill_monster", 10),), **fields) -> dict:
        """objectives: (type, required_amount) or (type, required_amount, target_id)."""
        quest_id = next(self._ids)
        row = {
            "id": quest_id,
            "name": fields.pop("name", f"quest_{quest_id}"),
            "display_name": fields.pop("display_name", f"Quest {quest_id}"),
            "description": None,
            "category": "side",
            "is_repeatable": False,
            "cooldown_hours": 0,
            "min_level": 1,
            "prerequisite_quest_id": None,
            "reward_gold": 0,
            "reward_experience": 0,
            "reward_item_id": None,
            "reward_item_quantity": 1,
            "is_active": True,
            "sort_order": quest_id,
            **fields,
        }
        self.quests[quest_id] = row
        row["objective_ids"] = []
        for i, entry in enumerate(objectives):
            objective_type, amount = entry[0], entry[1]
            target_id = entry[2] if len(entry) > 2 else None
            objective_id = next(self._ids)
            self.objectives[objective_id] = {
                "id": objective_id,
                "quest_id": quest_id,
                "objective_type": objective_type,
                "target_id": target_id,
                "target_name": None,
                "required_amount": amount,
                "description": None,
                "sort_order": i,
            }
            row["objective_ids"].append(objective_id)
        return row

    def status(self, user_id: int, quest_id: int) -> str | None:
        return (self.user_quests.get((user_id, quest_id)) or {}).get("status")

    def amount(self, user_id: int, objective_id: int) -> int:
        return (self.progress.get((user_id, objective_id)) or {}).get("current_amount", 0)

    def completed(self, user_id: int, objective_id: int) -> bool:
        return bool((self.progress.get((user_id, objective_id)) or {}).get("is_completed"))

    # ── players ───────────────────────────────────────────────────────────────

    def get_user(self, db, user_id):
        return self.users.get(user_id)

    def get_player_stats(self, db, user_id):
        return dict(self.player_stats.get(user_id, {}))

    def get_player_level(self, db, user_id):
        return self.player_stats.get(user_id, {}).get("level") or 1

    def update_player_stats(self, db, user_id, updates):
        self.player_stats.setdefault(user_id, {"user_id": user_id}).update(updates)

    def has_guild_membership(self, db, user_id):
        return user_id in self.guild_members

    def count_monster_kills(self, db, user_id, monster_type_id):
        return self.monster_kills.get((user_id, monster_type_id), 0)

    def get_inventory_quantity(self, db, user_id, item_id):
        return self.inventory.get((user_id, item_id), 0)

    def count_owned_equipment(self, db, user_id, equipment_type_id):
        return self.equipment.get((user_id, equipment_type_id), 0)

    def count_owned_buildings(self, db, user_id, building_id):
        return self.buildings.get((user_id, building_id), 0)

    def get_item(self, db, item_id):
        return self.items.get(item_id)

    def add_gold(self, db, user_id, amount):
        self.users[user_id]["gold"] += amount

    def add_inventory_item(self, db, user_id, item_id, quantity):
        key = (user_id, item_id)
        self.inventory[key] = self.inventory.get(key, 0) + quantity

    # ── ledger ────────────────────────────────────────────────────────────────

    def get_stats(self, db, user_id):
        return dict(self.stats.get(user_id, {}))

    def increment_stats(self, db, user_id, deltas):
        row = self.stats.setdefault(user_id, {"user_id": user_id})
        for counter, amount in deltas.items():
            row[counter] = row.get(counter, 0) + amount
        self.stat_writes.append((user_id, dict(deltas)))

    # ── catalog ───────────────────────────────────────────────────────────────

    def get_quest(self, db, quest_id):
        return self.quests.get(quest_id)

    def get_quest_by_name(self, db, name):
        return next((q for q in self.quests.values() if q["name"] == name), None)

    def get_quests(self, db, active_only=True):
        rows = [q for q in self.quests.values() if q["is_active"] or not active_only]
        return sorted(rows, key=lambda q: (q["sort_order"], q["id"]))

    def get_objectives(self, db, quest_id):
        rows = [o for o in self.objectives.values() if o["quest_id"] == quest_id]
        return sorted(rows, key=lambda o: o["sort_order"])

    def get_objectives_of_type(self, db, objective_type):
        return [o for o in self.objectives.values() if o["objective_type"] == objective_type]

    def insert_quest(self, db, quest):
        quest_id = next(self._ids)
        self.quests[quest_id] = {"id": quest_id, "prerequisite_quest_id": None, "reward_item_id": None,
                                 "reward_item_quantity": 1, **quest}
        return self.quests[quest_id]

    def insert_objectives(self, db, objectives):
        for row in objectives:
            objective_id = next(self._ids)
            self.objectives[objective_id] = {"id": objective_id, "target_id": None, **row}

    # ── user quests ───────────────────────────────────────────────────────────

    def get_user_quest(self, db, user_id, quest_id):
        row = self.user_quests.get((user_id, quest_id))
        return dict(row) if row else None

    def get_user_quests(self, db, user_id):
        return {q: dict(row) for (u, q), row in self.user_quests.items() if u == user_id}

    def upsert_user_quest(self, db, user_id, quest_id, updates):
        row = self.user_quests.setdefault((user_id, quest_id), {"user_id": user_id, "quest_id": quest_id})
        row.update(updates)

    def transition_user_quest(self, db, user_id, quest_id, from_status, updates):
        row = self.user_quests.get((user_id, quest_id))
        if not row or row["status"] != from_status:
            return False
        row.update(updates)
        return True

    def delete_user_quest(self, db, user_id, quest_id):
        self.user_quests.pop((user_id, quest_id), None)

    def count_user_quests_with_status(self, db, user_id, status):
        return sum(1 for (u, _), row in self.user_quests.items() if u == user_id and row["status"] == status)

    # ── progress ──────────────────────────────────────────────────────────────

    def get_user_progress(self, db, user_id, quest_id):
        return {o: dict(row) for (u, o), row in self.progress.items()
                if u == user_id and row["quest_id"] == quest_id}

    def upsert_progress(self, db, user_id, quest_id, objective_id, updates):
        row = self.progress.setdefault((user_id, objective_id), {
            "user_id": user_id, "quest_id": quest_id, "objective_id": objective_id,
            "current_amount": 0, "is_completed": False,
        })
        row.update(updates)

    def delete_progress(self, db, user_id, quest_id):
        for key in [k for k, row in self.progress.items() if k[0] == user_id and row["quest_id"] == quest_id]:
            del self.progress[key]

    def advance_progress(self, db, user_id, quest_id, objective_id, amount):
        objective = self.objectives.get(objective_id)
        if not objective:
            return None
        required = objective["required_amount"]
        row = self.progress.get((user_id, objective_id))
        was_completed = bool(row and row["is_completed"])
        current = row["current_amount"] if row else 0
        new_row = {
            "user_id": user_id, "quest_id": quest_id, "objective_id": objective_id,
            "current_amount": min(current + amount, required),
            "is_completed": was_completed or current + amount >= required,
        }
        self.progress[(user_id, objective_id)] = new_row
        return {
            "current_amount": new_row["current_amount"],
            "is_completed": new_row["is_completed"],
            "newly_completed": new_row["is_completed"] and not was_completed,
        }

    def raise_progress(self, db, user_id, quest_id, objective_id, value):
        objective = self.objectives.get(objective_id)
        if not objective:
            return None
        required = objective["required_amount"]
        row = self.progress.get((user_id, objective_id))
        was_completed = bool(row and row["is_completed"])
        current = row["current_amount"] if row else 0
        new_amount = max(current, min(value, required), 0)
        self.progress[(user_id, objective_id)] = {
            "user_id": user_id, "quest_id": quest_id, "objective_id": objective_id,
            "current_amount": new_amount,
            "is_completed": was_completed or new_amount >= required,
        }
        return {
            "current_amount": new_amount,
            "is_completed": was_completed or new_amount >= required,
            "newly_completed": new_amount >= required and not was_completed,
            "raised": new_amount > current,
        }

    def find_open_objectives(self, db, user_id, objective_type, target_id=None):
        active = {q for (u, q), row in self.user_quests.items() if u == user_id and row["status"] == "active"}
        return [
            dict(o) for o in self.objectives.values()
            if o["quest_id"] in active
            and o["objective_type"] == objective_type
            and o["target_id"] == target_id
            and not self.completed(user_id, o["id"])
        ]

    def count_incomplete_objectives(self, db, user_id, quest_id):
        return sum(1 for o in self.get_objectives(db, quest_id) if not self.completed(user_id, o["id"]))

    # ── notifications ─────────────────────────────────────────────────────────

    def get_webhook(self, db, event_type):
        return self.webhooks.get(event_type)


STORE_FUNCTIONS = [
    name for name, value in vars(FakeStore).items()
    if callable(value) and not name.startswith("_") and hasattr(soaria.db, name)
]


@pytest.fixture
def store(monkeypatch):
    fake = FakeStore()
    for name in STORE_FUNCTIONS:
        monkeypatch.setattr(soaria.db, name, getattr(fake, name))
    monkeypatch.setattr(soaria.db, "get_client", lambda: MagicMock())
    return fake


@pytest.fixture
def db():
    """Opaque client handle; the fake store ignores it."""
    return MagicMock()


@pytest.fixture
def user(store):
    return store.add_user(1, level=5)
