"""
Quest catalog: definitions, objective types and the default quest set.
"""
from dataclasses import dataclass

# Quest categories
MAIN = "main"
SIDE = "side"
DAILY = "daily"
WEEKLY = "weekly"
ACHIEVEMENT = "achievement"
CATEGORIES = (MAIN, SIDE, DAILY, WEEKLY, ACHIEVEMENT)

# Stored user quest statuses. AVAILABLE and LOCKED are derived, never stored.
AVAILABLE = "available"
LOCKED = "locked"
ACTIVE = "active"
COMPLETED = "completed"
CLAIMED = "claimed"

DAILY_LOGIN = "daily_login"

OBJECTIVE_TYPES = (
    "kill_monster", "kill_boss", "kill_specific_monster",
    "collect_resource", "collect_specific_item",
    "craft_item", "craft_specific_item", "craft_equipment",
    "build_building", "upgrade_building", "build_specific_building",
    "travel_distance", "visit_location",
    "reach_level", "earn_gold", "spend_gold",
    "complete_trade", "send_message",
    "defeat_player", DAILY_LOGIN,
    "obtain_legendary", "obtain_epic", "obtain_rare", "join_guild",
)


@dataclass
class Objective:
    id: int
    quest_id: int
    type: str
    required_amount: int
    target_id: int | None = None
    target_name: str | None = None
    description: str | None = None
    sort_order: int = 0

    @classmethod
    def from_row(cls, row: dict) -> "Objective":
        return cls(
            id=row["id"],
            quest_id=row["quest_id"],
            type=row["objective_type"],
            required_amount=row.get("required_amount") or 1,
            target_id=row.get("target_id"),
            target_name=row.get("target_name"),
            description=row.get("description"),
            sort_order=row.get("sort_order") or 0,
        )


@dataclass
class Quest:
    id: int
    name: str
    display_name: str
    category: str = MAIN
    description: str | None = None
    is_repeatable: bool = False
    cooldown_hours: int = 0
    min_level: int = 1
    prerequisite_quest_id: int | None = None
    reward_gold: int = 0
    reward_experience: int = 0
    reward_item_id: int | None = None
    reward_item_quantity: int = 1
    is_active: bool = True
    sort_order: int = 0

    @classmethod
    def from_row(cls, row: dict) -> "Quest":
        return cls(
            id=row["id"],
            name=row["name"],
            display_name=row.get("display_name") or row["name"],
            category=row.get("category") or MAIN,
            description=row.get("description"),
            is_repeatable=bool(row.get("is_repeatable")),
            cooldown_hours=row.get("cooldown_hours") or 0,
            min_level=row.get("min_level") or 1,
            prerequisite_quest_id=row.get("prerequisite_quest_id"),
            reward_gold=row.get("reward_gold") or 0,
            reward_experience=row.get("reward_experience") or 0,
            reward_item_id=row.get("reward_item_id"),
            reward_item_quantity=row.get("reward_item_quantity") or 1,
            is_active=bool(row.get("is_active", True)),
            sort_order=row.get("sort_order") or 0,
        )


def has_daily_login(objectives: list[Objective]) -> bool:
    return any(o.type == DAILY_LOGIN for o in objectives)


# ── Default catalog ───────────────────────────────────────────────────────────

@dataclass
class QuestTemplate:
    name: str
    display_name: str
    description: str
    category: str
    objectives: list[tuple[str, int, str]]   # (objective_type, required_amount, description)
    reward_gold: int = 0
    reward_experience: int = 0
    min_level: int = 1
    is_repeatable: bool = False
    cooldown_hours: int = 0
    sort_order: int = 0

    def quest_row(self) -> dict:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "category": self.category,
            "is_repeatable": self.is_repeatable,
            "cooldown_hours": self.cooldown_hours,
            "min_level": self.min_level,
            "reward_gold": self.reward_gold,
            "reward_experience": self.reward_experience,
            "sort_order": self.sort_order,
            "is_active": True,
        }

    def objective_rows(self, quest_id: int) -> list[dict]:
        return [
            {
                "quest_id": quest_id,
                "objective_type": objective_type,
                "required_amount": amount,
                "description": description,
                "sort_order": i,
            }
            for i, (objective_type, amount, description) in enumerate(self.objectives)
        ]


def _achievement(name, display_name, description, objective_type, amount, gold, xp, sort_order, min_level=1):
    return QuestTemplate(
        name=f"achievement_{name}",
        display_name=display_name,
        description=description,
        category=ACHIEVEMENT,
        objectives=[(objective_type, amount, description)],
        reward_gold=gold,
        reward_experience=xp,
        min_level=min_level,
        sort_order=sort_order,
    )


DEFAULT_QUESTS: list[QuestTemplate] = [
    QuestTemplate(
        name=DAILY_LOGIN,
        display_name="Daily Login",
        description="Log in today and collect your daily reward!",
        category=DAILY,
        objectives=[(DAILY_LOGIN, 1, "Log in once")],
        reward_gold=10,
        reward_experience=20,
        is_repeatable=True,
        cooldown_hours=24,
        sort_order=0,
    ),

    # Combat
    _achievement("first_blood",          "First Blood",        "Defeat your first monster.",          "kill_monster",  1,   25,  50,  100),
    _achievement("monster_slayer_10",    "Monster Hunter",     "Defeat 10 monsters in the wild.",     "kill_monster",  10,  50,  100, 101),
    _achievement("monster_slayer_50",    "Seasoned Hunter",    "Defeat 50 monsters.",                 "kill_monster",  50,  150, 300, 102),
    _achievement("monster_slayer_100",   "Legendary Hunter",   "Defeat 100 monsters.",                "kill_monster",  100, 300, 500, 103),
    _achievement("monster_slayer_500",   "Scourge of Beasts",  "Defeat 500 monsters.",                "kill_monster",  500, 1000, 2000, 104),
    _achievement("boss_slayer_1",        "Boss Slayer",        "Defeat your first boss.",             "kill_boss",     1,   100, 200, 120),
    _achievement("boss_slayer_10",       "Bane of Tyrants",    "Defeat 10 bosses.",                   "kill_boss",     10,  500, 1000, 121),
    _achievement("duelist",              "Duelist",            "Win a fight against another player.", "defeat_player", 1,   50,  100, 130),

    # Gathering and crafting
    _achievement("gatherer_50",          "Gatherer",           "Collect 50 resources.",               "collect_resource", 50,  50,  100, 200),
    _achievement("gatherer_500",         "Hoarder",            "Collect 500 resources.",              "collect_resource", 500, 250, 500, 201),
    _achievement("crafter_10",           "Apprentice Crafter", "Craft 10 items.",                     "craft_item",       10,  50,  100, 210),
    _achievement("smith_5",              "Smith",              "Craft 5 pieces of equipment.",        "craft_equipment",  5,   100, 200, 211),

    # Building and travel
    _achievement("builder_1",            "Homesteader",        "Construct your first building.",      "build_building",   1,   50,  100, 300),
    _achievement("architect_5",          "Architect",          "Upgrade buildings 5 times.",          "upgrade_building", 5,   150, 300, 301),
    _achievement("wanderer_1000",        "Wanderer",           "Travel 1000 tiles.",                  "travel_distance",  1000, 100, 200, 310),

    # Economy and social
    _achievement("wealthy_1000",         "Wealthy",            "Earn 1000 gold.",                     "earn_gold",        1000, 0,   250, 400),
    _achievement("spender_1000",         "Big Spender",        "Spend 1000 gold.",                    "spend_gold",       1000, 100, 200, 401),
    _achievement("trader_10",            "Merchant",           "Complete 10 trades.",                 "complete_trade",   10,   100, 200, 410),
    _achievement("chatty_50",            "Chatterbox",         "Send 50 messages.",                   "send_message",     50,   25,  50,  420),
    _achievement("guild_member",         "Sworn Brother",      "Join a guild.",                       "join_guild",       1,    50,  100, 430),

    # Progression and loot
    _achievement("level_10",             "Veteran",            "Reach level 10.",                     "reach_level",      10,   200, 0,   500),
    _achievement("rare_find",            "Rare Find",          "Obtain a rare item.",                 "obtain_rare",      1,    50,  100, 510),
    _achievement("epic_find",            "Epic Find",          "Obtain an epic item.",                "obtain_epic",      1,    150, 300, 511),
    _achievement("legendary_find",       "Legendary Find",     "Obtain a legendary item.",            "obtain_legendary", 1,    500, 1000, 512),
]
