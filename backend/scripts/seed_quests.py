"""
Insert the default quest catalog (daily login + achievements) into the
quests / quest_objectives tables.

Quests are matched by their unique name, so existing rows are left alone, including any
edits made by administrators. Safe to run multiple times.

Usage:
    cd backend
    SUPABASE_URL=... SUPABASE_SERVICE_KEY=... python scripts/seed_quests.py [--dry-run]

A .env file next to the script's working directory is loaded automatically.
"""
import os
import sys

from dotenv import load_dotenv

load_dotenv()

# Add project root to path so we can import the engine modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from soaria import db as store
from soaria.engine.catalog import DEFAULT_QUESTS, QuestTemplate


def missing_templates(db, templates: list[QuestTemplate]) -> list[QuestTemplate]:
    return [t for t in templates if not store.get_quest_by_name(db, t.name)]


def run(dry_run: bool = False):
    print("\n🗺️  Seeding default quests...\n")
    db = store.get_client()

    todo = missing_templates(db, DEFAULT_QUESTS)
    print(f"  {len(DEFAULT_QUESTS) - len(todo)} already present, {len(todo)} to insert")

    for template in todo:
        objectives = ", ".join(f"{t} x{n}" for t, n, _ in template.objectives)
        print(f"    + {template.name} [{template.category}] ({objectives})")

    if dry_run:
        print("\n  DRY RUN — no changes written.")
        return

    for template in todo:
        quest = store.insert_quest(db, template.quest_row())
        store.insert_objectives(db, template.objective_rows(quest["id"]))

    print(f"\n✅ Inserted {len(todo)} quests.\n")


if __name__ == "__main__":
    run(dry_run="--dry-run" in sys.argv)
