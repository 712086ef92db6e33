"""
Login-driven rules: the calendar-day daily login reset and automatic
activation of achievement quests. Checked on login and profile fetch.
"""
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

from supabase import Client

from .. import db as store
from . import lifecycle, stats
from .catalog import ACHIEVEMENT, CLAIMED, COMPLETED, DAILY_LOGIN, Quest

logger = logging.getLogger(__name__)


def game_timezone() -> tzinfo:
    return ZoneInfo(os.environ.get("SOARIA_TIMEZONE", "UTC"))


_FRACTION = re.compile(r"\.(\d+)")
_SHORT_OFFSET = re.compile(r"(\d{2}:\d{2}(?:\.\d+)?[+-]\d{2})$")


def parse_timestamp(ts: str | None) -> datetime | None:
    """
    Parse a Postgres/PostgREST timestamp. Postgres trims trailing zeros from
    the fraction and may print a bare ``+00`` offset; both are normalised
    before ``fromisoformat``, which on 3.10 only takes 3 or 6 digits.
    Returns None for a missing or unparseable value.
    """
    if not ts:
        return None
    text = ts.strip().replace("Z", "+00:00")
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    text = _SHORT_OFFSET.sub(r"\1:00", text)
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.warning("Unparseable timestamp: %r", ts)
        return None


def _local_date(moment: datetime, tz: tzinfo) -> date:
    # Naive datetimes are taken as game-local already.
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(tz).date()


def is_new_day(last: datetime | None, now: datetime, tz: tzinfo | None = None) -> bool:
    """
    Calendar-day rollover, not rolling 24h: 23:59 and 00:01 the next day are
    different days.
    """
    if last is None:
        return True
    tz = tz or game_timezone()
    return _local_date(now, tz) > _local_date(last, tz)


def daily_login_quests(db: Client) -> list[Quest]:
    quest_ids = {o["quest_id"] for o in store.get_objectives_of_type(db, DAILY_LOGIN)}
    return [Quest.from_row(row) for row in store.get_quests(db, active_only=True) if row["id"] in quest_ids]


def force_complete(db: Client, user_id: int, quest: Quest) -> None:
    now = store.utcnow()
    store.upsert_user_quest(db, user_id, quest.id, {
        "status": COMPLETED,
        "started_at": now,
        "completed_at": now,
        "claimed_at": None,
    })
    for objective in lifecycle.load_objectives(db, quest.id):
        store.upsert_progress(db, user_id, quest.id, objective.id, {
            "current_amount": objective.required_amount,
            "is_completed": True,
        })


def check_daily_login_quests(db: Client, user_id: int, now: datetime | None = None) -> list[int]:
    """Returns the ids of daily login quests completed by this check."""
    now = now or datetime.now(timezone.utc)
    tz = game_timezone()
    completed = []
    for quest in daily_login_quests(db):
        user_quest = store.get_user_quest(db, user_id, quest.id) or {}
        status = user_quest.get("status")
        if status == COMPLETED:
            continue
        if status == CLAIMED:
            raw = user_quest.get("claimed_at")
            claimed_at = parse_timestamp(raw)
            if raw and claimed_at is None:
                # Unknown claim time: keep it claimed rather than re-arm it.
                logger.error("Daily quest %s for user %s has unreadable claimed_at %r",
                             quest.id, user_id, raw)
                continue
            if not is_new_day(claimed_at, now, tz):
                continue
        force_complete(db, user_id, quest)
        completed.append(quest.id)
        logger.info("Daily login quest %s completed for user %s", quest.id, user_id)
    return completed


def activate_achievement_quests(db: Client, user_id: int) -> list[lifecycle.AcceptResult]:
    """Start every achievement the user is eligible for by level and has never started."""
    level = store.get_player_level(db, user_id)
    started = store.get_user_quests(db, user_id)
    activated = []
    for row in store.get_quests(db, active_only=True):
        quest = Quest.from_row(row)
        if quest.category != ACHIEVEMENT or quest.min_level > level or quest.id in started:
            continue
        activated.append(lifecycle.start_quest(db, user_id, quest, lifecycle.load_objectives(db, quest.id)))
    if activated:
        logger.info("Activated %d achievements for user %s", len(activated), user_id)
    return activated


@dataclass
class LoginResult:
    daily_completed: list[int] = field(default_factory=list)
    achievements_activated: list[int] = field(default_factory=list)


def on_login(db: Client, user_id: int, now: datetime | None = None) -> LoginResult:
    """Login hook. Each step is independent; a failure is logged and the rest still run."""
    result = LoginResult()
    try:
        stats.increment(db, user_id, "logins", 1)
    except Exception:
        logger.exception("Could not record login for user %s", user_id)
    try:
        result.daily_completed = check_daily_login_quests(db, user_id, now)
    except Exception:
        logger.exception("Daily login check failed for user %s", user_id)
    try:
        result.achievements_activated = [r.quest_id for r in activate_achievement_quests(db, user_id)]
    except Exception:
        logger.exception("Achievement activation failed for user %s", user_id)
    return result
