"""
Objective progress tracking and the active → completed transition.
"""
import logging

from supabase import Client

from .. import db as store
from .catalog import ACTIVE, COMPLETED

logger = logging.getLogger(__name__)


def advance(db: Client, user_id: int, quest_id: int, objective_id: int, amount: int = 1) -> dict | None:
    """
    Add ``amount`` to one objective. The store clamps at the requirement and
    reports ``newly_completed`` to exactly one caller, which then runs the
    quest completion check.
    """
    row = store.advance_progress(db, user_id, quest_id, objective_id, amount)
    if row is None:
        logger.warning("Objective %s vanished while advancing for user %s", objective_id, user_id)
        return None
    if row.get("newly_completed"):
        logger.info("Objective %s completed for user %s", objective_id, user_id)
        check_quest_completion(db, user_id, quest_id)
    return row


def raise_to(db: Client, user_id: int, quest_id: int, objective_id: int, value: int) -> dict | None:
    """Absolute counterpart of advance: progress becomes at least ``value``, in one statement."""
    row = store.raise_progress(db, user_id, quest_id, objective_id, value)
    if row is None:
        logger.warning("Objective %s vanished while raising for user %s", objective_id, user_id)
        return None
    if row.get("newly_completed"):
        logger.info("Objective %s completed for user %s", objective_id, user_id)
        check_quest_completion(db, user_id, quest_id)
    return row


def check_quest_completion(db: Client, user_id: int, quest_id: int) -> bool:
    """Flip the quest to completed once no objective is left. True if this call flipped it."""
    if store.count_incomplete_objectives(db, user_id, quest_id) > 0:
        return False
    flipped = store.transition_user_quest(
        db, user_id, quest_id, ACTIVE, {"status": COMPLETED, "completed_at": store.utcnow()}
    )
    if flipped:
        logger.info("Quest %s completed for user %s", quest_id, user_id)
    return flipped


def record_specific_progress(db: Client, user_id: int, quest_id: int, objective_id: int,
                             amount: int = 1) -> dict | None:
    """Caller already knows the objective. Ignored unless the quest is active and owns it."""
    if amount <= 0:
        return None
    user_quest = store.get_user_quest(db, user_id, quest_id)
    if not user_quest or user_quest.get("status") != ACTIVE:
        logger.info("Ignoring progress for user %s on quest %s: not active", user_id, quest_id)
        return None
    objective_ids = {o["id"] for o in store.get_objectives(db, quest_id)}
    if objective_id not in objective_ids:
        logger.warning("Objective %s does not belong to quest %s", objective_id, quest_id)
        return None
    return advance(db, user_id, quest_id, objective_id, amount)
