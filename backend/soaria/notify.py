"""
Discord webhook notifications. Fire-and-forget: nothing here raises.
"""
import logging

import httpx
from supabase import Client

from . import db as store
from .engine.catalog import Quest

logger = logging.getLogger(__name__)

BOT_NAME = "Soaria Bot"
WEBHOOK_TIMEOUT = 5.0

DEFAULT_ACHIEVEMENT_TEMPLATE = (
    "🎊🎉 **Achievement unlocked!** 🎉🎊\n\n"
    "**{{username}}** earned the achievement:\n"
    "🏆 **{{achievement}}**\n\n"
    "_{{description}}_"
)


def render_achievement_message(template: str | None, username: str | None, quest: Quest) -> str:
    message = template or DEFAULT_ACHIEVEMENT_TEMPLATE
    replacements = {
        "{{username}}": username or "Unknown",
        "{{achievement}}": quest.display_name,
        "{{description}}": quest.description or "",
        "{{reward_gold}}": str(quest.reward_gold or 0),
        "{{reward_exp}}": str(quest.reward_experience or 0),
    }
    for placeholder, value in replacements.items():
        message = message.replace(placeholder, value)
    return message


def send_discord_webhook(url: str, message: str, username: str = BOT_NAME) -> bool:
    if not url or not message:
        return False
    try:
        res = httpx.post(url, json={"username": username, "content": message}, timeout=WEBHOOK_TIMEOUT)
        return res.status_code in (200, 204)
    except httpx.HTTPError as e:
        logger.error("Discord webhook failed: %s", e)
        return False


def notify_achievement(db: Client, user_id: int, quest: Quest) -> bool:
    try:
        webhook = store.get_webhook(db, "achievement")
        if not webhook or not webhook.get("webhook_url"):
            return False
        user = store.get_user(db, user_id) or {}
        message = render_achievement_message(webhook.get("message_template"), user.get("username"), quest)
        sent = send_discord_webhook(webhook["webhook_url"], message)
    except Exception:
        logger.exception("Achievement notification for user %s quest %s failed", user_id, quest.id)
        return False
    if not sent:
        logger.warning("Achievement webhook not delivered for user %s quest %s", user_id, quest.id)
    return sent
