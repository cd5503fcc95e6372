"""
Helpers shared by the Slack webhook actions.
"""

import logging
from typing import Any, Dict, Optional

from clients.document_store_client import DocumentStoreClient
from clients.exceptions import AuthError

logger = logging.getLogger(__name__)

BOTS_DESIGN_DOC = "bots"
BY_TEAM_ID_VIEW = "by_team_id"
BOT_REGISTRATION_TYPE = "bot-registration"
SLACK_ID_FILTER = "by_slack_id"


async def find_registration(bots_db: DocumentStoreClient, team_id: Optional[str]) -> Dict[str, Any]:
    """Find the bot registration stored for a team.

    Raises:
        AuthError: (403) If the team never installed the bot.
    """
    logger.info(f"Looking up bot info for team {team_id}")
    if not team_id:
        raise AuthError("team not found", status_code=403)
    doc = await bots_db.find_one(BOTS_DESIGN_DOC, BY_TEAM_ID_VIEW, team_id)
    if not doc or not doc.get("registration"):
        raise AuthError("team not found", status_code=403)
    return doc["registration"]


def bot_token(registration: Dict[str, Any]) -> str:
    """Bot access token from an OAuth registration payload."""
    token = (registration.get("bot") or {}).get("bot_access_token") or registration.get(
        "access_token"
    )
    if not token:
        raise AuthError("registration has no bot access token", status_code=403)
    return token


def is_user_message(event: Dict[str, Any]) -> bool:
    """True for a plain message typed by a human (no bot posts, edits, joins)."""
    if event.get("type") != "message":
        return False
    if event.get("subtype") or event.get("bot_id"):
        return False
    return bool(event.get("user") and (event.get("text") or "").strip())


def user_attributes(user: Dict[str, Any], channel: Optional[str]) -> Dict[str, Any]:
    """Request attributes describing the Slack user and channel of a turn."""
    attributes = {
        "slack_user_name": user.get("name"),
        "slack_real_name": user.get("real_name")
        or (user.get("profile") or {}).get("real_name"),
    }
    if channel:
        attributes["slack_channel"] = channel
    return attributes
