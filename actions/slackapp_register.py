"""
Slack bot registration action - stores the bot installed by a team.

Accepts the OAuth payload directly ("registration") or the OAuth "code" to
exchange for it. Previous registrations of the team are soft-deleted before
the new one is written under the team id, then the bot is marked active.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from actions.config import configure_logging, load_config
from actions.responses import action_response, error_response
from actions.services import Services
from actions.slack_common import (
    BOT_REGISTRATION_TYPE,
    BOTS_DESIGN_DOC,
    BY_TEAM_ID_VIEW,
    bot_token,
)
from clients.document_store_client import DocumentStoreClient
from clients.exceptions import BridgeError, ValidationError
from clients.slack_platform_client import SlackPlatformClient

logger = logging.getLogger(__name__)


def registration_team_id(registration: Dict[str, Any]) -> Optional[str]:
    return registration.get("team_id") or (registration.get("team") or {}).get("id")


async def register_bot(bots_db: DocumentStoreClient, registration: Dict[str, Any]) -> Dict:
    """Replace any previous registration of the team with this one.

    Raises:
        ValidationError: If the registration has no team id.
    """
    team_id = registration_team_id(registration)
    if not team_id:
        raise ValidationError("registration has no team id")

    logger.info(f"Looking for previous registrations for the team {team_id}")
    rows = await bots_db.query_view(BOTS_DESIGN_DOC, BY_TEAM_ID_VIEW, keys=[team_id])
    previous = [row["doc"] for row in rows if row.get("doc")]
    if previous:
        logger.info(f"Removing {len(previous)} previous registrations for the team {team_id}")
        await bots_db.bulk_delete(previous)

    logger.info(f"Registering the bot for the team {team_id}")
    result = await bots_db.insert(
        {"_id": team_id, "type": BOT_REGISTRATION_TYPE, "registration": registration}
    )
    logger.info(f"Registered bot {result.get('id')}")
    return result


async def main(
    args: Dict[str, Any],
    services: Optional[Services] = None,
    slack_factory: Callable[[str], SlackPlatformClient] = SlackPlatformClient,
    oauth: Callable = SlackPlatformClient.oauth_access,
) -> Dict[str, Any]:
    """Register a bot from an OAuth payload or code"""
    registration = args.get("registration")
    code = args.get("code")
    if not isinstance(registration, dict) and not code:
        return error_response(400)

    logger.info("Registering new bot from Slack")
    owns_services = services is None
    try:
        if owns_services:
            services = Services.from_config(load_config(args))
    except BridgeError as e:
        logger.error(f"Invalid configuration: {e}")
        return error_response(500)

    config = services.config
    try:
        if not isinstance(registration, dict):
            registration = await oauth(
                config.slack_client_id,
                config.slack_client_secret,
                code,
                config.slack_redirect_uri or None,
            )

        await register_bot(services.bots_db, registration)

        logger.info("Marking the bot as active")
        await slack_factory(bot_token(registration)).set_active()
        return action_response(200, {"status": "Registered"})

    except BridgeError as e:
        logger.error(f"Error registering bot: {e}", exc_info=True)
        status = 400 if isinstance(e, ValidationError) else 500
        return action_response(status, {"status": "Failed"})
    finally:
        if owns_services:
            await services.close()


def handler(args: Dict[str, Any]) -> Dict[str, Any]:
    """Synchronous entry point for the serverless runtime"""
    configure_logging()
    return asyncio.run(main(args))
