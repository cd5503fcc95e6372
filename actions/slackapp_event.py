"""
Slack Events API action - answers DM/channel messages through the conversation.

Handles the url_verification handshake, rejects requests without the shared
verification token, and for each human message runs a turn keyed by the Slack
user id, then posts the reply lines back to the channel with the team's bot
token.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from actions.config import configure_logging, load_config
from actions.responses import action_response, error_response
from actions.services import Services
from actions.slack_common import (
    SLACK_ID_FILTER,
    bot_token,
    find_registration,
    is_user_message,
    user_attributes,
)
from actions.turn import ERROR_MESSAGE
from clients.exceptions import AuthError, BridgeError
from clients.slack_platform_client import (
    SlackPlatformClient,
    challenge_response,
    verify_token,
)

logger = logging.getLogger(__name__)


async def main(
    args: Dict[str, Any],
    services: Optional[Services] = None,
    slack_factory: Callable[[str], SlackPlatformClient] = SlackPlatformClient,
) -> Dict[str, Any]:
    """Process one Events API payload"""
    logger.info(f"Processing new bot event from Slack ({args.get('type')})")

    owns_services = services is None
    try:
        config = services.config if services else load_config(args)
        verify_token(config.slack_verification_token, args.get("token"))
    except AuthError as e:
        logger.warning(f"Rejected Slack event: {e}")
        return error_response(401)
    except BridgeError as e:
        logger.error(f"Invalid configuration: {e}")
        return error_response(500)

    challenge = challenge_response(args)
    if challenge:
        return action_response(200, challenge)

    event = args.get("event") or {}
    if args.get("type") != "event_callback" or not is_user_message(event):
        return action_response(200, {"status": "Ignored"})

    if owns_services:
        services = Services.from_config(config)

    slack = None
    channel = event.get("channel")
    try:
        registration = await find_registration(
            services.bots_db, args.get("team_id") or event.get("team")
        )
        slack = slack_factory(bot_token(registration))

        logger.info(f"Looking up user info for user {event['user']}")
        user = await slack.users_info(event["user"])
        logger.info(f"Processing message from {user.get('name')}")

        attributes = user_attributes(user, channel)
        attributes["slack_ts"] = event.get("ts")
        state = await services.conversation_turn().run(
            SLACK_ID_FILTER, event["user"], event["text"], attributes
        )

        if not state.succeeded:
            await _post_error(slack, channel)
            return action_response(500, {"status": "Failed"})

        await slack.post_lines(channel, state.replies)
        return action_response(200, {"status": "Replied"})

    except AuthError as e:
        logger.error(f"Error: {e}")
        return action_response(e.status_code, {"status": "Rejected"})
    except BridgeError as e:
        logger.error(f"Error: {e}", exc_info=True)
        if slack is not None:
            await _post_error(slack, channel)
        return action_response(500, {"status": "Failed"})
    finally:
        if owns_services:
            await services.close()


async def _post_error(slack: SlackPlatformClient, channel: Optional[str]):
    """Tell the user something went wrong; never raises"""
    if not channel:
        return
    try:
        await slack.post_message(channel, ERROR_MESSAGE)
    except BridgeError as e:
        logger.warning(f"Failed to post error message to {channel}: {e}")


def handler(args: Dict[str, Any]) -> Dict[str, Any]:
    """Synchronous entry point for the serverless runtime"""
    configure_logging()
    return asyncio.run(main(args))
