"""
Slack slash command action - answers a command through the conversation.

The reply is posted asynchronously to the command's response_url.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from actions.config import configure_logging, load_config
from actions.responses import action_response, error_response
from actions.services import Services
from actions.slack_common import SLACK_ID_FILTER, bot_token, find_registration, user_attributes
from actions.turn import ERROR_MESSAGE
from clients.exceptions import AuthError, BridgeError
from clients.slack_platform_client import SlackPlatformClient, verify_token

logger = logging.getLogger(__name__)


def command_payload(args: Dict[str, Any]) -> Dict[str, Any]:
    """The command fields, whether nested under "command" or sent flat as a form."""
    command = args.get("command")
    if isinstance(command, dict):
        return command
    return args


async def main(
    args: Dict[str, Any],
    services: Optional[Services] = None,
    slack_factory: Callable[[str], SlackPlatformClient] = SlackPlatformClient,
    respond: Callable = SlackPlatformClient.respond,
) -> Dict[str, Any]:
    """Process one slash command invocation"""
    command = command_payload(args)
    logger.info(f"Processing new bot command from Slack ({command.get('command')})")

    owns_services = services is None
    try:
        config = services.config if services else load_config(args)
        verify_token(config.slack_verification_token, command.get("token"))
    except AuthError as e:
        logger.warning(f"Rejected Slack command: {e}")
        return error_response(401)
    except BridgeError as e:
        logger.error(f"Invalid configuration: {e}")
        return error_response(500)

    user_id = command.get("user_id")
    response_url = command.get("response_url")
    if not user_id or not response_url:
        return error_response(400)

    if owns_services:
        services = Services.from_config(config)

    try:
        registration = await find_registration(services.bots_db, command.get("team_id"))
        slack = slack_factory(bot_token(registration))

        logger.info(f"Looking up user info for user {user_id}")
        user = await slack.users_info(user_id)
        logger.info(f"Processing command from {user.get('name')}")

        attributes = user_attributes(user, command.get("channel_id"))
        attributes["slack_command"] = command.get("command")
        state = await services.conversation_turn().run(
            SLACK_ID_FILTER, user_id, command.get("text") or "", attributes
        )

        if not state.succeeded:
            await _respond_error(respond, response_url)
            return action_response(500, {"status": "Failed"})

        await respond(response_url, "\n".join(line for line in state.replies if line))
        return action_response(200, {"status": "Replied"})

    except AuthError as e:
        logger.error(f"Error: {e}")
        return action_response(e.status_code, {"status": "Rejected"})
    except BridgeError as e:
        logger.error(f"Error: {e}", exc_info=True)
        await _respond_error(respond, response_url)
        return action_response(500, {"status": "Failed"})
    finally:
        if owns_services:
            await services.close()


async def _respond_error(respond: Callable, response_url: str):
    try:
        await respond(response_url, ERROR_MESSAGE)
    except BridgeError as e:
        logger.warning(f"Failed to post error response: {e}")


def handler(args: Dict[str, Any]) -> Dict[str, Any]:
    """Synchronous entry point for the serverless runtime"""
    configure_logging()
    return asyncio.run(main(args))
