"""
Converse action - one conversational turn for a direct caller.

Input:
    {
        "filter": "by_id",          # lookup strategy, optional
        "value": "<id>",            # identity lookup value
        "context": {...},           # attributes to add to the context
        "text": "<input text>"
    }

Output:
    {"statusCode": 200, "body": {"version": "1", "response": [...], "context": {...}}}
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from actions.config import configure_logging, load_config
from actions.responses import conversation_response, error_response
from actions.services import Services
from clients.exceptions import BridgeError
from clients.session_context_manager import FILTER_BY_ID

logger = logging.getLogger(__name__)


def validate_request(args: Dict[str, Any]) -> bool:
    """True when value, context and text are all present."""
    return bool(
        args.get("value")
        and isinstance(args.get("context"), dict)
        and args.get("text")
    )


async def main(args: Dict[str, Any], services: Optional[Services] = None) -> Dict[str, Any]:
    """Run a turn and answer with the reply and the resulting context"""
    if not validate_request(args):
        logger.warning("Rejecting converse request: value, context and text are required")
        return error_response(400)

    filter_kind = args.get("filter") or FILTER_BY_ID
    request_context = args["context"]
    logger.info(f"New converse request: {args['text']}")

    owns_services = services is None
    try:
        if owns_services:
            services = Services.from_config(load_config(args))
    except BridgeError as e:
        logger.error(f"Invalid configuration: {e}")
        return conversation_response(e.status_code, context=request_context)

    try:
        state = await services.conversation_turn().run(
            filter_kind, args["value"], args["text"], request_context
        )
    finally:
        if owns_services:
            await services.close()

    if not state.succeeded:
        return conversation_response(500, context=state.context)
    return conversation_response(200, state.replies, state.context)


def handler(args: Dict[str, Any]) -> Dict[str, Any]:
    """Synchronous entry point for the serverless runtime"""
    configure_logging()
    return asyncio.run(main(args))
