"""
Response shapes returned by the actions.
"""

from typing import Any, Dict, List, Optional

JSON_HEADERS = {"Content-Type": "application/json"}
RESPONSE_VERSION = "1"


def action_response(status_code: int, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Wrap a body in the {headers, statusCode, body} envelope."""
    return {
        "headers": dict(JSON_HEADERS),
        "statusCode": status_code,
        "body": body if body is not None else {},
    }


def conversation_response(
    status_code: int,
    replies: Optional[List[str]] = None,
    context: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Envelope carrying {version, response, context} for a conversational turn."""
    return action_response(
        status_code,
        {
            "version": RESPONSE_VERSION,
            "response": list(replies or []),
            "context": dict(context or {}),
        },
    )


def error_response(status_code: int) -> Dict[str, Any]:
    """Envelope with an empty body, used for rejected requests."""
    return action_response(status_code)
