"""
Slack Platform Client - the Slack Web API calls the bot actions rely on.

Wraps slack_sdk's AsyncWebClient for a registered bot token: user profile
lookups, posting replies to channels or slash-command response URLs,
marking the bot active and exchanging OAuth codes. Also holds the
verification-token check and the URL verification handshake shared by the
webhook actions.
"""

import asyncio
import hmac
import logging
from typing import Any, Dict, List, Optional

import aiohttp
from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient
from slack_sdk.webhook.async_client import AsyncWebhookClient

from clients.exceptions import AuthError, BridgeError, DeliveryError

logger = logging.getLogger(__name__)

# Raised by AsyncWebClient when Slack cannot be reached at all
TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)


class SlackPlatformError(BridgeError):
    """Raised when a Slack lookup (user info, OAuth) fails."""
    pass


def verify_token(expected: Optional[str], received: Optional[str]) -> None:
    """Check the shared verification token of an inbound Slack request.

    Raises:
        AuthError: If no token is configured or the tokens differ.
    """
    if not expected or not received:
        raise AuthError("Missing Slack verification token")
    if not hmac.compare_digest(str(expected), str(received)):
        raise AuthError("Slack verification token mismatch")


def challenge_response(payload: Dict[str, Any]) -> Optional[Dict[str, str]]:
    """Return the handshake body for a url_verification request, else None."""
    if payload.get("type") == "url_verification" and "challenge" in payload:
        return {"challenge": payload["challenge"]}
    return None


class SlackPlatformClient:
    """Async Slack Web API client acting with a bot token."""

    def __init__(self, token: str, client: Optional[AsyncWebClient] = None):
        self._client = client or AsyncWebClient(token=token)

    async def users_info(self, user_id: str) -> Dict[str, Any]:
        """Get the profile of a Slack user.

        Raises:
            SlackPlatformError: If Slack rejects the lookup.
        """
        try:
            result = await self._client.users_info(user=user_id)
        except SlackApiError as e:
            raise SlackPlatformError(
                f"Failed to look up user {user_id}: {e.response['error']}"
            ) from e
        except TRANSPORT_ERRORS as e:
            raise SlackPlatformError(f"Cannot reach Slack looking up user {user_id}: {e!r}") from e
        user = result.get("user")
        if not user:
            raise SlackPlatformError(f"Unknown response looking up user {user_id}")
        return user

    async def post_message(self, channel: str, text: str) -> str:
        """Post a message to a channel.

        Returns:
            Timestamp (ts) of the posted message.

        Raises:
            DeliveryError: If Slack rejects the message.
        """
        try:
            result = await self._client.chat_postMessage(channel=channel, text=text)
        except SlackApiError as e:
            raise DeliveryError(
                f"Failed to post message to {channel}: {e.response['error']}"
            ) from e
        except TRANSPORT_ERRORS as e:
            raise DeliveryError(f"Cannot reach Slack posting to {channel}: {e!r}") from e
        return result.get("ts")

    async def post_lines(self, channel: str, lines: List[str]) -> List[str]:
        """Post each non-empty reply line as its own message."""
        timestamps = []
        for line in lines:
            if line:
                timestamps.append(await self.post_message(channel, line))
        return timestamps

    async def set_active(self) -> None:
        """Mark the bot user as active."""
        try:
            await self._client.users_setActive()
        except SlackApiError as e:
            raise SlackPlatformError(
                f"Failed to mark bot active: {e.response['error']}"
            ) from e
        except TRANSPORT_ERRORS as e:
            raise SlackPlatformError(f"Cannot reach Slack marking bot active: {e!r}") from e
        logger.info("Bot is active!")

    @staticmethod
    async def respond(response_url: str, text: str) -> None:
        """Post an asynchronous reply to a slash command's response_url.

        Raises:
            DeliveryError: If the response URL does not accept the reply.
        """
        webhook = AsyncWebhookClient(response_url)
        try:
            response = await webhook.send(text=text)
        except TRANSPORT_ERRORS as e:
            raise DeliveryError(f"Failed to post command response: {e}") from e
        if response.status_code != 200:
            raise DeliveryError(
                f"Command response rejected: {response.status_code} {response.body}"
            )

    @staticmethod
    async def oauth_access(
        client_id: str,
        client_secret: str,
        code: str,
        redirect_uri: Optional[str] = None,
        client: Optional[AsyncWebClient] = None,
    ) -> Dict[str, Any]:
        """Exchange an OAuth code for a bot registration payload.

        Raises:
            SlackPlatformError: If Slack rejects the code.
        """
        client = client or AsyncWebClient()
        kwargs = {"client_id": client_id, "client_secret": client_secret, "code": code}
        if redirect_uri:
            kwargs["redirect_uri"] = redirect_uri
        try:
            result = await client.oauth_access(**kwargs)
        except SlackApiError as e:
            raise SlackPlatformError(
                f"OAuth exchange failed: {e.response['error']}"
            ) from e
        except TRANSPORT_ERRORS as e:
            raise SlackPlatformError(f"Cannot reach Slack for OAuth exchange: {e!r}") from e
        return dict(result.data)
