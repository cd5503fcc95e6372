"""
Conversation Client - Watson Conversation (v1 message API) client.

Stateless request/response exchange: the caller supplies the workspace,
the full context and the utterance; the engine answers with reply lines and
an updated context.
"""

import httpx
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from clients.exceptions import EngineError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://gateway.watsonplatform.net/conversation/api"
DEFAULT_VERSION_DATE = "2017-05-26"


@dataclass
class EngineResponse:
    """Outcome of one engine exchange"""
    text: List[str] = field(default_factory=list)
    context: Optional[Dict[str, Any]] = None
    intent: Optional[str] = None
    confidence: Optional[float] = None

    @property
    def action(self) -> Optional[str]:
        """Side-effect directive requested by the dialog, if any"""
        if self.context:
            return self.context.get("action")
        return None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "EngineResponse":
        output = data.get("output") or {}
        text = output.get("text") or []
        if isinstance(text, str):
            text = [text]

        intent = None
        confidence = None
        intents = data.get("intents") or []
        if intents:
            intent = intents[0].get("intent")
            confidence = intents[0].get("confidence")

        return cls(
            text=list(text),
            context=data.get("context"),
            intent=intent,
            confidence=confidence,
        )


class ConversationClient:
    """Async client for the Watson Conversation message API"""

    def __init__(
        self,
        username: str,
        password: str,
        base_url: str = DEFAULT_API_URL,
        version_date: str = DEFAULT_VERSION_DATE,
        timeout: int = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self.version_date = version_date
        self.auth = httpx.BasicAuth(username or "", password or "")
        self.timeout = httpx.Timeout(timeout)
        self.client = None

    async def __aenter__(self):
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _ensure_client(self):
        """Ensure async client is initialized"""
        if not self.client:
            self.client = httpx.AsyncClient(timeout=self.timeout, auth=self.auth)

    async def message(
        self,
        workspace_id: str,
        context: Dict[str, Any],
        text: str,
    ) -> EngineResponse:
        """
        Send one utterance to a workspace

        Args:
            workspace_id: Conversation workspace to talk to
            context: Full working context for this turn
            text: Raw user utterance

        Returns:
            EngineResponse with reply lines, new context and top intent

        Raises:
            EngineError: If the request fails or the engine returns an error
        """
        if not workspace_id:
            raise EngineError("No workspace id configured for the conversation")

        await self._ensure_client()

        url = f"{self.base_url}/v1/workspaces/{workspace_id}/message"
        payload = {
            "input": {"text": text},
            "context": context,
        }

        try:
            response = await self.client.post(
                url, params={"version": self.version_date}, json=payload
            )
            response.raise_for_status()
            result = EngineResponse.from_payload(response.json())
        except httpx.HTTPStatusError as e:
            logger.error(f"Conversation API returned {e.response.status_code}: {e}")
            raise EngineError(f"Error asking Watson: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"Conversation API unreachable: {e}")
            raise EngineError(f"Error asking Watson: {e}") from e
        except ValueError as e:
            raise EngineError(f"Malformed response from Watson: {e}") from e

        logger.info(
            f"Watson replied with {len(result.text)} lines "
            f"(intent: {result.intent}, confidence: {result.confidence})"
        )
        return result

    async def close(self):
        if self.client:
            await self.client.aclose()
            self.client = None
