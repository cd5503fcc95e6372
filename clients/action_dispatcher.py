"""
Action Dispatcher - best-effort execution of dialog side-effect directives.

When the engine sets an "action" attribute in the context, the named cloud
function is called once with the current context. The call never fails the
turn: errors are logged and the directive is consumed either way.
"""

import httpx
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

ACTION_ATTRIBUTE = "action"


class ActionDispatcher:
    """Posts directive calls to <api_base><action name>"""

    def __init__(self, api_base: Optional[str], timeout: int = 30):
        self.api_base = api_base or ""
        self.timeout = httpx.Timeout(timeout)
        self.client: Optional[httpx.AsyncClient] = None

    async def _ensure_client(self):
        if not self.client:
            self.client = httpx.AsyncClient(timeout=self.timeout)

    async def dispatch(self, context: Dict[str, Any]) -> bool:
        """Run the directive found in context, then remove it.

        Args:
            context: Working context; mutated in place to drop the directive.

        Returns:
            True if the action endpoint answered with a 2xx status.
        """
        action = context.get(ACTION_ATTRIBUTE)
        if not action:
            context.pop(ACTION_ATTRIBUTE, None)
            return False

        succeeded = False
        try:
            if not self.api_base:
                logger.warning(f"No CF_API_BASE configured, skipping action {action}")
                return False

            await self._ensure_client()
            url = f"{self.api_base}{action}"
            logger.info(f"Action {action}: {url}")
            response = await self.client.post(url, json={"context": dict(context)})
            if 200 <= response.status_code < 300:
                logger.info(f"CF action call success: {action}")
                succeeded = True
            else:
                logger.warning(f"CF action call failed: {action} {response.status_code}")
        except Exception as e:
            logger.warning(f"Error calling action {action}: {e}")
        finally:
            # Consumed whether or not the call went through
            context.pop(ACTION_ATTRIBUTE, None)

        return succeeded

    async def close(self):
        if self.client:
            await self.client.aclose()
            self.client = None
