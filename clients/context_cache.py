"""
Context Cache - Redis-backed store for the full working context of a session.

Each entry maps an identity to the JSON-serialized context of its last turn
and expires a fixed number of seconds after it was written.
"""

import json
import logging
from typing import Any, Dict, Optional

import redis.asyncio as redis_async
from redis.exceptions import RedisError

from clients.exceptions import ContextUnavailable

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_TTL = 600


class ContextCache:
    """Async Redis client storing session contexts with an expiry."""

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        ttl_seconds: int = DEFAULT_CONTEXT_TTL,
        socket_timeout: float = 5.0,
        client=None,
    ):
        self.redis_url = redis_url
        self.ttl_seconds = ttl_seconds
        self.socket_timeout = socket_timeout
        self.client = client

    def _ensure_client(self):
        """Ensure the Redis client is created (lazy init)."""
        if self.client is None:
            self.client = redis_async.from_url(
                self.redis_url,
                decode_responses=True,
                socket_timeout=self.socket_timeout,
                socket_connect_timeout=self.socket_timeout,
            )

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Read the cached context for an identity.

        Args:
            key: Identity key.

        Returns:
            The cached context, or None if absent, expired or not a JSON object.

        Raises:
            ContextUnavailable: If Redis is unreachable.
        """
        self._ensure_client()
        try:
            raw = await self.client.get(key)
        except RedisError as e:
            raise ContextUnavailable(f"Error getting context from Redis: {e}") from e

        if raw is None:
            return None

        try:
            value = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed cached context for {key}: {e}")
            return None

        if not isinstance(value, dict):
            logger.warning(f"Ignoring cached context for {key}: not a JSON object")
            return None
        return value

    async def set(self, key: str, context: Dict[str, Any]) -> None:
        """Write the context for an identity with the configured expiry.

        Raises:
            ContextUnavailable: If Redis is unreachable.
        """
        self._ensure_client()
        try:
            await self.client.set(key, json.dumps(context), ex=self.ttl_seconds)
        except RedisError as e:
            raise ContextUnavailable(f"Error saving context to Redis: {e}") from e

    async def health_check(self) -> bool:
        self._ensure_client()
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            logger.warning(f"Redis health check failed: {e}")
            return False

    async def close(self):
        """Close the Redis connection pool."""
        if self.client is not None:
            await self.client.aclose()
            self.client = None
