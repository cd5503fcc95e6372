"""
Per-invocation service handles.

Each action builds its clients from the configuration at the start of an
invocation and closes them when it returns; nothing is shared between
invocations through module state.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from actions.config import ActionConfig
from actions.turn import ConversationTurn
from clients.action_dispatcher import ActionDispatcher
from clients.context_cache import ContextCache
from clients.conversation_client import ConversationClient
from clients.document_store_client import DocumentStoreClient
from clients.session_context_manager import SessionContextManager

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Clients used during one invocation"""

    config: ActionConfig
    users_db: DocumentStoreClient
    bots_db: DocumentStoreClient
    cache: ContextCache
    engine: ConversationClient
    dispatcher: ActionDispatcher
    sessions: Optional[SessionContextManager] = None

    def __post_init__(self):
        if self.sessions is None:
            self.sessions = SessionContextManager(
                documents=self.users_db,
                cache=self.cache,
                design_doc=self.config.users_design_doc,
            )

    @classmethod
    def from_config(cls, config: ActionConfig) -> "Services":
        """Initialize services: Watson Conversation, Redis, Cloudant"""
        services = cls(
            config=config,
            users_db=DocumentStoreClient(
                config.cloudant_url, config.users_db, timeout=config.request_timeout
            ),
            bots_db=DocumentStoreClient(
                config.cloudant_url, config.bots_db, timeout=config.request_timeout
            ),
            cache=ContextCache(config.redis_uri, ttl_seconds=config.context_ttl),
            engine=ConversationClient(
                username=config.conversation_username,
                password=config.conversation_password,
                base_url=config.conversation_api_url,
                version_date=config.conversation_version,
                timeout=config.request_timeout,
            ),
            dispatcher=ActionDispatcher(config.cf_api_base, timeout=config.request_timeout),
        )
        logger.debug("Services initialized")
        return services

    def conversation_turn(self) -> ConversationTurn:
        return ConversationTurn(
            sessions=self.sessions,
            engine=self.engine,
            dispatcher=self.dispatcher,
            allowed_attributes=self.config.persisted_attributes,
            workspace_id=self.config.workspace_id,
            confidence_threshold=self.config.confidence_threshold,
        )

    async def close(self):
        """Close every client, logging (not raising) close failures"""
        for name in ("users_db", "bots_db", "cache", "engine", "dispatcher"):
            try:
                await getattr(self, name).close()
            except Exception as e:
                logger.warning(f"Failed to close {name}: {e}")
