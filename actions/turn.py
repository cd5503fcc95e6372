"""
Conversation turn - one utterance taken through the engine with session context.

    IDENTITY_UNRESOLVED -> CONTEXT_ASSEMBLED -> ENGINE_INVOKED
        -> RESPONSE_INTERPRETED -> COMMITTED

Any failing step moves the turn to FAILED and skips the remaining steps; the
state keeps the last known context so callers can still answer with it.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from clients.action_dispatcher import ACTION_ATTRIBUTE, ActionDispatcher
from clients.conversation_client import ConversationClient, EngineResponse
from clients.session_context_manager import SessionContextManager, UserContextRecord

logger = logging.getLogger(__name__)

LOW_CONFIDENCE_MESSAGE = "I'm sorry, I didn't understand. Could you rephrase that?"
ERROR_MESSAGE = "Sorry, something went wrong on my side. Please try again in a moment."
WORKSPACE_ATTRIBUTE = "WORKSPACE_ID"


class TurnStage(Enum):
    IDENTITY_UNRESOLVED = "identity_unresolved"
    CONTEXT_ASSEMBLED = "context_assembled"
    ENGINE_INVOKED = "engine_invoked"
    RESPONSE_INTERPRETED = "response_interpreted"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass
class TurnState:
    """Everything one turn knows; never shared between turns"""

    filter_kind: str
    filter_value: str
    text: str
    request_attributes: Dict[str, Any] = field(default_factory=dict)
    stage: TurnStage = TurnStage.IDENTITY_UNRESOLVED
    record: Optional[UserContextRecord] = None
    context: Dict[str, Any] = field(default_factory=dict)
    replies: List[str] = field(default_factory=list)
    intent: Optional[str] = None
    confidence: Optional[float] = None
    failed_stage: Optional[TurnStage] = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.stage == TurnStage.COMMITTED

    @property
    def failure_reason(self) -> Optional[str]:
        return str(self.error) if self.error else None

    def fail(self, error: Exception):
        self.failed_stage = self.stage
        self.stage = TurnStage.FAILED
        self.error = error


class ConversationTurn:
    """Runs turns against one engine with one persisted-attribute allow-list"""

    def __init__(
        self,
        sessions: SessionContextManager,
        engine: ConversationClient,
        dispatcher: ActionDispatcher,
        allowed_attributes: List[str],
        workspace_id: str = "",
        confidence_threshold: float = 0.5,
    ):
        self.sessions = sessions
        self.engine = engine
        self.dispatcher = dispatcher
        self.allowed_attributes = list(allowed_attributes)
        self.workspace_id = workspace_id
        self.confidence_threshold = confidence_threshold

    async def run(
        self,
        filter_kind: str,
        filter_value: str,
        text: str,
        request_attributes: Optional[Dict[str, Any]] = None,
    ) -> TurnState:
        """
        Take one utterance through identity, context, engine and commit.

        Returns:
            The final TurnState; check `succeeded` or `stage`
        """
        state = TurnState(
            filter_kind=filter_kind,
            filter_value=filter_value,
            text=text,
            request_attributes=dict(request_attributes or {}),
        )
        state.context = dict(state.request_attributes)

        try:
            state.record = await self.sessions.resolve_identity(filter_kind, filter_value)

            state.context = await self.sessions.assemble_context(
                state.record, self.allowed_attributes, state.request_attributes
            )
            state.stage = TurnStage.CONTEXT_ASSEMBLED

            workspace_id = state.context.get(WORKSPACE_ATTRIBUTE) or self.workspace_id
            response = await self.engine.message(workspace_id, state.context, text)
            state.stage = TurnStage.ENGINE_INVOKED

            await self._interpret(state, response)
            state.stage = TurnStage.RESPONSE_INTERPRETED

            await self.sessions.commit_context(
                state.record.id, state.record, self.allowed_attributes, state.context
            )
            state.stage = TurnStage.COMMITTED

        except Exception as e:
            state.fail(e)
            logger.error(
                f"Turn for {filter_kind}={filter_value} failed at "
                f"{state.failed_stage.value}: {e}",
                exc_info=True,
            )

        return state

    async def _interpret(self, state: TurnState, response: EngineResponse):
        """Adopt the engine's context, pick the reply and run the directive"""
        state.intent = response.intent
        state.confidence = response.confidence
        state.replies = list(response.text)

        if response.context is not None:
            state.context = dict(response.context)

        if self.is_low_confidence(response.confidence):
            logger.info(
                f"Low confidence ({response.confidence}) for intent {response.intent}, "
                f"replying with clarification"
            )
            state.replies = [LOW_CONFIDENCE_MESSAGE]

        if state.context.get(ACTION_ATTRIBUTE):
            await self.dispatcher.dispatch(state.context)
        state.context.pop(ACTION_ATTRIBUTE, None)

    def is_low_confidence(self, confidence: Optional[float]) -> bool:
        return confidence is not None and confidence < self.confidence_threshold
