"""
Session Context Manager - assembles and persists a user's conversation context

A user's context lives in two places:
  - the durable user context record (document store), holding only the
    allow-listed "persisted attributes";
  - the session cache (Redis), holding the full context of the last turn for
    a few minutes.

Before a turn the two are merged with the attributes supplied by the request
into one working context (request > cache > persisted). After the turn the
context is cached in full and its allow-listed subset is written back to the
record.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from clients.action_dispatcher import ACTION_ATTRIBUTE
from clients.context_cache import ContextCache
from clients.document_store_client import DocumentStoreClient
from clients.exceptions import BridgeError, RevisionConflict, StoreUnavailable

logger = logging.getLogger(__name__)

USER_CONTEXT_TYPE = "user-context"
FILTER_BY_ID = "by_id"
DEFAULT_DESIGN_DOC = "users"


@dataclass
class UserContextRecord:
    """Durable per-user record; only allow-listed attributes are persisted"""

    id: str
    revision: Optional[str] = None
    persisted_context: Dict[str, Any] = field(default_factory=dict)
    type: str = USER_CONTEXT_TYPE
    # Lookup keys (e.g. slack_id) and any other fields stored on the document
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "UserContextRecord":
        extra = {
            k: v
            for k, v in doc.items()
            if k not in ("_id", "_rev", "type", "context")
        }
        return cls(
            id=doc["_id"],
            revision=doc.get("_rev"),
            persisted_context=dict(doc.get("context") or {}),
            extra=extra,
        )

    def to_document(self) -> Dict[str, Any]:
        doc = dict(self.extra)
        doc.update({"_id": self.id, "type": self.type, "context": self.persisted_context})
        if self.revision:
            doc["_rev"] = self.revision
        return doc


@dataclass
class CommitResult:
    """What commit_context managed to write"""

    cached: bool
    persisted_context: Dict[str, Any]
    revision: Optional[str]


def lookup_field(filter_kind: str) -> str:
    """Document field backing an external filter, e.g. by_slack_id -> slack_id"""
    if filter_kind.startswith("by_"):
        return filter_kind[len("by_"):]
    return filter_kind


def record_id(filter_kind: str, filter_value: str) -> str:
    """Document id of the record created for a lookup.

    by_id lookups use the value itself; external lookups get
    "<field>:<value>" so concurrent first contacts collide on one id.
    """
    if filter_kind == FILTER_BY_ID:
        return filter_value
    return f"{lookup_field(filter_kind)}:{filter_value}"


class SessionContextManager:
    """Merges and splits session context across the cache and document store."""

    def __init__(
        self,
        documents: DocumentStoreClient,
        cache: ContextCache,
        design_doc: str = DEFAULT_DESIGN_DOC,
    ):
        """
        Args:
            documents: Client for the users database
            cache: Session context cache
            design_doc: Design document holding the by_<field> views
        """
        self.documents = documents
        self.cache = cache
        self.design_doc = design_doc

    async def resolve_identity(self, filter_kind: str, filter_value: str) -> UserContextRecord:
        """
        Find the user context record for a lookup, creating it on first use.

        Args:
            filter_kind: "by_id" for a document id, or the name of a view
                such as "by_slack_id"
            filter_value: Value looked up

        Returns:
            The existing or newly created record

        Raises:
            StoreUnavailable: If the store cannot be read or the record created
        """
        filter_kind = filter_kind or FILTER_BY_ID
        logger.info(f"Getting user document from Cloudant ({filter_kind}, {filter_value})")

        if filter_kind == FILTER_BY_ID:
            doc = await self.documents.get_document(filter_value)
        else:
            doc = await self.documents.find_one(self.design_doc, filter_kind, filter_value)

        if doc:
            return UserContextRecord.from_document(doc)

        new_doc: Dict[str, Any] = {
            "_id": record_id(filter_kind, filter_value),
            "type": USER_CONTEXT_TYPE,
            "context": {},
        }
        if filter_kind != FILTER_BY_ID:
            new_doc[lookup_field(filter_kind)] = filter_value

        try:
            result = await self.documents.insert(new_doc)
        except RevisionConflict:
            # Created by a concurrent turn since the lookup above
            logger.info(f"User context document {new_doc['_id']} already exists, reloading")
            doc = await self.documents.get_document(new_doc["_id"])
            if not doc:
                raise StoreUnavailable(f"Document {new_doc['_id']} conflicts but cannot be read")
            return UserContextRecord.from_document(doc)
        except BridgeError as e:
            raise StoreUnavailable(f"Error creating document: {e}") from e

        logger.info(f"Created user context document {result['id']}")
        new_doc["_id"] = result["id"]
        new_doc["_rev"] = result.get("rev")
        return UserContextRecord.from_document(new_doc)

    async def assemble_context(
        self,
        record: UserContextRecord,
        allowed_attributes: Iterable[str],
        request_attributes: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """
        Build the working context for a turn.

        The cached context of the previous turn is the base; persisted
        attributes only fill keys the cache does not have; request attributes
        always overwrite.

        Raises:
            ContextUnavailable: If the cache cannot be reached
        """
        logger.info(f"Getting context from Redis ({record.id})")
        cached = await self.cache.get(record.id)
        context: Dict[str, Any] = dict(cached) if cached else {}

        for attr in allowed_attributes:
            if attr in record.persisted_context and attr not in context:
                context[attr] = record.persisted_context[attr]
                logger.debug(f"Persisted attribute {attr}: {context[attr]}")

        for attr, value in (request_attributes or {}).items():
            context[attr] = value
            logger.debug(f"Request attribute {attr}: {value}")

        return context

    async def commit_context(
        self,
        identity: str,
        record: UserContextRecord,
        allowed_attributes: Iterable[str],
        working_context: Dict[str, Any],
    ) -> CommitResult:
        """
        Cache the full context and persist its allow-listed subset.

        A failed cache write is logged and reported in the result; the next
        turn rebuilds from the durable record.

        Raises:
            RevisionConflict: If the record changed since it was resolved
            StoreUnavailable: If the record cannot be written
        """
        working_context.pop(ACTION_ATTRIBUTE, None)

        cached = True
        logger.info(f"Setting context to Redis ({identity})")
        try:
            await self.cache.set(identity, working_context)
        except BridgeError as e:
            cached = False
            logger.warning(f"Failed to cache context for {identity}: {e}")

        persisted = {
            attr: working_context[attr]
            for attr in allowed_attributes
            if attr in working_context
        }

        logger.info(f"Saving new context to Cloudant ({record.id})")
        record.persisted_context = persisted
        result = await self.documents.insert(record.to_document())
        record.revision = result.get("rev", record.revision)
        logger.info("Context persisted into Cloudant DB.")

        return CommitResult(
            cached=cached, persisted_context=dict(persisted), revision=record.revision
        )
