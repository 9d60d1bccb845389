"""
Search index event handlers.

Maps each product topic to the index operation it triggers. All handlers are
idempotent: upserts overwrite by id and removing an absent id is a no-op.
"""
from typing import Any, Awaitable, Callable, Optional, Protocol

from internal.domain.errors import DomainValidationError
from internal.domain.events import DEFAULT_TOPIC_PREFIX, EventType
from internal.domain.search import SearchDocument, SearchResult, extract_document_id
from pkg.logger.logger import get_logger


logger = get_logger(__name__)


EventHandler = Callable[[dict], Awaitable[None]]


class SearchIndex(Protocol):
    """Protocol for the search index store."""

    async def ensure_index(self) -> None:
        """Create the index if it does not exist."""
        ...

    async def ping(self) -> bool:
        """Return True if the index store is reachable."""
        ...

    async def count(self) -> int:
        """Number of indexed documents."""
        ...

    async def upsert(self, document: SearchDocument) -> None:
        """Insert or overwrite a document."""
        ...

    async def delete(self, document_id: str) -> bool:
        """Remove a document if present."""
        ...

    async def delete_all(self) -> int:
        """Remove every document."""
        ...

    async def get(self, document_id: str) -> Optional[SearchDocument]:
        """Get a document by id."""
        ...

    async def search(
        self,
        query: str,
        status: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> SearchResult:
        """Full-text search."""
        ...


def unwrap_snapshot(payload: dict[str, Any]) -> dict[str, Any]:
    """Return the product snapshot of an event, unwrapping ``new_data``."""
    nested = payload.get("new_data")
    if isinstance(nested, dict):
        return nested
    return payload


class IndexEventHandler:
    """
    Applies product events to the search index.

    Processes created, updated and approved events as upserts and deleted
    events as removals.
    """

    def __init__(self, index: SearchIndex) -> None:
        """
        Initialize the handler.

        Args:
            index: Search index store.
        """
        self._index = index

    async def upsert(self, payload: dict[str, Any]) -> None:
        """
        Index the product carried by an event.

        Args:
            payload: Decoded event payload.

        Raises:
            DomainValidationError: If the payload has no product id.
        """
        document = SearchDocument.from_snapshot(unwrap_snapshot(payload))
        await self._index.upsert(document)
        logger.info(
            "Search document upserted",
            document_id=document.id,
            gtin=document.gtin,
            action=payload.get("action"),
        )

    async def remove(self, payload: dict[str, Any]) -> None:
        """
        Remove the product carried by a deletion event.

        Args:
            payload: Decoded event payload.

        Raises:
            DomainValidationError: If the payload has no product id.
        """
        document_id = extract_document_id(unwrap_snapshot(payload))
        if document_id is None:
            raise DomainValidationError("Deletion event has no product id")

        removed = await self._index.delete(document_id)
        if removed:
            logger.info("Search document removed", document_id=document_id)
        else:
            logger.debug("Search document already absent", document_id=document_id)


def build_dispatch_table(
    handler: IndexEventHandler,
    prefix: str = DEFAULT_TOPIC_PREFIX,
) -> dict[str, EventHandler]:
    """
    Build the topic to handler table for the search index worker.

    Args:
        handler: Index event handler.
        prefix: Topic prefix.

    Returns:
        Mapping of topic name to handler coroutine function.
    """
    return {
        EventType.CREATED.topic(prefix): handler.upsert,
        EventType.UPDATED.topic(prefix): handler.upsert,
        EventType.APPROVED.topic(prefix): handler.upsert,
        EventType.DELETED.topic(prefix): handler.remove,
    }
