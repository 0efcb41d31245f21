"""Storage backend contract shared by the in-memory and key-value-store backends."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from ..core.engine import SearchEngine, StoredDocument
from ..models.request import IndexDocumentRequest, SearchQuery
from ..models.response import SearchResponse
from ..models.session import SessionMetadata


class SearchBackend(ABC):
    """
    Capability interface for a search index store.

    Implementations own their documents, sessions and gram postings. Search
    logic lives in the injected ``SearchEngine``; a backend only serves
    posting lookups and document fetches to it.
    """

    name = "abstract"

    def __init__(self, engine: SearchEngine, search_timeout: Optional[float] = None) -> None:
        self.engine = engine
        self.search_timeout = search_timeout

    # Documents

    @abstractmethod
    async def index_document(
        self, doc_id: str, content: str, metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Insert or replace a document and its postings."""

    @abstractmethod
    async def remove_document(self, doc_id: str) -> None:
        """Remove a document and retract its postings; unknown IDs are ignored."""

    async def index_documents(self, documents: Iterable[IndexDocumentRequest]) -> int:
        """
        Index a batch of documents in order.

        Returns:
            Number of documents indexed
        """
        count = 0
        for document in documents:
            await self.index_document(document.id, document.content, document.metadata)
            count += 1
        return count

    async def search(self, query: SearchQuery) -> SearchResponse:
        """Run a query through the search engine against this backend."""
        return await self.engine.search(query, self, timeout=self.search_timeout)

    # Engine hooks

    @abstractmethod
    async def lookup_postings(
        self, ngrams: List[str], edgegrams: List[str]
    ) -> Tuple[List[Set[str]], List[Set[str]]]:
        """Fetch the posting sets of a batch of grams in one operation."""

    @abstractmethod
    async def fetch_documents(self, doc_ids: List[str]) -> Dict[str, StoredDocument]:
        """Fetch stored documents; IDs without a record are left out."""

    async def record_hits(self, doc_ids: List[str]) -> None:
        """Note that documents were returned by a search."""
        return None

    # Sessions

    @abstractmethod
    async def set_session(self, session: SessionMetadata) -> None:
        """Store a session record."""

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[SessionMetadata]:
        """Get a session record or None if it does not exist."""

    @abstractmethod
    async def delete_session(self, session_id: str) -> None:
        """Delete a session record."""

    @abstractmethod
    async def get_all_sessions(self) -> List[SessionMetadata]:
        """Get every live session record."""

    @abstractmethod
    async def update_last_seen(self, session_id: str) -> None:
        """Refresh the activity timestamp of a session."""

    # Maintenance

    @abstractmethod
    async def cleanup(self) -> None:
        """Drop expired or dangling entries."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Release backend resources."""

    async def ping(self) -> None:
        """Check that the backing store answers; raises if it does not."""
        return None

    async def get_stats(self) -> Dict[str, Any]:
        """Get backend and engine statistics."""
        return {"backend": self.name, "engine": self.engine.get_stats()}
