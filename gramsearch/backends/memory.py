"""In-memory backend for development, tests and single-process deployments."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

import structlog

from ..core.engine import SearchEngine, StoredDocument
from ..core.index import IndexManager
from ..models.session import SessionMetadata
from .base import SearchBackend

logger = structlog.get_logger(__name__)


def _as_naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


class MemoryBackend(SearchBackend):
    """
    Map-based backend with a least-recently-used document cap.

    Data Model:
    - documents: id -> StoredDocument
    - index_manager: n-gram and edge-gram postings plus per-document grams
    - access_ticks: id -> last access tick (bumped on index and search hit)

    Not shared between processes; every instance owns its own state.
    """

    name = "memory"

    def __init__(
        self,
        engine: Optional[SearchEngine] = None,
        max_documents: int = 10000,
        session_cleanup_hours: float = 24,
        search_timeout: Optional[float] = None,
    ) -> None:
        """
        Initialize the in-memory backend.

        Args:
            engine: Search engine to run queries with
            max_documents: Document count above which LRU eviction starts
            session_cleanup_hours: Idle age after which cleanup drops a session
            search_timeout: Optional overall search budget in seconds
        """
        super().__init__(engine or SearchEngine(), search_timeout=search_timeout)
        if max_documents < 1:
            raise ValueError("max_documents must be at least 1")

        self.max_documents = max_documents
        self.session_cleanup_hours = session_cleanup_hours

        self._sessions: Dict[str, SessionMetadata] = {}
        self._documents: Dict[str, StoredDocument] = {}
        self._access_ticks: Dict[str, int] = {}
        self._access_counter = 0
        self.index_manager = IndexManager()

        self.stats = {
            "documents_indexed": 0,
            "documents_removed": 0,
            "documents_evicted": 0,
        }

    # Sessions

    async def set_session(self, session: SessionMetadata) -> None:
        self._sessions[session.id] = session.model_copy(deep=True)

    async def get_session(self, session_id: str) -> Optional[SessionMetadata]:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def delete_session(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    async def get_all_sessions(self) -> List[SessionMetadata]:
        return [session.model_copy(deep=True) for session in self._sessions.values()]

    async def update_last_seen(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session:
            session.last_seen_at = datetime.utcnow()

    # Documents

    async def index_document(
        self, doc_id: str, content: str, metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Index a document, evicting least-recently-used documents at capacity.

        Args:
            doc_id: Unique document identifier
            content: Searchable text
            metadata: Optional metadata merged into search results
        """
        # Retract postings of a previous version first
        self.index_manager.remove_document(doc_id)

        if doc_id not in self._documents:
            while len(self._documents) >= self.max_documents:
                lru_id = self._find_lru_document()
                if lru_id is None:
                    break
                self._drop_document(lru_id)
                self.stats["documents_evicted"] += 1
                logger.debug("Evicted least recently used document", doc_id=lru_id)

        self._documents[doc_id] = StoredDocument(
            content=content, metadata=dict(metadata) if metadata else None
        )
        self._touch(doc_id)

        ngrams, edgegrams = self.engine.analyze(content)
        self.index_manager.add_document(doc_id, ngrams, edgegrams)

        self.stats["documents_indexed"] += 1

    async def remove_document(self, doc_id: str) -> None:
        if self._drop_document(doc_id):
            self.stats["documents_removed"] += 1

    def _drop_document(self, doc_id: str) -> bool:
        """Delete a document with all of its postings and LRU state."""
        existed = self._documents.pop(doc_id, None) is not None
        self._access_ticks.pop(doc_id, None)
        retracted = self.index_manager.remove_document(doc_id)
        return existed or retracted

    def _touch(self, doc_id: str) -> None:
        self._access_counter += 1
        self._access_ticks[doc_id] = self._access_counter

    def _find_lru_document(self) -> Optional[str]:
        """Find the document with the oldest access tick."""
        if not self._access_ticks:
            return None
        return min(self._access_ticks.items(), key=lambda item: item[1])[0]

    def has_document(self, doc_id: str) -> bool:
        """Check whether a document is stored."""
        return doc_id in self._documents

    def document_count(self) -> int:
        """Number of stored documents."""
        return len(self._documents)

    # Engine hooks

    async def lookup_postings(
        self, ngrams: List[str], edgegrams: List[str]
    ) -> Tuple[List[Set[str]], List[Set[str]]]:
        return self.index_manager.lookup(ngrams, edgegrams)

    async def fetch_documents(self, doc_ids: List[str]) -> Dict[str, StoredDocument]:
        return {
            doc_id: self._documents[doc_id]
            for doc_id in doc_ids
            if doc_id in self._documents
        }

    async def record_hits(self, doc_ids: List[str]) -> None:
        for doc_id in doc_ids:
            if doc_id in self._documents:
                self._touch(doc_id)

    # Maintenance

    async def cleanup(self) -> None:
        """Remove sessions idle for longer than the configured interval."""
        cutoff = datetime.utcnow() - timedelta(hours=self.session_cleanup_hours)

        expired = [
            session_id
            for session_id, session in self._sessions.items()
            if _as_naive_utc(session.last_seen_at) < cutoff
        ]
        for session_id in expired:
            del self._sessions[session_id]

        if expired:
            logger.info("Cleaned up idle sessions", count=len(expired))

    async def disconnect(self) -> None:
        """Clear all data."""
        self._sessions.clear()
        self._documents.clear()
        self._access_ticks.clear()
        self._access_counter = 0
        self.index_manager.clear()

    async def get_stats(self) -> Dict[str, Any]:
        stats = await super().get_stats()
        stats.update({
            **self.stats,
            "documents": len(self._documents),
            "max_documents": self.max_documents,
            "sessions": len(self._sessions),
            "index_stats": self.index_manager.get_stats(),
        })
        return stats
