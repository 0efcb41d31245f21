"""Search engine shared by every storage backend."""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Set, Tuple

import structlog

from ..models.request import SearchQuery
from ..models.response import SearchResponse, SearchResult
from .exceptions import SearchTimeoutError
from .scorer import RelevanceScorer, SearchConfig
from .text_processing import (
    build_edgegrams,
    build_ngrams,
    generate_highlights,
    tokenize_query,
)

logger = structlog.get_logger(__name__)


@dataclass
class StoredDocument:
    """A document as read back from a backend."""

    content: str
    metadata: Optional[Dict[str, Any]] = None

    def as_data(self) -> Dict[str, Any]:
        """Merge content and metadata into the result payload."""
        return {"content": self.content, **(self.metadata or {})}


class PostingSource(Protocol):
    """Read-side operations a backend exposes to the search engine."""

    async def lookup_postings(
        self, ngrams: List[str], edgegrams: List[str]
    ) -> Tuple[List[Set[str]], List[Set[str]]]:
        ...

    async def fetch_documents(self, doc_ids: List[str]) -> Dict[str, StoredDocument]:
        ...

    async def record_hits(self, doc_ids: List[str]) -> None:
        ...


class SearchEngine:
    """Gram-based search: candidate lookup, scoring, ranking and pagination."""

    def __init__(self, config: Optional[SearchConfig] = None) -> None:
        """
        Initialize the search engine.

        Args:
            config: Gram and scoring parameters (defaults when omitted)
        """
        self.config = config or SearchConfig()
        self.scorer = RelevanceScorer(self.config)

        self._stats = {
            "total_queries": 0,
            "empty_queries": 0,
            "matched_queries": 0,
            "no_match_queries": 0,
            "stale_candidates": 0,
            "total_execution_time": 0.0
        }

    def analyze(self, content: str) -> Tuple[List[str], List[str]]:
        """
        Generate the grams a piece of text is indexed under.

        Returns:
            Tuple of (ngrams, edgegrams)
        """
        ngrams = build_ngrams(content, self.config.ngram_size)
        edgegrams = build_edgegrams(
            content, self.config.min_edgegram, self.config.max_edgegram
        )
        return ngrams, edgegrams

    def normalize_query(self, query: str) -> List[str]:
        """Split a raw query into lowercase search terms."""
        return tokenize_query(query)

    async def search(
        self,
        query: SearchQuery,
        source: PostingSource,
        timeout: Optional[float] = None,
    ) -> SearchResponse:
        """
        Run a query against a backend.

        Args:
            query: The search request
            source: Backend serving posting lookups and document fetches
            timeout: Overall time budget in seconds (None disables it)

        Returns:
            SearchResponse with the requested page of ranked results

        Raises:
            SearchTimeoutError: If the budget expires before completion
        """
        if timeout is None:
            return await self._search(query, source)

        try:
            return await asyncio.wait_for(self._search(query, source), timeout)
        except asyncio.TimeoutError:
            logger.warning("Search timed out", query=query.query, timeout=timeout)
            raise SearchTimeoutError(timeout)

    async def _search(self, query: SearchQuery, source: PostingSource) -> SearchResponse:
        start_time = time.time()
        self._stats["total_queries"] += 1

        search_terms = self.normalize_query(query.query)
        if not search_terms:
            self._stats["empty_queries"] += 1
            return self.empty_response(query.query, start_time)

        ngram_matches, edgegram_matches = await self._collect_matches(search_terms, source)

        candidates = sorted(set(ngram_matches) | set(edgegram_matches))
        if not candidates:
            self._stats["no_match_queries"] += 1
            return self.empty_response(query.query, start_time)

        documents = await source.fetch_documents(candidates)

        scored: List[Tuple[str, float, StoredDocument]] = []
        for doc_id in candidates:
            document = documents.get(doc_id)
            if document is None:
                # Posting outlived its document
                self._stats["stale_candidates"] += 1
                continue

            if query.filters and not self._matches_filters(document, query.filters):
                continue

            score = self.scorer.score(
                document.content,
                search_terms,
                ngram_matches.get(doc_id, 0.0),
                edgegram_matches.get(doc_id, 0.0),
            )
            if score < self.config.min_score:
                continue

            scored.append((doc_id, score, document))

        if scored:
            await source.record_hits([doc_id for doc_id, _, _ in scored])
            self._stats["matched_queries"] += 1
        else:
            self._stats["no_match_queries"] += 1

        return self._build_response(query, search_terms, scored, start_time)

    async def _collect_matches(
        self, search_terms: List[str], source: PostingSource
    ) -> Tuple[Dict[str, float], Dict[str, float]]:
        """
        Accumulate n-gram and edge-gram match signals per document.

        Each query term costs exactly one ``lookup_postings`` call.
        """
        ngram_matches: Dict[str, float] = {}
        edgegram_matches: Dict[str, float] = {}

        for term in search_terms:
            ngrams, edgegrams = self.analyze(term)
            if not ngrams and not edgegrams:
                continue

            ngram_postings, edgegram_postings = await source.lookup_postings(ngrams, edgegrams)

            for postings in ngram_postings:
                for doc_id in postings:
                    ngram_matches[doc_id] = ngram_matches.get(doc_id, 0.0) + 1.0

            for gram, postings in zip(edgegrams, edgegram_postings):
                strength = self.scorer.edgegram_strength(gram)
                for doc_id in postings:
                    edgegram_matches[doc_id] = edgegram_matches.get(doc_id, 0.0) + strength

        return ngram_matches, edgegram_matches

    @staticmethod
    def _matches_filters(document: StoredDocument, filters: Mapping[str, Any]) -> bool:
        metadata = document.metadata or {}
        return all(
            key in metadata and metadata[key] == value
            for key, value in filters.items()
        )

    def _build_response(
        self,
        query: SearchQuery,
        search_terms: List[str],
        scored: Iterable[Tuple[str, float, StoredDocument]],
        start_time: float,
    ) -> SearchResponse:
        """Sort, paginate and highlight scored candidates."""
        ranked = sorted(scored, key=lambda item: (-item[1], item[0]))

        total = len(ranked)
        offset = query.offset
        limit = query.limit
        page = ranked[offset:offset + limit]

        results = [
            SearchResult(
                id=doc_id,
                score=score,
                data=document.as_data(),
                highlights=generate_highlights(document.content, search_terms),
            )
            for doc_id, score, document in page
        ]

        execution_time = (time.time() - start_time) * 1000
        self._stats["total_execution_time"] += execution_time

        return SearchResponse(
            query=query.query,
            results=results,
            total=total,
            took=execution_time,
            has_more=offset + limit < total,
        )

    def empty_response(self, query: str, start_time: float) -> SearchResponse:
        """Create an empty response for queries that match nothing."""
        execution_time = (time.time() - start_time) * 1000
        self._stats["total_execution_time"] += execution_time

        return SearchResponse(
            query=query or "",
            results=[],
            total=0,
            took=execution_time,
            has_more=False,
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get engine statistics."""
        stats = self._stats.copy()

        if stats["total_queries"] > 0:
            stats["average_execution_time_ms"] = (
                stats["total_execution_time"] / stats["total_queries"]
            )
            stats["match_rate"] = stats["matched_queries"] / stats["total_queries"]
            stats["no_match_rate"] = stats["no_match_queries"] / stats["total_queries"]
        else:
            stats["average_execution_time_ms"] = 0.0
            stats["match_rate"] = 0.0
            stats["no_match_rate"] = 0.0

        return stats

    def reset_stats(self) -> None:
        """Reset query statistics."""
        self._stats = {
            "total_queries": 0,
            "empty_queries": 0,
            "matched_queries": 0,
            "no_match_queries": 0,
            "stale_candidates": 0,
            "total_execution_time": 0.0
        }
