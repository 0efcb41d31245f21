"""Inverted index data structures for the in-memory backend."""

import time
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple


class PostingIndex:
    """Inverted index mapping grams to the set of document IDs containing them."""

    def __init__(self) -> None:
        """Initialize the posting index."""
        self._index: Dict[str, Set[str]] = {}
        self._stats = {
            "total_grams": 0,
            "total_postings": 0,
            "last_updated": None
        }

    def add_postings(self, doc_id: str, grams: Iterable[str]) -> None:
        """
        Add a document to the posting set of every gram.

        Args:
            doc_id: The document identifier
            grams: Grams produced by analyzing the document
        """
        if not doc_id:
            return

        for gram in grams:
            postings = self._index.setdefault(gram, set())
            if doc_id not in postings:
                postings.add(doc_id)
                self._stats["total_postings"] += 1

        self._stats["total_grams"] = len(self._index)
        self._stats["last_updated"] = time.time()

    def remove_postings(self, doc_id: str, grams: Iterable[str]) -> int:
        """
        Remove a document from the posting set of every gram.

        Posting sets left empty are dropped.

        Args:
            doc_id: The document identifier
            grams: Grams the document was indexed under

        Returns:
            Number of postings removed
        """
        removed = 0
        for gram in grams:
            postings = self._index.get(gram)
            if postings is None or doc_id not in postings:
                continue

            postings.discard(doc_id)
            removed += 1
            if not postings:
                del self._index[gram]

        self._stats["total_grams"] = len(self._index)
        self._stats["total_postings"] -= removed
        self._stats["last_updated"] = time.time()

        return removed

    def get_postings(self, gram: str) -> Set[str]:
        """Get a copy of the document IDs posted under a gram."""
        return set(self._index.get(gram, ()))

    def clear(self) -> None:
        """Clear all postings."""
        self._index.clear()
        self._stats = {
            "total_grams": 0,
            "total_postings": 0,
            "last_updated": None
        }

    def get_stats(self) -> Dict[str, Any]:
        """Get index statistics."""
        return self._stats.copy()


class ForwardIndex:
    """Forward index mapping document IDs to the grams they were indexed under."""

    def __init__(self) -> None:
        """Initialize the forward index."""
        self._index: Dict[str, Tuple[List[str], List[str]]] = {}

    def set_grams(self, doc_id: str, ngrams: List[str], edgegrams: List[str]) -> None:
        """Record the grams a document was indexed under."""
        self._index[doc_id] = (list(ngrams), list(edgegrams))

    def pop_grams(self, doc_id: str) -> Optional[Tuple[List[str], List[str]]]:
        """Remove and return the grams of a document."""
        return self._index.pop(doc_id, None)

    def __len__(self) -> int:
        return len(self._index)

    def clear(self) -> None:
        """Clear all entries."""
        self._index.clear()


class IndexManager:
    """Keeps the n-gram index, edge-gram index and forward index consistent."""

    def __init__(self) -> None:
        """Initialize the index manager."""
        self.ngram_index = PostingIndex()
        self.edgegram_index = PostingIndex()
        self.forward_index = ForwardIndex()

    def add_document(self, doc_id: str, ngrams: List[str], edgegrams: List[str]) -> None:
        """
        Post a document under its grams.

        Any postings from a previous indexing of the same ID are retracted
        first, so only the new grams remain reachable.

        Args:
            doc_id: The document identifier
            ngrams: N-grams of the document content
            edgegrams: Edge-grams of the document content
        """
        self.remove_document(doc_id)

        self.ngram_index.add_postings(doc_id, ngrams)
        self.edgegram_index.add_postings(doc_id, edgegrams)
        self.forward_index.set_grams(doc_id, ngrams, edgegrams)

    def remove_document(self, doc_id: str) -> bool:
        """
        Retract every posting of a document.

        Args:
            doc_id: The document identifier

        Returns:
            True if the document was indexed, False otherwise
        """
        grams = self.forward_index.pop_grams(doc_id)
        if grams is None:
            return False

        ngrams, edgegrams = grams
        self.ngram_index.remove_postings(doc_id, ngrams)
        self.edgegram_index.remove_postings(doc_id, edgegrams)

        return True

    def lookup(
        self, ngrams: List[str], edgegrams: List[str]
    ) -> Tuple[List[Set[str]], List[Set[str]]]:
        """
        Look up the posting sets of a batch of grams.

        Returns:
            Posting sets aligned with ``ngrams`` and ``edgegrams``
        """
        return (
            [self.ngram_index.get_postings(gram) for gram in ngrams],
            [self.edgegram_index.get_postings(gram) for gram in edgegrams],
        )

    def clear(self) -> None:
        """Clear all indexes."""
        self.ngram_index.clear()
        self.edgegram_index.clear()
        self.forward_index.clear()

    def get_stats(self) -> Dict[str, Any]:
        """Get combined statistics from all indexes."""
        return {
            "ngram_index": self.ngram_index.get_stats(),
            "edgegram_index": self.edgegram_index.get_stats(),
            "total_documents": len(self.forward_index)
        }
