"""Core search engine functionality."""

from .engine import SearchEngine, StoredDocument
from .exceptions import BackendUnavailableError, GramSearchError, SearchTimeoutError
from .index import ForwardIndex, IndexManager, PostingIndex
from .scorer import RelevanceScorer, SearchConfig
from .text_processing import (
    build_edgegrams,
    build_ngrams,
    generate_highlights,
    normalize_text,
    tokenize_query,
)

__all__ = [
    "SearchEngine",
    "StoredDocument",
    "SearchConfig",
    "RelevanceScorer",
    "PostingIndex",
    "ForwardIndex",
    "IndexManager",
    "GramSearchError",
    "BackendUnavailableError",
    "SearchTimeoutError",
    "build_ngrams",
    "build_edgegrams",
    "generate_highlights",
    "normalize_text",
    "tokenize_query",
]
