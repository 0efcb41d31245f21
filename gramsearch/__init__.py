"""
gramsearch - fuzzy and prefix full-text search over gram indexes.

Documents are indexed under character n-grams (typo tolerance) and
edge-grams (prefix matching). Queries are scored by exact word matches,
prefix matches and n-gram overlap, against an in-memory store or a
Redis-compatible key-value store.
"""

__version__ = "1.0.0"

from .core.engine import SearchEngine
from .core.scorer import SearchConfig
from .models.response import SearchResult, SearchResponse

__all__ = [
    "SearchEngine",
    "SearchConfig",
    "SearchResult",
    "SearchResponse",
]
