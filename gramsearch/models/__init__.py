"""Data models for gramsearch."""

from .request import SearchQuery, IndexDocumentRequest, BatchIndexRequest
from .response import (
    SearchResult,
    SearchResponse,
    ErrorResponse,
    HealthResponse,
    MetricsResponse,
)
from .session import SessionMetadata

__all__ = [
    "SearchQuery",
    "IndexDocumentRequest",
    "BatchIndexRequest",
    "SearchResult",
    "SearchResponse",
    "ErrorResponse",
    "HealthResponse",
    "MetricsResponse",
    "SessionMetadata",
]
