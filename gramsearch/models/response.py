"""Response models for the search engine and its API endpoints."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SearchResult(BaseModel):
    """Individual search result."""

    id: str = Field(..., description="Document identifier")
    score: float = Field(..., ge=0.0, description="Relevance score")
    data: Dict[str, Any] = Field(..., description="Document content merged with its metadata")
    highlights: List[str] = Field(default_factory=list, description="Highlighted snippets")


class SearchResponse(BaseModel):
    """Response for search queries."""

    query: str = Field(..., description="Original search query")
    results: List[SearchResult] = Field(..., description="Page of results, best first")
    total: int = Field(..., description="Number of results before pagination")
    took: float = Field(..., description="Elapsed time in milliseconds")
    has_more: bool = Field(..., description="Whether results exist past this page")


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Error timestamp")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Application version")
    backend: str = Field(..., description="Storage backend in use")
    uptime: float = Field(..., description="Service uptime in seconds")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Check timestamp")
    dependencies: Dict[str, str] = Field(..., description="Dependency status")


class MetricsResponse(BaseModel):
    """Performance metrics response."""

    total_queries: int = Field(..., description="Total queries processed")
    average_response_time_ms: float = Field(..., description="Average response time")
    match_rate: float = Field(..., description="Share of queries returning results")
    stale_candidates: int = Field(..., description="Candidates dropped because their document was gone")
    memory_usage_mb: float = Field(..., description="Resident memory of the service in MB")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Metrics timestamp")
