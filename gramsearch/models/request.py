"""Request models for the search engine and its API endpoints."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class SearchQuery(BaseModel):
    """A search request against the gram index."""

    query: str = Field(..., description="Free-text search query")
    limit: int = Field(default=10, gt=0, description="Maximum number of results to return")
    offset: int = Field(default=0, ge=0, description="Number of ranked results to skip")
    filters: Optional[Dict[str, Any]] = Field(
        None, description="Metadata fields a result must match exactly"
    )


class IndexDocumentRequest(BaseModel):
    """Request model for indexing a single document."""

    id: str = Field(..., min_length=1, description="Unique document identifier")
    content: str = Field(..., description="Searchable document text")
    metadata: Optional[Dict[str, Any]] = Field(None, description="Arbitrary document metadata")

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate and normalize the document identifier."""
        if not v or not v.strip():
            raise ValueError("Document id cannot be empty")
        return v.strip()


class BatchIndexRequest(BaseModel):
    """Request model for indexing several documents at once."""

    documents: List[IndexDocumentRequest] = Field(
        ..., min_length=1, max_length=1000, description="Documents to index"
    )
