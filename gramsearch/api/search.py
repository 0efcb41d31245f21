"""Search API endpoints."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Path, Query

from ..config import get_settings
from ..models.request import SearchQuery
from ..models.response import SearchResponse

router = APIRouter(prefix="/api/v1", tags=["search"])
settings = get_settings()

# Import the global search backend instance
from ..backend_instance import search_backend


def _check_query(query: str, limit: int) -> None:
    if len(query) > settings.max_query_length:
        raise HTTPException(
            status_code=400,
            detail=f"Query too long. Maximum length is {settings.max_query_length} characters"
        )
    if limit > settings.max_limit:
        raise HTTPException(
            status_code=400,
            detail=f"Limit too large. Maximum is {settings.max_limit}"
        )


@router.get(
    "/search/{query}",
    response_model=SearchResponse,
    summary="Search documents",
    description="Fuzzy and prefix search over indexed documents"
)
async def search_documents(
    query: str = Path(..., description="Free-text query"),
    limit: Optional[int] = Query(None, ge=1, description="Maximum number of results to return"),
    offset: int = Query(0, ge=0, description="Number of ranked results to skip")
) -> SearchResponse:
    """
    Search indexed documents.

    Combines exact word matches, prefix (edge-gram) matches and trigram
    overlap into one relevance score per document.
    """
    limit = limit or settings.default_limit
    _check_query(query, limit)

    return await search_backend.search(SearchQuery(query=query, limit=limit, offset=offset))


@router.post(
    "/search",
    response_model=SearchResponse,
    summary="Search with request body",
    description="Search with pagination and metadata filters in a JSON body"
)
async def search_with_body(request: SearchQuery) -> SearchResponse:
    """
    Search indexed documents using a structured request body.

    Filters restrict results to documents whose metadata fields equal the
    given values.
    """
    _check_query(request.query, request.limit)

    return await search_backend.search(request)
