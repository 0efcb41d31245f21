"""Document indexing API endpoints."""

from fastapi import APIRouter, Path
from fastapi.responses import JSONResponse

from ..models.request import BatchIndexRequest, IndexDocumentRequest

router = APIRouter(prefix="/api/v1", tags=["documents"])

# Import the global search backend instance
from ..backend_instance import search_backend


@router.post(
    "/documents",
    status_code=201,
    summary="Index a document",
    description="Insert a document or replace the document with the same id"
)
async def index_document(request: IndexDocumentRequest) -> JSONResponse:
    """
    Index a single document.

    Re-indexing an existing id replaces its content, metadata and postings.
    """
    await search_backend.index_document(request.id, request.content, request.metadata)

    return JSONResponse(
        status_code=201,
        content={"message": "Document indexed", "id": request.id}
    )


@router.post(
    "/documents/batch",
    status_code=201,
    summary="Index several documents",
    description="Index a list of documents in order"
)
async def index_documents(request: BatchIndexRequest) -> JSONResponse:
    """Index a batch of documents."""
    count = await search_backend.index_documents(request.documents)

    return JSONResponse(
        status_code=201,
        content={"message": "Documents indexed", "total_documents": count}
    )


@router.delete(
    "/documents/{doc_id}",
    summary="Remove a document",
    description="Remove a document and its postings; unknown ids are ignored"
)
async def remove_document(
    doc_id: str = Path(..., description="The document id to remove")
) -> JSONResponse:
    """Remove a document from the index."""
    await search_backend.remove_document(doc_id)

    return JSONResponse(
        status_code=200,
        content={"message": f"Document '{doc_id}' removed", "id": doc_id}
    )


@router.post(
    "/maintenance/cleanup",
    tags=["maintenance"],
    summary="Run backend cleanup",
    description="Drop expired sessions and dangling index entries"
)
async def run_cleanup() -> JSONResponse:
    """Run the backend's garbage collection pass."""
    await search_backend.cleanup()

    return JSONResponse(status_code=200, content={"message": "Cleanup completed"})
