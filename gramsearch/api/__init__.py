"""API endpoints for gramsearch."""

from .search import router as search_router
from .documents import router as documents_router
from .health import router as health_router

__all__ = [
    "search_router",
    "documents_router",
    "health_router",
]
