"""Exceptions raised by the search engine and its storage backends."""


class GramSearchError(Exception):
    """Base class for all gramsearch errors."""
    pass


class BackendUnavailableError(GramSearchError):
    """Raised when the storage backend cannot serve a request."""

    def __init__(self, message: str, operation: str = "unknown") -> None:
        super().__init__(message)
        self.operation = operation


class SearchTimeoutError(BackendUnavailableError):
    """Raised when a search does not complete within its time budget."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Search did not complete within {timeout:g}s", operation="search")
        self.timeout = timeout
