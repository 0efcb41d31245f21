"""Global search backend instance to avoid circular imports."""

from .backends.factory import create_backend
from .config import get_settings

# Global search backend instance
settings = get_settings()
search_backend = create_backend(settings)
