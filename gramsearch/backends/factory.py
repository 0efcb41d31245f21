"""Factory functions for building search backends."""

import os
from typing import Optional

from ..config import Settings, get_settings
from ..core.engine import SearchEngine
from ..core.scorer import SearchConfig
from .base import SearchBackend
from .clients import RedisStore, UpstashStore
from .memory import MemoryBackend
from .redis_backend import (
    DEFAULT_DOCUMENT_TTL,
    DEFAULT_INDEX_TTL,
    DEFAULT_KEY_PREFIX,
    DEFAULT_SEARCH_TIMEOUT,
    DEFAULT_SESSION_TTL,
    RedisBackend,
)

BACKEND_CHOICES = ("memory", "redis", "upstash")


def create_memory_backend(
    search_config: Optional[SearchConfig] = None,
    max_documents: int = 10000,
    session_cleanup_hours: float = 24,
) -> MemoryBackend:
    """Create an in-memory backend."""
    return MemoryBackend(
        engine=SearchEngine(search_config),
        max_documents=max_documents,
        session_cleanup_hours=session_cleanup_hours,
    )


def create_redis_backend(
    url: str = "redis://localhost:6379/0",
    password: Optional[str] = None,
    db: Optional[int] = None,
    max_connections: Optional[int] = None,
    key_prefix: str = DEFAULT_KEY_PREFIX,
    search_config: Optional[SearchConfig] = None,
    session_ttl: int = DEFAULT_SESSION_TTL,
    document_ttl: int = DEFAULT_DOCUMENT_TTL,
    index_ttl: int = DEFAULT_INDEX_TTL,
    search_timeout: float = DEFAULT_SEARCH_TIMEOUT,
) -> RedisBackend:
    """Create a backend on a standard Redis server."""
    store = RedisStore.from_url(
        url, password=password, db=db, max_connections=max_connections
    )
    return RedisBackend(
        store,
        engine=SearchEngine(search_config),
        key_prefix=key_prefix,
        session_ttl=session_ttl,
        document_ttl=document_ttl,
        index_ttl=index_ttl,
        search_timeout=search_timeout,
    )


def create_upstash_backend(
    url: str,
    token: str,
    key_prefix: str = DEFAULT_KEY_PREFIX,
    search_config: Optional[SearchConfig] = None,
    session_ttl: int = DEFAULT_SESSION_TTL,
    document_ttl: int = DEFAULT_DOCUMENT_TTL,
    index_ttl: int = DEFAULT_INDEX_TTL,
    search_timeout: float = DEFAULT_SEARCH_TIMEOUT,
) -> RedisBackend:
    """Create a backend on Upstash Redis (HTTP, suited to serverless hosts)."""
    store = UpstashStore(url, token, timeout=search_timeout)
    backend = RedisBackend(
        store,
        engine=SearchEngine(search_config),
        key_prefix=key_prefix,
        session_ttl=session_ttl,
        document_ttl=document_ttl,
        index_ttl=index_ttl,
        search_timeout=search_timeout,
    )
    backend.name = "upstash"
    return backend


def create_backend(settings: Optional[Settings] = None) -> SearchBackend:
    """
    Create the backend selected by application settings.

    Args:
        settings: Settings to use (cached application settings when omitted)

    Returns:
        Configured search backend

    Raises:
        ValueError: If the backend name is unknown or Upstash credentials are missing
    """
    settings = settings or get_settings()
    backend = settings.backend.lower()
    search_config = settings.search_config()

    if backend == "memory":
        return create_memory_backend(
            search_config=search_config,
            max_documents=settings.max_documents,
            session_cleanup_hours=settings.session_cleanup_hours,
        )

    ttls = {
        "session_ttl": settings.session_ttl,
        "document_ttl": settings.document_ttl,
        "index_ttl": settings.index_ttl,
    }

    if backend == "redis":
        return create_redis_backend(
            url=settings.redis_url,
            password=settings.redis_password,
            db=settings.redis_db,
            max_connections=settings.redis_max_connections,
            key_prefix=settings.key_prefix,
            search_config=search_config,
            search_timeout=settings.search_timeout,
            **ttls,
        )

    if backend == "upstash":
        if not settings.upstash_redis_rest_url or not settings.upstash_redis_rest_token:
            raise ValueError("Upstash backend requires UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN")
        return create_upstash_backend(
            url=settings.upstash_redis_rest_url,
            token=settings.upstash_redis_rest_token,
            key_prefix=settings.key_prefix,
            search_config=search_config,
            search_timeout=settings.search_timeout,
            **ttls,
        )

    raise ValueError(f"Unknown backend '{settings.backend}', expected one of {BACKEND_CHOICES}")


def create_backend_from_env(
    key_prefix: Optional[str] = None,
    search_config: Optional[SearchConfig] = None,
) -> RedisBackend:
    """
    Create a Redis-family backend from environment variables.

    Upstash credentials (UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN)
    win, then REDIS_URL, then REDIS_HOST/REDIS_PORT/REDIS_DB/REDIS_PASSWORD.
    """
    prefix = key_prefix or DEFAULT_KEY_PREFIX

    upstash_url = os.environ.get("UPSTASH_REDIS_REST_URL")
    upstash_token = os.environ.get("UPSTASH_REDIS_REST_TOKEN")
    if upstash_url and upstash_token:
        return create_upstash_backend(
            upstash_url, upstash_token, key_prefix=prefix, search_config=search_config
        )

    redis_url = os.environ.get("REDIS_URL")
    if redis_url:
        return create_redis_backend(redis_url, key_prefix=prefix, search_config=search_config)

    host = os.environ.get("REDIS_HOST", "localhost")
    port = int(os.environ.get("REDIS_PORT", "6379"))
    db = int(os.environ.get("REDIS_DB", "0"))
    return create_redis_backend(
        f"redis://{host}:{port}/{db}",
        password=os.environ.get("REDIS_PASSWORD") or None,
        key_prefix=prefix,
        search_config=search_config,
    )
