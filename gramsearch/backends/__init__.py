"""Storage backends for the gram search engine."""

from .base import SearchBackend
from .clients import KeyValueStore, RedisStore, UpstashStore
from .factory import (
    create_backend,
    create_backend_from_env,
    create_memory_backend,
    create_redis_backend,
    create_upstash_backend,
)
from .memory import MemoryBackend
from .redis_backend import RedisBackend

__all__ = [
    "SearchBackend",
    "MemoryBackend",
    "RedisBackend",
    "KeyValueStore",
    "RedisStore",
    "UpstashStore",
    "create_backend",
    "create_backend_from_env",
    "create_memory_backend",
    "create_redis_backend",
    "create_upstash_backend",
]
