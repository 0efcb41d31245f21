"""Shared test fixtures."""

import fnmatch
from typing import Any, Dict, Iterable, List

import pytest

from gramsearch.backends.clients import KeyValueStore, normalize_reply
from gramsearch.backends.memory import MemoryBackend
from gramsearch.backends.redis_backend import RedisBackend
from gramsearch.core.engine import SearchEngine


class InMemoryStore(KeyValueStore):
    """Dict-backed KeyValueStore that understands the commands the Redis backend sends."""

    def __init__(self) -> None:
        self.data: Dict[str, Any] = {}
        self.ttls: Dict[str, int] = {}
        self.commands: List[tuple] = []
        self.pipelines = 0
        self.closed = False

    def _run(self, name: str, args: List[Any]) -> Any:
        self.commands.append((name, *args))

        if name == "PING":
            return "PONG"
        if name == "DEL":
            removed = 0
            for key in args:
                removed += self.data.pop(key, None) is not None
                self.ttls.pop(key, None)
            return removed
        if name == "EXISTS":
            return sum(1 for key in args if key in self.data)
        if name == "EXPIRE":
            key, seconds = args
            if key not in self.data:
                return 0
            self.ttls[key] = int(seconds)
            return 1
        if name == "HSET":
            key, fields = args[0], args[1:]
            record = self.data.setdefault(key, {})
            added = 0
            for field, value in zip(fields[0::2], fields[1::2]):
                added += field not in record
                record[field] = str(value)
            return added
        if name == "HGETALL":
            return dict(self.data.get(args[0], {}))
        if name == "SADD":
            members = self.data.setdefault(args[0], set())
            before = len(members)
            members.update(str(m) for m in args[1:])
            return len(members) - before
        if name == "SREM":
            members = self.data.get(args[0])
            if not members:
                return 0
            before = len(members)
            members.difference_update(args[1:])
            if not members:
                del self.data[args[0]]
            return before - len(members)
        if name == "SMEMBERS":
            return set(self.data.get(args[0], set()))
        if name == "SISMEMBER":
            return int(args[1] in self.data.get(args[0], set()))
        if name == "KEYS":
            return [key for key in self.data if fnmatch.fnmatchcase(key, args[0])]

        raise AssertionError(f"Unexpected command {name}")

    async def execute(self, *command: Any) -> Any:
        name = str(command[0]).upper()
        return normalize_reply(name, self._run(name, list(command[1:])))

    async def pipeline(self, commands: Iterable[Any]) -> List[Any]:
        commands = [tuple(command) for command in commands]
        if not commands:
            return []
        self.pipelines += 1
        return [await self.execute(*command) for command in commands]

    async def keys(self, pattern: str) -> List[str]:
        return await self.execute("KEYS", pattern)

    async def close(self) -> None:
        self.closed = True

    def expire_now(self, key: str) -> None:
        """Simulate the store expiring a key."""
        self.data.pop(key, None)
        self.ttls.pop(key, None)


@pytest.fixture
def memory_backend():
    """Create an in-memory backend with default settings."""
    return MemoryBackend(engine=SearchEngine())


@pytest.fixture
def kv_store():
    """Create an empty in-process key-value store."""
    return InMemoryStore()


@pytest.fixture
def redis_backend(kv_store):
    """Create a Redis backend on the in-process store."""
    return RedisBackend(kv_store, engine=SearchEngine(), key_prefix="test:")


@pytest.fixture(params=["memory", "redis"])
def any_backend(request):
    """Run a test against both backend implementations."""
    if request.param == "memory":
        return MemoryBackend(engine=SearchEngine())
    return RedisBackend(InMemoryStore(), engine=SearchEngine(), key_prefix="test:")


@pytest.fixture
def sample_documents():
    """Sample documents for testing."""
    return [
        ("a", "TypeScript is a typed superset of JavaScript", {"lang": "ts"}),
        ("b", "Redis is an in-memory data store for real time apps", {"lang": "c"}),
        ("c", "Python is great for data processing pipelines", {"lang": "py"}),
    ]
