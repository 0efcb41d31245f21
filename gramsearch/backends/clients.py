"""
Key-value store clients used by the Redis backend.

Two transports sit behind one interface:
- RedisStore: persistent connection through redis.asyncio
- UpstashStore: discrete HTTP calls against the Upstash REST API

Replies are normalized per command so the backend sees the same Python
types regardless of transport: sets for SMEMBERS, dicts for HGETALL,
lists for KEYS, ints for counters and bools for SISMEMBER.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set

import httpx
import redis.asyncio as redis
import structlog
from redis.exceptions import RedisError

from ..core.exceptions import BackendUnavailableError

logger = structlog.get_logger(__name__)

Command = Sequence[Any]

_COUNT_COMMANDS = {"DEL", "EXISTS", "EXPIRE", "HSET", "SADD", "SREM", "SCARD"}


def _decode(value: Any) -> Any:
    return value.decode() if isinstance(value, bytes) else value


def _pairs_to_dict(reply: Any) -> Dict[str, str]:
    if not reply:
        return {}
    if isinstance(reply, Mapping):
        return {_decode(k): _decode(v) for k, v in reply.items()}
    items = [_decode(item) for item in reply]
    return dict(zip(items[0::2], items[1::2]))


def normalize_reply(command: str, reply: Any) -> Any:
    """
    Convert a raw store reply into the type the backend expects.

    Args:
        command: Command name (case-insensitive)
        reply: Raw reply from the transport

    Returns:
        Normalized reply
    """
    name = command.upper()

    if name == "SMEMBERS":
        return {_decode(member) for member in (reply or ())}
    if name == "HGETALL":
        return _pairs_to_dict(reply)
    if name == "KEYS":
        return [_decode(key) for key in (reply or ())]
    if name == "SISMEMBER":
        return bool(int(reply or 0))
    if name in _COUNT_COMMANDS:
        return int(reply or 0)

    return _decode(reply)


def flatten_mapping(mapping: Mapping[str, Any]) -> List[str]:
    """Flatten a field mapping into HSET arguments."""
    args: List[str] = []
    for field, value in mapping.items():
        args.extend((field, str(value)))
    return args


class KeyValueStore(ABC):
    """Primitive key-value operations the Redis backend is built on."""

    @abstractmethod
    async def execute(self, *command: Any) -> Any:
        """Execute one command and return its normalized reply."""

    @abstractmethod
    async def pipeline(self, commands: Iterable[Command]) -> List[Any]:
        """
        Execute a batch of commands in one round trip.

        The batch is pipelined, not transactional. Replies come back in
        command order.
        """

    @abstractmethod
    async def keys(self, pattern: str) -> List[str]:
        """List keys matching a glob pattern."""

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying connection."""

    async def hset(self, key: str, mapping: Mapping[str, Any]) -> int:
        return await self.execute("HSET", key, *flatten_mapping(mapping))

    async def hgetall(self, key: str) -> Dict[str, str]:
        return await self.execute("HGETALL", key)

    async def delete(self, key: str) -> int:
        return await self.execute("DEL", key)

    async def exists(self, key: str) -> int:
        return await self.execute("EXISTS", key)

    async def expire(self, key: str, seconds: int) -> int:
        return await self.execute("EXPIRE", key, int(seconds))

    async def sadd(self, key: str, *members: str) -> int:
        return await self.execute("SADD", key, *members)

    async def srem(self, key: str, *members: str) -> int:
        return await self.execute("SREM", key, *members)

    async def smembers(self, key: str) -> Set[str]:
        return await self.execute("SMEMBERS", key)

    async def sismember(self, key: str, member: str) -> bool:
        return await self.execute("SISMEMBER", key, member)


class RedisStore(KeyValueStore):
    """Key-value store over a persistent redis.asyncio connection."""

    def __init__(self, client: Any) -> None:
        """
        Initialize the store.

        Args:
            client: redis.asyncio client instance
        """
        self.redis = client

    @classmethod
    def from_url(
        cls,
        url: str,
        password: Optional[str] = None,
        db: Optional[int] = None,
        max_connections: Optional[int] = None,
    ) -> "RedisStore":
        """Create a store from a redis:// URL."""
        options: Dict[str, Any] = {"decode_responses": True}
        if password:
            options["password"] = password
        if db is not None:
            options["db"] = db
        if max_connections:
            options["max_connections"] = max_connections
        return cls(redis.from_url(url, **options))

    async def execute(self, *command: Any) -> Any:
        name = str(command[0])
        try:
            reply = await self.redis.execute_command(*command)
        except RedisError as e:
            logger.error("Redis command failed", command=name, error=str(e))
            raise BackendUnavailableError(f"Redis {name} failed: {e}", operation=name) from e
        return normalize_reply(name, reply)

    async def pipeline(self, commands: Iterable[Command]) -> List[Any]:
        commands = [tuple(command) for command in commands]
        if not commands:
            return []

        try:
            async with self.redis.pipeline(transaction=False) as pipe:
                for command in commands:
                    pipe.execute_command(*command)
                replies = await pipe.execute()
        except RedisError as e:
            logger.error("Redis pipeline failed", commands=len(commands), error=str(e))
            raise BackendUnavailableError(f"Redis pipeline failed: {e}", operation="pipeline") from e

        return [
            normalize_reply(str(command[0]), reply)
            for command, reply in zip(commands, replies)
        ]

    async def keys(self, pattern: str) -> List[str]:
        try:
            return [_decode(key) async for key in self.redis.scan_iter(match=pattern, count=500)]
        except RedisError as e:
            raise BackendUnavailableError(f"Redis SCAN failed: {e}", operation="SCAN") from e

    async def close(self) -> None:
        await self.redis.aclose()


class UpstashStore(KeyValueStore):
    """Key-value store over the Upstash REST API."""

    def __init__(
        self,
        url: str,
        token: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            url: REST endpoint, e.g. https://<db>.upstash.io
            token: REST bearer token
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    async def _post(self, path: str, payload: Any, operation: str) -> Any:
        try:
            response = await self.client.post(path, json=payload)
        except httpx.HTTPError as e:
            logger.error("Upstash request failed", operation=operation, error=str(e))
            raise BackendUnavailableError(f"Upstash request failed: {e}", operation=operation) from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if isinstance(data, dict) and data.get("error"):
            raise BackendUnavailableError(f"Upstash error: {data['error']}", operation=operation)
        if response.is_error or data is None:
            raise BackendUnavailableError(
                f"Upstash request failed with status {response.status_code}",
                operation=operation,
            )

        return data

    async def execute(self, *command: Any) -> Any:
        name = str(command[0])
        data = await self._post("/", [str(arg) for arg in command], name)
        return normalize_reply(name, data.get("result"))

    async def pipeline(self, commands: Iterable[Command]) -> List[Any]:
        commands = [[str(arg) for arg in command] for command in commands]
        if not commands:
            return []

        data = await self._post("/pipeline", commands, "pipeline")

        replies = []
        for command, item in zip(commands, data):
            if item.get("error"):
                raise BackendUnavailableError(
                    f"Upstash error in {command[0]}: {item['error']}", operation=command[0]
                )
            replies.append(normalize_reply(command[0], item.get("result")))
        return replies

    async def keys(self, pattern: str) -> List[str]:
        return await self.execute("KEYS", pattern)

    async def close(self) -> None:
        await self.client.aclose()
