"""
Redis backend - gram index and sessions on a remote key-value store.

Works identically over a persistent Redis connection and over the Upstash
REST API; only the KeyValueStore underneath differs.

Data Model ({prefix} defaults to "gramsearch:"):
- {prefix}session:{id} -> Hash (session fields, TTL = session ttl)
- {prefix}sessions:active -> Set (session IDs)
- {prefix}doc:{id} -> Hash (content, indexed_at, metadata JSON, grams JSON)
- {prefix}docs:all -> Set (document IDs)
- {prefix}ngram:{gram} -> Set (document IDs, TTL = index ttl)
- {prefix}edgegram:{gram} -> Set (document IDs, TTL = index ttl)

Round trips:
- index_document(): one read of the previous record, one retraction
  pipeline, one write pipeline
- search(): one pipeline per query term, one pipeline for candidates
"""

import asyncio
import json
import weakref
from datetime import datetime
from typing import Any, Dict, List, Optional, Set, Tuple

import structlog

from ..core.engine import SearchEngine, StoredDocument
from ..models.session import SessionMetadata
from .base import SearchBackend
from .clients import KeyValueStore, flatten_mapping

logger = structlog.get_logger(__name__)

DEFAULT_KEY_PREFIX = "gramsearch:"
DEFAULT_SESSION_TTL = 24 * 60 * 60
DEFAULT_DOCUMENT_TTL = 7 * 24 * 60 * 60
DEFAULT_INDEX_TTL = 7 * 24 * 60 * 60
DEFAULT_SEARCH_TIMEOUT = 10.0

_OPTIONAL_SESSION_FIELDS = ("user_id", "tab_id", "user_agent", "ip")


def _decode_json_object(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode a JSON object field, treating anything undecodable as absent."""
    if not raw:
        return None
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def _decode_grams(raw: Optional[str]) -> Optional[Tuple[List[str], List[str]]]:
    grams = _decode_json_object(raw)
    if grams is None:
        return None
    ngrams = grams.get("ngrams")
    edgegrams = grams.get("edgegrams")
    if not isinstance(ngrams, list) or not isinstance(edgegrams, list):
        return None
    return [str(g) for g in ngrams], [str(g) for g in edgegrams]


def _parse_datetime(raw: Optional[str]) -> datetime:
    if raw:
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            pass
    return datetime.utcnow()


class RedisBackend(SearchBackend):
    """
    Search backend on Redis-compatible key-value storage.

    Postings retraction reads the gram list stored in the document record,
    so removal never scans the keyspace. Records written without a gram list
    fall back to scanning every gram key.
    """

    name = "redis"

    def __init__(
        self,
        store: KeyValueStore,
        engine: Optional[SearchEngine] = None,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        session_ttl: int = DEFAULT_SESSION_TTL,
        document_ttl: int = DEFAULT_DOCUMENT_TTL,
        index_ttl: int = DEFAULT_INDEX_TTL,
        search_timeout: Optional[float] = DEFAULT_SEARCH_TIMEOUT,
    ) -> None:
        """
        Initialize the Redis backend.

        Args:
            store: Key-value store client (Redis or Upstash)
            engine: Search engine to run queries with
            key_prefix: Namespace prepended to every key
            session_ttl: Session record TTL in seconds
            document_ttl: Document record TTL in seconds
            index_ttl: Posting set TTL in seconds
            search_timeout: Overall search budget in seconds
        """
        super().__init__(engine or SearchEngine(), search_timeout=search_timeout)
        self.store = store
        self.key_prefix = key_prefix
        self.ttl = {
            "session": session_ttl,
            "document": document_ttl,
            "index": index_ttl,
        }
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

        self.stats = {
            "documents_indexed": 0,
            "documents_removed": 0,
            "fallback_scans": 0,
            "stale_sessions_cleaned": 0,
            "stale_documents_cleaned": 0,
        }

    def _key(self, kind: str, ident: str) -> str:
        return f"{self.key_prefix}{kind}:{ident}"

    @property
    def _active_sessions_key(self) -> str:
        return self._key("sessions", "active")

    @property
    def _all_documents_key(self) -> str:
        return self._key("docs", "all")

    def _lock_for(self, doc_id: str) -> asyncio.Lock:
        """Per-document lock serializing index and remove of the same ID."""
        lock = self._locks.get(doc_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[doc_id] = lock
        return lock

    # Sessions

    async def set_session(self, session: SessionMetadata) -> None:
        key = self._key("session", session.id)

        fields: Dict[str, Any] = {
            "id": session.id,
            "connected_at": session.connected_at.isoformat(),
            "last_seen_at": session.last_seen_at.isoformat(),
        }
        for field in _OPTIONAL_SESSION_FIELDS:
            value = getattr(session, field)
            if value:
                fields[field] = value
        if session.metadata:
            fields["metadata"] = json.dumps(session.metadata)

        await self.store.pipeline([
            ("DEL", key),
            ("HSET", key, *flatten_mapping(fields)),
            ("EXPIRE", key, self.ttl["session"]),
            ("SADD", self._active_sessions_key, session.id),
        ])

    @staticmethod
    def _session_from_hash(data: Dict[str, str]) -> Optional[SessionMetadata]:
        if not data or not data.get("id"):
            return None

        return SessionMetadata(
            id=data["id"],
            connected_at=_parse_datetime(data.get("connected_at")),
            last_seen_at=_parse_datetime(data.get("last_seen_at")),
            metadata=_decode_json_object(data.get("metadata")),
            **{field: data[field] for field in _OPTIONAL_SESSION_FIELDS if data.get(field)},
        )

    async def get_session(self, session_id: str) -> Optional[SessionMetadata]:
        data = await self.store.hgetall(self._key("session", session_id))
        return self._session_from_hash(data)

    async def delete_session(self, session_id: str) -> None:
        await self.store.pipeline([
            ("DEL", self._key("session", session_id)),
            ("SREM", self._active_sessions_key, session_id),
        ])

    async def get_all_sessions(self) -> List[SessionMetadata]:
        session_ids = sorted(await self.store.smembers(self._active_sessions_key))
        if not session_ids:
            return []

        records = await self.store.pipeline(
            [("HGETALL", self._key("session", session_id)) for session_id in session_ids]
        )

        sessions = []
        stale = []
        for session_id, record in zip(session_ids, records):
            session = self._session_from_hash(record)
            if session is None:
                stale.append(session_id)
            else:
                sessions.append(session)

        if stale:
            # Session expired between SMEMBERS and HGETALL
            await self.store.srem(self._active_sessions_key, *stale)

        return sessions

    async def update_last_seen(self, session_id: str) -> None:
        key = self._key("session", session_id)
        if not await self.store.exists(key):
            return

        await self.store.pipeline([
            ("HSET", key, "last_seen_at", datetime.utcnow().isoformat()),
            ("EXPIRE", key, self.ttl["session"]),
        ])

    # Documents

    async def index_document(
        self, doc_id: str, content: str, metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Store a document and post it under its grams.

        Postings of a previous version are retracted before the new ones are
        written.

        Args:
            doc_id: Unique document identifier
            content: Searchable text
            metadata: Optional metadata merged into search results
        """
        async with self._lock_for(doc_id):
            await self._retract_postings(doc_id)

            ngrams, edgegrams = self.engine.analyze(content)
            doc_key = self._key("doc", doc_id)

            record: Dict[str, Any] = {
                "content": content,
                "indexed_at": datetime.utcnow().isoformat(),
                "grams": json.dumps({"ngrams": ngrams, "edgegrams": edgegrams}),
            }
            if metadata is not None:
                record["metadata"] = json.dumps(metadata, default=str)

            commands: List[Tuple[Any, ...]] = [
                ("DEL", doc_key),
                ("HSET", doc_key, *flatten_mapping(record)),
                ("EXPIRE", doc_key, self.ttl["document"]),
                ("SADD", self._all_documents_key, doc_id),
            ]
            for kind, grams in (("ngram", ngrams), ("edgegram", edgegrams)):
                for gram in grams:
                    gram_key = self._key(kind, gram)
                    commands.append(("SADD", gram_key, doc_id))
                    commands.append(("EXPIRE", gram_key, self.ttl["index"]))

            await self.store.pipeline(commands)

        self.stats["documents_indexed"] += 1

    async def remove_document(self, doc_id: str) -> None:
        async with self._lock_for(doc_id):
            existed = await self._retract_postings(doc_id)
            await self.store.pipeline([
                ("DEL", self._key("doc", doc_id)),
                ("SREM", self._all_documents_key, doc_id),
            ])

        if existed:
            self.stats["documents_removed"] += 1

    async def _retract_postings(self, doc_id: str) -> bool:
        """
        Remove a document ID from every posting set it was added to.

        Returns:
            True if a previous record existed
        """
        record = await self.store.hgetall(self._key("doc", doc_id))
        if not record:
            return False

        grams = _decode_grams(record.get("grams"))
        if grams is None:
            logger.info("Document record has no gram list, scanning gram keys", doc_id=doc_id)
            self.stats["fallback_scans"] += 1
            gram_keys = await self._scan_gram_keys()
            commands = [("SREM", key, doc_id) for key in gram_keys]
        else:
            ngrams, edgegrams = grams
            commands = [("SREM", self._key("ngram", gram), doc_id) for gram in ngrams]
            commands += [("SREM", self._key("edgegram", gram), doc_id) for gram in edgegrams]

        if commands:
            await self.store.pipeline(commands)

        return True

    async def _scan_gram_keys(self) -> List[str]:
        ngram_keys, edgegram_keys = await asyncio.gather(
            self.store.keys(self._key("ngram", "*")),
            self.store.keys(self._key("edgegram", "*")),
        )
        return list(ngram_keys) + list(edgegram_keys)

    # Engine hooks

    async def lookup_postings(
        self, ngrams: List[str], edgegrams: List[str]
    ) -> Tuple[List[Set[str]], List[Set[str]]]:
        commands = [("SMEMBERS", self._key("ngram", gram)) for gram in ngrams]
        commands += [("SMEMBERS", self._key("edgegram", gram)) for gram in edgegrams]

        replies = await self.store.pipeline(commands)
        return replies[:len(ngrams)], replies[len(ngrams):]

    async def fetch_documents(self, doc_ids: List[str]) -> Dict[str, StoredDocument]:
        if not doc_ids:
            return {}

        records = await self.store.pipeline(
            [("HGETALL", self._key("doc", doc_id)) for doc_id in doc_ids]
        )

        documents = {}
        for doc_id, record in zip(doc_ids, records):
            if not record or "content" not in record:
                continue

            metadata = _decode_json_object(record.get("metadata"))
            if metadata is None and record.get("metadata"):
                logger.warning("Ignoring undecodable document metadata", doc_id=doc_id)

            documents[doc_id] = StoredDocument(content=record["content"], metadata=metadata)

        return documents

    # Maintenance

    async def cleanup(self) -> None:
        """
        Drop index entries whose records have expired.

        - Session IDs whose session hash is gone leave the active set.
        - Document IDs whose record is gone leave the document set, and
          their postings are retracted by scanning the gram keys. Each ID is
          rechecked under its lock, so a document re-indexed while the scan
          ran keeps its postings.
        """
        stale_sessions = await self._find_missing(self._active_sessions_key, "session")
        if stale_sessions:
            await self.store.srem(self._active_sessions_key, *stale_sessions)
            self.stats["stale_sessions_cleaned"] += len(stale_sessions)
            logger.info("Cleaned up expired sessions", count=len(stale_sessions))

        stale_documents = await self._find_missing(self._all_documents_key, "doc")
        if stale_documents:
            self.stats["fallback_scans"] += 1
            gram_keys = await self._scan_gram_keys()

            cleaned = 0
            for doc_id in stale_documents:
                async with self._lock_for(doc_id):
                    if await self.store.exists(self._key("doc", doc_id)):
                        continue

                    commands: List[Tuple[Any, ...]] = [
                        ("SREM", key, doc_id) for key in gram_keys
                    ]
                    commands.append(("SREM", self._all_documents_key, doc_id))
                    await self.store.pipeline(commands)
                cleaned += 1

            self.stats["stale_documents_cleaned"] += cleaned
            logger.info("Cleaned up expired documents", count=cleaned)

    async def _find_missing(self, set_key: str, kind: str) -> List[str]:
        """Members of ``set_key`` whose ``{kind}:{member}`` key no longer exists."""
        members = sorted(await self.store.smembers(set_key))
        if not members:
            return []

        exists = await self.store.pipeline(
            [("EXISTS", self._key(kind, member)) for member in members]
        )
        return [member for member, found in zip(members, exists) if not found]

    async def ping(self) -> None:
        await self.store.execute("PING")

    async def disconnect(self) -> None:
        await self.store.close()

    async def get_stats(self) -> Dict[str, Any]:
        stats = await super().get_stats()
        stats.update({
            **self.stats,
            "key_prefix": self.key_prefix,
            "ttl": dict(self.ttl),
            "search_timeout": self.search_timeout,
        })
        return stats
