"""
Unit tests for the Redis backend.

Runs against an in-process key-value store that executes the same
commands a Redis server would, so key layout and postings can be inspected
directly.
"""

import asyncio
import json
from datetime import datetime, timedelta

import pytest

from gramsearch.backends.redis_backend import RedisBackend
from gramsearch.core.engine import SearchEngine
from gramsearch.core.exceptions import BackendUnavailableError
from gramsearch.models.request import SearchQuery
from gramsearch.models.session import SessionMetadata


def gram_keys(store, doc_id):
    """Every gram key whose posting set contains ``doc_id``."""
    return sorted(
        key for key, value in store.data.items()
        if (":ngram:" in key or ":edgegram:" in key) and doc_id in value
    )


@pytest.mark.asyncio
class TestRedisBackendDocuments:
    """Test document indexing, search and removal."""

    async def test_key_layout(self, redis_backend, kv_store):
        await redis_backend.index_document("doc1", "Redis", {"lang": "c"})

        record = kv_store.data["test:doc:doc1"]
        assert record["content"] == "Redis"
        assert json.loads(record["metadata"]) == {"lang": "c"}
        assert json.loads(record["grams"]) == {
            "ngrams": ["red", "edi", "dis"],
            "edgegrams": ["re", "red", "redi", "redis"],
        }
        assert "indexed_at" in record
        assert kv_store.data["test:docs:all"] == {"doc1"}
        assert kv_store.data["test:ngram:red"] == {"doc1"}
        assert kv_store.data["test:edgegram:redis"] == {"doc1"}

    async def test_ttls_are_applied(self, redis_backend, kv_store):
        await redis_backend.index_document("doc1", "Redis")

        assert kv_store.ttls["test:doc:doc1"] == redis_backend.ttl["document"]
        assert kv_store.ttls["test:ngram:red"] == redis_backend.ttl["index"]

    async def test_index_and_search(self, redis_backend, sample_documents):
        for doc_id, content, metadata in sample_documents:
            await redis_backend.index_document(doc_id, content, metadata)

        response = await redis_backend.search(SearchQuery(query="typescript"))

        assert [r.id for r in response.results] == ["a"]
        assert response.results[0].data == {
            "content": "TypeScript is a typed superset of JavaScript",
            "lang": "ts",
        }

    async def test_scores_match_memory_backend(self, redis_backend, memory_backend, sample_documents):
        """Test both backends rank and score the same corpus identically."""
        for doc_id, content, metadata in sample_documents:
            await redis_backend.index_document(doc_id, content, metadata)
            await memory_backend.index_document(doc_id, content, metadata)

        for query in ("real time", "pyth", "javscript", "data"):
            from_redis = await redis_backend.search(SearchQuery(query=query))
            from_memory = await memory_backend.search(SearchQuery(query=query))

            assert [(r.id, r.score) for r in from_redis.results] == [
                (r.id, r.score) for r in from_memory.results
            ]

    async def test_reindex_retracts_old_postings(self, redis_backend, kv_store):
        await redis_backend.index_document("doc1", "kubernetes cluster")
        await redis_backend.index_document("doc1", "postgres database")

        old = await redis_backend.search(SearchQuery(query="kubernetes"))

        assert old.results == []
        assert "test:ngram:kub" not in kv_store.data
        assert "test:ngram:pos" in kv_store.data

    async def test_remove_document(self, redis_backend, kv_store):
        await redis_backend.index_document("doc1", "redis streams")
        await redis_backend.index_document("doc2", "redis cluster")

        await redis_backend.remove_document("doc1")

        assert gram_keys(kv_store, "doc1") == []
        assert "test:doc:doc1" not in kv_store.data
        assert kv_store.data["test:docs:all"] == {"doc2"}
        assert redis_backend.stats["documents_removed"] == 1

        response = await redis_backend.search(SearchQuery(query="redis"))
        assert [r.id for r in response.results] == ["doc2"]

    async def test_remove_unknown_document(self, redis_backend):
        await redis_backend.remove_document("missing")

        assert redis_backend.stats["documents_removed"] == 0

    async def test_removal_without_gram_list_scans(self, redis_backend, kv_store):
        """Test records written without a gram list are retracted by scanning."""
        await redis_backend.index_document("doc1", "redis streams")
        del kv_store.data["test:doc:doc1"]["grams"]

        await redis_backend.remove_document("doc1")

        assert gram_keys(kv_store, "doc1") == []
        assert redis_backend.stats["fallback_scans"] == 1

    async def test_search_round_trips(self, redis_backend, kv_store):
        """Test each query term is one pipeline and candidates are one more."""
        await redis_backend.index_document("doc1", "real time data")
        kv_store.pipelines = 0

        await redis_backend.search(SearchQuery(query="real time"))

        assert kv_store.pipelines == 3

    async def test_expired_document_is_skipped(self, redis_backend, kv_store):
        await redis_backend.index_document("doc1", "redis streams")
        kv_store.expire_now("test:doc:doc1")

        response = await redis_backend.search(SearchQuery(query="redis"))

        assert response.results == []
        assert redis_backend.engine.get_stats()["stale_candidates"] == 1

    async def test_undecodable_metadata_is_ignored(self, redis_backend, kv_store):
        await redis_backend.index_document("doc1", "redis", {"lang": "c"})
        kv_store.data["test:doc:doc1"]["metadata"] = "{not json"

        response = await redis_backend.search(SearchQuery(query="redis"))

        assert response.results[0].data == {"content": "redis"}

    async def test_filters(self, redis_backend, sample_documents):
        for doc_id, content, metadata in sample_documents:
            await redis_backend.index_document(doc_id, content, metadata)

        response = await redis_backend.search(
            SearchQuery(query="data", filters={"lang": "c"})
        )

        assert [r.id for r in response.results] == ["b"]

    async def test_store_failure_propagates(self, redis_backend, kv_store):
        async def broken_pipeline(commands):
            raise BackendUnavailableError("connection refused", operation="pipeline")

        kv_store.pipeline = broken_pipeline

        with pytest.raises(BackendUnavailableError):
            await redis_backend.search(SearchQuery(query="redis"))


@pytest.mark.asyncio
class TestRedisBackendSessions:
    """Test session records on the key-value store."""

    async def test_set_and_get_session(self, redis_backend, kv_store):
        session = SessionMetadata(
            id="s1", user_id="u1", tab_id="t1", metadata={"theme": "dark"}
        )
        await redis_backend.set_session(session)

        stored = await redis_backend.get_session("s1")

        assert stored == session
        assert kv_store.ttls["test:session:s1"] == redis_backend.ttl["session"]
        assert kv_store.data["test:sessions:active"] == {"s1"}

    async def test_get_missing_session(self, redis_backend):
        assert await redis_backend.get_session("missing") is None

    async def test_delete_session(self, redis_backend, kv_store):
        await redis_backend.set_session(SessionMetadata(id="s1"))
        await redis_backend.delete_session("s1")

        assert await redis_backend.get_session("s1") is None
        assert "test:sessions:active" not in kv_store.data

    async def test_get_all_sessions_drops_expired(self, redis_backend, kv_store):
        await redis_backend.set_session(SessionMetadata(id="s1"))
        await redis_backend.set_session(SessionMetadata(id="s2"))
        kv_store.expire_now("test:session:s1")

        sessions = await redis_backend.get_all_sessions()

        assert [s.id for s in sessions] == ["s2"]
        assert kv_store.data["test:sessions:active"] == {"s2"}

    async def test_update_last_seen(self, redis_backend):
        old = datetime.utcnow() - timedelta(hours=2)
        await redis_backend.set_session(SessionMetadata(id="s1", last_seen_at=old))

        await redis_backend.update_last_seen("s1")

        stored = await redis_backend.get_session("s1")
        assert stored.last_seen_at > old

    async def test_update_last_seen_missing_session(self, redis_backend, kv_store):
        await redis_backend.update_last_seen("missing")

        assert "test:session:missing" not in kv_store.data


@pytest.mark.asyncio
class TestRedisBackendMaintenance:
    """Test cleanup, stats and connection handling."""

    async def test_cleanup_removes_dangling_entries(self, redis_backend, kv_store):
        await redis_backend.set_session(SessionMetadata(id="s1"))
        await redis_backend.index_document("doc1", "redis streams")
        await redis_backend.index_document("doc2", "redis cluster")
        kv_store.expire_now("test:session:s1")
        kv_store.expire_now("test:doc:doc1")

        await redis_backend.cleanup()

        assert "test:sessions:active" not in kv_store.data
        assert kv_store.data["test:docs:all"] == {"doc2"}
        assert gram_keys(kv_store, "doc1") == []
        assert gram_keys(kv_store, "doc2") != []
        assert redis_backend.stats["stale_sessions_cleaned"] == 1
        assert redis_backend.stats["stale_documents_cleaned"] == 1

    async def test_cleanup_keeps_document_reindexed_during_scan(self, redis_backend, kv_store):
        """Test a document re-indexed while cleanup scans keeps its postings."""
        scan_keys = kv_store.keys

        async def slow_keys(pattern):
            await asyncio.sleep(0.01)
            return await scan_keys(pattern)

        kv_store.keys = slow_keys

        await redis_backend.index_document("x", "kubernetes cluster")
        kv_store.expire_now("test:doc:x")

        cleanup = asyncio.create_task(redis_backend.cleanup())
        await asyncio.sleep(0)
        await redis_backend.index_document("x", "kubernetes cluster")
        await cleanup

        response = await redis_backend.search(SearchQuery(query="kubernetes"))

        assert [r.id for r in response.results] == ["x"]
        assert kv_store.data["test:docs:all"] == {"x"}
        assert "x" in kv_store.data["test:ngram:kub"]
        assert redis_backend.stats["stale_documents_cleaned"] == 0

    async def test_cleanup_with_nothing_to_do(self, redis_backend, kv_store):
        await redis_backend.cleanup()

        assert redis_backend.stats["fallback_scans"] == 0

    async def test_ping(self, redis_backend, kv_store):
        await redis_backend.ping()

        assert kv_store.commands[-1] == ("PING",)

    async def test_disconnect_closes_store(self, redis_backend, kv_store):
        await redis_backend.disconnect()

        assert kv_store.closed is True

    async def test_get_stats(self, redis_backend):
        stats = await redis_backend.get_stats()

        assert stats["backend"] == "redis"
        assert stats["key_prefix"] == "test:"
        assert stats["search_timeout"] == 10.0

    async def test_custom_prefix(self, kv_store):
        backend = RedisBackend(kv_store, engine=SearchEngine(), key_prefix="app1:")
        await backend.index_document("doc1", "redis")

        assert "app1:doc:doc1" in kv_store.data
        assert all(key.startswith("app1:") for key in kv_store.data)
