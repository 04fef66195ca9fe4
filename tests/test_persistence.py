"""
Tests for the key-value stores and typed repositories.
"""
import json
from unittest.mock import MagicMock

import pytest


def _fake_redis():
    data = {}
    client = MagicMock()
    client.get.side_effect = data.get
    client.set.side_effect = lambda key, value: data.__setitem__(key, value)
    client.delete.side_effect = lambda key: data.pop(key, None)
    client.scan_iter.side_effect = lambda match: [k for k in list(data) if k.startswith(match.rstrip("*"))]
    return client, data


class TestMemoryStore:

    def test_save_merges_partial_records(self):
        from runtime.persistence.memory_store import MemoryStore

        store = MemoryStore()
        store.save("episode:p:1", {"status": "GENERATING", "content": None})
        merged = store.save("episode:p:1", {"status": "DRAFT", "content": "text"})

        assert merged["status"] == "DRAFT"
        assert merged["content"] == "text"
        assert "updated_at" in merged
        assert store.get("episode:p:1")["status"] == "DRAFT"

    def test_get_returns_copies(self):
        from runtime.persistence.memory_store import MemoryStore

        store = MemoryStore()
        store.save("k", {"items": [1]})
        store.get("k")["items"].append(2)

        assert store.get("k")["items"] == [1]
        assert store.get("missing") is None

    def test_keys_and_delete(self):
        from runtime.persistence.memory_store import MemoryStore

        store = MemoryStore()
        for key in ("episode:p:2", "episode:p:1", "batch:p"):
            store.save(key, {})
        store.delete("episode:p:2")

        assert store.keys("episode:") == ["episode:p:1"]


class TestSQLStore:

    def test_sqlite_round_trip(self, tmp_path):
        from runtime.persistence.sql_store import SQLStore

        store = SQLStore(f"sqlite:///{tmp_path / 'records.db'}")
        store.save("episode:p:1", {"status": "GENERATING"})
        store.save("episode:p:1", {"status": "DRAFT", "validation": {"passed": True}})
        store.save("episode:p:2", {"status": "FAILED"})

        record = store.get("episode:p:1")
        assert record["status"] == "DRAFT"
        assert record["validation"] == {"passed": True}
        assert store.keys("episode:p:") == ["episode:p:1", "episode:p:2"]

        store.delete("episode:p:2")
        assert store.get("episode:p:2") is None
        store.close()

    def test_records_survive_reconnect(self, tmp_path):
        from runtime.persistence.sql_store import SQLStore

        url = f"sqlite:///{tmp_path / 'records.db'}"
        first = SQLStore(url)
        first.save("batch:p", {"status": "PAUSED"})
        first.close()

        assert SQLStore(url, lazy=True).get("batch:p")["status"] == "PAUSED"

    def test_database_url_required(self, monkeypatch):
        from runtime.persistence.sql_store import SQLStore

        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(RuntimeError, match="DATABASE_URL"):
            SQLStore()

    def test_unsupported_url(self):
        from runtime.persistence.sql_store import SQLStore

        with pytest.raises(RuntimeError, match="Unsupported"):
            SQLStore("mysql://localhost/db")


class TestRedisStore:

    def test_records_stored_as_namespaced_json(self):
        from runtime.persistence.redis_store import RedisStore

        client, data = _fake_redis()
        store = RedisStore(redis_client=client, namespace="test")

        store.save("batch:p", {"status": "RUNNING"})
        store.save("batch:p", {"current_episode": 3})

        assert json.loads(data["test:batch:p"])["status"] == "RUNNING"
        assert store.get("batch:p")["current_episode"] == 3
        assert store.get("batch:other") is None
        assert store.keys("batch:") == ["batch:p"]

    def test_lazy_store_needs_url_on_first_use(self):
        from runtime.persistence.redis_store import RedisStore

        store = RedisStore(lazy=True)
        with pytest.raises(RuntimeError, match="Redis URL"):
            store.get("anything")


class TestRepositories:

    def test_episode_repo_normalizes_status(self):
        from runtime.episode_state import EpisodeStatus
        from runtime.persistence.memory_store import MemoryStore
        from runtime.persistence.repositories import EpisodeRepo

        repo = EpisodeRepo(MemoryStore())
        repo.save("p", 2, {"status": EpisodeStatus.DEGRADED})
        repo.save("p", 1, {"status": EpisodeStatus.DRAFT})

        assert repo.get("p", 2)["status"] == "DEGRADED"
        assert repo.status("p", 2) == EpisodeStatus.DEGRADED
        assert repo.status("p", 9) is None
        assert [r["episode_index"] for r in repo.list("p")] == [1, 2]

    def test_batch_repo_round_trip(self):
        from models.batch_state import BatchHealth, BatchState, BatchStatus
        from runtime.persistence.memory_store import MemoryStore
        from runtime.persistence.repositories import BatchRepo

        repo = BatchRepo(MemoryStore())
        state = BatchState(
            project_id="p", start_episode=1, end_episode=5, current_episode=4,
            status=BatchStatus.PAUSED, completed=[1, 2], degraded=[3],
            health=BatchHealth.WARNING,
        )
        repo.save(state)

        loaded = repo.get("p")
        assert loaded.status == BatchStatus.PAUSED
        assert loaded.completed == [1, 2]
        assert loaded.degraded == [3]
        assert loaded.health == BatchHealth.WARNING
        assert loaded.last_completed() == 2
        assert repo.get("unknown") is None

    def test_project_repo_stamps_id(self):
        from runtime.persistence.memory_store import MemoryStore
        from runtime.persistence.repositories import ProjectRepo

        repo = ProjectRepo(MemoryStore())
        repo.save("p", {"genre": "romance"})

        assert repo.get("p")["id"] == "p"
