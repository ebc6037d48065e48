"""Unit tests for the history key/value stores."""

from unittest.mock import patch

import pytest

from mapdash.config import Settings
from mapdash.storage.kv_store import FileStore, MemoryStore, RedisStore, build_store


class TestMemoryStore:
    def test_get_set_delete(self):
        store = MemoryStore({"a": "1"})

        assert store.get("a") == "1"
        store.set("b", "2")
        store.delete("a")
        store.delete("missing")

        assert store.get("a") is None
        assert store.get("b") == "2"


class TestFileStore:
    def test_round_trip_creates_directory(self, tmp_path):
        store = FileStore(tmp_path / "history")

        assert store.get("route_search_history_v1") is None
        store.set("route_search_history_v1", "[]")

        assert (tmp_path / "history" / "route_search_history_v1.json").read_text() == "[]"
        assert store.get("route_search_history_v1") == "[]"

    def test_overwrite_leaves_no_temp_files(self, tmp_path):
        store = FileStore(tmp_path)
        store.set("k", "first")
        store.set("k", "second")

        assert store.get("k") == "second"
        assert [p.name for p in tmp_path.iterdir()] == ["k.json"]

    def test_delete(self, tmp_path):
        store = FileStore(tmp_path)
        store.set("k", "v")
        store.delete("k")
        store.delete("k")

        assert store.get("k") is None

    @pytest.mark.parametrize("key", ["../escape", "a/b", "", "with space"])
    def test_rejects_unsafe_keys(self, tmp_path, key):
        with pytest.raises(ValueError):
            FileStore(tmp_path).get(key)


class TestBuildStore:
    def test_memory(self):
        assert isinstance(build_store(Settings(HISTORY_BACKEND="memory")), MemoryStore)

    def test_file(self, tmp_path):
        store = build_store(Settings(HISTORY_BACKEND="file", HISTORY_DIR=str(tmp_path)))

        assert isinstance(store, FileStore)
        assert store.directory == tmp_path

    def test_redis(self):
        with patch("mapdash.storage.kv_store.redis.Redis.from_url") as from_url:
            store = build_store(
                Settings(HISTORY_BACKEND="redis", REDIS_URL="redis://cache:6379/1")
            )

        assert isinstance(store, RedisStore)
        from_url.assert_called_once_with(
            "redis://cache:6379/1", encoding="utf-8", decode_responses=True
        )

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValueError):
            Settings(HISTORY_BACKEND="sqlite")


def test_redis_store_prefixes_keys():
    with patch("mapdash.storage.kv_store.redis.Redis.from_url") as from_url:
        store = RedisStore("redis://localhost:6379/0")
    client = from_url.return_value
    client.get.return_value = "[]"

    assert store.get("k") == "[]"
    store.set("k", "v")
    store.delete("k")

    client.get.assert_called_once_with("mapdash:k")
    client.set.assert_called_once_with("mapdash:k", "v")
    client.delete.assert_called_once_with("mapdash:k")
