"""Tests for the disk and key-value listing caches and the backend factory."""

from __future__ import annotations

import json
from datetime import timedelta
from unittest.mock import patch

import fakeredis
import pytest

from hubresolve.core.config import AppSettings, CacheConfig
from hubresolve.models.repository import CachedListing, RepoEntry
from hubresolve.persistence import create_persistence
from hubresolve.persistence.disk_listing_cache import CACHE_DIR_NAME, DiskListingCache, listing_file_name
from hubresolve.persistence.kv_listing_cache import KeyValueListingCache
from hubresolve.persistence.redis_backend import RedisCacheBackend
from tests.fakes import MemoryCacheBackend


@pytest.fixture
def listing():
    return CachedListing(
        repo_id="org/model",
        revision="main",
        entries=[
            RepoEntry(path="onnx", size_bytes=0, is_directory=True),
            RepoEntry(path="onnx/model.onnx", size_bytes=1234),
        ],
    )


class TestListingFileName:
    def test_replaces_separators(self):
        assert listing_file_name("org/model", "main") == "org_model_main.json"

    def test_replaces_backslash(self):
        assert listing_file_name("org\\model", "v1") == "org_model_v1.json"


class TestDiskListingCache:
    def test_load_missing_returns_none(self, tmp_path):
        assert DiskListingCache(tmp_path).load("org/model", "main") is None

    def test_save_then_load(self, tmp_path, listing):
        cache = DiskListingCache(tmp_path)
        cache.save(listing)

        loaded = cache.load("org/model", "main")

        assert loaded is not None
        assert [e.path for e in loaded.entries] == ["onnx", "onnx/model.onnx"]
        assert loaded.fetched_at == listing.fetched_at
        assert (tmp_path / CACHE_DIR_NAME / "org_model_main.json").is_file()

    def test_corrupt_file_is_ignored_and_overwritten(self, tmp_path, listing):
        cache = DiskListingCache(tmp_path)
        path = cache.path_for("org/model", "main")
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")

        assert cache.load("org/model", "main") is None

        cache.save(listing)
        assert cache.load("org/model", "main") is not None

    def test_mismatched_repo_is_ignored(self, tmp_path, listing):
        cache = DiskListingCache(tmp_path)
        path = cache.path_for("org/other", "main")
        path.parent.mkdir(parents=True)
        path.write_text(listing.model_dump_json(), encoding="utf-8")

        assert cache.load("org/other", "main") is None

    def test_no_temp_files_left_behind(self, tmp_path, listing):
        cache = DiskListingCache(tmp_path)
        cache.save(listing)
        assert [p.name for p in cache.directory.iterdir()] == ["org_model_main.json"]

    def test_invalidate(self, tmp_path, listing):
        cache = DiskListingCache(tmp_path)
        cache.save(listing)
        cache.invalidate("org/model", "main")
        cache.invalidate("org/model", "main")  # already gone
        assert cache.load("org/model", "main") is None


class TestKeyValueListingCache:
    def test_save_uses_ttl_seconds(self, listing):
        backend = MemoryCacheBackend()
        cache = KeyValueListingCache(backend, ttl=timedelta(hours=2), key_prefix="p:")

        cache.save(listing)

        assert backend.ttls == {"p:org/model@main": 7200}

    def test_round_trip(self, listing):
        cache = KeyValueListingCache(MemoryCacheBackend())
        cache.save(listing)
        loaded = cache.load("org/model", "main")
        assert loaded is not None
        assert loaded.entries == listing.entries

    def test_revision_is_part_of_key(self, listing):
        cache = KeyValueListingCache(MemoryCacheBackend())
        cache.save(listing)
        assert cache.load("org/model", "v2") is None

    def test_corrupt_value_returns_none(self):
        backend = MemoryCacheBackend()
        backend.setex("hubresolve:listing:org/model@main", 60, json.dumps({"bogus": True}))
        assert KeyValueListingCache(backend).load("org/model", "main") is None

    def test_invalidate(self, listing):
        cache = KeyValueListingCache(MemoryCacheBackend())
        cache.save(listing)
        cache.invalidate("org/model", "main")
        assert cache.load("org/model", "main") is None

    def test_over_fakeredis(self, listing):
        fake = fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
        cache = KeyValueListingCache(RedisCacheBackend(client=fake))
        cache.save(listing)
        assert cache.load("org/model", "main") is not None


class TestKeyValueListingCacheUnavailable:
    @pytest.fixture
    def offline(self):
        server = fakeredis.FakeServer()
        server.connected = False
        return KeyValueListingCache(
            RedisCacheBackend(client=fakeredis.FakeRedis(server=server, decode_responses=True)),
        )

    def test_load_is_a_miss(self, offline, caplog):
        with caplog.at_level("WARNING", logger="hubresolve.persistence.kv_listing_cache"):
            assert offline.load("org/model", "main") is None
        assert "Listing cache unavailable" in caplog.text

    def test_save_is_dropped(self, offline, listing, caplog):
        with caplog.at_level("WARNING", logger="hubresolve.persistence.kv_listing_cache"):
            offline.save(listing)
        assert "Could not store listing" in caplog.text

    def test_invalidate_does_not_raise(self, offline):
        offline.invalidate("org/model", "main")


class TestCreatePersistence:
    def test_disk_is_default(self, tmp_path):
        settings = AppSettings(cache=CacheConfig(root=str(tmp_path)))
        cache = create_persistence(settings)
        assert isinstance(cache, DiskListingCache)
        assert cache.directory == tmp_path / CACHE_DIR_NAME

    def test_memory_backend(self):
        settings = AppSettings(cache=CacheConfig(listing_backend="memory"))
        assert isinstance(create_persistence(settings), KeyValueListingCache)

    def test_redis_backend(self):
        settings = AppSettings(cache=CacheConfig(listing_backend="redis"))
        with patch("redis.Redis", return_value=fakeredis.FakeRedis(decode_responses=True)):
            cache = create_persistence(settings)
        assert isinstance(cache, KeyValueListingCache)
