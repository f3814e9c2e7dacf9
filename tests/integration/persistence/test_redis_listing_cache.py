"""Integration tests for the Redis-backed listing cache."""

from __future__ import annotations

from datetime import timedelta

import pytest
import redis

from hubresolve.core.config import RedisConfig
from hubresolve.models.repository import CachedListing, RepoEntry
from hubresolve.persistence.kv_listing_cache import KeyValueListingCache
from hubresolve.persistence.redis_backend import RedisCacheBackend
from tests.integration.conftest import KEY_PREFIX, REDIS_HOST, REDIS_PORT, skip_no_redis


@skip_no_redis
class TestRedisListingCacheIntegration:
    @pytest.fixture
    def cache(self):
        backend = RedisCacheBackend(RedisConfig(host=REDIS_HOST, port=REDIS_PORT))
        cache = KeyValueListingCache(backend, ttl=timedelta(minutes=5), key_prefix=KEY_PREFIX)
        yield cache
        cache.invalidate("org/model", "main")

    def test_round_trip(self, cache):
        listing = CachedListing(
            repo_id="org/model", revision="main", entries=[RepoEntry(path="onnx/model.onnx", size_bytes=10)],
        )
        cache.save(listing)
        loaded = cache.load("org/model", "main")
        assert loaded is not None
        assert loaded.entries == listing.entries

    def test_key_expires_server_side(self, cache):
        cache.save(CachedListing(repo_id="org/model", revision="main"))
        raw = redis.Redis(host=REDIS_HOST, port=REDIS_PORT)
        assert 0 < raw.ttl(f"{KEY_PREFIX}org/model@main") <= 300
