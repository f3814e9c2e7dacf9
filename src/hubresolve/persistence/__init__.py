"""Pluggable listing-cache backends behind Protocol interfaces."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from hubresolve.cache.store import resolve_cache_root
from hubresolve.core.config import AppSettings
from hubresolve.core.protocols import IListingCache
from hubresolve.persistence.disk_listing_cache import DiskListingCache
from hubresolve.persistence.kv_listing_cache import KeyValueListingCache
from hubresolve.persistence.memory_backend import MemoryCacheBackend
from hubresolve.persistence.redis_backend import RedisCacheBackend


def create_persistence(settings: AppSettings | None = None) -> IListingCache:
    """Create the listing cache selected by ``settings.cache.listing_backend``."""
    if settings is None:
        settings = AppSettings()

    ttl = timedelta(hours=settings.hub.listing_ttl_hours)
    backend = settings.cache.listing_backend

    if backend == "redis":
        return KeyValueListingCache(
            RedisCacheBackend(settings.redis), ttl=ttl, key_prefix=settings.redis.key_prefix,
        )

    if backend == "memory":
        return KeyValueListingCache(MemoryCacheBackend(), ttl=ttl)

    root = Path(settings.cache.root) if settings.cache.root else resolve_cache_root()
    return DiskListingCache(root)
