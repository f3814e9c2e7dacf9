"""In-memory backends for unit tests and single-process use."""

from __future__ import annotations

from hubresolve.models.repository import CachedListing


class MemoryCacheBackend:
    """Dict-backed ICacheBackend. TTLs are recorded but not enforced."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def setex(self, key: str, ttl: int, value: str) -> None:
        self._store[key] = value
        self.ttls[key] = ttl

    def delete(self, key: str) -> None:
        self._store.pop(key, None)
        self.ttls.pop(key, None)


class MemoryListingCache:
    """Dict-backed IListingCache; freshness is left to the caller."""

    def __init__(self) -> None:
        self._listings: dict[tuple[str, str], CachedListing] = {}

    def load(self, repo_id: str, revision: str) -> CachedListing | None:
        return self._listings.get((repo_id, revision))

    def save(self, listing: CachedListing) -> None:
        self._listings[(listing.repo_id, listing.revision)] = listing

    def invalidate(self, repo_id: str, revision: str) -> None:
        self._listings.pop((repo_id, revision), None)
