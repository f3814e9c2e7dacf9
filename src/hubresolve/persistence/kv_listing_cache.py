"""Listing cache stored in an ICacheBackend (Redis) with server-side TTL."""

from __future__ import annotations

import logging
from datetime import timedelta

from pydantic import ValidationError

from hubresolve.core.exceptions import CacheError
from hubresolve.core.protocols import ICacheBackend
from hubresolve.models.repository import CachedListing

logger = logging.getLogger(__name__)


class KeyValueListingCache:
    """IListingCache on top of a key-value backend.

    A failing backend never fails a listing: reads behave as misses and
    writes are dropped, both logged at WARNING.
    """

    def __init__(
        self,
        backend: ICacheBackend,
        ttl: timedelta = timedelta(hours=24),
        key_prefix: str = "hubresolve:listing:",
    ) -> None:
        self._backend = backend
        self._ttl = ttl
        self._prefix = key_prefix

    def _key(self, repo_id: str, revision: str) -> str:
        return f"{self._prefix}{repo_id}@{revision}"

    def load(self, repo_id: str, revision: str) -> CachedListing | None:
        try:
            raw = self._backend.get(self._key(repo_id, revision))
        except CacheError as exc:
            logger.warning("Listing cache unavailable for %s@%s: %s", repo_id, revision, exc)
            return None
        if raw is None:
            return None
        try:
            return CachedListing.model_validate_json(raw)
        except (ValidationError, ValueError) as exc:
            logger.warning("Ignoring corrupt cached listing for %s@%s: %s", repo_id, revision, exc)
            return None

    def save(self, listing: CachedListing) -> None:
        try:
            self._backend.setex(
                self._key(listing.repo_id, listing.revision),
                int(self._ttl.total_seconds()),
                listing.model_dump_json(),
            )
        except CacheError as exc:
            logger.warning(
                "Could not store listing for %s@%s: %s", listing.repo_id, listing.revision, exc,
            )

    def invalidate(self, repo_id: str, revision: str) -> None:
        try:
            self._backend.delete(self._key(repo_id, revision))
        except CacheError as exc:
            logger.warning("Could not invalidate listing for %s@%s: %s", repo_id, revision, exc)
