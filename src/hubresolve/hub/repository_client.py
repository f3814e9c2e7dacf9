"""Recursive repository file listing with a TTL listing cache."""

from __future__ import annotations

import logging
from datetime import timedelta
from urllib.parse import quote

import httpx

from hubresolve.core.config import HubConfig
from hubresolve.core.exceptions import (
    AuthenticationRequiredError,
    RepositoryNotFoundError,
    ResolutionError,
    TransientNetworkError,
)
from hubresolve.core.protocols import IListingCache
from hubresolve.hub.http import AUTH_STATUS_CODES, create_http_client
from hubresolve.models.repository import CachedListing, RepoEntry

logger = logging.getLogger(__name__)


class RepositoryClient:
    """Lists every file of a remote repository revision.

    Listings younger than the TTL are served from ``listing_cache`` without
    touching the network. A failed subdirectory contributes no files instead
    of failing the whole listing.
    """

    def __init__(
        self,
        config: HubConfig | None = None,
        listing_cache: IListingCache | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._config = config or HubConfig()
        self._cache = listing_cache
        self._client = client or create_http_client(self._config)
        self._ttl = timedelta(hours=self._config.listing_ttl_hours)
        self.fetch_count = 0

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def api_base(self) -> str:
        return f"{self._config.endpoint.rstrip('/')}/api/models"

    def close(self) -> None:
        self._client.close()

    def list_files(self, repo_id: str, revision: str = "main", refresh: bool = False) -> list[RepoEntry]:
        """Return all files in ``repo_id@revision``, sorted by path.

        ``refresh`` drops any cached listing before fetching.
        """
        if self._cache is not None and refresh:
            self._cache.invalidate(repo_id, revision)
        elif self._cache is not None:
            cached = self._cache.load(repo_id, revision)
            if cached is not None and cached.is_valid(self._ttl):
                logger.debug("Listing cache hit for %s@%s", repo_id, revision)
                return list(cached.entries)

        entries = self._fetch_all(repo_id, revision)

        if self._cache is not None:
            self._cache.save(CachedListing(repo_id=repo_id, revision=revision, entries=entries))
        return entries

    def _fetch_all(self, repo_id: str, revision: str) -> list[RepoEntry]:
        files: list[RepoEntry] = []
        pending = [self._fetch_tree(repo_id, revision, None)]
        while pending:
            for entry in pending.pop():
                if not entry.is_directory:
                    files.append(entry)
                    continue
                try:
                    pending.append(self._fetch_tree(repo_id, revision, entry.path))
                except ResolutionError as exc:
                    logger.warning("Skipping %s in %s@%s: %s", entry.path, repo_id, revision, exc)
        return sorted(files, key=lambda e: e.path)

    def _fetch_tree(self, repo_id: str, revision: str, path: str | None) -> list[RepoEntry]:
        url = f"{self.api_base}/{repo_id}/tree/{quote(revision, safe='')}"
        if path:
            url = f"{url}/{quote(path, safe='/')}"

        self.fetch_count += 1
        try:
            response = self._client.get(url)
            response.raise_for_status()
            items = response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 404:
                raise RepositoryNotFoundError(repo_id) from exc
            if status in AUTH_STATUS_CODES:
                raise AuthenticationRequiredError(repo_id) from exc
            raise TransientNetworkError(repo_id, "listing", f"HTTP {status} from {url}") from exc
        except httpx.RequestError as exc:
            raise TransientNetworkError(repo_id, "listing", f"{type(exc).__name__}: {exc}") from exc
        except ValueError as exc:
            raise TransientNetworkError(repo_id, "listing", f"invalid JSON from {url}") from exc

        return [
            RepoEntry(
                path=item["path"],
                size_bytes=int(item.get("size") or 0),
                is_directory=item.get("type") == "directory",
            )
            for item in items
            if isinstance(item, dict) and item.get("path")
        ]
