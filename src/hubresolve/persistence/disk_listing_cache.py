"""On-disk listing cache under ``{cache_root}/.discovery-cache``."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from hubresolve.models.repository import CachedListing

logger = logging.getLogger(__name__)

CACHE_DIR_NAME = ".discovery-cache"


def listing_file_name(repo_id: str, revision: str) -> str:
    safe = repo_id.replace("/", "_").replace("\\", "_")
    return f"{safe}_{revision}.json"


class DiskListingCache:
    """IListingCache storing one JSON document per (repo_id, revision).

    Unreadable or invalid files are treated as absent and are overwritten by
    the next successful save.
    """

    def __init__(self, cache_root: Path | str) -> None:
        self._dir = Path(cache_root) / CACHE_DIR_NAME

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, repo_id: str, revision: str) -> Path:
        return self._dir / listing_file_name(repo_id, revision)

    def load(self, repo_id: str, revision: str) -> CachedListing | None:
        path = self.path_for(repo_id, revision)
        if not path.is_file():
            return None
        try:
            listing = CachedListing.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError, ValueError) as exc:
            logger.warning("Ignoring corrupt listing cache %s: %s", path, exc)
            return None
        if listing.repo_id != repo_id or listing.revision != revision:
            logger.warning("Listing cache %s belongs to %s@%s", path, listing.repo_id, listing.revision)
            return None
        return listing

    def save(self, listing: CachedListing) -> None:
        path = self.path_for(listing.repo_id, listing.revision)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self._dir, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(listing.model_dump_json())
            os.replace(tmp, path)
        except OSError as exc:
            # a failed write only costs a refetch next time
            logger.warning("Could not write listing cache %s: %s", path, exc)

    def invalidate(self, repo_id: str, revision: str) -> None:
        self.path_for(repo_id, revision).unlink(missing_ok=True)
