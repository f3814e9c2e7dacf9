"""Repository metadata lookup. Failures degrade to ``None``."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx

from hubresolve.cache.store import CacheStore
from hubresolve.core.config import HubConfig
from hubresolve.hub.http import create_http_client
from hubresolve.models.repository import RepoMetadata

logger = logging.getLogger(__name__)


def _license_from(data: dict[str, Any]) -> str | None:
    for tag in data.get("tags") or []:
        if isinstance(tag, str) and tag.startswith("license:"):
            return tag.split(":", 1)[1]
    card = data.get("cardData") or {}
    license_ = card.get("license")
    return license_ if isinstance(license_, str) else None


def _parse_timestamp(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_metadata(repo_id: str, data: dict[str, Any]) -> RepoMetadata:
    """Map a model API document onto RepoMetadata."""
    card = data.get("cardData") or {}
    gated = data.get("gated")
    return RepoMetadata(
        repo_id=repo_id,
        author=data.get("author") or (repo_id.split("/", 1)[0] if "/" in repo_id else None),
        downloads=int(data.get("downloads") or 0),
        likes=int(data.get("likes") or 0),
        tags=[t for t in data.get("tags") or [] if isinstance(t, str)],
        pipeline_tag=data.get("pipeline_tag"),
        library_name=data.get("library_name"),
        license=_license_from(data),
        last_modified=_parse_timestamp(data.get("lastModified")),
        # the API reports gating as False, "auto" or "manual"
        gated=bool(gated) and gated != "false",
        private=bool(data.get("private")),
        description=data.get("description") or card.get("description"),
    )


class MetadataService:
    """Fetches repository metadata and caches it beside the model snapshots."""

    def __init__(
        self,
        config: HubConfig | None = None,
        store: CacheStore | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._config = config or HubConfig()
        self._store = store
        self._client = client or create_http_client(self._config)

    def get_metadata(self, repo_id: str, use_cache: bool = True) -> RepoMetadata | None:
        if use_cache and self._store is not None:
            cached = self._store.read_metadata(repo_id)
            if cached is not None:
                return cached

        url = f"{self._config.endpoint.rstrip('/')}/api/models/{repo_id}"
        try:
            response = self._client.get(url)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            logger.info("No metadata for %s: HTTP %d", repo_id, exc.response.status_code)
            return None
        except httpx.RequestError as exc:
            logger.warning("Metadata request for %s failed: %s", repo_id, exc)
            return None
        except ValueError as exc:
            logger.warning("Invalid metadata JSON for %s: %s", repo_id, exc)
            return None

        if not isinstance(data, dict):
            return None
        metadata = parse_metadata(repo_id, data)
        if self._store is not None:
            self._store.write_metadata(metadata)
        return metadata

    def close(self) -> None:
        self._client.close()
