"""Resumable artifact downloads into the CacheStore layout.

Bytes land in a ``.part`` sibling first. The final name appears only after
the writer is closed, so readers never see a half-written artifact.
"""

from __future__ import annotations

import logging
import os
import re
import time
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Optional

import httpx
from pydantic import BaseModel

from hubresolve.cache.store import CacheStore, is_placeholder
from hubresolve.core.cancellation import CancellationToken
from hubresolve.core.config import HubConfig
from hubresolve.core.exceptions import (
    AuthenticationRequiredError,
    DownloadError,
    ModelNotFoundError,
)
from hubresolve.discovery.patterns import CONFIG_FILE_NAMES, MODEL_EXTENSION
from hubresolve.hub.http import AUTH_STATUS_CODES, create_http_client, is_transient
from hubresolve.models.discovery import DiscoveryResult

logger = logging.getLogger(__name__)

PART_SUFFIX = ".part"
_CONTENT_RANGE_RE = re.compile(r"^bytes\s+(\d+)-(\d+)/(\d+|\*)$")


class DownloadProgress(BaseModel):
    file_name: str
    bytes_downloaded: int
    total_bytes: Optional[int] = None


ProgressCallback = Callable[[DownloadProgress], None]


def parse_content_range_total(header_value: str | None) -> int | None:
    """Total length from ``bytes start-end/total``, or None if absent or ``*``."""
    if not header_value:
        return None
    match = _CONTENT_RANGE_RE.match(header_value.strip())
    if match is None or match.group(3) == "*":
        return None
    return int(match.group(3))


class ArtifactDownloader:
    """Downloads repository files with resume, retry and cancellation."""

    def __init__(
        self,
        store: CacheStore,
        config: HubConfig | None = None,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._config = config or HubConfig()
        self._client = client or create_http_client(self._config, timeout=self._config.download_timeout)
        self._sleep = sleep

    def resolve_url(self, repo_id: str, path: str, revision: str = "main") -> str:
        return f"{self._config.endpoint.rstrip('/')}/{repo_id}/resolve/{revision}/{path}"

    def close(self) -> None:
        self._client.close()

    def download(
        self,
        repo_id: str,
        files: Iterable[str],
        revision: str = "main",
        subfolder: str | None = None,
        progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> Path:
        """Download ``files`` (relative to ``subfolder``) and return the snapshot path.

        Config and tokenizer files missing from the subfolder are taken from
        the repository root instead.
        """
        for name in files:
            if cancel is not None:
                cancel.raise_if_cancelled()
            path = f"{subfolder.strip('/')}/{name}" if subfolder else name
            is_config = name.rsplit("/", 1)[-1] in CONFIG_FILE_NAMES
            got = self.download_file(
                repo_id, path, revision, required=not (is_config and bool(subfolder)),
                progress=progress, cancel=cancel,
            )
            if got is None:
                logger.info("%s not in %s/%s, trying repository root", name, repo_id, subfolder)
                self.download_file(repo_id, name, revision, required=False, progress=progress, cancel=cancel)
        return self._store.snapshot_path(repo_id, revision)

    def download_discovered(
        self,
        result: DiscoveryResult,
        progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> Path:
        """Fetch every file of a discovery manifest. Config files are optional."""
        if self._store.is_model_cached(result.repo_id, result.all_files(), result.revision):
            logger.info("%s@%s already cached", result.repo_id, result.revision)
            return self._store.snapshot_path(result.repo_id, result.revision)
        required = set(result.primary_files) | set(result.external_data_files)
        for path in result.all_files():
            if cancel is not None:
                cancel.raise_if_cancelled()
            self.download_file(
                result.repo_id, path, result.revision, required=path in required,
                progress=progress, cancel=cancel,
            )
        return self._store.snapshot_path(result.repo_id, result.revision)

    def download_file(
        self,
        repo_id: str,
        path: str,
        revision: str = "main",
        required: bool = True,
        progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> Path | None:
        """Download one file. Returns None for a missing optional file."""
        dest = self._store.file_path(repo_id, path, revision)
        if self._store.is_complete(dest):
            logger.debug("Already cached: %s", dest)
            return dest

        url = self.resolve_url(repo_id, path, revision)
        attempts = max(1, self._config.max_retries)
        for attempt in range(1, attempts + 1):
            try:
                self._fetch(url, dest, progress, cancel)
                break
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                if status in AUTH_STATUS_CODES:
                    raise AuthenticationRequiredError(repo_id, "download") from exc
                if status == 404:
                    if not required:
                        return None
                    raise ModelNotFoundError(repo_id, "download", f"{path} not found") from exc
                if not is_transient(exc) or attempt == attempts:
                    raise DownloadError(repo_id, path, f"HTTP {status}") from exc
                self._backoff(path, attempt, exc)
            except httpx.TransportError as exc:
                if attempt == attempts:
                    raise DownloadError(repo_id, path, f"{type(exc).__name__}: {exc}") from exc
                self._backoff(path, attempt, exc)

        if path.lower().endswith(MODEL_EXTENSION) and is_placeholder(dest):
            dest.unlink(missing_ok=True)
            raise DownloadError(
                repo_id, path, "server returned a git-lfs pointer instead of the model file",
            )
        return dest

    def _backoff(self, path: str, attempt: int, exc: Exception) -> None:
        delay = 2 ** (attempt - 1)
        logger.warning("Download of %s failed (attempt %d): %s; retrying in %ds", path, attempt, exc, delay)
        self._sleep(delay)

    def _fetch(
        self,
        url: str,
        dest: Path,
        progress: ProgressCallback | None,
        cancel: CancellationToken | None,
    ) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)
        part = dest.with_name(dest.name + PART_SUFFIX)
        offset = part.stat().st_size if part.exists() else 0
        headers = {"Range": f"bytes={offset}-"} if offset else {}

        with self._client.stream("GET", url, headers=headers) as response:
            if response.status_code == 416 and offset:
                # the .part already holds the whole file
                logger.debug("Range satisfied for %s, finishing %s", url, part)
            else:
                response.raise_for_status()
                if response.status_code == 206:
                    mode = "ab"
                    total = parse_content_range_total(response.headers.get("Content-Range"))
                else:
                    mode, offset = "wb", 0
                    length = response.headers.get("Content-Length")
                    total = int(length) if length and length.isdigit() else None

                downloaded = offset
                with part.open(mode) as fh:
                    for chunk in response.iter_bytes(self._config.chunk_size):
                        if cancel is not None:
                            cancel.raise_if_cancelled()
                        fh.write(chunk)
                        downloaded += len(chunk)
                        if progress is not None:
                            progress(DownloadProgress(
                                file_name=dest.name, bytes_downloaded=downloaded, total_bytes=total,
                            ))

        os.replace(part, dest)
