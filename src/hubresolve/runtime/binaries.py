"""Native runtime binaries fetched once per (provider token, runtime identifier).

Packages come from a NuGet flat-container feed; only the
``runtimes/{rid}/native/`` members are kept. A manifest file marks a set as
complete so later processes reuse it without touching the network.
"""

from __future__ import annotations

import json
import logging
import shutil
import tempfile
import threading
import zipfile
from pathlib import Path

import httpx

from hubresolve.core.config import HubConfig, RuntimeConfig
from hubresolve.core.exceptions import BackendUnavailableError
from hubresolve.hub.http import create_http_client
from hubresolve.models.backend import RuntimeBinarySet

logger = logging.getLogger(__name__)

RUNTIMES_DIR = ".runtimes"
MANIFEST_FILE = ".manifest.json"

# provider token -> package id suffix appended to the base package name
PACKAGE_SUFFIXES: dict[str, str] = {
    "cpu": "",
    "cuda12": ".gpu",
    "directml": ".directml",
    "coreml": "",
}


class RuntimeBinaryCache:
    """IRuntimeBinarySource backed by a package feed and a local directory."""

    def __init__(
        self,
        cache_root: Path | str,
        config: RuntimeConfig | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self._root = Path(cache_root) / RUNTIMES_DIR
        self._config = config or RuntimeConfig()
        self._client = client or create_http_client(HubConfig(), timeout=300.0)
        self._lock = threading.Lock()
        self.download_count = 0

    def directory_for(self, provider_token: str, runtime_identifier: str) -> Path:
        return self._root / provider_token / runtime_identifier

    def package_url(self, provider_token: str) -> str:
        package = self._config.package_name + PACKAGE_SUFFIXES[provider_token]
        version = self._config.package_version
        return f"{self._config.package_feed.rstrip('/')}/{package}/{version}/{package}.{version}.nupkg"

    def cached(self, provider_token: str, runtime_identifier: str) -> RuntimeBinarySet | None:
        directory = self.directory_for(provider_token, runtime_identifier)
        manifest = directory / MANIFEST_FILE
        if not manifest.is_file():
            return None
        try:
            files = json.loads(manifest.read_text(encoding="utf-8"))["files"]
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring broken runtime manifest %s: %s", manifest, exc)
            return None
        if not all((directory / f).is_file() for f in files):
            return None
        return RuntimeBinarySet(
            provider_token=provider_token,
            runtime_identifier=runtime_identifier,
            directory=directory,
            files=files,
        )

    def ensure(self, provider_token: str, runtime_identifier: str) -> RuntimeBinarySet:
        existing = self.cached(provider_token, runtime_identifier)
        if existing is not None:
            return existing
        if provider_token not in PACKAGE_SUFFIXES:
            # shipped with the inference engine itself
            return RuntimeBinarySet(
                provider_token=provider_token,
                runtime_identifier=runtime_identifier,
                directory=self.directory_for(provider_token, runtime_identifier),
            )
        with self._lock:
            existing = self.cached(provider_token, runtime_identifier)
            if existing is not None:
                return existing
            return self._download(provider_token, runtime_identifier)

    def _download(self, provider_token: str, runtime_identifier: str) -> RuntimeBinarySet:
        url = self.package_url(provider_token)
        directory = self.directory_for(provider_token, runtime_identifier)
        logger.info("Downloading %s runtime for %s from %s", provider_token, runtime_identifier, url)
        self.download_count += 1

        self._root.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(dir=self._root) as tmp:
            package = Path(tmp) / "package.nupkg"
            try:
                with self._client.stream("GET", url) as response:
                    response.raise_for_status()
                    with package.open("wb") as fh:
                        for chunk in response.iter_bytes():
                            fh.write(chunk)
            except httpx.HTTPError as exc:
                raise BackendUnavailableError(provider_token, f"runtime download failed: {exc}") from exc

            staging = Path(tmp) / "native"
            files = self._extract_native(package, runtime_identifier, staging)
            if not files:
                raise BackendUnavailableError(
                    provider_token, f"package has no native libraries for {runtime_identifier}",
                )
            (staging / MANIFEST_FILE).write_text(json.dumps({"files": files}), encoding="utf-8")

            if directory.exists():
                shutil.rmtree(directory)
            directory.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(staging), str(directory))

        return RuntimeBinarySet(
            provider_token=provider_token,
            runtime_identifier=runtime_identifier,
            directory=directory,
            files=files,
        )

    @staticmethod
    def _extract_native(package: Path, runtime_identifier: str, staging: Path) -> list[str]:
        prefix = f"runtimes/{runtime_identifier}/native/"
        staging.mkdir(parents=True, exist_ok=True)
        files: list[str] = []
        try:
            with zipfile.ZipFile(package) as archive:
                for member in archive.namelist():
                    if not member.startswith(prefix) or member.endswith("/"):
                        continue
                    name = member[len(prefix):]
                    if "/" in name or name.startswith("."):
                        continue
                    with archive.open(member) as src, (staging / name).open("wb") as dst:
                        shutil.copyfileobj(src, dst)
                    files.append(name)
        except zipfile.BadZipFile as exc:
            raise BackendUnavailableError("runtime", f"corrupt runtime package: {exc}") from exc
        return sorted(files)
