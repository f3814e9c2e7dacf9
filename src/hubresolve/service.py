"""Wires the resolution components together from application settings."""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from hubresolve.cache.store import CacheStore
from hubresolve.core.cancellation import CancellationToken
from hubresolve.core.config import AppSettings
from hubresolve.core.protocols import IInferenceEngine, IListingCache
from hubresolve.discovery.config_reader import ModelConfigReader
from hubresolve.discovery.engine import DiscoveryEngine
from hubresolve.hub.downloader import ArtifactDownloader, ProgressCallback
from hubresolve.hub.metadata import MetadataService
from hubresolve.hub.repository_client import RepositoryClient
from hubresolve.models.backend import BackendCandidate
from hubresolve.models.discovery import DiscoveryResult
from hubresolve.models.preferences import DevicePreference, ModelPreferences
from hubresolve.persistence import create_persistence
from hubresolve.runtime.acquisition import RuntimeAcquisition, RuntimeResolver
from hubresolve.runtime.backends import BackendResolver
from hubresolve.runtime.binaries import RuntimeBinaryCache
from hubresolve.runtime.hardware import probe_gpu, probe_platform

logger = logging.getLogger(__name__)


class ResolutionService:
    """Facade used by the HTTP API and scripts."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        listing_cache: IListingCache | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.settings = settings or AppSettings()
        hub = self.settings.hub
        self.store = CacheStore(self.settings.cache.root)
        if listing_cache is None:
            listing_cache = create_persistence(self.settings)
        self.repository = RepositoryClient(hub, listing_cache, client=http_client)
        self.discovery = DiscoveryEngine(self.repository)
        self.metadata = MetadataService(hub, self.store, client=http_client)
        self.downloader = ArtifactDownloader(self.store, hub, client=http_client)
        self.backends = BackendResolver()

    def discover(
        self,
        repo_id: str,
        preferences: ModelPreferences | None = None,
        revision: str = "main",
        refresh: bool = False,
    ) -> DiscoveryResult:
        return self.discovery.discover(repo_id, preferences, revision, refresh=refresh)

    def fetch(
        self,
        repo_id: str,
        preferences: ModelPreferences | None = None,
        revision: str = "main",
        progress: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
        refresh: bool = False,
    ) -> tuple[DiscoveryResult, Path]:
        """Discover and download a model; returns the manifest and snapshot path."""
        result = self.discover(repo_id, preferences, revision, refresh=refresh)
        path = self.downloader.download_discovered(result, progress=progress, cancel=cancel)
        self.metadata.get_metadata(repo_id)
        return result, path

    def model_config(self, result: DiscoveryResult) -> ModelConfigReader:
        """Config reader for a downloaded manifest, subfolder first, then the root."""
        snapshot = self.store.snapshot_path(result.repo_id, result.revision)
        if result.subfolder:
            return ModelConfigReader(snapshot / result.subfolder, [snapshot])
        return ModelConfigReader(snapshot)

    def fallback_chain(self, device: DevicePreference | None = None) -> list[BackendCandidate]:
        platform = probe_platform()
        requested = device or DevicePreference(self.settings.runtime.device)
        return self.backends.build_fallback_chain(platform, probe_gpu(platform), requested)

    def create_runtime(
        self,
        engine: IInferenceEngine,
        download_binaries: bool = False,
        device: DevicePreference | None = None,
    ) -> RuntimeResolver:
        """A fresh resolver; native binaries are fetched only when asked to."""
        platform = probe_platform()
        binaries = (
            RuntimeBinaryCache(self.store.root, self.settings.runtime) if download_binaries else None
        )
        acquisition = RuntimeAcquisition(engine, platform, binary_source=binaries)
        return RuntimeResolver(
            acquisition,
            platform,
            gpu_probe=lambda: probe_gpu(platform),
            requested=device or DevicePreference(self.settings.runtime.device),
            backend_resolver=self.backends,
        )

    def close(self) -> None:
        self.repository.close()
        self.metadata.close()
        self.downloader.close()
