"""Backend acquisition and verified activation along a fallback chain."""

from __future__ import annotations

import ctypes.util
import logging
import threading
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from hubresolve.core.exceptions import (
    BackendUnavailableError,
    OperationCancelledError,
    RuntimeActivationError,
)
from hubresolve.core.protocols import IInferenceEngine, IRuntimeBinarySource
from hubresolve.models.backend import (
    ActivationResult,
    BackendCandidate,
    BackendKind,
    GpuInfo,
    PlatformInfo,
    RuntimeBinarySet,
    SkippedCandidate,
)
from hubresolve.models.preferences import DevicePreference
from hubresolve.runtime.backends import BackendResolver

logger = logging.getLogger(__name__)

# Windows DLL stems checked in order; newest CUDA first.
CUDA_WINDOWS_LIBRARIES = [
    "cublasLt64_12", "cublas64_12", "cudnn64_9", "cudnn64_8", "cublasLt64_11", "cublas64_11",
]
CUDA_POSIX_LIBRARIES = ["cublasLt", "cublas", "cudnn"]
VULKAN_LIBRARIES = ["vulkan", "vulkan-1"]

# Provider names that prove a backend really loaded. Kinds absent here are
# trusted once the session is constructed.
EXPECTED_PROVIDERS: dict[BackendKind, tuple[str, ...]] = {
    BackendKind.CUDA12: ("CUDAExecutionProvider", "TensorrtExecutionProvider"),
    BackendKind.CUDA13: ("CUDAExecutionProvider", "TensorrtExecutionProvider"),
    BackendKind.DIRECTML: ("DmlExecutionProvider",),
    BackendKind.COREML: ("CoreMLExecutionProvider",),
    BackendKind.METAL: ("CoreMLExecutionProvider",),
}

GPU_PROVIDER_MARKERS = ("CUDA", "Dml", "DirectML", "CoreML", "Tensorrt")


def is_gpu_active(providers: Sequence[str]) -> bool:
    return any(marker.lower() in p.lower() for p in providers for marker in GPU_PROVIDER_MARKERS)


class RuntimeAcquisition:
    """Pre-flight, binary acquisition and post-construction verification."""

    def __init__(
        self,
        engine: IInferenceEngine,
        platform: PlatformInfo,
        binary_source: IRuntimeBinarySource | None = None,
        find_library: Callable[[str], str | None] = ctypes.util.find_library,
    ) -> None:
        self._engine = engine
        self._platform = platform
        self._binaries = binary_source
        self._find_library = find_library

    # ---- pre-flight ----

    def _has_any_library(self, names: Sequence[str]) -> bool:
        return any(self._find_library(name) for name in names)

    def preflight(self, candidate: BackendCandidate) -> None:
        """Cheap local checks; raises BackendUnavailableError on failure."""
        kind = candidate.kind
        if kind in (BackendKind.CUDA12, BackendKind.CUDA13):
            if self._platform.is_macos:
                raise BackendUnavailableError(kind.value, "CUDA is not supported on macOS")
            names = CUDA_WINDOWS_LIBRARIES if self._platform.is_windows else CUDA_POSIX_LIBRARIES
            if not self._has_any_library(names):
                raise BackendUnavailableError(kind.value, f"none of {', '.join(names)} found")
        elif kind == BackendKind.DIRECTML:
            if not self._platform.is_windows:
                raise BackendUnavailableError(kind.value, "DirectML requires Windows")
        elif kind == BackendKind.METAL:
            if not self._platform.is_apple_silicon:
                raise BackendUnavailableError(kind.value, "Metal requires Apple silicon")
        elif kind == BackendKind.COREML:
            if not self._platform.is_macos:
                raise BackendUnavailableError(kind.value, "CoreML requires macOS")
        elif kind == BackendKind.VULKAN:
            if not self._has_any_library(VULKAN_LIBRARIES):
                raise BackendUnavailableError(kind.value, "Vulkan loader not found")

    def ensure_backend(self, candidate: BackendCandidate) -> RuntimeBinarySet | None:
        """Pre-flight the candidate, then make its native binaries available.

        CPU skips pre-flight. Returns None when no binary source is configured.
        """
        if not candidate.is_cpu:
            self.preflight(candidate)
        if self._binaries is None:
            return None
        return self._binaries.ensure(candidate.provider_token, self._platform.runtime_identifier)

    # ---- activation ----

    def try_activate(
        self,
        model_path: Path,
        candidate: BackendCandidate,
        options: dict[str, Any] | None = None,
    ) -> tuple[Any, list[str]]:
        """Create a session and verify the backend is really in use."""
        try:
            session = self._engine.create_session(model_path, candidate, options)
        except OperationCancelledError:
            raise
        except Exception as exc:
            if candidate.is_cpu:
                raise RuntimeActivationError(f"CPU session failed for {model_path}: {exc}") from exc
            raise BackendUnavailableError(candidate.kind.value, f"session creation failed: {exc}") from exc

        providers = list(self._engine.get_active_providers(session))
        expected = EXPECTED_PROVIDERS.get(candidate.kind)
        if not candidate.is_cpu and expected and not any(p in providers for p in expected):
            self._engine.close_session(session)
            raise BackendUnavailableError(
                candidate.kind.value, f"silently fell back, active providers: {providers}",
            )
        return session, providers

    def resolve(
        self,
        model_path: Path,
        chain: Sequence[BackendCandidate],
        options: dict[str, Any] | None = None,
    ) -> ActivationResult:
        """Walk ``chain`` until a backend activates. CPU failure is fatal."""
        skipped: list[SkippedCandidate] = []
        for candidate in chain:
            try:
                if not candidate.is_cpu:
                    self.ensure_backend(candidate)
                session, providers = self.try_activate(model_path, candidate, options)
            except BackendUnavailableError as exc:
                logger.warning("Skipping backend %s: %s", candidate, exc.reason)
                skipped.append(SkippedCandidate(candidate=candidate, reason=exc.reason))
                continue
            logger.info(
                "Activated backend %s (gpu=%s, skipped=%s)",
                candidate, is_gpu_active(providers), [str(s.candidate) for s in skipped],
            )
            return ActivationResult(
                candidate=candidate, session=session, active_providers=providers, skipped=skipped,
            )
        raise RuntimeActivationError(
            f"No backend could load {model_path}; tried {[str(c) for c in chain]}",
        )


class RuntimeResolver:
    """Per-runtime resolver with a once-only, thread-safe initialization.

    The first caller probes hardware, builds the chain and acquires binaries;
    concurrent callers block until it finishes and then see the same chain.
    """

    def __init__(
        self,
        acquisition: RuntimeAcquisition,
        platform: PlatformInfo,
        gpu_probe: Callable[[], GpuInfo],
        requested: DevicePreference = DevicePreference.AUTO,
        backend_resolver: BackendResolver | None = None,
    ) -> None:
        self._acquisition = acquisition
        self._platform = platform
        self._gpu_probe = gpu_probe
        self._requested = requested
        self._resolver = backend_resolver or BackendResolver()
        self._lock = threading.Lock()
        self._initialized = False
        self._chain: list[BackendCandidate] = []
        self._skipped: list[SkippedCandidate] = []
        self._active: BackendCandidate | None = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def active_backend(self) -> BackendCandidate | None:
        return self._active

    def initialize(self) -> list[BackendCandidate]:
        if self._initialized:
            return list(self._chain)
        with self._lock:
            if self._initialized:
                return list(self._chain)
            gpu = self._gpu_probe()
            chain = self._resolver.build_fallback_chain(self._platform, gpu, self._requested)
            usable: list[BackendCandidate] = []
            for candidate in chain:
                try:
                    self._acquisition.ensure_backend(candidate)
                except BackendUnavailableError as exc:
                    if candidate.is_cpu:
                        # the engine may bundle CPU kernels; activation decides
                        logger.warning("CPU runtime acquisition failed: %s", exc.reason)
                        usable.append(candidate)
                        continue
                    logger.warning("Skipping backend %s: %s", candidate, exc.reason)
                    self._skipped.append(SkippedCandidate(candidate=candidate, reason=exc.reason))
                    continue
                usable.append(candidate)
            self._chain = usable
            self._initialized = True
        return list(self._chain)

    def activate(self, model_path: Path | str, options: dict[str, Any] | None = None) -> ActivationResult:
        chain = self.initialize()
        result = self._acquisition.resolve(Path(model_path), chain, options)
        self._active = result.candidate
        if self._skipped:
            result = result.model_copy(update={"skipped": [*self._skipped, *result.skipped]})
        return result
