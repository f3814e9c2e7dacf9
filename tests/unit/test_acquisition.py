"""Tests for RuntimeAcquisition and the once-only RuntimeResolver."""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from hubresolve.core.exceptions import (
    BackendUnavailableError,
    OperationCancelledError,
    RuntimeActivationError,
)
from hubresolve.models.backend import BackendCandidate, BackendKind, GpuInfo, GpuVendor, PlatformInfo
from hubresolve.models.preferences import DevicePreference
from hubresolve.runtime.acquisition import RuntimeAcquisition, RuntimeResolver, is_gpu_active
from tests.fakes import FakeBinarySource, FakeInferenceEngine

LINUX = PlatformInfo(system="Linux", machine="x86_64")
WINDOWS = PlatformInfo(system="Windows", machine="AMD64")
MAC_ARM = PlatformInfo(system="Darwin", machine="arm64")
MODEL = Path("/models/model.onnx")

CPU = BackendCandidate.of(BackendKind.CPU)
CUDA12 = BackendCandidate.of(BackendKind.CUDA12)
DIRECTML = BackendCandidate.of(BackendKind.DIRECTML)


def libraries(*present: str):
    def find_library(name):
        return f"lib{name}.so" if name in present else None
    return find_library


NVIDIA = GpuInfo(vendor=GpuVendor.NVIDIA, cuda_driver_major=12)


class TestPreflight:
    def test_cuda_without_libraries(self):
        acq = RuntimeAcquisition(FakeInferenceEngine(), LINUX, find_library=libraries())
        with pytest.raises(BackendUnavailableError) as exc_info:
            acq.preflight(CUDA12)
        assert exc_info.value.backend == "cuda12"

    def test_cuda_with_libraries(self):
        acq = RuntimeAcquisition(FakeInferenceEngine(), LINUX, find_library=libraries("cublas"))
        acq.preflight(CUDA12)

    def test_cuda_never_on_macos(self):
        acq = RuntimeAcquisition(FakeInferenceEngine(), MAC_ARM, find_library=libraries("cublas"))
        with pytest.raises(BackendUnavailableError, match="macOS"):
            acq.preflight(CUDA12)

    def test_directml_requires_windows(self):
        acq = RuntimeAcquisition(FakeInferenceEngine(), LINUX)
        with pytest.raises(BackendUnavailableError):
            acq.preflight(DIRECTML)
        RuntimeAcquisition(FakeInferenceEngine(), WINDOWS).preflight(DIRECTML)

    def test_vulkan_needs_loader(self):
        vulkan = BackendCandidate.of(BackendKind.VULKAN)
        with pytest.raises(BackendUnavailableError):
            RuntimeAcquisition(FakeInferenceEngine(), LINUX, find_library=libraries()).preflight(vulkan)
        RuntimeAcquisition(FakeInferenceEngine(), LINUX, find_library=libraries("vulkan")).preflight(vulkan)

    def test_ensure_backend_uses_binary_source(self, tmp_path):
        source = FakeBinarySource(tmp_path)
        acq = RuntimeAcquisition(FakeInferenceEngine(), LINUX, source, find_library=libraries("cublas"))

        binaries = acq.ensure_backend(BackendCandidate.of(BackendKind.CUDA13))

        assert binaries.provider_token == "cuda12"
        assert source.calls == [("cuda12", "linux-x64")]

    def test_ensure_backend_without_source(self):
        assert RuntimeAcquisition(FakeInferenceEngine(), LINUX).ensure_backend(CPU) is None


class TestResolve:
    def test_preflight_failure_skips_without_session(self):
        engine = FakeInferenceEngine()
        acq = RuntimeAcquisition(engine, LINUX, find_library=libraries())

        result = acq.resolve(MODEL, [CUDA12, CPU])

        assert result.candidate == CPU
        assert result.fell_back
        assert [s.candidate for s in result.skipped] == [CUDA12]
        assert engine.created == [CPU]

    def test_silent_provider_fallback_is_detected(self):
        engine = FakeInferenceEngine(degrade={BackendKind.CUDA12})
        acq = RuntimeAcquisition(engine, LINUX, find_library=libraries("cublas"))

        result = acq.resolve(MODEL, [CUDA12, CPU])

        assert result.candidate == CPU
        assert "silently fell back" in result.skipped[0].reason
        assert len(engine.closed) == 1
        assert engine.closed[0].candidate == CUDA12

    def test_gpu_session_accepted(self):
        engine = FakeInferenceEngine()
        acq = RuntimeAcquisition(engine, LINUX, find_library=libraries("cublas"))

        result = acq.resolve(MODEL, [CUDA12, CPU])

        assert result.candidate == CUDA12
        assert not result.fell_back
        assert is_gpu_active(result.active_providers)

    def test_session_error_falls_back(self):
        engine = FakeInferenceEngine(fail={BackendKind.CUDA12})
        acq = RuntimeAcquisition(engine, LINUX, find_library=libraries("cublas"))
        assert acq.resolve(MODEL, [CUDA12, CPU]).candidate == CPU

    def test_cpu_failure_is_fatal(self):
        acq = RuntimeAcquisition(FakeInferenceEngine(fail={BackendKind.CPU}), LINUX)
        with pytest.raises(RuntimeActivationError):
            acq.resolve(MODEL, [CPU])

    def test_cancellation_propagates(self):
        class CancellingEngine(FakeInferenceEngine):
            def create_session(self, model_path, candidate, options=None):
                raise OperationCancelledError("stop")

        acq = RuntimeAcquisition(CancellingEngine(), LINUX)
        with pytest.raises(OperationCancelledError):
            acq.resolve(MODEL, [CPU])


class TestRuntimeResolver:
    def make(self, tmp_path, platform=LINUX, gpu=NVIDIA, find_library=None, engine=None, requested=DevicePreference.AUTO):
        probes = []

        def probe():
            probes.append(1)
            time.sleep(0.01)
            return gpu

        source = FakeBinarySource(tmp_path)
        acq = RuntimeAcquisition(
            engine or FakeInferenceEngine(), platform, source,
            find_library=find_library or libraries("cublas"),
        )
        resolver = RuntimeResolver(acq, platform, probe, requested)
        return resolver, probes, source

    def test_initialize_runs_once_across_threads(self, tmp_path):
        resolver, probes, source = self.make(tmp_path)
        results = []

        def worker():
            results.append(resolver.initialize())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(probes) == 1
        assert len(source.calls) == 2
        assert all(r == [CUDA12, CPU] for r in results)
        assert resolver.initialized

    def test_independent_instances(self, tmp_path):
        first, first_probes, _ = self.make(tmp_path / "a")
        second, second_probes, _ = self.make(tmp_path / "b", gpu=GpuInfo())

        assert first.initialize() == [CUDA12, CPU]
        assert second.initialize() == [CPU]
        assert (len(first_probes), len(second_probes)) == (1, 1)

    def test_unavailable_candidates_dropped_at_initialize(self, tmp_path):
        resolver, _, source = self.make(tmp_path, find_library=libraries())

        assert resolver.initialize() == [CPU]

        result = resolver.activate(MODEL)
        assert result.candidate == CPU
        assert [s.candidate for s in result.skipped] == [CUDA12]
        assert resolver.active_backend == CPU

    def test_activate_picks_first_working_backend(self, tmp_path):
        resolver, _, _ = self.make(tmp_path)
        result = resolver.activate(str(MODEL))
        assert result.candidate == CUDA12
        assert resolver.active_backend == CUDA12

    def test_explicit_cpu_request(self, tmp_path):
        resolver, _, _ = self.make(tmp_path, requested=DevicePreference.CPU)
        assert resolver.initialize() == [CPU]
