"""Hardware, backend and runtime binary models."""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class BackendKind(StrEnum):
    CPU = "cpu"
    CUDA12 = "cuda12"
    CUDA13 = "cuda13"
    DIRECTML = "directml"
    VULKAN = "vulkan"
    METAL = "metal"
    COREML = "coreml"


# Metal kernels ship in the CPU package; CUDA 13 hosts run the CUDA 12 build.
PROVIDER_TOKENS: dict[BackendKind, str] = {
    BackendKind.CPU: "cpu",
    BackendKind.CUDA12: "cuda12",
    BackendKind.CUDA13: "cuda12",
    BackendKind.DIRECTML: "directml",
    BackendKind.VULKAN: "vulkan",
    BackendKind.METAL: "cpu",
    BackendKind.COREML: "coreml",
}


class BackendCandidate(BaseModel):
    """One entry of a fallback chain."""

    model_config = ConfigDict(frozen=True)

    kind: BackendKind
    provider_token: str

    @classmethod
    def of(cls, kind: BackendKind) -> BackendCandidate:
        return cls(kind=kind, provider_token=PROVIDER_TOKENS[kind])

    @property
    def is_cpu(self) -> bool:
        return self.kind == BackendKind.CPU

    def __str__(self) -> str:
        return self.kind.value


class GpuVendor(StrEnum):
    UNKNOWN = "unknown"
    NVIDIA = "nvidia"
    AMD = "amd"
    INTEL = "intel"
    APPLE = "apple"
    QUALCOMM = "qualcomm"


class GpuInfo(BaseModel):
    vendor: GpuVendor = GpuVendor.UNKNOWN
    device_name: Optional[str] = None
    memory_mb: Optional[int] = None
    cuda_driver_major: Optional[int] = None
    cuda_driver_minor: Optional[int] = None
    directml_supported: bool = False
    coreml_supported: bool = False


class PlatformInfo(BaseModel):
    """Operating system and CPU architecture as reported by ``platform``."""

    system: str
    machine: str

    @property
    def is_apple_silicon(self) -> bool:
        return self.system == "Darwin" and self.machine.lower() in ("arm64", "aarch64")

    @property
    def is_windows(self) -> bool:
        return self.system == "Windows"

    @property
    def is_macos(self) -> bool:
        return self.system == "Darwin"

    @property
    def runtime_identifier(self) -> str:
        os_part = {"Windows": "win", "Darwin": "osx"}.get(self.system, "linux")
        arch = self.machine.lower()
        if arch in ("arm64", "aarch64"):
            arch_part = "arm64"
        elif arch in ("x86", "i386", "i686"):
            arch_part = "x86"
        else:
            arch_part = "x64"
        return f"{os_part}-{arch_part}"


class RuntimeBinarySet(BaseModel):
    """Native libraries for one (provider token, runtime identifier) pair."""

    provider_token: str
    runtime_identifier: str
    directory: Path
    files: list[str] = Field(default_factory=list)


class SkippedCandidate(BaseModel):
    candidate: BackendCandidate
    reason: str


class ActivationResult(BaseModel):
    """Outcome of walking a fallback chain."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    candidate: BackendCandidate
    session: Any = None
    active_providers: list[str] = Field(default_factory=list)
    skipped: list[SkippedCandidate] = Field(default_factory=list)

    @property
    def fell_back(self) -> bool:
        return bool(self.skipped)
