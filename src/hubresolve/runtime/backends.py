"""Hardware-aware ordering of execution backends."""

from __future__ import annotations

import logging

from hubresolve.models.backend import (
    BackendCandidate,
    BackendKind,
    GpuInfo,
    GpuVendor,
    PlatformInfo,
)
from hubresolve.models.preferences import DevicePreference

logger = logging.getLogger(__name__)

SECONDARY_VENDORS = frozenset({GpuVendor.AMD, GpuVendor.INTEL, GpuVendor.QUALCOMM})


def _cuda_kinds(gpu: GpuInfo) -> list[BackendKind]:
    """Newest driver-compatible CUDA build first."""
    major = gpu.cuda_driver_major
    if major is None:
        return [BackendKind.CUDA12]
    kinds = []
    if major >= 13:
        kinds.append(BackendKind.CUDA13)
    if major >= 12:
        kinds.append(BackendKind.CUDA12)
    return kinds


def _explicit_kind(requested: DevicePreference, platform: PlatformInfo, gpu: GpuInfo) -> BackendKind:
    if requested == DevicePreference.CUDA:
        kinds = _cuda_kinds(gpu)
        return kinds[0] if kinds else BackendKind.CUDA12
    if requested == DevicePreference.DIRECTML:
        return BackendKind.DIRECTML if platform.is_windows else BackendKind.VULKAN
    if requested == DevicePreference.COREML:
        return BackendKind.METAL if platform.is_apple_silicon else BackendKind.COREML
    return BackendKind.CPU


class BackendResolver:
    """Builds fallback chains that always end with exactly one CPU entry."""

    def build_fallback_chain(
        self,
        platform: PlatformInfo,
        gpu: GpuInfo,
        requested: DevicePreference = DevicePreference.AUTO,
    ) -> list[BackendCandidate]:
        if requested != DevicePreference.AUTO:
            kinds = [_explicit_kind(requested, platform, gpu)]
        elif platform.is_apple_silicon:
            kinds = [BackendKind.METAL]
        elif gpu.vendor == GpuVendor.NVIDIA:
            kinds = _cuda_kinds(gpu)
        else:
            if gpu.vendor in SECONDARY_VENDORS:
                logger.info(
                    "%s GPU found; vulkan is only used when requested explicitly", gpu.vendor.value,
                )
            kinds = []

        chain: list[BackendCandidate] = []
        for kind in [*kinds, BackendKind.CPU]:
            candidate = BackendCandidate.of(kind)
            if candidate not in chain:
                chain.append(candidate)
        logger.debug("Fallback chain (%s): %s", requested.value, [str(c) for c in chain])
        return chain
