"""Host platform and GPU probing."""

from __future__ import annotations

import logging
import platform
import re
import subprocess
from collections.abc import Callable
from pathlib import Path

from hubresolve.models.backend import GpuInfo, GpuVendor, PlatformInfo

logger = logging.getLogger(__name__)

DRM_ROOT = Path("/sys/class/drm")

PCI_VENDOR_IDS = {
    "0x10de": GpuVendor.NVIDIA,
    "0x1002": GpuVendor.AMD,
    "0x8086": GpuVendor.INTEL,
    "0x5143": GpuVendor.QUALCOMM,
}

_CUDA_VERSION_RE = re.compile(r"CUDA Version:\s*(\d+)\.(\d+)")

Runner = Callable[..., subprocess.CompletedProcess]


def probe_platform() -> PlatformInfo:
    return PlatformInfo(system=platform.system(), machine=platform.machine())


def _probe_nvidia(run: Runner) -> GpuInfo | None:
    try:
        query = run(
            ["nvidia-smi", "--query-gpu=name,memory.total", "--format=csv,noheader,nounits"],
            capture_output=True, text=True, check=True, timeout=10,
        )
        banner = run(["nvidia-smi"], capture_output=True, text=True, check=True, timeout=10)
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("nvidia-smi unavailable: %s", exc)
        return None

    first = query.stdout.strip().splitlines()[0] if query.stdout.strip() else ""
    name, _, memory = first.partition(",")
    match = _CUDA_VERSION_RE.search(banner.stdout)
    memory = memory.strip()
    return GpuInfo(
        vendor=GpuVendor.NVIDIA,
        device_name=name.strip() or None,
        memory_mb=int(memory) if memory.isdigit() else None,
        cuda_driver_major=int(match.group(1)) if match else None,
        cuda_driver_minor=int(match.group(2)) if match else None,
    )


def _probe_drm_vendor(drm_root: Path) -> GpuVendor:
    """First known PCI vendor among DRM cards (Linux only)."""
    if not drm_root.is_dir():
        return GpuVendor.UNKNOWN
    for vendor_file in sorted(drm_root.glob("card*/device/vendor")):
        try:
            vendor_id = vendor_file.read_text().strip().lower()
        except OSError:
            continue
        vendor = PCI_VENDOR_IDS.get(vendor_id)
        if vendor is not None:
            return vendor
    return GpuVendor.UNKNOWN


def probe_gpu(
    platform_info: PlatformInfo | None = None,
    run: Runner = subprocess.run,
    drm_root: Path = DRM_ROOT,
) -> GpuInfo:
    """Best-effort GPU detection. Never raises; unknown hardware reports UNKNOWN."""
    platform_info = platform_info or probe_platform()

    if platform_info.is_apple_silicon:
        return GpuInfo(vendor=GpuVendor.APPLE, device_name="Apple Silicon", coreml_supported=True)

    nvidia = _probe_nvidia(run)
    if nvidia is not None:
        nvidia.directml_supported = platform_info.is_windows
        return nvidia

    vendor = _probe_drm_vendor(drm_root) if platform_info.system == "Linux" else GpuVendor.UNKNOWN
    return GpuInfo(
        vendor=vendor,
        directml_supported=platform_info.is_windows,
        coreml_supported=platform_info.is_macos,
    )
