"""Tests for the onnxruntime engine adapter (needs the ``onnx`` extra)."""

from __future__ import annotations

import pytest

pytest.importorskip("onnxruntime")

from hubresolve.models.backend import BackendCandidate, BackendKind  # noqa: E402
from hubresolve.runtime.onnx_engine import OnnxRuntimeEngine, providers_for  # noqa: E402


@pytest.mark.parametrize("kind,expected", [
    (BackendKind.CPU, ["CPUExecutionProvider"]),
    (BackendKind.CUDA13, ["CUDAExecutionProvider", "CPUExecutionProvider"]),
    (BackendKind.DIRECTML, ["DmlExecutionProvider", "CPUExecutionProvider"]),
    (BackendKind.METAL, ["CoreMLExecutionProvider", "CPUExecutionProvider"]),
    (BackendKind.VULKAN, ["CPUExecutionProvider"]),
])
def test_providers_for(kind, expected):
    assert providers_for(BackendCandidate.of(kind)) == expected


def test_missing_model_raises(tmp_path):
    engine = OnnxRuntimeEngine()
    with pytest.raises(Exception):
        engine.create_session(tmp_path / "absent.onnx", BackendCandidate.of(BackendKind.CPU))
