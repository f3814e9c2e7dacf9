"""IInferenceEngine adapter over onnxruntime (install the ``onnx`` extra)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import onnxruntime as ort

from hubresolve.models.backend import BackendCandidate, BackendKind

logger = logging.getLogger(__name__)

PROVIDER_NAMES: dict[BackendKind, list[str]] = {
    BackendKind.CUDA12: ["CUDAExecutionProvider"],
    BackendKind.CUDA13: ["CUDAExecutionProvider"],
    BackendKind.DIRECTML: ["DmlExecutionProvider"],
    BackendKind.COREML: ["CoreMLExecutionProvider"],
    BackendKind.METAL: ["CoreMLExecutionProvider"],
}


def providers_for(candidate: BackendCandidate) -> list[str]:
    """onnxruntime provider list for a candidate; CPU is always last."""
    return [*PROVIDER_NAMES.get(candidate.kind, []), "CPUExecutionProvider"]


class OnnxRuntimeEngine:
    """Creates ``onnxruntime.InferenceSession`` objects for resolved backends."""

    def __init__(self, session_options: ort.SessionOptions | None = None) -> None:
        self._session_options = session_options

    def create_session(
        self,
        model_path: Path,
        candidate: BackendCandidate,
        options: dict[str, Any] | None = None,
    ) -> ort.InferenceSession:
        available = set(ort.get_available_providers())
        chosen = [p for p in providers_for(candidate) if p in available] or ["CPUExecutionProvider"]
        if not candidate.is_cpu and chosen == ["CPUExecutionProvider"]:
            logger.debug("onnxruntime build has no provider for %s", candidate)
        return ort.InferenceSession(
            str(model_path),
            sess_options=self._session_options,
            providers=chosen,
            provider_options=[options.get(p, {}) for p in chosen] if options else None,
        )

    def get_active_providers(self, session: ort.InferenceSession) -> list[str]:
        return list(session.get_providers())

    def close_session(self, session: ort.InferenceSession) -> None:
        # sessions release native memory when collected
        del session
