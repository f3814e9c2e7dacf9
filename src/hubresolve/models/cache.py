"""Local cache reporting models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from hubresolve.models.repository import RepoMetadata

COMPLETE_MIN_BYTES = 1024 * 1024


class ModelType(StrEnum):
    UNKNOWN = "unknown"
    GENERATOR = "generator"
    EMBEDDER = "embedder"
    RERANKER = "reranker"
    TRANSCRIBER = "transcriber"
    SYNTHESIZER = "synthesizer"
    DETECTOR = "detector"
    CAPTIONER = "captioner"
    TRANSLATOR = "translator"
    OCR = "ocr"
    SEGMENTER = "segmenter"
    IMAGE_GENERATOR = "image_generator"


class CachedModelInfo(BaseModel):
    """One locally cached model, reported from its newest snapshot."""

    repo_id: str
    revision: str
    local_path: Path
    size_bytes: int = 0
    file_count: int = 0
    last_modified: Optional[datetime] = None
    model_type: ModelType = ModelType.UNKNOWN
    metadata: Optional[RepoMetadata] = None

    @property
    def is_complete(self) -> bool:
        return self.size_bytes >= COMPLETE_MIN_BYTES
