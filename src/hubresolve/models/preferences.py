"""Caller-supplied preferences steering file discovery."""

from __future__ import annotations

import hashlib
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field


class Quantization(StrEnum):
    DEFAULT = "default"
    FP16 = "fp16"
    INT8 = "int8"
    INT4 = "int4"


class DevicePreference(StrEnum):
    CPU = "cpu"
    CUDA = "cuda"
    DIRECTML = "directml"
    COREML = "coreml"
    AUTO = "auto"


class DecoderVariant(StrEnum):
    MERGED = "merged"
    STANDARD = "standard"
    WITH_PAST = "with_past"


class Role(StrEnum):
    ENCODER = "encoder"
    DECODER = "decoder"


DEFAULT_QUANTIZATION_PRIORITY = [
    Quantization.DEFAULT, Quantization.FP16, Quantization.INT8, Quantization.INT4,
]
DEFAULT_DECODER_PRIORITY = [
    DecoderVariant.MERGED, DecoderVariant.STANDARD, DecoderVariant.WITH_PAST,
]


class ModelPreferences(BaseModel):
    """Per-call selection preferences. Explicit settings always beat heuristics."""

    quantization_priority: list[Quantization] = Field(
        default_factory=lambda: list(DEFAULT_QUANTIZATION_PRIORITY)
    )
    device: DevicePreference = DevicePreference.CPU
    explicit_subfolder: Optional[str] = None
    explicit_files: dict[Role, str] = Field(default_factory=dict)
    require_matched_quantization: bool = True
    decoder_variant_priority: list[DecoderVariant] = Field(
        default_factory=lambda: list(DEFAULT_DECODER_PRIORITY)
    )
    preferred_files: list[str] = Field(default_factory=list)

    @classmethod
    def low_memory(cls) -> ModelPreferences:
        return cls(quantization_priority=[
            Quantization.INT4, Quantization.INT8, Quantization.FP16, Quantization.DEFAULT,
        ])

    @classmethod
    def high_quality(cls) -> ModelPreferences:
        return cls(quantization_priority=list(DEFAULT_QUANTIZATION_PRIORITY))

    @classmethod
    def for_device(cls, device: DevicePreference | str) -> ModelPreferences:
        return cls(device=DevicePreference(device))

    @classmethod
    def preset(cls, name: str) -> ModelPreferences:
        """Look up a named preset: ``default``, ``low_memory`` or ``high_quality``."""
        presets = {
            "default": cls,
            "low_memory": cls.low_memory,
            "high_quality": cls.high_quality,
        }
        try:
            return presets[name]()
        except KeyError:
            raise ValueError(f"Unknown preference preset {name!r}") from None

    def preference_hash(self) -> str:
        """Stable digest used to key memoised discovery results."""
        return hashlib.sha256(self.model_dump_json().encode()).hexdigest()[:16]
