"""Discovery manifest models."""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from hubresolve.models.preferences import DecoderVariant, Quantization, Role


class Architecture(StrEnum):
    UNKNOWN = "unknown"
    SINGLE_MODEL = "single_model"
    ENCODER_DECODER = "encoder_decoder"
    DIFFUSION_PIPELINE = "diffusion_pipeline"


class ModelVariants(BaseModel):
    """Model files grouped by the precision or device they target."""

    model_config = ConfigDict(frozen=True)

    default: list[str] = Field(default_factory=list)
    fp16: list[str] = Field(default_factory=list)
    int8: list[str] = Field(default_factory=list)
    int4: list[str] = Field(default_factory=list)
    cpu: list[str] = Field(default_factory=list)
    cuda: list[str] = Field(default_factory=list)


class DiscoveryResult(BaseModel):
    """The exact file set to fetch for one repository and preference set.

    Every path listed here appears in the listing it was derived from.
    ``available_variants`` covers every model file in the repository, not
    only the selected ones.
    """

    model_config = ConfigDict(frozen=True)

    repo_id: str
    revision: str = "main"
    subfolder: Optional[str] = None
    architecture: Architecture = Architecture.UNKNOWN
    primary_files: list[str] = Field(default_factory=list)
    external_data_files: list[str] = Field(default_factory=list)
    config_files: list[str] = Field(default_factory=list)
    role_assignments: dict[Role, str] = Field(default_factory=dict)
    decoder_variant: Optional[DecoderVariant] = None
    quantization: Optional[Quantization] = None
    available_variants: ModelVariants = Field(default_factory=ModelVariants)

    @property
    def encoder_file(self) -> Optional[str]:
        return self.role_assignments.get(Role.ENCODER)

    @property
    def decoder_file(self) -> Optional[str]:
        return self.role_assignments.get(Role.DECODER)

    @property
    def is_encoder_decoder(self) -> bool:
        return self.encoder_file is not None and self.decoder_file is not None

    @property
    def has_external_data(self) -> bool:
        return bool(self.external_data_files)

    def all_files(self) -> list[str]:
        """Model files first, then their external data, then configs."""
        seen: dict[str, None] = {}
        for path in (*self.primary_files, *self.external_data_files, *self.config_files):
            seen.setdefault(path, None)
        return list(seen)

    def file_names(self) -> list[str]:
        return [p.rsplit("/", 1)[-1] for p in self.all_files()]
