"""Architecture classification and role partitioning of repository files."""

from __future__ import annotations

from collections.abc import Iterable

from hubresolve.discovery.patterns import (
    DECODER_PATTERNS,
    DECODER_VARIANT_TOKENS,
    DIFFUSION_MIN_COMPONENTS,
    DIFFUSION_PIPELINE_DIRECTORIES,
    ENCODER_PATTERNS,
    MODEL_EXTENSION,
)
from hubresolve.models.discovery import Architecture
from hubresolve.models.preferences import DecoderVariant, Role
from hubresolve.models.repository import RepoEntry


def model_files(entries: Iterable[RepoEntry]) -> list[RepoEntry]:
    """Model files only, matched on extension regardless of case."""
    return [
        e for e in entries
        if not e.is_directory and e.path.lower().endswith(MODEL_EXTENSION)
    ]


def _matches_any(name: str, patterns: list[str]) -> bool:
    name = name.lower()
    return any(name.endswith(p) for p in patterns)


def is_encoder_file(entry: RepoEntry) -> bool:
    return _matches_any(entry.name, ENCODER_PATTERNS)


def is_decoder_file(entry: RepoEntry) -> bool:
    return _matches_any(entry.name, DECODER_PATTERNS)


def pipeline_components(entries: Iterable[RepoEntry]) -> set[str]:
    """Known diffusion component directories that hold at least one model file."""
    found = set()
    for entry in model_files(entries):
        top = entry.path.split("/", 1)[0].lower() if "/" in entry.path else ""
        if top in DIFFUSION_PIPELINE_DIRECTORIES:
            found.add(top)
    return found


def classify(entries: Iterable[RepoEntry]) -> Architecture:
    """Diffusion pipeline beats encoder-decoder, which beats a single model."""
    matched = model_files(entries)
    if not matched:
        return Architecture.UNKNOWN

    if len(pipeline_components(matched)) >= DIFFUSION_MIN_COMPONENTS:
        return Architecture.DIFFUSION_PIPELINE

    if any(is_encoder_file(e) for e in matched) and any(is_decoder_file(e) for e in matched):
        return Architecture.ENCODER_DECODER

    if len(matched) == 1:
        return Architecture.SINGLE_MODEL

    return Architecture.UNKNOWN


def partition_roles(entries: Iterable[RepoEntry]) -> dict[Role, list[RepoEntry]]:
    """Assign each model file to the encoder or decoder role.

    Encoder patterns are checked first. Files matching neither are left out.
    """
    roles: dict[Role, list[RepoEntry]] = {Role.ENCODER: [], Role.DECODER: []}
    for entry in model_files(entries):
        if is_encoder_file(entry):
            roles[Role.ENCODER].append(entry)
        elif is_decoder_file(entry):
            roles[Role.DECODER].append(entry)
    return roles


def detect_decoder_variant(path: str) -> DecoderVariant:
    """Merged or with-past by name token, otherwise standard, whatever the precision."""
    name = path.rsplit("/", 1)[-1].lower()
    for variant, token in DECODER_VARIANT_TOKENS.items():
        if token in name:
            return variant
    return DecoderVariant.STANDARD
