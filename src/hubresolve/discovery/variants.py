"""Quantization and decoder-variant selection among candidate model files.

Selection never fails because of unfamiliar naming: when no preference
matches, the first file of the group in path order is used.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from hubresolve.discovery.classifier import detect_decoder_variant
from hubresolve.discovery.patterns import (
    QUANTIZATION_SUFFIXES,
    QUANTIZATION_TOKENS,
    ROLE_MATCH_SUFFIXES,
)
from hubresolve.models.discovery import ModelVariants
from hubresolve.models.preferences import DecoderVariant, Quantization
from hubresolve.models.repository import RepoEntry


def _stem(name: str) -> str:
    return name.rsplit(".", 1)[0] if "." in name else name


def base_name(path: str) -> str:
    """File name without extension and without its quantization suffix."""
    stem = _stem(path.rsplit("/", 1)[-1])
    lowered = stem.lower()
    for suffix in QUANTIZATION_SUFFIXES:
        if lowered.endswith(suffix):
            return stem[: -len(suffix)]
    return stem


def has_quantization_suffix(path: str) -> bool:
    name = path.rsplit("/", 1)[-1].lower()
    return any(s in name for s in QUANTIZATION_SUFFIXES)


def quantization_of(path: str) -> Quantization | None:
    """The precision a file name advertises; ``DEFAULT`` when it has no suffix."""
    name = path.rsplit("/", 1)[-1].lower()
    for quant, token in QUANTIZATION_TOKENS.items():
        if token in name:
            return quant
    if not has_quantization_suffix(name):
        return Quantization.DEFAULT
    return None


def matches_quantization(entry: RepoEntry, quant: Quantization) -> bool:
    if quant == Quantization.DEFAULT:
        return not has_quantization_suffix(entry.name)
    return QUANTIZATION_TOKENS[quant] in entry.name.lower()


def _pick(group: Sequence[RepoEntry], priorities: Sequence[Quantization]) -> RepoEntry:
    for quant in priorities:
        for entry in group:
            if matches_quantization(entry, quant):
                return entry
    return group[0]


def select_variants(
    candidates: Iterable[RepoEntry], priorities: Sequence[Quantization],
) -> list[RepoEntry]:
    """One file per base-name group, groups in sorted base-name order."""
    groups: dict[str, list[RepoEntry]] = {}
    for entry in sorted(candidates, key=lambda e: e.path):
        groups.setdefault(base_name(entry.path).lower(), []).append(entry)
    return [_pick(groups[key], priorities) for key in sorted(groups)]


def select_best(
    candidates: Iterable[RepoEntry], priorities: Sequence[Quantization],
) -> RepoEntry | None:
    """The preferred file of the first group, or None when there are no candidates."""
    chosen = select_variants(candidates, priorities)
    return chosen[0] if chosen else None


def select_decoder(
    decoders: Sequence[RepoEntry],
    variant_priority: Sequence[DecoderVariant],
    priorities: Sequence[Quantization],
) -> RepoEntry | None:
    """Decoder variant is decided before precision.

    Each variant group holds every precision of that variant, so the
    quantization priority only chooses within the winning group.
    """
    if not decoders:
        return None
    for variant in variant_priority:
        matching = [d for d in decoders if detect_decoder_variant(d.path) == variant]
        if matching:
            return _pick(sorted(matching, key=lambda e: e.path), priorities)
    return select_best(decoders, priorities)


def _role_suffix(path: str) -> str | None:
    name = path.rsplit("/", 1)[-1].lower()
    for suffix in ROLE_MATCH_SUFFIXES:
        if suffix in name:
            return suffix
    return None


def select_matching_encoder(
    encoders: Sequence[RepoEntry],
    decoder: RepoEntry | None,
    priorities: Sequence[Quantization],
    require_matched: bool = True,
) -> RepoEntry | None:
    """Pick the encoder whose precision matches the chosen decoder.

    Without a match the first available encoder is used.
    """
    if not encoders:
        return None
    ordered = sorted(encoders, key=lambda e: e.path)
    if not require_matched or decoder is None:
        return select_best(ordered, priorities)

    suffix = _role_suffix(decoder.path)
    if suffix is not None:
        match = next((e for e in ordered if suffix in e.name.lower()), None)
    else:
        match = next((e for e in ordered if not has_quantization_suffix(e.name)), None)
    return match or ordered[0]


def classify_variants(entries: Iterable[RepoEntry]) -> ModelVariants:
    paths = [e.path for e in entries]
    lowered = [(p, p.lower()) for p in paths]
    return ModelVariants(
        default=[p for p in paths if not has_quantization_suffix(p)],
        fp16=[p for p, low in lowered if "fp16" in low],
        int8=[p for p, low in lowered if "int8" in low],
        int4=[p for p, low in lowered if "int4" in low],
        cpu=[p for p, low in lowered if "cpu" in low],
        cuda=[p for p, low in lowered if "cuda" in low or "gpu" in low],
    )
