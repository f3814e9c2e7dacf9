"""Reads model properties from JSON config files by ordered key lookups.

Each property is a list of ``ConfigLookup`` entries tried in order; the first
one whose key path exists (and whose transform accepts the value) wins.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONTEXT_LENGTH = 4096
MIN_SEARCH_MAX_LENGTH = 1024

_MISSING = object()


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _as_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _at_least(minimum: int) -> Callable[[Any], int | None]:
    def transform(value: Any) -> int | None:
        number = _as_int(value)
        return number if number is not None and number >= minimum else None
    return transform


@dataclass(frozen=True)
class ConfigLookup:
    """A dotted key path in one config file plus a value transform.

    A transform returning None means "not usable here, keep looking".
    """

    file_name: str
    path: str
    transform: Callable[[Any], Any] = lambda v: v


CONTEXT_LENGTH_LOOKUPS = [
    ConfigLookup("genai_config.json", "model.context_length", _as_int),
    ConfigLookup("genai_config.json", "model.max_position_embeddings", _as_int),
    ConfigLookup("genai_config.json", "context_length", _as_int),
    # generation defaults below 1024 are conservative, not model limits
    ConfigLookup("genai_config.json", "search.max_length", _at_least(MIN_SEARCH_MAX_LENGTH)),
    ConfigLookup("config.json", "max_position_embeddings", _as_int),
    ConfigLookup("config.json", "n_positions", _as_int),
]

MODEL_TYPE_LOOKUPS = [
    ConfigLookup("genai_config.json", "model.type", _as_str),
    ConfigLookup("config.json", "model_type", _as_str),
]

VOCAB_SIZE_LOOKUPS = [
    ConfigLookup("genai_config.json", "model.vocab_size", _as_int),
    ConfigLookup("config.json", "vocab_size", _as_int),
]


def _walk(document: Any, dotted: str) -> Any:
    node = document
    for key in dotted.split("."):
        if not isinstance(node, dict) or key not in node:
            return _MISSING
        node = node[key]
    return node


class ModelConfigReader:
    """Evaluates config lookups against files in a model directory.

    A file missing from ``model_dir`` is looked up in ``fallback_dirs`` in
    order, matching how config files may sit at the repository root.
    """

    def __init__(self, model_dir: Path | str, fallback_dirs: Sequence[Path | str] = ()) -> None:
        self._dirs = [Path(model_dir), *(Path(d) for d in fallback_dirs)]
        self._documents: dict[str, Any] = {}

    def _document(self, file_name: str) -> Any:
        if file_name not in self._documents:
            self._documents[file_name] = None
            for directory in self._dirs:
                path = directory / file_name
                if not path.is_file():
                    continue
                try:
                    self._documents[file_name] = json.loads(path.read_text(encoding="utf-8"))
                except (OSError, ValueError) as exc:
                    logger.warning("Unreadable model config %s: %s", path, exc)
                break
        return self._documents[file_name]

    def lookup(self, lookups: Sequence[ConfigLookup], default: Any = None) -> Any:
        for item in lookups:
            document = self._document(item.file_name)
            if document is None:
                continue
            raw = _walk(document, item.path)
            if raw is _MISSING:
                continue
            value = item.transform(raw)
            if value is not None:
                return value
        return default

    def max_context_length(self) -> int:
        return self.lookup(CONTEXT_LENGTH_LOOKUPS, DEFAULT_MAX_CONTEXT_LENGTH)

    def model_type(self) -> str | None:
        return self.lookup(MODEL_TYPE_LOOKUPS)

    def vocab_size(self) -> int | None:
        return self.lookup(VOCAB_SIZE_LOOKUPS)
