"""HuggingFace-compatible on-disk artifact cache.

Layout::

    {cache_root}/models--{org}--{name}/snapshots/{revision}/{relative-path}
    {cache_root}/models--{org}--{name}/.metadata.json

All methods are synchronous. Async callers should use ``asyncio.to_thread()``.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Iterable, Mapping
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from hubresolve.models.cache import CachedModelInfo, ModelType
from hubresolve.models.repository import RepoMetadata

logger = logging.getLogger(__name__)

MODEL_DIR_PREFIX = "models--"
METADATA_FILE = ".metadata.json"
PLACEHOLDER_MAX_BYTES = 1024
PLACEHOLDER_MARKER = b"version https://git-lfs.github.com/spec/v1"


def resolve_cache_root(env: Mapping[str, str] | None = None) -> Path:
    """Resolve the hub cache directory.

    Resolution priority:
    1. HF_HUB_CACHE
    2. HF_HOME + /hub
    3. XDG_CACHE_HOME + /huggingface/hub
    4. ~/.cache/huggingface/hub
    """
    if env is None:
        env = os.environ

    hub_cache = env.get("HF_HUB_CACHE")
    if hub_cache:
        return Path(hub_cache)

    hf_home = env.get("HF_HOME")
    if hf_home:
        return Path(hf_home) / "hub"

    xdg = env.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg) / "huggingface" / "hub"

    return Path.home() / ".cache" / "huggingface" / "hub"


def repo_folder_name(repo_id: str) -> str:
    return MODEL_DIR_PREFIX + repo_id.replace("/", "--")


def repo_id_from_folder(name: str) -> str:
    return name[len(MODEL_DIR_PREFIX):].replace("--", "/")


def is_placeholder(path: Path) -> bool:
    """True for a small git-lfs pointer stub standing in for real content."""
    try:
        if path.stat().st_size >= PLACEHOLDER_MAX_BYTES:
            return False
        with path.open("rb") as fh:
            head = fh.read(len(PLACEHOLDER_MARKER))
    except OSError:
        return False
    return head.startswith(PLACEHOLDER_MARKER)


# (repo id keywords, required file names, resulting type). First hit wins.
_REPO_ID_RULES: list[tuple[tuple[str, ...], tuple[str, ...], ModelType]] = [
    (("phi", "llama", "mistral", "qwen", "gpt"), ("genai_config.json",), ModelType.GENERATOR),
    (("rerank", "cross-encoder"), (), ModelType.RERANKER),
    (("bge-", "/e5-", "gte-", "minilm", "mpnet", "sentence-transformers", "embed"), (), ModelType.EMBEDDER),
    (("stable-diffusion", "lcm", "dreamshaper", "sdxl", "txt2img", "text-to-image"), (), ModelType.IMAGE_GENERATOR),
    (("whisper",), (), ModelType.TRANSCRIBER),
    (("piper", "vits", "tts", "speech"), (), ModelType.SYNTHESIZER),
    (("trocr", "ocr"), (), ModelType.OCR),
    (("opus-mt", "nllb", "m2m100", "translat"), (), ModelType.TRANSLATOR),
    (("blip", "caption", "vit-gpt2"), (), ModelType.CAPTIONER),
    (("yolo", "detr", "detect"), (), ModelType.DETECTOR),
    (("segformer", "sam-", "segment"), (), ModelType.SEGMENTER),
]


def detect_model_type(repo_id: str, files: Iterable[str]) -> ModelType:
    """Guess what a cached model does from its id and file names."""
    paths = [f.replace("\\", "/") for f in files]
    names = {p.rsplit("/", 1)[-1].lower() for p in paths}
    lowered = [p.lower() for p in paths]
    repo = repo_id.lower()

    for keywords, required, model_type in _REPO_ID_RULES:
        if any(k in repo for k in keywords) and all(r in names for r in required):
            return model_type

    if "genai_config.json" in names:
        return ModelType.GENERATOR
    if "encoder_model.onnx" in names and "decoder_model.onnx" in names:
        return ModelType.TRANSCRIBER
    if any(p.endswith(".onnx.json") for p in lowered):
        return ModelType.SYNTHESIZER
    if "model_index.json" in names or all(
        any(part in p for p in lowered) for part in ("unet", "text_encoder", "vae")
    ):
        return ModelType.IMAGE_GENERATOR
    if names & {"sentence_bert_config.json", "modules.json"} or any("pooling" in p for p in lowered):
        return ModelType.EMBEDDER
    if (
        "model.onnx" in names
        and names & {"tokenizer.json", "vocab.txt"}
        and not any("decoder" in p for p in lowered)
    ):
        return ModelType.EMBEDDER
    return ModelType.UNKNOWN


def _dir_size(path: Path) -> tuple[int, int]:
    total = count = 0
    for f in path.rglob("*"):
        if f.is_file():
            total += f.stat().st_size
            count += 1
    return total, count


class CacheStore:
    """Resolves, inspects and prunes cached model snapshots."""

    def __init__(self, root: Path | str | None = None) -> None:
        self._root = Path(root) if root is not None else resolve_cache_root()

    @property
    def root(self) -> Path:
        return self._root

    def model_dir(self, repo_id: str) -> Path:
        return self._root / repo_folder_name(repo_id)

    def snapshot_path(self, repo_id: str, revision: str = "main") -> Path:
        return self.model_dir(repo_id) / "snapshots" / revision

    def file_path(self, repo_id: str, relative_path: str, revision: str = "main") -> Path:
        return self.snapshot_path(repo_id, revision) / relative_path

    def is_complete(self, path: Path | str) -> bool:
        """A file counts as present only if it exists and is not a placeholder."""
        path = Path(path)
        return path.is_file() and not is_placeholder(path)

    def is_model_cached(self, repo_id: str, files: Iterable[str], revision: str = "main") -> bool:
        files = list(files)
        if not files:
            return False
        return all(self.is_complete(self.file_path(repo_id, f, revision)) for f in files)

    def delete(self, repo_id: str) -> bool:
        """Remove every snapshot of ``repo_id``. Returns whether anything existed."""
        target = self.model_dir(repo_id)
        if not target.exists():
            return False
        shutil.rmtree(target)
        logger.info("Deleted cached model %s", repo_id)
        return True

    # ---- metadata ----

    def read_metadata(self, repo_id: str) -> RepoMetadata | None:
        path = self.model_dir(repo_id) / METADATA_FILE
        if not path.is_file():
            return None
        try:
            return RepoMetadata.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError, ValueError) as exc:
            logger.warning("Ignoring unreadable metadata %s: %s", path, exc)
            return None

    def write_metadata(self, metadata: RepoMetadata) -> None:
        model_dir = self.model_dir(metadata.repo_id)
        try:
            model_dir.mkdir(parents=True, exist_ok=True)
            (model_dir / METADATA_FILE).write_text(metadata.model_dump_json(), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not write metadata for %s: %s", metadata.repo_id, exc)

    # ---- enumeration ----

    def get_cached_models(self) -> list[CachedModelInfo]:
        """Report each cached model from its most recently modified snapshot."""
        if not self._root.is_dir():
            return []

        models: list[CachedModelInfo] = []
        for model_dir in sorted(self._root.glob(f"{MODEL_DIR_PREFIX}*")):
            if not model_dir.is_dir():
                continue
            info = self._describe(model_dir)
            if info is not None:
                models.append(info)
        return models

    def _describe(self, model_dir: Path) -> CachedModelInfo | None:
        snapshots_dir = model_dir / "snapshots"
        if not snapshots_dir.is_dir():
            return None
        snapshots = [p for p in snapshots_dir.iterdir() if p.is_dir()]
        if not snapshots:
            return None
        latest = max(snapshots, key=lambda p: p.stat().st_mtime)

        repo_id = repo_id_from_folder(model_dir.name)
        files = sorted(
            f.relative_to(latest).as_posix() for f in latest.rglob("*") if f.is_file()
        )
        size, count = _dir_size(latest)
        return CachedModelInfo(
            repo_id=repo_id,
            revision=latest.name,
            local_path=latest,
            size_bytes=size,
            file_count=count,
            last_modified=datetime.fromtimestamp(latest.stat().st_mtime),
            model_type=detect_model_type(repo_id, files),
            metadata=self.read_metadata(repo_id),
        )

    def total_size(self) -> int:
        """Bytes used by all cached model directories."""
        if not self._root.is_dir():
            return 0
        return sum(
            _dir_size(d)[0] for d in self._root.glob(f"{MODEL_DIR_PREFIX}*") if d.is_dir()
        )
