"""Discovery: turn a repository listing plus preferences into a file manifest."""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from collections.abc import Callable, Sequence

from hubresolve.core.exceptions import ModelNotFoundError
from hubresolve.discovery import classifier, variants
from hubresolve.discovery.patterns import (
    CONFIG_FILE_NAMES,
    DEFAULT_DEVICE_KEYWORDS,
    DEVICE_KEYWORDS,
    DIFFUSION_PIPELINE_DIRECTORIES,
    PIPELINE_CONFIG_DIRECTORIES,
    PREFERRED_SUBFOLDERS,
    QUANTIZATION_KEYWORDS,
)
from hubresolve.hub.repository_client import RepositoryClient
from hubresolve.models.discovery import Architecture, DiscoveryResult
from hubresolve.models.preferences import ModelPreferences, Role
from hubresolve.models.repository import RepoEntry

logger = logging.getLogger(__name__)


def detect_subfolder(matched: Sequence[RepoEntry], preferences: ModelPreferences) -> str | None:
    """Choose the directory holding the model files to use.

    Order: explicit override, conventional names, device keywords,
    quantization keywords, then the most populated directory. Returns None
    when every model file sits at the repository root.
    """
    if preferences.explicit_subfolder:
        return preferences.explicit_subfolder.strip("/")

    counts = Counter(e.directory for e in matched)
    if set(counts) <= {""}:
        return None
    folders = sorted(d for d in counts if d)

    for preferred in PREFERRED_SUBFOLDERS:
        for folder in folders:
            low = folder.lower()
            if low == preferred or low.endswith("/" + preferred):
                return folder

    keywords = DEVICE_KEYWORDS.get(preferences.device, DEFAULT_DEVICE_KEYWORDS)
    for keyword in keywords:
        for folder in folders:
            if keyword in folder.lower():
                return folder

    for quant in preferences.quantization_priority:
        keyword = QUANTIZATION_KEYWORDS.get(quant)
        if keyword is None:
            continue
        for folder in folders:
            if keyword in folder.lower():
                return folder

    # most files wins; ties go to the first folder in path order
    return max(folders, key=lambda d: counts[d])


def find_external_data(all_paths: set[str], primary: Sequence[str]) -> list[str]:
    """Companion weight files for each primary file, matched regardless of case.

    Chunks ``<f>_data_0, _data_1, ...`` are returned in numeric order and the
    scan stops at the first missing index.
    """
    by_lower = {p.lower(): p for p in all_paths}
    found: list[str] = []
    for path in primary:
        for candidate in (f"{path}.data", f"{path}_data"):
            actual = by_lower.get(candidate.lower())
            if actual is not None:
                found.append(actual)
        index = 0
        while f"{path}_data_{index}".lower() in by_lower:
            found.append(by_lower[f"{path}_data_{index}".lower()])
            index += 1
    return list(dict.fromkeys(found))


def find_config_files(all_paths: set[str], subfolder: str | None) -> list[str]:
    """Known config files in the root, the subfolder and pipeline directories."""
    locations = ["", *([subfolder] if subfolder else []), *PIPELINE_CONFIG_DIRECTORIES]
    by_lower = {p.lower(): p for p in all_paths}
    found: dict[str, None] = {}
    for location in locations:
        for name in sorted(CONFIG_FILE_NAMES):
            key = f"{location}/{name}" if location else name
            actual = by_lower.get(key.lower())
            if actual is not None:
                found.setdefault(actual, None)
    return list(found)


class DiscoveryEngine:
    """Produces ``DiscoveryResult`` manifests.

    Results are memoised per instance for as long as the listing they came
    from stays fresh, so a moving revision is re-resolved once its listing
    expires. At most ``max_entries`` results are kept, oldest dropped first.
    """

    def __init__(
        self,
        client: RepositoryClient,
        max_entries: int = 256,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._max_age = client.ttl.total_seconds()
        self._max_entries = max_entries
        self._clock = clock
        self._results: dict[tuple[str, str, str], tuple[float, DiscoveryResult]] = {}
        self._lock = threading.Lock()

    def discover(
        self,
        repo_id: str,
        preferences: ModelPreferences | None = None,
        revision: str = "main",
        refresh: bool = False,
    ) -> DiscoveryResult:
        """Manifest for ``repo_id@revision``; ``refresh`` bypasses every cache."""
        preferences = preferences or ModelPreferences()
        key = (repo_id, revision, preferences.preference_hash())
        if not refresh:
            with self._lock:
                cached = self._results.get(key)
            if cached is not None and self._clock() - cached[0] < self._max_age:
                return cached[1]

        entries = self._client.list_files(repo_id, revision, refresh=refresh)
        result = self.discover_from_listing(repo_id, entries, preferences, revision)
        self._remember(key, result)
        return result

    def _remember(self, key: tuple[str, str, str], result: DiscoveryResult) -> None:
        now = self._clock()
        with self._lock:
            self._results.pop(key, None)
            expired = [k for k, (stored, _) in self._results.items() if now - stored >= self._max_age]
            for stale in expired:
                del self._results[stale]
            while len(self._results) >= self._max_entries:
                del self._results[next(iter(self._results))]
            self._results[key] = (now, result)

    def discover_from_listing(
        self,
        repo_id: str,
        entries: Sequence[RepoEntry],
        preferences: ModelPreferences,
        revision: str = "main",
    ) -> DiscoveryResult:
        matched = classifier.model_files(entries)
        if not matched:
            raise ModelNotFoundError(
                repo_id, "file-selection", "no ONNX model files in repository",
            )

        architecture = classifier.classify(matched)
        subfolder = detect_subfolder(matched, preferences)
        candidates = self._preferred_candidates(matched, preferences)

        roles: dict[Role, str] = {}
        if architecture == Architecture.DIFFUSION_PIPELINE:
            primary = self._select_pipeline(candidates, preferences)
        elif architecture == Architecture.ENCODER_DECODER:
            roles = self._select_roles(self._in_subfolder(candidates, subfolder), preferences)
            primary = [roles[r] for r in (Role.ENCODER, Role.DECODER) if r in roles]
        else:
            chosen = variants.select_variants(
                self._in_subfolder(candidates, subfolder), preferences.quantization_priority,
            )
            primary = [e.path for e in chosen]

        primary, roles = self._apply_overrides(matched, primary, roles, preferences)

        all_paths = {e.path for e in entries if not e.is_directory}
        decoder = roles.get(Role.DECODER)
        # the decoder carries the precision of an encoder-decoder pair
        main_file = decoder or (primary[0] if primary else None)
        result = DiscoveryResult(
            repo_id=repo_id,
            revision=revision,
            subfolder=subfolder,
            architecture=architecture,
            primary_files=list(dict.fromkeys(primary)),
            external_data_files=find_external_data(all_paths, primary),
            config_files=find_config_files(all_paths, subfolder),
            role_assignments=roles,
            decoder_variant=classifier.detect_decoder_variant(decoder) if decoder else None,
            quantization=variants.quantization_of(main_file) if main_file else None,
            available_variants=variants.classify_variants(matched),
        )
        logger.info(
            "Discovered %s@%s: %s, subfolder=%s, files=%s",
            repo_id, revision, architecture.value, subfolder, result.primary_files,
        )
        return result

    @staticmethod
    def _preferred_candidates(
        matched: list[RepoEntry], preferences: ModelPreferences,
    ) -> list[RepoEntry]:
        if not preferences.preferred_files:
            return matched
        wanted = {p.lower() for p in preferences.preferred_files}
        hits = [e for e in matched if e.path.lower() in wanted or e.name.lower() in wanted]
        return hits or matched

    @staticmethod
    def _in_subfolder(candidates: list[RepoEntry], subfolder: str | None) -> list[RepoEntry]:
        target = (subfolder or "").lower()
        inside = [e for e in candidates if e.directory.lower() == target]
        return inside or candidates

    @staticmethod
    def _select_pipeline(
        candidates: list[RepoEntry], preferences: ModelPreferences,
    ) -> list[str]:
        selected: list[str] = []
        for component in sorted(DIFFUSION_PIPELINE_DIRECTORIES):
            in_dir = [
                e for e in candidates
                if e.directory.lower() == component or e.directory.lower().startswith(component + "/")
            ]
            selected.extend(e.path for e in variants.select_variants(in_dir, preferences.quantization_priority))
        root = [e for e in candidates if not e.directory]
        selected.extend(e.path for e in variants.select_variants(root, preferences.quantization_priority))
        return selected

    @staticmethod
    def _select_roles(
        candidates: list[RepoEntry], preferences: ModelPreferences,
    ) -> dict[Role, str]:
        partitioned = classifier.partition_roles(candidates)
        decoder = variants.select_decoder(
            partitioned[Role.DECODER],
            preferences.decoder_variant_priority,
            preferences.quantization_priority,
        )
        encoder = variants.select_matching_encoder(
            partitioned[Role.ENCODER],
            decoder,
            preferences.quantization_priority,
            preferences.require_matched_quantization,
        )
        roles: dict[Role, str] = {}
        if encoder is not None:
            roles[Role.ENCODER] = encoder.path
        if decoder is not None:
            roles[Role.DECODER] = decoder.path
        return roles

    @staticmethod
    def _apply_overrides(
        matched: list[RepoEntry],
        primary: list[str],
        roles: dict[Role, str],
        preferences: ModelPreferences,
    ) -> tuple[list[str], dict[Role, str]]:
        """Explicit per-role files replace the heuristic choice unconditionally."""
        if not preferences.explicit_files:
            return primary, roles
        primary = list(primary)
        roles = dict(roles)
        for role, wanted in preferences.explicit_files.items():
            entry = next(
                (e for e in matched if e.path.lower().endswith(wanted.lower())), None,
            )
            if entry is None:
                logger.warning("Explicit %s file %r not found in listing", role.value, wanted)
                continue
            previous = roles.get(role)
            roles[role] = entry.path
            if previous is not None and previous in primary:
                primary[primary.index(previous)] = entry.path
            elif entry.path not in primary:
                primary.append(entry.path)
        return primary, roles
