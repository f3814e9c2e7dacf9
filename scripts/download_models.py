"""Discover and download ONNX models into the local hub cache.

Usage:
    python scripts/download_models.py microsoft/Phi-4-mini-instruct-onnx --preset low_memory
    python scripts/download_models.py Xenova/whisper-tiny --dry-run
    python scripts/download_models.py --show-backends --device auto
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any

from hubresolve.core.cancellation import CancellationToken
from hubresolve.core.config import AppSettings
from hubresolve.core.exceptions import HubResolveError
from hubresolve.core.logging_config import configure_logging
from hubresolve.hub.downloader import DownloadProgress
from hubresolve.models.preferences import DevicePreference, ModelPreferences
from hubresolve.service import ResolutionService

logger = logging.getLogger("hubresolve.scripts.download_models")


def build_preferences(args: argparse.Namespace) -> ModelPreferences:
    preferences = ModelPreferences.preset(args.preset)
    update: dict[str, Any] = {"device": DevicePreference(args.device)}
    if args.subfolder:
        update["explicit_subfolder"] = args.subfolder
    return preferences.model_copy(update=update)


def _print_progress(progress: DownloadProgress) -> None:
    if progress.total_bytes:
        pct = 100 * progress.bytes_downloaded // progress.total_bytes
        print(f"\r  {progress.file_name}: {pct}%", end="", flush=True)


def run(args: argparse.Namespace, service: ResolutionService) -> int:
    preferences = build_preferences(args)
    cancel = CancellationToken()

    for repo_id in args.repo_ids:
        print(f"Resolving {repo_id}@{args.revision}...")
        result = service.discover(repo_id, preferences, args.revision, refresh=args.refresh)
        print(f"  architecture: {result.architecture.value}")
        print(f"  subfolder:    {result.subfolder or '(root)'}")
        if result.quantization is not None:
            print(f"  precision:    {result.quantization.value}")
        for path in result.all_files():
            print(f"    {path}")
        if args.dry_run:
            continue
        try:
            path = service.downloader.download_discovered(
                result, progress=_print_progress, cancel=cancel,
            )
        except KeyboardInterrupt:
            cancel.cancel()
            print("\nInterrupted; partial files kept for resume")
            return 130
        print(f"\n  cached at {path}")
        config = service.model_config(result)
        print(f"  model type:   {config.model_type() or 'unknown'}")
        print(f"  context:      {config.max_context_length()} tokens")

    if args.show_backends:
        chain = service.fallback_chain(DevicePreference(args.device))
        print("Backend fallback chain: " + " -> ".join(str(c) for c in chain))
    return 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Download ONNX models into the hub cache")
    parser.add_argument("repo_ids", nargs="*", help="Repository ids (e.g. org/name)")
    parser.add_argument("--revision", default="main", help="Branch, tag or commit")
    parser.add_argument("--preset", default="default", choices=["default", "low_memory", "high_quality"])
    parser.add_argument("--device", default="cpu", choices=[d.value for d in DevicePreference])
    parser.add_argument("--subfolder", default=None, help="Force a repository subfolder")
    parser.add_argument("--dry-run", action="store_true", help="Print the manifest only")
    parser.add_argument("--refresh", action="store_true", help="Re-list repositories, ignoring cached listings")
    parser.add_argument("--show-backends", action="store_true", help="Print this host's backend chain")
    args = parser.parse_args(argv)
    if not args.repo_ids and not args.show_backends:
        parser.error("at least one repository id is required unless --show-backends is given")
    return args


def main() -> None:
    args = parse_args()
    settings = AppSettings()
    configure_logging(settings.log_level)
    service = ResolutionService(settings)
    try:
        code = run(args, service)
    except HubResolveError as exc:
        logger.error("%s", exc)
        code = 1
    finally:
        service.close()
    sys.exit(code)


if __name__ == "__main__":
    main()
