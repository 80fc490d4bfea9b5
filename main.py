"""Command-line entry point for photo quality checks and disease detection."""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
import sys

from config import get_config
from core.logging import enable_file_logging, log_error, log_info, log_warning, logger, set_level
from services.detection.models import DetectionRequest
from services.detection.service import DEFAULT_SURFACE, DetectionService


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Raw command-line arguments.

    Returns:
        Parsed arguments namespace.
    """

    parser = argparse.ArgumentParser(description="Check a crop photo and detect disease.")
    parser.add_argument("photo", nargs="?", type=Path, help="Path to the crop photo.")
    parser.add_argument("--language", type=str, default=None, help="Preferred language: en, hi or kn.")
    parser.add_argument("--caller-key", type=str, default="cli", help="Rate limit key for this caller.")
    parser.add_argument("--surface", type=str, default=DEFAULT_SURFACE, help="Rate limit surface name.")
    parser.add_argument(
        "--quality-only",
        action="store_true",
        help="Print the quality report without calling the classifier.",
    )
    parser.add_argument(
        "--diagnostics",
        action="store_true",
        help="Run diagnostics probes and exit.",
    )
    args = parser.parse_args(argv)
    if args.photo is None and not args.diagnostics:
        parser.error("a photo path is required unless --diagnostics is given")
    return args


def main(argv: list[str] | None = None) -> int:
    """Application entry point.

    Returns:
        0 when the photo was analysed (or diagnostics passed), 1 otherwise.
    """

    if argv is None:
        argv = sys.argv[1:]

    args = parse_args(argv)
    config = get_config()
    set_level(config.get("logging_level", "INFO"))
    if config.get("log_file"):
        enable_file_logging(Path(config["log_file"]))
        logger.info("Writing logs to %s", config["log_file"])

    if args.diagnostics:
        from diagnostics.runner import default_probes, format_results, has_failures, run_diagnostics

        results = run_diagnostics(default_probes())
        print(format_results(results))
        return 1 if has_failures(results) else 0

    try:
        image = args.photo.read_bytes()
    except OSError as exc:
        log_error(f"Could not read {args.photo}: {exc}")
        return 1

    service = DetectionService.from_config(config, args.surface)
    if args.quality_only:
        report = service.check_quality(image)
        print(json.dumps(report.to_payload(), indent=2, ensure_ascii=False))
        return 0 if report.is_valid else 1

    language = args.language or config["languages"]["default"]
    request = DetectionRequest(image=image, language_hint=language, caller_key=args.caller_key)
    response = asyncio.run(service.detect(request))
    print(json.dumps(response.body, indent=2, ensure_ascii=False))
    if not response.ok:
        log_error(f"Detection failed with status {response.status}: {response.body.get('error')}")
        return 1
    if response.body.get("degraded"):
        log_warning(f"Degraded result: {response.body.get('reason')}")
    else:
        log_info(f"{response.body['crop']}: {response.body['issue']} ({response.body['confidence']}%)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
