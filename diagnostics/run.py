"""Command-line entry point for running diagnostics."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
import tempfile

from diagnostics.runner import default_probes, format_results, has_failures, run_diagnostics


OFFLINE_CONFIG = "classifier: {}\norchestrator: {}\nrate_limit: {}\nquality_gate: {}\n"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run diagnostics probes.")
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Run probes against a temporary config directory with a placeholder API key.",
    )
    parser.add_argument(
        "--base-dir",
        type=Path,
        default=None,
        help="Optional base directory holding config/.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as a JSON list instead of a text report.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run diagnostics and return an exit code."""

    args = parse_args(argv)

    if args.offline and args.base_dir is None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            tmp_base = Path(tmp_dir)
            config_dir = tmp_base / "config"
            config_dir.mkdir(parents=True, exist_ok=True)
            (config_dir / "default.yaml").write_text(OFFLINE_CONFIG, encoding="utf-8")
            results = run_diagnostics(default_probes(tmp_base, api_key="offline-test"))
    else:
        results = run_diagnostics(default_probes(args.base_dir))

    if args.json:
        print(json.dumps([result.to_payload() for result in results], indent=2))
    else:
        print(format_results(results))
    return 1 if has_failures(results) else 0


if __name__ == "__main__":
    raise SystemExit(main())
