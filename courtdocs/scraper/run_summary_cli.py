from __future__ import annotations

"""CLI helper for printing the last collection summary and checkpoint progress."""

import argparse
from pathlib import Path
from typing import Sequence

from . import config
from .state import read_checkpoint
from .utils import load_json_file


def _build_parser() -> argparse.ArgumentParser:
    """Return an argument parser for the run summary CLI."""

    parser = argparse.ArgumentParser(
        description="Show the last collection summary.",
    )
    parser.add_argument(
        "--summary-file",
        type=Path,
        default=None,
        help="Summary JSON to read (defaults to data/last_summary.json).",
    )
    parser.add_argument(
        "--progress-file",
        type=Path,
        default=None,
        help="Checkpoint JSON to read (defaults to temp/progress.json).",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the run summary CLI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    summary_path = args.summary_file or config.SUMMARY_FILE
    summary = load_json_file(summary_path)
    if not isinstance(summary, dict):
        print(f"No summary found at {summary_path}")
        return 1

    print(f"Last run: {summary.get('status', 'unknown')}")
    print(f"  started:  {summary.get('started_at')}")
    print(f"  finished: {summary.get('finished_at')}")
    for field in (
        "pending",
        "processed",
        "success",
        "no_data",
        "errors",
        "blocks",
        "delivery_items",
        "document_items",
    ):
        print(f"  {field}: {summary.get(field, 0)}")

    error_codes = summary.get("error_codes") or {}
    if error_codes:
        print("\nError codes:")
        for code, count in sorted(error_codes.items()):
            print(f"  {code}: {count}")

    if summary.get("error"):
        print(f"\nStopped because: {summary['error']}")

    checkpoint = read_checkpoint(args.progress_file)
    if checkpoint is not None:
        print(f"\nCheckpoint: {len(checkpoint.completed)}/{checkpoint.total} completed")
        print(f"  last updated: {checkpoint.last_updated}")

    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
