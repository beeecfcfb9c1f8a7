"""Entry points for collecting court auction delivery/document records.

Usage::

    python -m courtdocs.scraper.run              # collect everything pending
    python -m courtdocs.scraper.run --test       # small advanced/early sample
    python -m courtdocs.scraper.run --resume     # continue from temp/progress.json
    python -m courtdocs.scraper.run --check B000210:20230130012345

Exit status is 0 on completion, 1 when the run aborted on repeated blocks or
failed, and 130 when interrupted by a stop signal.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import config
from .backoff import BackoffController
from .classifier import classify_response, describe_outcome
from .config_validation import validate_runtime_config
from .errors import CollectorError, RunAborted, RunInterrupted, SessionError
from .fetcher import ItemFetcher
from .logging_utils import _scraper_event
from .orchestrator import BatchOrchestrator, RunResult
from .record_store import RecordStore
from .session import SessionManager, build_session_manager
from .state import CheckpointStore
from .utils import ensure_dirs, log_line, setup_run_logger, short_error_message
from .worklist import WorkItem, advanced_early_sample, limit_sample

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INTERRUPTED = 130


def run_collection(
    *,
    test_mode: bool = False,
    resume: bool = False,
    details_file: Optional[Path] = None,
    progress_file: Optional[Path] = None,
    backend: Optional[str] = None,
    headless: Optional[bool] = None,
    limit: Optional[int] = None,
    session_manager: Optional[SessionManager] = None,
) -> RunResult:
    """Public entrypoint that wires the collaborators and runs the loop."""

    ensure_dirs()
    setup_run_logger()
    validate_runtime_config("cli")

    log_line("=== Court auction delivery/document collection ===")
    log_line(f"Options: test={test_mode}, resume={resume}, backend={backend or config.SESSION_BACKEND}")

    sampling = None
    if test_mode:
        sampling = advanced_early_sample()
    elif limit is not None:
        sampling = limit_sample(limit)

    owns_session = session_manager is None
    manager = session_manager or build_session_manager(backend, headless=headless)
    orchestrator = BatchOrchestrator(
        record_store=RecordStore(details_file),
        checkpoint_store=CheckpointStore(progress_file, resume=resume),
        session_manager=manager,
        fetcher=ItemFetcher(),
        backoff=BackoffController(),
        sampling=sampling,
        test_mode=test_mode,
    )
    try:
        return orchestrator.run()
    finally:
        if owns_session:
            try:
                manager.close()
            except Exception as exc:  # noqa: BLE001
                log_line(f"[RUN][WARN] Error closing session: {exc}")


def check_item(
    court_code: str,
    case_no: str,
    *,
    backend: Optional[str] = None,
    headless: Optional[bool] = None,
    session_manager: Optional[SessionManager] = None,
) -> Dict[str, Any]:
    """Fetch a single case once and report what came back, persisting nothing."""

    item = WorkItem(court_code=court_code, case_no=case_no)
    owns_session = session_manager is None
    manager = session_manager or build_session_manager(backend, headless=headless)
    try:
        handle = manager.ensure_session()
        raw = ItemFetcher(record_fixtures=False).fetch(handle, item)
    finally:
        if owns_session:
            manager.close()

    outcome = classify_response(raw)
    report = {
        "key": item.key,
        "status": raw.status,
        "transport_error": raw.transport_error,
        "body_preview": (raw.text or "")[:500],
        "outcome": type(outcome).__name__,
        "description": describe_outcome(outcome),
    }
    _scraper_event("check", **report)
    return report


def _parse_check_target(value: str) -> tuple[str, str]:
    court_code, sep, case_no = value.partition(":")
    if not sep or not court_code.strip() or not case_no.strip():
        raise argparse.ArgumentTypeError("expected COURT_CODE:CASE_NO")
    return court_code.strip(), case_no.strip()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Collect delivery and document records for court auction cases.",
    )
    parser.add_argument("--test", action="store_true", help="Collect a small sample only.")
    parser.add_argument("--resume", action="store_true", help="Continue from the saved checkpoint.")
    parser.add_argument("--details-file", type=Path, default=None)
    parser.add_argument("--progress-file", type=Path, default=None)
    parser.add_argument(
        "--backend",
        choices=list(config.SESSION_BACKENDS),
        default=None,
        help="Session backend (default from COURTDOCS_SESSION_BACKEND).",
    )
    parser.add_argument("--headful", action="store_true", help="Show the browser window.")
    parser.add_argument("--limit", type=int, default=None, help="Collect at most N pending items.")
    parser.add_argument(
        "--check",
        type=_parse_check_target,
        default=None,
        metavar="COURT_CODE:CASE_NO",
        help="Fetch one case, print the classification and exit without saving.",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    headless = False if args.headful else None

    if args.check is not None:
        ensure_dirs()
        court_code, case_no = args.check
        try:
            report = check_item(court_code, case_no, backend=args.backend, headless=headless)
        except SessionError as exc:
            log_line(f"[CHECK][ERROR] {exc}")
            return EXIT_FAILED
        for key, value in report.items():
            print(f"{key}: {value}")
        return EXIT_OK

    try:
        run_collection(
            test_mode=args.test,
            resume=args.resume,
            details_file=args.details_file,
            progress_file=args.progress_file,
            backend=args.backend,
            headless=headless,
            limit=args.limit,
        )
    except RunAborted as exc:
        log_line(f"[RUN][ERROR] Aborted: {exc}")
        return EXIT_FAILED
    except RunInterrupted as exc:
        log_line(f"[RUN] Stopped: {exc}")
        return EXIT_INTERRUPTED
    except FileNotFoundError as exc:
        log_line(f"[RUN][ERROR] {exc}")
        return EXIT_FAILED
    except (CollectorError, ValueError) as exc:
        log_line(f"[RUN][ERROR] {short_error_message(exc)}")
        return EXIT_FAILED
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

__all__ = ["run_collection", "check_item", "main"]
