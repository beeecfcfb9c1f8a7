"""Sequential, resumable collection loop for delivery/document records.

Workflow per run:

- Load every details entry and the progress checkpoint (when resuming).
- Keep the entries whose key is neither checkpointed nor already carrying
  ``deliveryRecords``; optionally narrow them with a sampling policy.
- For each item: pace, make sure a session is live, fetch once, classify.
  A block triggers a cooldown and a session refresh and the same item is
  retried; too many consecutive blocks abort the run. Anything else is merged
  into the entry and the key is checkpointed.
- Flush the checkpoint and the details file periodically and always on the
  way out (completion, abort, stop signal or unexpected failure).

Exactly one request is in flight at any time.
"""

from __future__ import annotations

import signal
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from . import config
from .backoff import BackoffAction, BackoffController
from .classifier import (
    Blocked,
    Error,
    FetchOutcome,
    NoData,
    RawResponse,
    Success,
    classify_response,
    describe_outcome,
)
from .error_codes import ErrorCode
from .errors import BlockedError, PersistenceError, RunAborted, RunInterrupted
from .fetcher import ItemFetcher
from .logging_utils import _scraper_event
from .record_store import RecordStore, apply_outcome, index_by_key
from .session import SessionManager
from .state import CheckpointStore, ProgressCheckpoint
from .utils import log_line, save_json_file, short_error_message, utc_now_iso
from .worklist import SamplingPolicy, WorkItem, build_pending_worklist

Classifier = Callable[[RawResponse], FetchOutcome]


@dataclass
class RunStatistics:
    success: int = 0
    errors: int = 0
    no_data: int = 0
    blocks: int = 0
    delivery_items: int = 0
    document_items: int = 0
    merger_items: int = 0
    prior_cases: int = 0
    error_codes: Counter = field(default_factory=Counter)

    def record(self, outcome: FetchOutcome) -> None:
        if isinstance(outcome, Success):
            self.success += 1
            self.delivery_items += len(outcome.delivery_records)
            self.document_items += len(outcome.document_records)
            self.merger_items += len(outcome.merger_records)
            if outcome.prior_case:
                self.prior_cases += 1
        elif isinstance(outcome, NoData):
            self.success += 1
            self.no_data += 1
        elif isinstance(outcome, Error):
            self.record_error(outcome.error_code)
        elif isinstance(outcome, Blocked):
            self.blocks += 1
        else:
            raise TypeError(f"Unknown outcome type: {type(outcome).__name__}")

    def record_error(self, error_code: str) -> None:
        self.errors += 1
        self.error_codes[error_code] += 1

    def as_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "errors": self.errors,
            "no_data": self.no_data,
            "blocks": self.blocks,
            "delivery_items": self.delivery_items,
            "document_items": self.document_items,
            "merger_items": self.merger_items,
            "prior_cases": self.prior_cases,
            "error_codes": dict(self.error_codes),
        }


@dataclass
class RunResult:
    status: str
    stats: RunStatistics
    total_entries: int = 0
    pending: int = 0
    processed: int = 0
    completed_keys: int = 0
    started_at: str = field(default_factory=utc_now_iso)
    finished_at: Optional[str] = None
    error: Optional[str] = None

    def to_summary(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "total_entries": self.total_entries,
            "pending": self.pending,
            "processed": self.processed,
            "completed_keys": self.completed_keys,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "error": self.error,
            **self.stats.as_dict(),
        }


class BatchOrchestrator:
    def __init__(
        self,
        *,
        record_store: RecordStore,
        checkpoint_store: CheckpointStore,
        session_manager: SessionManager,
        fetcher: Optional[ItemFetcher] = None,
        backoff: Optional[BackoffController] = None,
        classify: Optional[Classifier] = None,
        sampling: Optional[SamplingPolicy] = None,
        test_mode: bool = False,
        sleep: Optional[Callable[[float], None]] = None,
        delay_between: Optional[float] = None,
        batch_rest_interval: Optional[int] = None,
        batch_rest_seconds: Optional[float] = None,
        save_every: Optional[int] = None,
        summary_path: Optional[Path] = None,
        handle_signals: bool = True,
    ) -> None:
        self.record_store = record_store
        self.checkpoint_store = checkpoint_store
        self.session_manager = session_manager
        self.fetcher = fetcher or ItemFetcher()
        self.backoff = backoff or BackoffController()
        self.classify = classify or classify_response
        self.sampling = sampling
        self.test_mode = test_mode
        self.sleep = sleep or time.sleep
        self.delay_between = config.DELAY_BETWEEN_SECONDS if delay_between is None else delay_between
        self.batch_rest_interval = (
            config.BATCH_REST_INTERVAL if batch_rest_interval is None else batch_rest_interval
        )
        self.batch_rest_seconds = (
            config.BATCH_REST_SECONDS if batch_rest_seconds is None else batch_rest_seconds
        )
        self.save_every = max(1, config.SAVE_EVERY if save_every is None else save_every)
        self.summary_path = summary_path if summary_path is not None else config.SUMMARY_FILE
        self.handle_signals = handle_signals

        self.entries: List[Dict[str, Any]] = []
        self.checkpoint: ProgressCheckpoint = ProgressCheckpoint()
        self.stats = RunStatistics()
        self.processed = 0
        self._flushing = False
        self._stopping = False
        self._stop_signal: Optional[int] = None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def flush(self) -> None:
        """Write details and checkpoint; details first so no key outruns its data."""

        self._flushing = True
        try:
            self.record_store.save_all(self.entries)
            self.checkpoint_store.save(self.checkpoint)
        finally:
            self._flushing = False
        if self._stop_signal is not None:
            raise RunInterrupted(self._stop_signal)

    def _final_flush(self, *, propagate: bool) -> None:
        try:
            self.flush()
            log_line(
                f"[RUN] Final flush done: completed={len(self.checkpoint.completed)} "
                f"details={self.record_store.path}"
            )
        except RunInterrupted:
            # Already on the way out; the data is on disk.
            return
        except PersistenceError as exc:
            log_line(f"[RUN][ERROR] Final flush failed: {exc}")
            if propagate:
                raise

    def _write_summary(self, result: RunResult) -> None:
        try:
            save_json_file(self.summary_path, result.to_summary())
        except OSError as exc:
            log_line(f"[RUN][WARN] Unable to write summary: {exc}")

    # ------------------------------------------------------------------
    # Stop signals
    # ------------------------------------------------------------------

    def _on_signal(self, signum: int, _frame: Any) -> None:
        log_line(f"[RUN] Received signal {signum}; stopping after saving progress.")
        self._stop_signal = signum
        if not self._flushing and not self._stopping:
            raise RunInterrupted(signum)

    def _install_signal_handlers(self) -> Dict[int, Any]:
        if not self.handle_signals or threading.current_thread() is not threading.main_thread():
            return {}
        previous: Dict[int, Any] = {}
        for signum in (signal.SIGINT, signal.SIGTERM):
            previous[signum] = signal.signal(signum, self._on_signal)
        return previous

    @staticmethod
    def _restore_signal_handlers(previous: Dict[int, Any]) -> None:
        for signum, handler in previous.items():
            signal.signal(signum, handler)

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def _plan(self) -> List[WorkItem]:
        pending = build_pending_worklist(self.entries, self.checkpoint)
        if self.sampling is not None:
            pending = self.sampling(pending)
        return pending

    def run(self) -> RunResult:
        """Run the collection loop.

        Returns the result for completed runs. Raises :class:`RunAborted`
        after too many consecutive blocks and :class:`RunInterrupted` on a
        stop signal; both only after the final flush. Session and persistence
        failures propagate after a best-effort flush.
        """

        result = RunResult(status="running", stats=self.stats)
        self.entries = self.record_store.load_all()
        self.checkpoint = self.checkpoint_store.load()
        result.total_entries = len(self.entries)

        pending = self._plan()
        result.pending = len(pending)
        log_line(
            f"[RUN] Targets: {len(pending)} (already completed: {len(self.checkpoint.completed)}, "
            f"test_mode={self.test_mode})"
        )
        if not pending:
            log_line("[RUN] Nothing left to collect.")
            result.status = "nothing_to_do"
            result.completed_keys = len(self.checkpoint.completed)
            result.finished_at = utc_now_iso()
            self._write_summary(result)
            return result

        self.checkpoint.total = len(self.entries)
        previous_handlers = self._install_signal_handlers()
        try:
            try:
                self._loop(pending)
                result.status = "completed"
            except BlockedError as exc:
                result.status = "aborted"
                result.error = str(exc)
            except RunInterrupted as exc:
                result.status = "interrupted"
                result.error = str(exc)
            except Exception as exc:
                result.status = "failed"
                result.error = short_error_message(exc)
                self._stopping = True
                self._final_flush(propagate=False)
                self._finish(result)
                raise
            # Handlers stay installed so a signal here only defers.
            self._stopping = True
            self._final_flush(propagate=True)
        finally:
            self._restore_signal_handlers(previous_handlers)

        self._finish(result)

        if result.status == "aborted":
            raise RunAborted(result.error or "aborted", summary=result.to_summary())
        if result.status == "interrupted":
            raise RunInterrupted(self._stop_signal)
        return result

    def _finish(self, result: RunResult) -> None:
        result.processed = self.processed
        result.completed_keys = len(self.checkpoint.completed)
        result.finished_at = utc_now_iso()
        self._write_summary(result)
        stats = self.stats
        log_line(f"[RUN] === {result.status} ===")
        log_line(f"[RUN]   success: {stats.success} (no data: {stats.no_data})")
        log_line(f"[RUN]   errors: {stats.errors} {dict(stats.error_codes) or ''}")
        log_line(f"[RUN]   blocks: {stats.blocks}")
        log_line(f"[RUN]   delivery records: {stats.delivery_items}")
        log_line(f"[RUN]   document records: {stats.document_items}")
        _scraper_event("summary", phase="run_end", **result.to_summary())

    def _loop(self, pending: List[WorkItem]) -> None:
        index_map = index_by_key(self.entries)
        total = len(pending)
        last_rest_at = -1
        i = 0

        while i < total:
            item = pending[i]

            if (
                self.batch_rest_interval > 0
                and i > 0
                and i % self.batch_rest_interval == 0
                and last_rest_at != i
            ):
                log_line(f"  [REST] {self.batch_rest_seconds:g}s ({i}/{total})")
                last_rest_at = i
                self.sleep(self.batch_rest_seconds)

            prefix = f"[{i + 1}/{total}] {item.label}"
            entry = index_map.get(item.key)
            if entry is None:
                log_line(f"{prefix} - no matching details entry")
                self.stats.record_error(ErrorCode.RECORD_MISSING)
                self.checkpoint.mark_completed(item.key)
                self.processed += 1
                i += 1
                continue

            handle = self.session_manager.ensure_session()
            outcome = self.classify(self.fetcher.fetch(handle, item))
            decision = self.backoff.observe(outcome)

            if isinstance(outcome, Blocked):
                self.stats.record(outcome)
                log_line(
                    f"{prefix} - blocked ({decision.consecutive_blocks}/"
                    f"{self.backoff.max_consecutive_blocks})"
                )
                if decision.action is BackoffAction.ABORT:
                    log_line("[RUN] Consecutive block limit reached; saving and stopping.")
                    raise BlockedError(
                        f"{decision.consecutive_blocks} consecutive blocks: {outcome.message}",
                        consecutive_blocks=decision.consecutive_blocks,
                    )
                log_line(f"  waiting {decision.wait_seconds:g}s before refreshing the session")
                self.sleep(decision.wait_seconds)
                self.session_manager.refresh_session()
                continue

            apply_outcome(entry, outcome)
            self.checkpoint.mark_completed(item.key)
            self.stats.record(outcome)
            self.processed += 1
            log_line(f"{prefix} - {describe_outcome(outcome)}")

            if self.test_mode or i % self.save_every == 0:
                self.flush()

            self.sleep(self.delay_between)
            i += 1


__all__ = ["BatchOrchestrator", "RunStatistics", "RunResult"]
