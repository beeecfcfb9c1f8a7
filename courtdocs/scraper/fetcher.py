from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from . import config
from .classifier import RawResponse
from .error_codes import ErrorCode
from .errors import ItemFetchError
from .logging_utils import _scraper_event
from .session import SessionHandle
from .utils import append_json_line, log_line, utc_now_iso
from .worklist import WorkItem


def default_fixture_path() -> Path:
    day = datetime.now(timezone.utc).strftime("%Y%m%d")
    return config.REPLAY_FIXTURES_DIR / f"documents_{day}.jsonl"


class ItemFetcher:
    """Issue exactly one documents-API request per call.

    No retries happen here; transport failures come back as a
    :class:`RawResponse` with ``transport_error`` set so the classifier can
    settle them as errors.
    """

    def __init__(
        self,
        *,
        api_path: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        record_fixtures: Optional[bool] = None,
        fixture_path: Optional[Path] = None,
    ) -> None:
        self.api_path = api_path or config.DOCUMENTS_API_PATH
        self.timeout_seconds = (
            config.REQUEST_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        )
        self.record_fixtures = (
            config.RECORD_REPLAY_FIXTURES if record_fixtures is None else record_fixtures
        )
        self.fixture_path = fixture_path
        self.request_count = 0

    @staticmethod
    def build_payload(item: WorkItem) -> dict[str, str]:
        return {"cortOfcCd": item.court_code, "csNo": item.case_no}

    def fetch(self, handle: SessionHandle, item: WorkItem) -> RawResponse:
        payload = self.build_payload(item)
        self.request_count += 1
        try:
            status, text = handle.post_json(
                self.api_path, payload, timeout_seconds=self.timeout_seconds
            )
            raw = RawResponse(status=status, text=text)
        except ItemFetchError as exc:
            raw = RawResponse(
                status=exc.http_status,
                text=None,
                transport_error=str(exc) or exc.error_code,
                timed_out=exc.error_code == ErrorCode.TIMEOUT,
            )
            _scraper_event(
                "fetch",
                phase="transport_error",
                key=item.key,
                error_code=exc.error_code,
                error=str(exc),
            )

        if self.record_fixtures:
            self._record(item, raw)
        return raw

    def _record(self, item: WorkItem, raw: RawResponse) -> None:
        path = self.fixture_path or default_fixture_path()
        try:
            append_json_line(
                path,
                {
                    "key": item.key,
                    "court_code": item.court_code,
                    "case_no": item.case_no,
                    "status": raw.status,
                    "text": raw.text,
                    "transport_error": raw.transport_error,
                    "timed_out": raw.timed_out,
                    "recorded_at": utc_now_iso(),
                },
            )
        except OSError as exc:
            log_line(f"[FETCH][WARN] Unable to record replay fixture to {path}: {exc}")


__all__ = ["ItemFetcher", "default_fixture_path"]
