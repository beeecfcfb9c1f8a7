"""Offline replay of recorded documents-API responses.

Fixtures are the JSONL lines the fetcher writes when
``COURTDOCS_RECORD_REPLAY_FIXTURES`` is enabled. Replaying runs them through
the classifier without a browser or network, and the
:class:`ReplaySessionManager` can stand in for a live session so the whole
orchestrator runs against recorded traffic.
"""
from __future__ import annotations

import json
from collections import Counter, defaultdict, deque
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Deque, Dict, Iterable, Optional, Tuple

from .classifier import RawResponse, classify_response
from .config_validation import validate_runtime_config
from .error_codes import ErrorCode
from .errors import ItemFetchError
from .logging_utils import _scraper_event
from .utils import load_json_lines, log_line


@dataclass
class ReplayConfig:
    fixtures_path: Path
    show_items: bool = False


def load_fixtures(fixtures_path: Path) -> Iterable[Dict[str, Any]]:
    for item in load_json_lines(fixtures_path):
        if not isinstance(item, dict):
            continue
        yield item


def fixture_to_raw(fixture: Dict[str, Any]) -> RawResponse:
    status = fixture.get("status")
    return RawResponse(
        status=int(status) if status is not None else None,
        text=fixture.get("text"),
        transport_error=fixture.get("transport_error"),
        timed_out=bool(fixture.get("timed_out")),
    )


class ReplaySessionHandle:
    def __init__(self, manager: "ReplaySessionManager") -> None:
        self.manager = manager

    def post_json(
        self, path: str, payload: dict[str, Any], *, timeout_seconds: float
    ) -> Tuple[int, str]:
        return self.manager._next_response(payload)


class ReplaySessionManager:
    """Serve recorded responses keyed by ``cortOfcCd + csNo``.

    Responses for the same key are served in recording order; the last one
    repeats once the queue runs dry. Unknown keys answer with 550 (no data).
    """

    def __init__(self, fixtures: Iterable[Dict[str, Any]]) -> None:
        self._responses: Dict[str, Deque[Dict[str, Any]]] = defaultdict(deque)
        self._last: Dict[str, Dict[str, Any]] = {}
        for fixture in fixtures:
            key = str(fixture.get("key") or "")
            if not key:
                key = str(fixture.get("court_code") or "") + str(fixture.get("case_no") or "")
            if key:
                self._responses[key].append(fixture)
        self.ensure_count = 0
        self.refresh_count = 0
        self.requests: list[Dict[str, Any]] = []

    def _next_response(self, payload: dict[str, Any]) -> Tuple[int, str]:
        self.requests.append(dict(payload))
        key = str(payload.get("cortOfcCd") or "") + str(payload.get("csNo") or "")
        queue = self._responses.get(key)
        if queue:
            fixture = queue.popleft()
            self._last[key] = fixture
        else:
            fixture = self._last.get(key)
        if fixture is None:
            return 550, json.dumps({"message": "no fixture", "data": {}})

        raw = fixture_to_raw(fixture)
        if raw.transport_error is not None:
            code = ErrorCode.TIMEOUT if raw.timed_out else ErrorCode.NETWORK
            raise ItemFetchError(code, raw.transport_error)
        return raw.status or 200, raw.text or ""

    def ensure_session(self) -> ReplaySessionHandle:
        self.ensure_count += 1
        return ReplaySessionHandle(self)

    def refresh_session(self) -> ReplaySessionHandle:
        self.refresh_count += 1
        return ReplaySessionHandle(self)

    def close(self) -> None:
        return None


def run_replay(config_obj: ReplayConfig) -> Dict[str, Any]:
    """Classify every fixture offline and return counts per outcome type."""

    validate_runtime_config("replay")
    fixtures = list(load_fixtures(config_obj.fixtures_path))
    outcomes: Counter = Counter()

    _scraper_event("replay", phase="start", fixtures=str(config_obj.fixtures_path))

    for fixture in fixtures:
        outcome = classify_response(fixture_to_raw(fixture))
        kind = type(outcome).__name__
        outcomes[kind] += 1
        if config_obj.show_items:
            log_line(f"[REPLAY] key={fixture.get('key')} status={fixture.get('status')} -> {kind}")

    summary: Dict[str, Any] = {"fixtures": len(fixtures), "outcomes": dict(outcomes)}
    _scraper_event("replay", phase="end", **summary)
    return summary


def main(argv: Optional[list[str]] = None) -> int:
    import argparse

    parser = argparse.ArgumentParser(description="Classify recorded documents-API responses offline.")
    parser.add_argument("fixtures", help="Path to documents_YYYYMMDD.jsonl")
    parser.add_argument("--show-items", action="store_true", default=False)
    args = parser.parse_args(argv)

    summary = run_replay(ReplayConfig(fixtures_path=Path(args.fixtures), show_items=args.show_items))
    print(json.dumps(summary, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
