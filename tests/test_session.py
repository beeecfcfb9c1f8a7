from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import pytest
import requests
from playwright.sync_api import Error as PWError

from courtdocs.scraper import config, session
from courtdocs.scraper.error_codes import ErrorCode
from courtdocs.scraper.errors import ItemFetchError, SessionError
from courtdocs.scraper.session import (
    HttpSessionManager,
    PlaywrightSessionHandle,
    PlaywrightSessionManager,
    build_session_manager,
    decode_body,
)
from tests.test_state import _configure_temp_paths


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "") -> None:
        self.status_code = status_code
        self.text = text

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeRequestsSession:
    def __init__(self, *, get_status: int = 200, post_exc: Exception | None = None) -> None:
        self.get_status = get_status
        self.post_exc = post_exc
        self.cookies: Dict[str, str] = {"JSESSIONID": "abc"}
        self.closed = False
        self.posts: List[Dict[str, Any]] = []

    def get(self, url: str, timeout: float) -> FakeResponse:
        return FakeResponse(self.get_status)

    def post(self, url: str, data: bytes, timeout: float) -> FakeResponse:
        if self.post_exc is not None:
            raise self.post_exc
        self.posts.append({"url": url, "data": data, "timeout": timeout})
        return FakeResponse(200, '{"data": {}}')

    def close(self) -> None:
        self.closed = True


def _install_sessions(monkeypatch: pytest.MonkeyPatch, **kwargs: Any) -> List[FakeRequestsSession]:
    created: List[FakeRequestsSession] = []

    def _factory() -> FakeRequestsSession:
        fake = FakeRequestsSession(**kwargs)
        created.append(fake)
        return fake

    monkeypatch.setattr(session, "build_http_session", _factory)
    monkeypatch.setattr(config, "SESSION_SETTLE_SECONDS", 0)
    return created


def test_http_session_posts_json_to_api(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    created = _install_sessions(monkeypatch)
    manager = HttpSessionManager()

    handle = manager.ensure_session()
    status, text = handle.post_json(
        config.DOCUMENTS_API_PATH, {"cortOfcCd": "B000210", "csNo": "1"}, timeout_seconds=5
    )

    assert (status, text) == (200, '{"data": {}}')
    post = created[0].posts[0]
    assert post["url"].startswith(config.SITE_ROOT)
    assert post["url"].endswith(config.DOCUMENTS_API_PATH)
    assert b'"csNo": "1"' in post["data"]
    assert manager.ensure_session() is handle


def test_http_refresh_closes_old_session(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    created = _install_sessions(monkeypatch)
    manager = HttpSessionManager()
    old = manager.ensure_session()

    new = manager.refresh_session()

    assert new is not old
    assert created[0].closed is True
    assert manager.refresh_count == 1
    with pytest.raises(SessionError):
        old.post_json("/x", {}, timeout_seconds=1)


def test_http_session_open_failure_is_session_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    created = _install_sessions(monkeypatch, get_status=503)

    with pytest.raises(SessionError):
        HttpSessionManager().ensure_session()

    assert created[0].closed is True


@pytest.mark.parametrize(
    ("exc", "code"),
    [
        (requests.Timeout("read timed out"), ErrorCode.TIMEOUT),
        (requests.ConnectionError("reset by peer"), ErrorCode.NETWORK),
    ],
)
def test_http_transport_errors_map_to_codes(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, exc: Exception, code: str
) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    _install_sessions(monkeypatch, post_exc=exc)
    handle = HttpSessionManager().ensure_session()

    with pytest.raises(ItemFetchError) as excinfo:
        handle.post_json("/x", {}, timeout_seconds=1)

    assert excinfo.value.error_code == code


def test_build_session_manager_selects_backend() -> None:
    assert isinstance(build_session_manager("http"), HttpSessionManager)
    assert isinstance(build_session_manager("Playwright", headless=True), PlaywrightSessionManager)
    with pytest.raises(ValueError):
        build_session_manager("selenium")


def test_playwright_manager_is_lazy() -> None:
    manager = PlaywrightSessionManager(headless=True)

    # Nothing is launched until a session is requested.
    manager.close()

    assert manager.refresh_count == 0


class FakeAPIResponse:
    def __init__(self, status: int, body: bytes) -> None:
        self.status = status
        self._body = body

    def body(self) -> bytes:
        return self._body


class FakeAPIRequest:
    def __init__(self, responses: Dict[str, FakeAPIResponse]) -> None:
        self.responses = responses

    def post(self, url: str, data: str, headers: Dict[str, str], timeout: float) -> FakeAPIResponse:
        case_no = json.loads(data)["csNo"]
        return self.responses[case_no]


class FakeBrowserContext:
    def __init__(self, responses: Dict[str, FakeAPIResponse] | None = None, page_error: Exception | None = None) -> None:
        self.request = FakeAPIRequest(responses or {})
        self.page_error = page_error
        self.closed = False

    def new_page(self) -> Any:
        if self.page_error is not None:
            raise self.page_error
        raise AssertionError("unexpected page")

    def close(self) -> None:
        self.closed = True


class FakeBrowser:
    def __init__(self, context: FakeBrowserContext) -> None:
        self.context = context

    def new_context(self, **kwargs: Any) -> FakeBrowserContext:
        return self.context


def test_decode_body_handles_legacy_and_broken_encodings() -> None:
    assert decode_body('{"message": "정상"}'.encode("utf-8")) == '{"message": "정상"}'
    assert decode_body("<html>서버 오류</html>".encode("euc-kr")) == "<html>서버 오류</html>"
    assert "�" in decode_body(b"\xff\xfe\xff")


def test_playwright_handle_returns_non_utf8_body_as_text(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    context = FakeBrowserContext({"1": FakeAPIResponse(500, "서버 오류".encode("euc-kr"))})
    handle = PlaywrightSessionHandle(context, page=None)  # type: ignore[arg-type]

    status, text = handle.post_json("/x", {"cortOfcCd": "B000210", "csNo": "1"}, timeout_seconds=1)

    assert status == 500
    assert text == "서버 오류"


def test_playwright_open_failure_closes_new_context(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    context = FakeBrowserContext(page_error=PWError("Target page, context or browser has been closed"))
    manager = PlaywrightSessionManager(headless=True)
    manager._browser = FakeBrowser(context)  # type: ignore[assignment]

    with pytest.raises(SessionError):
        manager.ensure_session()

    assert context.closed is True
