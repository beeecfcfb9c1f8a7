"""Authenticated sessions against the court auction site.

Every fetch goes through a :class:`SessionHandle`. The orchestrator asks the
session manager for a live handle before each item and asks for a fresh one
after a block cooldown. Two backends exist:

- ``playwright``: a headless Chromium page is opened on the search page and the
  WebSquare runtime must come up before the session counts as live. API calls
  go through ``context.request`` so they share the page's cookies.
- ``http``: a plain ``requests.Session`` primed by loading the search page.
  No JavaScript runs, so this only works while the API accepts bare cookies.
"""

from __future__ import annotations

import json
import time
from typing import Any, Optional, Protocol, Tuple

import requests
from playwright.sync_api import (
    Browser,
    BrowserContext,
    Error as PWError,
    Page,
    Playwright,
    TimeoutError as PWTimeout,
    sync_playwright,
)

from . import config
from .error_codes import ErrorCode
from .errors import ItemFetchError, SessionError
from .logging_utils import _scraper_event
from .utils import log_line, short_error_message

WEBSQUARE_READY_JS = """
() => {
    const main = window.$p && window.$p.main ? window.$p.main() : null;
    return !!(main && main.wfm_mainFrame && main.wfm_mainFrame.setSrc);
}
"""


class SessionHandle(Protocol):
    def post_json(
        self, path: str, payload: dict[str, Any], *, timeout_seconds: float
    ) -> Tuple[int, str]:
        """POST ``payload`` as JSON and return ``(status, body_text)``.

        Transport failures raise :class:`ItemFetchError`.
        """
        ...


class SessionManager(Protocol):
    def ensure_session(self) -> SessionHandle:
        ...

    def refresh_session(self) -> SessionHandle:
        ...

    def close(self) -> None:
        ...


def decode_body(body: bytes) -> str:
    """Decode a response body; UTF-8 first, then the site's legacy CP949 pages.

    Never raises: undecodable bytes become U+FFFD and the classifier settles
    the item as an unparseable body.
    """

    for encoding in ("utf-8", "cp949"):
        try:
            return body.decode(encoding)
        except UnicodeDecodeError:
            continue
    return body.decode("utf-8", errors="replace")


def _api_url(path: str) -> str:
    if path.startswith("http://") or path.startswith("https://"):
        return path
    return config.SITE_ROOT.rstrip("/") + "/" + path.lstrip("/")


# ---------------------------------------------------------------------------
# Playwright backend
# ---------------------------------------------------------------------------


class PlaywrightSessionHandle:
    def __init__(self, context: BrowserContext, page: Page) -> None:
        self.context = context
        self.page = page
        self.closed = False

    def post_json(
        self, path: str, payload: dict[str, Any], *, timeout_seconds: float
    ) -> Tuple[int, str]:
        if self.closed:
            raise SessionError("Session handle was replaced by a refresh")
        try:
            response = self.context.request.post(
                _api_url(path),
                data=json.dumps(payload, ensure_ascii=False),
                headers={
                    "Content-Type": "application/json",
                    "Accept": config.COMMON_HEADERS["Accept"],
                    "Origin": config.SITE_ROOT,
                    "Referer": config.SEARCH_PAGE_URL,
                    "X-Requested-With": "XMLHttpRequest",
                },
                timeout=timeout_seconds * 1000,
            )
            return response.status, decode_body(response.body())
        except PWTimeout as exc:
            raise ItemFetchError(ErrorCode.TIMEOUT, short_error_message(exc)) from exc
        except PWError as exc:
            raise ItemFetchError(ErrorCode.NETWORK, short_error_message(exc)) from exc


class PlaywrightSessionManager:
    """One Chromium browser for the run; one context per session."""

    def __init__(self, *, headless: Optional[bool] = None) -> None:
        self.headless = config.HEADLESS if headless is None else headless
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._handle: Optional[PlaywrightSessionHandle] = None
        self.refresh_count = 0

    def _ensure_browser(self) -> Browser:
        if self._browser is None:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(headless=self.headless)
        return self._browser

    def _close_handle(self) -> None:
        handle = self._handle
        self._handle = None
        if handle is None:
            return
        handle.closed = True
        try:
            handle.context.close()
        except PWError as exc:
            log_line(f"[SESSION][WARN] Error closing browser context: {exc}")

    def _open(self) -> PlaywrightSessionHandle:
        context: Optional[BrowserContext] = None
        try:
            browser = self._ensure_browser()
            context = browser.new_context(
                locale=config.BROWSER_LOCALE,
                user_agent=config.USER_AGENT,
                viewport=config.BROWSER_VIEWPORT,
            )
            page = context.new_page()
            _scraper_event("nav", step="goto", label="search_page", url=config.SEARCH_PAGE_URL)
            page.goto(
                config.SEARCH_PAGE_URL,
                wait_until="networkidle",
                timeout=config.NAV_TIMEOUT_SECONDS * 1000,
            )
            page.wait_for_timeout(int(config.SESSION_SETTLE_SECONDS * 1000))
            ready = bool(page.evaluate(WEBSQUARE_READY_JS))
        except (PWTimeout, PWError) as exc:
            if context is not None:
                try:
                    context.close()
                except PWError as close_exc:
                    log_line(f"[SESSION][WARN] Error closing browser context: {close_exc}")
            _scraper_event("error", phase="session", step="open", error=short_error_message(exc))
            raise SessionError(f"Unable to open search page: {short_error_message(exc)}") from exc

        handle = PlaywrightSessionHandle(context, page)
        if not ready:
            handle.closed = True
            context.close()
            _scraper_event("error", phase="session", step="websquare_check", ready=False)
            raise SessionError("WebSquare runtime did not initialise on the search page")

        _scraper_event("state", phase="session", step="ready", backend="playwright")
        return handle

    def ensure_session(self) -> PlaywrightSessionHandle:
        if self._handle is not None and not self._handle.page.is_closed():
            return self._handle
        self._close_handle()
        self._handle = self._open()
        return self._handle

    def refresh_session(self) -> PlaywrightSessionHandle:
        # The old context goes away before the new one serves any request.
        self._close_handle()
        self.refresh_count += 1
        log_line(f"[SESSION] Refreshing session (refresh #{self.refresh_count})")
        self._handle = self._open()
        return self._handle

    def close(self) -> None:
        self._close_handle()
        if self._browser is not None:
            try:
                self._browser.close()
            except PWError as exc:
                log_line(f"[SESSION][WARN] Error closing browser: {exc}")
            self._browser = None
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None


# ---------------------------------------------------------------------------
# requests backend
# ---------------------------------------------------------------------------


class HttpSessionHandle:
    def __init__(self, session: requests.Session) -> None:
        self.session = session
        self.closed = False

    def post_json(
        self, path: str, payload: dict[str, Any], *, timeout_seconds: float
    ) -> Tuple[int, str]:
        if self.closed:
            raise SessionError("Session handle was replaced by a refresh")
        try:
            resp = self.session.post(
                _api_url(path),
                data=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
                timeout=timeout_seconds,
            )
        except requests.Timeout as exc:
            raise ItemFetchError(ErrorCode.TIMEOUT, short_error_message(exc)) from exc
        except requests.RequestException as exc:
            raise ItemFetchError(ErrorCode.NETWORK, short_error_message(exc)) from exc
        return resp.status_code, resp.text


def build_http_session() -> requests.Session:
    """Return a requests session carrying the browser-like default headers."""

    session = requests.Session()
    session.headers.update(config.COMMON_HEADERS)
    return session


class HttpSessionManager:
    def __init__(self) -> None:
        self._handle: Optional[HttpSessionHandle] = None
        self.refresh_count = 0

    def _open(self) -> HttpSessionHandle:
        session = build_http_session()
        try:
            resp = session.get(config.SEARCH_PAGE_URL, timeout=config.NAV_TIMEOUT_SECONDS)
            resp.raise_for_status()
        except requests.RequestException as exc:
            session.close()
            _scraper_event("error", phase="session", step="open", error=short_error_message(exc))
            raise SessionError(f"Unable to open search page: {short_error_message(exc)}") from exc

        time.sleep(config.SESSION_SETTLE_SECONDS)
        _scraper_event(
            "state",
            phase="session",
            step="ready",
            backend="http",
            cookies=len(session.cookies),
        )
        return HttpSessionHandle(session)

    def _close_handle(self) -> None:
        handle = self._handle
        self._handle = None
        if handle is not None:
            handle.closed = True
            handle.session.close()

    def ensure_session(self) -> HttpSessionHandle:
        if self._handle is None:
            self._handle = self._open()
        return self._handle

    def refresh_session(self) -> HttpSessionHandle:
        self._close_handle()
        self.refresh_count += 1
        log_line(f"[SESSION] Refreshing session (refresh #{self.refresh_count})")
        self._handle = self._open()
        return self._handle

    def close(self) -> None:
        self._close_handle()


def build_session_manager(backend: Optional[str] = None, *, headless: Optional[bool] = None) -> SessionManager:
    """Return the session manager for ``backend`` (defaults to config)."""

    name = (backend or config.SESSION_BACKEND).strip().lower()
    if name == "playwright":
        return PlaywrightSessionManager(headless=headless)
    if name == "http":
        return HttpSessionManager()
    raise ValueError(f"Unsupported session backend {backend!r}; expected one of {config.SESSION_BACKENDS}.")


__all__ = [
    "SessionHandle",
    "SessionManager",
    "PlaywrightSessionHandle",
    "PlaywrightSessionManager",
    "HttpSessionHandle",
    "HttpSessionManager",
    "build_http_session",
    "build_session_manager",
    "decode_body",
]
