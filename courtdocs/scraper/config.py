"""Configuration constants for the court auction document collector."""
from __future__ import annotations

import os
from pathlib import Path


def _parse_float(env_var: str, default: float, *, minimum: float = 0.0) -> float:
    """Parse a non-negative float from the environment, falling back on errors."""

    try:
        value = float(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(minimum, value)


def _parse_timeout_seconds(env_var: str, default: int, *, minimum: int = 1) -> int:
    """Parse a timeout value in seconds from the environment with bounds."""

    try:
        value = int(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(minimum, value)


def _parse_flag(env_var: str, default: str = "0") -> bool:
    return os.getenv(env_var, default).strip().lower() not in {"0", "false", ""}


BASE_DIR: Path = Path(os.getenv("COURTDOCS_BASE_DIR", os.getcwd()))
DATA_DIR: Path = Path(os.getenv("COURTDOCS_DATA_DIR", str(BASE_DIR / "data")))
TEMP_DIR: Path = Path(os.getenv("COURTDOCS_TEMP_DIR", str(BASE_DIR / "temp")))
LOG_DIR: Path = DATA_DIR / "logs"
LOG_FILE: Path = LOG_DIR / "latest.log"
DETAILS_FILE: Path = DATA_DIR / "court-auction-details.json"
PROGRESS_FILE: Path = TEMP_DIR / "progress.json"
SUMMARY_FILE: Path = DATA_DIR / "last_summary.json"
REPLAY_FIXTURES_DIR: Path = DATA_DIR / "replay_fixtures"

SITE_ROOT: str = "https://www.courtauction.go.kr"
SEARCH_PAGE_URL: str = (
    SITE_ROOT + "/pgj/index.on?w2xPath=/pgj/ui/pgj100/PGJ151F00.xml"
)
DOCUMENTS_API_PATH: str = "/pgj/pgj15A/selectDlvrOfdocDtsDtl.on"

# Pacing between requests, independent of blocking.
DELAY_BETWEEN_SECONDS: float = _parse_float("COURTDOCS_DELAY_BETWEEN_SECONDS", 1.5)
BATCH_REST_INTERVAL: int = int(os.getenv("COURTDOCS_BATCH_REST_INTERVAL", "50"))
BATCH_REST_SECONDS: float = _parse_float("COURTDOCS_BATCH_REST_SECONDS", 15.0)

# Reaction to upstream blocking.
BLOCK_COOLDOWN_SECONDS: float = _parse_float("COURTDOCS_BLOCK_COOLDOWN_SECONDS", 180.0)
MAX_CONSECUTIVE_BLOCKS: int = int(os.getenv("COURTDOCS_MAX_CONSECUTIVE_BLOCKS", "5"))

# Flush checkpoint and details every N processed items.
SAVE_EVERY: int = int(os.getenv("COURTDOCS_SAVE_EVERY", "10"))

# The documents API answers 550 when the case simply has no records.
NO_DATA_STATUS: int = 550
BLOCK_PHRASES: tuple[str, ...] = tuple(
    phrase.strip()
    for phrase in os.getenv("COURTDOCS_BLOCK_PHRASES", "차단").split(",")
    if phrase.strip()
)

# Sampling used by --test runs: advanced cases first, then early ones.
TEST_ADVANCED_COUNT: int = int(os.getenv("COURTDOCS_TEST_ADVANCED_COUNT", "3"))
TEST_EARLY_COUNT: int = int(os.getenv("COURTDOCS_TEST_EARLY_COUNT", "2"))

# Session + transport
SESSION_BACKEND: str = (
    os.getenv("COURTDOCS_SESSION_BACKEND", "playwright").strip().lower() or "playwright"
)
SESSION_BACKENDS: tuple[str, ...] = ("playwright", "http")
HEADLESS: bool = _parse_flag("COURTDOCS_HEADLESS", "1")
NAV_TIMEOUT_SECONDS: int = _parse_timeout_seconds("COURTDOCS_NAV_TIMEOUT_SECONDS", 60)
REQUEST_TIMEOUT_SECONDS: int = _parse_timeout_seconds(
    "COURTDOCS_REQUEST_TIMEOUT_SECONDS", 30
)
SESSION_SETTLE_SECONDS: float = _parse_float("COURTDOCS_SESSION_SETTLE_SECONDS", 3.0)

RECORD_REPLAY_FIXTURES: bool = _parse_flag("COURTDOCS_RECORD_REPLAY_FIXTURES")

MIN_FREE_MB: int = int(os.getenv("MIN_FREE_MB", "100"))

USER_AGENT: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)
BROWSER_LOCALE: str = "ko-KR"
BROWSER_VIEWPORT: dict[str, int] = {"width": 1400, "height": 900}

COMMON_HEADERS: dict[str, str] = {
    "User-Agent": USER_AGENT,
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "ko-KR,ko;q=0.9,en-US;q=0.8",
    "Content-Type": "application/json",
    "Origin": SITE_ROOT,
    "Referer": SEARCH_PAGE_URL,
    "X-Requested-With": "XMLHttpRequest",
}


def is_known_backend(name: str) -> bool:
    """Return ``True`` when ``name`` is a supported session backend."""

    return str(name).strip().lower() in SESSION_BACKENDS
