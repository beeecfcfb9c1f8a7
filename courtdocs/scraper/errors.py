"""Exception types raised by the collector."""

from __future__ import annotations

from typing import Any, Optional


class CollectorError(Exception):
    """Base class for collector failures."""


class SessionError(CollectorError):
    """The authenticated session could not be established or refreshed."""


class BlockedError(CollectorError):
    """Upstream refused the request as an aggressive access pattern."""

    def __init__(self, message: str, *, consecutive_blocks: int = 0) -> None:
        super().__init__(message)
        self.consecutive_blocks = consecutive_blocks


class ItemFetchError(CollectorError):
    def __init__(self, error_code: str, message: str, *, http_status: int | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.http_status = http_status


class PersistenceError(CollectorError):
    """Checkpoint or details could not be written to durable storage."""

    def __init__(self, message: str, *, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path


class RunAborted(CollectorError):
    """The run stopped after too many consecutive blocks.

    ``summary`` holds the run summary captured after the final flush.
    """

    def __init__(self, message: str, *, summary: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.summary = summary or {}


class RunInterrupted(CollectorError):
    """A stop signal was received while the loop was running."""

    def __init__(self, signum: int | None = None) -> None:
        super().__init__(f"interrupted by signal {signum}" if signum else "interrupted")
        self.signum = signum


__all__ = [
    "CollectorError",
    "SessionError",
    "BlockedError",
    "ItemFetchError",
    "PersistenceError",
    "RunAborted",
    "RunInterrupted",
]
