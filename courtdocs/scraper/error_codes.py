from __future__ import annotations

"""Error code taxonomy for per-item collection failures.

These codes are attached to ``Error`` outcomes, counted in the run summary and
included in structured logs so that operators can tell why an item was settled
without data.
"""


class ErrorCode:
    UNPARSEABLE_BODY = "unparseable_body"
    NETWORK = "network_error"
    TIMEOUT = "timeout"
    HTTP_4XX = "http_4xx"
    HTTP_5XX = "http_5xx"
    HTTP_OTHER = "http_other"
    RECORD_MISSING = "record_missing"
    INTERNAL = "internal_error"


def classify_http_status(status: int | None) -> str:
    """Map a failing HTTP status to an :class:`ErrorCode` value."""

    if status is None:
        return ErrorCode.NETWORK
    if 400 <= status < 500:
        return ErrorCode.HTTP_4XX
    if status >= 500:
        return ErrorCode.HTTP_5XX
    return ErrorCode.HTTP_OTHER


__all__ = ["ErrorCode", "classify_http_status"]
