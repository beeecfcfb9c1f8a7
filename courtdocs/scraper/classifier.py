"""Turn a raw documents-API response into a semantic fetch outcome.

The documents endpoint answers with a JSON envelope (``{"message": ...,
"data": {...}}``) or, on older deployments, with the payload at the top level.
Blocking is signalled softly: either the message mentions the block (``차단``)
or ``data.ipcheck`` is ``false``. Status 550 is the service's documented "no
records for this case" answer and is a normal outcome.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Union

from . import config
from .error_codes import ErrorCode, classify_http_status

DELIVERY_FIELD = "dlt_dlvrDtsLst"
DOCUMENT_FIELD = "dlt_ofdocDtsLst"
MERGER_FIELD = "dlt_mrgDpcnSbxLst"
PRIOR_CASE_FIELD = "dma_trnscsBfCsInfo"


@dataclass(frozen=True)
class RawResponse:
    """What a single fetch attempt produced, before interpretation."""

    status: Optional[int]
    text: Optional[str]
    transport_error: Optional[str] = None
    timed_out: bool = False


@dataclass(frozen=True)
class Success:
    delivery_records: list[Any] = field(default_factory=list)
    document_records: list[Any] = field(default_factory=list)
    merger_records: list[Any] = field(default_factory=list)
    prior_case: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class NoData:
    message: str


@dataclass(frozen=True)
class Blocked:
    message: str


@dataclass(frozen=True)
class Error:
    message: str
    status: Optional[int] = None
    error_code: str = ErrorCode.INTERNAL


FetchOutcome = Union[Success, NoData, Blocked, Error]


class BlockDetector:
    """Decide whether a parsed response is an upstream block.

    The predicate is reverse-engineered from observed responses, so phrases and
    the ``ipcheck`` flag handling are configurable rather than fixed.
    """

    def __init__(
        self,
        phrases: Iterable[str] | None = None,
        *,
        flag_field: str | None = "ipcheck",
    ) -> None:
        # ``None`` defers to config.BLOCK_PHRASES at call time.
        self.phrases = tuple(p for p in phrases if p) if phrases is not None else None
        self.flag_field = flag_field

    def is_blocked(self, message: str | None, data: Any) -> bool:
        text = message or ""
        phrases = self.phrases if self.phrases is not None else config.BLOCK_PHRASES
        if any(phrase in text for phrase in phrases):
            return True
        if self.flag_field and isinstance(data, dict):
            return data.get(self.flag_field, True) is False
        return False


DEFAULT_BLOCK_DETECTOR = BlockDetector()


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    return []


def _as_prior_case(value: Any) -> Optional[dict[str, Any]]:
    if isinstance(value, dict) and value:
        return value
    return None


def _message_of(document: Any) -> Optional[str]:
    if isinstance(document, dict):
        message = document.get("message")
        if message is not None:
            return str(message)
    return None


def classify_response(
    raw: RawResponse,
    *,
    detector: BlockDetector | None = None,
    no_data_status: int | None = None,
) -> FetchOutcome:
    """Return exactly one :data:`FetchOutcome` for ``raw``.

    Block detection runs before any status check so that an error status that
    carries a block message still engages the cooldown.
    """

    detector = detector or DEFAULT_BLOCK_DETECTOR
    no_data_status = config.NO_DATA_STATUS if no_data_status is None else no_data_status

    if raw.transport_error is not None:
        return Error(
            message=raw.transport_error,
            status=None,
            error_code=ErrorCode.TIMEOUT if raw.timed_out else ErrorCode.NETWORK,
        )

    try:
        document = json.loads(raw.text if raw.text is not None else "")
    except (TypeError, ValueError):
        return Error(
            message="unparseable body",
            status=raw.status,
            error_code=ErrorCode.UNPARSEABLE_BODY,
        )

    data = document.get("data") if isinstance(document, dict) else None
    if data is None:
        data = document
    message = _message_of(document)

    if detector.is_blocked(message, data):
        return Blocked(message=message or "blocked")

    if raw.status == no_data_status:
        return NoData(message=message or "데이터 없음")

    if raw.status is None or not 200 <= raw.status < 300:
        return Error(
            message=message or f"HTTP {raw.status}",
            status=raw.status,
            error_code=classify_http_status(raw.status),
        )

    if not isinstance(data, dict):
        data = {}
    return Success(
        delivery_records=_as_list(data.get(DELIVERY_FIELD)),
        document_records=_as_list(data.get(DOCUMENT_FIELD)),
        merger_records=_as_list(data.get(MERGER_FIELD)),
        prior_case=_as_prior_case(data.get(PRIOR_CASE_FIELD)),
    )


def describe_outcome(outcome: FetchOutcome) -> str:
    """Return a short human-readable description for progress lines."""

    if isinstance(outcome, Success):
        return f"delivery={len(outcome.delivery_records)} documents={len(outcome.document_records)}"
    if isinstance(outcome, NoData):
        return f"no data ({outcome.message})"
    if isinstance(outcome, Blocked):
        return f"blocked ({outcome.message})"
    if isinstance(outcome, Error):
        return f"error {outcome.error_code} ({outcome.message or outcome.status})"
    raise TypeError(f"Unknown outcome type: {type(outcome).__name__}")


__all__ = [
    "RawResponse",
    "Success",
    "NoData",
    "Blocked",
    "Error",
    "FetchOutcome",
    "BlockDetector",
    "DEFAULT_BLOCK_DETECTOR",
    "classify_response",
    "describe_outcome",
]
