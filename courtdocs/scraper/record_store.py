"""Load, merge into and save the court auction details store.

The details file is either a JSON list of entries or a JSON object mapping an
index to each entry. Whatever shape was loaded is written back, with the
ordering and keys it was read with. Entries are plain dicts mutated in place.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from . import config
from .classifier import Blocked, Error, FetchOutcome, NoData, Success
from .utils import load_json_file, log_line, save_json_file_durably

DELIVERY_KEY = "deliveryRecords"
DOCUMENT_KEY = "documentRecords"
MERGER_KEY = "mergerRecords"
PRIOR_CASE_KEY = "priorCaseInfo"


def record_key(entry: Dict[str, Any]) -> str:
    """Return the composite key (court code + case number) of an entry."""

    return str(entry.get("cortOfcCd") or "") + str(entry.get("csNo") or "")


def is_done(entry: Dict[str, Any]) -> bool:
    """Return True once an entry carries a delivery list, even an empty one.

    Presence of the field, not its content, separates "checked, nothing
    exists" from "never checked".
    """

    return DELIVERY_KEY in entry


def apply_outcome(entry: Dict[str, Any], outcome: FetchOutcome) -> None:
    """Merge a settled outcome into ``entry`` without touching other fields."""

    if isinstance(outcome, Success):
        entry[DELIVERY_KEY] = list(outcome.delivery_records)
        entry[DOCUMENT_KEY] = list(outcome.document_records)
        if outcome.merger_records:
            entry[MERGER_KEY] = list(outcome.merger_records)
        if outcome.prior_case:
            entry[PRIOR_CASE_KEY] = dict(outcome.prior_case)
        return

    if isinstance(outcome, (NoData, Error)):
        entry[DELIVERY_KEY] = []
        entry[DOCUMENT_KEY] = []
        return

    if isinstance(outcome, Blocked):
        raise ValueError("Blocked outcomes are retried, never merged")

    raise TypeError(f"Unknown outcome type: {type(outcome).__name__}")


class RecordStore:
    """Whole-file JSON persistence for details entries."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path is not None else config.DETAILS_FILE
        self._mapping_keys: Optional[List[str]] = None

    @property
    def is_mapping(self) -> bool:
        return self._mapping_keys is not None

    def load_all(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            raise FileNotFoundError(f"Details file not found: {self.path}")

        raw = load_json_file(self.path)
        if isinstance(raw, list):
            self._mapping_keys = None
            entries = raw
        elif isinstance(raw, dict):
            self._mapping_keys = [str(key) for key in raw.keys()]
            entries = list(raw.values())
        else:
            raise ValueError(f"Details file {self.path} is not a JSON list or object")

        log_line(
            f"[STORE] Loaded {len(entries)} entries from {self.path} "
            f"(shape={'mapping' if self.is_mapping else 'list'})"
        )
        return entries

    def save_all(self, entries: List[Dict[str, Any]]) -> None:
        if self._mapping_keys is None:
            payload: Any = entries
        else:
            keys = self._mapping_keys
            if len(keys) != len(entries):
                keys = [str(index) for index in range(len(entries))]
            payload = dict(zip(keys, entries))
        save_json_file_durably(self.path, payload, label="details")


def index_by_key(entries: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """Return ``key -> entry``; the first entry with a key owns it."""

    index: Dict[str, Dict[str, Any]] = {}
    for entry in entries:
        if isinstance(entry, dict):
            index.setdefault(record_key(entry), entry)
    return index


__all__ = [
    "DELIVERY_KEY",
    "DOCUMENT_KEY",
    "MERGER_KEY",
    "PRIOR_CASE_KEY",
    "record_key",
    "is_done",
    "apply_outcome",
    "RecordStore",
    "index_by_key",
]
