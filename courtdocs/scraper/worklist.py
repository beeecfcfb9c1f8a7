from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set

from . import config
from .record_store import is_done, record_key
from .state import ProgressCheckpoint
from .utils import log_line

SamplingPolicy = Callable[[List["WorkItem"]], List["WorkItem"]]


@dataclass(frozen=True)
class WorkItem:
    """A single case whose delivery/document history should be collected.

    Derived from one details entry; it carries the composite key plus the
    labels used in progress lines and no runtime state.
    """

    court_code: str
    case_no: str
    case_number: str = ""
    court_name: str = ""
    advanced: bool = False

    @property
    def key(self) -> str:
        return self.court_code + self.case_no

    @property
    def label(self) -> str:
        return f"{self.case_number or self.case_no} ({self.court_name or self.court_code})"


def _is_advanced(entry: Dict[str, Any]) -> bool:
    """Return True when the case already has a status investigation on file."""

    investigation = entry.get("investigation")
    if not isinstance(investigation, dict):
        return False
    info = investigation.get("dma_curstExmnMngInf")
    return isinstance(info, dict) and len(info) > 0


def _entry_to_work_item(entry: Dict[str, Any]) -> Optional[WorkItem]:
    court_code = str(entry.get("cortOfcCd") or "").strip()
    case_no = str(entry.get("csNo") or "").strip()
    if not court_code or not case_no:
        return None
    return WorkItem(
        court_code=court_code,
        case_no=case_no,
        case_number=str(entry.get("caseNumber") or "").strip(),
        court_name=str(entry.get("courtName") or "").strip(),
        advanced=_is_advanced(entry),
    )


def build_work_items(entries: Iterable[Dict[str, Any]]) -> List[WorkItem]:
    """Return one WorkItem per details entry that carries a composite key."""

    items: List[WorkItem] = []
    skipped = 0
    for entry in entries:
        item = _entry_to_work_item(entry) if isinstance(entry, dict) else None
        if item is None:
            skipped += 1
            continue
        items.append(item)
    if skipped:
        log_line(f"[WORKLIST] Ignored {skipped} entries without cortOfcCd/csNo")
    return items


def build_pending_worklist(
    entries: Sequence[Dict[str, Any]],
    checkpoint: ProgressCheckpoint,
) -> List[WorkItem]:
    """Return the items still to fetch, in details order.

    An item is pending only when its key is not in the checkpoint AND its
    record carries no done marker. The second check catches records completed
    by an earlier run whose checkpoint file was lost. A key repeated in the
    details file is fetched once, for its first entry.
    """

    done_in_store = {record_key(entry) for entry in entries if isinstance(entry, dict) and is_done(entry)}
    pending: List[WorkItem] = []
    seen: Set[str] = set()
    duplicates = 0
    for item in build_work_items(entries):
        if item.key in seen:
            duplicates += 1
            continue
        seen.add(item.key)
        if not checkpoint.is_completed(item.key) and item.key not in done_in_store:
            pending.append(item)
    if duplicates:
        log_line(f"[WORKLIST] Skipped {duplicates} entries repeating an earlier key")
    log_line(
        f"[WORKLIST] pending={len(pending)} total={len(entries)} "
        f"checkpoint_completed={len(checkpoint.completed)} done_in_store={len(done_in_store)}"
    )
    return pending


def advanced_early_sample(
    advanced_count: Optional[int] = None,
    early_count: Optional[int] = None,
) -> SamplingPolicy:
    """Return a policy keeping a few advanced cases followed by a few early ones."""

    n_advanced = config.TEST_ADVANCED_COUNT if advanced_count is None else advanced_count
    n_early = config.TEST_EARLY_COUNT if early_count is None else early_count

    def _sample(items: List[WorkItem]) -> List[WorkItem]:
        advanced = [item for item in items if item.advanced][: max(0, n_advanced)]
        early = [item for item in items if not item.advanced][: max(0, n_early)]
        log_line(f"[WORKLIST] test sample: advanced={len(advanced)} early={len(early)}")
        return advanced + early

    return _sample


def limit_sample(limit: int) -> SamplingPolicy:
    """Return a policy keeping the first ``limit`` pending items."""

    def _sample(items: List[WorkItem]) -> List[WorkItem]:
        return items[: max(0, limit)]

    return _sample


__all__ = [
    "WorkItem",
    "SamplingPolicy",
    "build_work_items",
    "build_pending_worklist",
    "advanced_early_sample",
    "limit_sample",
]
