"""Helpers for persisting and restoring collection progress."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from . import config
from .utils import load_json_file, log_line, save_json_file_durably, utc_now_iso


@dataclass
class ProgressCheckpoint:
    """Keys settled so far, plus bookkeeping timestamps.

    ``completed`` only records that a key was attempted and settled (including
    permanent errors); it says nothing about whether data was found.
    """

    completed: List[str] = field(default_factory=list)
    total: int = 0
    started_at: str = field(default_factory=utc_now_iso)
    last_updated: str = field(default_factory=utc_now_iso)

    def __post_init__(self) -> None:
        seen: Set[str] = set()
        unique: List[str] = []
        for key in self.completed:
            if isinstance(key, str) and key and key not in seen:
                seen.add(key)
                unique.append(key)
        self.completed = unique
        self._completed_set = seen

    @property
    def completed_keys(self) -> Set[str]:
        return set(self._completed_set)

    def is_completed(self, key: str) -> bool:
        return key in self._completed_set

    def mark_completed(self, key: str) -> bool:
        """Record ``key`` as settled; returns ``False`` if it already was."""

        if not key or key in self._completed_set:
            return False
        self._completed_set.add(key)
        self.completed.append(key)
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completed": list(self.completed),
            "total": self.total,
            "startedAt": self.started_at,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgressCheckpoint":
        completed = data.get("completed") or []
        if not isinstance(completed, list):
            completed = []
        try:
            total = int(data.get("total") or 0)
        except (TypeError, ValueError):
            total = 0
        return cls(
            completed=[str(key) for key in completed if key],
            total=total,
            started_at=str(data.get("startedAt") or utc_now_iso()),
            last_updated=str(data.get("lastUpdated") or utc_now_iso()),
        )


class CheckpointStore:
    """Load and atomically save a :class:`ProgressCheckpoint` JSON file.

    Single writer, single process. ``mark_completed`` only touches memory;
    nothing reaches disk until :meth:`save` is called.
    """

    def __init__(self, path: Optional[Path] = None, *, resume: bool = False) -> None:
        self.path = Path(path) if path is not None else config.PROGRESS_FILE
        self.resume = resume

    def load(self) -> ProgressCheckpoint:
        if not self.resume:
            return ProgressCheckpoint()
        if not self.path.exists():
            log_line(f"[CHECKPOINT] No checkpoint at {self.path}; starting fresh.")
            return ProgressCheckpoint()

        loaded = load_json_file(self.path)
        if not isinstance(loaded, dict):
            log_line(f"[CHECKPOINT] Failed to read checkpoint {self.path}; starting fresh.")
            return ProgressCheckpoint()

        checkpoint = ProgressCheckpoint.from_dict(loaded)
        log_line(
            f"[CHECKPOINT] Resuming from {self.path}: completed={len(checkpoint.completed)} "
            f"total={checkpoint.total} started_at={checkpoint.started_at}"
        )
        return checkpoint

    def save(self, checkpoint: ProgressCheckpoint) -> None:
        checkpoint.last_updated = utc_now_iso()
        save_json_file_durably(self.path, checkpoint.to_dict(), label="checkpoint")

    @staticmethod
    def mark_completed(checkpoint: ProgressCheckpoint, key: str) -> bool:
        return checkpoint.mark_completed(key)


def read_checkpoint(path: Optional[Path] = None) -> Optional[ProgressCheckpoint]:
    """Return the checkpoint stored at ``path`` without logging, or ``None``."""

    loaded = load_json_file(Path(path) if path is not None else config.PROGRESS_FILE)
    if not isinstance(loaded, dict):
        return None
    return ProgressCheckpoint.from_dict(loaded)


__all__ = ["ProgressCheckpoint", "CheckpointStore", "read_checkpoint"]
