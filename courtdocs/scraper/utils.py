from __future__ import annotations

import json
import logging
import shutil
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from . import config
from .errors import PersistenceError

LOGGER = logging.getLogger("courtdocs")
_LOGGER_INITIALISED = False
_CURRENT_LOG_FILE: Path = config.LOG_FILE


def _configure_logger(log_path: Path) -> None:
    """Configure the shared application logger to write to ``log_path``."""

    global _LOGGER_INITIALISED, _CURRENT_LOG_FILE

    log_path.parent.mkdir(parents=True, exist_ok=True)

    for handler in list(LOGGER.handlers):
        LOGGER.removeHandler(handler)
        try:
            handler.close()
        except Exception:  # noqa: BLE001
            continue

    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)

    LOGGER.setLevel(logging.INFO)
    LOGGER.addHandler(stream_handler)
    LOGGER.addHandler(file_handler)
    LOGGER.propagate = False

    _CURRENT_LOG_FILE = log_path
    _LOGGER_INITIALISED = True


def _ensure_logger() -> None:
    """Initialise the logger lazily using the default log file."""

    if _LOGGER_INITIALISED:
        return

    _configure_logger(config.LOG_FILE)


def setup_run_logger() -> Path:
    """Rotate to a fresh timestamped log file for the current run."""

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_path = config.LOG_DIR / f"collect_{timestamp}.log"
    _configure_logger(log_path)
    LOGGER.info("Logging to %s", log_path)
    return log_path


def get_current_log_path() -> Path:
    """Return the path to the log file currently receiving log lines."""

    _ensure_logger()
    return _CURRENT_LOG_FILE


def ensure_dirs() -> None:
    """Ensure that the application's expected directory structure exists."""

    config.DATA_DIR.mkdir(parents=True, exist_ok=True)
    config.TEMP_DIR.mkdir(parents=True, exist_ok=True)
    config.LOG_DIR.mkdir(parents=True, exist_ok=True)


def log_line(message: str) -> None:
    """Write a timestamped log line to stdout and the active log file."""

    _ensure_logger()
    LOGGER.info(message)


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string with ``Z`` suffix."""

    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def load_json_file(path: Path, default: Any = None) -> Any:
    """Return the decoded JSON document at ``path`` or ``default``."""

    try:
        with Path(path).open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except (FileNotFoundError, json.JSONDecodeError):
        return default


def save_json_file(path: Path, payload: Any, *, indent: int = 2) -> None:
    """Persist ``payload`` to ``path`` atomically via a temporary sibling."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")

    with tmp_path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, ensure_ascii=False, indent=indent)

    tmp_path.replace(path)


def save_json_file_durably(path: Path, payload: Any, *, label: str) -> None:
    """Save ``payload`` atomically, retrying once before giving up.

    Raises :class:`PersistenceError` when the second attempt fails too.
    """

    try:
        save_json_file(path, payload)
        return
    except OSError as exc:
        log_line(f"[PERSIST][WARN] Writing {label} to {path} failed ({exc}); retrying once.")

    try:
        save_json_file(path, payload)
    except OSError as exc:
        log_line(f"[PERSIST][ERROR] Writing {label} to {path} failed again: {exc}")
        raise PersistenceError(f"Unable to write {label}: {exc}", path=str(path)) from exc


def append_json_line(path: Path, payload: dict[str, Any]) -> None:
    """Append ``payload`` as a single JSON line to ``path``."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(payload, ensure_ascii=False) + "\n")


def load_json_lines(path: Path) -> Iterator[Any]:
    """Yield decoded JSON values from a JSONL file, skipping bad lines."""

    path = Path(path)
    if not path.exists():
        return
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError:
                continue


def disk_has_room(min_free_mb: int, path: Path) -> bool:
    """Return ``True`` when the filesystem holding ``path`` has enough space."""

    try:
        usage = shutil.disk_usage(str(path))
    except OSError:
        return False
    return usage.free >= int(min_free_mb) * 1024 * 1024


def short_error_message(exc: BaseException, max_length: int = 200) -> str:
    """Return a one-line, length-capped description of ``exc``."""

    text = f"{type(exc).__name__}: {exc}".replace("\n", " ")
    if len(text) > max_length:
        return text[: max_length - 3] + "..."
    return text


__all__ = [
    "ensure_dirs",
    "setup_run_logger",
    "get_current_log_path",
    "log_line",
    "utc_now_iso",
    "load_json_file",
    "save_json_file",
    "save_json_file_durably",
    "append_json_line",
    "load_json_lines",
    "disk_has_room",
    "short_error_message",
]
