from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

from . import config
from .config_validation import validate_runtime_config
from .logging_utils import _scraper_event
from .record_store import is_done, record_key
from .state import read_checkpoint
from .utils import disk_has_room, ensure_dirs, load_json_file, log_line


@dataclass
class HealthResult:
    ok: bool
    checks: dict[str, dict[str, Any]]


def _check_details() -> dict[str, Any]:
    path = config.DETAILS_FILE
    if not path.exists():
        return {"ok": False, "path": str(path), "error": "missing"}
    raw = load_json_file(path)
    if isinstance(raw, dict):
        entries = list(raw.values())
    elif isinstance(raw, list):
        entries = raw
    else:
        return {"ok": False, "path": str(path), "error": "unparseable"}
    done = sum(1 for entry in entries if isinstance(entry, dict) and is_done(entry))
    return {
        "ok": True,
        "path": str(path),
        "entries": len(entries),
        "done": done,
        "pending": len(entries) - done,
        "_done_keys": {
            record_key(entry) for entry in entries if isinstance(entry, dict) and is_done(entry)
        },
    }


def _check_checkpoint(done_keys: set[str] | None) -> dict[str, Any]:
    path = config.PROGRESS_FILE
    if not path.exists():
        return {"ok": True, "path": str(path), "present": False}
    checkpoint = read_checkpoint(path)
    if checkpoint is None:
        return {"ok": False, "path": str(path), "present": True, "error": "unparseable"}
    info: dict[str, Any] = {
        "ok": True,
        "path": str(path),
        "present": True,
        "completed": len(checkpoint.completed),
        "total": checkpoint.total,
        "last_updated": checkpoint.last_updated,
    }
    if done_keys is not None:
        # Informational: keys settled but whose details were never flushed.
        info["missing_in_store"] = sum(1 for key in checkpoint.completed if key not in done_keys)
    return info


def run_health_checks(entrypoint: str = "cli") -> HealthResult:
    checks: dict[str, dict[str, Any]] = {}

    try:
        validate_runtime_config(entrypoint or "cli")
        checks["config"] = {"ok": True}
    except ValueError as exc:
        checks["config"] = {"ok": False, "error": str(exc)}

    ensure_dirs()
    fs_ok = disk_has_room(config.MIN_FREE_MB, config.DATA_DIR) and os.access(
        config.DATA_DIR, os.W_OK
    )
    checks["filesystem"] = {
        "ok": fs_ok,
        "data_dir": str(config.DATA_DIR),
        "min_free_mb": config.MIN_FREE_MB,
    }

    details = _check_details()
    done_keys = details.pop("_done_keys", None)
    checks["details"] = details
    checks["checkpoint"] = _check_checkpoint(done_keys)

    overall_ok = all(check.get("ok", False) for check in checks.values())

    _scraper_event(
        "state" if overall_ok else "error",
        phase="health",
        context="healthcheck",
        ok=overall_ok,
        checks=checks,
    )

    return HealthResult(ok=overall_ok, checks=checks)


if __name__ == "__main__":  # pragma: no cover
    result = run_health_checks(entrypoint="cli")
    for name, info in result.checks.items():
        status = "OK" if info.get("ok") else "FAIL"
        log_line(f"[HEALTH] {name}: {status} {info}")
    raise SystemExit(0 if result.ok else 1)
