from __future__ import annotations

from typing import Any

from flask import Flask, Response, jsonify

from courtdocs.scraper import config
from courtdocs.scraper.healthcheck import run_health_checks
from courtdocs.scraper.state import read_checkpoint
from courtdocs.scraper.utils import ensure_dirs, get_current_log_path, load_json_file

app = Flask(__name__)

# Read-only status views; runs are started from the CLI so that stop signals
# reach the collection loop.
ensure_dirs()


def _progress_payload() -> dict[str, Any]:
    checkpoint = read_checkpoint(config.PROGRESS_FILE)
    if checkpoint is None:
        return {"present": False, "completed": 0, "total": 0}
    total = checkpoint.total
    completed = len(checkpoint.completed)
    return {
        "present": True,
        "completed": completed,
        "total": total,
        "percent": round(100.0 * completed / total, 1) if total else None,
        "started_at": checkpoint.started_at,
        "last_updated": checkpoint.last_updated,
    }


def _read_last_log_lines(limit: int = 50) -> list[str]:
    """Return the trailing ``limit`` log lines."""

    path = get_current_log_path()
    if not path.exists():
        return []

    with path.open("r", encoding="utf-8", errors="ignore") as handle:
        lines = handle.readlines()[-limit:]
    return [line.rstrip("\n") for line in lines]


@app.get("/")
def index() -> Response:
    """Plain-text overview of progress and the last run."""

    progress = _progress_payload()
    summary = load_json_file(config.SUMMARY_FILE)
    lines = [
        "Court auction document collector",
        f"Progress: {progress['completed']}/{progress['total']}",
    ]
    if isinstance(summary, dict):
        lines.append(
            "Last run: {status} (success={success}, errors={errors}, blocks={blocks})".format(
                status=summary.get("status"),
                success=summary.get("success", 0),
                errors=summary.get("errors", 0),
                blocks=summary.get("blocks", 0),
            )
        )
    else:
        lines.append("Last run: none")
    lines.append("")
    lines.extend(_read_last_log_lines())
    return Response("\n".join(lines) + "\n", mimetype="text/plain")


@app.get("/api/progress")
def api_progress() -> Response:
    return jsonify(_progress_payload())


@app.get("/api/summary")
def api_summary() -> Response:
    summary = load_json_file(config.SUMMARY_FILE)
    if not isinstance(summary, dict):
        return jsonify({"error": "no summary yet"}), 404
    return jsonify(summary)


@app.get("/api/health")
def api_health() -> Response:
    """Return a JSON health summary for configuration, filesystem and stores."""

    result = run_health_checks(entrypoint="ui")
    status = 200 if result.ok else 503
    return jsonify({"ok": result.ok, "checks": result.checks}), status
