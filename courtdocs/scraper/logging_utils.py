from __future__ import annotations

import json
from typing import Any

from .utils import log_line

MAX_FIELD_CHARS = 300


def _format_field(value: Any) -> str:
    """Render one event field on a single line.

    Nested payloads (health checks, run summaries) are written as compact JSON;
    long strings such as response bodies are cut to ``MAX_FIELD_CHARS``.
    """

    if isinstance(value, (dict, list)):
        text = json.dumps(value, ensure_ascii=False, sort_keys=True, default=str)
    else:
        text = repr(value)
    text = text.replace("\n", " ")
    if len(text) > MAX_FIELD_CHARS:
        text = text[: MAX_FIELD_CHARS - 3] + "..."
    return text


def _scraper_event(label: str = "", *, phase: str | None = None, **fields: Any) -> None:
    """Emit a structured ``[SCRAPER][LABEL] key=value`` log line.

    ``phase`` doubles as the label when no label is given; otherwise it is kept
    as a field. Fields set to ``None`` are left out.
    """

    try:
        event_label = label or (phase or "")
        if phase and label:
            fields.setdefault("phase", phase)
        payload = ", ".join(
            f"{key}={_format_field(value)}"
            for key, value in sorted(fields.items())
            if value is not None
        )
        log_line(f"[SCRAPER][{event_label.upper()}] {payload}")
    except Exception:
        # Never let logging break the collector.
        return


__all__ = ["_scraper_event"]
