from __future__ import annotations

from typing import Literal

from . import config
from .logging_utils import _scraper_event
from .utils import log_line

Entrypoint = Literal["ui", "cli", "replay", "tests"]


def _raise_config_error(message: str, *, entrypoint: Entrypoint, error: str) -> None:
    _scraper_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
    )
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint})")
    raise ValueError(message)


def validate_runtime_config(entrypoint: Entrypoint) -> None:
    """Validate runtime configuration for the given entrypoint.

    Raises ``ValueError`` when a blocking misconfiguration is detected.
    Non-fatal adjustments are logged but do not raise.
    """

    if not config.is_known_backend(config.SESSION_BACKEND):
        _raise_config_error(
            f"Unknown session backend {config.SESSION_BACKEND!r}.",
            entrypoint=entrypoint,
            error="unknown_backend",
        )

    if config.MAX_CONSECUTIVE_BLOCKS < 1:
        _raise_config_error(
            "MAX_CONSECUTIVE_BLOCKS must be at least 1.",
            entrypoint=entrypoint,
            error="max_consecutive_blocks_invalid",
        )

    if config.SAVE_EVERY < 1:
        _raise_config_error(
            "SAVE_EVERY must be at least 1.",
            entrypoint=entrypoint,
            error="save_every_invalid",
        )

    if config.BATCH_REST_INTERVAL < 1 and config.BATCH_REST_INTERVAL != 0:
        _scraper_event(
            "state",
            phase="config",
            context="runtime_validation",
            kind="config_adjustment",
            field="BATCH_REST_INTERVAL",
            value=config.BATCH_REST_INTERVAL,
            adjusted=0,
            entrypoint=entrypoint,
        )
        log_line("[CONFIG] BATCH_REST_INTERVAL < 1; batch rests disabled.")
        config.BATCH_REST_INTERVAL = 0

    if config.MIN_FREE_MB < 0:
        _raise_config_error(
            "MIN_FREE_MB must be non-negative.",
            entrypoint=entrypoint,
            error="min_free_mb_invalid",
        )

    if not config.BLOCK_PHRASES:
        log_line("[CONFIG] BLOCK_PHRASES is empty; only the ipcheck flag detects blocks.")

    timeout_fields = [
        ("NAV_TIMEOUT_SECONDS", config.NAV_TIMEOUT_SECONDS),
        ("REQUEST_TIMEOUT_SECONDS", config.REQUEST_TIMEOUT_SECONDS),
    ]

    for field_name, value in timeout_fields:
        if value <= 0:
            _raise_config_error(
                f"{field_name} must be greater than zero.",
                entrypoint=entrypoint,
                error="invalid_timeout",
            )


__all__ = ["validate_runtime_config", "Entrypoint"]
