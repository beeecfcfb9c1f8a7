from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from . import config
from .classifier import Blocked, Error, FetchOutcome, NoData, Success
from .logging_utils import _scraper_event


class BackoffAction(str, Enum):
    CONTINUE = "continue"
    RETRY = "retry"
    ABORT = "abort"


@dataclass(frozen=True)
class BackoffDecision:
    action: BackoffAction
    consecutive_blocks: int
    wait_seconds: float = 0.0


class BackoffController:
    """Track consecutive blocks within one run and decide how to react.

    The counter lives only for the lifetime of the controller; a resumed run
    starts from zero.
    """

    def __init__(
        self,
        max_consecutive_blocks: Optional[int] = None,
        cooldown_seconds: Optional[float] = None,
    ) -> None:
        self.max_consecutive_blocks = (
            config.MAX_CONSECUTIVE_BLOCKS
            if max_consecutive_blocks is None
            else int(max_consecutive_blocks)
        )
        self.cooldown_seconds = (
            config.BLOCK_COOLDOWN_SECONDS if cooldown_seconds is None else float(cooldown_seconds)
        )
        self.consecutive_blocks = 0
        self.total_blocks = 0

    def observe(self, outcome: FetchOutcome) -> BackoffDecision:
        """Update the block counter for ``outcome`` and return the decision."""

        if isinstance(outcome, (Success, NoData)):
            self.consecutive_blocks = 0
            return BackoffDecision(BackoffAction.CONTINUE, 0)

        if isinstance(outcome, Error):
            # Item-specific; does not say anything about the session.
            return BackoffDecision(BackoffAction.CONTINUE, self.consecutive_blocks)

        if isinstance(outcome, Blocked):
            self.consecutive_blocks += 1
            self.total_blocks += 1
            if self.consecutive_blocks >= self.max_consecutive_blocks:
                decision = BackoffDecision(BackoffAction.ABORT, self.consecutive_blocks)
            else:
                decision = BackoffDecision(
                    BackoffAction.RETRY,
                    self.consecutive_blocks,
                    wait_seconds=self.cooldown_seconds,
                )
            _scraper_event(
                "state",
                phase="backoff_decision",
                kind=decision.action.value,
                consecutive_blocks=self.consecutive_blocks,
                max_consecutive_blocks=self.max_consecutive_blocks,
                wait_seconds=decision.wait_seconds or None,
                message=outcome.message,
            )
            return decision

        raise TypeError(f"Unknown outcome type: {type(outcome).__name__}")


__all__ = ["BackoffAction", "BackoffDecision", "BackoffController"]
