import pytest

from courtdocs.scraper import backoff as backoff_module
from courtdocs.scraper.backoff import BackoffAction, BackoffController
from courtdocs.scraper.classifier import Blocked, Error, NoData, Success


def test_blocks_retry_until_limit_then_abort() -> None:
    controller = BackoffController(max_consecutive_blocks=3, cooldown_seconds=180)

    first = controller.observe(Blocked("차단"))
    second = controller.observe(Blocked("차단"))
    third = controller.observe(Blocked("차단"))

    assert first.action is BackoffAction.RETRY
    assert first.wait_seconds == 180
    assert second.consecutive_blocks == 2
    assert third.action is BackoffAction.ABORT
    assert third.consecutive_blocks == 3


def test_success_and_no_data_reset_counter() -> None:
    controller = BackoffController(max_consecutive_blocks=5, cooldown_seconds=1)
    controller.observe(Blocked("차단"))
    controller.observe(Blocked("차단"))

    decision = controller.observe(Success())
    assert decision.action is BackoffAction.CONTINUE
    assert controller.consecutive_blocks == 0

    controller.observe(Blocked("차단"))
    controller.observe(NoData("없음"))
    assert controller.consecutive_blocks == 0
    assert controller.total_blocks == 3


def test_error_leaves_counter_untouched() -> None:
    controller = BackoffController(max_consecutive_blocks=5, cooldown_seconds=1)
    controller.observe(Blocked("차단"))

    decision = controller.observe(Error("boom", 500))

    assert decision.action is BackoffAction.CONTINUE
    assert controller.consecutive_blocks == 1


def test_defaults_come_from_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(backoff_module.config, "MAX_CONSECUTIVE_BLOCKS", 2)
    monkeypatch.setattr(backoff_module.config, "BLOCK_COOLDOWN_SECONDS", 7)

    controller = BackoffController()

    assert controller.observe(Blocked("x")).wait_seconds == 7
    assert controller.observe(Blocked("x")).action is BackoffAction.ABORT


def test_block_decisions_are_logged(monkeypatch: pytest.MonkeyPatch) -> None:
    events: list[tuple[str, dict]] = []
    monkeypatch.setattr(
        backoff_module,
        "_scraper_event",
        lambda label, **fields: events.append((label, fields)),
    )

    BackoffController(max_consecutive_blocks=2, cooldown_seconds=5).observe(Blocked("차단"))

    assert events
    label, fields = events[-1]
    assert label == "state"
    assert fields["phase"] == "backoff_decision"
    assert fields["kind"] == "retry"
    assert fields["consecutive_blocks"] == 1


def test_unknown_outcome_raises() -> None:
    with pytest.raises(TypeError):
        BackoffController().observe(object())  # type: ignore[arg-type]
