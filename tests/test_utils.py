from __future__ import annotations

import json
from pathlib import Path

import pytest

from courtdocs.scraper import config, utils
from tests.test_state import _configure_temp_paths


def test_save_json_file_is_atomic_and_readable(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "out.json"

    utils.save_json_file(path, {"법원": "서울"})

    assert json.loads(path.read_text(encoding="utf-8")) == {"법원": "서울"}
    assert "서울" in path.read_text(encoding="utf-8")
    assert not (tmp_path / "nested" / "out.json.tmp").exists()


def test_load_json_file_default_on_missing_or_corrupt(tmp_path: Path) -> None:
    corrupt = tmp_path / "bad.json"
    corrupt.write_text("{", encoding="utf-8")

    assert utils.load_json_file(tmp_path / "missing.json", default=[]) == []
    assert utils.load_json_file(corrupt) is None


def test_json_lines_round_trip_skips_bad_lines(tmp_path: Path) -> None:
    path = tmp_path / "lines.jsonl"
    utils.append_json_line(path, {"n": 1})
    with path.open("a", encoding="utf-8") as handle:
        handle.write("garbage\n\n")
    utils.append_json_line(path, {"n": 2})

    assert list(utils.load_json_lines(path)) == [{"n": 1}, {"n": 2}]
    assert list(utils.load_json_lines(tmp_path / "none.jsonl")) == []


def test_utc_now_iso_uses_z_suffix() -> None:
    stamp = utils.utc_now_iso()

    assert stamp.endswith("Z")
    assert "+00:00" not in stamp


def test_short_error_message_truncates() -> None:
    message = utils.short_error_message(ValueError("x" * 500), max_length=50)

    assert message.startswith("ValueError: ")
    assert len(message) == 50
    assert message.endswith("...")


def test_setup_run_logger_writes_timestamped_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)

    log_path = utils.setup_run_logger()
    utils.log_line("[TEST] hello")

    assert log_path.parent == config.LOG_DIR
    assert log_path.name.startswith("collect_")
    assert utils.get_current_log_path() == log_path
    assert "[TEST] hello" in log_path.read_text(encoding="utf-8")


def test_ensure_dirs_creates_layout(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)

    utils.ensure_dirs()

    assert config.TEMP_DIR.is_dir()
    assert config.LOG_DIR.is_dir()
