from __future__ import annotations

import json
from pathlib import Path

import pytest

from courtdocs.scraper.classifier import Blocked, Error, NoData, Success
from courtdocs.scraper.record_store import (
    DELIVERY_KEY,
    DOCUMENT_KEY,
    MERGER_KEY,
    PRIOR_CASE_KEY,
    RecordStore,
    apply_outcome,
    index_by_key,
    is_done,
    record_key,
)
from tests.test_state import _configure_temp_paths


def _entry(court: str = "B000210", case: str = "20230130012345", **extra) -> dict:  # noqa: ANN003
    return {
        "cortOfcCd": court,
        "csNo": case,
        "courtName": "서울중앙지방법원",
        "caseNumber": "2023타경12345",
        **extra,
    }


def test_record_key_concatenates_court_and_case() -> None:
    assert record_key(_entry()) == "B00021020230130012345"
    assert record_key({"csNo": "1"}) == "1"


def test_is_done_depends_on_presence_not_content() -> None:
    entry = _entry()
    assert is_done(entry) is False

    entry[DELIVERY_KEY] = []
    assert is_done(entry) is True


def test_apply_success_keeps_other_fields() -> None:
    entry = _entry(appraisal={"amount": 100})

    apply_outcome(
        entry,
        Success(
            delivery_records=[{"d": 1}],
            document_records=[{"o": 1}],
            merger_records=[{"m": 1}],
            prior_case={"bfCsNo": "x"},
        ),
    )

    assert entry[DELIVERY_KEY] == [{"d": 1}]
    assert entry[DOCUMENT_KEY] == [{"o": 1}]
    assert entry[MERGER_KEY] == [{"m": 1}]
    assert entry[PRIOR_CASE_KEY] == {"bfCsNo": "x"}
    assert entry["appraisal"] == {"amount": 100}
    assert entry["courtName"] == "서울중앙지방법원"


def test_apply_success_without_optional_parts_omits_them() -> None:
    entry = _entry()

    apply_outcome(entry, Success(delivery_records=[], document_records=[]))

    assert entry[DELIVERY_KEY] == []
    assert MERGER_KEY not in entry
    assert PRIOR_CASE_KEY not in entry


@pytest.mark.parametrize("outcome", [NoData("없음"), Error("boom", 500)])
def test_no_data_and_error_write_empty_lists(outcome) -> None:  # noqa: ANN001
    entry = _entry()

    apply_outcome(entry, outcome)

    assert entry[DELIVERY_KEY] == []
    assert entry[DOCUMENT_KEY] == []
    assert is_done(entry)


def test_blocked_is_never_merged() -> None:
    with pytest.raises(ValueError):
        apply_outcome(_entry(), Blocked("차단"))


def test_load_missing_file_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)

    with pytest.raises(FileNotFoundError):
        RecordStore(tmp_path / "missing.json").load_all()


def test_load_rejects_scalar_document(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    path = tmp_path / "details.json"
    path.write_text("42", encoding="utf-8")

    with pytest.raises(ValueError):
        RecordStore(path).load_all()


def test_list_shape_round_trips(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    path = tmp_path / "details.json"
    path.write_text(json.dumps([_entry(case="1"), _entry(case="2")]), encoding="utf-8")

    store = RecordStore(path)
    entries = store.load_all()
    apply_outcome(entries[1], NoData("없음"))
    store.save_all(entries)

    saved = json.loads(path.read_text(encoding="utf-8"))
    assert isinstance(saved, list)
    assert DELIVERY_KEY not in saved[0]
    assert saved[1][DELIVERY_KEY] == []


def test_mapping_shape_keeps_keys_and_order(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _configure_temp_paths(tmp_path, monkeypatch)
    path = tmp_path / "details.json"
    path.write_text(
        json.dumps({"7": _entry(case="7"), "3": _entry(case="3")}, ensure_ascii=False),
        encoding="utf-8",
    )

    store = RecordStore(path)
    entries = store.load_all()
    assert store.is_mapping
    apply_outcome(entries[0], Success(delivery_records=[{"d": 1}]))
    store.save_all(entries)

    saved = json.loads(path.read_text(encoding="utf-8"))
    assert list(saved.keys()) == ["7", "3"]
    assert saved["7"][DELIVERY_KEY] == [{"d": 1}]
    assert saved["3"]["courtName"] == "서울중앙지방법원"


def test_index_by_key() -> None:
    first = _entry(case="1")
    second = _entry(case="2")

    index = index_by_key([first, second, "junk"])  # type: ignore[list-item]

    assert index["B0002101"] is first
    assert index["B0002102"] is second


def test_index_by_key_keeps_first_entry_for_repeated_key() -> None:
    first = _entry(case="1", courtName="first")
    repeat = _entry(case="1", courtName="repeat")

    index = index_by_key([first, repeat])

    assert index["B0002101"] is first
