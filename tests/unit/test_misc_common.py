import json
import logging
from pathlib import Path

import pytest

from london_sqft.common.fs import atomic_writer, read_json, write_json
from london_sqft.common.ids import generate_run_id
from london_sqft.common.logging import JsonLineFormatter, build_logger, close_logger, log_event
from london_sqft.common.models import PropertyCategory, TransactionRecord
from london_sqft.common.time_utils import date_ordinal, parse_run_date, parse_source_date


def test_generate_run_id_prefix():
    assert generate_run_id().startswith("run-")


def test_parse_run_date_defaults_and_iso():
    assert parse_run_date("2026-02-17") == "2026-02-17"
    assert len(parse_run_date(None)) == len("2026-02-17")


def test_parse_source_date():
    assert parse_source_date("2024-03-15 00:00") == "2024-03-15"
    assert parse_source_date("2023-06-01") == "2023-06-01"
    assert parse_source_date("15/03/2024") is None
    assert parse_source_date("") is None
    assert date_ordinal(None) == 0
    assert date_ordinal("2024-01-02") - date_ordinal("2024-01-01") == 1


def test_property_category_codes():
    assert PropertyCategory.from_code("d") is PropertyCategory.DETACHED
    assert PropertyCategory.from_code("S").is_house
    assert PropertyCategory.from_code("T").is_house
    assert PropertyCategory.from_code("F").is_flat
    other = PropertyCategory.from_code("O")
    assert not other.is_house and not other.is_flat
    with pytest.raises(KeyError):
        PropertyCategory.from_code("X")


def test_transaction_record_round_trips_category():
    record = TransactionRecord(
        price=1,
        transaction_date="2024-01-01",
        postcode="E14 8JX",
        property_category=PropertyCategory.SEMI_DETACHED,
        primary_address_object="1",
        secondary_address_object=None,
        street="QUAY",
        normalized_address="1 QUAY",
    )
    payload = record.to_dict()
    assert payload["property_category"] == "semi-detached"
    assert TransactionRecord.from_dict(payload) == record


def test_atomic_writer_leaves_target_untouched_on_failure(tmp_path: Path):
    target = tmp_path / "out.json"
    write_json(target, {"v": 1})

    with pytest.raises(RuntimeError):
        with atomic_writer(target) as f:
            f.write("partial")
            raise RuntimeError("boom")

    assert read_json(target) == {"v": 1}
    assert [path.name for path in tmp_path.iterdir()] == ["out.json"]


def test_json_formatter_fills_schema_fields():
    record = logging.LogRecord("london_sqft.x", logging.WARNING, __file__, 1, "low rate", None, None)
    record.stage = "match"
    payload = json.loads(JsonLineFormatter().format(record))
    assert payload["message"] == "low rate"
    assert payload["stage"] == "match"
    assert payload["status"] == "warning"
    assert payload["rows_in"] is None


def test_build_logger_writes_json_lines(tmp_path: Path):
    logger = build_logger("run-log", data_dir=tmp_path)
    log_event(logger, "stage start", run_id="run-log", stage="export", event="STAGE_START", status="ok")
    log_event(None, "ignored")
    close_logger(logger)

    lines = (tmp_path / "run_meta" / "run-log.log.jsonl").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    entry = json.loads(lines[0])
    assert entry["event"] == "STAGE_START"
    assert entry["run_id"] == "run-log"
