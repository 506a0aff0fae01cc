import json
import logging
from pathlib import Path

from dispmap.common.logging import JsonLineFormatter, build_logger, log_event
from dispmap.common.models import Coordinate, DispensaryRecord
from dispmap.common.time_utils import elapsed_ms, generate_run_id


def test_generate_run_id_prefix():
    assert generate_run_id().startswith("run-")


def test_elapsed_ms_rounds():
    assert elapsed_ms(1.0, 1.25) == 250


def test_coordinate_from_pair_treats_zero_and_garbage_as_absent():
    assert Coordinate.from_pair(0, 0) is None
    assert Coordinate.from_pair(None, -73.9) is None
    assert Coordinate.from_pair("x", "y") is None
    assert Coordinate.from_pair(95, 10) is None
    assert Coordinate.from_pair("40.7", "-73.9") == Coordinate(40.7, -73.9)


def test_record_fields_roundtrip_flattens_coordinate():
    record = DispensaryRecord(
        name="Foo",
        address="1 Main St",
        city="New York",
        zip_code="10001",
        website="foo.com",
        coordinate=Coordinate(40.7, -73.9),
    )

    fields = record.to_fields()

    assert "coordinate" not in fields
    assert (fields["latitude"], fields["longitude"]) == (40.7, -73.9)
    assert DispensaryRecord.from_fields(fields) == record


def test_needs_coordinate():
    record = DispensaryRecord(name="Foo", address="a", city="b", zip_code="c", website="", full_address="a, b, c")

    assert record.needs_coordinate is True
    assert record.with_changes(is_delivery_only=True).needs_coordinate is False
    assert record.with_changes(full_address=None).needs_coordinate is False


def test_json_line_formatter_has_stable_schema():
    record = logging.LogRecord("dispmap.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    record.stage = "resolve"
    record.region = "Bronx"

    payload = json.loads(JsonLineFormatter().format(record))

    assert payload["message"] == "hello world"
    assert payload["stage"] == "resolve"
    assert payload["region"] == "Bronx"
    assert payload["error_code"] is None


def test_build_logger_writes_run_log_with_run_id(tmp_path: Path):
    logger = build_logger("run-abc", data_dir=tmp_path)
    log_event(logger, "stage start", stage="ingest", event="RUN_START")
    logging.getLogger("dispmap.sources.zip_lookup").warning("region failed", extra={"region": "Queens"})
    for handler in logging.getLogger("dispmap").handlers:
        handler.flush()

    lines = (tmp_path / "run_meta" / "run-abc.log.jsonl").read_text(encoding="utf-8").splitlines()
    payloads = [json.loads(line) for line in lines]

    assert [p["message"] for p in payloads] == ["stage start", "region failed"]
    assert all(p["run_id"] == "run-abc" for p in payloads)
    assert payloads[1]["region"] == "Queens"
