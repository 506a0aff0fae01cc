from __future__ import annotations

from pathlib import Path

import pytest

from dispmap.common.models import Coordinate
from dispmap.pipeline.coordinates import CoordinateResolver, StaticCoordinateCache
from dispmap.pipeline.ingest import IngestionPipeline
from dispmap.pipeline.store import JsonFileRecordStore
from dispmap.sources.zip_lookup import ZipSetResult

LISTING_HTML = """
<table><tbody>
<tr><td>Housing Works Cannabis Co</td><td>750 Broadway</td><td>New York</td><td>10003</td><td>hwcannabis.co</td></tr>
<tr><td>Brooklyn Bud</td><td>1 Atlantic Ave</td><td>Brooklyn</td><td>11201</td><td>bkbud.example</td></tr>
<tr><td>Capital Leaf</td><td>2 State St</td><td>Albany</td><td>12207</td><td>capitalleaf.example</td></tr>
<tr><td>Foo Store ***</td><td>-</td><td>-</td><td>-</td><td></td></tr>
</tbody></table>
"""


class FixedGeocoder:
    def geocode(self, address: str):
        if address.startswith("1 Atlantic Ave"):
            return [Coordinate(40.6782, -73.9442)]
        return []


def _run(store_path: Path, run_id: str) -> None:
    pipeline = IngestionPipeline(
        fetch_html=lambda: LISTING_HTML,
        fetch_zip_set=lambda: ZipSetResult(codes=frozenset({"10003", "11201"})),
        resolver=CoordinateResolver(
            StaticCoordinateCache({"750 Broadway, New York, 10003": Coordinate(40.73006, -73.99198)}),
            FixedGeocoder(),
        ),
        store=JsonFileRecordStore(store_path),
    )
    result = pipeline.run_ingestion(run_id=run_id)
    assert result.fatal_error is None


@pytest.mark.regression
def test_repeated_runs_leave_store_byte_identical(tmp_path: Path):
    store_path = tmp_path / "dispensaries.json"

    _run(store_path, "run-a")
    first_bytes = store_path.read_bytes()
    _run(store_path, "run-b")

    assert store_path.read_bytes() == first_bytes


@pytest.mark.regression
def test_fresh_stores_match_for_same_inputs(tmp_path: Path):
    first = tmp_path / "first" / "dispensaries.json"
    second = tmp_path / "second" / "dispensaries.json"

    _run(first, "run-a")
    _run(second, "run-b")

    assert first.read_bytes() == second.read_bytes()
