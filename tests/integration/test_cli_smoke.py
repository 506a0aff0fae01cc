from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from dispmap import cli
from dispmap.cli import parse_args, run_command
from dispmap.common.constants import EXIT_PARTIAL, EXIT_SUCCESS

LISTING_HTML = """
<table><tbody>
<tr><td>Housing Works Cannabis Co</td><td>750 Broadway</td><td>New York</td><td>10003</td><td>hwcannabis.co</td></tr>
<tr><td>Brooklyn Bud</td><td>1 Atlantic Ave</td><td>Brooklyn</td><td>11201</td><td>bkbud.example</td></tr>
<tr><td>Foo Store ***</td><td>-</td><td>-</td><td>-</td><td></td></tr>
</tbody></table>
"""


class FakeHttpClient:
    fail_region: str | None = None

    def __init__(self, **_kwargs):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *_exc):
        return None

    def get_text(self, url, **_kwargs):
        return LISTING_HTML

    def post_form_json(self, url, **kwargs):
        city = kwargs["data"]["city"]
        if city == self.fail_region:
            return {"resultStatus": "FAILURE"}
        codes = {"Manhattan": ["10003"], "Brooklyn": ["11201"]}[city]
        return {"resultStatus": "SUCCESS", "zipList": [{"zip5": code} for code in codes]}

    def get_json(self, url, **_kwargs):
        return [{"lat": "40.6782", "lon": "-73.9442"}]


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    cfg_dir = tmp_path / "config"
    cfg_dir.mkdir()
    (cfg_dir / "dispmap.yml").write_text(
        """listing:
  url: "https://listing.example/"
zip_lookup:
  endpoint: "https://zip.example/"
  regions:
    - {name: Manhattan, state: NY}
    - {name: Brooklyn, state: NY}
geocoder:
  endpoint: "https://geo.example/search"
  rate_per_sec: 1.0
cache:
  seed_path: coordinate_cache.yml
store:
  filename: dispensaries.json
""",
        encoding="utf-8",
    )
    (cfg_dir / "coordinate_cache.yml").write_text(
        """coordinates:
  "750 Broadway, New York, 10003": {latitude: 40.73006, longitude: -73.99198}
""",
        encoding="utf-8",
    )
    return cfg_dir


def _args(command: str, config_dir: Path, data_dir: Path, *extra: str):
    return parse_args(
        [command, "--config-dir", str(config_dir), "--data-dir", str(data_dir), "--run-id", "run-test", *extra]
    )


@pytest.mark.integration
def test_cli_run_list_export_and_reset(monkeypatch, tmp_path: Path, config_dir: Path, capsys):
    monkeypatch.setattr(cli, "HttpClient", FakeHttpClient)
    data_dir = tmp_path / "data"

    assert run_command(_args("run", config_dir, data_dir)) == EXIT_SUCCESS
    assert (data_dir / "dispensaries.json").exists()
    summary = json.loads((data_dir / "run_meta" / "run-test_summary.json").read_text(encoding="utf-8"))
    assert summary["total"] == 3
    assert summary["cache_hits"] == 1
    assert summary["geocoded"] == 1
    assert (data_dir / "run_meta" / "run-test.log.jsonl").exists()

    capsys.readouterr()
    assert run_command(_args("list", config_dir, data_dir, "--mappable")) == EXIT_SUCCESS
    mappable = json.loads(capsys.readouterr().out)
    assert [row["name"] for row in mappable] == ["Brooklyn Bud", "Housing Works Cannabis Co"]

    exported = tmp_path / "seed.yml"
    assert run_command(_args("export-cache", config_dir, data_dir, "--output", str(exported))) == EXIT_SUCCESS
    coordinates = yaml.safe_load(exported.read_text(encoding="utf-8"))["coordinates"]
    assert set(coordinates) == {"750 Broadway, New York, 10003", "1 Atlantic Ave, Brooklyn, 11201"}

    assert run_command(_args("reset", config_dir, data_dir)) == EXIT_SUCCESS
    capsys.readouterr()
    run_command(_args("list", config_dir, data_dir, "--all-areas"))
    assert json.loads(capsys.readouterr().out) == []


@pytest.mark.integration
def test_cli_run_with_failed_region_is_partial(monkeypatch, tmp_path: Path, config_dir: Path):
    monkeypatch.setattr(FakeHttpClient, "fail_region", "Brooklyn")
    monkeypatch.setattr(cli, "HttpClient", FakeHttpClient)

    exit_code = run_command(_args("run", config_dir, tmp_path / "data"))

    assert exit_code == EXIT_PARTIAL


@pytest.mark.integration
def test_cli_update_cache_appends_new_addresses(monkeypatch, tmp_path: Path, config_dir: Path):
    monkeypatch.setattr(cli, "HttpClient", FakeHttpClient)

    run_command(_args("run", config_dir, tmp_path / "data", "--update-cache"))

    seed = yaml.safe_load((config_dir / "coordinate_cache.yml").read_text(encoding="utf-8"))["coordinates"]
    assert seed["1 Atlantic Ave, Brooklyn, 11201"] == {"latitude": 40.6782, "longitude": -73.9442}
    assert "750 Broadway, New York, 10003" in seed
