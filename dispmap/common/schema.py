"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from dispmap.common.errors import ConfigError


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive(value, ctx: str) -> None:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
        raise ConfigError(f"{ctx} must be a positive number")


def validate_pipeline_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    top_required = {"listing", "zip_lookup", "geocoder", "cache", "store"}
    top_known = top_required | {"run"}
    _assert_required_keys(cfg, top_required, "pipeline config")
    _assert_no_unknown_keys(cfg, top_known, "pipeline config", allow_unknown)

    _assert_required_keys(cfg["listing"], {"url"}, "listing")
    _assert_required_keys(cfg["zip_lookup"], {"endpoint", "regions"}, "zip_lookup")
    regions = cfg["zip_lookup"]["regions"]
    if not isinstance(regions, list) or not regions:
        raise ConfigError("zip_lookup.regions must be a non-empty list")
    for idx, region in enumerate(regions):
        _assert_required_keys(region, {"name", "state"}, f"zip_lookup.regions[{idx}]")

    _assert_required_keys(cfg["geocoder"], {"endpoint", "rate_per_sec"}, "geocoder")
    _assert_positive(cfg["geocoder"]["rate_per_sec"], "geocoder.rate_per_sec")
    if "max_attempts" in cfg["geocoder"]:
        _assert_positive(cfg["geocoder"]["max_attempts"], "geocoder.max_attempts")

    _assert_required_keys(cfg["cache"], {"seed_path"}, "cache")
    _assert_required_keys(cfg["store"], {"filename"}, "store")

    run_cfg = cfg.get("run") or {}
    max_geocodes = run_cfg.get("max_geocodes")
    if max_geocodes is not None and (not isinstance(max_geocodes, int) or max_geocodes < 0):
        raise ConfigError("run.max_geocodes must be a non-negative integer or null")

    return cfg


def validate_coordinate_cache(payload) -> dict:
    if payload is None:
        return {"coordinates": {}}
    _assert_required_keys(payload, {"coordinates"}, "coordinate cache")
    coordinates = payload["coordinates"] or {}
    if not isinstance(coordinates, dict):
        raise ConfigError("coordinate cache 'coordinates' must be a mapping")
    for address, value in coordinates.items():
        _assert_required_keys(value, {"latitude", "longitude"}, f"coordinates[{address!r}]")
    return {"coordinates": coordinates}
