"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dispmap.common.errors import ConfigError
from dispmap.common.fs import read_yaml
from dispmap.common.schema import validate_pipeline_config

PIPELINE_CONFIG_FILENAME = "dispmap.yml"


@dataclass(frozen=True)
class Region:
    name: str
    state: str


@dataclass(frozen=True)
class ConfigBundle:
    config_dir: Path
    pipeline: dict

    @property
    def listing_url(self) -> str:
        return self.pipeline["listing"]["url"]

    @property
    def regions(self) -> list[Region]:
        return [Region(name=str(r["name"]), state=str(r["state"])) for r in self.pipeline["zip_lookup"]["regions"]]

    @property
    def cache_seed_path(self) -> Path:
        path = Path(self.pipeline["cache"]["seed_path"])
        return path if path.is_absolute() else self.config_dir / path

    @property
    def max_geocodes(self) -> int | None:
        return (self.pipeline.get("run") or {}).get("max_geocodes")


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    return _deep_merge(base, overlay)


def load_all_configs(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ConfigBundle:
    overlay_path = None
    if overlay_config_dir is not None:
        overlay_path = overlay_config_dir / PIPELINE_CONFIG_FILENAME
    cfg = _load_yaml_with_overlay(config_dir / PIPELINE_CONFIG_FILENAME, overlay_path)
    return ConfigBundle(
        config_dir=config_dir,
        pipeline=validate_pipeline_config(cfg, allow_unknown=allow_unknown),
    )
