"""Run summary aggregation."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path

from dispmap.common.fs import write_json

RATE_LIMITED_NOTICE = (
    "Some locations could not be geocoded because the geocoding service is rate limiting "
    "requests; map data will slowly populate over the next runs."
)


@dataclass
class RunResult:
    run_id: str
    total: int = 0
    delivery_only: int = 0
    in_area: int = 0
    resolved: int = 0
    unresolved: int = 0
    skipped_rows: int = 0
    duplicate_names: int = 0
    cache_hits: int = 0
    geocoded: int = 0
    deferred: int = 0
    duration_ms: int | None = None
    rate_limited_records: list[str] = field(default_factory=list)
    region_failures: dict[str, str] = field(default_factory=dict)
    geocode_failures: dict[str, str] = field(default_factory=dict)
    zip_error: str | None = None
    fatal_error: str | None = None

    @property
    def rate_limited(self) -> bool:
        return bool(self.rate_limited_records)

    @property
    def is_degraded(self) -> bool:
        return bool(self.region_failures or self.zip_error or self.rate_limited or self.deferred)

    @property
    def status(self) -> str:
        if self.fatal_error:
            return "error"
        if self.is_degraded:
            return "partial"
        return "success"

    @property
    def message(self) -> str | None:
        """Banner text for whoever triggered the run, or None when there is nothing to report."""
        if self.fatal_error:
            return f"Could not load dispensary data: {self.fatal_error}"

        parts: list[str] = []
        if self.zip_error:
            parts.append(f"Area zip codes unavailable ({self.zip_error}); no dispensary is marked as local.")
        if self.region_failures:
            regions = ", ".join(sorted(self.region_failures))
            parts.append(f"Zip code lookup failed for {regions}; local results may be incomplete.")
        if self.rate_limited:
            parts.append(RATE_LIMITED_NOTICE)
        elif self.deferred:
            parts.append(f"{self.deferred} addresses were not geocoded this run and will be retried.")
        if self.geocode_failures:
            parts.append(f"{len(self.geocode_failures)} addresses could not be located.")
        return " ".join(parts) or None

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["status"] = self.status
        payload["rate_limited"] = self.rate_limited
        payload["message"] = self.message
        return payload


def write_run_summary(data_dir: Path, result: RunResult) -> Path:
    summary_path = data_dir / "run_meta" / f"{result.run_id}_summary.json"
    write_json(summary_path, result.to_dict())
    return summary_path
