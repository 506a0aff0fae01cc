"""Cache-first coordinate resolution with a geocoder fallback."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Protocol

from dispmap.common.errors import GeocodeError, GeocodeNoResultError, GeocodeOtherError
from dispmap.common.fs import read_yaml, write_yaml
from dispmap.common.models import Coordinate, DispensaryRecord
from dispmap.common.schema import validate_coordinate_cache
from dispmap.sources.geocoder import Geocoder

logger = logging.getLogger(__name__)

SOURCE_EXISTING = "existing"
SOURCE_CACHE = "cache"
SOURCE_GEOCODER = "geocoder"


class CoordinateCache(Protocol):
    def get(self, address: str) -> Coordinate | None: ...

    def put(self, address: str, coordinate: Coordinate) -> None: ...


class StaticCoordinateCache:
    """Exact-address lookup table. Entries are only ever added, never removed or negated."""

    def __init__(self, entries: Mapping[str, Coordinate] | None = None) -> None:
        self._entries: dict[str, Coordinate] = dict(entries or {})
        self._lock = threading.Lock()

    def get(self, address: str) -> Coordinate | None:
        return self._entries.get(address)

    def put(self, address: str, coordinate: Coordinate) -> None:
        with self._lock:
            self._entries.setdefault(address, coordinate)

    def __contains__(self, address: object) -> bool:
        return address in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def items(self) -> list[tuple[str, Coordinate]]:
        return sorted(self._entries.items())


def load_coordinate_cache(path: Path) -> StaticCoordinateCache:
    if not path.exists():
        logger.warning(f"coordinate cache seed missing: {path}", extra={"stage": "cache", "status": "warn"})
        return StaticCoordinateCache()
    payload = validate_coordinate_cache(read_yaml(path))
    entries: dict[str, Coordinate] = {}
    for address, value in payload["coordinates"].items():
        coordinate = Coordinate.from_pair(value.get("latitude"), value.get("longitude"))
        if coordinate is not None:
            entries[str(address)] = coordinate
    return StaticCoordinateCache(entries)


def write_coordinate_cache(path: Path, entries: Iterable[tuple[str, Coordinate]]) -> Path:
    payload = {"coordinates": {address: coordinate.to_dict() for address, coordinate in entries}}
    write_yaml(path, payload)
    return path


@dataclass(frozen=True)
class Resolution:
    coordinate: Coordinate | None
    source: str | None = None
    error: GeocodeError | None = None

    @property
    def rate_limited(self) -> bool:
        return self.error is not None and self.error.retryable


class CoordinateResolver:
    def __init__(self, cache: CoordinateCache, geocoder: Geocoder) -> None:
        self.cache = cache
        self.geocoder = geocoder

    def lookup(self, record: DispensaryRecord) -> Resolution:
        if record.is_delivery_only or record.coordinate is not None:
            return Resolution(coordinate=record.coordinate, source=SOURCE_EXISTING if record.coordinate else None)

        address = record.full_address
        if address is None:
            return Resolution(coordinate=None)

        cached = self.cache.get(address)
        if cached is not None:
            return Resolution(coordinate=cached, source=SOURCE_CACHE)

        logger.info(
            f"coordinate cache miss for '{address}'",
            extra={"stage": "resolve", "record": record.name, "event": "CACHE_MISS"},
        )
        try:
            candidates = self.geocoder.geocode(address)
            if not candidates:
                raise GeocodeNoResultError(f"No geocoding results for {address!r}")
        except GeocodeError as exc:
            logger.warning(
                f"geocode failed for '{address}': {exc}",
                extra={"stage": "resolve", "record": record.name, "status": "error", "error_code": exc.error_code},
            )
            return Resolution(coordinate=None, error=exc)

        coordinate = candidates[0]
        if not coordinate.is_valid():
            exc = GeocodeOtherError(f"Out-of-range coordinate for {address!r}")
            return Resolution(coordinate=None, error=exc)
        self.cache.put(address, coordinate)
        return Resolution(coordinate=coordinate, source=SOURCE_GEOCODER)

    def resolve(self, record: DispensaryRecord) -> Coordinate | None:
        return self.lookup(record).coordinate
