"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, NamedTuple


class RawRow(NamedTuple):
    name: str
    address: str
    city: str
    zip_code: str
    website: str


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def is_valid(self) -> bool:
        return -90 <= self.latitude <= 90 and -180 <= self.longitude <= 180

    def to_dict(self) -> dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_pair(cls, latitude: Any, longitude: Any) -> "Coordinate | None":
        """Build a coordinate from stored values; missing, zeroed or out-of-range pairs mean absent."""
        if latitude is None or longitude is None:
            return None
        try:
            coordinate = cls(latitude=float(latitude), longitude=float(longitude))
        except (TypeError, ValueError):
            return None
        if coordinate.latitude == 0 and coordinate.longitude == 0:
            return None
        if not coordinate.is_valid():
            return None
        return coordinate


@dataclass(frozen=True)
class DispensaryRecord:
    name: str
    address: str | None
    city: str | None
    zip_code: str | None
    website: str
    normalized_url: str | None = None
    full_address: str | None = None
    is_delivery_only: bool = False
    is_in_target_area: bool = False
    coordinate: Coordinate | None = None

    @property
    def key(self) -> str:
        return self.name

    @property
    def needs_coordinate(self) -> bool:
        return not self.is_delivery_only and self.coordinate is None and self.full_address is not None

    def with_changes(self, **changes: Any) -> "DispensaryRecord":
        return replace(self, **changes)

    def to_fields(self) -> dict[str, Any]:
        fields = asdict(self)
        coordinate = fields.pop("coordinate")
        fields["latitude"] = coordinate["latitude"] if coordinate else None
        fields["longitude"] = coordinate["longitude"] if coordinate else None
        return fields

    @classmethod
    def from_fields(cls, fields: dict[str, Any]) -> "DispensaryRecord":
        return cls(
            name=fields["name"],
            address=fields.get("address"),
            city=fields.get("city"),
            zip_code=fields.get("zip_code"),
            website=fields.get("website") or "",
            normalized_url=fields.get("normalized_url"),
            full_address=fields.get("full_address"),
            is_delivery_only=bool(fields.get("is_delivery_only", False)),
            is_in_target_area=bool(fields.get("is_in_target_area", False)),
            coordinate=Coordinate.from_pair(fields.get("latitude"), fields.get("longitude")),
        )
