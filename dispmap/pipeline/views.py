"""Read-side projections over stored records."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from dispmap.common.models import Coordinate, DispensaryRecord
from dispmap.pipeline.coordinates import CoordinateCache

TARGET_AREA_LABEL = "NYC"
STATE_LABEL = "NY"


@dataclass(frozen=True)
class Annotation:
    name: str
    address: str
    coordinate: Coordinate
    record: DispensaryRecord


@dataclass(frozen=True)
class RecordCounts:
    all: int
    delivery_only: int
    in_area: int


def mappable_annotations(records: Iterable[DispensaryRecord], *, in_area_only: bool = True) -> list[Annotation]:
    out: list[Annotation] = []
    for record in records:
        if record.coordinate is None:
            continue
        if in_area_only and not record.is_in_target_area:
            continue
        out.append(
            Annotation(
                name=record.name,
                address=record.full_address or "",
                coordinate=record.coordinate,
                record=record,
            )
        )
    return out


def filter_records(
    records: Iterable[DispensaryRecord],
    *,
    in_area_only: bool = True,
    delivery_only: bool = False,
) -> list[DispensaryRecord]:
    out = []
    for record in records:
        if delivery_only and not record.is_delivery_only:
            continue
        if in_area_only and not record.is_in_target_area:
            continue
        out.append(record)
    return out


def count_records(records: Iterable[DispensaryRecord]) -> RecordCounts:
    records = list(records)
    return RecordCounts(
        all=len(records),
        delivery_only=sum(1 for r in records if r.is_delivery_only),
        in_area=sum(1 for r in records if r.is_in_target_area),
    )


def header_title(in_area_only: bool) -> str:
    place = TARGET_AREA_LABEL if in_area_only else STATE_LABEL
    return f"{place} Dispensaries"


def uncached_coordinates(records: Iterable[DispensaryRecord], cache: CoordinateCache) -> dict[str, Coordinate]:
    """Resolved coordinates whose full address is not yet in the seed cache."""
    out: dict[str, Coordinate] = {}
    for record in records:
        if record.coordinate is None or record.full_address is None:
            continue
        if cache.get(record.full_address) is None:
            out[record.full_address] = record.coordinate
    return dict(sorted(out.items()))
