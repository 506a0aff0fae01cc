"""Target-area postal codes from the USPS city/state lookup."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from dispmap.common.config_loader import Region
from dispmap.common.errors import (
    DecodingError,
    InvalidResponse,
    NetworkError,
    RegionLookupError,
    UnexpectedStatus,
)
from dispmap.common.http import HttpClient, HttpRequestError, TimeoutConfig, TransportError
from dispmap.common.models import DispensaryRecord

logger = logging.getLogger(__name__)

SUCCESS_STATUS = "SUCCESS"


@dataclass(frozen=True)
class ZipSetResult:
    codes: frozenset[str]
    failures: dict[str, RegionLookupError] = field(default_factory=dict)

    @property
    def failed_regions(self) -> list[str]:
        return sorted(self.failures)


def parse_zip_response(payload) -> list[str]:
    if not isinstance(payload, dict) or not isinstance(payload.get("resultStatus"), str):
        raise DecodingError("Missing resultStatus in zip lookup response")
    status = payload["resultStatus"]
    if status != SUCCESS_STATUS:
        raise UnexpectedStatus(status)

    zip_list = payload.get("zipList")
    if not isinstance(zip_list, list):
        raise DecodingError("Missing zipList in zip lookup response")

    codes: list[str] = []
    for idx, entry in enumerate(zip_list):
        if not isinstance(entry, dict) or not isinstance(entry.get("zip5"), str):
            raise DecodingError(f"Missing zip5 in zipList[{idx}]")
        code = entry["zip5"].strip()
        if code:
            codes.append(code)
    return codes


def fetch_zip_codes(
    client: HttpClient,
    endpoint: str,
    region: Region,
    *,
    timeout: TimeoutConfig | None = None,
) -> list[str]:
    try:
        payload = client.post_form_json(
            endpoint,
            source_type="zip_lookup",
            data={"city": region.name, "state": region.state},
            timeout=timeout,
        )
    except TransportError as exc:
        raise NetworkError(str(exc)) from exc
    except HttpRequestError as exc:
        if exc.status_code is not None and exc.status_code >= 300:
            raise InvalidResponse(str(exc)) from exc
        raise DecodingError(str(exc)) from exc
    return parse_zip_response(payload)


def fetch_target_zip_set(
    client: HttpClient,
    endpoint: str,
    regions: Iterable[Region],
    *,
    timeout: TimeoutConfig | None = None,
) -> ZipSetResult:
    """Union the codes of every region; a failed region contributes nothing."""
    codes: set[str] = set()
    failures: dict[str, RegionLookupError] = {}

    for region in regions:
        try:
            region_codes = fetch_zip_codes(client, endpoint, region, timeout=timeout)
        except RegionLookupError as exc:
            failures[region.name] = exc
            logger.warning(
                f"zip lookup failed for {region.name}, {region.state}: {exc}",
                extra={"stage": "zip_lookup", "region": region.name, "status": "error", "error_code": exc.error_code},
            )
            continue
        codes.update(region_codes)
        logger.info(
            f"zip lookup for {region.name}, {region.state}",
            extra={"stage": "zip_lookup", "region": region.name, "status": "ok", "rows_out": len(region_codes)},
        )

    return ZipSetResult(codes=frozenset(codes), failures=failures)


def classify(record: DispensaryRecord, zip_set: frozenset[str] | set[str]) -> bool:
    return record.zip_code is not None and record.zip_code in zip_set
