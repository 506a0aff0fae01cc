"""Address geocoding against a Nominatim-compatible search endpoint."""

from __future__ import annotations

import logging
from typing import Protocol

from dispmap.common.errors import GeocodeOtherError, GeocodeRateLimitedError
from dispmap.common.http import (
    HttpClient,
    HttpRequestError,
    RetryableHttpError,
    RetryConfig,
    TimeoutConfig,
)
from dispmap.common.models import Coordinate

logger = logging.getLogger(__name__)


class Geocoder(Protocol):
    def geocode(self, address: str) -> list[Coordinate]: ...


def _parse_candidates(payload) -> list[Coordinate]:
    if not isinstance(payload, list):
        raise GeocodeOtherError("Geocoder returned a non-list payload")
    out: list[Coordinate] = []
    for candidate in payload:
        if not isinstance(candidate, dict):
            continue
        coordinate = Coordinate.from_pair(candidate.get("lat"), candidate.get("lon"))
        if coordinate is not None:
            out.append(coordinate)
    return out


class NominatimGeocoder:
    """One search request per address; retrying across runs is the caller's concern."""

    def __init__(
        self,
        client: HttpClient,
        endpoint: str,
        *,
        country_codes: str | None = None,
        limit: int = 1,
        max_attempts: int = 1,
        timeout: TimeoutConfig | None = None,
    ) -> None:
        self.client = client
        self.endpoint = endpoint
        self.country_codes = country_codes
        self.limit = limit
        self.retry_config = RetryConfig(max_attempts=max_attempts)
        self.timeout = timeout

    def geocode(self, address: str) -> list[Coordinate]:
        params = {"q": address, "format": "jsonv2", "limit": self.limit}
        if self.country_codes:
            params["countrycodes"] = self.country_codes

        logger.info(f'executing geocode for "{address}"', extra={"stage": "geocode", "record": address})
        try:
            payload = self.client.get_json(
                self.endpoint,
                source_type="geocoder",
                params=params,
                timeout=self.timeout,
                retry_config=self.retry_config,
            )
        except RetryableHttpError as exc:
            raise GeocodeRateLimitedError(f"Geocoder unavailable for {address!r}: {exc}") from exc
        except HttpRequestError as exc:
            raise GeocodeOtherError(f"Geocoder rejected {address!r}: {exc}") from exc
        return _parse_candidates(payload)
