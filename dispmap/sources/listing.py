"""Download the published dispensary listing page."""

from __future__ import annotations

from dispmap.common.errors import ListingFetchError
from dispmap.common.http import HttpClient, HttpRequestError, TimeoutConfig


def fetch_listing_html(client: HttpClient, url: str, *, timeout: TimeoutConfig | None = None) -> str:
    try:
        return client.get_text(url, source_type="listing", timeout=timeout)
    except HttpRequestError as exc:
        raise ListingFetchError(f"Could not download dispensary listing from {url}: {exc}") from exc
