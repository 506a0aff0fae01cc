"""Clean scraped cells into dispensary records."""

from __future__ import annotations

from urllib.parse import quote, urlsplit, urlunsplit

from dispmap.common.constants import DELIVERY_ONLY_MARKER, MISSING_CELL
from dispmap.common.models import DispensaryRecord, RawRow

DEFAULT_SCHEME = "https"
# RFC 3986 path characters left as-is when encoding.
PATH_SAFE = "/%:@!$&'()*+,;="


def clean_cell(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    if not cleaned or cleaned == MISSING_CELL:
        return None
    return cleaned


def strip_delivery_marker(name: str) -> tuple[str, bool]:
    cleaned = name.strip()
    if cleaned.endswith(DELIVERY_ONLY_MARKER):
        return cleaned[: -len(DELIVERY_ONLY_MARKER)].strip(), True
    return cleaned, False


def build_full_address(address: str | None, city: str | None, zip_code: str | None) -> str | None:
    if address is None or city is None or zip_code is None:
        return None
    return f"{address}, {city}, {zip_code}"


def _valid_host(netloc: str) -> bool:
    host = netloc.rsplit("@", 1)[-1]
    if ":" in host and not host.startswith("["):
        host, port = host.split(":", 1)
        if not port.isdigit():
            return False
    return bool(host) and not any(ch.isspace() for ch in host)


def _repair_url(text: str) -> str | None:
    # Inputs such as "https:example.com" or "//example.com" parse without a host.
    stripped = text.split("://", 1)[-1] if "://" in text else text
    stripped = stripped.lstrip(":/")
    if stripped.lower().startswith(("https:", "http:")):
        stripped = stripped.split(":", 1)[1].lstrip("/")
    parts = urlsplit(f"//{stripped}")
    if not _valid_host(parts.netloc):
        return None
    return urlunsplit((DEFAULT_SCHEME, parts.netloc, quote(parts.path, safe=PATH_SAFE), parts.query, parts.fragment))


def normalize_url(text: str | None) -> str | None:
    """Return an absolute URL for a scraped website cell, or None when it cannot be made one."""
    if text is None:
        return None
    url = text.strip()
    if not url:
        return None
    if not url.lower().startswith(("http://", "https://")):
        url = f"{DEFAULT_SCHEME}://{url}"
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if parts.scheme and _valid_host(parts.netloc):
        return urlunsplit(parts._replace(path=quote(parts.path, safe=PATH_SAFE)))
    try:
        return _repair_url(url)
    except ValueError:
        return None


def normalise_row(row: RawRow) -> DispensaryRecord | None:
    """Build a record from one scraped row; rows whose name is blank after cleaning are rejected."""
    name, is_delivery_only = strip_delivery_marker(row.name)
    if not name:
        return None

    address = clean_cell(row.address)
    city = clean_cell(row.city)
    zip_code = clean_cell(row.zip_code)
    website = row.website.strip()

    return DispensaryRecord(
        name=name,
        address=address,
        city=city,
        zip_code=zip_code,
        website=website,
        normalized_url=normalize_url(website),
        full_address=build_full_address(address, city, zip_code),
        is_delivery_only=is_delivery_only,
    )
