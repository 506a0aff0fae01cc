"""Scrape the dispensary listing table into raw rows."""

from __future__ import annotations

import logging
import re
from typing import Iterator

from bs4 import BeautifulSoup, ParserRejectedMarkup

from dispmap.common.constants import TABLE_COLUMNS
from dispmap.common.errors import ParseError
from dispmap.common.models import RawRow

logger = logging.getLogger(__name__)

MIN_CELLS = len(TABLE_COLUMNS)
# Start of a tag, comment, doctype or processing instruction.
MARKUP_PATTERN = re.compile(r"<\s*[A-Za-z!/?]")


def parse_document(html: str) -> BeautifulSoup:
    if not isinstance(html, str) or not html.strip():
        raise ParseError("Listing document is empty")
    if MARKUP_PATTERN.search(html) is None:
        raise ParseError("Listing document contains no HTML markup")
    try:
        soup = BeautifulSoup(html, "lxml")
    except ParserRejectedMarkup as exc:
        raise ParseError(f"Listing document rejected by HTML parser: {exc}") from exc
    if soup.find() is None:
        raise ParseError("Listing document contains no HTML elements")
    return soup


def cell_text(cell) -> str:
    """Cell text with whitespace collapsed; inline tags do not split words."""
    for br in cell.find_all("br"):
        br.replace_with(" ")
    return " ".join(cell.get_text().split())


def _table_rows(soup: BeautifulSoup):
    rows = soup.select("table tbody tr")
    if rows:
        return rows
    return soup.select("table tr")


def _iter_rows(soup: BeautifulSoup) -> Iterator[RawRow]:
    dropped = 0
    for tr in _table_rows(soup):
        cells = tr.find_all("td")
        if len(cells) < MIN_CELLS:
            dropped += 1
            continue
        values = [cell_text(cell) for cell in cells[:MIN_CELLS]]
        yield RawRow(*values)
    if dropped:
        logger.debug("dropped short table rows", extra={"stage": "scrape", "rows_out": dropped})


def iter_table_rows(html: str) -> Iterator[RawRow]:
    """Yield every listing row with at least five cells.

    The document is parsed eagerly so a ``ParseError`` surfaces at call time;
    rows themselves are produced lazily. A page without a table yields nothing.
    """
    soup = parse_document(html)
    return _iter_rows(soup)
