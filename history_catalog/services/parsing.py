"""Tab-separated source file parsing.

The first line is a header naming the columns. ``date`` and ``url`` are
required; ``image``, ``title`` and ``lang`` are optional. Malformed lines are
counted and dropped, never raised to the caller.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List

from ..errors import RowValidationError
from ..models import ParsedRow, ParseResult
from ..utils.datetime_utils import is_calendar_date

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
REQUIRED_COLUMNS = ("date", "url")
DEFAULT_LANG = "en"


def _column_index(headers: List[str]) -> Dict[str, int]:
    index: Dict[str, int] = {}
    for position, name in enumerate(headers):
        # first occurrence wins for duplicated headers
        index.setdefault(name, position)
    return index


def validate_row(date: str, url: str, *, file_name: str, line: int) -> None:
    """Raise :class:`RowValidationError` if *date* or *url* is malformed."""
    if not DATE_PATTERN.match(date) or not is_calendar_date(date):
        raise RowValidationError(file_name, line, f"invalid date (expected YYYY-MM-DD): {date}")
    if not url.startswith("http"):
        raise RowValidationError(file_name, line, f"url must start with http: {url}")


def parse_tsv(raw: str, file_name: str) -> ParseResult:
    """Parse *raw* TSV text into validated rows.

    Line numbers are 1-indexed with the header on line 1. A header without
    ``date``/``url`` yields no rows and a single error.
    """
    lines = re.split(r"\r?\n", raw)
    if len(lines) < 2:
        return ParseResult()

    headers = [cell.strip().lower() for cell in lines[0].split("\t")]
    columns = _column_index(headers)
    if any(name not in columns for name in REQUIRED_COLUMNS):
        logger.warning("%s: missing required columns date, url", file_name)
        return ParseResult(rows=[], errors=1)

    def cell(cells: List[str], name: str, default: str = "") -> str:
        position = columns.get(name)
        if position is None:
            return default
        return cells[position].strip() if position < len(cells) else ""

    result = ParseResult()
    for line_no, line in enumerate(lines[1:], start=2):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        cells = line.split("\t")
        date = cell(cells, "date")
        url = cell(cells, "url")
        try:
            validate_row(date, url, file_name=file_name, line=line_no)
        except RowValidationError as exc:
            logger.warning("%s", exc)
            result.errors += 1
            continue

        result.rows.append(
            ParsedRow(
                date=date,
                url=url,
                image=cell(cells, "image"),
                title=cell(cells, "title"),
                lang=cell(cells, "lang", DEFAULT_LANG),
                source_line=line_no,
            )
        )

    return result

__all__ = ["parse_tsv", "validate_row", "DATE_PATTERN"]
