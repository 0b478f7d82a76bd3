"""
normalizer.py — Grid rows to typed report records

The first three rows of every export are preamble (report date, site label,
column banner) and are skipped unconditionally. Blank rows are dropped, and
each remaining row becomes one record whose shape is chosen by the report
type the caller supplies; the content is never used to guess the type.

Columns are positional (see ``sites.REPORT_COLUMNS``). Missing cells become
"" or 0, and numeric cells are parsed leniently: the leading number is used
and anything unparsable counts as 0. ``strict=True`` turns unparsable numeric
cells into ``InvalidCellError`` instead.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Dict, List, Optional, Sequence, Union

from siteimprove_dashboard.errors import InvalidCellError, UnsupportedReportTypeError
from siteimprove_dashboard.records import (
    HistoryRecord,
    MisspellingRecord,
    PageIssueRecord,
    ReportRecord,
    ReportType,
    ReviewWordRecord,
    ingestion_timestamp,
)
from siteimprove_dashboard.sites import REPORT_COLUMNS

logger = logging.getLogger(__name__)

PREAMBLE_ROWS = 3

INT_RE   = re.compile(r"[+-]?\d+")
FLOAT_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


def coerce_report_type(report_type: Union[str, ReportType]) -> ReportType:
    if isinstance(report_type, ReportType):
        return report_type
    try:
        return ReportType(report_type)
    except ValueError:
        raise UnsupportedReportTypeError(report_type) from None


def is_blank_row(row: Sequence[object]) -> bool:
    return all(not str(cell if cell is not None else "").strip() for cell in row)


def _parse_number(raw: str, pattern: re.Pattern, convert: Callable, strict: bool) -> Optional[Union[int, float]]:
    text = raw.strip().replace(",", "")
    if not text:
        return 0
    match = pattern.fullmatch(text) if strict else pattern.match(text)
    if match is None:
        return None
    return convert(match.group(0))


class RowCells:
    """Positional view of one grid row with the lenient cell rules applied."""

    def __init__(self, row: Sequence[object], row_number: int, columns: List[str], strict: bool = False):
        self.row = row
        self.row_number = row_number
        self.columns = columns
        self.strict = strict

    def text(self, index: int) -> str:
        if index >= len(self.row) or self.row[index] is None:
            return ""
        return str(self.row[index])

    def integer(self, index: int) -> int:
        return int(self._number(index, INT_RE, int))

    def decimal(self, index: int) -> float:
        return float(self._number(index, FLOAT_RE, float))

    def _number(self, index: int, pattern: re.Pattern, convert: Callable) -> Union[int, float]:
        raw = self.text(index)
        value = _parse_number(raw, pattern, convert, self.strict)
        if value is not None:
            return value
        if self.strict:
            raise InvalidCellError(self.row_number, self.columns[index], raw)
        return 0


def _misspelling(cells: RowCells, record_id: str, site: str, report_date: str) -> MisspellingRecord:
    return MisspellingRecord(
        id=record_id,
        site=site,
        report_date=report_date,
        word=cells.text(0),
        suggestion=cells.text(1),
        language=cells.text(2),
        first_detected=cells.text(3),
        page_count=cells.integer(4),
    )


def _review_word(cells: RowCells, record_id: str, site: str, report_date: str) -> ReviewWordRecord:
    return ReviewWordRecord(
        id=record_id,
        site=site,
        report_date=report_date,
        word=cells.text(0),
        suggestion=cells.text(1),
        language=cells.text(2),
        first_detected=cells.text(3),
        misspelling_probability=cells.decimal(4),
        page_count=cells.integer(5),
    )


def _page_issue(cells: RowCells, record_id: str, site: str, report_date: str) -> PageIssueRecord:
    return PageIssueRecord(
        id=record_id,
        site=site,
        report_date=report_date,
        title=cells.text(0),
        url=cells.text(1),
        report_link=cells.text(2),
        cms_link=cells.text(3),
        misspelling_count=cells.integer(4),
        review_word_count=cells.integer(5),
        page_level=cells.text(6),
    )


def _history(cells: RowCells, record_id: str, site: str, report_date: str) -> HistoryRecord:
    # Column 3 ("Total Words") is not kept.
    return HistoryRecord(
        id=record_id,
        site=site,
        report_date=cells.text(0) or report_date,
        misspelling_count=cells.integer(1),
        review_word_count=cells.integer(2),
    )


ROW_BUILDERS: Dict[ReportType, Callable[[RowCells, str, str, str], ReportRecord]] = {
    ReportType.MISSPELLINGS: _misspelling,
    ReportType.WORDS_TO_REVIEW: _review_word,
    ReportType.PAGES_WITH_MISSPELLINGS: _page_issue,
    ReportType.MISSPELLING_HISTORY: _history,
}


def normalize_rows(
    grid: Sequence[Sequence[object]],
    report_type: Union[str, ReportType],
    site: str,
    report_date: str,
    *,
    timestamp: Optional[int] = None,
    strict: bool = False,
) -> List[ReportRecord]:
    """
    Build one record per data row of ``grid``.

    ``timestamp`` (epoch milliseconds) is embedded in every id as
    ``{report_type}-{site}-{timestamp}-{index}``; it defaults to a fresh
    value from the process-wide ingestion clock. Pass it explicitly to get
    identical output for identical input.
    """
    kind = coerce_report_type(report_type)
    builder = ROW_BUILDERS[kind]
    columns = REPORT_COLUMNS[kind]
    if timestamp is None:
        timestamp = ingestion_timestamp()

    data_rows = [
        (row_number, row)
        for row_number, row in enumerate(grid[PREAMBLE_ROWS:], start=PREAMBLE_ROWS + 1)
        if not is_blank_row(row)
    ]
    logger.debug(
        "Normalising %s for site=%s date=%s: %d of %d rows carry data",
        kind.value, site, report_date, len(data_rows), len(grid),
    )

    records = []
    for index, (row_number, row) in enumerate(data_rows):
        record_id = f"{kind.value}-{site}-{timestamp}-{index}"
        cells = RowCells(row, row_number, columns, strict=strict)
        records.append(builder(cells, record_id, site, report_date))
    return records
