"""Report date and site label recovered from the export's preamble rows.

Siteimprove exports put the report date in B1 and the site label in B2.
This is a fixed-position convention, not something the file declares, so
anything missing falls back to today's date and the ``"unknown"`` site.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional, Sequence

from siteimprove_dashboard.sites import UNKNOWN_SITE

logger = logging.getLogger(__name__)

REPORT_DATE_CELL = (0, 1)
SITE_CELL = (1, 1)


@dataclass(frozen=True)
class ReportMetadata:
    report_date: str
    site: str


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _cell(grid: Sequence[Sequence[str]], position: tuple[int, int]) -> str:
    row_idx, col_idx = position
    if row_idx >= len(grid) or col_idx >= len(grid[row_idx]):
        return ""
    value = grid[row_idx][col_idx]
    return str(value).strip() if value is not None else ""


def extract_metadata(grid: Sequence[Sequence[str]], today: Optional[date] = None) -> ReportMetadata:
    report_date = _cell(grid, REPORT_DATE_CELL)
    site = _cell(grid, SITE_CELL)

    if not report_date:
        report_date = (today or utc_today()).isoformat()
        logger.warning("No report date in B1; using %s", report_date)
    if not site:
        site = UNKNOWN_SITE
        logger.warning("No site label in B2; using %r", site)

    logger.debug("Extracted metadata: report_date=%s site=%s", report_date, site)
    return ReportMetadata(report_date=report_date, site=site)
