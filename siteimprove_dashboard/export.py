from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import openpyxl
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from siteimprove_dashboard.records import ReportRecord, ReportType, record_to_dict

DATA_HEADER_COLOR = "14B8A6"


def summary_statistics(records: Iterable[ReportRecord]) -> Dict[str, int]:
    """Headline counts shown above the dashboard table and in exports."""
    records = list(records)

    def count(*kinds: ReportType) -> int:
        return sum(1 for record in records if record.kind in kinds)

    return {
        # History rows count here too, matching the dashboard tiles.
        "Total Misspellings": count(ReportType.MISSPELLINGS, ReportType.MISSPELLING_HISTORY),
        "Words to Review": count(ReportType.WORDS_TO_REVIEW),
        "Pages with Issues": count(ReportType.PAGES_WITH_MISSPELLINGS),
        "Unique Websites": len({record.site for record in records}),
    }


def records_to_rows(records: Iterable[ReportRecord]) -> tuple[List[str], List[List[Any]]]:
    """Flatten mixed record kinds into one table; headers in first-seen order."""
    payloads = [record_to_dict(record) for record in records]
    headers: List[str] = []
    for payload in payloads:
        for key in payload:
            if key not in headers:
                headers.append(key)
    rows = [[payload.get(key, "") for key in headers] for payload in payloads]
    return headers, rows


def _style_sheet(ws, header_color: str, col_widths: List[int]) -> None:
    fill = PatternFill("solid", fgColor=header_color)
    font = Font(bold=True, color="FFFFFF")
    for cell in ws[1]:
        cell.font = font
        cell.fill = fill
        cell.alignment = Alignment(horizontal="center", vertical="center")
    ws.freeze_panes = "A2"
    for i, width in enumerate(col_widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = width


def _infer_col_widths(headers: List[str], rows: List[List[Any]], min_width: int = 15, max_width: int = 60, sample: int = 300) -> List[int]:
    widths = [max(min_width, len(h) + 2) for h in headers]
    for row in rows[:sample]:
        for i, value in enumerate(row):
            widths[i] = max(widths[i], min(max_width, len(str(value)) + 2))
    return widths


def export_dashboard(
    records: Iterable[ReportRecord],
    output_path: "str | Path",
    summary: Optional[Mapping[str, Any]] = None,
    export_date: Optional[date] = None,
) -> Path:
    """
    Write a workbook with a "Summary" sheet and, when there are records, a
    "Data" sheet holding one row per record.
    """
    records = list(records)
    summary = summary if summary is not None else summary_statistics(records)
    output_path = Path(output_path)

    wb = openpyxl.Workbook()
    ws_summary = wb.active
    ws_summary.title = "Summary"
    ws_summary.append(["Dashboard Summary"])
    ws_summary["A1"].font = Font(bold=True, size=14)
    ws_summary.append([])
    ws_summary.append(["Total Records", len(records)])
    ws_summary.append(["Export Date", (export_date or date.today()).isoformat()])
    ws_summary.append([])
    for key, value in summary.items():
        ws_summary.append([key, value])
    ws_summary.column_dimensions["A"].width = 24
    ws_summary.column_dimensions["B"].width = 16

    if records:
        headers, rows = records_to_rows(records)
        ws_data = wb.create_sheet("Data")
        ws_data.append(headers)
        for row in rows:
            ws_data.append(row)
        _style_sheet(ws_data, DATA_HEADER_COLOR, _infer_col_widths(headers, rows))

    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output_path)
    return output_path
