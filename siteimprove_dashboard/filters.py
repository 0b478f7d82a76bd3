from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import FrozenSet, Iterable, List, Optional, Sequence, Tuple, Union

from siteimprove_dashboard.normalizer import coerce_report_type
from siteimprove_dashboard.records import ReportRecord, ReportType, record_to_dict

DateLike = Union[str, date, None]


@dataclass(frozen=True)
class ReportFilter:
    site_ids: FrozenSet[str] = field(default_factory=frozenset)
    report_type: Optional[ReportType] = None
    date_range: Optional[Tuple[date, date]] = None
    search_term: str = ""

    def __post_init__(self) -> None:
        if self.date_range is None:
            return
        bounds = tuple(parse_report_date(bound) for bound in self.date_range)
        if len(bounds) != 2 or None in bounds:
            raise ValueError(f"date_range needs two ISO dates (YYYY-MM-DD), got {self.date_range!r}")
        object.__setattr__(self, "date_range", bounds)


def parse_report_date(value: DateLike) -> Optional[date]:
    """Calendar date of an ISO string (time part ignored); None if unparsable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()[:10]
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def searchable_text(record: ReportRecord) -> str:
    return " ".join(str(value) for value in record_to_dict(record).values()).lower()


def matches(record: ReportRecord, report_filter: ReportFilter) -> bool:
    if report_filter.site_ids and record.site not in report_filter.site_ids:
        return False

    if report_filter.report_type and record.kind != report_filter.report_type:
        return False

    if report_filter.date_range is not None:
        start, end = report_filter.date_range
        record_date = parse_report_date(record.report_date)
        if record_date is None or not (start <= record_date <= end):
            return False

    if report_filter.search_term:
        if report_filter.search_term.lower() not in searchable_text(record):
            return False

    return True


def filter_records(records: Iterable[ReportRecord], report_filter: ReportFilter) -> List[ReportRecord]:
    return [record for record in records if matches(record, report_filter)]


def build_filter(
    site_ids: Optional[Sequence[str]] = None,
    report_type: Union[str, ReportType, None] = None,
    start: DateLike = None,
    end: DateLike = None,
    search_term: Optional[str] = None,
) -> ReportFilter:
    """
    Turn raw UI or CLI input into a ``ReportFilter``.

    Blank values mean "no constraint". A single open bound is closed with
    ``date.min``/``date.max``, and reversed bounds are swapped. An unknown
    report type raises ``UnsupportedReportTypeError``.
    """
    sites = frozenset(str(s).strip() for s in (site_ids or []) if s is not None and str(s).strip())
    kind = coerce_report_type(report_type) if report_type else None

    start_date = parse_report_date(start) if start else None
    end_date = parse_report_date(end) if end else None
    for raw, parsed in ((start, start_date), (end, end_date)):
        if raw and parsed is None:
            raise ValueError(f"Not an ISO date (YYYY-MM-DD): {raw!r}")

    date_range = None
    if start_date or end_date:
        low, high = start_date or date.min, end_date or date.max
        date_range = (min(low, high), max(low, high))

    return ReportFilter(
        site_ids=sites,
        report_type=kind,
        date_range=date_range,
        search_term=(search_term or "").strip(),
    )
