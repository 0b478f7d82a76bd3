"""Error taxonomy for ingestion and storage."""

from __future__ import annotations


class DashboardError(Exception):
    """Base class for every error raised by siteimprove_dashboard."""


class UnsupportedFormatError(DashboardError, ValueError):
    def __init__(self, extension: str, supported: "set[str] | frozenset[str]") -> None:
        self.extension = extension
        shown = extension or "[missing extension]"
        super().__init__(
            f"Unsupported file format '{shown}'. "
            f"Please upload CSV or Excel files ({', '.join(sorted(supported))})."
        )


class ReadError(DashboardError, ValueError):
    """The file could not be decoded into a grid of cells."""


ParseError = ReadError


class UnsupportedReportTypeError(DashboardError, ValueError):
    def __init__(self, report_type: object) -> None:
        self.report_type = report_type
        super().__init__(f"Unknown report type: {report_type}")


class InvalidCellError(DashboardError, ValueError):
    """Raised in strict mode when a numeric cell does not parse."""

    def __init__(self, row_number: int, column: str, value: str) -> None:
        self.row_number = row_number
        self.column = column
        self.value = value
        super().__init__(f"Row {row_number}: column '{column}' is not a number: {value!r}")


class DuplicateRecordError(DashboardError, ValueError):
    def __init__(self, ids: "list[str]") -> None:
        self.ids = ids
        sample = ", ".join(ids[:3])
        extra = f" (+{len(ids) - 3} more)" if len(ids) > 3 else ""
        super().__init__(f"Record ids already stored: {sample}{extra}")


class StorageError(DashboardError):
    """The durable store exists but could not be read or written."""
