"""Upload pipeline: file → grid → metadata → records → repository."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Union

from siteimprove_dashboard.errors import DashboardError, StorageError
from siteimprove_dashboard.metadata import ReportMetadata, extract_metadata
from siteimprove_dashboard.normalizer import coerce_report_type, normalize_rows
from siteimprove_dashboard.reader import Source, read_grid, source_name
from siteimprove_dashboard.reconciler import ReportRepository
from siteimprove_dashboard.records import (
    ReportRecord,
    ReportType,
    UploadManifestEntry,
    ingestion_timestamp,
    timestamp_to_iso,
)
from siteimprove_dashboard.sites import UNKNOWN_SITE

logger = logging.getLogger(__name__)


@dataclass
class ProcessedFile:
    records: List[ReportRecord]
    metadata: ReportMetadata


@dataclass
class UploadResult:
    success: bool
    row_count: int = 0
    error: Optional[str] = None
    manifest_entry: Optional[UploadManifestEntry] = None
    metadata: Optional[ReportMetadata] = None
    warnings: List[str] = field(default_factory=list)


def process_file(
    source: Source,
    report_type: Union[str, ReportType],
    *,
    filename: Optional[str] = None,
    today: Optional[date] = None,
    timestamp: Optional[int] = None,
    strict: bool = False,
    fallback_site: Optional[str] = None,
) -> ProcessedFile:
    """
    Read, extract and normalise one export.

    Reader and normalizer errors propagate unchanged. ``fallback_site`` is
    used for the records when the export carries no site label.
    """
    kind = coerce_report_type(report_type)
    grid = read_grid(source, filename)
    metadata = extract_metadata(grid, today=today)
    site = metadata.site
    if site == UNKNOWN_SITE and fallback_site:
        site = fallback_site
    records = normalize_rows(grid, kind, site, metadata.report_date, timestamp=timestamp, strict=strict)
    logger.debug("Processed %s: %d records", source_name(source, filename) or "[upload]", len(records))
    return ProcessedFile(records=records, metadata=metadata)


def upload_file(
    repository: ReportRepository,
    source: Source,
    site: str,
    report_type: Union[str, ReportType],
    *,
    filename: Optional[str] = None,
    today: Optional[date] = None,
    strict: bool = False,
) -> UploadResult:
    """
    Process an upload and store it, reporting bad input as a failed result.

    Nothing is stored unless the whole file normalises; the repository is
    untouched on failure. ``StorageError`` is not an input problem and
    propagates to the caller.
    """
    name = source_name(source, filename)
    timestamp = ingestion_timestamp()
    try:
        processed = process_file(
            source,
            report_type,
            filename=name,
            today=today,
            timestamp=timestamp,
            strict=strict,
            fallback_site=site,
        )
        entry = UploadManifestEntry(
            id=f"file-{timestamp}",
            filename=name,
            site=site,
            report_type=coerce_report_type(report_type).value,
            uploaded_at=timestamp_to_iso(timestamp),
            row_count=len(processed.records),
        )
        stored = repository.ingest(processed.records, entry)
    except StorageError:
        raise
    except DashboardError as exc:
        logger.warning("Upload of %s failed: %s", name or "[upload]", exc)
        return UploadResult(success=False, error=str(exc))

    warnings = []
    if processed.metadata.site not in (site, UNKNOWN_SITE):
        warnings.append(
            f"File is labelled for site '{processed.metadata.site}' but was uploaded for '{site}'"
        )
    return UploadResult(
        success=True,
        row_count=stored,
        manifest_entry=entry,
        metadata=processed.metadata,
        warnings=warnings,
    )
