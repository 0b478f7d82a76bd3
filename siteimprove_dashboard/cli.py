from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict

from siteimprove_dashboard import __version__ as TOOL_VERSION
from siteimprove_dashboard.config import Settings, load_settings, open_repository
from siteimprove_dashboard.errors import (
    DashboardError,
    InvalidCellError,
    ReadError,
    StorageError,
    UnsupportedFormatError,
)
from siteimprove_dashboard.export import export_dashboard, summary_statistics
from siteimprove_dashboard.filters import ReportFilter, build_filter, filter_records
from siteimprove_dashboard.ingest import upload_file
from siteimprove_dashboard.reconciler import ReportRepository
from siteimprove_dashboard.records import (
    HistoryRecord,
    MisspellingRecord,
    PageIssueRecord,
    ReportRecord,
    ReportType,
    ReviewWordRecord,
    record_to_dict,
)

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_STORE_FAILED = 3

REPORT_TYPE_CHOICES = [kind.value for kind in ReportType]


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class DashboardArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, (UnsupportedFormatError, ReadError, InvalidCellError)):
        return EXIT_PARSE_FAILED
    if isinstance(exc, StorageError):
        return EXIT_STORE_FAILED
    return EXIT_COMMAND_ERROR


# ══════════════════════════════════════════════════════════════════════════════
# RENDERING
# ══════════════════════════════════════════════════════════════════════════════

def _describe_misspelling(record: MisspellingRecord) -> str:
    return f"{record.word} -> {record.suggestion} ({record.language}, {record.page_count} pages)"


def _describe_review_word(record: ReviewWordRecord) -> str:
    return (
        f"{record.word} -> {record.suggestion} ({record.language}, "
        f"p={record.misspelling_probability:.2f}, {record.page_count} pages)"
    )


def _describe_page_issue(record: PageIssueRecord) -> str:
    return f"{record.title} {record.url} ({record.misspelling_count} misspellings, {record.review_word_count} to review)"


def _describe_history(record: HistoryRecord) -> str:
    return f"{record.misspelling_count} misspellings, {record.review_word_count} to review"


DESCRIBERS: Dict[ReportType, Callable[[Any], str]] = {
    ReportType.MISSPELLINGS: _describe_misspelling,
    ReportType.WORDS_TO_REVIEW: _describe_review_word,
    ReportType.PAGES_WITH_MISSPELLINGS: _describe_page_issue,
    ReportType.MISSPELLING_HISTORY: _describe_history,
}


def render_record_line(record: ReportRecord) -> str:
    return f"{record.report_date}  {record.site:<10} {record.kind.value:<24} {DESCRIBERS[record.kind](record)}  [{record.id}]"


def render_summary_text(summary: Dict[str, int], total: int) -> str:
    lines = ["siteimprove-dashboard summary", f"Records: {total}"]
    lines.extend(f"{key}: {value}" for key, value in summary.items())
    return "\n".join(lines) + "\n"


# ══════════════════════════════════════════════════════════════════════════════
# PARSER
# ══════════════════════════════════════════════════════════════════════════════

def add_filter_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--site", dest="sites", action="append", default=[], help="Site id (repeatable)")
    parser.add_argument("--type", dest="report_type", choices=REPORT_TYPE_CHOICES, help="Report type")
    parser.add_argument("--start", help="First report date, YYYY-MM-DD (inclusive)")
    parser.add_argument("--end", help="Last report date, YYYY-MM-DD (inclusive)")
    parser.add_argument("--search", help="Case-insensitive text search across all fields")


def build_parser() -> argparse.ArgumentParser:
    parser = DashboardArgumentParser(
        prog="siteimprove-dashboard",
        description="Store, filter and export Siteimprove spelling reports.",
    )
    parser.add_argument("--store", help="Path of the JSON store (default: $SITEIMPROVE_DASHBOARD_STORE)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logs on stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)

    upload = subparsers.add_parser("upload", help="Ingest a Siteimprove export (.csv, .xlsx, .xls).")
    upload.add_argument("input", help="Input file path")
    upload.add_argument("--type", dest="report_type", required=True, choices=REPORT_TYPE_CHOICES, help="Report type")
    upload.add_argument("--site", required=True, help="Site id the export belongs to")
    upload.add_argument("--strict", action="store_true", default=None, help="Reject unparsable numeric cells")
    upload.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    upload.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")

    records = subparsers.add_parser("records", help="List stored records.")
    add_filter_arguments(records)
    records.add_argument("--limit", type=int, default=None, help="Show at most N records")
    records.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    uploads = subparsers.add_parser("uploads", help="List uploaded files.")
    uploads.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    summary = subparsers.add_parser("summary", help="Headline counts for the filtered records.")
    add_filter_arguments(summary)
    summary.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    export = subparsers.add_parser("export", help="Export filtered records to an .xlsx workbook.")
    export.add_argument("output", help="Output .xlsx path")
    add_filter_arguments(export)
    export.add_argument("--force", action="store_true", help="Overwrite an existing output file")
    export.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")

    delete = subparsers.add_parser("delete", help="Delete records by id.")
    delete.add_argument("record_ids", nargs="+", help="Record ids")

    delete_upload = subparsers.add_parser("delete-upload", help="Delete an uploaded file entry by id.")
    delete_upload.add_argument("upload_id", help="Upload id (file-...)")

    reset = subparsers.add_parser("reset", help="Discard everything and restore the demo dataset.")
    reset.add_argument("--yes", action="store_true", help="Confirm the reset")

    clear = subparsers.add_parser("clear", help="Remove all records and uploads.")
    clear.add_argument("--yes", action="store_true", help="Confirm the clear")

    subparsers.add_parser("version", help="Print version")
    return parser


def filter_from_args(args: argparse.Namespace) -> ReportFilter:
    try:
        return build_filter(args.sites, args.report_type, args.start, args.end, args.search)
    except ValueError as exc:
        raise CliError(str(exc), EXIT_COMMAND_ERROR) from exc


# ══════════════════════════════════════════════════════════════════════════════
# COMMANDS
# ══════════════════════════════════════════════════════════════════════════════

def run_upload(args: argparse.Namespace, settings: Settings, repository: ReportRepository) -> int:
    input_path = Path(args.input)
    if not input_path.exists():
        eprint(f"File not found: {input_path}")
        return EXIT_COMMAND_ERROR

    strict = settings.strict if args.strict is None else args.strict
    result = upload_file(repository, input_path, args.site, args.report_type, strict=strict)
    payload = {
        "tool": "siteimprove-dashboard",
        "command": "upload",
        "version": TOOL_VERSION,
        "input": str(input_path),
        "success": result.success,
        "row_count": result.row_count,
        "error": result.error,
        "warnings": result.warnings,
        "upload": result.manifest_entry.to_dict() if result.manifest_entry else None,
        "metadata": (
            {"report_date": result.metadata.report_date, "site": result.metadata.site}
            if result.metadata
            else None
        ),
    }
    if args.json:
        maybe_emit_json_stdout(payload, True)
    elif result.success:
        emit_human(f"Successfully uploaded {input_path.name} with {result.row_count} records", quiet=args.quiet)
        for warning in result.warnings:
            emit_human(f"Warning: {warning}", quiet=args.quiet)
    if not result.success:
        if not args.json:
            eprint(f"Upload failed: {result.error}")
        return EXIT_PARSE_FAILED
    return EXIT_SUCCESS


def run_records(args: argparse.Namespace, repository: ReportRepository) -> int:
    selected = filter_records(repository.records, filter_from_args(args))
    if args.limit is not None:
        selected = selected[: max(0, args.limit)]
    if args.json:
        maybe_emit_json_stdout([record_to_dict(record) for record in selected], True)
    else:
        for record in selected:
            print(render_record_line(record))
        eprint(f"{len(selected)} records")
    return EXIT_SUCCESS


def run_uploads(args: argparse.Namespace, repository: ReportRepository) -> int:
    uploads = repository.uploads
    if args.json:
        maybe_emit_json_stdout([entry.to_dict() for entry in uploads], True)
    else:
        for entry in uploads:
            print(f"{entry.id}  {entry.filename}  {entry.site} • {entry.report_type} • {entry.row_count} records  {entry.uploaded_at}")
        eprint(f"{len(uploads)} uploaded files")
    return EXIT_SUCCESS


def run_summary(args: argparse.Namespace, repository: ReportRepository) -> int:
    selected = filter_records(repository.records, filter_from_args(args))
    summary = summary_statistics(selected)
    if args.json:
        maybe_emit_json_stdout({"total_records": len(selected), "summary": summary}, True)
    else:
        print(render_summary_text(summary, len(selected)), end="")
    return EXIT_SUCCESS


def run_export(args: argparse.Namespace, repository: ReportRepository) -> int:
    output_path = Path(args.output)
    if output_path.suffix.lower() != ".xlsx":
        raise CliError("Export output must be an .xlsx path", EXIT_COMMAND_ERROR)
    if output_path.exists() and not args.force:
        raise CliError(f"Refusing to overwrite existing output: {output_path}", EXIT_COMMAND_ERROR)
    selected = filter_records(repository.records, filter_from_args(args))
    export_dashboard(selected, output_path)
    emit_human(f"Exported {len(selected)} records: {output_path}", quiet=args.quiet)
    return EXIT_SUCCESS


def run_delete(args: argparse.Namespace, repository: ReportRepository) -> int:
    removed = repository.delete_records(args.record_ids)
    eprint(f"Deleted {removed} of {len(set(args.record_ids))} records")
    return EXIT_SUCCESS


def run_delete_upload(args: argparse.Namespace, repository: ReportRepository) -> int:
    removed = repository.delete_manifest_entry(args.upload_id)
    eprint(f"Deleted upload {args.upload_id}" if removed else f"No stored upload {args.upload_id}")
    return EXIT_SUCCESS


def run_reset(args: argparse.Namespace, repository: ReportRepository) -> int:
    if not args.yes:
        raise CliError("Reset discards every upload and deletion; pass --yes to confirm.", EXIT_COMMAND_ERROR)
    repository.reset()
    eprint(f"Store reset: {len(repository.records)} demo records")
    return EXIT_SUCCESS


def run_clear(args: argparse.Namespace, repository: ReportRepository) -> int:
    if not args.yes:
        raise CliError("Clear removes all records and uploads; pass --yes to confirm.", EXIT_COMMAND_ERROR)
    repository.clear()
    eprint("All records and uploads removed")
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        configure_logging(args.verbose)
        if args.command == "version":
            return run_version()

        settings = load_settings(store_path=args.store)
        repository = open_repository(settings)
        if args.command == "upload":
            return run_upload(args, settings, repository)
        if args.command == "records":
            return run_records(args, repository)
        if args.command == "uploads":
            return run_uploads(args, repository)
        if args.command == "summary":
            return run_summary(args, repository)
        if args.command == "export":
            return run_export(args, repository)
        if args.command == "delete":
            return run_delete(args, repository)
        if args.command == "delete-upload":
            return run_delete_upload(args, repository)
        if args.command == "reset":
            return run_reset(args, repository)
        if args.command == "clear":
            return run_clear(args, repository)
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except (CliError, DashboardError, ValueError) as exc:
        eprint(str(exc))
        return classify_exception(exc)


if __name__ == "__main__":
    raise SystemExit(main())
