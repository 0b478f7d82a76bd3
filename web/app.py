#!/usr/bin/env python3
from __future__ import annotations

import tempfile
from datetime import date, timedelta
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import pandas as pd
import streamlit as st

from siteimprove_dashboard.config import load_settings, open_repository
from siteimprove_dashboard.errors import StorageError
from siteimprove_dashboard.export import export_dashboard, records_to_rows, summary_statistics
from siteimprove_dashboard.filters import build_filter, filter_records
from siteimprove_dashboard.ingest import upload_file
from siteimprove_dashboard.metadata import utc_today
from siteimprove_dashboard.reader import ALL_FORMATS
from siteimprove_dashboard.reconciler import ReportRepository
from siteimprove_dashboard.records import (
    HistoryRecord,
    MisspellingRecord,
    ReportRecord,
    ReportType,
    ReviewWordRecord,
)
from siteimprove_dashboard.sites import DEFAULT_SITES, REPORT_TYPE_LABELS, site_label

DATE_RANGE_PRESETS = {
    "Last 7 days": 7,
    "Last 30 days": 30,
    "Last 90 days": 90,
    "Last 365 days": 365,
    "Custom": 0,
}
UPLOAD_EXTS = sorted(ext.lstrip(".") for ext in ALL_FORMATS)
ALL_TYPES_LABEL = "All report types"


@st.cache_resource(show_spinner=False)
def get_repository() -> ReportRepository:
    return open_repository(load_settings()).load()


def preset_date_range(days: int, today: Optional[date] = None) -> Tuple[date, date]:
    """Inclusive range ending today that spans ``days`` calendar days."""
    today = today or utc_today()
    return today - timedelta(days=max(days, 1) - 1), today


def history_trend_frame(records: Iterable[ReportRecord]) -> pd.DataFrame:
    rows = [
        {
            "report_date": record.report_date,
            "Misspellings": record.misspelling_count,
            "Words to Review": record.review_word_count,
        }
        for record in records
        if isinstance(record, HistoryRecord)
    ]
    if not rows:
        return pd.DataFrame(columns=["Misspellings", "Words to Review"])
    frame = pd.DataFrame(rows).groupby("report_date", sort=True).sum()
    frame.index.name = "Report date"
    return frame


def top_words_frame(records: Iterable[ReportRecord], limit: int = 10) -> pd.DataFrame:
    words = [
        record.word
        for record in records
        if isinstance(record, (MisspellingRecord, ReviewWordRecord)) and record.word
    ]
    if not words:
        return pd.DataFrame(columns=["Occurrences"])
    counts = pd.Series(words).value_counts().head(limit)
    return counts.rename("Occurrences").to_frame()


def records_frame(records: List[ReportRecord]) -> pd.DataFrame:
    headers, rows = records_to_rows(records)
    return pd.DataFrame(rows, columns=headers)


def selected_record_ids(records: List[ReportRecord], rows: Iterable[int]) -> List[str]:
    """Ids of the table rows picked in the dataframe selection, in row order."""
    return [records[row].id for row in sorted(set(rows)) if 0 <= row < len(records)]


def export_bytes(records: List[ReportRecord]) -> bytes:
    with tempfile.TemporaryDirectory() as tmpdir:
        path = export_dashboard(records, Path(tmpdir) / "dashboard-export.xlsx")
        return path.read_bytes()


def render_upload(repository: ReportRepository) -> None:
    st.subheader("Upload a Siteimprove report")
    site_ids = [site.id for site in DEFAULT_SITES]
    site = st.selectbox("Website", site_ids, format_func=site_label)
    report_type = st.selectbox(
        "Report type",
        list(ReportType),
        format_func=lambda kind: REPORT_TYPE_LABELS[kind],
    )
    uploaded = st.file_uploader("Report file", type=UPLOAD_EXTS)

    if st.button("Upload", type="primary", disabled=uploaded is None):
        try:
            with st.spinner("Processing file..."):
                result = upload_file(repository, uploaded, site, report_type, strict=load_settings().strict)
        except StorageError as exc:
            st.error(f"Could not save the upload: {exc}")
            return
        if result.success:
            st.success(f"Successfully uploaded {uploaded.name} with {result.row_count} records")
            for warning in result.warnings:
                st.warning(warning)
        else:
            st.error(result.error)

    uploads = repository.uploads
    if not uploads:
        return

    st.subheader(f"Uploaded Files ({len(uploads)})")
    for entry in uploads:
        left, right = st.columns([5, 1])
        left.markdown(
            f"**{entry.filename}**  \n{site_label(entry.site)} • {entry.report_type} • "
            f"{entry.row_count} records • {entry.uploaded_at[:10]}"
        )
        if right.button("Delete", key=f"delete-{entry.id}"):
            repository.delete_manifest_entry(entry.id)
            st.rerun()


def render_filters() -> Tuple[list, Optional[ReportType], Tuple[date, date], str]:
    st.sidebar.header("Filters")
    sites = st.sidebar.multiselect(
        "Websites",
        [site.id for site in DEFAULT_SITES],
        format_func=site_label,
    )
    type_options: list = [ALL_TYPES_LABEL, *ReportType]
    chosen_type = st.sidebar.selectbox(
        "Report type",
        type_options,
        format_func=lambda kind: kind if kind == ALL_TYPES_LABEL else REPORT_TYPE_LABELS[kind],
    )
    preset = st.sidebar.selectbox("Date range", list(DATE_RANGE_PRESETS), index=1)
    start, end = preset_date_range(DATE_RANGE_PRESETS[preset])
    if DATE_RANGE_PRESETS[preset] == 0:
        picked = st.sidebar.date_input("Custom range", value=(start, end))
        if isinstance(picked, (tuple, list)) and len(picked) == 2:
            start, end = picked
    search = st.sidebar.text_input("Search")
    report_type = None if chosen_type == ALL_TYPES_LABEL else chosen_type
    return sites, report_type, (start, end), search


def render_dashboard(repository: ReportRepository) -> None:
    sites, report_type, (start, end), search = render_filters()
    report_filter = build_filter(sites, report_type, start, end, search)
    filtered = filter_records(repository.records, report_filter)
    summary = summary_statistics(filtered)

    for column, (label, value) in zip(st.columns(len(summary)), summary.items()):
        column.metric(label, value)

    if not filtered:
        st.info("No records match the current filters.")
        return

    trend, words = st.columns(2)
    with trend:
        st.caption("Misspelling history")
        st.line_chart(history_trend_frame(filtered))
    with words:
        st.caption("Most frequent words")
        st.bar_chart(top_words_frame(filtered))

    st.caption(f"{len(filtered)} records")
    table = st.dataframe(
        records_frame(filtered),
        hide_index=True,
        key="records-table",
        on_select="rerun",
        selection_mode="multi-row",
    )
    chosen = selected_record_ids(filtered, table.selection.rows)
    if st.button(f"Delete selected ({len(chosen)})", disabled=not chosen):
        try:
            removed = repository.delete_records(chosen)
        except StorageError as exc:
            st.error(f"Could not delete records: {exc}")
        else:
            st.toast(f"Deleted {removed} records")
            st.rerun()

    st.download_button(
        "Export to Excel",
        data=export_bytes(filtered),
        file_name=f"siteimprove-dashboard-{date.today().isoformat()}.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )


def main() -> None:
    st.set_page_config(page_title="Siteimprove Report Dashboard", layout="wide")
    st.title("Siteimprove Report Dashboard")
    repository = get_repository()

    view = st.sidebar.radio("View", ["Dashboard", "Upload"], horizontal=True)
    st.sidebar.caption(f"{len(repository.records)} records • {len(repository.uploads)} files")

    with st.sidebar.expander("Demo data"):
        confirmed = st.checkbox("I understand this discards all uploads")
        if st.button("Reset to demo data", disabled=not confirmed):
            repository.reset()
            st.rerun()

    if view == "Upload":
        render_upload(repository)
    else:
        render_dashboard(repository)


if __name__ == "__main__":
    main()
