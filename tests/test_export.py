import tempfile
import unittest
from datetime import date
from pathlib import Path

from openpyxl import load_workbook

from siteimprove_dashboard.export import export_dashboard, records_to_rows, summary_statistics
from siteimprove_dashboard.records import (
    HistoryRecord,
    MisspellingRecord,
    PageIssueRecord,
    ReviewWordRecord,
)

RECORDS = [
    MisspellingRecord(
        id="m1", site="tax", report_date="2024-01-05", word="recieve", suggestion="receive",
        language="en-US", first_detected="2024-01-01", page_count=3,
    ),
    ReviewWordRecord(
        id="w1", site="legal", report_date="2024-01-05", word="colour", suggestion="color",
        language="en-GB", first_detected="2024-01-02", misspelling_probability=0.8, page_count=2,
    ),
    PageIssueRecord(
        id="p1", site="legal", report_date="2024-01-06", title="About", url="/about",
        report_link="", cms_link="", misspelling_count=4, review_word_count=1, page_level="2",
    ),
    HistoryRecord(id="h1", site="main", report_date="2024-01-07", misspelling_count=9, review_word_count=3),
]


class SummaryStatisticsTests(unittest.TestCase):
    def test_counts_by_kind_and_site(self):
        self.assertEqual(
            summary_statistics(RECORDS),
            {
                "Total Misspellings": 2,
                "Words to Review": 1,
                "Pages with Issues": 1,
                "Unique Websites": 3,
            },
        )

    def test_empty_input(self):
        self.assertEqual(set(summary_statistics([]).values()), {0})


class RecordsToRowsTests(unittest.TestCase):
    def test_headers_are_union_in_first_seen_order(self):
        headers, rows = records_to_rows(RECORDS)
        self.assertEqual(headers[:4], ["kind", "id", "site", "report_date"])
        self.assertIn("misspelling_probability", headers)
        self.assertIn("cms_link", headers)
        self.assertLess(headers.index("word"), headers.index("title"))
        self.assertEqual(len(rows), 4)
        self.assertTrue(all(len(row) == len(headers) for row in rows))
        self.assertEqual(rows[0][headers.index("title")], "")


class ExportDashboardTests(unittest.TestCase):
    def test_summary_and_data_sheets(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = export_dashboard(RECORDS, Path(tmpdir) / "out" / "export.xlsx", export_date=date(2024, 2, 1))
            self.assertTrue(path.exists())
            wb = load_workbook(path)
            self.assertEqual(wb.sheetnames, ["Summary", "Data"])

            summary = {row[0]: row[1] for row in wb["Summary"].iter_rows(values_only=True) if row[0]}
            self.assertEqual(summary["Total Records"], 4)
            self.assertEqual(summary["Export Date"], "2024-02-01")
            self.assertEqual(summary["Unique Websites"], 3)

            data = list(wb["Data"].iter_rows(values_only=True))
            self.assertEqual(len(data), 5)
            self.assertEqual(data[0][:2], ("kind", "id"))
            self.assertEqual(data[1][:2], ("misspellings", "m1"))
            self.assertEqual(wb["Data"].freeze_panes, "A2")

    def test_no_data_sheet_without_records(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = export_dashboard([], Path(tmpdir) / "empty.xlsx")
            wb = load_workbook(path)
            self.assertEqual(wb.sheetnames, ["Summary"])


if __name__ == "__main__":
    unittest.main()
