from __future__ import annotations

from typing import Dict, List, Optional

from siteimprove_dashboard.records import ReportType, Site

UNKNOWN_SITE = "unknown"

DEFAULT_SITES: List[Site] = [
    Site("tax", "Tax Thomson Reuters", "tax.thomsonreuters.com"),
    Site("main", "Thomson Reuters", "thomsonreuters.com"),
    Site("legal", "Legal Thomson Reuters", "legal.thomsonreuters.com"),
    Site("writers", "Thompson Writers", "thompsonwriters.co.ca"),
    Site("legal-uk", "Legal UK Website", "legal-uk.thomsonreuters.com"),
]

REPORT_TYPE_LABELS: Dict[ReportType, str] = {
    ReportType.MISSPELLINGS: "Misspellings",
    ReportType.WORDS_TO_REVIEW: "Words to Review",
    ReportType.PAGES_WITH_MISSPELLINGS: "Pages with Misspellings",
    ReportType.MISSPELLING_HISTORY: "Misspelling History",
}

# Column order of each Siteimprove export, starting at the fourth row.
REPORT_COLUMNS: Dict[ReportType, List[str]] = {
    ReportType.MISSPELLINGS: ["Word", "Spelling Suggestion", "Language", "First Detected", "Pages"],
    ReportType.WORDS_TO_REVIEW: [
        "Word",
        "Spelling Suggestion",
        "Language",
        "First Detected",
        "Misspelling Probability",
        "Pages",
    ],
    ReportType.PAGES_WITH_MISSPELLINGS: [
        "Title",
        "URL",
        "Page Report Link",
        "CMS Link",
        "Misspellings",
        "Words to Review",
        "Page Level",
    ],
    # Exports also carry a trailing "Total Words" column, which is not kept.
    ReportType.MISSPELLING_HISTORY: ["Report Date", "Misspellings", "Words to Review"],
}


def site_by_id(site_id: str, sites: Optional[List[Site]] = None) -> Optional[Site]:
    for site in sites if sites is not None else DEFAULT_SITES:
        if site.id == site_id:
            return site
    return None


def site_label(site_id: str, sites: Optional[List[Site]] = None) -> str:
    site = site_by_id(site_id, sites)
    return site.name if site else site_id
