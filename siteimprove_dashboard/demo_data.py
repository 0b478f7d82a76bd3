"""Seed dataset loaded into an empty store and restored by ``reset``."""

from __future__ import annotations

import math
import random
from datetime import date, timedelta
from typing import List, Optional, Tuple

from siteimprove_dashboard.metadata import utc_today
from siteimprove_dashboard.records import (
    HistoryRecord,
    MisspellingRecord,
    PageIssueRecord,
    ReportRecord,
    ReportType,
    ReviewWordRecord,
    UploadManifestEntry,
    ingestion_timestamp,
    timestamp_to_iso,
)
from siteimprove_dashboard.sites import DEFAULT_SITES

LANGUAGES = ["en-US", "en-CA", "en-GB", "fr-CA"]

COMMON_MISSPELLINGS = [
    ("recieve", "receive"),
    ("seperate", "separate"),
    ("occured", "occurred"),
    ("accomodate", "accommodate"),
    ("definately", "definitely"),
    ("neccessary", "necessary"),
    ("begining", "beginning"),
    ("existance", "existence"),
    ("maintainance", "maintenance"),
    ("independant", "independent"),
    ("priviledge", "privilege"),
    ("embarass", "embarrass"),
    ("recomend", "recommend"),
    ("beleive", "believe"),
    ("acheive", "achieve"),
]

WORDS_TO_REVIEW = [
    ("colour", "color"),
    ("centre", "center"),
    ("realise", "realize"),
    ("analyse", "analyze"),
    ("organisation", "organization"),
    ("behaviour", "behavior"),
    ("favour", "favor"),
    ("honour", "honor"),
    ("labour", "labor"),
    ("neighbour", "neighbor"),
]

SAMPLE_PAGES = [
    ("Tax Planning Guide 2024", "/tax/planning-guide-2024"),
    ("Corporate Tax Updates", "/tax/corporate-updates"),
    ("Legal Research Tools", "/legal/research-tools"),
    ("Case Law Database", "/legal/case-law"),
    ("About Thomson Reuters", "/about"),
    ("Contact Us", "/contact"),
    ("Privacy Policy", "/privacy"),
    ("Terms of Service", "/terms"),
    ("Writer Guidelines", "/writers/guidelines"),
    ("Editorial Standards", "/writers/standards"),
]

DEMO_UPLOADS = [
    # (filename, site, report type, days ago, row count)
    ("tax-misspellings-2024-01.csv", "tax", ReportType.MISSPELLINGS, 5, 156),
    ("main-words-to-review-2024-01.xlsx", "main", ReportType.WORDS_TO_REVIEW, 3, 89),
    ("legal-pages-misspellings-2024-01.csv", "legal", ReportType.PAGES_WITH_MISSPELLINGS, 2, 67),
    ("writers-history-2024-q1.xlsx", "writers", ReportType.MISSPELLING_HISTORY, 1, 90),
    ("legal-uk-misspellings-2024-01.csv", "legal-uk", ReportType.MISSPELLINGS, 0, 134),
]


def _last_days(today: date, days: int) -> List[str]:
    return [(today - timedelta(days=offset)).isoformat() for offset in range(days - 1, -1, -1)]


def _misspellings(rng: random.Random, today: date, sites: List[str]) -> List[ReportRecord]:
    records: List[ReportRecord] = []
    for day in _last_days(today, 30):
        for site in sites:
            for i in range(rng.randint(3, 8)):
                word, suggestion = rng.choice(COMMON_MISSPELLINGS)
                first_seen = date.fromisoformat(day) - timedelta(days=rng.randrange(30))
                records.append(MisspellingRecord(
                    id=f"{ReportType.MISSPELLINGS.value}-{site}-{day}-{i}",
                    site=site,
                    report_date=day,
                    word=word,
                    suggestion=suggestion,
                    language=rng.choice(LANGUAGES),
                    first_detected=first_seen.isoformat(),
                    page_count=rng.randint(1, 15),
                ))
    return records


def _review_words(rng: random.Random, today: date, sites: List[str]) -> List[ReportRecord]:
    records: List[ReportRecord] = []
    for day in _last_days(today, 30):
        for site in sites:
            for i in range(rng.randint(2, 5)):
                word, suggestion = rng.choice(WORDS_TO_REVIEW)
                first_seen = date.fromisoformat(day) - timedelta(days=rng.randrange(20))
                records.append(ReviewWordRecord(
                    id=f"{ReportType.WORDS_TO_REVIEW.value}-{site}-{day}-{i}",
                    site=site,
                    report_date=day,
                    word=word,
                    suggestion=suggestion,
                    language=rng.choice(LANGUAGES),
                    first_detected=first_seen.isoformat(),
                    misspelling_probability=round(rng.random() * 0.4 + 0.3, 4),
                    page_count=rng.randint(1, 8),
                ))
    return records


def _page_issues(rng: random.Random, today: date, sites: List[str]) -> List[ReportRecord]:
    records: List[ReportRecord] = []
    for day in _last_days(today, 30):
        for site in sites:
            for i in range(rng.randint(1, 4)):
                title, url = rng.choice(SAMPLE_PAGES)
                records.append(PageIssueRecord(
                    id=f"{ReportType.PAGES_WITH_MISSPELLINGS.value}-{site}-{day}-{i}",
                    site=site,
                    report_date=day,
                    title=title,
                    url=url,
                    report_link=f"https://my.siteimprove.com/page-report/{site}{url}",
                    cms_link=f"https://cms.{site}.com/edit{url}",
                    misspelling_count=rng.randint(1, 12),
                    review_word_count=rng.randint(1, 8),
                    page_level=str(rng.randint(1, 4)),
                ))
    return records


def _history(rng: random.Random, today: date, sites: List[str]) -> List[ReportRecord]:
    records: List[ReportRecord] = []
    for day in _last_days(today, 90):
        day_date = date.fromisoformat(day)
        # Quieter weekends plus a yearly swell.
        weekend = 0.3 if day_date.weekday() >= 5 else 1.0
        season = 0.8 + 0.4 * math.sin(day_date.timetuple().tm_yday / 365 * 2 * math.pi)
        for site in sites:
            records.append(HistoryRecord(
                id=f"{ReportType.MISSPELLING_HISTORY.value}-{site}-{day}",
                site=site,
                report_date=day,
                misspelling_count=int((rng.random() * 25 + 15) * weekend * season),
                review_word_count=int((rng.random() * 15 + 8) * weekend * season),
            ))
    return records


def build_demo_dataset(
    seed: Optional[int] = None,
    today: Optional[date] = None,
) -> Tuple[List[ReportRecord], List[UploadManifestEntry]]:
    rng = random.Random(seed)
    today = today or utc_today()
    sites = [site.id for site in DEFAULT_SITES]

    records = (
        _misspellings(rng, today, sites)
        + _review_words(rng, today, sites)
        + _page_issues(rng, today, sites)
        + _history(rng, today, sites)
    )

    now = ingestion_timestamp()
    uploads = [
        UploadManifestEntry(
            id=f"file-{number}",
            filename=filename,
            site=site,
            report_type=report_type.value,
            uploaded_at=timestamp_to_iso(now - days_ago * 86_400_000),
            row_count=row_count,
        )
        for number, (filename, site, report_type, days_ago, row_count) in enumerate(DEMO_UPLOADS, start=1)
    ]
    return records, uploads


def empty_dataset() -> Tuple[List[ReportRecord], List[UploadManifestEntry]]:
    return [], []
