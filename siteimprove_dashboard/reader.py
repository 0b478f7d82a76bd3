"""
reader.py — Spreadsheet reader for Siteimprove exports

Supports: .csv .xlsx .xls

Public API:
    grid = read_grid("path/to/export.csv")
    grid = read_grid(uploaded.getvalue(), filename=uploaded.name)

The grid is a list of rows, each a list of string cells, in file order.
No column is interpreted here; rows may have different lengths.

Raises:
    UnsupportedFormatError  for any other extension.
    ReadError               when the bytes cannot be read or decoded.
"""

from __future__ import annotations

import csv
import io
import logging
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, BinaryIO, List, Optional, Union

import chardet
import pandas as pd

from siteimprove_dashboard.errors import ReadError, UnsupportedFormatError

logger = logging.getLogger(__name__)

# ── Format groups ──────────────────────────────────────────────────────────────
TEXT_FORMATS  = frozenset({".csv"})
EXCEL_FORMATS = frozenset({".xlsx", ".xls"})
ALL_FORMATS   = TEXT_FORMATS | EXCEL_FORMATS

EXCEL_ENGINES = {".xlsx": "openpyxl", ".xls": "xlrd"}

Grid = List[List[str]]
Source = Union[str, Path, bytes, bytearray, BinaryIO]


# ══════════════════════════════════════════════════════════════════════════════
# SOURCE HANDLING
# ══════════════════════════════════════════════════════════════════════════════

def source_name(source: Any, filename: Optional[str] = None) -> str:
    """Best-effort file name for a path, an upload object or raw bytes."""
    if filename:
        return str(filename)
    if isinstance(source, (str, Path)):
        return Path(source).name
    return str(getattr(source, "name", "") or "")


def detect_extension(name: str) -> str:
    """Lower-cased suffix of ``name``; raises if it is not a supported format."""
    suffix = Path(name).suffix.lower()
    if suffix not in ALL_FORMATS:
        raise UnsupportedFormatError(suffix, ALL_FORMATS)
    return suffix


def _read_bytes(source: Any) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)

    if isinstance(source, (str, Path)):
        try:
            return Path(source).read_bytes()
        except OSError as exc:
            raise ReadError(f"Could not read file {source}: {exc}") from exc

    try:
        if hasattr(source, "getvalue"):
            data = source.getvalue()
        else:
            data = source.read()
    except (OSError, ValueError) as exc:
        raise ReadError(f"Could not read uploaded file: {exc}") from exc

    if not isinstance(data, (bytes, bytearray)):
        raise ReadError("Uploaded file must be opened in binary mode")
    return bytes(data)


# ══════════════════════════════════════════════════════════════════════════════
# TEXT DECODING
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding(raw: bytes) -> str:
    result = chardet.detect(raw)
    return result.get("encoding") or "utf-8"


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes one line at a time, so a single stray byte only affects
    its own line: UTF-8 first, then the chardet guess, and latin-1 as the
    last resort (it maps every byte, so decoding always succeeds).

    Embedded null bytes and a leading BOM are stripped.
    """
    def decode_line(raw_line: bytes) -> str:
        for enc in ("utf-8", preferred_encoding):
            try:
                return raw_line.decode(enc)
            except (LookupError, UnicodeDecodeError):
                continue
        return raw_line.decode("latin-1")

    text = "\n".join(decode_line(raw_line) for raw_line in raw.split(b"\n"))
    return text.replace("\x00", "").lstrip("\ufeff")


def _read_delimited(raw: bytes) -> Grid:
    """Parse comma-separated text; quoted cells may hold commas and newlines."""
    encoding = _detect_encoding(raw)
    text     = _read_text_safely(raw, encoding)
    try:
        rows = list(csv.reader(io.StringIO(text, newline="")))
    except csv.Error as exc:
        raise ReadError(f"Could not parse .csv file: {exc}") from exc

    # Empty physical lines come back as [] (or [""] for a stray "\r").
    grid = [row for row in rows if row and row != [""]]
    logger.debug("CSV parse complete: %d rows (encoding %s)", len(grid), encoding)
    return grid


# ══════════════════════════════════════════════════════════════════════════════
# WORKBOOK DECODING
# ══════════════════════════════════════════════════════════════════════════════

def _cell_to_text(value: Any) -> str:
    if value is None or pd.isna(value):
        return ""
    if isinstance(value, datetime):
        if value.time() == time(0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).replace("\x00", "")


def _trim_trailing(cells: list[str]) -> list[str]:
    end = len(cells)
    while end and cells[end - 1] == "":
        end -= 1
    return cells[:end]


def _read_workbook(raw: bytes, suffix: str) -> Grid:
    """Read the first sheet only, every cell coerced to a string."""
    try:
        df = pd.read_excel(
            io.BytesIO(raw),
            sheet_name=0,
            header=None,
            dtype=object,
            engine=EXCEL_ENGINES[suffix],
        )
    except Exception as exc:
        raise ReadError(f"Could not read workbook: {exc}") from exc

    grid = [
        _trim_trailing([_cell_to_text(value) for value in row])
        for row in df.itertuples(index=False, name=None)
    ]
    logger.debug("Excel parse complete: %d rows", len(grid))
    return grid


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def read_grid(source: Source, filename: Optional[str] = None) -> Grid:
    """
    Decode an uploaded spreadsheet into a grid of string cells.

    Args:
        source:   Path, raw bytes, or a binary file-like object (anything with
                  ``getvalue()`` or ``read()``, e.g. a Streamlit upload).
        filename: Name used to pick the format. Defaults to the path name or
                  the upload object's ``name`` attribute.
    """
    name   = source_name(source, filename)
    suffix = detect_extension(name)
    raw    = _read_bytes(source)
    logger.debug("Reading %s (%d bytes) as %s", name or "[upload]", len(raw), suffix)

    if suffix in TEXT_FORMATS:
        return _read_delimited(raw)
    return _read_workbook(raw, suffix)
