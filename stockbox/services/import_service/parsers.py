"""File parsing functions for CSV and XLSX uploads.

Both parsers return (headers, rows) where rows are string matrices, ready to
be pasted positionally into a SpreadsheetGrid.
"""

import csv
import io
from datetime import date, datetime
from pathlib import PurePath
from typing import Any

from openpyxl import load_workbook

from .constants import CSV_DELIMITERS, MAX_ROWS


def detect_delimiter(line: str) -> str:
    """Pick the delimiter (comma, semicolon or tab) that occurs most in a line.

    Comma wins ties, matching spreadsheet exports from most locales.
    """
    counts = {delimiter: line.count(delimiter) for delimiter in CSV_DELIMITERS}
    if counts[";"] > counts[","] and counts[";"] > counts["\t"]:
        return ";"
    if counts["\t"] > counts[","] and counts["\t"] > counts[";"]:
        return "\t"
    return ","


def _decode(file_content: bytes) -> str:
    for encoding in ("utf-8-sig", "latin-1"):
        try:
            return file_content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ValueError("CSV file could not be decoded")


def parse_csv(file_content: bytes) -> tuple[list[str], list[list[str]]]:
    """Parse CSV file content into headers and a row matrix.

    Tries UTF-8 first, falls back to Latin-1. The delimiter is detected from
    the header line.

    Args:
        file_content: Raw CSV file bytes.

    Returns:
        Tuple of (headers, rows); blank rows are dropped.

    Raises:
        ValueError: If the CSV is empty or has no headers.
    """
    text = _decode(file_content)
    first_line = text.split("\n", 1)[0]
    if not first_line.strip():
        raise ValueError("CSV file has no headers")

    reader = csv.reader(io.StringIO(text), delimiter=detect_delimiter(first_line))
    try:
        raw_headers = next(reader)
    except StopIteration:
        raise ValueError("CSV file has no headers")

    headers = [h.strip() for h in raw_headers]
    if not any(headers):
        raise ValueError("CSV file has no valid headers")

    rows: list[list[str]] = []
    for row in reader:
        if len(rows) >= MAX_ROWS:
            break
        cleaned = [cell.strip() for cell in row]
        if any(cleaned):
            rows.append(cleaned)

    return headers, rows


def _cell_to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat() if value.time() == datetime.min.time() else value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_xlsx(file_content: bytes) -> tuple[list[str], list[list[str]]]:
    """Parse XLSX file content into headers and a row matrix (first sheet only).

    Uses openpyxl read_only mode and iterates rows lazily.

    Args:
        file_content: Raw XLSX file bytes.

    Returns:
        Tuple of (headers, rows); blank rows are dropped.

    Raises:
        ValueError: If the XLSX is empty or has no headers.
    """
    wb = load_workbook(filename=io.BytesIO(file_content), read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0] if wb.worksheets else None
        if ws is None:
            raise ValueError("XLSX file has no worksheets")

        row_iter = ws.iter_rows(values_only=True)
        try:
            raw_headers = next(row_iter)
        except StopIteration:
            raise ValueError("XLSX file is empty")

        headers = [_cell_to_text(h) for h in raw_headers]
        while headers and not headers[-1]:
            headers.pop()
        if not headers:
            raise ValueError("XLSX file has no valid headers")

        rows: list[list[str]] = []
        for row_values in row_iter:
            if len(rows) >= MAX_ROWS:
                break
            cells = [_cell_to_text(row_values[j]) if j < len(row_values) else "" for j in range(len(headers))]
            if any(cells):
                rows.append(cells)
    finally:
        wb.close()

    return headers, rows


def parse_import_file(filename: str, file_content: bytes) -> tuple[list[str], list[list[str]]]:
    """Parse an uploaded file, choosing the parser from its extension."""
    suffix = PurePath(filename).suffix.lower()
    if suffix in (".xlsx", ".xlsm"):
        return parse_xlsx(file_content)
    if suffix in (".csv", ".txt", ".tsv", ""):
        return parse_csv(file_content)
    raise ValueError(f"Unsupported file type: {suffix}")
