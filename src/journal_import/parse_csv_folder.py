"""journal_import.parse_csv_folder

CSV folder parser.

Recognizes exactly three files (case-insensitive):
  - entries.csv       (date, content)
  - todos.csv         (date, content, completed, scheduled_time)
  - sticky_notes.csv  (date, content)

Headers are trimmed and lowercased before matching.  Missing required
headers abort that file only; extra headers warn.  Row-level problems skip
the row and are reported with spreadsheet-style row numbers (the header is
row 1, so the first data row is row 2).
"""

from __future__ import annotations

import csv
import sys
from pathlib import Path
from typing import Any, Callable

from journal_import.normalize import (
    is_valid_date_string,
    normalize_content,
    normalize_date,
    normalize_scheduled_time,
    parse_completed_value,
)
from journal_import.records import (
    CSV_FOLDER,
    EntryRecord,
    ParsedImport,
    StickyNoteRecord,
    TodoRecord,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ENTRIES_FILE = "entries.csv"
TODOS_FILE = "todos.csv"
STICKY_NOTES_FILE = "sticky_notes.csv"

SUPPORTED_FILES = (ENTRIES_FILE, TODOS_FILE, STICKY_NOTES_FILE)

REQUIRED_HEADERS: dict[str, list[str]] = {
    ENTRIES_FILE:      ["date", "content"],
    TODOS_FILE:        ["date", "content", "completed", "scheduled_time"],
    STICKY_NOTES_FILE: ["date", "content"],
}

ROW_NUMBER_OFFSET = 2

# Journal entries can be arbitrarily long; lift the 128 KiB per-field default.
try:
    csv.field_size_limit(sys.maxsize)
except OverflowError:
    csv.field_size_limit(2**31 - 1)


# ---------------------------------------------------------------------------
# CSV reading
# ---------------------------------------------------------------------------

def _read_csv(
    csv_path: Path,
    filename: str,
    errors: list[str],
) -> tuple[list[str], list[tuple[int, dict[str, str]]]]:
    """Return (normalized headers, [(row_number, row), ...]).

    Blank lines are skipped.  A field-count mismatch is reported as a parse
    error but the row is still returned; a malformed stream stops the file
    with a parse error, keeping the rows read so far.
    """
    headers: list[str] = []
    rows: list[tuple[int, dict[str, str]]] = []
    header_seen = False
    with csv_path.open(encoding="utf-8-sig", newline="") as fh:
        reader = csv.reader(fh)
        try:
            for fields in reader:
                if not fields:
                    continue
                if not header_seen:
                    headers = [h.strip().lower() for h in fields]
                    header_seen = True
                    continue
                row_number = len(rows) + ROW_NUMBER_OFFSET
                if len(fields) < len(headers):
                    errors.append(
                        f"{filename}: CSV parse error at row {row_number} "
                        f"(Too few fields: expected {len(headers)} fields but parsed {len(fields)})"
                    )
                elif len(fields) > len(headers):
                    errors.append(
                        f"{filename}: CSV parse error at row {row_number} "
                        f"(Too many fields: expected {len(headers)} fields but parsed {len(fields)})"
                    )
                rows.append((row_number, dict(zip(headers, fields))))
        except csv.Error as exc:
            errors.append(
                f"{filename}: CSV parse error at row {len(rows) + ROW_NUMBER_OFFSET} ({exc})"
            )
    return headers, rows


def _validate_required_headers(
    filename: str,
    headers: list[str],
    required: list[str],
    errors: list[str],
) -> bool:
    header_set = set(headers)
    missing = [h for h in required if h not in header_set]
    if missing:
        errors.append(f"{filename}: missing required header(s): {', '.join(missing)}")
        return False
    return True


def _warn_extra_headers(
    filename: str,
    headers: list[str],
    allowed: list[str],
    warnings: list[str],
) -> None:
    for header in headers:
        if header not in allowed:
            warnings.append(f'{filename}: extra column "{header}" ignored')


def _cell(row: dict[str, str], key: str) -> str:
    value = row.get(key)
    return "" if value is None else str(value)


# ---------------------------------------------------------------------------
# Row parsers
# ---------------------------------------------------------------------------

def _parse_date_and_content(
    row: dict[str, str],
    row_number: int,
    filename: str,
    errors: list[str],
) -> tuple[str, str] | None:
    date = normalize_date(_cell(row, "date"))
    if not is_valid_date_string(date):
        errors.append(f'{filename}: row {row_number} has invalid date "{_cell(row, "date")}"')
        return None
    content = normalize_content(_cell(row, "content"))
    if not content:
        errors.append(f"{filename}: row {row_number} has empty content")
        return None
    return date, content


def _parse_entry_row(row, row_number, filename, errors) -> EntryRecord | None:
    validated = _parse_date_and_content(row, row_number, filename, errors)
    if validated is None:
        return None
    return EntryRecord(date=validated[0], content=validated[1])


def _parse_todo_row(row, row_number, filename, errors) -> TodoRecord | None:
    validated = _parse_date_and_content(row, row_number, filename, errors)
    if validated is None:
        return None
    completed = parse_completed_value(_cell(row, "completed"))
    if completed is None:
        errors.append(
            f'{filename}: row {row_number} has invalid completed value "{_cell(row, "completed")}"'
        )
        return None
    return TodoRecord(
        date=validated[0],
        content=validated[1],
        completed=completed,
        scheduled_time=normalize_scheduled_time(_cell(row, "scheduled_time")),
    )


def _parse_sticky_note_row(row, row_number, filename, errors) -> StickyNoteRecord | None:
    validated = _parse_date_and_content(row, row_number, filename, errors)
    if validated is None:
        return None
    return StickyNoteRecord(date=validated[0], content=validated[1])


_ROW_PARSERS: dict[str, Callable[..., Any]] = {
    ENTRIES_FILE:      _parse_entry_row,
    TODOS_FILE:        _parse_todo_row,
    STICKY_NOTES_FILE: _parse_sticky_note_row,
}


# ---------------------------------------------------------------------------
# Per-file processing
# ---------------------------------------------------------------------------

def _parse_file(
    csv_path: Path,
    supported_name: str,
    result: ParsedImport,
) -> list[Any]:
    filename = csv_path.name
    try:
        headers, rows = _read_csv(csv_path, filename, result.errors)
    except (OSError, UnicodeDecodeError) as exc:
        result.errors.append(f"{filename}: failed to read file ({exc})")
        return []

    required = REQUIRED_HEADERS[supported_name]
    if not _validate_required_headers(filename, headers, required, result.errors):
        return []
    _warn_extra_headers(filename, headers, required, result.warnings)

    parse_row = _ROW_PARSERS[supported_name]
    records = []
    for row_number, row in rows:
        record = parse_row(row, row_number, filename, result.errors)
        if record is not None:
            records.append(record)
    return records


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def parse_csv_folder(folder_path: str | Path) -> ParsedImport:
    """Parse entries.csv / todos.csv / sticky_notes.csv from a directory."""
    result = ParsedImport(format=CSV_FOLDER)
    folder = Path(folder_path)

    try:
        children = sorted(folder.iterdir(), key=lambda p: p.name)
    except OSError as exc:
        result.errors.append(f"Unable to read folder: {exc}")
        return result

    csv_files = [p for p in children if p.is_file() and p.name.lower().endswith(".csv")]

    by_lower_name: dict[str, Path] = {}
    for csv_path in csv_files:
        lower = csv_path.name.lower()
        if lower not in by_lower_name:
            by_lower_name[lower] = csv_path
        else:
            result.warnings.append(f"{csv_path.name}: duplicate CSV filename ignored")

    for csv_path in csv_files:
        if csv_path.name.lower() not in SUPPORTED_FILES:
            result.warnings.append(f"{csv_path.name}: unsupported CSV file ignored")

    if not any(name in by_lower_name for name in SUPPORTED_FILES):
        result.errors.append(
            "No supported CSV files found. Expected at least one of: "
            + ", ".join(SUPPORTED_FILES)
        )
        return result

    if ENTRIES_FILE in by_lower_name:
        result.records.entries.extend(_parse_file(by_lower_name[ENTRIES_FILE], ENTRIES_FILE, result))
    if TODOS_FILE in by_lower_name:
        result.records.todos.extend(_parse_file(by_lower_name[TODOS_FILE], TODOS_FILE, result))
    if STICKY_NOTES_FILE in by_lower_name:
        result.records.sticky_notes.extend(
            _parse_file(by_lower_name[STICKY_NOTES_FILE], STICKY_NOTES_FILE, result)
        )

    return result
