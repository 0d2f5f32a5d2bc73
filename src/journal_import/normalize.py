"""journal_import.normalize

Normalization functions for journal import reconciliation.

All functions are pure.  Keys built here are used only for equality
comparison and are never persisted.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any

from journal_import.records import StickyNoteRecord, TodoRecord

_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_MARKER_RE = re.compile(r"<!--\s*journai-import:([0-9a-fA-F]+)\s*-->")
_WHITESPACE_RE = re.compile(r"\s+")

TRUE_VALUES = frozenset({"true", "1", "yes", "x"})
FALSE_VALUES = frozenset({"false", "0", "no", ""})

KEY_SEPARATOR = "|"
MARKER_TAG = "journai-import"
APPEND_SEPARATOR = "\n\n---\n\n"


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------

def normalize_line_endings(value: str) -> str:
    """CRLF and lone CR become LF."""
    return value.replace("\r\n", "\n").replace("\r", "\n")


def normalize_date(value: str) -> str:
    return value.strip()


def is_valid_date_string(value: str) -> bool:
    """True iff value is zero-padded YYYY-MM-DD and a real calendar date."""
    m = _DATE_RE.match(value)
    if not m:
        return False
    try:
        date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        return False
    return True


def normalize_content(value: str) -> str:
    return normalize_line_endings(value).strip()


def normalize_scheduled_time(value: str | None) -> str | None:
    """Trim a scheduled time; empty becomes None."""
    if value is None:
        return None
    v = normalize_line_endings(str(value)).strip()
    return v if v else None


def parse_completed_value(value: Any) -> bool | None:
    """Parse a boolean-like completed flag.

    Accepts booleans, the numbers 1/0, and (case-insensitively)
    true/false/yes/no/x or the empty string.  Returns None when the value
    is indeterminate; callers treat that as a validation error.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if value == 1:
            return True
        if value == 0:
            return False
        return None
    if value is None:
        value = ""
    if not isinstance(value, str):
        return None
    v = value.strip().lower()
    if v in TRUE_VALUES:
        return True
    if v in FALSE_VALUES:
        return False
    return None


# ---------------------------------------------------------------------------
# De-duplication keys
# ---------------------------------------------------------------------------

def normalize_text_for_key(value: str) -> str:
    """Trim, collapse whitespace runs and lowercase."""
    v = normalize_line_endings(value).strip()
    return _WHITESPACE_RE.sub(" ", v).lower()


def build_todo_dedupe_key(todo: TodoRecord) -> str:
    return KEY_SEPARATOR.join([
        todo.date,
        normalize_text_for_key(todo.content),
        "1" if todo.completed else "0",
        normalize_text_for_key(todo.scheduled_time or ""),
    ])


def build_sticky_note_dedupe_key(note: StickyNoteRecord) -> str:
    return KEY_SEPARATOR.join([note.date, normalize_text_for_key(note.content)])


# ---------------------------------------------------------------------------
# Import markers
# ---------------------------------------------------------------------------

def generate_import_content_hash(content: str) -> str:
    """DJB2-XOR over UTF-16 code units, rendered as 8 hex digits.

    Not a security primitive.  Code units (not code points) are hashed so
    that markers already written by the desktop app keep matching.
    """
    h = 5381
    raw = content.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(raw), 2):
        unit = raw[i] | (raw[i + 1] << 8)
        h = ((h * 33) & 0xFFFFFFFF) ^ unit
    return f"{h:08x}"


def build_import_marker(content_hash: str) -> str:
    return f"<!-- {MARKER_TAG}:{content_hash} -->"


def has_import_marker(content: str, content_hash: str) -> bool:
    return build_import_marker(content_hash) in normalize_line_endings(content)


def extract_import_markers(content: str) -> set[str]:
    """Return every marker hash found in content, lowercased."""
    return {
        m.group(1).lower()
        for m in _MARKER_RE.finditer(normalize_line_endings(content))
    }


def append_imported_content(
    existing_content: str,
    imported_content: str,
    content_hash: str,
) -> str:
    existing = normalize_line_endings(existing_content).rstrip()
    imported = normalize_content(imported_content)
    return f"{existing}{APPEND_SEPARATOR}{build_import_marker(content_hash)}\n{imported}"
