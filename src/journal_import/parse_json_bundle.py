"""journal_import.parse_json_bundle

JSON bundle parser.

Expected shape:
  { "schemaVersion": 1,
    "entries":     [{"date": "YYYY-MM-DD", "content": "..."}],
    "todos":       [{"date", "content", "completed", "scheduledTime"}],
    "stickyNotes": [{"date", "content"}] }

All three arrays are optional.  Each element is validated independently;
invalid elements are skipped and contribute an error, unknown keys only
produce warnings.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from journal_import.normalize import (
    is_valid_date_string,
    normalize_content,
    normalize_date,
    normalize_scheduled_time,
    parse_completed_value,
)
from journal_import.records import (
    JSON_BUNDLE,
    CanonicalRecords,
    EntryRecord,
    ParsedImport,
    StickyNoteRecord,
    TodoRecord,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SCHEMA_VERSION = 1

TOP_LEVEL_KEYS = frozenset({"schemaVersion", "entries", "todos", "stickyNotes"})
ENTRY_KEYS = frozenset({"date", "content"})
TODO_KEYS = frozenset({"date", "content", "completed", "scheduledTime"})
STICKY_NOTE_KEYS = frozenset({"date", "content"})

_MISSING = object()


# ---------------------------------------------------------------------------
# Element validation
# ---------------------------------------------------------------------------

def _display(value: Any) -> str:
    return "" if value is None or value is _MISSING else str(value)


def _validate_date_and_content(
    source: str,
    date_value: Any,
    content_value: Any,
    errors: list[str],
) -> tuple[str, str] | None:
    date = normalize_date(_display(date_value))
    if not is_valid_date_string(date):
        errors.append(f'{source}: invalid date "{_display(date_value)}" (expected YYYY-MM-DD)')
        return None

    if not isinstance(content_value, str):
        errors.append(f"{source}: content must be a string")
        return None

    content = normalize_content(content_value)
    if not content:
        errors.append(f"{source}: content cannot be empty")
        return None

    return date, content


def _warn_unknown_keys(
    source: str,
    value: dict[str, Any],
    allowed: frozenset[str],
    warnings: list[str],
) -> None:
    for key in value:
        if key not in allowed:
            warnings.append(f'{source}: unknown field "{key}" ignored')


def _iter_elements(
    raw: Any,
    name: str,
    allowed: frozenset[str],
    errors: list[str],
    warnings: list[str],
):
    """Yield (source_label, element) for each object element of an array field."""
    if raw is _MISSING:
        return
    if not isinstance(raw, list):
        errors.append(f"{name} must be an array")
        return
    for index, element in enumerate(raw):
        source = f"{name}[{index}]"
        if not isinstance(element, dict):
            errors.append(f"{source}: must be an object")
            continue
        _warn_unknown_keys(source, element, allowed, warnings)
        yield source, element


def _parse_entries(raw: Any, errors: list[str], warnings: list[str]) -> list[EntryRecord]:
    entries: list[EntryRecord] = []
    for source, element in _iter_elements(raw, "entries", ENTRY_KEYS, errors, warnings):
        validated = _validate_date_and_content(
            source, element.get("date"), element.get("content", _MISSING), errors,
        )
        if validated is None:
            continue
        entries.append(EntryRecord(date=validated[0], content=validated[1]))
    return entries


def _parse_todos(raw: Any, errors: list[str], warnings: list[str]) -> list[TodoRecord]:
    todos: list[TodoRecord] = []
    for source, element in _iter_elements(raw, "todos", TODO_KEYS, errors, warnings):
        validated = _validate_date_and_content(
            source, element.get("date"), element.get("content", _MISSING), errors,
        )
        if validated is None:
            continue

        completed = False
        if "completed" in element:
            parsed = parse_completed_value(element["completed"])
            if parsed is None:
                errors.append(f"{source}: completed must be one of true/false/1/0/yes/no/x")
                continue
            completed = parsed

        scheduled_time = None
        if "scheduledTime" in element:
            raw_time = element["scheduledTime"]
            if raw_time is not None and not isinstance(raw_time, str):
                errors.append(f"{source}: scheduledTime must be a string or null")
                continue
            scheduled_time = normalize_scheduled_time(raw_time)

        todos.append(TodoRecord(
            date=validated[0],
            content=validated[1],
            completed=completed,
            scheduled_time=scheduled_time,
        ))
    return todos


def _parse_sticky_notes(
    raw: Any,
    errors: list[str],
    warnings: list[str],
) -> list[StickyNoteRecord]:
    notes: list[StickyNoteRecord] = []
    for source, element in _iter_elements(raw, "stickyNotes", STICKY_NOTE_KEYS, errors, warnings):
        validated = _validate_date_and_content(
            source, element.get("date"), element.get("content", _MISSING), errors,
        )
        if validated is None:
            continue
        notes.append(StickyNoteRecord(date=validated[0], content=validated[1]))
    return notes


def _is_supported_schema_version(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return value == SCHEMA_VERSION


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def parse_json_bundle(path: str | Path, content: str | None = None) -> ParsedImport:
    """Parse a JSON bundle from disk, or from content when already loaded."""
    result = ParsedImport(format=JSON_BUNDLE)

    try:
        text = content if content is not None else Path(path).read_text(encoding="utf-8-sig")
        data = json.loads(text)
    except (OSError, UnicodeDecodeError, ValueError, RecursionError) as exc:
        result.errors.append(f"Unable to read or parse JSON file: {exc}")
        return result

    if not isinstance(data, dict):
        result.errors.append("JSON bundle root must be an object")
        return result

    for key in data:
        if key not in TOP_LEVEL_KEYS:
            result.warnings.append(f'Unknown top-level field "{key}" ignored')

    if not _is_supported_schema_version(data.get("schemaVersion")):
        result.errors.append(f"schemaVersion must be {SCHEMA_VERSION}")

    errors, warnings = result.errors, result.warnings
    result.records = CanonicalRecords(
        entries=_parse_entries(data.get("entries", _MISSING), errors, warnings),
        todos=_parse_todos(data.get("todos", _MISSING), errors, warnings),
        sticky_notes=_parse_sticky_notes(data.get("stickyNotes", _MISSING), errors, warnings),
    )
    return result
