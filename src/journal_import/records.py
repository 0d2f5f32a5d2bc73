"""journal_import.records

Canonical record types and the data contracts passed between the parsers,
the preview builder and the execution engine.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

JSON_BUNDLE = "json_bundle"
CSV_FOLDER = "csv_folder"
MARKDOWN_FOLDER = "markdown_folder"

IMPORT_FORMATS = (JSON_BUNDLE, CSV_FOLDER, MARKDOWN_FOLDER)


# ---------------------------------------------------------------------------
# Canonical records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EntryRecord:
    """One journal page; at most one per date in a source."""

    date: str
    content: str


@dataclass(frozen=True)
class TodoRecord:
    date: str
    content: str
    completed: bool = False
    scheduled_time: str | None = None


@dataclass(frozen=True)
class StickyNoteRecord:
    date: str
    content: str


@dataclass
class CanonicalRecords:
    entries: list[EntryRecord] = field(default_factory=list)
    todos: list[TodoRecord] = field(default_factory=list)
    sticky_notes: list[StickyNoteRecord] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.entries) + len(self.todos) + len(self.sticky_notes)


@dataclass
class ParsedImport:
    """Parser output.  Records may be partial whenever errors is non-empty."""

    format: str
    records: CanonicalRecords = field(default_factory=CanonicalRecords)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Source / plan / preview
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ImportSource:
    """Where an import reads from.

    content lets a caller hand over an already-loaded JSON bundle; it is
    ignored for folder formats.
    """

    format: str
    path: str
    content: str | None = None


@dataclass
class ImportPlan:
    source: ImportSource
    records: CanonicalRecords


@dataclass
class PreviewTotals:
    entries_to_create: int = 0
    entries_to_append: int = 0
    todos_to_create: int = 0
    sticky_notes_to_create: int = 0
    duplicates_skipped: int = 0


@dataclass
class ImportPreview:
    format: str
    totals: PreviewTotals
    errors: list[str]
    warnings: list[str]
    plan: ImportPlan

    @property
    def is_executable(self) -> bool:
        return not self.errors


@dataclass
class ExecutionResult:
    entries_created: int = 0
    entries_appended: int = 0
    todos_created: int = 0
    sticky_notes_created: int = 0
    duplicates_skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
