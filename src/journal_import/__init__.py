"""journal_import

Bulk import and reconciliation of journal entries, todos and sticky notes.

Usage:
    from journal_import import (
        PostgresJournalStore, build_import_preview, execute_import_plan,
        select_import_source,
    )

    store = PostgresJournalStore.connect(db_dsn)
    source = select_import_source("csv_folder", "exports/journal-2024")
    preview = build_import_preview(store, source)
    if preview.is_executable:
        result = execute_import_plan(store, preview)
"""

from journal_import.execute import ImportExecutor, execute_import_plan
from journal_import.preview import ImportPreviewBuilder, build_import_preview
from journal_import.records import (
    CSV_FOLDER,
    JSON_BUNDLE,
    MARKDOWN_FOLDER,
    ExecutionResult,
    ImportPreview,
    ImportSource,
)
from journal_import.shared import ConfigError, ImportSourceError, StoreBusyError
from journal_import.sources import parse_import_source, select_import_source
from journal_import.store import JournalStore, PostgresJournalStore, RetryPolicy, WriteOp

__all__ = [
    "CSV_FOLDER",
    "JSON_BUNDLE",
    "MARKDOWN_FOLDER",
    "ConfigError",
    "ExecutionResult",
    "ImportExecutor",
    "ImportPreview",
    "ImportPreviewBuilder",
    "ImportSource",
    "ImportSourceError",
    "JournalStore",
    "PostgresJournalStore",
    "RetryPolicy",
    "StoreBusyError",
    "WriteOp",
    "build_import_preview",
    "execute_import_plan",
    "parse_import_source",
    "select_import_source",
]
