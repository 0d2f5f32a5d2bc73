"""journal_import.preview

Preview builder: a dry run of an import.

Parses the source, snapshots the current journal through the store's read
interface and classifies every record exactly as the execution engine does,
but only counts outcomes.  No writes are issued.
"""

from __future__ import annotations

from typing import Callable

from journal_import.reconcile import APPEND, CREATE, load_reconciliation_state
from journal_import.records import ImportPlan, ImportPreview, ImportSource, PreviewTotals
from journal_import.sources import parse_import_source
from journal_import.store import JournalStore

ProgressCallback = Callable[[int, int], None]


class ImportPreviewBuilder:
    """Builds ImportPreview objects against one store."""

    def __init__(self, store: JournalStore) -> None:
        self.store = store

    def build(
        self,
        source: ImportSource,
        on_progress: ProgressCallback | None = None,
    ) -> ImportPreview:
        parsed = parse_import_source(source)
        records = parsed.records
        totals = PreviewTotals()
        warnings = list(parsed.warnings)

        state = load_reconciliation_state(self.store)
        if state.shadowed_entry_dates:
            warnings.append(
                f"{len(state.shadowed_entry_dates)} date(s) already have more than one "
                "entry; only the first entry per date is considered: "
                + ", ".join(state.shadowed_entry_dates)
            )

        total = records.total
        current = 0
        if on_progress:
            on_progress(current, total)

        def advance() -> None:
            nonlocal current
            current += 1
            if on_progress:
                on_progress(current, total)

        for entry in records.entries:
            outcome = state.classify_entry(entry).outcome
            if outcome == CREATE:
                totals.entries_to_create += 1
            elif outcome == APPEND:
                totals.entries_to_append += 1
            else:
                totals.duplicates_skipped += 1
            advance()

        for todo in records.todos:
            if state.classify_todo(todo).outcome == CREATE:
                totals.todos_to_create += 1
            else:
                totals.duplicates_skipped += 1
            advance()

        for note in records.sticky_notes:
            if state.classify_sticky_note(note) == CREATE:
                totals.sticky_notes_to_create += 1
            else:
                totals.duplicates_skipped += 1
            advance()

        return ImportPreview(
            format=source.format,
            totals=totals,
            errors=list(parsed.errors),
            warnings=warnings,
            plan=ImportPlan(source=source, records=records),
        )


def build_import_preview(
    store: JournalStore,
    source: ImportSource,
    on_progress: ProgressCallback | None = None,
) -> ImportPreview:
    return ImportPreviewBuilder(store).build(source, on_progress)
