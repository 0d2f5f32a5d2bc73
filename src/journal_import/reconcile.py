"""journal_import.reconcile

Reconciliation state shared by the preview builder and the execution engine.

A ReconciliationState is a snapshot of the existing journal taken once at
the start of a run.  Classifying a record mutates the snapshot as if the
record had been written, so later records in the same source see earlier
ones (a second identical todo in one file is a duplicate, a second entry
block for one date appends to the first).  The state is owned by exactly
one sequential scan; it is never shared.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable

from journal_import.normalize import (
    append_imported_content,
    build_sticky_note_dedupe_key,
    build_todo_dedupe_key,
    extract_import_markers,
    generate_import_content_hash,
    normalize_content,
)
from journal_import.records import EntryRecord, StickyNoteRecord, TodoRecord
from journal_import.store import (
    QUERY_ENTRIES,
    QUERY_STICKY_NOTES,
    QUERY_TODO_MAX_POSITIONS,
    QUERY_TODOS,
    JournalStore,
)

log = logging.getLogger(__name__)

CREATE = "create"
APPEND = "append"
DUPLICATE = "duplicate"


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

@dataclass
class ExistingEntry:
    id: str
    content: str
    markers: set[str] = field(default_factory=set)


@dataclass
class EntryDecision:
    outcome: str
    entry_id: str | None = None
    content: str | None = None


@dataclass
class TodoDecision:
    outcome: str
    position: int | None = None


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class ReconciliationState:
    entries_by_date: dict[str, ExistingEntry] = field(default_factory=dict)
    todo_keys: set[str] = field(default_factory=set)
    sticky_note_keys: set[str] = field(default_factory=set)
    todo_max_position_by_date: dict[str, int] = field(default_factory=dict)
    # Dates where the store holds more than one entry row; only the first is tracked.
    shadowed_entry_dates: list[str] = field(default_factory=list)
    id_factory: Callable[[], str] = field(default=_new_id, repr=False)

    # -- classification -----------------------------------------------------

    def classify_entry(self, record: EntryRecord) -> EntryDecision:
        current = self.entries_by_date.get(record.date)

        if current is None:
            entry_id = self.id_factory()
            self.entries_by_date[record.date] = ExistingEntry(id=entry_id, content=record.content)
            return EntryDecision(CREATE, entry_id=entry_id, content=record.content)

        # Exact full-content duplicate
        if normalize_content(current.content) == record.content:
            return EntryDecision(DUPLICATE, entry_id=current.id)

        # Previously imported block
        content_hash = generate_import_content_hash(record.content)
        if content_hash in current.markers:
            return EntryDecision(DUPLICATE, entry_id=current.id)

        current.content = append_imported_content(current.content, record.content, content_hash)
        current.markers.add(content_hash)
        return EntryDecision(APPEND, entry_id=current.id, content=current.content)

    def classify_todo(self, record: TodoRecord) -> TodoDecision:
        key = build_todo_dedupe_key(record)
        if key in self.todo_keys:
            return TodoDecision(DUPLICATE)
        position = self.todo_max_position_by_date.get(record.date, -1) + 1
        self.todo_max_position_by_date[record.date] = position
        self.todo_keys.add(key)
        return TodoDecision(CREATE, position=position)

    def classify_sticky_note(self, record: StickyNoteRecord) -> str:
        key = build_sticky_note_dedupe_key(record)
        if key in self.sticky_note_keys:
            return DUPLICATE
        self.sticky_note_keys.add(key)
        return CREATE


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_reconciliation_state(
    store: JournalStore,
    include_todo_positions: bool = False,
) -> ReconciliationState:
    """Read the current journal through store and build a fresh snapshot."""
    state = ReconciliationState()

    for row in store.select(QUERY_ENTRIES):
        date = row["date"]
        if date in state.entries_by_date:
            if date not in state.shadowed_entry_dates:
                state.shadowed_entry_dates.append(date)
            continue
        content = row["content"] or ""
        state.entries_by_date[date] = ExistingEntry(
            id=str(row["id"]),
            content=content,
            markers=extract_import_markers(content),
        )

    for row in store.select(QUERY_TODOS):
        state.todo_keys.add(build_todo_dedupe_key(TodoRecord(
            date=row["date"],
            content=row["content"] or "",
            completed=bool(row["completed"]),
            scheduled_time=row["scheduled_time"],
        )))

    for row in store.select(QUERY_STICKY_NOTES):
        state.sticky_note_keys.add(build_sticky_note_dedupe_key(StickyNoteRecord(
            date=row["date"],
            content=row["content"] or "",
        )))

    if include_todo_positions:
        for row in store.select(QUERY_TODO_MAX_POSITIONS):
            max_position = row["max_position"]
            state.todo_max_position_by_date[row["date"]] = (
                -1 if max_position is None else int(max_position)
            )

    if state.shadowed_entry_dates:
        log.warning(
            "%d date(s) have more than one existing entry; only the first is reconciled: %s",
            len(state.shadowed_entry_dates),
            ", ".join(state.shadowed_entry_dates[:10]),
        )

    return state
