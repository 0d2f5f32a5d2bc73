"""journal_import.execute

Execution engine: replays the preview's reconciliation against freshly
reloaded state and commits the resulting writes.

Phases:
  1. processing  classify every planned record in source order, staging
                 WriteOps and counting outcomes.  A checkpoint hook is
                 called every `yield_every` records so a host loop is never
                 blocked for the whole batch.
  2. writing     flush staged ops in chunks of `batch_size`, one
                 store.execute_batch call (one transaction) per chunk.

Atomicity holds per chunk, not across chunks: when chunk k fails, chunks
before k stay committed.  The error message says how many had committed.
Pass single_transaction=True to send every op as one batch instead.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from journal_import.reconcile import APPEND, CREATE, load_reconciliation_state
from journal_import.records import ExecutionResult, ImportPreview
from journal_import.store import (
    INSERT_ENTRY,
    INSERT_STICKY_NOTE,
    INSERT_TODO,
    UPDATE_ENTRY_CONTENT,
    JournalStore,
    WriteOp,
)

log = logging.getLogger(__name__)

PHASE_PROCESSING = "processing"
PHASE_WRITING = "writing"

DEFAULT_BATCH_SIZE = 50
DEFAULT_YIELD_EVERY = 250

INVALID_PREVIEW_ERROR = "Cannot execute import while preview has validation errors"

ProgressCallback = Callable[[int, int, str], None]


def _yield_to_host() -> None:
    time.sleep(0)


def _chunk(ops: list[WriteOp], size: int) -> list[list[WriteOp]]:
    return [ops[i:i + size] for i in range(0, len(ops), size)]


class ImportExecutor:
    """Executes ImportPreview plans against one store."""

    def __init__(
        self,
        store: JournalStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
        yield_every: int = DEFAULT_YIELD_EVERY,
        checkpoint: Callable[[], None] | None = None,
        single_transaction: bool = False,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        if yield_every < 1:
            raise ValueError(f"yield_every must be >= 1, got {yield_every}")
        self.store = store
        self.batch_size = batch_size
        self.yield_every = yield_every
        self.checkpoint = checkpoint or _yield_to_host
        self.single_transaction = single_transaction

    def execute(
        self,
        preview: ImportPreview,
        on_progress: ProgressCallback | None = None,
    ) -> ExecutionResult:
        if preview.errors:
            return ExecutionResult(errors=[INVALID_PREVIEW_ERROR])

        records = preview.plan.records
        processing_total = records.total
        current = 0
        result = ExecutionResult()
        staged: list[WriteOp] = []
        chunks_committed = 0
        chunk_count = 0

        def report(total: int, phase: str) -> None:
            if on_progress:
                on_progress(current, total, phase)

        def advance() -> None:
            nonlocal current
            current += 1
            report(processing_total, PHASE_PROCESSING)
            if current % self.yield_every == 0:
                self.checkpoint()

        try:
            report(processing_total, PHASE_PROCESSING)
            state = load_reconciliation_state(self.store, include_todo_positions=True)

            for entry in records.entries:
                decision = state.classify_entry(entry)
                if decision.outcome == CREATE:
                    staged.append(WriteOp(INSERT_ENTRY, {
                        "id": decision.entry_id,
                        "date": entry.date,
                        "content": decision.content,
                    }))
                    result.entries_created += 1
                elif decision.outcome == APPEND:
                    staged.append(WriteOp(UPDATE_ENTRY_CONTENT, {
                        "id": decision.entry_id,
                        "content": decision.content,
                    }))
                    result.entries_appended += 1
                else:
                    result.duplicates_skipped += 1
                advance()

            for todo in records.todos:
                decision = state.classify_todo(todo)
                if decision.outcome == CREATE:
                    staged.append(WriteOp(INSERT_TODO, {
                        "id": state.id_factory(),
                        "date": todo.date,
                        "content": todo.content,
                        "scheduled_time": todo.scheduled_time,
                        "completed": todo.completed,
                        "position": decision.position,
                    }))
                    result.todos_created += 1
                else:
                    result.duplicates_skipped += 1
                advance()

            for note in records.sticky_notes:
                if state.classify_sticky_note(note) == CREATE:
                    staged.append(WriteOp(INSERT_STICKY_NOTE, {
                        "id": state.id_factory(),
                        "date": note.date,
                        "content": note.content,
                    }))
                    result.sticky_notes_created += 1
                else:
                    result.duplicates_skipped += 1
                advance()

            size = max(len(staged), 1) if self.single_transaction else self.batch_size
            chunks = _chunk(staged, size)
            chunk_count = len(chunks)
            writing_total = processing_total + chunk_count
            report(writing_total, PHASE_WRITING)
            for chunk in chunks:
                self.store.execute_batch(chunk)
                chunks_committed += 1
                current += 1
                report(writing_total, PHASE_WRITING)
                log.debug("Committed write batch %d/%d", chunks_committed, chunk_count)

        except Exception as exc:
            log.error("Import execution failed: %s", exc, exc_info=True)
            message = f"Import failed: {exc}"
            if chunks_committed:
                message += (
                    f" ({chunks_committed} of {chunk_count} write batch(es) "
                    "already committed)"
                )
            return ExecutionResult(
                duplicates_skipped=result.duplicates_skipped,
                errors=[message],
            )

        log.info(
            "Import executed: %d created, %d appended, %d todos, %d sticky notes, "
            "%d duplicates skipped",
            result.entries_created, result.entries_appended, result.todos_created,
            result.sticky_notes_created, result.duplicates_skipped,
        )
        return result


def execute_import_plan(
    store: JournalStore,
    preview: ImportPreview,
    on_progress: ProgressCallback | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    yield_every: int = DEFAULT_YIELD_EVERY,
    checkpoint: Callable[[], None] | None = None,
    single_transaction: bool = False,
) -> ExecutionResult:
    executor = ImportExecutor(
        store,
        batch_size=batch_size,
        yield_every=yield_every,
        checkpoint=checkpoint,
        single_transaction=single_transaction,
    )
    return executor.execute(preview, on_progress)
