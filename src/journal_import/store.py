"""journal_import.store

Store boundary for the import pipeline.

  - JournalStore: the read/write protocol the preview builder and the
    execution engine are constructed with.  Neither reaches for a global
    connection.
  - WriteOp: one logical, parameterized write.  SQL text is fixed per kind;
    values are always bound, never interpolated, so a statement can be
    retried safely.
  - RetryPolicy / run_with_busy_retry: bounded linear backoff on transient
    lock contention ("storage busy").
  - PostgresJournalStore: psycopg implementation whose execute_batch is the
    transactional batch executor.  One batch is one transaction; every op
    runs in its own SAVEPOINT so a busy op can be retried in place, and any
    unretried failure rolls the whole batch back.
"""

from __future__ import annotations

import functools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, Sequence, TypeVar

import psycopg
from psycopg.rows import dict_row

from journal_import.shared import StoreBusyError

log = logging.getLogger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Query names / write kinds
# ---------------------------------------------------------------------------

QUERY_ENTRIES = "entries"
QUERY_TODOS = "todos"
QUERY_STICKY_NOTES = "sticky_notes"
QUERY_TODO_MAX_POSITIONS = "todo_max_positions"

INSERT_ENTRY = "insert_entry"
UPDATE_ENTRY_CONTENT = "update_entry_content"
INSERT_TODO = "insert_todo"
INSERT_STICKY_NOTE = "insert_sticky_note"

WRITE_KINDS = frozenset({INSERT_ENTRY, UPDATE_ENTRY_CONTENT, INSERT_TODO, INSERT_STICKY_NOTE})

# lock_not_available, deadlock_detected, serialization_failure
BUSY_SQLSTATES = frozenset({"55P03", "40P01", "40001"})


@dataclass(frozen=True)
class WriteOp:
    kind: str
    params: dict[str, Any]

    def __post_init__(self) -> None:
        if self.kind not in WRITE_KINDS:
            raise ValueError(f"Unknown write kind {self.kind!r}")


class JournalStore(Protocol):
    def select(self, query: str) -> list[dict[str, Any]]:
        """Return the rows for a named read query.  No side effects."""
        ...

    def execute_batch(self, ops: Sequence[WriteOp]) -> None:
        """Apply ops atomically, retrying on contention; raise on failure."""
        ...


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------

@dataclass
class RetryPolicy:
    """Linear backoff: attempt n (0-based) waits base_delay * (n + 1) seconds."""

    max_retries: int = 10
    base_delay: float = 0.04
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * (attempt + 1)


def is_busy_error(exc: BaseException) -> bool:
    return getattr(exc, "sqlstate", None) in BUSY_SQLSTATES


def run_with_busy_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    label: str = "store operation",
) -> T:
    """Run operation, retrying only while it fails with a busy error.

    Raises:
        StoreBusyError: still busy after policy.max_retries retries.
        Any non-busy exception from operation, unchanged.
    """
    attempt = 0
    while True:
        try:
            return operation()
        except Exception as exc:
            if not is_busy_error(exc):
                raise
            if attempt >= policy.max_retries:
                raise StoreBusyError(
                    f"{label}: storage still busy after {policy.max_retries} retries ({exc})"
                ) from exc
            delay = policy.delay_for(attempt)
            attempt += 1
            log.warning(
                "%s: storage busy (%s); retry %d/%d in %.3fs",
                label, type(exc).__name__, attempt, policy.max_retries, delay,
            )
            policy.sleep(delay)


# ---------------------------------------------------------------------------
# PostgreSQL store
# ---------------------------------------------------------------------------

_READ_SQL: dict[str, str] = {
    QUERY_ENTRIES: "SELECT id, date, content FROM entries ORDER BY date, created_at, id",
    QUERY_TODOS: "SELECT date, content, completed, scheduled_time FROM todos",
    QUERY_STICKY_NOTES: "SELECT date, content FROM sticky_notes",
    QUERY_TODO_MAX_POSITIONS: (
        "SELECT date, MAX(position) AS max_position FROM todos GROUP BY date"
    ),
}

_WRITE_SQL: dict[str, str] = {
    INSERT_ENTRY: """
        INSERT INTO entries (id, date, content, created_at, updated_at)
        VALUES (%(id)s, %(date)s, %(content)s, now(), now())
    """,
    UPDATE_ENTRY_CONTENT: """
        UPDATE entries SET content = %(content)s, updated_at = now()
        WHERE id = %(id)s
    """,
    INSERT_TODO: """
        INSERT INTO todos
          (id, date, content, scheduled_time, completed, position, created_at, updated_at)
        VALUES
          (%(id)s, %(date)s, %(content)s, %(scheduled_time)s, %(completed)s,
           %(position)s, now(), now())
    """,
    INSERT_STICKY_NOTE: """
        INSERT INTO sticky_notes (id, date, content, created_at, updated_at)
        VALUES (%(id)s, %(date)s, %(content)s, now(), now())
    """,
}


class PostgresJournalStore:
    """JournalStore backed by a psycopg connection the caller owns."""

    def __init__(
        self,
        conn: psycopg.Connection,
        retry: RetryPolicy | None = None,
        lock_timeout_ms: int = 2000,
    ) -> None:
        self._conn = conn
        self.retry = retry or RetryPolicy()
        self.lock_timeout_ms = lock_timeout_ms

    @classmethod
    def connect(
        cls,
        db_dsn: str,
        retry: RetryPolicy | None = None,
        lock_timeout_ms: int = 2000,
    ) -> "PostgresJournalStore":
        conn = psycopg.connect(db_dsn, autocommit=False)
        return cls(conn, retry=retry, lock_timeout_ms=lock_timeout_ms)

    def close(self) -> None:
        self._conn.close()

    # -- reads --------------------------------------------------------------

    def select(self, query: str) -> list[dict[str, Any]]:
        sql = _READ_SQL[query]

        def _read() -> list[dict[str, Any]]:
            try:
                with self._conn.cursor(row_factory=dict_row) as cur:
                    rows = cur.execute(sql).fetchall()
            finally:
                # End the read transaction; nothing was written.
                self._conn.rollback()
            return rows

        return run_with_busy_retry(_read, self.retry, label=f"select {query}")

    # -- writes -------------------------------------------------------------

    def _begin(self) -> None:
        """First statement of the batch transaction; sets the lock wait bound."""
        try:
            self._conn.execute(
                "SELECT set_config('lock_timeout', %s, true)",
                (f"{self.lock_timeout_ms}ms",),
            )
        except Exception:
            self._conn.rollback()
            raise

    def _execute_in_savepoint(self, sp_name: str, op: WriteOp) -> None:
        conn = self._conn
        conn.execute(f"SAVEPOINT {sp_name}")
        try:
            cur = conn.execute(_WRITE_SQL[op.kind], op.params)
            if op.kind == UPDATE_ENTRY_CONTENT and cur.rowcount == 0:
                raise LookupError(f"Failed to update existing entry {op.params.get('id')!r}")
        except Exception:
            conn.execute(f"ROLLBACK TO SAVEPOINT {sp_name}")
            raise
        conn.execute(f"RELEASE SAVEPOINT {sp_name}")

    def execute_batch(self, ops: Sequence[WriteOp]) -> None:
        if not ops:
            return

        run_with_busy_retry(self._begin, self.retry, label="begin batch")
        try:
            for idx, op in enumerate(ops):
                run_with_busy_retry(
                    functools.partial(self._execute_in_savepoint, f"import_op_{idx}", op),
                    self.retry,
                    label=f"{op.kind} #{idx}",
                )
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise
        log.debug("Committed batch of %d write(s)", len(ops))
