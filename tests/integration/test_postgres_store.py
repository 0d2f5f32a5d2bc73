"""Integration tests for journal_import.store.PostgresJournalStore."""

from __future__ import annotations

import psycopg
import pytest

from journal_import.shared import StoreBusyError
from journal_import.store import (
    INSERT_ENTRY,
    INSERT_STICKY_NOTE,
    INSERT_TODO,
    QUERY_ENTRIES,
    QUERY_STICKY_NOTES,
    QUERY_TODO_MAX_POSITIONS,
    QUERY_TODOS,
    UPDATE_ENTRY_CONTENT,
    PostgresJournalStore,
    RetryPolicy,
    WriteOp,
)


def _seed_entry(conn, id: str, date: str, content: str) -> None:
    conn.execute(
        "INSERT INTO entries (id, date, content) VALUES (%s, %s, %s)",
        (id, date, content),
    )
    conn.commit()


def _count(conn, table: str) -> int:
    n = conn.execute(f"SELECT count(*) FROM {table}").fetchone()[0]
    conn.rollback()
    return n


class TestReads:
    def test_empty_database(self, pg_store):
        assert pg_store.select(QUERY_ENTRIES) == []
        assert pg_store.select(QUERY_TODOS) == []
        assert pg_store.select(QUERY_STICKY_NOTES) == []
        assert pg_store.select(QUERY_TODO_MAX_POSITIONS) == []

    def test_entries_ordered_by_date_then_creation(self, db_conn, pg_store):
        conn, _ = db_conn
        conn.execute(
            "INSERT INTO entries (id, date, content, created_at) VALUES "
            "('b', '2024-01-05', 'later', '2024-01-05T12:00:00Z'), "
            "('a', '2024-01-05', 'earlier', '2024-01-05T08:00:00Z'), "
            "('c', '2024-01-04', 'day before', '2024-01-06T00:00:00Z')"
        )
        conn.commit()
        rows = pg_store.select(QUERY_ENTRIES)
        assert [r["id"] for r in rows] == ["c", "a", "b"]

    def test_todo_max_positions(self, db_conn, pg_store):
        conn, _ = db_conn
        conn.execute(
            "INSERT INTO todos (id, date, content, position) VALUES "
            "('t1', '2024-01-05', 'a', 0), ('t2', '2024-01-05', 'b', 4), "
            "('t3', '2024-01-06', 'c', 1)"
        )
        conn.commit()
        rows = {r["date"]: r["max_position"] for r in pg_store.select(QUERY_TODO_MAX_POSITIONS)}
        assert rows == {"2024-01-05": 4, "2024-01-06": 1}


class TestExecuteBatch:
    def test_all_write_kinds(self, db_conn, pg_store):
        conn, _ = db_conn
        _seed_entry(conn, "e1", "2024-01-05", "Existing")
        pg_store.execute_batch([
            WriteOp(INSERT_ENTRY, {"id": "e2", "date": "2024-01-06", "content": "New"}),
            WriteOp(UPDATE_ENTRY_CONTENT, {"id": "e1", "content": "Existing + more"}),
            WriteOp(INSERT_TODO, {
                "id": "t1", "date": "2024-01-05", "content": "Buy milk",
                "scheduled_time": "09:00", "completed": True, "position": 0,
            }),
            WriteOp(INSERT_STICKY_NOTE, {"id": "s1", "date": "2024-01-05", "content": "Call mom"}),
        ])

        entries = {r["id"]: r["content"] for r in pg_store.select(QUERY_ENTRIES)}
        assert entries == {"e1": "Existing + more", "e2": "New"}
        todos = pg_store.select(QUERY_TODOS)
        assert todos == [{
            "date": "2024-01-05", "content": "Buy milk",
            "completed": True, "scheduled_time": "09:00",
        }]
        assert _count(conn, "sticky_notes") == 1

    def test_empty_batch_is_noop(self, pg_store):
        pg_store.execute_batch([])

    def test_failure_rolls_back_whole_batch(self, db_conn, pg_store):
        conn, _ = db_conn
        with pytest.raises(LookupError, match="Failed to update existing entry"):
            pg_store.execute_batch([
                WriteOp(INSERT_TODO, {
                    "id": "t1", "date": "2024-01-05", "content": "a",
                    "scheduled_time": None, "completed": False, "position": 0,
                }),
                WriteOp(UPDATE_ENTRY_CONTENT, {"id": "missing", "content": "x"}),
            ])
        assert _count(conn, "todos") == 0

    def test_constraint_violation_rolls_back(self, db_conn, pg_store):
        conn, _ = db_conn
        with pytest.raises(psycopg.errors.UniqueViolation):
            pg_store.execute_batch([
                WriteOp(INSERT_STICKY_NOTE, {"id": "s1", "date": "2024-01-05", "content": "a"}),
                WriteOp(INSERT_STICKY_NOTE, {"id": "s1", "date": "2024-01-05", "content": "b"}),
            ])
        assert _count(conn, "sticky_notes") == 0

    def test_store_usable_after_failure(self, pg_store):
        with pytest.raises(LookupError):
            pg_store.execute_batch([WriteOp(UPDATE_ENTRY_CONTENT, {"id": "missing", "content": "x"})])
        pg_store.execute_batch([
            WriteOp(INSERT_ENTRY, {"id": "e1", "date": "2024-01-05", "content": "ok"}),
        ])
        assert len(pg_store.select(QUERY_ENTRIES)) == 1


class TestBusyRetry:
    def test_retries_until_lock_released(self, db_conn):
        conn, dsn = db_conn
        _seed_entry(conn, "e1", "2024-01-05", "Existing")

        blocker = psycopg.connect(dsn, autocommit=False)
        blocker.execute("SELECT id FROM entries WHERE id = 'e1' FOR UPDATE")
        delays: list[float] = []

        def sleep(delay: float) -> None:
            delays.append(delay)
            if len(delays) == 2:
                blocker.rollback()

        store = PostgresJournalStore.connect(
            dsn, retry=RetryPolicy(max_retries=5, sleep=sleep), lock_timeout_ms=50,
        )
        try:
            store.execute_batch([
                WriteOp(INSERT_TODO, {
                    "id": "t1", "date": "2024-01-05", "content": "a",
                    "scheduled_time": None, "completed": False, "position": 0,
                }),
                WriteOp(UPDATE_ENTRY_CONTENT, {"id": "e1", "content": "Updated"}),
            ])
            rows = store.select(QUERY_ENTRIES)
        finally:
            store.close()
            blocker.close()

        assert len(delays) == 2
        assert rows[0]["content"] == "Updated"
        assert _count(conn, "todos") == 1

    def test_exhausted_retries_raise_and_roll_back(self, db_conn):
        conn, dsn = db_conn
        _seed_entry(conn, "e1", "2024-01-05", "Existing")

        blocker = psycopg.connect(dsn, autocommit=False)
        blocker.execute("SELECT id FROM entries WHERE id = 'e1' FOR UPDATE")
        delays: list[float] = []
        store = PostgresJournalStore.connect(
            dsn, retry=RetryPolicy(max_retries=2, sleep=delays.append), lock_timeout_ms=50,
        )
        try:
            with pytest.raises(StoreBusyError):
                store.execute_batch([
                    WriteOp(INSERT_STICKY_NOTE, {"id": "s1", "date": "2024-01-05", "content": "a"}),
                    WriteOp(UPDATE_ENTRY_CONTENT, {"id": "e1", "content": "Updated"}),
                ])
        finally:
            store.close()
            blocker.rollback()
            blocker.close()

        assert len(delays) == 2
        assert _count(conn, "sticky_notes") == 0
