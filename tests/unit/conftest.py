"""Unit test fixtures.

FakeJournalStore is an in-memory JournalStore: select() answers the four
named read queries and execute_batch() applies a batch all-or-nothing.
Failures can be injected per batch index.
"""

from __future__ import annotations

import copy
import itertools
from typing import Any, Sequence

import pytest

from journal_import.store import (
    INSERT_ENTRY,
    INSERT_STICKY_NOTE,
    INSERT_TODO,
    QUERY_ENTRIES,
    QUERY_STICKY_NOTES,
    QUERY_TODO_MAX_POSITIONS,
    QUERY_TODOS,
    UPDATE_ENTRY_CONTENT,
    WriteOp,
)


class FakeJournalStore:
    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {
            "entries": [],
            "todos": [],
            "sticky_notes": [],
        }
        self.select_calls: list[str] = []
        self.batches: list[list[WriteOp]] = []
        self.fail_on_batch: dict[int, Exception] = {}
        self._clock = itertools.count()
        self._batch_attempts = 0

    # -- seeding ------------------------------------------------------------

    def add_entry(self, id: str, date: str, content: str) -> None:
        self.tables["entries"].append(
            {"id": id, "date": date, "content": content, "created_at": next(self._clock)}
        )

    def add_todo(
        self,
        id: str,
        date: str,
        content: str,
        completed: bool = False,
        scheduled_time: str | None = None,
        position: int = 0,
    ) -> None:
        self.tables["todos"].append({
            "id": id, "date": date, "content": content, "completed": completed,
            "scheduled_time": scheduled_time, "position": position,
        })

    def add_sticky_note(self, id: str, date: str, content: str) -> None:
        self.tables["sticky_notes"].append({"id": id, "date": date, "content": content})

    # -- JournalStore -------------------------------------------------------

    def select(self, query: str) -> list[dict[str, Any]]:
        self.select_calls.append(query)
        if query == QUERY_ENTRIES:
            rows = sorted(self.tables["entries"], key=lambda r: (r["date"], r["created_at"], r["id"]))
            return [{"id": r["id"], "date": r["date"], "content": r["content"]} for r in rows]
        if query == QUERY_TODOS:
            return [
                {k: r[k] for k in ("date", "content", "completed", "scheduled_time")}
                for r in self.tables["todos"]
            ]
        if query == QUERY_STICKY_NOTES:
            return [{"date": r["date"], "content": r["content"]} for r in self.tables["sticky_notes"]]
        if query == QUERY_TODO_MAX_POSITIONS:
            max_by_date: dict[str, int] = {}
            for r in self.tables["todos"]:
                max_by_date[r["date"]] = max(max_by_date.get(r["date"], -1), r["position"])
            return [{"date": d, "max_position": p} for d, p in max_by_date.items()]
        raise KeyError(query)

    def execute_batch(self, ops: Sequence[WriteOp]) -> None:
        attempt = self._batch_attempts
        self._batch_attempts += 1
        if attempt in self.fail_on_batch:
            raise self.fail_on_batch[attempt]

        staged = copy.deepcopy(self.tables)
        for op in ops:
            self._apply(staged, op)
        self.tables = staged
        self.batches.append(list(ops))

    def _apply(self, tables: dict[str, list[dict[str, Any]]], op: WriteOp) -> None:
        p = op.params
        if op.kind == INSERT_ENTRY:
            tables["entries"].append({**p, "created_at": next(self._clock)})
        elif op.kind == UPDATE_ENTRY_CONTENT:
            for row in tables["entries"]:
                if row["id"] == p["id"]:
                    row["content"] = p["content"]
                    return
            raise LookupError(f"Failed to update existing entry {p['id']!r}")
        elif op.kind == INSERT_TODO:
            tables["todos"].append(dict(p))
        elif op.kind == INSERT_STICKY_NOTE:
            tables["sticky_notes"].append(dict(p))

    # -- helpers ------------------------------------------------------------

    def entry_content(self, date: str) -> str:
        rows = [r for r in self.tables["entries"] if r["date"] == date]
        assert len(rows) == 1, f"expected one entry for {date}, found {len(rows)}"
        return rows[0]["content"]

    def write_count(self) -> int:
        return sum(len(b) for b in self.batches)


@pytest.fixture
def store() -> FakeJournalStore:
    return FakeJournalStore()
