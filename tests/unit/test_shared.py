"""Unit tests for journal_import.shared."""

from __future__ import annotations

import json
from pathlib import Path

from journal_import.records import (
    CSV_FOLDER,
    CanonicalRecords,
    ExecutionResult,
    ImportPlan,
    ImportPreview,
    ImportSource,
    PreviewTotals,
)
from journal_import.shared import write_run_report


def _preview() -> ImportPreview:
    source = ImportSource(format=CSV_FOLDER, path="exports/2024")
    return ImportPreview(
        format=CSV_FOLDER,
        totals=PreviewTotals(entries_to_create=2, duplicates_skipped=1),
        errors=[],
        warnings=["extra.csv: unsupported CSV file ignored"],
        plan=ImportPlan(source=source, records=CanonicalRecords()),
    )


class TestWriteRunReport:
    def test_writes_json_report(self, tmp_path: Path):
        result = ExecutionResult(entries_created=2, duplicates_skipped=1)
        path = write_run_report(
            "run-1", "2024-01-05T00:00:00+00:00", False, _preview(), result,
            report_dir=tmp_path / "reports",
        )
        assert path == tmp_path / "reports" / "run-1.json"
        report = json.loads(path.read_text())
        assert report["run_id"] == "run-1"
        assert report["format"] == CSV_FOLDER
        assert report["source_path"] == "exports/2024"
        assert report["dry_run"] is False
        assert report["preview"]["totals"]["entries_to_create"] == 2
        assert report["preview"]["warnings"] == ["extra.csv: unsupported CSV file ignored"]
        assert report["result"]["entries_created"] == 2
        assert report["result"]["errors"] == []
        assert "finished_at" in report

    def test_dry_run_has_no_result(self, tmp_path: Path):
        path = write_run_report("run-2", "t0", True, _preview(), None, report_dir=tmp_path)
        report = json.loads(path.read_text())
        assert report["dry_run"] is True
        assert report["result"] is None
