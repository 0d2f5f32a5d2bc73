"""journal_import.shared

Shared utilities used by the parsers, the store and the CLI.
Includes the exception types and run-report writing.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path

from journal_import.records import ExecutionResult, ImportPreview


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ImportSourceError(ValueError):
    """Raised when an import source selection is unusable (wrong format or path kind)."""


class StoreBusyError(RuntimeError):
    """Raised when a store operation is still contended after all retries."""


class ConfigError(ValueError):
    """Raised when a configuration file fails validation."""


# ---------------------------------------------------------------------------
# Report writer
# ---------------------------------------------------------------------------

def write_run_report(
    run_id: str,
    started_at: str,
    dry_run: bool,
    preview: ImportPreview,
    result: ExecutionResult | None,
    report_dir: Path = Path("./artifacts/reports"),
) -> Path:
    report = {
        "run_id": run_id,
        "format": preview.format,
        "source_path": preview.plan.source.path,
        "started_at": started_at,
        "finished_at": datetime.now(timezone.utc).isoformat(),
        "dry_run": dry_run,
        "preview": {
            "totals": asdict(preview.totals),
            "errors": preview.errors,
            "warnings": preview.warnings,
        },
        "result": result.to_dict() if result is not None else None,
    }
    report_path = report_dir / f"{run_id}.json"
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(report, indent=2, default=str))
    return report_path
