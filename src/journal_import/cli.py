"""journal_import.cli

CLI entrypoint for journal imports.

Formats (--format):
  json_bundle      single JSON export file (schemaVersion 1)
  csv_folder       folder of entries.csv / todos.csv / sticky_notes.csv
  markdown_folder  folder of YYYY-MM-DD.md pages

Every run builds a preview first.  With --dry-run nothing is written; the
preview totals are printed and the run report is written.  Otherwise the
preview's plan is executed and the execution result is printed.

Usage:
    journal-import \\
        --format csv_folder \\
        --source "exports/journal-2024" \\
        --db-dsn "$DB_DSN" \\
        --dry-run
"""

from __future__ import annotations

import sys
import uuid
from dataclasses import asdict
from datetime import datetime, timezone

import click
import psycopg

from journal_import.config import load_settings
from journal_import.execute import PHASE_WRITING, ImportExecutor
from journal_import.preview import build_import_preview
from journal_import.records import IMPORT_FORMATS, ExecutionResult, ImportPreview
from journal_import.shared import (
    ConfigError,
    ImportSourceError,
    StoreBusyError,
    write_run_report,
)
from journal_import.sources import select_import_source
from journal_import.store import PostgresJournalStore, RetryPolicy


def _echo_preview(run_id: str, preview: ImportPreview) -> None:
    click.echo(f"[{run_id}] Preview ({preview.format}):")
    for key, val in asdict(preview.totals).items():
        click.echo(f"  {key:<26} {val}")
    for warning in preview.warnings:
        click.echo(f"[{run_id}] WARNING: {warning}")
    for error in preview.errors:
        click.echo(f"[{run_id}] ERROR: {error}", err=True)


def _echo_result(run_id: str, result: ExecutionResult) -> None:
    click.echo(f"[{run_id}] Result:")
    for key, val in result.to_dict().items():
        if key != "errors":
            click.echo(f"  {key:<26} {val}")
    for error in result.errors:
        click.echo(f"[{run_id}] ERROR: {error}", err=True)


@click.command()
@click.option(
    "--format", "import_format",
    required=True,
    type=click.Choice(list(IMPORT_FORMATS)),
    help="Import source format",
)
@click.option("--source", "source_path", required=True, type=click.Path(), help="Source file or folder")
@click.option("--db-dsn", default=None, help="PostgreSQL DSN (else $JOURNAL_IMPORT_DB_DSN or config file)")
@click.option("--config", "config_path", default=None, type=click.Path(), help="YAML settings file")
@click.option("--dry-run", is_flag=True, default=False, help="Preview only; write nothing")
@click.option("--batch-size", default=None, type=int, help="Write ops per committed batch")
@click.option("--yield-every", default=None, type=int, help="Records between cooperative yields")
@click.option(
    "--single-transaction/--chunked",
    default=None,
    help="Commit all writes as one transaction instead of per batch",
)
@click.option("--max-busy-retries", default=None, type=int, help="Retries on lock contention")
@click.option("--busy-base-delay", default=None, type=float, help="Base backoff delay in seconds")
@click.option("--lock-timeout-ms", default=None, type=int, help="Per-statement lock wait bound")
@click.option("--report-dir", default=None, type=click.Path(), help="Run report directory")
@click.option("--run-id", default=None, help="Override UUID for log correlation")
def main(
    import_format: str,
    source_path: str,
    db_dsn: str | None,
    config_path: str | None,
    dry_run: bool,
    batch_size: int | None,
    yield_every: int | None,
    single_transaction: bool | None,
    max_busy_retries: int | None,
    busy_base_delay: float | None,
    lock_timeout_ms: int | None,
    report_dir: str | None,
    run_id: str | None,
) -> None:
    """Import journal entries, todos and sticky notes."""
    run_id = run_id or str(uuid.uuid4())
    started_at = datetime.now(timezone.utc).isoformat()

    try:
        settings = load_settings(config_path).override(
            db_dsn=db_dsn,
            batch_size=batch_size,
            yield_every=yield_every,
            single_transaction=single_transaction,
            max_busy_retries=max_busy_retries,
            busy_base_delay=busy_base_delay,
            lock_timeout_ms=lock_timeout_ms,
            report_dir=report_dir,
        )
    except (ConfigError, OSError) as exc:
        click.echo(f"[{run_id}] ERROR: invalid configuration: {exc}", err=True)
        sys.exit(1)

    if not settings.db_dsn:
        click.echo(
            f"[{run_id}] ERROR: no database configured; provide --db-dsn, "
            "$JOURNAL_IMPORT_DB_DSN or db_dsn in the config file.",
            err=True,
        )
        sys.exit(1)

    try:
        source = select_import_source(import_format, source_path)
    except ImportSourceError as exc:
        click.echo(f"[{run_id}] ERROR: {exc}", err=True)
        sys.exit(1)

    click.echo(f"[{run_id}] Starting {import_format} import from {source.path} (dry_run={dry_run})")

    try:
        store = PostgresJournalStore.connect(
            settings.db_dsn,
            retry=RetryPolicy(
                max_retries=settings.max_busy_retries,
                base_delay=settings.busy_base_delay,
            ),
            lock_timeout_ms=settings.lock_timeout_ms,
        )
    except psycopg.Error as exc:
        click.echo(f"[{run_id}] ERROR: could not connect to database: {exc}", err=True)
        sys.exit(1)

    try:
        try:
            preview = build_import_preview(store, source)
        except (psycopg.Error, StoreBusyError) as exc:
            click.echo(f"[{run_id}] ERROR: could not read existing journal: {exc}", err=True)
            sys.exit(1)
        _echo_preview(run_id, preview)

        result = None
        if not dry_run and preview.is_executable:
            executor = ImportExecutor(
                store,
                batch_size=settings.batch_size,
                yield_every=settings.yield_every,
                single_transaction=settings.single_transaction,
            )

            def on_progress(current: int, total: int, phase: str) -> None:
                if phase == PHASE_WRITING and current > 0:
                    click.echo(f"[{run_id}] {phase} {current}/{total}")

            result = executor.execute(preview, on_progress=on_progress)
            _echo_result(run_id, result)
    finally:
        store.close()

    report_path = write_run_report(
        run_id, started_at, dry_run, preview, result, report_dir=settings.report_dir,
    )
    click.echo(f"[{run_id}] Run report: {report_path}")

    if preview.errors:
        click.echo(f"[{run_id}] {len(preview.errors)} validation error(s); nothing imported", err=True)
        sys.exit(1)
    if result is not None and result.errors:
        sys.exit(1)
    if dry_run:
        click.echo(f"[{run_id}] [dry-run] No changes written.")


if __name__ == "__main__":
    main()
