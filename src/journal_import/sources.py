"""journal_import.sources

Import source selection and format dispatch.
"""

from __future__ import annotations

from pathlib import Path

from journal_import.parse_csv_folder import parse_csv_folder
from journal_import.parse_json_bundle import parse_json_bundle
from journal_import.parse_markdown_folder import parse_markdown_folder
from journal_import.records import (
    CSV_FOLDER,
    IMPORT_FORMATS,
    JSON_BUNDLE,
    MARKDOWN_FOLDER,
    ImportSource,
    ParsedImport,
)
from journal_import.shared import ImportSourceError

FOLDER_FORMATS = frozenset({CSV_FOLDER, MARKDOWN_FOLDER})


def select_import_source(format: str, path: str | Path) -> ImportSource:
    """Validate a user's (format, path) choice and return an ImportSource.

    JSON bundles must be a file; folder formats must be a directory.

    Raises:
        ImportSourceError: unknown format, missing path or wrong path kind.
    """
    if format not in IMPORT_FORMATS:
        raise ImportSourceError(
            f"Unknown import format {format!r}. Must be one of {list(IMPORT_FORMATS)}."
        )
    p = Path(path)
    if not p.exists():
        raise ImportSourceError(f"Import source not found: {p}")
    if format in FOLDER_FORMATS and not p.is_dir():
        raise ImportSourceError(f"{format} expects a directory: {p}")
    if format == JSON_BUNDLE and not p.is_file():
        raise ImportSourceError(f"{format} expects a file: {p}")
    return ImportSource(format=format, path=str(p))


def parse_import_source(source: ImportSource) -> ParsedImport:
    if source.format == JSON_BUNDLE:
        return parse_json_bundle(source.path, source.content)
    if source.format == CSV_FOLDER:
        return parse_csv_folder(source.path)
    if source.format == MARKDOWN_FOLDER:
        return parse_markdown_folder(source.path)
    return ParsedImport(
        format=source.format,
        errors=[f"Unsupported import format: {source.format}"],
    )
