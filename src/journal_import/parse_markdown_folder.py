"""journal_import.parse_markdown_folder

Legacy backup parser: a folder of one Markdown file per day.

  - Only files named YYYY-MM-DD.md are considered; other .md files warn.
  - Front matter (a leading '---' block) is stripped.
  - The body is cut at the first "## Notes", "## TODOs" or "## TODO" heading;
    those sections belonged to other record kinds in the old app.
  - Files with nothing left after cutting are skipped with a warning.
"""

from __future__ import annotations

import re
from pathlib import Path

from journal_import.normalize import (
    is_valid_date_string,
    normalize_content,
    normalize_line_endings,
)
from journal_import.records import MARKDOWN_FOLDER, EntryRecord, ParsedImport

_FILENAME_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})\.md$")
_FRONT_MATTER_RE = re.compile(r"^---\s*\n[\s\S]*?\n---\s*\n")

SECTION_CUTOFFS = ("## Notes", "## TODOs", "## TODO")


def extract_journal_body(text: str) -> str:
    """Return the journal part of a daily Markdown file, normalized."""
    body = normalize_line_endings(text)
    m = _FRONT_MATTER_RE.match(body)
    if m:
        body = body[m.end():]

    cut_points = [i for i in (body.find(marker) for marker in SECTION_CUTOFFS) if i != -1]
    if cut_points:
        body = body[:min(cut_points)]

    return normalize_content(body)


def parse_markdown_folder(folder_path: str | Path) -> ParsedImport:
    result = ParsedImport(format=MARKDOWN_FOLDER)
    folder = Path(folder_path)

    try:
        children = sorted(folder.iterdir(), key=lambda p: p.name)
    except OSError as exc:
        result.errors.append(f"Unable to read folder: {exc}")
        return result

    md_files = [p for p in children if p.is_file() and p.name.endswith(".md")]
    if not md_files:
        result.errors.append("No Markdown files found. Expected files named YYYY-MM-DD.md")
        return result

    for md_path in md_files:
        m = _FILENAME_RE.match(md_path.name)
        if not m:
            result.warnings.append(f"{md_path.name}: filename is not a YYYY-MM-DD date; ignored")
            continue

        date = m.group(1)
        if not is_valid_date_string(date):
            result.errors.append(f'{md_path.name}: invalid date "{date}"')
            continue

        try:
            text = md_path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as exc:
            result.errors.append(f"{md_path.name}: failed to read file ({exc})")
            continue

        content = extract_journal_body(text)
        if not content:
            result.warnings.append(f"{md_path.name}: no journal content; skipped")
            continue

        result.records.entries.append(EntryRecord(date=date, content=content))

    return result
