"""Parsing of the ``Title::URL`` input list."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from .models import SourceEntry

logger = logging.getLogger("seirei_epub")

SEPARATOR = "::"


def parse_entry_line(line: str) -> Optional[SourceEntry]:
    """Split one record into title and URL; ``None`` for malformed lines."""
    parts = line.strip().split(SEPARATOR)
    if len(parts) != 2:
        return None
    title, url = (part.strip() for part in parts)
    return SourceEntry(title=title, url=url)


def format_entry(entry: SourceEntry) -> str:
    return f"{entry.title}{SEPARATOR}{entry.url}"


def parse_url_list(text: str) -> List[SourceEntry]:
    entries: List[SourceEntry] = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        entry = parse_entry_line(line)
        if entry is None:
            logger.warning(
                "Invalid format for line %d: %s (expected 'Chapter Name::URL')",
                line_number,
                line.strip(),
            )
            continue
        entries.append(entry)
    return entries


def read_url_list(path: Path) -> List[SourceEntry]:
    """Read the input list; ``OSError``/``UnicodeDecodeError`` propagate."""
    return parse_url_list(Path(path).read_text(encoding="utf-8"))
