"""Utility helpers for string normalization and debug output."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional

logger = logging.getLogger("seirei_epub")

SLUG_PATTERN = re.compile(r"[^a-z0-9]+")
UNSAFE_FILENAME_PATTERN = re.compile(r"[^a-zA-Z0-9_]")
WHITESPACE_RUN_PATTERN = re.compile(r"\s{2,}")
BLANK_LINE_PATTERN = re.compile(r"(?m)^\s*$[\r\n]*")


def slugify(value: str, fallback: str = "book") -> str:
    """Generate a filesystem-friendly slug using ASCII characters only."""
    normalized = value.encode("ascii", "ignore").decode("ascii")
    normalized = normalized.lower()
    normalized = SLUG_PATTERN.sub("-", normalized).strip("-")
    return normalized or fallback


def sanitize_filename(value: str, max_length: int = 50) -> str:
    """Replace anything outside ``[a-zA-Z0-9_]`` with underscores and truncate."""
    return UNSAFE_FILENAME_PATTERN.sub("_", value)[:max_length]


def collapse_whitespace(markup: str) -> str:
    """Squash whitespace runs into a single space and drop blank lines."""
    collapsed = WHITESPACE_RUN_PATTERN.sub(" ", markup)
    return BLANK_LINE_PATTERN.sub("", collapsed)


def save_debug_html(
    work_dir: Optional[Path],
    index: int,
    suffix: str,
    content: str,
    identifier: str,
) -> Optional[Path]:
    """Write an intermediate HTML snapshot for later inspection."""
    if work_dir is None:
        return None
    name = f"debug_{index}_{sanitize_filename(identifier, 30)}_{suffix}.html"
    path = Path(work_dir) / name
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        logger.error("Error saving debug HTML %s: %s", path, exc)
        return None
    logger.debug("Saved debug HTML to %s", path)
    return path
