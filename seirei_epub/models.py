"""Data models used throughout the extraction pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class SourceEntry:
    """One ``Title::URL`` record from the input list."""

    title: str
    url: str


@dataclass
class ExtractionResult:
    """Outcome of running the pattern locator against a page."""

    fragment: str
    found: bool
    strategy: Optional[str] = None


@dataclass
class ImageAsset:
    """Downloaded image registered under a run-scoped local name."""

    source_url: str
    local_name: str
    data: bytes
    media_type: str

    @property
    def file_name(self) -> str:
        return f"images/{self.local_name}"


@dataclass
class Chapter:
    """A chapter built from one or more consecutive same-title pages."""

    title: str
    fragments: List[str] = field(default_factory=list)

    def append(self, fragment: str) -> None:
        self.fragments.append(fragment)

    def has_content(self) -> bool:
        return bool(self.fragments)

    @property
    def body(self) -> str:
        return "\n".join(self.fragments)


@dataclass
class RunReport:
    """Counts describing a finished pipeline run."""

    total: int = 0
    processed: int = 0
    skipped: int = 0
    chapters: int = 0
