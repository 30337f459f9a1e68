"""Merge consecutive same-title pages into chapters."""

from __future__ import annotations

import logging
from typing import Optional

from .models import Chapter

logger = logging.getLogger("seirei_epub")


class ChapterAssembler:
    """Accumulate fragments until the declared title changes.

    ``feed`` returns the chapter that the new title closed, if any, and
    ``finish`` returns whatever is still open. Each chapter is handed out once,
    and only when it holds at least one fragment.
    """

    def __init__(self) -> None:
        self._current: Optional[Chapter] = None
        self._finished = False

    @property
    def current(self) -> Optional[Chapter]:
        return self._current

    def feed(self, title: str, fragment: str) -> Optional[Chapter]:
        if self._finished:
            raise RuntimeError("Cannot add content after the assembler was finished")

        if self._current is not None and self._current.title == title:
            logger.info("Continuing chapter %s", title)
            self._current.append(fragment)
            return None

        closed = self._close()
        self._current = Chapter(title=title)
        self._current.append(fragment)
        return closed

    def finish(self) -> Optional[Chapter]:
        closed = self._close()
        self._finished = True
        return closed

    def _close(self) -> Optional[Chapter]:
        chapter, self._current = self._current, None
        if chapter is None or not chapter.has_content():
            return None
        return chapter
