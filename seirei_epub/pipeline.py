"""Sequential orchestration: fetch, locate, normalize and assemble each page."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence

from bs4 import BeautifulSoup, ParserRejectedMarkup
from ebooklib import epub

from .assembler import ChapterAssembler
from .config import RunConfig
from .fetcher import FetchError, Fetcher
from .images import ImageResolver
from .locator import ContentNotFoundError, PatternLocator, default_strategies
from .models import Chapter, RunReport, SourceEntry
from .normalizer import ContentNormalizer
from .packager import EpubPackager, PackagerError
from .utils import sanitize_filename, save_debug_html

logger = logging.getLogger("seirei_epub")


class EntryProcessor:
    """Turn one ``SourceEntry`` into a normalized fragment."""

    def __init__(
        self,
        config: RunConfig,
        fetcher: Fetcher,
        locator: PatternLocator,
        normalizer: ContentNormalizer,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.locator = locator
        self.normalizer = normalizer
        self.sleep = sleep

    def _debug_dump(self, index: int, suffix: str, content: str, entry: SourceEntry) -> None:
        if self.config.debug:
            save_debug_html(self.config.work_dir, index, suffix, content, entry.url)

    def process(self, index: int, entry: SourceEntry) -> str:
        """Raise ``FetchError``/``ContentNotFoundError``/``ParserRejectedMarkup`` on failure."""
        cache_key = f"page_{index:04d}_{sanitize_filename(entry.title)}.html"
        try:
            raw = self.fetcher.fetch(entry.url, cache_key=cache_key)
        finally:
            if self.config.request_delay:
                self.sleep(self.config.request_delay)

        document = BeautifulSoup(raw, "html.parser")
        self._debug_dump(index, "original", document.decode(), entry)

        result = self.locator.locate(document)
        if not result.found:
            raise ContentNotFoundError(f"could not find content in {entry.url}")
        logger.debug("Extracted %s with strategy %s", entry.url, result.strategy)
        self._debug_dump(index, "extracted", result.fragment, entry)

        fragment = self.normalizer.normalize(result.fragment, entry.url, title=entry.title)
        self._debug_dump(index, "normalized", fragment, entry)
        return fragment


def _emit(
    chapter: Optional[Chapter],
    packager: EpubPackager,
    stylesheet: epub.EpubItem,
    report: RunReport,
) -> None:
    if chapter is None:
        return
    try:
        packager.add_chapter(chapter.title, chapter.body, stylesheet)
    except PackagerError as exc:
        logger.warning("Error adding chapter %s: %s", chapter.title, exc)
        return
    report.chapters += 1
    pages = len(chapter.fragments)
    logger.info("Added chapter %s (%d page%s)", chapter.title, pages, "s" if pages != 1 else "")


def run_pipeline(
    entries: Sequence[SourceEntry],
    config: RunConfig,
    fetcher: Fetcher,
    packager: EpubPackager,
    stylesheet: epub.EpubItem,
    locator: Optional[PatternLocator] = None,
    normalizer: Optional[ContentNormalizer] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> RunReport:
    """Process ``entries`` strictly in order and add finished chapters to the book."""
    if locator is None:
        locator = PatternLocator(default_strategies(lenient=config.lenient_anchors))
    if normalizer is None:
        resolver = ImageResolver(fetcher, config.work_dir, sink=packager.add_image)
        normalizer = ContentNormalizer(resolver, config.site_domain, simplify=config.simplify)

    processor = EntryProcessor(config, fetcher, locator, normalizer, sleep=sleep)
    assembler = ChapterAssembler()
    report = RunReport(total=len(entries))

    for index, entry in enumerate(entries):
        logger.info(
            "Processing %d/%d: %s (%s)", index + 1, len(entries), entry.title, entry.url
        )
        try:
            fragment = processor.process(index, entry)
        except (FetchError, ContentNotFoundError, ParserRejectedMarkup) as exc:
            logger.warning("Skipping %s (%s): %s", entry.title, entry.url, exc)
            report.skipped += 1
            continue
        except Exception:  # pylint: disable=broad-except
            logger.exception("Unexpected error processing %s (%s)", entry.title, entry.url)
            report.skipped += 1
            continue

        report.processed += 1
        _emit(assembler.feed(entry.title, fragment), packager, stylesheet, report)

    _emit(assembler.finish(), packager, stylesheet, report)
    return report
