"""Locate the article body inside a Blogger post page.

The site has changed its post markup several times, so extraction is a list of
strategies tried in a fixed order. The first one that reports ``found`` wins;
results are never merged or scored.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, Tag

from .models import ExtractionResult

logger = logging.getLogger("seirei_epub")

# Also used by the normalizer to drop the duplicated chapter heading.
CHAPTER_TITLE_SELECTOR = (
    "h4[style*=center]:first-of-type, "
    "p[style*=center]:first-of-type, "
    "p>span[style*='800']"
)
LENIENT_ANCHOR_SELECTORS = (
    "h4[style*='text-align: center']",
    "div.separator h4",
    "div.separator span h4",
    "h4",
)
ARTICLE_BODY_CLASSES = ("post-body", "post-content")
MAIN_CONTENT_SELECTOR = ".post-body"
CHROME_SELECTOR = ".post-header, .post-footer, .post-bottom"

StrategyFunc = Callable[[BeautifulSoup], ExtractionResult]


class ContentNotFoundError(RuntimeError):
    """Raised when no strategy could find the article body."""


@dataclass(frozen=True)
class Strategy:
    name: str
    description: str
    extract: StrategyFunc


def _not_found() -> ExtractionResult:
    return ExtractionResult(fragment="", found=False)


def same_element(a: Optional[Tag], b: Optional[Tag]) -> bool:
    """Structural identity: same tag name and same serialized inner markup.

    Node identity does not survive a deep copy, so this is how an element is
    recognized again inside a cloned container.
    """
    if a is None or b is None:
        return False
    return a.name == b.name and a.decode_contents() == b.decode_contents()


def find_anchor(
    root: Tag, selectors: Sequence[str]
) -> Tuple[Optional[Tag], Optional[str]]:
    """Return the first content-start element and the selector that matched."""
    for selector in selectors:
        anchor = root.select_one(selector)
        if anchor is not None:
            return anchor, selector
    return None, None


def find_article_wrapper(anchor: Tag) -> Optional[Tag]:
    for parent in anchor.parents:
        if parent.name != "div":
            continue
        classes = parent.get("class") or []
        if any(name in classes for name in ARTICLE_BODY_CLASSES):
            return parent
    return None


def find_loose_container(document: BeautifulSoup, anchor: Tag) -> Optional[Tag]:
    for parent in anchor.parents:
        if parent.name == "div":
            return parent
    return document.body


def prune_before_anchor(
    container: Tag, anchor: Tag, selector: str
) -> Optional[str]:
    """Copy ``container`` and delete everything preceding the anchor.

    Elements that are the anchor, contain an anchor match, or are ancestors of
    the anchor survive. Returns ``None`` when the anchor cannot be found again
    inside the copy.
    """
    clone = copy.copy(container)
    elements = clone.find_all(True)

    anchor_index = next(
        (i for i, el in enumerate(elements) if same_element(el, anchor)), -1
    )
    if anchor_index == -1:
        logger.debug("Could not relocate anchor <%s> in cloned container", anchor.name)
        return None

    cloned_anchor = elements[anchor_index]
    ancestor_ids = {id(parent) for parent in cloned_anchor.parents}

    removed = 0
    for el in elements[:anchor_index]:
        if id(el) in ancestor_ids:
            continue
        if el.select_one(selector) is not None:
            continue
        el.extract()
        removed += 1
    logger.debug("Removed %d elements before anchor <%s>", removed, anchor.name)
    return clone.decode_contents()


def _descend_from_anchor(
    document: BeautifulSoup,
    selectors: Sequence[str],
    pick_container: Callable[[BeautifulSoup, Tag], Optional[Tag]],
) -> ExtractionResult:
    anchor, selector = find_anchor(document, selectors)
    if anchor is None or selector is None:
        logger.debug("Anchor element not found")
        return _not_found()

    container = pick_container(document, anchor)
    if container is None:
        return _not_found()

    fragment = prune_before_anchor(container, anchor, selector)
    if fragment is None:
        return _not_found()
    return ExtractionResult(fragment=fragment, found=True)


def anchor_descent(
    document: BeautifulSoup, selectors: Sequence[str] = (CHAPTER_TITLE_SELECTOR,)
) -> ExtractionResult:
    """Anchor inside a ``post-body``/``post-content`` wrapper."""
    return _descend_from_anchor(
        document, selectors, lambda _doc, anchor: find_article_wrapper(anchor)
    )


def loose_container(
    document: BeautifulSoup, selectors: Sequence[str] = (CHAPTER_TITLE_SELECTOR,)
) -> ExtractionResult:
    """Anchor inside any ``div``, or the body when there is none."""
    return _descend_from_anchor(document, selectors, find_loose_container)


def whole_body(document: BeautifulSoup) -> ExtractionResult:
    """Take the main post container verbatim minus header/footer chrome."""
    main = document.select_one(MAIN_CONTENT_SELECTOR)
    if main is None:
        return _not_found()
    content = BeautifulSoup(main.decode_contents(), "html.parser")
    for el in content.select(CHROME_SELECTOR):
        el.decompose()
    logger.debug("Used whole-body fallback extraction")
    return ExtractionResult(fragment=content.decode(), found=True)


def default_strategies(lenient: bool = False) -> Tuple[Strategy, ...]:
    selectors: Tuple[str, ...] = (CHAPTER_TITLE_SELECTOR,)
    if lenient:
        selectors += LENIENT_ANCHOR_SELECTORS
    return (
        Strategy(
            "anchor-descent",
            "Content after the chapter heading inside the post body",
            partial(anchor_descent, selectors=selectors),
        ),
        Strategy(
            "loose-container",
            "Content after the chapter heading inside any div or the body",
            partial(loose_container, selectors=selectors),
        ),
        Strategy(
            "whole-body",
            "Entire post body without header and footer",
            whole_body,
        ),
    )


class PatternLocator:
    """Run extraction strategies in priority order until one succeeds."""

    def __init__(self, strategies: Optional[Sequence[Strategy]] = None) -> None:
        self.strategies = tuple(strategies) if strategies is not None else default_strategies()

    def locate(self, document: BeautifulSoup) -> ExtractionResult:
        for strategy in self.strategies:
            result = strategy.extract(document)
            if result.found:
                logger.debug("Strategy %s matched", strategy.name)
                result.strategy = strategy.name
                return result
        return _not_found()
