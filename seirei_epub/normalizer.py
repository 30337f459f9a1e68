"""Cleanup passes turning an extracted post body into e-reader friendly HTML.

The passes run in a fixed order. Later passes rely on earlier ones: the
trailing-centered heuristic only sees what the navigation filter left behind,
and images are converted after empty-element removal so that image-only
wrappers survive.
"""

from __future__ import annotations

import logging
from typing import Optional

from bs4 import BeautifulSoup, ParserRejectedMarkup, Tag
from readability import Document
from readability.readability import Unparseable

from .config import SITE_DOMAIN
from .images import ImageResolver, has_image_extension
from .locator import CHAPTER_TITLE_SELECTOR
from .models import ImageAsset
from .utils import collapse_whitespace

logger = logging.getLogger("seirei_epub")

WIDGET_SELECTOR = ".sharethis-inline-reaction-buttons, .sharethis-inline-share-buttons"
DECORATIVE_CHARACTERS = ("—", "–", "-", ">", "<", "|", "*")
PART_MARKER_SELECTOR = "b, strong, span[style*=font-weight]"
PART_WRAPPER_TAGS = {"p", "div", "span", "b", "strong"}
PART_BLOCK_TAGS = {"p", "div"}
EMPTY_CANDIDATE_SELECTOR = "p, div, span, h1, h2, h3, h4, h5, h6"
CENTERED_SELECTOR = "p[style*='text-align: center'], p[style*='text-align:center']"
NAVIGATION_KEYWORDS = ("previous", "next", "table of contents")
TRAILING_CENTERED_COUNT = 3
IMAGE_SIZING_ATTRIBUTES = (
    "border",
    "data-original-height",
    "data-original-width",
    "height",
    "width",
)
RESPONSIVE_IMAGE_STYLE = "max-width: 100%; height: auto;"
PRESENTATION_ATTRIBUTES = ("style", "align", "width", "height", "border", "bgcolor", "color")


def _is_attached(element: Tag, root: BeautifulSoup) -> bool:
    return any(parent is root for parent in element.parents)


def remove_widgets(soup: BeautifulSoup) -> None:
    for widget in soup.select(WIDGET_SELECTOR):
        widget.decompose()


def remove_chapter_title(soup: BeautifulSoup) -> None:
    """Drop the first chapter heading; the chapter page renders its own."""
    heading = soup.select_one(CHAPTER_TITLE_SELECTOR)
    if heading is not None:
        heading.decompose()
        logger.debug("Removed first chapter title element")


def _strip_decorations(text: str) -> str:
    text = text.strip()
    for char in DECORATIVE_CHARACTERS:
        text = text.replace(char, "")
    return text.strip()


def remove_domain_lines(soup: BeautifulSoup, domain: str = SITE_DOMAIN) -> None:
    """Remove leftover ``--- site.blogspot.com ---`` attribution lines."""
    domain = domain.lower()
    for el in soup.select("p, div"):
        if el.decomposed:
            continue
        if _strip_decorations(el.get_text()).lower() == domain:
            logger.debug("Removed blog URL element <%s>", el.name)
            el.decompose()


def promote_part_markers(soup: BeautifulSoup) -> None:
    """Turn bold ``Part N`` lines into ``<h3>`` subheadings.

    The marker has been published as ``p > span > b``, ``div > b`` and
    ``p > span[style=font-weight:800]``; the whole wrapper chain is replaced as
    long as it holds nothing but the marker text and ends in a ``p``/``div``.
    """
    for marker in soup.select(PART_MARKER_SELECTOR):
        if not _is_attached(marker, soup):
            continue
        text = marker.get_text().strip()
        if not text.lower().startswith("part "):
            continue

        target = marker
        while (
            target.parent is not None
            and target.parent.name in PART_WRAPPER_TAGS
            and target.parent.get_text().strip() == text
        ):
            target = target.parent
        if target.name not in PART_BLOCK_TAGS:
            continue

        heading = soup.new_tag("h3")
        heading.string = text
        target.replace_with(heading)
        logger.debug("Converted %s marker to h3", text)


def remove_empty_elements(soup: BeautifulSoup) -> None:
    for el in soup.select(EMPTY_CANDIDATE_SELECTOR):
        if el.decomposed:
            continue
        if el.get_text().strip() or el.find("img") is not None:
            continue
        el.decompose()


def _is_navigation_banner(markup: str) -> bool:
    if "patreon" in markup:
        return True
    hits = sum(1 for keyword in NAVIGATION_KEYWORDS if keyword in markup)
    return hits >= 2


def remove_navigation_banners(soup: BeautifulSoup) -> None:
    """Drop centered Patreon plugs and Previous/Next/Table of Contents bars."""
    for el in soup.select(CENTERED_SELECTOR):
        if el.decomposed:
            continue
        if _is_navigation_banner(el.decode_contents().lower()):
            logger.debug("Removed navigation paragraph")
            el.decompose()


def remove_trailing_centered(soup: BeautifulSoup) -> None:
    """Drop the last three centered paragraphs when there are at least three.

    Heuristic: posts end with credit and navigation lines whose wording the
    keyword filter misses. It is purely positional and can remove genuine
    closing lines of a chapter.
    """
    centered = [el for el in soup.select(CENTERED_SELECTOR) if not el.decomposed]
    if len(centered) < TRAILING_CENTERED_COUNT:
        return
    for el in centered[-TRAILING_CENTERED_COUNT:]:
        el.decompose()
    logger.debug("Removed the last %d centered paragraphs", TRAILING_CENTERED_COUNT)


def _point_to_asset(img: Tag, asset: ImageAsset) -> None:
    img["src"] = asset.file_name
    for attr in IMAGE_SIZING_ATTRIBUTES:
        img.attrs.pop(attr, None)
    img["style"] = RESPONSIVE_IMAGE_STYLE


def convert_images(soup: BeautifulSoup, page_url: str, resolver: ImageResolver) -> None:
    """Download images and point them at their in-book copies.

    A link around an image usually targets the full-size version, so the link
    target is preferred and the link itself is dropped afterwards. When the
    full-size download fails the inline image is used instead; the image is
    only dropped when neither can be resolved.
    """
    handled = set()
    for link in soup.find_all("a"):
        if link.decomposed or not _is_attached(link, soup):
            continue
        img = link.find("img")
        if img is None:
            continue
        href = (link.get("href") or "").strip()
        if not href or not has_image_extension(href):
            continue

        asset = resolver.resolve(href, page_url, prefix="fullimg")
        if asset is None:
            src = (img.get("src") or "").strip()
            logger.warning("Full-size image %s unavailable, falling back to %s", href, src or "nothing")
            if src and not src.startswith("data:"):
                asset = resolver.resolve(src, page_url)
            elif src:
                handled.add(id(img))
                img.extract()
                link.replace_with(img)
                continue
        if asset is None:
            logger.warning("Dropping image %s from %s", href, page_url)
            link.decompose()
            continue

        _point_to_asset(img, asset)
        handled.add(id(img))
        img.extract()
        link.replace_with(img)

    for img in soup.find_all("img"):
        if id(img) in handled:
            continue
        src = (img.get("src") or "").strip()
        if not src or src.startswith("data:"):
            continue
        asset = resolver.resolve(src, page_url)
        if asset is None:
            logger.warning("Dropping image %s from %s", src, page_url)
            img.decompose()
            continue
        _point_to_asset(img, asset)


def strip_presentation(soup: BeautifulSoup) -> None:
    """Remove inline presentation attributes from everything but images."""
    for el in soup.find_all(True):
        if el.name == "img":
            continue
        for attr in PRESENTATION_ATTRIBUTES:
            el.attrs.pop(attr, None)


def simplify_with_readability(markup: str) -> str:
    """Run readability over the fragment, putting back images it dropped."""
    images = [
        (img.get("src"), img.get("alt", ""))
        for img in BeautifulSoup(markup, "html.parser").find_all("img")
    ]
    try:
        summary = Document(f"<html><body>{markup}</body></html>").summary(html_partial=True)
    except Unparseable as exc:
        logger.error("Failed to process with readability: %s", exc)
        return markup

    result = BeautifulSoup(summary, "html.parser")
    present = {img.get("src") for img in result.find_all("img")}
    for src, alt in images:
        if not src or src in present:
            continue
        logger.debug("Reinserting image %s dropped by readability", src)
        paragraph = result.new_tag("p")
        paragraph.append(result.new_tag("img", attrs={"src": src, "alt": alt}))
        result.append(paragraph)
    for img in result.find_all("img"):
        img["style"] = RESPONSIVE_IMAGE_STYLE
    return result.decode()


class ContentNormalizer:
    """Apply every cleanup pass to a located fragment."""

    def __init__(
        self,
        resolver: ImageResolver,
        site_domain: str = SITE_DOMAIN,
        simplify: bool = False,
    ) -> None:
        self.resolver = resolver
        self.site_domain = site_domain
        self.simplify = simplify

    def normalize(self, fragment: str, page_url: str, title: Optional[str] = None) -> str:
        try:
            soup = BeautifulSoup(fragment, "html.parser")
        except ParserRejectedMarkup as exc:
            logger.error("Failed to parse fragment of %s: %s", title or page_url, exc)
            return fragment

        remove_widgets(soup)
        remove_chapter_title(soup)
        remove_domain_lines(soup, self.site_domain)
        promote_part_markers(soup)
        remove_empty_elements(soup)
        remove_navigation_banners(soup)
        remove_trailing_centered(soup)
        convert_images(soup, page_url, self.resolver)
        strip_presentation(soup)

        markup = soup.decode()
        if self.simplify:
            markup = simplify_with_readability(markup)
        return collapse_whitespace(markup)
