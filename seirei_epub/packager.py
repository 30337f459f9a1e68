"""EPUB assembly on top of ebooklib."""

from __future__ import annotations

import html
import logging
from pathlib import Path, PurePosixPath
from typing import List, Sequence, Set
from urllib.parse import urlparse

from ebooklib import epub

from .config import SITE_NAME, SUPPORT_LINKS
from .models import ImageAsset, SourceEntry
from .utils import slugify

logger = logging.getLogger("seirei_epub")

STYLESHEET_FILE_NAME = "styles/stylesheet.css"
ATTRIBUTION_TITLE = "Attribution and Sources"

DEFAULT_STYLESHEET = b"""\
body { margin: 0; padding: 0; font-family: serif; line-height: 1.5; }
h2 { text-align: center; margin: 1em 0; }
h3 { text-align: center; margin: 1.2em 0 0.6em; }
p { margin: 0 0 0.6em; text-indent: 0; }
img { max-width: 100%; height: auto; display: block; margin: 0.5em auto; }
.attribution ul { padding-left: 1.2em; }
"""

CHAPTER_TEMPLATE = """<html>
<head>
    <title>{title}</title>
</head>
<body class="chapter">
    <h2>{title}</h2>
    {body}
</body>
</html>"""


class PackagerError(RuntimeError):
    """Raised when the book cannot be assembled or written."""


def render_chapter_page(title: str, body: str) -> str:
    return CHAPTER_TEMPLATE.format(title=html.escape(title), body=body)


def render_attribution(entries: Sequence[SourceEntry]) -> str:
    support = "\n".join(
        f'<li><a href="{html.escape(url, quote=True)}">{html.escape(label)}</a></li>'
        for label, url in SUPPORT_LINKS
    )
    sources = "\n".join(
        f'<li><a href="{html.escape(entry.url, quote=True)}">{html.escape(entry.title)}</a></li>'
        for entry in entries
    )
    return f"""<div class="attribution">
<h1>Attribution</h1>
<p>This e-book contains content translated by <strong>{SITE_NAME}</strong>.</p>
<h2>Support the Translators</h2>
<p>If you enjoy this translation, please consider supporting the translators to help them continue their work:</p>
<ul>
{support}
</ul>
<h2>Original Content Sources</h2>
<p>The content in this e-book was sourced from the following links:</p>
<ul>
{sources}
</ul>
</div>"""


class EpubPackager:
    """Collect cover, stylesheet, images and chapters into one EPUB."""

    def __init__(self, title: str, author: str, language: str = "en") -> None:
        self.book = epub.EpubBook()
        self.book.set_identifier(f"seirei-epub-{slugify(title)}")
        self.book.set_title(title)
        self.book.set_language(language)
        self.book.add_author(author)
        self.language = language
        self.chapters: List[epub.EpubHtml] = []
        self._image_names: Set[str] = set()

    def set_cover(self, data: bytes, url: str) -> None:
        extension = PurePosixPath(urlparse(url).path).suffix.lower() or ".jpg"
        if not data:
            raise PackagerError("empty cover image")
        self.book.set_cover(f"cover{extension}", data)

    def add_stylesheet(self, css: bytes) -> epub.EpubItem:
        item = epub.EpubItem(
            uid="style_default",
            file_name=STYLESHEET_FILE_NAME,
            media_type="text/css",
            content=css,
        )
        self.book.add_item(item)
        return item

    def add_image(self, asset: ImageAsset) -> None:
        if asset.file_name in self._image_names:
            return
        self.book.add_item(
            epub.EpubImage(
                uid=PurePosixPath(asset.local_name).stem,
                file_name=asset.file_name,
                media_type=asset.media_type,
                content=asset.data,
            )
        )
        self._image_names.add(asset.file_name)

    def _add_page(self, title: str, content: str, stylesheet: epub.EpubItem) -> epub.EpubHtml:
        index = len(self.chapters) + 1
        page = epub.EpubHtml(
            title=title,
            file_name=f"chapter_{index:04d}.xhtml",
            uid=f"chapter_{index:04d}",
            lang=self.language,
        )
        page.content = content
        page.add_item(stylesheet)
        self.book.add_item(page)
        self.chapters.append(page)
        return page

    def add_chapter(self, title: str, body: str, stylesheet: epub.EpubItem) -> epub.EpubHtml:
        if not body.strip():
            raise PackagerError(f"chapter {title!r} has no content")
        logger.debug("Adding chapter %s (%d characters)", title, len(body))
        return self._add_page(title, render_chapter_page(title, body), stylesheet)

    def add_attribution_chapter(
        self, entries: Sequence[SourceEntry], stylesheet: epub.EpubItem
    ) -> epub.EpubHtml:
        return self._add_page(ATTRIBUTION_TITLE, render_attribution(entries), stylesheet)

    def write(self, output_path: Path) -> None:
        self.book.toc = tuple(self.chapters)
        self.book.add_item(epub.EpubNcx())
        self.book.add_item(epub.EpubNav())
        self.book.spine = ["nav", *self.chapters]
        try:
            written = epub.write_epub(str(output_path), self.book, {"raise_exceptions": True})
        except OSError as exc:
            raise PackagerError(f"error writing EPUB to {output_path}: {exc}") from exc
        # write_epub reports some failures through its return value only
        if written is False or not Path(output_path).is_file():
            raise PackagerError(f"EPUB was not written to {output_path}")
        logger.info("Wrote EPUB %s", output_path)
