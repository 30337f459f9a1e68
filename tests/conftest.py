import logging
from typing import Dict, List, Optional, Tuple, Union

import pytest

from seirei_epub.fetcher import FetchError

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeFetcher:
    """In-memory stand-in for ``Fetcher`` keyed by URL."""

    def __init__(self, responses: Dict[str, Union[bytes, Exception]]) -> None:
        self.responses = responses
        self.calls: List[Tuple[str, Optional[str]]] = []
        self.closed = False

    def fetch(self, url: str, cache_key: Optional[str] = None) -> bytes:
        self.calls.append((url, cache_key))
        response = self.responses.get(url)
        if response is None:
            raise FetchError(f"HTTP status code 404 for {url}")
        if isinstance(response, Exception):
            raise response
        return response

    def close(self) -> None:
        self.closed = True


def blog_page(chapter_heading: str, *paragraphs: str) -> bytes:
    body = "\n".join(f"<p>{text}</p>" for text in paragraphs)
    return f"""<html><head><title>{chapter_heading}</title></head><body>
<div class="post-header">Posted by translator</div>
<div class="post-body entry-content">
<p>Thanks to our patrons!</p>
<h4 style="text-align: center;">{chapter_heading}</h4>
{body}
<p style="text-align: center;"><a href="/prev">Previous</a> | <a href="/toc">Table of Contents</a> | <a href="/next">Next</a></p>
</div>
<div class="post-footer">Share this</div>
</body></html>""".encode("utf-8")


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES


@pytest.fixture
def make_fetcher():
    return FakeFetcher


@pytest.fixture
def make_page():
    return blog_page


@pytest.fixture
def isolate_logging():
    """Keep ``logging.basicConfig(force=True)`` in the CLI from leaking between tests."""
    original_handlers = logging.root.handlers[:]
    original_level = logging.root.level
    yield
    logging.root.handlers.clear()
    logging.root.handlers.extend(original_handlers)
    logging.root.setLevel(original_level)
