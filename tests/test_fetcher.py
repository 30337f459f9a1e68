from pathlib import Path
from typing import Any

import pytest
import requests

from seirei_epub.config import USER_AGENT
from seirei_epub.fetcher import FetchError, Fetcher


class FakeResponse:
    def __init__(self, status_code: int = 200, content: bytes = b"<html></html>") -> None:
        self.status_code = status_code
        self.content = content


def _fetcher_with(monkeypatch: Any, response: Any, **kwargs: Any) -> Fetcher:
    fetcher = Fetcher(**kwargs)
    calls = []

    def fake_get(url: str, timeout: float) -> Any:
        calls.append((url, timeout))
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(fetcher.session, "get", fake_get)
    fetcher.calls = calls  # type: ignore[attr-defined]
    return fetcher


def test_fetch_returns_body_and_passes_timeout(monkeypatch: Any) -> None:
    fetcher = _fetcher_with(monkeypatch, FakeResponse(content=b"page"), timeout=12.5)
    assert fetcher.fetch("http://x/a") == b"page"
    assert fetcher.calls == [("http://x/a", 12.5)]


@pytest.mark.parametrize(
    "response, message",
    [
        (FakeResponse(status_code=404), "HTTP status code 404"),
        (FakeResponse(content=b""), "zero bytes"),
        (requests.ConnectionError("refused"), "refused"),
    ],
)
def test_fetch_errors(monkeypatch: Any, response: Any, message: str) -> None:
    fetcher = _fetcher_with(monkeypatch, response)
    with pytest.raises(FetchError, match=message):
        fetcher.fetch("http://x/a")


def test_default_session_sends_project_user_agent() -> None:
    fetcher = Fetcher()
    assert fetcher.session.headers["User-Agent"] == USER_AGENT
    fetcher.close()


def test_injected_session_headers_are_left_alone() -> None:
    session = requests.Session()
    session.headers["User-Agent"] = "custom/1.0"
    assert Fetcher(session=session).session.headers["User-Agent"] == "custom/1.0"


def test_fetch_rejects_empty_url() -> None:
    with pytest.raises(FetchError, match="empty URL"):
        Fetcher().fetch("")


def test_cache_is_read_through_then_written_through(monkeypatch: Any, tmp_path: Path) -> None:
    fetcher = _fetcher_with(monkeypatch, FakeResponse(content=b"fresh"), cache_dir=tmp_path)

    assert fetcher.fetch("http://x/a", cache_key="page_a.html") == b"fresh"
    assert (tmp_path / "page_a.html").read_bytes() == b"fresh"

    (tmp_path / "page_a.html").write_bytes(b"cached")
    assert fetcher.fetch("http://x/a", cache_key="page_a.html") == b"cached"
    assert len(fetcher.calls) == 1


def test_cache_ignored_without_cache_dir(monkeypatch: Any, tmp_path: Path) -> None:
    fetcher = _fetcher_with(monkeypatch, FakeResponse(content=b"fresh"))
    fetcher.fetch("http://x/a", cache_key="page_a.html")
    fetcher.fetch("http://x/a", cache_key="page_a.html")
    assert len(fetcher.calls) == 2
