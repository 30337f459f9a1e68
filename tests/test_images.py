from pathlib import Path

import pytest

from seirei_epub.images import (
    ImageResolver,
    detect_image_format,
    has_image_extension,
    resolve_url,
    url_extension,
)

PAGE_URL = "https://seireitranslations.blogspot.com/2021/01/chapter-1.html"


@pytest.mark.parametrize(
    "src, expected",
    [
        ("https://img.example/a.png", "https://img.example/a.png"),
        ("/images/a.png", "https://seireitranslations.blogspot.com/images/a.png"),
        ("a.png", "https://seireitranslations.blogspot.com/2021/01/a.png"),
        ("//blogger.googleusercontent.com/img/a.jpg", "https://blogger.googleusercontent.com/img/a.jpg"),
    ],
)
def test_resolve_url(src: str, expected: str) -> None:
    assert resolve_url(src, PAGE_URL) == expected


def test_extension_helpers() -> None:
    assert has_image_extension("https://x/s1600/Pic.JPG")
    assert has_image_extension("https://x/a.webp?w=20")
    assert not has_image_extension("https://x/gallery")
    assert url_extension("https://x/a.jpeg") == ".jpg"
    assert url_extension("https://x/a.txt") == ""


def test_detect_image_format(png_bytes: bytes) -> None:
    assert detect_image_format(png_bytes) == ".png"
    assert detect_image_format(b"plain text") is None


def test_resolver_assigns_unique_names_and_notifies_sink(
    tmp_path: Path, make_fetcher, png_bytes: bytes
) -> None:
    fetcher = make_fetcher(
        {
            "https://img.example/a.png": png_bytes,
            "https://img.example/b": png_bytes,
        }
    )
    registered = []
    resolver = ImageResolver(fetcher, tmp_path, sink=registered.append)

    first = resolver.resolve("https://img.example/a.png", PAGE_URL)
    second = resolver.resolve("https://img.example/b", PAGE_URL, prefix="fullimg")
    again = resolver.resolve("https://img.example/a.png", PAGE_URL)

    assert first.local_name == "image_0001.png"
    assert second.local_name == "fullimg_0002.png"
    assert second.media_type == "image/png"
    assert again is first
    assert registered == [first, second]
    assert resolver.assets == [first, second]
    assert len(fetcher.calls) == 2
    assert (tmp_path / "images" / "image_0001.png").exists()


def test_resolver_cache_key_is_stable(make_fetcher, png_bytes: bytes) -> None:
    url = "https://img.example/a.png"
    keys = []
    for _ in range(2):
        fetcher = make_fetcher({url: png_bytes})
        ImageResolver(fetcher).resolve(url, PAGE_URL)
        keys.append(fetcher.calls[0][1])
    assert keys[0] == keys[1]
    assert keys[0].startswith("img_") and keys[0].endswith(".png")


def test_resolver_rejects_non_image_payload(make_fetcher) -> None:
    fetcher = make_fetcher({"https://img.example/a.png": b"%PDF-1.4\n" + b"0" * 64})
    assert ImageResolver(fetcher).resolve("https://img.example/a.png", PAGE_URL) is None


def test_resolver_returns_none_on_fetch_failure(make_fetcher) -> None:
    resolver = ImageResolver(make_fetcher({}))
    assert resolver.resolve("https://img.example/missing.png", PAGE_URL) is None
    assert resolver.assets == []


def test_resolver_returns_none_when_save_fails(tmp_path: Path, make_fetcher, png_bytes: bytes) -> None:
    blocker = tmp_path / "work"
    blocker.write_text("not a directory")
    fetcher = make_fetcher({"https://img.example/a.png": png_bytes})
    resolver = ImageResolver(fetcher, blocker)
    assert resolver.resolve("https://img.example/a.png", PAGE_URL) is None


def test_failed_image_is_not_fetched_again(make_fetcher) -> None:
    fetcher = make_fetcher({})
    resolver = ImageResolver(fetcher)

    assert resolver.resolve("https://img.example/missing.png", PAGE_URL) is None
    assert resolver.resolve("https://img.example/missing.png", PAGE_URL, prefix="fullimg") is None
    assert [url for url, _ in fetcher.calls] == ["https://img.example/missing.png"]


def test_rejected_payload_is_not_fetched_again(make_fetcher) -> None:
    fetcher = make_fetcher({"https://img.example/a.png": b"%PDF-1.4\n" + b"0" * 64})
    resolver = ImageResolver(fetcher)

    resolver.resolve("https://img.example/a.png", PAGE_URL)
    resolver.resolve("/a.png", "https://img.example/post.html")
    assert len(fetcher.calls) == 1
