"""Image resolution, validation and registration."""

from __future__ import annotations

import hashlib
import itertools
import logging
import mimetypes
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, List, Optional, Set
from urllib.parse import urljoin, urlparse

from filetype import guess

from .fetcher import FetchError, Fetcher
from .models import ImageAsset

logger = logging.getLogger("seirei_epub")

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")
DEFAULT_EXTENSION = ".jpg"

AssetSink = Callable[[ImageAsset], None]


def resolve_url(src: str, page_url: str) -> str:
    """Resolve a possibly relative image reference against the page URL."""
    src = src.strip()
    if src.startswith(("http://", "https://")):
        return src
    return urljoin(page_url, src)


def has_image_extension(url: str) -> bool:
    return urlparse(url).path.lower().endswith(IMAGE_EXTENSIONS)


def url_extension(url: str) -> str:
    suffix = PurePosixPath(urlparse(url).path).suffix.lower()
    if suffix == ".jpeg":
        return ".jpg"
    return suffix if suffix in IMAGE_EXTENSIONS else ""


def detect_image_format(data: bytes) -> Optional[str]:
    """Detect image type using filetype; returns a dotted lowercase extension."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        if ext == "jpeg":
            return ".jpg"
        return f".{ext}"
    return None


def is_non_image_payload(data: bytes) -> bool:
    kind = guess(data)
    return kind is not None and not kind.mime.startswith("image/")


def media_type_for(data: bytes, extension: str) -> str:
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        return kind.mime
    return mimetypes.types_map.get(extension, "image/jpeg")


class ImageResolver:
    """Fetch each distinct image once and hand it out under a local name.

    Local names come from a counter shared by the whole run, so they never
    collide but also differ between runs. The cache key passed to the fetcher
    is derived from the URL instead, which keeps debug-mode caching useful.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        work_dir: Optional[Path] = None,
        sink: Optional[AssetSink] = None,
    ) -> None:
        self.fetcher = fetcher
        self.image_dir = Path(work_dir) / "images" if work_dir is not None else None
        self.sink = sink
        self._registry: Dict[str, ImageAsset] = {}
        self._failed: Set[str] = set()
        self._counter = itertools.count(1)

    @property
    def assets(self) -> List[ImageAsset]:
        return list(self._registry.values())

    def resolve(self, src: str, page_url: str, prefix: str = "image") -> Optional[ImageAsset]:
        absolute_url = resolve_url(src, page_url)
        if not absolute_url:
            logger.debug("Empty image URL, skipping")
            return None

        existing = self._registry.get(absolute_url)
        if existing is not None:
            return existing
        if absolute_url in self._failed:
            logger.debug("Image %s already failed in this run, skipping", absolute_url)
            return None

        extension = url_extension(absolute_url)
        digest = hashlib.sha1(absolute_url.encode("utf-8")).hexdigest()[:16]
        cache_key = f"img_{digest}{extension or DEFAULT_EXTENSION}"

        logger.debug("Downloading image %s", absolute_url)
        try:
            data = self.fetcher.fetch(absolute_url, cache_key=cache_key)
        except FetchError as exc:
            logger.warning("Error downloading image %s: %s", absolute_url, exc)
            self._failed.add(absolute_url)
            return None

        if is_non_image_payload(data):
            logger.warning("Skipping %s: response is not an image", absolute_url)
            self._failed.add(absolute_url)
            return None

        if not extension:
            extension = detect_image_format(data) or DEFAULT_EXTENSION

        local_name = f"{prefix}_{next(self._counter):04d}{extension}"
        if not self._save(local_name, data):
            self._failed.add(absolute_url)
            return None

        asset = ImageAsset(
            source_url=absolute_url,
            local_name=local_name,
            data=data,
            media_type=media_type_for(data, extension),
        )
        self._registry[absolute_url] = asset
        if self.sink is not None:
            self.sink(asset)
        return asset

    def _save(self, local_name: str, data: bytes) -> bool:
        if self.image_dir is None:
            return True
        destination = self.image_dir / local_name
        try:
            self.image_dir.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(data)
        except OSError as exc:
            logger.warning("Failed to write image %s: %s", destination, exc)
            return False
        return True
