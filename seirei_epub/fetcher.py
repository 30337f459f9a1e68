"""HTTP retrieval with an optional on-disk cache for debug runs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import requests

from .config import DEFAULT_TIMEOUT, USER_AGENT

logger = logging.getLogger("seirei_epub")


class FetchError(RuntimeError):
    """Raised when a URL cannot be retrieved."""


class Fetcher:
    """Download URLs sequentially through one ``requests`` session.

    When ``cache_dir`` is set, ``fetch`` reads ``cache_dir / cache_key`` before
    touching the network and writes successful downloads back to it.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        cache_dir: Optional[Path] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = timeout
        self.cache_dir = Path(cache_dir) if cache_dir is not None else None
        if session is None:
            session = requests.Session()
            session.headers["User-Agent"] = USER_AGENT
        self.session = session

    def _cache_path(self, cache_key: Optional[str]) -> Optional[Path]:
        if self.cache_dir is None or not cache_key:
            return None
        return self.cache_dir / cache_key

    def fetch(self, url: str, cache_key: Optional[str] = None) -> bytes:
        if not url:
            raise FetchError("empty URL provided")

        cache_path = self._cache_path(cache_key)
        if cache_path is not None and cache_path.is_file():
            logger.debug("Using cached file %s for %s", cache_path, url)
            return cache_path.read_bytes()

        logger.debug("Downloading %s", url)
        try:
            resp = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise FetchError(f"error fetching {url}: {exc}") from exc

        if resp.status_code != 200:
            raise FetchError(f"HTTP status code {resp.status_code} for {url}")

        data = resp.content
        if not data:
            raise FetchError(f"zero bytes received from {url}")

        if cache_path is not None:
            try:
                cache_path.write_bytes(data)
            except OSError as exc:
                logger.warning("Could not cache %s at %s: %s", url, cache_path, exc)
            else:
                logger.debug("Cached %s at %s", url, cache_path)
        return data

    def close(self) -> None:
        self.session.close()
