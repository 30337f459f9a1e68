"""Configuration objects and constants for the EPUB builder."""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger("seirei_epub")

SITE_DOMAIN = "seireitranslations.blogspot.com"
SITE_NAME = "SeireiTranslations"
SUPPORT_LINKS = (
    ("Support on Ko-Fi", "https://ko-fi.com/seireitranslations"),
    ("Support on Patreon", "https://www.patreon.com/seireitl"),
)

DEFAULT_TIMEOUT = 30.0
DEFAULT_REQUEST_DELAY = 0.5
USER_AGENT = "seirei-epub/0.1 (+personal e-reader export)"


@dataclass
class RunConfig:
    """Top-level settings for a single EPUB build."""

    title: str
    author: str
    cover_url: str
    output_path: Path
    url_list: Path
    debug: bool = False
    work_dir: Optional[Path] = None
    timeout: float = DEFAULT_TIMEOUT
    request_delay: float = DEFAULT_REQUEST_DELAY
    site_domain: str = SITE_DOMAIN
    language: str = "en"
    lenient_anchors: bool = False
    simplify: bool = False
    attribution: bool = True


def prepare_work_dir(config: RunConfig) -> Path:
    """Create the working directory used for cached downloads and debug files.

    Debug runs keep everything next to the output file (``<output>.tmp``) so a
    second run can reuse the cache; normal runs get a throwaway directory.
    Raises ``OSError`` when the directory cannot be created.
    """
    if config.debug:
        work_dir = Path(f"{config.output_path}.tmp")
        work_dir.mkdir(parents=True, exist_ok=True)
    else:
        work_dir = Path(tempfile.mkdtemp(prefix="epub_files_"))
    config.work_dir = work_dir
    logger.debug("Working directory: %s", work_dir)
    return work_dir


def cleanup_work_dir(config: RunConfig) -> None:
    if config.work_dir is None:
        return
    if config.debug:
        logger.info("Debug mode: keeping working directory %s", config.work_dir)
        return
    logger.debug("Removing working directory %s", config.work_dir)
    shutil.rmtree(config.work_dir, ignore_errors=True)
    config.work_dir = None
