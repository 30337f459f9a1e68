"""Command-line entry point for building an EPUB from a list of blog posts."""

from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path
from typing import Sequence

from .config import (
    DEFAULT_REQUEST_DELAY,
    DEFAULT_TIMEOUT,
    RunConfig,
    cleanup_work_dir,
    prepare_work_dir,
)
from .entries import read_url_list
from .fetcher import FetchError, Fetcher
from .images import url_extension
from .packager import DEFAULT_STYLESHEET, EpubPackager, PackagerError
from .pipeline import run_pipeline

logger = logging.getLogger("seirei_epub.cli")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Download SeireiTranslations blog posts and bundle them into an EPUB.",
    )
    parser.add_argument("--title", required=True, help="EPUB title")
    parser.add_argument("--author", required=True, help="Author name")
    parser.add_argument("--cover", required=True, help="Cover image URL")
    parser.add_argument("--output", required=True, type=Path, help="Output EPUB filename")
    parser.add_argument(
        "--urls",
        required=True,
        type=Path,
        help="File listing the posts to include, one 'Chapter Name::URL' per line",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Keep downloads and intermediate HTML in <output>.tmp and reuse them on later runs",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="Per-request timeout in seconds",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=DEFAULT_REQUEST_DELAY,
        help="Seconds to wait after each page download",
    )
    parser.add_argument("--language", default="en", help="Book language code")
    parser.add_argument(
        "--lenient-anchors",
        action="store_true",
        help="Also accept any h4 heading as the start of the chapter text",
    )
    parser.add_argument(
        "--readability",
        action="store_true",
        help="Run readability over each cleaned page as a final simplification step",
    )
    parser.add_argument(
        "--no-attribution",
        dest="attribution",
        action="store_false",
        help="Do not add the attribution and sources chapter",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args(argv)


def build(config: RunConfig) -> int:
    try:
        entries = read_url_list(config.url_list)
    except (OSError, UnicodeDecodeError) as exc:
        logger.error("Error reading URL list %s: %s", config.url_list, exc)
        return 1

    try:
        prepare_work_dir(config)
    except OSError as exc:
        logger.error("Error creating working directory: %s", exc)
        return 1

    fetcher = Fetcher(
        timeout=config.timeout,
        cache_dir=config.work_dir if config.debug else None,
    )
    try:
        packager = EpubPackager(config.title, config.author, language=config.language)

        suffix = url_extension(config.cover_url) or ".jpg"
        try:
            cover = fetcher.fetch(config.cover_url, cache_key=f"cover{suffix}")
            packager.set_cover(cover, config.cover_url)
        except (FetchError, PackagerError) as exc:
            logger.error("Error adding cover image: %s", exc)
            return 1

        stylesheet = packager.add_stylesheet(DEFAULT_STYLESHEET)
        if config.attribution:
            logger.info("Adding attribution chapter")
            packager.add_attribution_chapter(entries, stylesheet)

        start = time.perf_counter()
        report = run_pipeline(entries, config, fetcher, packager, stylesheet)
        logger.info(
            "Finished in %.2fs (%d/%d entries processed, %d skipped, %d chapters)",
            time.perf_counter() - start,
            report.processed,
            report.total,
            report.skipped,
            report.chapters,
        )

        try:
            packager.write(config.output_path)
        except PackagerError as exc:
            logger.error("Error writing EPUB: %s", exc)
            return 1
    finally:
        fetcher.close()
        cleanup_work_dir(config)

    logger.info("Successfully created EPUB %s", config.output_path)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose or args.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )

    config = RunConfig(
        title=args.title,
        author=args.author,
        cover_url=args.cover,
        output_path=Path(args.output).resolve(),
        url_list=Path(args.urls),
        debug=args.debug,
        timeout=args.timeout,
        request_delay=args.delay,
        language=args.language,
        lenient_anchors=args.lenient_anchors,
        simplify=args.readability,
        attribution=args.attribution,
    )
    return build(config)


if __name__ == "__main__":
    raise SystemExit(main())
