from __future__ import annotations

import argparse
import sys
from typing import Sequence

import uvicorn
from pydantic import ValidationError

from scriptrank.aggregator import format_report
from scriptrank.config import AppSettings
from scriptrank.logger import configure_logging, get_logger
from scriptrank.scanner import FatalRunError, Scanner

logger = get_logger(__name__)


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Limit argument not valid: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"Limit argument must be positive: {value!r}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scriptrank",
        description="Rank the script files most used by the pages a web search returns.",
    )
    parser.add_argument("search_term", help="search query to crawl")
    parser.add_argument(
        "limit",
        nargs="?",
        type=positive_int,
        default=None,
        help="number of scripts to report (default: 5)",
    )
    parser.add_argument("--workers", type=int, help="concurrent page fetches")
    parser.add_argument("--timeout", type=float, help="per-page timeout in seconds")
    parser.add_argument("--max-candidates", type=int, help="scan at most this many result links")
    parser.add_argument("--search-url", help="results URL template containing {query}")
    parser.add_argument("--link-selector", help="CSS selector for result links")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every download")
    return parser


def build_settings(args: argparse.Namespace) -> AppSettings:
    overrides = {
        "max_workers": args.workers,
        "timeout_seconds": args.timeout,
        "max_candidates": args.max_candidates,
        "search_url_template": args.search_url,
        "result_link_selector": args.link_selector,
    }
    return AppSettings(**{key: value for key, value in overrides.items() if value is not None})


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.search_term.strip():
        parser.error("Required search term not set")

    try:
        settings = build_settings(args)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        parser.error(f"invalid value for {field}: {first['msg']}")

    configure_logging(verbose=args.verbose)
    scanner = Scanner(settings)
    try:
        result = scanner.run_scan(query=args.search_term, limit=args.limit)
    except FatalRunError as exc:
        logger.error("%s", exc)
        return 1

    for line in format_report(result.entries):
        print(line)
    logger.info(
        "Scanned %d of %d result pages (%d failed), %d script references in %.1fs",
        result.pages_scanned,
        result.candidates,
        result.pages_failed,
        result.references,
        result.stage_durations.get("total", 0.0),
    )
    return 0


def run() -> None:
    sys.exit(main())


def serve() -> None:
    configure_logging()
    settings = AppSettings()
    print(f"[scriptrank] API on http://{settings.host}:{settings.port}")
    uvicorn.run(
        "scriptrank.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
    )
