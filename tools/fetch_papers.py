"""Fetch recent PubMed papers per topic, summarize them and store articles.

Usage:
  python -m tools fetch_papers [--topic diabetes] [--max-results 3] [--term "..."]
"""

from __future__ import annotations

import argparse
import sys

from loguru import logger

from backend.app import configure_logging
from backend.services.content_service import TOPIC_SEARCH_TERMS, run_daily_update
from config import settings
from config.sentry import initialize_sentry
from mdstore.repositories import build_store


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fetch, summarize and store recent medical papers")
    parser.add_argument(
        "-t",
        "--topic",
        action="append",
        choices=sorted(TOPIC_SEARCH_TERMS),
        help="Topic to update (repeatable; default: all topics)",
    )
    parser.add_argument(
        "--term",
        type=str,
        default=None,
        help="Search term to use instead of a random one (needs exactly one --topic)",
    )
    parser.add_argument(
        "-n",
        "--max-results",
        type=int,
        default=None,
        help=f"Papers per topic (default: {settings.content.papers_per_topic})",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    if args.term and len(args.topic or []) != 1:
        parser.error("--term needs exactly one --topic")
    if args.max_results is not None and args.max_results < 1:
        parser.error("--max-results must be >= 1")

    configure_logging("DEBUG" if args.verbose else None)
    initialize_sentry("fetch_papers")

    store = build_store(settings.db, seed_demo=False)
    if store.is_demo:
        logger.warning("No database configured (MEDDIGEST_DB_URL); fetched articles are discarded on exit")

    kwargs = {}
    if args.term:
        kwargs["term"] = args.term
    if args.max_results:
        kwargs["max_results"] = args.max_results

    result = run_daily_update(store, args.topic, **kwargs)
    for res in result["topics"]:
        logger.info(
            f"{res['topic']:<15} term={res['term']!r} searched={res['searched']} "
            f"saved={res['saved']} skipped={res['skipped']} errors={res['errors']}"
        )
    logger.success(f"Stored {result['saved']} new articles ({store.articles.count()} total)")
    return 1 if result["errors"] and not result["saved"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
