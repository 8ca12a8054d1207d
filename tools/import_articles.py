"""Import article records from a JSON file into the store.

The file holds a list of article objects (or {"articles": [...]}); each one is
validated before it is stored.

Usage:
  python -m tools import_articles articles.json [--replace]
  python -m tools import_articles --demo
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

import pydantic
from loguru import logger

from backend.app import configure_logging
from backend.schemas import ArticleRecord
from config import settings
from mdstore.db import DuplicateKeyError
from mdstore.demo import load_demo_articles
from mdstore.repositories import DataStore, build_store


def load_records(path: Path) -> list[dict]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("articles", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of articles")
    return data


def import_records(store: DataStore, records: list[dict], *, replace: bool = False) -> dict:
    """Validate and store records. Returns counts of added, skipped and invalid ones."""
    counts = {"added": 0, "skipped": 0, "invalid": 0}
    for i, raw in enumerate(records):
        try:
            record = ArticleRecord.model_validate(raw).model_dump(exclude_none=True)
        except pydantic.ValidationError as e:
            counts["invalid"] += 1
            logger.warning(f"Record #{i} invalid: {e.errors()[0].get('msg')}")
            continue
        if replace:
            store.articles.upsert(record)
            counts["added"] += 1
            continue
        try:
            store.articles.add(record)
        except DuplicateKeyError as e:
            counts["skipped"] += 1
            logger.debug(f"Skip {record['slug']}: {e}")
        else:
            counts["added"] += 1
    return counts


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import article records from JSON")
    parser.add_argument("path", nargs="?", type=Path, help="JSON file with article records")
    parser.add_argument("--demo", action="store_true", help="Import the bundled demo articles")
    parser.add_argument("--replace", action="store_true", help="Overwrite articles with the same slug")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    if bool(args.path) == bool(args.demo):
        parser.error("give either a JSON file or --demo")

    configure_logging()
    try:
        records = load_demo_articles() if args.demo else load_records(args.path)
    except (OSError, ValueError) as e:
        logger.error(f"Cannot read articles: {e}")
        return 1

    store = build_store(settings.db, seed_demo=False)
    if store.is_demo:
        logger.warning("No database configured (MEDDIGEST_DB_URL); imported articles are discarded on exit")

    counts = import_records(store, records, replace=args.replace)
    logger.success(f"Imported {counts['added']} articles ({counts['skipped']} skipped, {counts['invalid']} invalid)")
    return 1 if counts["invalid"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
