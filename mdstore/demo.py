"""Bundled demo articles used when no database is configured."""

from __future__ import annotations

import json
from pathlib import Path

DEMO_ARTICLES_FILE = Path(__file__).resolve().parent / "demo_articles.json"


def load_demo_articles(path: Path | None = None) -> list[dict]:
    """Load the demo article records (oldest last)."""
    with open(path or DEMO_ARTICLES_FILE, encoding="utf-8") as f:
        return json.load(f)
