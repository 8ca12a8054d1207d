"""Content pipeline: fetch recent papers per topic, summarize, store."""

from __future__ import annotations

import random
import re
import time
from datetime import date
from typing import Callable

from loguru import logger

from config import settings
from mdstore.db import DuplicateKeyError
from mdstore.pubmed import ArticleDraft, fetch_recent_papers
from mdstore.repositories import DataStore

from ..schemas.articles import SummaryDraft
from . import llm_service
from .article_service import TOPIC_LABELS

# Topic key -> PubMed search terms; one term is picked per run
TOPIC_SEARCH_TERMS: dict[str, list[str]] = {
    "cardiovascular": ["cardiovascular disease", "heart failure", "SGLT2 inhibitor", "anticoagulation"],
    "endocrine": ["GLP-1 agonist", "obesity treatment", "thyroid", "metabolic syndrome"],
    "aging": ["aging longevity", "senolytic", "NAD supplement", "healthspan"],
    "diabetes": ["diabetes mellitus", "glucose monitoring", "insulin therapy", "diabetic complications"],
}

# Pause between LLM calls
LLM_DELAY_S = 1.0

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(n: int) -> str:
    if n <= 0:
        return "0"
    out = []
    while n:
        n, rem = divmod(n, 36)
        out.append(_BASE36[rem])
    return "".join(reversed(out))


def generate_slug(title: str, now_ms: int | None = None, max_words: int = 4) -> str:
    """First words of the title plus a base-36 millisecond timestamp."""
    words = re.sub(r"[^a-z0-9\s]", "", (title or "").lower()).split()[:max_words]
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    stem = "-".join(words) or "article"
    return f"{stem}-{_base36(now_ms)}"


def build_article(
    draft: ArticleDraft,
    summary: SummaryDraft,
    topic: str,
    *,
    published_at: str,
    tier: str,
    slug: str | None = None,
) -> dict:
    return {
        "slug": slug or generate_slug(draft.title),
        "title": summary.title,
        "original_title": draft.title,
        "journal": draft.journal,
        "doi": draft.doi or None,
        "pmid": draft.pmid,
        "topic": topic,
        "tier": tier,
        "key_messages": list(summary.key_messages),
        "study_n": summary.study_n,
        "study_endpoint": summary.study_endpoint,
        "study_limitations": summary.study_limitations,
        "clinical_insight": summary.clinical_insight,
        "published_at": published_at,
        "source": draft.source,
    }


def ingest_topic(
    store: DataStore,
    topic: str,
    *,
    term: str | None = None,
    max_results: int | None = None,
    today: date | None = None,
    fetcher: Callable[..., list[ArticleDraft]] = fetch_recent_papers,
    summarizer: Callable[[ArticleDraft, str], SummaryDraft] = llm_service.summarize_draft,
    pause: Callable[[float], None] = time.sleep,
) -> dict:
    """Fetch, summarize and store new papers for one topic."""
    label = TOPIC_LABELS.get(topic, topic.title())
    term = term or random.choice(TOPIC_SEARCH_TERMS.get(topic) or [topic])
    max_results = max_results or settings.content.papers_per_topic
    published_at = (today or date.today()).isoformat()
    result = {"topic": topic, "term": term, "searched": 0, "saved": 0, "skipped": 0, "errors": 0}

    logger.info(f"Searching {label}: {term}")
    try:
        drafts = fetcher(term, max_results)
    except Exception:
        logger.opt(exception=True).warning(f"Fetch failed for {label}: {term}")
        result["errors"] += 1
        return result
    result["searched"] = len(drafts)
    use_delay = llm_service.llm_configured()

    for draft in drafts:
        if store.articles.has_pmid(draft.pmid):
            logger.debug(f"Skip duplicate PMID {draft.pmid}")
            result["skipped"] += 1
            continue
        try:
            summary = summarizer(draft, label)
            article = build_article(
                draft,
                summary,
                topic,
                published_at=published_at,
                tier=settings.content.default_tier,
            )
            store.articles.add(article)
        except DuplicateKeyError:
            result["skipped"] += 1
            continue
        except Exception:
            logger.opt(exception=True).warning(f"Failed to store PMID {draft.pmid}")
            result["errors"] += 1
            continue
        result["saved"] += 1
        logger.info(f"Saved {article['slug']}")
        if use_delay:
            pause(LLM_DELAY_S)

    return result


def run_daily_update(store: DataStore, topics: list[str] | None = None, **kwargs) -> dict:
    """Run `ingest_topic` for every topic and aggregate the counts."""
    topics = topics or list(TOPIC_SEARCH_TERMS)
    totals = {"searched": 0, "saved": 0, "skipped": 0, "errors": 0, "topics": []}
    for topic in topics:
        res = ingest_topic(store, topic, **kwargs)
        totals["topics"].append(res)
        for key in ("searched", "saved", "skipped", "errors"):
            totals[key] += res[key]
    logger.info(
        f"Daily update done: {totals['saved']} saved, {totals['skipped']} skipped, {totals['errors']} errors"
    )
    return totals
