"""Unit tests for the fetch, summarize and store pipeline."""

from __future__ import annotations

from datetime import date

import pytest

from backend.schemas.articles import SummaryDraft
from backend.services import content_service, llm_service
from mdstore.pubmed import ArticleDraft
from mdstore.repositories import memory_store

ABSTRACT = "A" * 150


def _draft(pmid: str, title: str) -> ArticleDraft:
    return ArticleDraft(pmid=pmid, title=title, journal="Lancet", abstract=ABSTRACT, doi=f"10.1/{pmid}")


def _summarizer(draft: ArticleDraft, label: str) -> SummaryDraft:
    return SummaryDraft(title=f"{label}: {draft.title}", key_messages=["finding"], study_n=10)


@pytest.fixture
def empty_store():
    return memory_store(seed_demo=False)


@pytest.fixture(autouse=True)
def no_llm(monkeypatch):
    monkeypatch.setattr(llm_service, "llm_configured", lambda: False)


def test_base36():
    assert content_service._base36(0) == "0"
    assert content_service._base36(35) == "z"
    assert content_service._base36(36) == "10"


def test_generate_slug():
    assert content_service.generate_slug("SGLT2 Inhibitors: A New Era in HF care!", now_ms=36) == (
        "sglt2-inhibitors-a-new-10"
    )
    assert content_service.generate_slug("!!!", now_ms=1) == "article-1"


class TestIngestTopic:
    def test_saves_new_papers(self, empty_store):
        drafts = [_draft("1", "First trial of drug"), _draft("2", "Second cohort study")]
        seen = {}

        def fetcher(term, max_results):
            seen.update(term=term, max_results=max_results)
            return drafts

        result = content_service.ingest_topic(
            empty_store,
            "cardiovascular",
            term="heart failure",
            max_results=5,
            today=date(2026, 3, 1),
            fetcher=fetcher,
            summarizer=_summarizer,
        )

        assert seen == {"term": "heart failure", "max_results": 5}
        assert result == {
            "topic": "cardiovascular",
            "term": "heart failure",
            "searched": 2,
            "saved": 2,
            "skipped": 0,
            "errors": 0,
        }
        stored = empty_store.articles.list(topic="cardiovascular")
        assert {a["pmid"] for a in stored} == {"1", "2"}
        article = next(a for a in stored if a["pmid"] == "1")
        assert article["title"] == "Cardiovascular: First trial of drug"
        assert article["original_title"] == "First trial of drug"
        assert article["published_at"] == "2026-03-01"
        assert article["tier"] == "basic"
        assert article["slug"].startswith("first-trial-of-drug-")

    def test_known_pmids_are_skipped(self, empty_store):
        content_service.ingest_topic(
            empty_store, "aging", term="t", fetcher=lambda *_: [_draft("1", "Old paper")], summarizer=_summarizer
        )
        calls = []

        def summarizer(draft, label):
            calls.append(draft.pmid)
            return _summarizer(draft, label)

        result = content_service.ingest_topic(
            empty_store,
            "aging",
            term="t",
            fetcher=lambda *_: [_draft("1", "Old paper"), _draft("3", "Fresh paper")],
            summarizer=summarizer,
        )
        assert (result["saved"], result["skipped"]) == (1, 1)
        assert calls == ["3"]

    def test_summarizer_failure_counts_error_and_continues(self, empty_store):
        def summarizer(draft, label):
            if draft.pmid == "1":
                raise RuntimeError("boom")
            return _summarizer(draft, label)

        result = content_service.ingest_topic(
            empty_store,
            "diabetes",
            term="t",
            fetcher=lambda *_: [_draft("1", "Broken paper"), _draft("2", "Good paper")],
            summarizer=summarizer,
        )
        assert (result["saved"], result["errors"]) == (1, 1)

    def test_pause_only_when_llm_configured(self, empty_store, monkeypatch):
        pauses = []
        fetcher = lambda *_: [_draft("1", "Paper one"), _draft("2", "Paper two")]  # noqa: E731
        content_service.ingest_topic(
            empty_store, "aging", term="t", fetcher=fetcher, summarizer=_summarizer, pause=pauses.append
        )
        assert pauses == []

        monkeypatch.setattr(llm_service, "llm_configured", lambda: True)
        fetcher = lambda *_: [_draft("3", "Paper three")]  # noqa: E731
        content_service.ingest_topic(
            empty_store, "aging", term="t", fetcher=fetcher, summarizer=_summarizer, pause=pauses.append
        )
        assert pauses == [content_service.LLM_DELAY_S]

    def test_term_defaults_to_topic_terms(self, empty_store):
        seen = []
        content_service.ingest_topic(
            empty_store, "endocrine", fetcher=lambda term, n: seen.append(term) or [], summarizer=_summarizer
        )
        assert seen[0] in content_service.TOPIC_SEARCH_TERMS["endocrine"]


def test_fetch_failure_counts_error(empty_store):
    def fetcher(term, max_results):
        raise AttributeError("'NoneType' object has no attribute 'get'")

    result = content_service.ingest_topic(empty_store, "aging", term="t", fetcher=fetcher, summarizer=_summarizer)
    assert (result["searched"], result["saved"], result["errors"]) == (0, 0, 1)


def test_one_failing_topic_does_not_stop_the_update(empty_store):
    def fetcher(term, max_results):
        if term in content_service.TOPIC_SEARCH_TERMS["endocrine"]:
            raise RuntimeError("upstream exploded")
        return [_draft(term, f"Paper about {term}")]

    totals = content_service.run_daily_update(empty_store, fetcher=fetcher, summarizer=_summarizer)
    assert (totals["saved"], totals["errors"]) == (3, 1)
    assert [t["errors"] for t in totals["topics"]] == [0, 1, 0, 0]


def test_run_daily_update_aggregates(empty_store):
    pmids = iter(range(100))

    def fetcher(term, max_results):
        n = next(pmids)
        return [_draft(str(n), f"Paper number {n}")]

    totals = content_service.run_daily_update(empty_store, fetcher=fetcher, summarizer=_summarizer)
    assert totals["saved"] == 4
    assert totals["searched"] == 4
    assert [t["topic"] for t in totals["topics"]] == ["cardiovascular", "endocrine", "aging", "diabetes"]
    assert empty_store.articles.count() == 4


def test_run_daily_update_subset(empty_store):
    totals = content_service.run_daily_update(
        empty_store, ["aging"], fetcher=lambda *_: [], summarizer=_summarizer
    )
    assert [t["topic"] for t in totals["topics"]] == ["aging"]
    assert totals["saved"] == 0
