"""Unit tests for listing, tier gating, bookmarks and reading history."""

from __future__ import annotations

import pytest

from backend.errors import AccessDeniedError, NotFoundError
from backend.services import article_service
from config import settings

BASIC_SLUG = "sglt2-heart-failure-2026"
PRO_SLUG = "tirzepatide-diabetes-2026"


@pytest.fixture
def basic_user(store):
    user = store.users.create("basic@example.com", "Basic", "hash")
    return {"id": user["id"], "email": user["email"], "nickname": "Basic", "tier": "basic"}


@pytest.fixture
def pro_user(store):
    user = store.users.create("pro@example.com", "Pro", "hash", tier="pro")
    return {"id": user["id"], "email": user["email"], "nickname": "Pro", "tier": "pro"}


class TestListing:
    def test_newest_first_with_summary_fields(self, store):
        articles = article_service.list_articles(store, None)
        assert len(articles) == 8
        assert articles[0]["slug"] == BASIC_SLUG
        dates = [a["published_at"] for a in articles]
        assert dates == sorted(dates, reverse=True)
        assert set(articles[0]) == set(article_service.SUMMARY_FIELDS) | {"locked"}

    def test_topic_filter_and_paging(self, store):
        aging = article_service.list_articles(store, None, topic="aging")
        assert {a["topic"] for a in aging} == {"aging"}
        assert len(aging) == 2

        page = article_service.list_articles(store, None, limit=3, offset=2)
        assert [a["slug"] for a in page] == [
            a["slug"] for a in article_service.list_articles(store, None)[2:5]
        ]
        assert article_service.list_articles(store, None, topic="dermatology") == []

    def test_pro_articles_are_locked_for_anonymous(self, store):
        by_slug = {a["slug"]: a for a in article_service.list_articles(store, None)}
        assert by_slug[BASIC_SLUG]["locked"] is False
        assert by_slug[PRO_SLUG]["locked"] is True
        assert len(by_slug[PRO_SLUG]["key_messages"]) == article_service.PREVIEW_KEY_MESSAGES

    def test_pro_user_sees_everything(self, store, pro_user):
        assert not any(a["locked"] for a in article_service.list_articles(store, pro_user))


class TestDetail:
    def test_basic_article_open_to_anyone(self, store):
        article = article_service.get_article(store, BASIC_SLUG, None)
        assert article["clinical_insight"]
        assert article["study_limitations"]

    def test_unknown_slug(self, store):
        with pytest.raises(NotFoundError) as exc:
            article_service.get_article(store, "no-such-article", None)
        assert exc.value.status_code == 404

    def test_pro_article_denied_with_preview(self, store, basic_user):
        with pytest.raises(AccessDeniedError) as exc:
            article_service.get_article(store, PRO_SLUG, basic_user)
        assert exc.value.status_code == 403
        preview = exc.value.extra["preview"]
        assert preview["slug"] == PRO_SLUG
        assert preview["locked"] is True
        assert "clinical_insight" not in preview

    def test_pro_article_for_pro_user(self, store, pro_user):
        article = article_service.get_article(store, PRO_SLUG, pro_user)
        assert article["tier"] == "pro"

    def test_gating_can_be_switched_off(self, store, monkeypatch):
        monkeypatch.setattr(settings.content, "tier_gating", False)
        assert article_service.get_article(store, PRO_SLUG, None)["slug"] == PRO_SLUG
        assert not any(a["locked"] for a in article_service.list_articles(store, None))

    def test_reads_are_recorded_for_users_only(self, store, basic_user):
        article_service.get_article(store, BASIC_SLUG, None)
        article_service.get_article(store, BASIC_SLUG, basic_user)
        history = article_service.list_history(store, basic_user)
        assert [h["slug"] for h in history] == [BASIC_SLUG]
        assert history[0]["read_at"]

    def test_history_failure_does_not_break_read(self, store, basic_user, monkeypatch):
        def boom(*_args):
            raise RuntimeError("disk full")

        monkeypatch.setattr(store.history, "add", boom)
        assert article_service.get_article(store, BASIC_SLUG, basic_user)["slug"] == BASIC_SLUG


class TestBookmarks:
    def test_add_list_remove(self, store, basic_user):
        assert article_service.add_bookmark(store, basic_user, BASIC_SLUG) is True
        assert article_service.add_bookmark(store, basic_user, BASIC_SLUG) is False
        article_service.add_bookmark(store, basic_user, PRO_SLUG)

        bookmarks = article_service.list_bookmarks(store, basic_user)
        assert [b["slug"] for b in bookmarks] == [PRO_SLUG, BASIC_SLUG]
        assert bookmarks[0]["locked"] is True
        assert bookmarks[0]["bookmarked_at"]

        assert article_service.remove_bookmark(store, basic_user, BASIC_SLUG) is True
        assert article_service.remove_bookmark(store, basic_user, BASIC_SLUG) is False

    def test_bookmark_unknown_article(self, store, basic_user):
        with pytest.raises(NotFoundError):
            article_service.add_bookmark(store, basic_user, "missing")


def test_topics_known_first(store):
    store.articles.add(
        {
            "slug": "derm-1",
            "title": "t",
            "journal": "j",
            "topic": "dermatology",
            "tier": "basic",
            "key_messages": ["m"],
            "published_at": "2026-03-01",
        }
    )
    topics = article_service.list_topics(store)
    assert [t["key"] for t in topics] == ["cardiovascular", "endocrine", "aging", "diabetes", "dermatology"]
    assert topics[0]["label"] == "Cardiovascular"
    assert topics[-1]["label"] == "Dermatology"
