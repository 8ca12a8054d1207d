"""Article service.

Listing, detail lookup with the access-tier policy, bookmarks and reading
history. Articles are addressed by slug everywhere outside the store.
"""

from __future__ import annotations

from loguru import logger

from config import settings
from mdstore.repositories import DataStore

from ..errors import AccessDeniedError, NotFoundError

SUMMARY_FIELDS = ("id", "slug", "title", "journal", "topic", "tier", "key_messages", "published_at")

# Topic key -> display label
TOPIC_LABELS = {
    "cardiovascular": "Cardiovascular",
    "endocrine": "Endocrine",
    "aging": "Aging",
    "diabetes": "Diabetes",
}

# Key messages shown to users who cannot open a pro article
PREVIEW_KEY_MESSAGES = 1


def has_pro_access(user: dict | None) -> bool:
    return bool(user) and user.get("tier") == "pro"


def is_locked(article: dict, user: dict | None) -> bool:
    """True when tier gating hides this article's body from the user."""
    if not settings.content.tier_gating:
        return False
    return article.get("tier") == "pro" and not has_pro_access(user)


def to_summary(article: dict, user: dict | None = None) -> dict:
    """Project an article to its listing fields."""
    summary = {field: article.get(field) for field in SUMMARY_FIELDS}
    summary["key_messages"] = list(summary.get("key_messages") or [])
    summary["locked"] = is_locked(article, user)
    if summary["locked"]:
        summary["key_messages"] = summary["key_messages"][:PREVIEW_KEY_MESSAGES]
    return summary


def list_articles(
    store: DataStore,
    user: dict | None = None,
    *,
    topic: str | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[dict]:
    """Articles newest first, projected to summary fields."""
    limit = settings.content.list_limit if limit is None else limit
    articles = store.articles.list(topic=topic or None, limit=limit, offset=offset)
    return [to_summary(a, user) for a in articles]


def get_article(store: DataStore, slug: str, user: dict | None = None) -> dict:
    """Full article for the viewer.

    Raises:
        NotFoundError: unknown slug
        AccessDeniedError: pro article for a non-pro viewer while gating is on;
            carries a `preview` with summary fields only
    """
    article = store.articles.get(slug)
    if article is None:
        raise NotFoundError("Article not found")
    if is_locked(article, user):
        raise AccessDeniedError("Pro subscription required", preview=to_summary(article, user))
    if user is not None:
        record_read(store, user, article)
    return article


def record_read(store: DataStore, user: dict, article: dict) -> None:
    """Append a reading-history row; failures never reach the caller."""
    try:
        store.history.add(user["id"], article)
    except Exception:
        logger.opt(exception=True).warning(f"Failed to record read of {article.get('slug')}")


def list_topics(store: DataStore) -> list[dict]:
    """Known topics first, then any other topic present in the store."""
    keys = list(TOPIC_LABELS)
    for topic in store.articles.topics():
        if topic not in keys:
            keys.append(topic)
    return [{"key": key, "label": TOPIC_LABELS.get(key, key.title())} for key in keys]


def list_bookmarks(store: DataStore, user: dict) -> list[dict]:
    entries = store.bookmarks.list_for_user(user["id"])
    articles = store.articles.get_many([e["slug"] for e in entries])
    out = []
    for entry in entries:
        article = articles.get(entry["slug"])
        if article is None:
            continue
        item = to_summary(article, user)
        item["bookmarked_at"] = entry.get("created_at")
        out.append(item)
    return out


def add_bookmark(store: DataStore, user: dict, slug: str) -> bool:
    """Bookmark an article. Returns False when it was already bookmarked."""
    if store.articles.get(slug) is None:
        raise NotFoundError("Article not found")
    return store.bookmarks.add(user["id"], slug)


def remove_bookmark(store: DataStore, user: dict, slug: str) -> bool:
    return store.bookmarks.remove(user["id"], slug)


def list_history(store: DataStore, user: dict, limit: int = 50) -> list[dict]:
    entries = store.history.list_for_user(user["id"], limit=limit)
    articles = store.articles.get_many(list({e["slug"] for e in entries if e.get("slug")}))
    out = []
    for entry in entries:
        article = articles.get(entry.get("slug"))
        if article is None:
            continue
        item = to_summary(article, user)
        item["read_at"] = entry.get("read_at")
        out.append(item)
    return out
