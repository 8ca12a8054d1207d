"""
Repository Layer - typed operations over the storage backend.

Each repository corresponds to one business domain (User, Session, Article,
Subscriber, ...). Repositories are instances bound to a backend, so the web
app, the tools and the tests can each hand in their own store.

Usage examples:
    from mdstore.repositories import build_store

    store = build_store(settings.db)
    article = store.articles.get("sglt2-heart-failure-2026")
    for sub in store.subscribers.list_active():
        ...
"""

from __future__ import annotations

import secrets
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from loguru import logger

from mdstore.db import DuplicateKeyError, MemoryBackend, open_backend

# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------


def utcnow_iso() -> str:
    """Current UTC time as an ISO 8601 string with seconds precision."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def user_item_key(user_id: str, item: str) -> str:
    """Generate a per-user composite key."""
    return f"{user_id}::{item}"


def parse_user_item_key(key: str) -> Tuple[str, str]:
    """Parse a per-user composite key into (user_id, item)."""
    parts = key.split("::", 1)
    if len(parts) == 2:
        return parts[0], parts[1]
    return "", ""


def new_id() -> str:
    return uuid.uuid4().hex[:16]


# -----------------------------------------------------------------------------
# User Repository
# -----------------------------------------------------------------------------


class UserRepository:
    """Accounts, keyed by id, with a unique email index."""

    def __init__(self, backend):
        self.backend = backend

    def create(self, email: str, nickname: str, password_hash: str, tier: str = "basic") -> dict:
        """
        Create a user.

        The email index is reserved first with an insert-if-absent, so two
        concurrent signups for the same email cannot both succeed.

        Raises:
            DuplicateKeyError: email already registered
        """
        user = {
            "id": new_id(),
            "email": email,
            "nickname": nickname,
            "password_hash": password_hash,
            "profile_image": None,
            "tier": tier,
            "created_at": utcnow_iso(),
        }
        with self.backend.open("user_emails") as idx:
            if not idx.insert_new(email, user["id"]):
                raise DuplicateKeyError("user_emails", email)
            try:
                with self.backend.open("users") as udb:
                    udb[user["id"]] = user
            except Exception:
                idx.pop(email)
                raise
        return user

    def get(self, user_id: str) -> Optional[dict]:
        if not user_id:
            return None
        with self.backend.open("users") as udb:
            return udb.get(user_id)

    def get_by_email(self, email: str) -> Optional[dict]:
        with self.backend.open("user_emails") as idx:
            user_id = idx.get(email)
        return self.get(user_id) if user_id else None

    def set_tier(self, email: str, tier: str) -> bool:
        """Change a user's access tier. Returns False when the user does not exist."""
        with self.backend.open("user_emails") as idx:
            user_id = idx.get(email)
        if not user_id:
            return False
        with self.backend.open("users") as udb:
            with udb.transaction():
                user = udb.get(user_id)
                if user is None:
                    return False
                user["tier"] = tier
                udb[user_id] = user
        return True

    def count(self) -> int:
        with self.backend.open("users") as udb:
            return len(udb)


# -----------------------------------------------------------------------------
# Session Repository
# -----------------------------------------------------------------------------


class SessionRepository:
    """Opaque session tokens. Key: token. Value: {user_id, expires_at, created_at}."""

    def __init__(self, backend):
        self.backend = backend

    def create(self, user_id: str, ttl_seconds: int, now: Optional[float] = None) -> dict:
        now = time.time() if now is None else now
        session = {
            "token": secrets.token_urlsafe(32),
            "user_id": user_id,
            "expires_at": now + ttl_seconds,
            "created_at": now,
        }
        with self.backend.open("sessions") as sdb:
            sdb[session["token"]] = session
        return session

    def get(self, token: str) -> Optional[dict]:
        if not token:
            return None
        with self.backend.open("sessions") as sdb:
            return sdb.get(token)

    def delete(self, token: str) -> bool:
        if not token:
            return False
        with self.backend.open("sessions") as sdb:
            return sdb.pop(token) is not None

    def purge_expired(self, now: Optional[float] = None) -> int:
        """Delete expired sessions. Returns the number removed."""
        now = time.time() if now is None else now
        removed = 0
        with self.backend.open("sessions") as sdb:
            expired = [token for token, s in sdb.items() if float(s.get("expires_at") or 0) <= now]
            for token in expired:
                if sdb.pop(token) is not None:
                    removed += 1
        return removed


# -----------------------------------------------------------------------------
# Article Repository
# -----------------------------------------------------------------------------


class ArticleRepository:
    """Articles keyed by slug, with a PMID index for dedupe."""

    def __init__(self, backend):
        self.backend = backend

    @staticmethod
    def _prepare(record: dict) -> dict:
        article = dict(record)
        article.setdefault("id", new_id())
        article.setdefault("created_at", utcnow_iso())
        article["key_messages"] = list(article.get("key_messages") or [])
        return article

    def add(self, record: dict) -> dict:
        """
        Insert a new article.

        Raises:
            DuplicateKeyError: slug or PMID already stored
        """
        article = self._prepare(record)
        slug = article["slug"]
        pmid = str(article.get("pmid") or "")
        if pmid:
            with self.backend.open("article_pmids") as pdb:
                if not pdb.insert_new(pmid, slug):
                    raise DuplicateKeyError("article_pmids", pmid)
        with self.backend.open("articles") as adb:
            if not adb.insert_new(slug, article):
                if pmid:
                    with self.backend.open("article_pmids") as pdb:
                        pdb.pop(pmid)
                raise DuplicateKeyError("articles", slug)
        return article

    def upsert(self, record: dict) -> dict:
        """Insert or replace an article by slug, keeping its id if it existed."""
        with self.backend.open("articles") as adb:
            existing = adb.get(record["slug"])
            article = dict(record)
            if existing is not None:
                article.setdefault("id", existing.get("id"))
                article.setdefault("created_at", existing.get("created_at"))
            article = self._prepare(article)
            adb[article["slug"]] = article
        pmid = str(article.get("pmid") or "")
        if pmid:
            with self.backend.open("article_pmids") as pdb:
                pdb[pmid] = article["slug"]
        return article

    def get(self, slug: str) -> Optional[dict]:
        if not slug:
            return None
        with self.backend.open("articles") as adb:
            return adb.get(slug)

    def get_many(self, slugs: List[str]) -> Dict[str, dict]:
        with self.backend.open("articles") as adb:
            return adb.get_many(list(slugs))

    def has_pmid(self, pmid: str) -> bool:
        with self.backend.open("article_pmids") as pdb:
            return str(pmid) in pdb

    def _sorted(self, topic: Optional[str] = None) -> List[dict]:
        with self.backend.open("articles") as adb:
            articles = list(adb.values())
        if topic:
            articles = [a for a in articles if a.get("topic") == topic]
        # sorted() is stable, so ties keep insertion order
        return sorted(articles, key=lambda a: a.get("published_at") or "", reverse=True)

    def list(self, topic: Optional[str] = None, limit: Optional[int] = None, offset: int = 0) -> List[dict]:
        """Articles newest first, optionally filtered by topic."""
        articles = self._sorted(topic)
        end = None if limit is None else offset + limit
        return articles[offset:end]

    def recent(self, since: str, limit: int) -> List[dict]:
        """Articles with published_at >= since (YYYY-MM-DD), newest first."""
        return [a for a in self._sorted() if (a.get("published_at") or "") >= since][:limit]

    def topics(self) -> List[str]:
        seen: Dict[str, None] = {}
        for article in self._sorted():
            if article.get("topic"):
                seen.setdefault(article["topic"], None)
        return list(seen)

    def count(self) -> int:
        with self.backend.open("articles") as adb:
            return len(adb)


# -----------------------------------------------------------------------------
# Subscriber Repository
# -----------------------------------------------------------------------------


class SubscriberRepository:
    """Newsletter subscribers keyed by lowercased email."""

    def __init__(self, backend):
        self.backend = backend

    def get(self, email: str) -> Optional[dict]:
        with self.backend.open("subscribers") as sdb:
            return sdb.get(email)

    def subscribe(self, email: str, name: Optional[str] = None) -> Tuple[dict, bool]:
        """
        Create or reactivate a subscription.

        Returns:
            (subscriber, created) where created is False for a reactivation

        Raises:
            DuplicateKeyError: the email is already actively subscribed
        """
        now = utcnow_iso()
        with self.backend.open("subscribers") as sdb:
            with sdb.transaction():
                existing = sdb.get(email)
                if existing is not None:
                    if existing.get("status") == "active":
                        raise DuplicateKeyError("subscribers", email)
                    existing.update(
                        {
                            "status": "active",
                            "subscribed_at": now,
                            "unsubscribed_at": None,
                        }
                    )
                    if name:
                        existing["name"] = name
                    sdb[email] = existing
                    return existing, False

                subscriber = {
                    "email": email,
                    "name": name or None,
                    "status": "active",
                    "subscribed_at": now,
                    "unsubscribed_at": None,
                    "last_email_sent_at": None,
                    "emails_sent": 0,
                }
                sdb[email] = subscriber
                return subscriber, True

    def unsubscribe(self, email: str) -> bool:
        """Mark a subscriber as unsubscribed. Returns False when the email is unknown."""
        with self.backend.open("subscribers") as sdb:
            with sdb.transaction():
                existing = sdb.get(email)
                if existing is None:
                    return False
                if existing.get("status") != "unsubscribed":
                    existing["status"] = "unsubscribed"
                    existing["unsubscribed_at"] = utcnow_iso()
                    sdb[email] = existing
                return True

    def list_active(self) -> List[dict]:
        with self.backend.open("subscribers") as sdb:
            return [s for s in sdb.values() if s.get("status") == "active"]

    def record_sent(self, email: str, sent_at: Optional[str] = None) -> None:
        with self.backend.open("subscribers") as sdb:
            with sdb.transaction():
                existing = sdb.get(email)
                if existing is None:
                    return
                existing["last_email_sent_at"] = sent_at or utcnow_iso()
                existing["emails_sent"] = int(existing.get("emails_sent") or 0) + 1
                sdb[email] = existing

    def stats(self) -> Dict[str, int]:
        total = active = 0
        with self.backend.open("subscribers") as sdb:
            for s in sdb.values():
                total += 1
                if s.get("status") == "active":
                    active += 1
        return {"total": total, "active": active, "unsubscribed": total - active}


# -----------------------------------------------------------------------------
# Bookmark / Read History Repositories
# -----------------------------------------------------------------------------


class BookmarkRepository:
    """
    Bookmarks with atomic per-entry storage.
    Key format: "user_id::slug"
    Value: {user_id, slug, created_at}
    """

    def __init__(self, backend):
        self.backend = backend

    def add(self, user_id: str, slug: str) -> bool:
        """Add a bookmark. Returns False when it already existed."""
        entry = {"user_id": user_id, "slug": slug, "created_at": utcnow_iso()}
        with self.backend.open("bookmarks") as bdb:
            return bdb.insert_new(user_item_key(user_id, slug), entry)

    def remove(self, user_id: str, slug: str) -> bool:
        with self.backend.open("bookmarks") as bdb:
            return bdb.pop(user_item_key(user_id, slug)) is not None

    def list_for_user(self, user_id: str) -> List[dict]:
        """Bookmarks of one user, newest first."""
        with self.backend.open("bookmarks") as bdb:
            entries = [value for _, value in bdb.items_with_prefix(f"{user_id}::")]
        entries.reverse()
        return entries


class ReadHistoryRepository:
    """
    Article views of authenticated users.
    Key format: "user_id::<unique suffix>"
    Value: {user_id, article_id, slug, read_at}
    """

    def __init__(self, backend):
        self.backend = backend

    def add(self, user_id: str, article: dict) -> dict:
        entry = {
            "user_id": user_id,
            "article_id": article.get("id"),
            "slug": article.get("slug"),
            "read_at": utcnow_iso(),
        }
        with self.backend.open("read_history") as hdb:
            hdb[user_item_key(user_id, new_id())] = entry
        return entry

    def list_for_user(self, user_id: str, limit: Optional[int] = None) -> List[dict]:
        """Read history of one user, newest first."""
        with self.backend.open("read_history") as hdb:
            entries = [value for _, value in hdb.items_with_prefix(f"{user_id}::")]
        entries.reverse()
        return entries[:limit] if limit else entries


# -----------------------------------------------------------------------------
# Newsletter Log Repository
# -----------------------------------------------------------------------------


class NewsletterLogRepository:
    """One entry per digest run."""

    def __init__(self, backend):
        self.backend = backend

    def add(self, subject: str, total: int, successful: int, failed: int, article_ids: List[str]) -> dict:
        entry = {
            "id": new_id(),
            "subject": subject,
            "total_recipients": total,
            "successful": successful,
            "failed": failed,
            "article_ids": list(article_ids),
            "sent_at": utcnow_iso(),
        }
        with self.backend.open("newsletter_logs") as ldb:
            ldb[entry["id"]] = entry
        return entry

    def recent(self, limit: int = 10) -> List[dict]:
        with self.backend.open("newsletter_logs") as ldb:
            entries = list(ldb.values())
        entries.reverse()
        return entries[:limit]


# -----------------------------------------------------------------------------
# Store bundle
# -----------------------------------------------------------------------------


class DataStore:
    """All repositories over one backend."""

    def __init__(self, backend):
        self.backend = backend
        self.users = UserRepository(backend)
        self.sessions = SessionRepository(backend)
        self.articles = ArticleRepository(backend)
        self.subscribers = SubscriberRepository(backend)
        self.bookmarks = BookmarkRepository(backend)
        self.history = ReadHistoryRepository(backend)
        self.newsletter_logs = NewsletterLogRepository(backend)

    @property
    def kind(self) -> str:
        return self.backend.kind

    @property
    def is_demo(self) -> bool:
        return self.backend.kind == "memory"

    def seed_articles(self, records: List[dict]) -> int:
        """Store articles that are not present yet. Returns the number added."""
        added = 0
        for record in records:
            try:
                self.articles.add(record)
                added += 1
            except DuplicateKeyError:
                logger.debug(f"Skip existing article {record.get('slug')}")
        return added


def build_store(db_settings=None, *, seed_demo: Optional[bool] = None) -> DataStore:
    """
    Build a DataStore from DatabaseSettings (defaults to the global settings).

    The in-memory backend is seeded with the bundled demo articles unless
    seeding is disabled.
    """
    if db_settings is None:
        from config import settings

        db_settings = settings.db

    store = DataStore(open_backend(db_settings))
    if seed_demo is None:
        seed_demo = bool(db_settings.seed_demo)
    if store.is_demo and seed_demo:
        from mdstore.demo import load_demo_articles

        added = store.seed_articles(load_demo_articles())
        logger.info(f"Seeded {added} demo articles")
    return store


def memory_store(seed_demo: bool = False) -> DataStore:
    """A fresh in-memory store, optionally seeded with the demo articles."""
    store = DataStore(MemoryBackend())
    if seed_demo:
        from mdstore.demo import load_demo_articles

        store.seed_articles(load_demo_articles())
    return store
