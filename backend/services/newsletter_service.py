"""Newsletter service.

Subscription lifecycle and the digest sender. Templates are rendered with
Flask's Jinja environment, so digest sending needs an app context (the web
routes have one; the tools push one).
"""

from __future__ import annotations

import time
from datetime import date, timedelta
from typing import Callable
from urllib.parse import quote

from flask import render_template
from loguru import logger

from config import settings
from mdstore.db import DuplicateKeyError
from mdstore.repositories import DataStore

from ..errors import DuplicateError, MedDigestError, UpstreamError, ValidationError
from ..utils.validation import is_valid_email, normalize_email
from .article_service import TOPIC_LABELS

MSG_INVALID_EMAIL = "Please enter a valid email address."
MSG_ALREADY_SUBSCRIBED = "This email is already subscribed."
MSG_SUBSCRIBED = "You're subscribed to the newsletter!"

# Key messages per article in the digest
DIGEST_KEY_MESSAGES = 2


def unsubscribe_url(email: str) -> str:
    return f"{settings.host}/api/newsletter/unsubscribe?email={quote(email)}"


def article_url(slug: str) -> str:
    return f"{settings.host}/article/{quote(slug)}"


def digest_subject(today: date) -> str:
    return f"📚 {settings.app_name} Daily - {today.isoformat()}"


def render_digest(articles: list[dict], email: str, today: date) -> str:
    items = [
        {
            "title": a.get("title"),
            "journal": a.get("journal"),
            "topic": TOPIC_LABELS.get(a.get("topic") or "", a.get("topic")),
            "published_at": a.get("published_at"),
            "key_messages": list(a.get("key_messages") or [])[:DIGEST_KEY_MESSAGES],
            "url": article_url(a["slug"]),
        }
        for a in articles
    ]
    return render_template(
        "email/digest.html",
        app_name=settings.app_name,
        today=today.isoformat(),
        articles=items,
        unsubscribe_url=unsubscribe_url(email),
        site_url=settings.host,
    )


def send_welcome(mailer, subscriber: dict) -> bool:
    """Send the welcome email. Failures are logged and reported as False."""
    if not settings.email.welcome_email or not mailer.configured:
        return False
    try:
        html = render_template(
            "email/welcome.html",
            app_name=settings.app_name,
            name=subscriber.get("name"),
            unsubscribe_url=unsubscribe_url(subscriber["email"]),
            site_url=settings.host,
        )
        mailer.send(subscriber["email"], f"Welcome to {settings.app_name}", html)
        return True
    except Exception:
        logger.opt(exception=True).warning(f"Welcome email to {subscriber['email']} failed")
        return False


def subscribe(store: DataStore, mailer, email: str, name: str | None = None) -> dict:
    """Create or reactivate a subscription.

    Raises:
        ValidationError: missing or malformed email
        DuplicateError: already actively subscribed
    """
    email = normalize_email(email)
    if not email or not is_valid_email(email):
        raise ValidationError(MSG_INVALID_EMAIL)

    try:
        subscriber, created = store.subscribers.subscribe(email, name)
    except DuplicateKeyError as exc:
        raise DuplicateError(MSG_ALREADY_SUBSCRIBED) from exc

    logger.info(f"{'New' if created else 'Reactivated'} subscriber {email}")
    send_welcome(mailer, subscriber)
    return subscriber


def unsubscribe(store: DataStore, email: str) -> bool:
    """Mark the email unsubscribed. Unknown emails are a no-op."""
    email = normalize_email(email)
    if not email:
        raise ValidationError("Email is required")
    found = store.subscribers.unsubscribe(email)
    if found:
        logger.info(f"Unsubscribed {email}")
    return found


def stats(store: DataStore) -> dict:
    return store.subscribers.stats()


def send_digest(
    store: DataStore,
    mailer,
    *,
    today: date | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    """Email recent articles to every active subscriber.

    Per-recipient failures are counted and logged; the batch always runs to
    the end. There is no retry.

    Raises:
        UpstreamError: the mailer is not configured
    """
    if not mailer.configured:
        raise UpstreamError("Email service is not configured")

    today = today or date.today()
    since = (today - timedelta(days=settings.content.digest_window_days)).isoformat()
    articles = store.articles.recent(since, settings.content.digest_size)
    if not articles:
        logger.info(f"No articles published since {since}; digest skipped")
        return {"message": "No new articles to send", "total": 0, "successful": 0, "failed": 0}

    subscribers = store.subscribers.list_active()
    if not subscribers:
        logger.info("No active subscribers; digest skipped")
        return {"message": "No active subscribers", "total": 0, "successful": 0, "failed": 0}

    subject = digest_subject(today)
    successful = failed = 0
    delay = float(settings.email.send_delay)
    for i, subscriber in enumerate(subscribers):
        email = subscriber["email"]
        try:
            html = render_digest(articles, email, today)
            mailer.send(email, subject, html)
        except MedDigestError as e:
            failed += 1
            logger.warning(f"Digest to {email} failed: {e}")
        except Exception:
            failed += 1
            logger.opt(exception=True).warning(f"Digest to {email} failed")
        else:
            successful += 1
            try:
                store.subscribers.record_sent(email)
            except Exception:
                logger.opt(exception=True).warning(f"Failed to record digest sent to {email}")
        if delay > 0 and i < len(subscribers) - 1:
            sleep(delay)

    total = len(subscribers)
    try:
        store.newsletter_logs.add(subject, total, successful, failed, [a.get("id") for a in articles])
    except Exception:
        logger.opt(exception=True).warning("Failed to write newsletter log")

    logger.info(f"Digest sent: {successful}/{total} successful, {failed} failed")
    return {"message": "Newsletter sent", "total": total, "successful": successful, "failed": failed}
