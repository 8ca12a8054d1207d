"""Shared pytest fixtures and test configuration.

This module provides common fixtures and utilities for all tests.
"""

from __future__ import annotations

import os
import tempfile
from typing import Generator

import pytest


def configure_test_env() -> None:
    """Configure environment variables for testing.

    Settings are read when `config` is first imported, so this runs at import
    time, before any test module pulls in the app:
    - in-memory backend (no database URL), isolated temporary data dir
    - no real credentials for email, LLM, Sentry or cron
    - non-secure cookies so the test client sends them over http
    """
    os.environ["MEDDIGEST_DATA_DIR"] = tempfile.mkdtemp(prefix="meddigest_test_")
    os.environ["MEDDIGEST_DB_URL"] = ""
    os.environ["MEDDIGEST_AUTH_COOKIE_SECURE"] = "0"
    os.environ["MEDDIGEST_EMAIL_SEND_DELAY"] = "0"
    os.environ["MEDDIGEST_EMAIL_DRY_RUN"] = "0"
    os.environ["MEDDIGEST_SECRET_KEY"] = "test-secret-key"
    os.environ["MEDDIGEST_CRON_SECRET"] = "test-cron-secret"
    os.environ["MEDDIGEST_ENABLE_SWAGGER"] = "0"
    os.environ["MEDDIGEST_SENTRY_ENABLED"] = "0"
    os.environ["MEDDIGEST_HOST"] = "https://meddigest.test"
    for name in ("MEDDIGEST_EMAIL_RESEND_API_KEY", "RESEND_API_KEY", "MEDDIGEST_LLM_API_KEY", "OPENAI_API_KEY"):
        os.environ[name] = ""
    os.environ.setdefault("MEDDIGEST_LOG_LEVEL", "ERROR")


# Configure test environment on import
configure_test_env()

CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}
TEST_PASSWORD = "correct-horse"


class FakeMailer:
    """Records sent emails instead of calling the email API."""

    def __init__(self, configured: bool = True, fail_for: set[str] | None = None):
        self._configured = configured
        self.fail_for = set(fail_for or ())
        self.sent: list[dict] = []

    @property
    def configured(self) -> bool:
        return self._configured

    def send(self, to_email: str, subject: str, html: str) -> str:
        from backend.errors import UpstreamError

        if to_email in self.fail_for:
            raise UpstreamError(f"Email API returned 422 for {to_email}")
        self.sent.append({"to": to_email, "subject": subject, "html": html})
        return f"msg-{len(self.sent)}"


@pytest.fixture
def store():
    """Fresh in-memory store seeded with the demo articles."""
    from mdstore.repositories import memory_store

    return memory_store(seed_demo=True)


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def app(store, mailer):
    """Create Flask application for testing.

    Function-scoped: each test gets its own store, so state never leaks.
    """
    from backend import create_app

    return create_app(store=store, mailer=mailer, testing=True)


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()


@pytest.fixture
def user(store) -> dict:
    """A registered basic-tier user."""
    from backend.services import auth_service

    created, _session = auth_service.signup(store, "reader@example.com", TEST_PASSWORD, "Reader")
    return created


@pytest.fixture
def logged_in_client(client, user) -> Generator:
    """A test client logged in as `user`."""
    resp = client.post("/api/auth/login", json={"email": user["email"], "password": TEST_PASSWORD})
    assert resp.status_code == 200
    yield client


@pytest.fixture
def pro_client(client, store, user) -> Generator:
    """A test client logged in as a pro-tier user."""
    store.users.set_tier(user["email"], "pro")
    resp = client.post("/api/auth/login", json={"email": user["email"], "password": TEST_PASSWORD})
    assert resp.status_code == 200
    yield client


@pytest.fixture
def cron_headers() -> dict:
    return dict(CRON_HEADERS)
