"""Integration tests for the external cron trigger."""

from __future__ import annotations

import pytest

from backend.services import content_service, newsletter_service


@pytest.fixture
def fake_update(monkeypatch):
    calls = []

    def run_daily_update(store):
        calls.append(store)
        return {"searched": 4, "saved": 3, "skipped": 1, "errors": 0, "topics": []}

    monkeypatch.setattr(content_service, "run_daily_update", run_daily_update)
    return calls


def test_requires_secret(client, fake_update):
    assert client.post("/api/cron/trigger").status_code == 401
    assert fake_update == []


def test_runs_update_and_digest(client, store, cron_headers, fake_update, monkeypatch):
    digest = {"message": "Newsletter sent", "total": 2, "successful": 2, "failed": 0}
    monkeypatch.setattr(newsletter_service, "send_digest", lambda s, m: digest)

    resp = client.post("/api/cron/trigger", headers=cron_headers)
    assert resp.status_code == 200
    assert resp.get_json() == {"saved": 3, "skipped": 1, "errors": 0, "newsletter": digest}
    assert fake_update == [store]


def test_skips_digest_without_mail_service(client, mailer, cron_headers, fake_update, monkeypatch):
    mailer._configured = False

    def unexpected(*_args):
        raise AssertionError("digest must not be sent")

    monkeypatch.setattr(newsletter_service, "send_digest", unexpected)
    resp = client.post("/api/cron/trigger", headers=cron_headers)
    assert resp.status_code == 200
    assert resp.get_json()["newsletter"] == {
        "message": "Email service is not configured",
        "total": 0,
        "successful": 0,
        "failed": 0,
    }


def test_malformed_upstream_bodies_do_not_fail_the_trigger(client, cron_headers, monkeypatch):
    from unittest.mock import MagicMock

    from mdstore import pubmed

    def fake_get(url, **kwargs):
        resp = MagicMock()
        resp.raise_for_status.return_value = None
        resp.json.return_value = {"esearchresult": None} if url == pubmed.PUBMED_ESEARCH_API else {"resultList": None}
        return resp

    monkeypatch.setattr(pubmed.requests, "get", fake_get)
    resp = client.post("/api/cron/trigger", headers=cron_headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert (body["saved"], body["errors"]) == (0, 0)
