"""Integration tests for the app shell: pages, health and error handling."""

from __future__ import annotations


def test_health_endpoints(client):
    for path in ("/health", "/api/health"):
        resp = client.get(path)
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["status"] == "ok"
        assert data["app"] == "MedDigest"
        assert data["db"] == "memory"
        assert data["timestamp"]


def test_index_page_anonymous(client):
    resp = client.get("/")
    assert resp.status_code == 200
    html = resp.get_data(as_text=True)
    assert "MedDigest" in html
    assert "loggedIn: false" in html
    assert "Demo mode" in html
    assert "Cardiovascular" in html


def test_index_page_logged_in(logged_in_client):
    html = logged_in_client.get("/").get_data(as_text=True)
    assert "loggedIn: true" in html
    assert "Reader" in html


def test_article_page(client):
    resp = client.get("/article/sglt2-heart-failure-2026")
    assert resp.status_code == 200
    assert '"sglt2-heart-failure-2026"' in resp.get_data(as_text=True)


def test_unknown_article_page_is_html_404(client):
    resp = client.get("/article/no-such-article")
    assert resp.status_code == 404
    assert resp.mimetype == "text/html"
    assert "Not Found" in resp.get_data(as_text=True)


def test_unknown_api_route_is_json_404(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.get_json() == {"success": False, "error": "Not Found"}


def test_wrong_method_is_json_405(client):
    resp = client.get("/api/auth/login")
    assert resp.status_code == 405
    assert resp.get_json()["success"] is False


def test_unexpected_error_is_json_500(client, store, monkeypatch):
    def boom(*_args, **_kwargs):
        raise RuntimeError("storage exploded")

    monkeypatch.setattr(store.articles, "list", boom)
    resp = client.get("/api/articles")
    assert resp.status_code == 500
    assert resp.get_json() == {"success": False, "error": "Internal server error"}


def test_security_headers(client):
    resp = client.get("/api/health")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert resp.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert resp.headers["Cache-Control"] == "no-store"


def test_cors_on_api(client):
    resp = client.get("/api/topics", headers={"Origin": "https://elsewhere.example"})
    assert resp.headers.get("Access-Control-Allow-Origin") in ("*", "https://elsewhere.example")


def test_static_assets_served(client):
    resp = client.get("/static/js/app.js")
    assert resp.status_code == 200
    resp.close()
