"""Flask application factory."""

from __future__ import annotations

import logging
import os
import sys

from flask import Flask, g, render_template, request
from flask_cors import CORS
from loguru import logger
from werkzeug.exceptions import HTTPException

from config import settings
from mdstore.repositories import DataStore, build_store

from .blueprints import api_articles, api_auth, api_cron, api_newsletter, web
from .errors import MedDigestError
from .services.api_helpers import api_error
from .services.auth_service import load_user_from_request
from .services.mail_service import build_mailer


def configure_logging(level: str | None = None) -> None:
    """Reset loguru to a single stdout sink at `level` (default: settings.log_level)."""
    logger.remove()
    serialize = str(getattr(settings, "log_format", "text") or "text").strip().lower() == "json"
    logger.add(sys.stdout, level=(level or settings.log_level).upper(), serialize=serialize)

    if not settings.web.access_log:
        logging.getLogger("werkzeug").setLevel(logging.WARNING)


def _load_secret_key() -> str:
    sk = (settings.web.secret_key or "").strip()
    if sk:
        return sk

    path = os.path.join(settings.data_dir, "secret_key.txt")
    if os.path.isfile(path):
        try:
            with open(path, encoding="utf-8") as f:
                sk = f.read().strip()
            if sk:
                return sk
        except Exception as exc:
            logger.warning(f"Failed to read {path}: {exc}")

    logger.warning("No secret key found (MEDDIGEST_SECRET_KEY/secret_key.txt); generating a random key")
    import secrets

    return secrets.token_urlsafe(32)


def _is_api_request() -> bool:
    return request.path.startswith("/api/")


def _render_error_page(title: str, status_code: int, message: str):
    try:
        return (
            render_template(
                "error.html",
                app_name=settings.app_name,
                title=title,
                status_code=status_code,
                message=message,
            ),
            status_code,
        )
    except Exception:
        return title, status_code


def create_app(
    store: DataStore | None = None,
    mailer=None,
    testing: bool = False,
    configure_logs: bool = True,
) -> Flask:
    """Build the app.

    Args:
        store: DataStore to serve; built from settings.db when omitted
        mailer: Mail sender; a Resend mailer from settings.email when omitted
        testing: Flask testing mode
        configure_logs: reset logging sinks; tools that set up their own pass False
    """
    if configure_logs:
        configure_logging()

    root_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    app = Flask(
        __name__,
        template_folder=os.path.join(root_dir, "templates"),
        static_folder=os.path.join(root_dir, "static"),
    )
    app.secret_key = _load_secret_key()
    app.config.update(
        TESTING=testing,
        MAX_CONTENT_LENGTH=settings.web.max_content_length,
    )

    # Optional Sentry error reporting (no-op unless configured).
    if not testing:
        from config.sentry import initialize_sentry

        initialize_sentry("web")

    if store is None:
        store = build_store(settings.db)
    if mailer is None:
        mailer = build_mailer(settings.email)
    app.extensions["meddigest.store"] = store
    app.extensions["meddigest.mailer"] = mailer
    if store.is_demo:
        logger.warning("No database configured; serving in-memory demo data (lost on restart)")

    CORS(app, resources={r"/api/*": {"origins": settings.web.cors_origin_list}})

    # Swagger/OpenAPI documentation (disabled by default)
    if settings.web.enable_swagger:
        try:
            from flasgger import Swagger

            app.config["SWAGGER"] = {
                "title": f"{settings.app_name} API",
                "uiversion": 3,
                "description": "Medical paper digests, accounts and newsletter",
                "version": "1.0.0",
                "specs_route": "/apidocs/",
            }
            Swagger(app)
        except ImportError:
            logger.warning("flasgger not installed, Swagger UI disabled")

    @app.errorhandler(MedDigestError)
    def _handle_app_error(err: MedDigestError):
        if err.status_code >= 500:
            logger.warning(f"{request.method} {request.path} -> {err.status_code}: {err.message}")
        return api_error(err.message, err.status_code, **err.extra)

    @app.errorhandler(HTTPException)
    def _handle_http_error(err: HTTPException):
        code = err.code or 500
        if _is_api_request():
            return api_error(err.name, code)
        if code == 404:
            return _render_error_page("Not Found", 404, "The requested page does not exist.")
        return _render_error_page(err.name, code, err.description or err.name)

    @app.errorhandler(Exception)
    def _handle_unexpected(err: Exception):
        logger.opt(exception=True).error(f"Unhandled error on {request.method} {request.path}")
        if _is_api_request():
            return api_error("Internal server error", 500)
        return _render_error_page("Server Error", 500, "An unexpected error occurred.")

    @app.before_request
    def _load_user():
        token = request.cookies.get(settings.auth.cookie_name)
        g.session_token = token
        g.user = load_user_from_request(store, token) if token else None

    @app.after_request
    def add_security_headers(resp):
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("X-Frame-Options", "DENY")
        resp.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        resp.headers.setdefault(
            "Permissions-Policy",
            "camera=(), microphone=(), geolocation=(), interest-cohort=()",
        )
        # Pages and API responses depend on the session cookie
        if resp.mimetype in ("text/html", "application/json"):
            resp.headers.setdefault("Cache-Control", "no-store")
        return resp

    app.register_blueprint(web.bp)
    app.register_blueprint(api_auth.bp)
    app.register_blueprint(api_articles.bp)
    app.register_blueprint(api_newsletter.bp)
    app.register_blueprint(api_cron.bp)

    return app
