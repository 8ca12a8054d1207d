"""Web page routes and health checks."""

from __future__ import annotations

from datetime import datetime, timezone

from flask import Blueprint, abort, jsonify, render_template

from config import settings

from ..services import article_service
from ..services.api_helpers import current_user, get_store

bp = Blueprint("web", __name__)


def _render_index(initial_slug: str | None = None):
    store = get_store()
    return render_template(
        "index.html",
        app_name=settings.app_name,
        user=current_user(),
        topics=article_service.list_topics(store),
        initial_slug=initial_slug or "",
        adsense_client_id=(settings.web.adsense_client_id or "").strip(),
        demo_mode=store.is_demo,
    )


@bp.route("/", methods=["GET"])
def index():
    return _render_index()


@bp.route("/article/<slug>", methods=["GET"])
def article_page(slug: str):
    # The page script opens the article; gating happens in the API call.
    if get_store().articles.get(slug) is None:
        abort(404)
    return _render_index(initial_slug=slug)


@bp.route("/health", methods=["GET"])
@bp.route("/api/health", methods=["GET"])
def health():
    """Liveness check
    ---
    tags:
      - System
    responses:
      200:
        description: Service is up
        schema:
          type: object
          properties:
            status:
              type: string
            app:
              type: string
            platform:
              type: string
            db:
              type: string
              description: Storage backend kind (sqlite or memory)
            timestamp:
              type: string
    """
    return jsonify(
        {
            "status": "ok",
            "app": settings.app_name,
            "platform": settings.platform,
            "db": get_store().kind,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )
