"""Scheduled-job trigger for external cron services."""

from __future__ import annotations

from flask import Blueprint, jsonify
from loguru import logger

from ..services import content_service, newsletter_service
from ..services.api_helpers import get_mailer, get_store
from .api_newsletter import require_cron_secret

bp = Blueprint("cron", __name__)


@bp.route("/api/cron/trigger", methods=["POST"])
def trigger():
    """Run the daily paper update, then send the digest
    ---
    tags:
      - System
    parameters:
      - in: header
        name: Authorization
        type: string
        required: true
        description: Bearer cron secret
    responses:
      200:
        description: Update counts and newsletter result
      401:
        description: Missing or wrong secret
    """
    require_cron_secret()
    store = get_store()
    mailer = get_mailer()

    update = content_service.run_daily_update(store)
    if mailer.configured:
        newsletter = newsletter_service.send_digest(store, mailer)
    else:
        logger.warning("Email service not configured; digest skipped")
        newsletter = {"message": "Email service is not configured", "total": 0, "successful": 0, "failed": 0}

    return jsonify(
        {
            "saved": update["saved"],
            "skipped": update["skipped"],
            "errors": update["errors"],
            "newsletter": newsletter,
        }
    )
