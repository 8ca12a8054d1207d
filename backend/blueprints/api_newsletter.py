"""Newsletter API routes."""

from __future__ import annotations

from flask import Blueprint, jsonify, render_template, request
from loguru import logger

from config import settings

from ..errors import AuthError
from ..schemas import SubscribeRequest
from ..services import newsletter_service
from ..services.api_helpers import api_success, bearer_token, get_mailer, get_store, parse_json_body
from ..utils.validation import secret_matches

bp = Blueprint("newsletter", __name__)


def require_cron_secret() -> None:
    """Reject the request unless it carries the configured bearer secret."""
    if not secret_matches(bearer_token(), settings.web.cron_secret):
        logger.warning(f"Rejected unauthenticated call to {request.path}")
        raise AuthError("Unauthorized")


@bp.route("/api/newsletter/subscribe", methods=["POST"])
def subscribe():
    """Subscribe to the daily digest
    ---
    tags:
      - Newsletter
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - email
          properties:
            email:
              type: string
            name:
              type: string
    responses:
      200:
        description: Subscribed or reactivated
      400:
        description: Invalid email or already subscribed
    """
    req = parse_json_body(SubscribeRequest)
    newsletter_service.subscribe(get_store(), get_mailer(), req.email, req.name)
    return api_success(message=newsletter_service.MSG_SUBSCRIBED)


@bp.route("/api/newsletter/unsubscribe", methods=["GET"])
def unsubscribe():
    """Unsubscribe link target (HTML)
    ---
    tags:
      - Newsletter
    parameters:
      - in: query
        name: email
        type: string
        required: true
    responses:
      200:
        description: Confirmation page
      400:
        description: Missing email
      500:
        description: Storage failure (HTML error page)
    """
    email = (request.args.get("email") or "").strip()
    if not email:
        return (
            render_template(
                "error.html",
                app_name=settings.app_name,
                title="Invalid link",
                status_code=400,
                message="This unsubscribe link is missing an email address.",
            ),
            400,
        )
    try:
        newsletter_service.unsubscribe(get_store(), email)
    except Exception:
        logger.opt(exception=True).error(f"Unsubscribe failed for {email}")
        return (
            render_template(
                "error.html",
                app_name=settings.app_name,
                title="Something went wrong",
                status_code=500,
                message="We could not process your unsubscribe request. Please try again later.",
            ),
            500,
        )
    return render_template("unsubscribe.html", app_name=settings.app_name, email=email)


@bp.route("/api/newsletter/stats", methods=["GET"])
def stats():
    """Subscriber counts
    ---
    tags:
      - Newsletter
    responses:
      200:
        description: Total, active and unsubscribed counts
    """
    return jsonify({"stats": newsletter_service.stats(get_store())})


@bp.route("/api/newsletter/send", methods=["POST"])
def send():
    """Send the digest to all active subscribers
    ---
    tags:
      - Newsletter
    parameters:
      - in: header
        name: Authorization
        type: string
        required: true
        description: Bearer cron secret
    responses:
      200:
        description: Batch result counts
      401:
        description: Missing or wrong secret
      500:
        description: Email service not configured
    """
    require_cron_secret()
    result = newsletter_service.send_digest(get_store(), get_mailer())
    return jsonify(result)
