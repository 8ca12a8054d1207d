"""Sentry error reporting for the web app, the daemon and the offline tools.

Flask is only imported for the "web" component. Events are scrubbed of
reader emails, passwords and the session cookie before they leave the process.
"""

from __future__ import annotations

import re
from typing import Any

from loguru import logger

_SENTRY_INITIALIZED = False

COMPONENTS = ("web", "daemon", "fetch_papers", "send_newsletter")

_EMAIL_RE = re.compile(r"[A-Z0-9._%+-]+(?:@|%40)[A-Z0-9.-]+\.[A-Z]{2,63}", re.IGNORECASE)
_SECRET_FIELDS = {"password", "password_hash", "token", "session_token"}
REDACTED = "[redacted]"


def _redact_emails(text: Any) -> Any:
    if isinstance(text, str):
        return _EMAIL_RE.sub(REDACTED, text)
    return text


def scrub_event(event: dict, hint: Any = None) -> dict:
    """Strip personal data from an outgoing Sentry event.

    Unsubscribe links carry the subscriber's email in the query string and
    auth bodies carry passwords, so both are rewritten in place.
    """
    request = event.get("request") or {}
    if request:
        request.pop("cookies", None)
        headers = request.get("headers") or {}
        for name in list(headers):
            if name.lower() in ("cookie", "authorization"):
                headers[name] = REDACTED
        for key in ("query_string", "url"):
            if key in request:
                request[key] = _redact_emails(request[key])
        data = request.get("data")
        if isinstance(data, dict):
            for key in list(data):
                data[key] = REDACTED if key in _SECRET_FIELDS else _redact_emails(data[key])
        elif "data" in request:
            request["data"] = _redact_emails(data)

    for entry in (event.get("logentry"), event.get("message")):
        if isinstance(entry, dict):
            for key in ("message", "formatted"):
                if key in entry:
                    entry[key] = _redact_emails(entry[key])
    if isinstance(event.get("message"), str):
        event["message"] = _redact_emails(event["message"])
    return event


def initialize_sentry(component: str = "web", *, settings_obj: Any | None = None) -> bool:
    """Initialize Sentry for one MedDigest process if configured.

    A no-op unless settings.sentry.enabled is set and a DSN is given.
    Every event is tagged with `component`.
    """
    global _SENTRY_INITIALIZED
    if _SENTRY_INITIALIZED:
        return True
    if component not in COMPONENTS:
        raise ValueError(f"Unknown Sentry component: {component}")

    from config import settings as _settings

    sentry_cfg = (settings_obj or _settings).sentry
    dsn = str(sentry_cfg.dsn or "").strip()
    if not sentry_cfg.enabled or not dsn:
        return False

    try:
        import sentry_sdk
        from sentry_sdk.integrations.logging import LoggingIntegration

        integrations: list[Any] = [LoggingIntegration(level=None, event_level="ERROR")]
        if component == "web":
            from sentry_sdk.integrations.flask import FlaskIntegration

            integrations.append(FlaskIntegration())

        options: dict[str, Any] = {
            "dsn": dsn,
            "integrations": integrations,
            "send_default_pii": False,
            "attach_stacktrace": True,
            "before_send": scrub_event,
            "server_name": f"meddigest-{component}",
        }
        if str(sentry_cfg.environment or "").strip():
            options["environment"] = sentry_cfg.environment.strip()
        if sentry_cfg.traces_sample_rate > 0:
            options["traces_sample_rate"] = float(sentry_cfg.traces_sample_rate)

        sentry_sdk.init(**options)
        sentry_sdk.set_tag("component", component)
    except Exception:
        logger.opt(exception=True).warning(f"Failed to initialize Sentry for {component} (ignored)")
        return False

    _SENTRY_INITIALIZED = True
    logger.info(f"Sentry initialized for {component}")
    return True
