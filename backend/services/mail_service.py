"""Outgoing email through the Resend HTTP API."""

from __future__ import annotations

import requests
from loguru import logger

from config import settings

from ..errors import UpstreamError


class ResendMailer:
    """Minimal Resend client: one POST per email, no retries."""

    def __init__(
        self,
        api_key: str,
        from_email: str,
        *,
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 10.0,
        dry_run: bool = False,
        session: requests.Session | None = None,
    ):
        self.api_key = (api_key or "").strip()
        self.from_email = from_email
        self.api_url = api_url
        self.timeout = timeout
        self.dry_run = dry_run
        self._session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_key) or self.dry_run

    def send(self, to_email: str, subject: str, html: str) -> str:
        """Send one email and return the provider message id.

        Raises:
            UpstreamError: not configured, transport failure or non-2xx response
        """
        if self.dry_run:
            logger.debug(f"[dry-run] email to {to_email}: {subject}")
            logger.trace(html)
            return "dry-run"
        if not self.api_key:
            raise UpstreamError("Email service is not configured")

        try:
            resp = self._session.post(
                self.api_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "from": self.from_email,
                    "to": [to_email],
                    "subject": subject,
                    "html": html,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UpstreamError(f"Email request failed: {e}") from e

        if resp.status_code >= 300:
            detail = resp.text[:200] if resp.text else ""
            raise UpstreamError(f"Email API returned {resp.status_code}: {detail}")

        try:
            return str((resp.json() or {}).get("id") or "")
        except ValueError:
            return ""


def build_mailer(email_settings=None) -> ResendMailer:
    email_settings = email_settings or settings.email
    return ResendMailer(
        email_settings.resend_api_key,
        email_settings.from_email,
        api_url=email_settings.api_url,
        timeout=email_settings.timeout,
        dry_run=email_settings.dry_run,
    )
