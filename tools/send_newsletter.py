"""Send the daily digest to all active subscribers.

Usage:
  python -m tools send_newsletter [--dry-run] [--date 2026-02-15]
"""

from __future__ import annotations

import argparse
import sys
from datetime import date

from loguru import logger

from backend.app import configure_logging, create_app
from backend.errors import UpstreamError
from backend.services.mail_service import build_mailer
from backend.services.newsletter_service import send_digest
from config import settings
from config.sentry import initialize_sentry
from mdstore.repositories import build_store


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid date {value!r} (expected YYYY-MM-DD)") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Send the newsletter digest")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Render and log the emails without calling the email API",
    )
    parser.add_argument(
        "--date",
        type=_parse_date,
        default=None,
        help="Digest date (default: today); articles published in the window before it are included",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging("DEBUG" if (args.verbose or args.dry_run) else None)
    initialize_sentry("send_newsletter")

    store = build_store(settings.db)
    mailer = build_mailer(settings.email)
    if args.dry_run:
        mailer.dry_run = True
    if not mailer.configured:
        logger.error("Email service is not configured (set RESEND_API_KEY or use --dry-run)")
        return 1

    # Templates render through Flask's Jinja environment.
    app = create_app(store=store, mailer=mailer, configure_logs=False)
    with app.app_context():
        try:
            result = send_digest(store, mailer, today=args.date)
        except UpstreamError as e:
            logger.error(f"Digest not sent: {e.message}")
            return 1

    logger.success(
        f"{result['message']}: {result['successful']}/{result['total']} delivered, {result['failed']} failed"
    )
    return 0 if result["failed"] == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
