"""Scheduler daemon: daily paper update, digest and session cleanup.

Usage:
  python -m tools daemon [--run-now]
"""

from __future__ import annotations

import argparse
import sys

from apscheduler.schedulers.blocking import BlockingScheduler
from loguru import logger

from backend.app import configure_logging, create_app
from backend.errors import UpstreamError
from backend.services.content_service import run_daily_update
from backend.services.mail_service import build_mailer
from backend.services.newsletter_service import send_digest
from config import settings
from config.sentry import initialize_sentry
from mdstore.repositories import DataStore, build_store


def daily_job(store: DataStore, mailer, app) -> None:
    """Fetch new papers, then mail the digest when enabled."""
    try:
        result = run_daily_update(store)
        logger.info(f"Daily update: {result['saved']} saved, {result['skipped']} skipped, {result['errors']} errors")
    except Exception:
        logger.opt(exception=True).error("Daily update failed")

    if not settings.daemon.send_newsletter:
        return
    if not mailer.configured:
        logger.warning("Email service not configured; digest skipped")
        return
    with app.app_context():
        try:
            res = send_digest(store, mailer)
            logger.info(f"Digest: {res['message']} ({res['successful']}/{res['total']})")
        except UpstreamError as e:
            logger.error(f"Digest not sent: {e.message}")
        except Exception:
            logger.opt(exception=True).error("Digest failed")


def purge_sessions_job(store: DataStore) -> None:
    try:
        removed = store.sessions.purge_expired()
        if removed:
            logger.info(f"Purged {removed} expired sessions")
    except Exception:
        logger.opt(exception=True).warning("Session purge failed")


def create_scheduler(store: DataStore, mailer, app) -> BlockingScheduler:
    scheduler = BlockingScheduler(timezone=settings.daemon.timezone)
    scheduler.add_job(
        daily_job,
        "cron",
        hour=settings.daemon.hour,
        minute=settings.daemon.minute,
        args=[store, mailer, app],
        id="daily_update",
    )
    scheduler.add_job(purge_sessions_job, "cron", hour=3, args=[store], id="purge_sessions")
    return scheduler


def _log_startup_info(store: DataStore, mailer) -> None:
    """Print daemon configuration summary on startup (always visible)."""
    d = settings.daemon
    lines = [
        "=" * 50,
        f"{settings.app_name} Daemon",
        f"  TZ={d.timezone}  Log={settings.log_level.upper()}  Store={store.kind}",
        f"  Newsletter: {'on' if d.send_newsletter else 'off'} (mailer {'ready' if mailer.configured else 'not configured'})",
        "Schedule:",
        f"  daily_update    Daily   {d.hour:02d}:{d.minute:02d}",
        "  purge_sessions  Daily   03:00",
        "=" * 50,
    ]
    print("\n".join(lines), flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the scheduled jobs")
    parser.add_argument("--run-now", action="store_true", help="Run the daily job once before scheduling")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging()
    initialize_sentry("daemon")

    store = build_store(settings.db, seed_demo=False)
    if store.is_demo:
        logger.warning("No database configured (MEDDIGEST_DB_URL); the daemon keeps articles in memory only")
    mailer = build_mailer(settings.email)
    app = create_app(store=store, mailer=mailer, configure_logs=False)

    _log_startup_info(store, mailer)
    if args.run_now:
        daily_job(store, mailer, app)

    scheduler = create_scheduler(store, mailer, app)
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Daemon stopped")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
