"""User administration.

Usage:
  python -m tools manage_users set-tier <email> basic|pro
  python -m tools manage_users purge-sessions
"""

from __future__ import annotations

import argparse
import sys

from loguru import logger

from backend.app import configure_logging
from backend.services.auth_service import set_user_tier
from config import settings
from mdstore.repositories import build_store


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage user accounts and sessions")
    sub = parser.add_subparsers(dest="command", required=True)

    tier = sub.add_parser("set-tier", help="Change a user's access tier")
    tier.add_argument("email")
    tier.add_argument("tier", choices=["basic", "pro"])

    sub.add_parser("purge-sessions", help="Delete expired sessions")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(sys.argv[1:] if argv is None else argv)
    configure_logging()

    store = build_store(settings.db, seed_demo=False)
    if store.is_demo:
        logger.error("No database configured (MEDDIGEST_DB_URL); nothing to manage")
        return 1

    if args.command == "set-tier":
        if not set_user_tier(store, args.email, args.tier):
            logger.error(f"No user with email {args.email}")
            return 1
        logger.success(f"{args.email} is now {args.tier}")
        return 0

    removed = store.sessions.purge_expired()
    logger.success(f"Purged {removed} expired sessions")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
