#!/usr/bin/env python3
"""
Configuration Management CLI Tool

Usage:
    python -m config.cli show          # Show current configuration
    python -m config.cli show --json   # JSON format output
    python -m config.cli validate      # Validate configuration
    python -m config.cli env           # Generate environment variable template
"""

from __future__ import annotations

import argparse
import json
import sys


def _mask(value: str) -> str:
    if not value:
        return "(not set)"
    if len(value) > 8:
        return f"{value[:4]}...{value[-4:]}"
    return "***"


def cmd_show(args):
    """Show current configuration"""
    from config.settings import settings

    if args.json:
        data = settings.model_dump(mode="json")
        print(json.dumps(data, indent=2, ensure_ascii=False))
        return

    print("=" * 60)
    print(f"{settings.app_name} Configuration")
    print("=" * 60)

    print("\n📁 Data Directories:")
    print(f"  data_dir:     {settings.data_dir}")

    print("\n🌐 Service Configuration:")
    print(f"  host:         {settings.host}")
    print(f"  serve_port:   {settings.serve_port}")
    print(f"  platform:     {settings.platform}")

    print("\n🗄️ Database Configuration:")
    print(f"  url:          {settings.db.url or '(demo mode, in-memory)'}")
    print(f"  seed_demo:    {settings.db.seed_demo}")
    print(f"  timeout:      {settings.db.timeout}s")
    print(f"  max_retries:  {settings.db.max_retries}")

    print("\n🔐 Auth Configuration:")
    print(f"  cookie_name:  {settings.auth.cookie_name}")
    print(f"  session_days: {settings.auth.session_days}")
    print(f"  cookie_secure:{settings.auth.cookie_secure}")

    print("\n📰 Content Configuration:")
    print(f"  tier_gating:  {settings.content.tier_gating}")
    print(f"  list_limit:   {settings.content.list_limit}")
    print(f"  digest_size:  {settings.content.digest_size}")

    print("\n📧 Email Configuration:")
    print(f"  from_email:   {settings.email.from_email}")
    print(f"  api_key:      {_mask(settings.email.resend_api_key)}")
    print(f"  send_delay:   {settings.email.send_delay}s")
    print(f"  dry_run:      {settings.email.dry_run}")

    print("\n🤖 LLM Configuration:")
    print(f"  base_url:     {settings.llm.base_url}")
    print(f"  api_key:      {_mask(settings.llm.api_key)}")
    print(f"  model:        {settings.llm.name}")

    print("\n🔬 PubMed Configuration:")
    print(f"  timeout:      {settings.pubmed.timeout}s")
    print(f"  max_results:  {settings.pubmed.max_results}")
    print(f"  europepmc:    {settings.pubmed.europepmc_fallback}")

    print("\n⏰ Daemon Configuration:")
    print(f"  schedule:     {settings.daemon.hour:02d}:{settings.daemon.minute:02d} {settings.daemon.timezone}")
    print(f"  newsletter:   {settings.daemon.send_newsletter}")

    print("\n🌍 Web Configuration:")
    print(f"  cron_secret:  {_mask(settings.web.cron_secret)}")
    print(f"  cors_origins: {settings.web.cors_origins}")
    print(f"  access_log:   {settings.web.access_log}")

    print("\n📋 Log Configuration:")
    print(f"  log_level:    {settings.log_level}")
    print(f"  log_format:   {settings.log_format}")

    print("\n" + "=" * 60)


def cmd_validate(args):
    """Validate configuration"""
    from config.settings import settings

    errors = []
    warnings = []

    sqlite_path = settings.db.sqlite_path
    if sqlite_path is None:
        warnings.append("Database URL not set; running in demo mode with an in-memory store")
    elif not sqlite_path.parent.exists():
        errors.append(f"Database directory does not exist: {sqlite_path.parent}")

    if not settings.web.secret_key:
        warnings.append("Secret key not set; a random key is generated on each start")
    if not settings.web.cron_secret:
        warnings.append("Cron secret not set; newsletter send and cron trigger endpoints are disabled")
    if not settings.email.resend_api_key:
        warnings.append("Resend API key not set; emails cannot be sent")
    if not settings.llm.api_key:
        warnings.append("LLM API key not set; fetched papers get fallback summaries")
    if settings.auth.min_password_length < 1:
        errors.append("Minimum password length must be positive")

    if errors:
        print("❌ Configuration validation failed:")
        for e in errors:
            print(f"  - {e}")
        print()

    if warnings:
        print("⚠️  Configuration warnings:")
        for w in warnings:
            print(f"  - {w}")
        print()

    if not errors and not warnings:
        print("✅ Configuration validation passed")
    elif not errors:
        print("✅ Configuration validation passed (with warnings)")

    return 1 if errors else 0


def cmd_env(args):
    """Generate environment variable template"""
    from config.settings import settings

    print("# Environment variable representation of current configuration")
    print("# Can be copied to .env file")
    print()

    print(f"MEDDIGEST_DATA_DIR={settings.data_dir}")
    print(f"MEDDIGEST_HOST={settings.host}")
    print(f"MEDDIGEST_SERVE_PORT={settings.serve_port}")
    print(f"MEDDIGEST_LOG_LEVEL={settings.log_level}")
    print()

    print(f"MEDDIGEST_DB_URL={settings.db.url}")
    print(f"MEDDIGEST_DB_SEED_DEMO={str(settings.db.seed_demo).lower()}")
    print()

    print(f"MEDDIGEST_AUTH_SESSION_DAYS={settings.auth.session_days}")
    print(f"MEDDIGEST_AUTH_COOKIE_SECURE={str(settings.auth.cookie_secure).lower()}")
    print(f"MEDDIGEST_CONTENT_TIER_GATING={str(settings.content.tier_gating).lower()}")
    print()

    print("RESEND_API_KEY=")
    print(f"MEDDIGEST_EMAIL_FROM_EMAIL={settings.email.from_email}")
    print("CRON_SECRET=")
    print()

    print(f"MEDDIGEST_LLM_BASE_URL={settings.llm.base_url}")
    print("MEDDIGEST_LLM_API_KEY=")
    print(f"MEDDIGEST_LLM_NAME={settings.llm.name}")


def main():
    parser = argparse.ArgumentParser(
        description="MedDigest Configuration Management Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m config.cli show          Show current configuration
  python -m config.cli show --json   JSON format output
  python -m config.cli validate      Validate configuration
  python -m config.cli env           Generate environment variables
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Subcommands")

    show_parser = subparsers.add_parser("show", help="Show current configuration")
    show_parser.add_argument("--json", action="store_true", help="JSON format output")

    subparsers.add_parser("validate", help="Validate configuration")
    subparsers.add_parser("env", help="Generate environment variable template")

    args = parser.parse_args()

    if args.command == "show":
        cmd_show(args)
    elif args.command == "validate":
        sys.exit(cmd_validate(args))
    elif args.command == "env":
        cmd_env(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
