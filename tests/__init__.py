"""Test package for MedDigest.

This package contains tests organized into two categories:

- **unit/**: Unit tests for individual functions and classes
  - test_db.py: SqliteKV / MemoryKV tables and backends
  - test_repositories.py: Repositories on both backends
  - test_auth_service.py: Password hashing, signup, login, sessions
  - test_article_service.py: Listing, tier gating, bookmarks, history
  - test_newsletter_service.py: Subscriptions and the digest sender
  - test_mail_service.py: Resend mailer
  - test_pubmed.py: PubMed / Europe PMC parsing and fallbacks
  - test_llm_service.py: LLM summaries and the ask assistant
  - test_content_service.py: Fetch, summarize and store pipeline
  - test_schemas.py, test_validation.py, test_api_helpers.py: Request handling
  - test_settings.py, test_sentry_init.py: Configuration
  - test_tools.py: Offline tools and the daemon

- **integration/**: Integration tests using Flask test client
  - test_app.py: Pages, health, error handling, headers
  - test_api_auth.py: Signup, login, logout, session cookie
  - test_api_articles.py: Articles, topics, bookmarks, history, ask
  - test_api_newsletter.py: Subscribe, unsubscribe, stats, send
  - test_api_cron.py: Cron trigger

Running tests:
    # Run all tests
    pytest tests/

    # Run only unit tests
    pytest tests/unit/

    # Run only integration tests
    pytest tests/integration/

No test touches the network: PubMed, Resend and the LLM are replaced with
fakes or mocks.
"""
