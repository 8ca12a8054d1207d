"""Blueprint modules for app routes."""

from . import (
    api_articles,
    api_auth,
    api_cron,
    api_newsletter,
    web,
)

__all__ = [
    "api_articles",
    "api_auth",
    "api_cron",
    "api_newsletter",
    "web",
]
