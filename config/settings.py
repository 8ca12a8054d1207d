"""
MedDigest Configuration Management Module

Provides type-safe configuration management using pydantic-settings.
Supports loading configuration from environment variables and .env files.

Usage:
    from config.settings import settings
    print(settings.data_dir)
    print(settings.email.from_email)
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root directory
PROJECT_ROOT = Path(__file__).resolve().parent.parent


class DatabaseSettings(BaseSettings):
    """Database configuration"""

    model_config = SettingsConfigDict(
        env_prefix="MEDDIGEST_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Empty url selects the in-memory demo backend.
    url: str = Field(default="", description="Database URL (sqlite:///path/to/file.db, empty for demo mode)")
    seed_demo: bool = Field(default=True, description="Seed demo articles into the in-memory backend")
    timeout: int = Field(default=30, description="SQLite connection timeout (seconds)")
    max_retries: int = Field(default=5, description="Database operation max retries")
    retry_base_sleep: float = Field(default=0.2, description="Retry base sleep time (seconds)")

    @property
    def sqlite_path(self) -> Path | None:
        """Filesystem path of the SQLite database, or None in demo mode"""
        url = self.url.strip()
        if not url or url in ("memory", "memory://"):
            return None
        if url.startswith("sqlite:///"):
            return Path(url[len("sqlite:///") :])
        return Path(url)


class AuthSettings(BaseSettings):
    """Account and session configuration"""

    model_config = SettingsConfigDict(
        env_prefix="MEDDIGEST_AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    cookie_name: str = Field(default="session_token", description="Session cookie name")
    session_days: int = Field(default=30, description="Session lifetime (days)")
    min_password_length: int = Field(default=6, description="Minimum password length")
    cookie_secure: bool = Field(default=True, description="Cookie Secure flag")
    cookie_samesite: str = Field(default="Lax", description="Cookie SameSite policy")

    @property
    def session_ttl(self) -> int:
        """Session lifetime in seconds"""
        return int(self.session_days) * 24 * 60 * 60


class ContentSettings(BaseSettings):
    """Article listing and access tier configuration"""

    model_config = SettingsConfigDict(
        env_prefix="MEDDIGEST_CONTENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    tier_gating: bool = Field(default=True, description="Hide pro article bodies from non-pro users")
    list_limit: int = Field(default=20, description="Default article list page size")
    max_list_limit: int = Field(default=100, description="Max article list page size")
    default_tier: Literal["basic", "pro"] = Field(default="basic", description="Tier assigned to fetched articles")
    digest_size: int = Field(default=5, description="Articles per newsletter digest")
    digest_window_days: int = Field(default=1, description="Digest includes articles published in the last N days")
    papers_per_topic: int = Field(default=2, description="Papers fetched per topic on each run")


class EmailSettings(BaseSettings):
    """Email (Resend) configuration"""

    model_config = SettingsConfigDict(
        env_prefix="MEDDIGEST_EMAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Compatible: deployments usually export the bare RESEND_API_KEY.
    resend_api_key: str = Field(
        default="",
        description="Resend API key",
        validation_alias=AliasChoices(
            "MEDDIGEST_EMAIL_RESEND_API_KEY",
            "RESEND_API_KEY",
        ),
    )
    api_url: str = Field(default="https://api.resend.com/emails", description="Resend send endpoint")
    from_email: str = Field(default="MedDigest <newsletter@meddigest.io>", description="Sender address")
    send_delay: float = Field(default=0.1, description="Delay between digest sends (seconds)")
    timeout: float = Field(default=10.0, description="Resend request timeout (seconds)")
    dry_run: bool = Field(default=False, description="Log emails instead of sending them")
    welcome_email: bool = Field(default=True, description="Send a welcome email after subscribing")


class LLMSettings(BaseSettings):
    """LLM configuration"""

    model_config = SettingsConfigDict(
        env_prefix="MEDDIGEST_LLM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = Field(default="https://api.openai.com/v1", description="LLM API base URL")
    api_key: str = Field(
        default="",
        description="LLM API key",
        validation_alias=AliasChoices(
            "MEDDIGEST_LLM_API_KEY",
            "OPENAI_API_KEY",
        ),
    )
    name: str = Field(default="gpt-4o-mini", description="Default LLM model name")
    temperature: float = Field(default=0.3, description="Sampling temperature")
    max_tokens: int = Field(default=1200, description="Max tokens per completion")
    timeout: int = Field(default=60, description="LLM request timeout (seconds)")


class PubMedSettings(BaseSettings):
    """PubMed / Europe PMC fetch configuration"""

    model_config = SettingsConfigDict(
        env_prefix="MEDDIGEST_PUBMED_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    timeout: float = Field(default=5.0, description="Request timeout (seconds)")
    max_results: int = Field(default=3, description="Search results per query")
    tool: str = Field(default="meddigest", description="E-utilities tool parameter")
    email: str = Field(default="", description="E-utilities contact email")
    europepmc_fallback: bool = Field(default=True, description="Query Europe PMC when PubMed returns nothing")


class DaemonSettings(BaseSettings):
    """Daemon scheduled task configuration"""

    model_config = SettingsConfigDict(
        env_prefix="MEDDIGEST_DAEMON_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    timezone: str = Field(default="UTC", description="Scheduler timezone")
    hour: int = Field(default=21, description="Daily run hour")
    minute: int = Field(default=0, description="Daily run minute")
    send_newsletter: bool = Field(default=True, description="Send the digest after fetching papers")


class WebSettings(BaseSettings):
    """Web application configuration"""

    model_config = SettingsConfigDict(
        env_prefix="MEDDIGEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Development configuration
    access_log: bool = Field(default=False, description="Enable access logging")
    enable_swagger: bool = Field(default=False, description="Serve API docs at /apidocs")

    # Security configuration
    secret_key: str = Field(default="", description="Flask secret key")
    # Compatible: cron providers inject the bare CRON_SECRET.
    cron_secret: str = Field(
        default="",
        description="Bearer secret for newsletter send and cron trigger (empty disables them)",
        validation_alias=AliasChoices(
            "MEDDIGEST_CRON_SECRET",
            "CRON_SECRET",
        ),
    )
    cors_origins: str = Field(default="*", description="Allowed CORS origins (comma-separated)")
    max_content_length: int = Field(default=1048576, description="Max request body size (bytes)")

    # Page configuration
    adsense_client_id: str = Field(
        default="",
        description="Google AdSense client id rendered into the page",
        validation_alias=AliasChoices(
            "MEDDIGEST_ADSENSE_CLIENT_ID",
            "ADSENSE_CLIENT_ID",
        ),
    )

    @property
    def cors_origin_list(self) -> list[str]:
        """Get CORS origin list"""
        origins: str = self.cors_origins  # type: ignore[assignment]
        return [o.strip() for o in origins.split(",") if o.strip()]


class SentrySettings(BaseSettings):
    """Sentry error reporting configuration"""

    model_config = SettingsConfigDict(
        env_prefix="MEDDIGEST_SENTRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    enabled: bool = Field(default=False, description="Enable Sentry")
    dsn: str = Field(default="", description="Sentry DSN")
    environment: str = Field(default="", description="Sentry environment name")
    traces_sample_rate: float = Field(default=0.0, description="Tracing sample rate")


class Settings(BaseSettings):
    """Main configuration class"""

    model_config = SettingsConfigDict(
        env_prefix="MEDDIGEST_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Data directories
    data_dir: Path = PROJECT_ROOT / "data"

    # Service configuration
    host: str = "http://localhost:5000"
    serve_port: int = 5000
    app_name: str = "MedDigest"
    platform: str = "Flask"

    # Log configuration
    log_level: str = "INFO"
    log_format: Literal["text", "json"] = "text"

    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    content: ContentSettings = Field(default_factory=ContentSettings)
    email: EmailSettings = Field(default_factory=EmailSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    pubmed: PubMedSettings = Field(default_factory=PubMedSettings)
    daemon: DaemonSettings = Field(default_factory=DaemonSettings)
    web: WebSettings = Field(default_factory=WebSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)

    @model_validator(mode="after")
    def set_defaults(self) -> Settings:
        """Set dependent default values"""
        # Links in emails must not end with a slash
        self.host = self.host.rstrip("/")
        return self

    @field_validator("data_dir", mode="before")
    @classmethod
    def resolve_path(cls, v):
        """Resolve path"""
        if isinstance(v, str):
            return Path(v)
        return v


@lru_cache
def get_settings() -> Settings:
    """Get settings singleton (with cache)"""
    return Settings()


# Global settings instance - explicit type annotation ensures IDE correctly infers type
settings: Settings = get_settings()


def reload_settings() -> Settings:
    """Reload settings (clear cache)"""
    get_settings.cache_clear()
    # Note: this does not update module-level settings variable, caller should use return value
    # To update global settings, use config package's reload_settings
    return get_settings()
