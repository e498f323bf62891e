"""Application settings and configuration.

This module defines all configuration options for the spam blocker service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Database configuration
    database_url: str = Field(default="sqlite:///./spam_blocker.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Network indexer
    indexer_enabled: bool = Field(default=True, alias="INDEXER_ENABLED")
    indexer_max_concurrent_page_fetches: int = Field(
        default=10,
        alias="INDEXER_MAX_CONCURRENT_PAGE_FETCHES",
    )
    indexer_previous_cid_crawl_timeout_seconds: float = Field(
        default=60.0,
        alias="INDEXER_PREVIOUS_CID_CRAWL_TIMEOUT_SECONDS",
    )
    indexer_max_previous_cid_depth: int = Field(
        default=10,
        alias="INDEXER_MAX_PREVIOUS_CID_DEPTH",
    )
    indexer_max_consecutive_errors: int = Field(
        default=5,
        alias="INDEXER_MAX_CONSECUTIVE_ERRORS",
    )
    indexer_modqueue_resolve_timeout_seconds: float = Field(
        default=10.0,
        alias="INDEXER_MODQUEUE_RESOLVE_TIMEOUT_SECONDS",
    )
    indexer_crawl_idle_interval_seconds: float = Field(
        default=1.0,
        alias="INDEXER_CRAWL_IDLE_INTERVAL_SECONDS",
    )

    # Challenge tier thresholds (risk scores are 0.0-1.0, higher = riskier)
    challenge_auto_accept_threshold: float = Field(
        default=0.2,
        alias="CHALLENGE_AUTO_ACCEPT_THRESHOLD",
    )
    challenge_captcha_only_threshold: float = Field(
        default=0.4,
        alias="CHALLENGE_CAPTCHA_ONLY_THRESHOLD",
    )
    challenge_auto_reject_threshold: float = Field(
        default=0.8,
        alias="CHALLENGE_AUTO_REJECT_THRESHOLD",
    )

    # Challenge session lifecycle
    challenge_session_ttl_seconds: int = Field(
        default=3600,
        alias="CHALLENGE_SESSION_TTL_SECONDS",
    )
    challenge_session_retention_seconds: int = Field(
        default=86_400,
        alias="CHALLENGE_SESSION_RETENTION_SECONDS",
    )
    retention_sweep_interval_seconds: float = Field(
        default=300.0,
        alias="RETENTION_SWEEP_INTERVAL_SECONDS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling such as Alembic.

        Returns:
            Database URL compatible with synchronous database drivers
        """
        url = self.effective_database_url
        if url.startswith("sqlite+aiosqlite"):
            return url.replace("sqlite+aiosqlite", "sqlite", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides.

        Returns:
            The active database URL (test database if in testing mode, otherwise production)
        """
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()
