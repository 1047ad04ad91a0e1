"""Configuration management for the SEO Hub service.

This module provides centralized configuration loading from environment variables.
Values that never change at runtime are cached; values tests commonly override
are read on every call.

Environment Variables:
    DATABASE_URL: PostgreSQL connection URL (required for production)
    SEOWORKS_WEBHOOK_SECRET: Shared secret expected in the x-api-key header
    MAILGUN_API_KEY / MAILGUN_DOMAIN / MAILGUN_BASE_URL: Email transport
    EMAIL_FROM: Sender address for notifications
    APP_URL: Public dashboard URL used in email links
    UNSUBSCRIBE_SECRET: HMAC key for unsubscribe tokens
    WEBHOOK_RATE_LIMIT_PER_MINUTE: Requests per client per minute (default: 60)
    EMAIL_MAX_RETRIES / EMAIL_RETRY_DELAY_SECONDS: Email queue retry policy
    ENVIRONMENT: development | staging | production (default: development)
    LOG_LEVEL: Log level name (default: INFO)

Usage:
    from seohub.config import get_webhook_secret, get_database_url

    secret = get_webhook_secret()  # Returns None if not set
    db_url = get_database_url()  # Raises if DATABASE_URL not set
"""

import os
from functools import lru_cache

import structlog

log = structlog.get_logger(__name__)

DEFAULT_RATE_LIMIT_PER_MINUTE = 60
DEFAULT_EMAIL_MAX_RETRIES = 3
DEFAULT_EMAIL_RETRY_DELAY_SECONDS = 5.0


@lru_cache
def get_database_url() -> str:
    """Get database URL from environment.

    Converts postgresql:// to postgresql+asyncpg:// for async SQLAlchemy.

    Environment Variable:
        DATABASE_URL: PostgreSQL connection URL

    Returns:
        Database URL with asyncpg driver.

    Raises:
        ValueError: If DATABASE_URL not set.
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        raise ValueError("DATABASE_URL environment variable is required")

    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return url


def get_webhook_secret() -> str | None:
    """Get the SEOWorks shared webhook secret.

    Environment Variable:
        SEOWORKS_WEBHOOK_SECRET: Value the vendor sends in the x-api-key header

    Returns:
        Secret string, or None if not set (webhook authentication then fails closed).
    """
    return os.getenv("SEOWORKS_WEBHOOK_SECRET") or None


def get_environment() -> str:
    """Get deployment environment name (default: "development")."""
    return os.getenv("ENVIRONMENT", "development").lower()


def is_production() -> bool:
    """Return True when running in production."""
    return get_environment() == "production"


def get_log_level() -> str:
    """Get log level name from environment (default: "INFO")."""
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_mailgun_api_key() -> str | None:
    """Get Mailgun API key.

    Returns:
        API key string, or None if not set.

    Note:
        Returns None when MAILGUN_API_KEY is not set, allowing the app
        to start without email delivery. Queued emails are then dropped
        with a warning.
    """
    return os.getenv("MAILGUN_API_KEY") or None


def get_mailgun_domain() -> str | None:
    """Get Mailgun sending domain, or None if not set."""
    return os.getenv("MAILGUN_DOMAIN") or None


def get_mailgun_base_url() -> str:
    """Get Mailgun API base URL (default: US region endpoint)."""
    return os.getenv("MAILGUN_BASE_URL", "https://api.mailgun.net").rstrip("/")


def get_email_from() -> str:
    """Get sender address for notification emails."""
    return os.getenv("EMAIL_FROM", "SEO Hub <notifications@seohub.example.com>")


def get_app_url() -> str:
    """Get public dashboard URL used for links inside emails."""
    return os.getenv("APP_URL", "http://localhost:3000").rstrip("/")


def get_unsubscribe_secret() -> str | None:
    """Get HMAC secret for unsubscribe tokens.

    Returns:
        Secret string, or None if not set. Emails omit the unsubscribe
        link when no secret is configured.
    """
    return os.getenv("UNSUBSCRIBE_SECRET") or None


def get_rate_limit_per_minute() -> int:
    """Get webhook rate limit in requests per client per minute.

    Environment Variable:
        WEBHOOK_RATE_LIMIT_PER_MINUTE: Ceiling per fixed one-minute window (default: 60)

    Returns:
        Requests per minute (minimum 1, maximum 10000).
    """
    try:
        limit = int(
            os.getenv("WEBHOOK_RATE_LIMIT_PER_MINUTE", str(DEFAULT_RATE_LIMIT_PER_MINUTE))
        )
        return max(1, min(10000, limit))
    except ValueError:
        log.warning(
            "invalid_rate_limit",
            value=os.getenv("WEBHOOK_RATE_LIMIT_PER_MINUTE"),
            using_default=DEFAULT_RATE_LIMIT_PER_MINUTE,
        )
        return DEFAULT_RATE_LIMIT_PER_MINUTE


def get_email_max_retries() -> int:
    """Get maximum retry count for a failed email send (default: 3)."""
    try:
        return max(0, int(os.getenv("EMAIL_MAX_RETRIES", str(DEFAULT_EMAIL_MAX_RETRIES))))
    except ValueError:
        log.warning(
            "invalid_email_max_retries",
            value=os.getenv("EMAIL_MAX_RETRIES"),
            using_default=DEFAULT_EMAIL_MAX_RETRIES,
        )
        return DEFAULT_EMAIL_MAX_RETRIES


def get_email_retry_delay_seconds() -> float:
    """Get base delay for exponential email retry backoff (default: 5.0 seconds)."""
    try:
        return max(
            0.0,
            float(
                os.getenv("EMAIL_RETRY_DELAY_SECONDS", str(DEFAULT_EMAIL_RETRY_DELAY_SECONDS))
            ),
        )
    except ValueError:
        log.warning(
            "invalid_email_retry_delay",
            value=os.getenv("EMAIL_RETRY_DELAY_SECONDS"),
            using_default=DEFAULT_EMAIL_RETRY_DELAY_SECONDS,
        )
        return DEFAULT_EMAIL_RETRY_DELAY_SECONDS
