"""Shared exceptions for the application.

This module contains exception classes used across multiple services
to avoid cross-domain dependencies between services.
"""


class ConfigurationError(Exception):
    """Raised when required configuration is missing.

    This error indicates a configuration problem that prevents a request
    from being served (e.g., no database configured, no Mailgun domain
    for an enabled transport).
    """

    pass


class InvalidTierError(ValueError):
    """Raised when a package tier is not one of SILVER, GOLD or PLATINUM.

    Attributes:
        tier: The unrecognized tier value as received.
    """

    def __init__(self, tier: object):
        self.tier = tier
        super().__init__(f"Invalid package tier: {tier!r}")


class DealershipNotFoundError(LookupError):
    """Raised when a dealership id does not match any row."""

    def __init__(self, dealership_id: str):
        self.dealership_id = dealership_id
        super().__init__(f"Dealership not found: {dealership_id}")


class NoActivePackageError(Exception):
    """Raised when usage is recorded for a dealership without an active package."""

    def __init__(self, dealership_id: str):
        self.dealership_id = dealership_id
        super().__init__(f"Dealership {dealership_id} does not have an active package")


class QuotaExceededError(Exception):
    """Raised when a usage increment would exceed the tier's monthly limit.

    The counter is left unchanged when this is raised.

    Attributes:
        dealership_id: Dealership whose quota is exhausted.
        category: Usage category value ("pages", "blogs", "gbp_posts", "improvements").
        limit: Monthly limit for the category on the dealership's tier.
    """

    def __init__(self, dealership_id: str, category: str, limit: int):
        self.dealership_id = dealership_id
        self.category = category
        self.limit = limit
        super().__init__(
            f"Usage limit for {category} exceeded for dealership {dealership_id} "
            f"(limit={limit})"
        )


class MailgunAPIError(Exception):
    """Raised when Mailgun rejects a message or returns a server error.

    Attributes:
        status_code: HTTP status returned by Mailgun.
        message: Response body text (truncated).
    """

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"Mailgun API error {status_code}: {message}")


class InvalidUnsubscribeTokenError(ValueError):
    """Raised when an unsubscribe token is malformed, forged or expired."""

    pass
