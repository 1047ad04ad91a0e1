"""Mailgun HTTP API client.

This module provides a rate-limited, retry-enabled transport for the email
queue. It implements:
- Outbound rate limit via AsyncLimiter (default 10 messages per second)
- Automatic retry with exponential backoff for transient errors (429, 5xx,
  network errors) via tenacity
- send() returns False instead of raising so the email queue can apply its
  own slower re-queue backoff

Usage:
    client = MailgunClient(api_key, domain)
    delivered = await client.send(EmailMessage(to=..., subject=..., html=...))
"""

import httpx
from aiolimiter import AsyncLimiter
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from seohub.config import (
    get_email_from,
    get_mailgun_api_key,
    get_mailgun_base_url,
    get_mailgun_domain,
)
from seohub.emails.queue import EmailMessage
from seohub.exceptions import MailgunAPIError
from seohub.utils.logging import get_logger

log = get_logger(__name__)

RETRIABLE_STATUS_CODES = {429, 500, 502, 503, 504}


def _is_retriable(exception: BaseException) -> bool:
    """Retry rate limits, server errors and network failures."""
    if isinstance(exception, MailgunAPIError):
        return exception.status_code in RETRIABLE_STATUS_CODES
    return isinstance(exception, httpx.TransportError)


class MailgunClient:
    """Mailgun messages API client.

    Sends form-encoded POSTs to {base_url}/v3/{domain}/messages with basic
    auth ("api", api_key).
    """

    def __init__(
        self,
        api_key: str,
        domain: str,
        base_url: str = "https://api.mailgun.net",
        sender: str = "SEO Hub <notifications@seohub.example.com>",
        max_rate: float = 10,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize Mailgun client.

        Args:
            api_key: Mailgun private API key.
            domain: Sending domain configured in Mailgun.
            base_url: API base URL (US or EU region).
            sender: From header for every message.
            max_rate: Messages per second.
            http_client: Optional preconfigured httpx client (tests).
        """
        self.api_key = api_key
        self.domain = domain
        self.base_url = base_url.rstrip("/")
        self.sender = sender
        self.client = http_client or httpx.AsyncClient(timeout=30.0)
        self.rate_limiter = AsyncLimiter(max_rate=max_rate, time_period=1)

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/v3/{self.domain}/messages"

    @retry(
        retry=retry_if_exception(_is_retriable),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        reraise=True,
    )
    async def _post_message(self, message: EmailMessage) -> str | None:
        """POST one message (rate limited, auto-retry on transient errors).

        Returns:
            Mailgun message id, if the response carries one.

        Raises:
            MailgunAPIError: On a non-2xx response after retries.
            httpx.TransportError: On network failure after retries.
        """
        async with self.rate_limiter:
            response = await self.client.post(
                self.messages_url,
                auth=("api", self.api_key),
                data={
                    "from": self.sender,
                    "to": message.to,
                    "subject": message.subject,
                    "html": message.html,
                },
            )

        if response.status_code >= 400:
            raise MailgunAPIError(response.status_code, response.text[:500])

        try:
            return response.json().get("id")
        except ValueError:
            return None

    async def send(self, message: EmailMessage) -> bool:
        """Deliver a message.

        Args:
            message: Rendered email.

        Returns:
            True if Mailgun accepted the message, False otherwise.
        """
        try:
            message_id = await self._post_message(message)
        except MailgunAPIError as e:
            log.error(
                "mailgun_send_failed",
                to=message.to,
                subject=message.subject,
                status_code=e.status_code,
            )
            return False
        except httpx.TransportError as e:
            log.error(
                "mailgun_send_network_error",
                to=message.to,
                subject=message.subject,
                error=str(e),
            )
            return False

        log.info("mailgun_message_sent", to=message.to, subject=message.subject, message_id=message_id)
        return True

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()


def create_mailgun_client() -> MailgunClient | None:
    """Build a client from environment configuration.

    Returns:
        MailgunClient, or None when MAILGUN_API_KEY or MAILGUN_DOMAIN is
        missing (emails are then dropped with a warning by the queue).
    """
    api_key = get_mailgun_api_key()
    domain = get_mailgun_domain()
    if not api_key or not domain:
        log.warning("mailgun_not_configured", has_api_key=bool(api_key), has_domain=bool(domain))
        return None
    return MailgunClient(
        api_key=api_key,
        domain=domain,
        base_url=get_mailgun_base_url(),
        sender=get_email_from(),
    )
