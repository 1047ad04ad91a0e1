"""FastAPI dependencies shared by the routers.

The email queue and the rate limiter live on app.state (created in the
application lifespan); routes reach them only through these functions so
tests can replace them with app.dependency_overrides.
"""

from fastapi import Depends, Header, HTTPException, Request, status

from seohub.config import get_webhook_secret
from seohub.emails.queue import EmailQueue
from seohub.services.notification_service import NotificationDispatcher
from seohub.services.webhook_handler import verify_api_key
from seohub.utils.logging import get_logger
from seohub.utils.rate_limit import FixedWindowRateLimiter

log = get_logger(__name__)


def get_email_queue(request: Request) -> EmailQueue:
    """Return the process-wide email queue."""
    return request.app.state.email_queue


def get_rate_limiter(request: Request) -> FixedWindowRateLimiter:
    """Return the process-wide webhook rate limiter."""
    return request.app.state.rate_limiter


def get_dispatcher(email_queue: EmailQueue = Depends(get_email_queue)) -> NotificationDispatcher:
    """Return a notification dispatcher bound to the email queue."""
    return NotificationDispatcher(email_queue)


def client_key(request: Request) -> str:
    """Identify the caller for rate limiting (first X-Forwarded-For hop, else peer host)."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def enforce_rate_limit(
    request: Request,
    limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
) -> None:
    """Reject the request with 429 when the caller exceeded its window.

    Raises:
        HTTPException: 429 Too Many Requests.
    """
    key = client_key(request)
    if not await limiter.allow(key):
        log.warning("rate_limit_exceeded", client=key, path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests",
        )


async def require_api_key(
    request: Request,
    x_api_key: str | None = Header(default=None),
) -> None:
    """Check the x-api-key header against SEOWORKS_WEBHOOK_SECRET.

    Raises:
        HTTPException: 401 Unauthorized.
    """
    if not verify_api_key(x_api_key, get_webhook_secret()):
        log.warning(
            "webhook_unauthorized",
            path=request.url.path,
            has_api_key=x_api_key is not None,
        )
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
