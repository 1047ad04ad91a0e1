"""Signed unsubscribe tokens.

Token format:
    base64url(json{"userId", "category", "issuedAt"}) + "." + hex(hmac_sha256(secret, body))

The body is the unpadded base64url text. issuedAt is Unix seconds. Tokens
older than UNSUBSCRIBE_TOKEN_MAX_AGE_HOURS are rejected.

Usage:
    token = create_unsubscribe_token(user.id, EmailCategory.TASK_COMPLETED, secret)
    claims = verify_unsubscribe_token(token, secret)
"""

import base64
import binascii
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

from seohub.constants import UNSUBSCRIBE_TOKEN_MAX_AGE_HOURS
from seohub.exceptions import InvalidUnsubscribeTokenError
from seohub.models import EmailCategory, as_utc, utcnow


@dataclass(frozen=True)
class UnsubscribeClaims:
    """Verified token contents."""

    user_id: str
    category: EmailCategory
    issued_at: datetime


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


def _sign(body: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body.encode("ascii"), hashlib.sha256).hexdigest()


def create_unsubscribe_token(
    user_id: str,
    category: EmailCategory,
    secret: str,
    issued_at: datetime | None = None,
) -> str:
    """Create a signed unsubscribe token.

    Args:
        user_id: User the token unsubscribes.
        category: Notification category to switch off.
        secret: HMAC key (UNSUBSCRIBE_SECRET).
        issued_at: Issue time, defaults to now.

    Returns:
        Token string safe for use in a URL query parameter.
    """
    issued = as_utc(issued_at) if issued_at is not None else utcnow()
    body = _b64encode(
        json.dumps(
            {
                "userId": user_id,
                "category": category.value,
                "issuedAt": int(issued.timestamp()),
            },
            separators=(",", ":"),
        ).encode("utf-8")
    )
    return f"{body}.{_sign(body, secret)}"


def verify_unsubscribe_token(
    token: str,
    secret: str,
    now: datetime | None = None,
    max_age: timedelta = timedelta(hours=UNSUBSCRIBE_TOKEN_MAX_AGE_HOURS),
) -> UnsubscribeClaims:
    """Verify signature and age of an unsubscribe token.

    Args:
        token: Token from the unsubscribe link.
        secret: HMAC key (UNSUBSCRIBE_SECRET).
        now: Reference time, defaults to now.
        max_age: Oldest acceptable token age.

    Returns:
        UnsubscribeClaims for a valid token.

    Raises:
        InvalidUnsubscribeTokenError: If the token is malformed, the signature
            does not match, the category is unknown or the token expired.
    """
    body, sep, signature = token.partition(".")
    if not sep or not body or not signature:
        raise InvalidUnsubscribeTokenError("Malformed unsubscribe token")
    if not body.isascii() or not signature.isascii():
        raise InvalidUnsubscribeTokenError("Malformed unsubscribe token")

    if not hmac.compare_digest(_sign(body, secret), signature):
        raise InvalidUnsubscribeTokenError("Invalid unsubscribe token signature")

    try:
        claims = json.loads(_b64decode(body))
        user_id = claims["userId"]
        category = EmailCategory(claims["category"])
        issued_at = datetime.fromtimestamp(int(claims["issuedAt"]), tz=timezone.utc)
    except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
        raise InvalidUnsubscribeTokenError("Malformed unsubscribe token") from e

    if not isinstance(user_id, str) or not user_id:
        raise InvalidUnsubscribeTokenError("Malformed unsubscribe token")

    reference = as_utc(now) if now is not None else utcnow()
    if reference - issued_at > max_age:
        raise InvalidUnsubscribeTokenError("Unsubscribe token expired")

    return UnsubscribeClaims(user_id=user_id, category=category, issued_at=issued_at)


def build_unsubscribe_url(
    app_url: str,
    user_id: str,
    category: EmailCategory,
    secret: str | None,
) -> str | None:
    """Return the unsubscribe link for an email, or None without a secret."""
    if not secret:
        return None
    token = create_unsubscribe_token(user_id, category, secret)
    return f"{app_url}/api/email/unsubscribe?{urlencode({'token': token})}"
