"""Email unsubscribe route.

- GET /api/email/unsubscribe?token=... - Switch off one notification
  category (or all email) for the user named in a signed token
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from seohub.config import get_unsubscribe_secret
from seohub.database import get_session
from seohub.emails.templates import render_unsubscribed_page
from seohub.exceptions import InvalidUnsubscribeTokenError
from seohub.models import UserPreferences
from seohub.utils.unsubscribe import verify_unsubscribe_token

log = structlog.get_logger()
router = APIRouter(prefix="/api/email", tags=["email"])


@router.get("/unsubscribe", response_class=HTMLResponse)
async def unsubscribe(
    token: str | None = None,
    session: AsyncSession = Depends(get_session),
) -> HTMLResponse:
    """Apply an unsubscribe link.

    Returns:
        200 OK: HTML confirmation page
        400 Bad Request: Missing, malformed, forged or expired token
        404 Not Found: User has no preferences row
    """
    secret = get_unsubscribe_secret()
    if not token or not secret:
        raise HTTPException(status_code=400, detail="Invalid unsubscribe link")

    try:
        claims = verify_unsubscribe_token(token, secret)
    except InvalidUnsubscribeTokenError as e:
        log.warning("unsubscribe_token_rejected", reason=str(e))
        raise HTTPException(status_code=400, detail="Invalid unsubscribe token") from e

    preferences = await session.get(UserPreferences, claims.user_id)
    if preferences is None:
        raise HTTPException(status_code=404, detail="User preferences not found")

    setattr(preferences, UserPreferences.CATEGORY_FLAGS[claims.category], False)
    log.info("user_unsubscribed", user_id=claims.user_id, category=claims.category.value)

    return HTMLResponse(content=render_unsubscribed_page(claims.category.value))
