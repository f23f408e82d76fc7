import secrets

from fastapi import Header, HTTPException, status

from labs_booking.core.config import settings
from labs_booking.core.db import get_session, get_session_maker

__all__ = ["get_session", "get_session_maker", "require_admin"]


def require_admin(x_admin_key: str | None = Header(default=None, alias="X-Admin-Key")) -> None:
    """Admin routes check a shared key; there are no user accounts in this service."""
    if not settings.admin_api_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API is not configured (set ADMIN_API_KEY)",
        )
    if not x_admin_key or not secrets.compare_digest(x_admin_key, settings.admin_api_key):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not authorized",
        )
