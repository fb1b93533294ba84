"""
Authentication Module

Resolves the calling user from request headers. Statement status, cached
results and learned patterns are all scoped to this user id.
"""

import os

from fastapi import HTTPException, Header, status
from pydantic import BaseModel

DEV_USER_ID = "dev"


class User(BaseModel):
    """Authenticated user model."""

    user_id: str


async def get_current_user(
    x_user_id: str | None = Header(None, alias="X-User-ID"),
) -> User:
    """Get current user from request headers.

    Args:
        x_user_id: Caller's user id

    Returns:
        Authenticated User

    Raises:
        HTTPException: If the header is missing outside development
    """
    if x_user_id and x_user_id.strip():
        return User(user_id=x_user_id.strip())

    # Development mode: allow anonymous requests
    if os.getenv("ENVIRONMENT", "development") == "development":
        return User(user_id=DEV_USER_ID)

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Missing X-User-ID header",
    )
