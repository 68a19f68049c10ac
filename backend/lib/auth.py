"""
Authentication: validates the Supabase access token on each request and
hands endpoints an explicit UserContext.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Header

from .logger import get_logger
from .supabase_client import get_supabase_client

logger = get_logger("backend.auth")


@dataclass(frozen=True)
class UserContext:
    """The authenticated user a request acts for."""
    id: str
    email: Optional[str] = None


def bearer_token(authorization: Optional[str] = Header(None)) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")

    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header format")

    return authorization[len("Bearer "):]


async def get_current_user(token: str = Depends(bearer_token)) -> UserContext:
    """
    Validate the token with Supabase Auth.

    Raises:
        HTTPException: 401 if the token is invalid or expired
    """
    try:
        user_response = get_supabase_client().auth.get_user(token)
    except Exception as e:
        logger.warning("Token validation failed", data={"error": str(e)})
        raise HTTPException(status_code=401, detail="Could not validate credentials") from e

    if not user_response or not user_response.user:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user = user_response.user
    return UserContext(id=user.id, email=user.email)
