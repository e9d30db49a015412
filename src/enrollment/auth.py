"""
Enrollment - Request authentication.

Shared FastAPI dependency: resolves the Supabase user behind a bearer token.
"""

import logging

from fastapi import Header, HTTPException
from pydantic import BaseModel

from enrollment.db.client import get_client

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


class AuthenticatedUser(BaseModel):
    """The Supabase user a request acts for."""
    id: str
    email: str | None
    access_token: str


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail)


async def get_current_user(authorization: str | None = Header(None)) -> AuthenticatedUser:
    """
    Resolve `Authorization: Bearer <access_token>` to a user.

    Any failure (no header, wrong scheme, unknown token, Supabase error) is a 401.
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise _unauthorized("Missing or invalid authorization header")
    access_token = authorization[len(BEARER_PREFIX):]

    try:
        response = get_client().auth.get_user(access_token)
    except Exception as e:
        logger.warning(f"Token check failed: {e}")
        raise _unauthorized("Authentication failed") from e

    user = response.user if response else None
    if user is None:
        raise _unauthorized("Invalid or expired token")
    return AuthenticatedUser(id=user.id, email=user.email, access_token=access_token)
