"""
Authentication utilities for FastAPI routes.

Shared auth dependencies used by all route modules. Bearer tokens are
Supabase access tokens, validated with the service client.
"""

import logging

from fastapi import Depends, Header, Query, Request
from pydantic import BaseModel

from platemyday.db.client import get_client
from platemyday.errors import AuthenticationError
from platemyday.guardrails.actor import Actor, get_request_ip, resolve_actor

logger = logging.getLogger(__name__)


class AuthenticatedUser(BaseModel):
    """Authenticated user info from Supabase JWT."""
    id: str
    email: str | None
    access_token: str


def _validate_token(authorization: str) -> AuthenticatedUser:
    if not authorization.startswith("Bearer "):
        raise AuthenticationError("Invalid authorization format")

    access_token = authorization[7:]  # Remove "Bearer " prefix

    try:
        client = get_client()
        user_response = client.auth.get_user(access_token)
    except Exception as e:
        logger.warning(f"Auth validation failed: {e}")
        raise AuthenticationError("Invalid or expired token") from e

    if not user_response or not user_response.user:
        raise AuthenticationError("Invalid or expired token")

    user = user_response.user
    return AuthenticatedUser(id=user.id, email=user.email, access_token=access_token)


async def get_optional_user(authorization: str | None = Header(None)) -> AuthenticatedUser | None:
    """
    The signed-in user, or None for anonymous requests.

    A header that is present but invalid is still a 401.
    """
    if not authorization:
        return None
    return _validate_token(authorization)


async def get_current_user(user: AuthenticatedUser | None = Depends(get_optional_user)) -> AuthenticatedUser:
    """Require a signed-in user."""
    if user is None:
        raise AuthenticationError("Missing authorization header")
    return user


def request_actor(
    request: Request,
    user: AuthenticatedUser | None,
    anonymous_id: str | None = None,
    claimed_user_id: str | None = None,
) -> Actor:
    return resolve_actor(
        user.id if user else None,
        claimed_user_id=claimed_user_id,
        anonymous_id=(anonymous_id or "").strip()[:128] or None,
        ip=get_request_ip(request),
    )


async def get_actor(
    request: Request,
    anonymous_id: str | None = Query(None, alias="anonymousId"),
    user: AuthenticatedUser | None = Depends(get_optional_user),
) -> Actor:
    """Actor for GET/DELETE routes: bearer token, else the `anonymousId` query param."""
    return request_actor(request, user, anonymous_id)
