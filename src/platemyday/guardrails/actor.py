"""
Actor resolution.

Every request is attributed to exactly one actor: a verified user, else an
anonymous visitor id, else the client IP.
"""

from dataclasses import dataclass

from fastapi import Request

from platemyday.errors import AuthenticationError, AuthorizationError


@dataclass(frozen=True)
class Actor:
    user_id: str | None = None
    anonymous_id: str | None = None
    ip: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @property
    def key(self) -> str:
        """Rate-limit key for this actor."""
        if self.user_id:
            return f"user:{self.user_id}"
        if self.anonymous_id:
            return f"anon:{self.anonymous_id}"
        return f"ip:{self.ip}" if self.ip else "ip:unknown"

    @property
    def has_identity(self) -> bool:
        """True when the actor can own records (user or anonymous id)."""
        return bool(self.user_id or self.anonymous_id)

    def owner_filter(self) -> dict[str, str]:
        """Column filter selecting rows this actor owns."""
        if self.user_id:
            return {"user_id": self.user_id}
        if self.anonymous_id:
            return {"anonymous_id": self.anonymous_id}
        raise AuthenticationError("An anonymous id or sign-in is required")


def get_request_ip(request: Request) -> str | None:
    """Client IP: first X-Forwarded-For entry, then X-Real-IP, then the socket peer."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first_ip = forwarded_for.split(",")[0].strip()
        if first_ip:
            return first_ip

    real_ip = (request.headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip

    if request.client and request.client.host:
        return request.client.host
    return None


def resolve_actor(
    verified_user_id: str | None,
    claimed_user_id: str | None = None,
    anonymous_id: str | None = None,
    ip: str | None = None,
) -> Actor:
    """
    Build the Actor for a request.

    `verified_user_id` comes from the bearer token. A `claimed_user_id` in the
    body must match it; claiming a user id without a token is rejected.
    """
    if claimed_user_id:
        if not verified_user_id:
            raise AuthenticationError("Sign in required")
        if claimed_user_id != verified_user_id:
            raise AuthorizationError("userId does not match the signed-in user")

    if verified_user_id:
        return Actor(user_id=verified_user_id, ip=ip)
    return Actor(anonymous_id=anonymous_id or None, ip=ip)
