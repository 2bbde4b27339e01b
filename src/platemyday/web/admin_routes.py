"""
Admin routes, gated by the `x-admin-key` header.
"""

import hmac
import logging

from fastapi import APIRouter, Depends, Header

from platemyday.billing.overrides import upsert_override
from platemyday.config import settings
from platemyday.errors import AuthorizationError
from platemyday.models.requests import OverrideUserRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


async def require_admin(x_admin_key: str | None = Header(None)) -> None:
    expected = settings.admin_secret_key
    if not expected or not x_admin_key or not hmac.compare_digest(x_admin_key, expected):
        raise AuthorizationError()


@router.post("/override-user", dependencies=[Depends(require_admin)])
async def override_user(req: OverrideUserRequest):
    """Set a user's unlimited flag and extra credits."""
    await upsert_override(req)
    return {"ok": True}
