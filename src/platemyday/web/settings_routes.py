"""
Settings and account routes.
"""

import logging

from fastapi import APIRouter, Depends, Request

from platemyday.db.client import get_user_settings, migrate_anonymous_data, upsert_user_settings
from platemyday.guardrails.actor import Actor
from platemyday.models.requests import AppSettings, MigrateAnonymousRequest
from platemyday.web.auth import AuthenticatedUser, get_actor, get_current_user, get_optional_user, request_actor

logger = logging.getLogger(__name__)

router = APIRouter(tags=["settings"])


@router.get("/settings")
async def get_settings(actor: Actor = Depends(get_actor)):
    """The actor's settings, or defaults before the first save."""
    stored = await get_user_settings(actor)
    app_settings = stored or AppSettings()
    return {"settings": app_settings.to_wire(exclude={"user_id", "anonymous_id"})}


@router.put("/settings")
async def put_settings(
    req: AppSettings,
    request: Request,
    user: AuthenticatedUser | None = Depends(get_optional_user),
):
    actor = request_actor(request, user, req.anonymous_id, claimed_user_id=req.user_id)
    await upsert_user_settings(actor, req)
    return {"success": True}


@router.post("/account/migrate-anonymous")
async def migrate_anonymous(req: MigrateAnonymousRequest, user: AuthenticatedUser = Depends(get_current_user)):
    """
    Move an anonymous visitor's data to the signed-in account.

    Ownership is transferred, not copied; credit counters are merged.
    """
    await migrate_anonymous_data(req.anonymous_id, user.id)
    return {"success": True}
