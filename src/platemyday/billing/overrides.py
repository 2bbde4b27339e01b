"""Admin credit overrides."""

import logging

from platemyday.db.client import execute, get_client, utc_now
from platemyday.models.requests import OverrideUserRequest

logger = logging.getLogger(__name__)


async def upsert_override(request: OverrideUserRequest) -> None:
    """Grant (or revoke) unlimited generations and extra credits for a user."""
    client = get_client()
    execute(
        client.table("user_billing_overrides").upsert(
            {
                "user_id": request.user_id,
                "unlimited": request.unlimited,
                "extra_credits": request.extra_credits,
                "note": request.note,
                "updated_at": utc_now(),
            },
            on_conflict="user_id",
        ),
        "upsert_override",
    )
    logger.info(
        f"Billing override for {request.user_id}: unlimited={request.unlimited}, extra={request.extra_credits}"
    )
