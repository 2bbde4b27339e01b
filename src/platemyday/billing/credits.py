"""
PlateMyDay - Credit Ledger.

`check_credits` is a pure read. `consume_credit` is the only mutation and
runs as a single conditional update inside the `consume_credit` database
function, so two concurrent generations can't both spend the last credit.

Precedence for signed-in users: admin unlimited override, then an active
subscription, then a lifetime plan, then the numeric counter. Anonymous
actors only have the counter.
"""

import logging
from typing import Any

from platemyday.config import settings
from platemyday.db.client import execute, get_client
from platemyday.errors import CreditsExhaustedError
from platemyday.guardrails.actor import Actor
from platemyday.models.billing import BillingInfo, CreditBalance, CreditCheck

logger = logging.getLogger(__name__)


def _first(response: Any) -> dict | None:
    data = response.data
    if isinstance(data, list):
        return data[0] if data else None
    return data or None


def _fetch_counter(actor: Actor) -> dict | None:
    client = get_client()
    return _first(
        execute(
            client.table("user_credits")
            .select("credits_used, credits_limit")
            .match(actor.owner_filter())
            .limit(1),
            "fetch credits",
        )
    )


def _fetch_billing(user_id: str) -> tuple[dict | None, dict | None]:
    client = get_client()
    billing = _first(
        execute(
            client.table("user_billing")
            .select("plan_id, subscription_status")
            .eq("user_id", user_id)
            .limit(1),
            "fetch billing",
        )
    )
    override = _first(
        execute(
            client.table("user_billing_overrides")
            .select("unlimited, extra_credits")
            .eq("user_id", user_id)
            .limit(1),
            "fetch billing override",
        )
    )
    return billing, override


def is_unlimited(billing: dict | None, override: dict | None) -> bool:
    """Whether billing state bypasses the credit counter."""
    if override and override.get("unlimited"):
        return True
    if billing and billing.get("subscription_status") == "active":
        return True
    return bool(billing and billing.get("plan_id") == "lifetime")


def _counter_values(counter: dict | None) -> tuple[int, int]:
    """(credits_used, credits_limit) from a counter row, defaulting a missing row to a fresh one."""
    counter = counter or {}
    used = counter.get("credits_used") or 0
    limit = counter.get("credits_limit")
    return used, settings.default_credits_limit if limit is None else limit


def remaining_credits(credits_used: int, credits_limit: int) -> int:
    return max(0, credits_limit - credits_used)


async def check_credits(actor: Actor) -> CreditCheck:
    """
    Would a generation be allowed right now? No side effects.

    `credits_limit` already includes any admin extra credits.
    """
    if not actor.has_identity:
        # Nothing can own a counter; treat as a fresh free actor
        limit = settings.default_credits_limit
        return CreditCheck(allowed=limit > 0, unlimited=False, credits_used=0, credits_limit=limit, remaining=limit)

    extra = 0
    if actor.user_id:
        billing, override = _fetch_billing(actor.user_id)
        if is_unlimited(billing, override):
            return CreditCheck(allowed=True, unlimited=True, credits_used=0, credits_limit=0, remaining=None)
        extra = (override or {}).get("extra_credits") or 0

    used, limit = _counter_values(_fetch_counter(actor))
    limit += extra
    remaining = remaining_credits(used, limit)

    return CreditCheck(
        allowed=remaining > 0,
        unlimited=False,
        credits_used=used,
        credits_limit=limit,
        remaining=remaining,
    )


async def consume_credit(actor: Actor) -> CreditBalance:
    """
    Atomically spend one credit. Call only after a successful generation.

    The database function increments `credits_used` only while it is below
    the limit (plus extra credits) and returns no row otherwise. Unlimited
    actors are counted without a ceiling.

    Raises:
        CreditsExhaustedError: the conditional update matched nothing
    """
    client = get_client()
    response = execute(
        client.rpc(
            "consume_credit",
            {
                "p_user_id": actor.user_id,
                "p_anonymous_id": None if actor.user_id else actor.anonymous_id,
                "p_default_limit": settings.default_credits_limit,
            },
        ),
        "consume_credit",
    )

    row = _first(response)
    if row is None:
        logger.info(f"Credit consumption refused for {actor.key}: limit reached")
        used, limit = _counter_values(_fetch_counter(actor))
        raise CreditsExhaustedError(credits_used=used, credits_limit=limit)

    return CreditBalance(credits_used=row["credits_used"], credits_limit=row["credits_limit"])


async def get_billing_info(actor: Actor) -> BillingInfo:
    """Billing snapshot for the credits endpoint."""
    default_limit = settings.default_credits_limit
    if not actor.has_identity:
        return BillingInfo(credits_limit=default_limit, credits_remaining=default_limit)

    plan = "free"
    unlimited = False
    extra = 0
    if actor.user_id:
        billing, override = _fetch_billing(actor.user_id)
        plan = (billing or {}).get("plan_id") or "free"
        unlimited = is_unlimited(billing, override)
        extra = (override or {}).get("extra_credits") or 0

    used, limit = _counter_values(_fetch_counter(actor))
    limit += extra

    return BillingInfo(
        plan=plan,
        unlimited=unlimited,
        credits_used=used,
        credits_limit=limit,
        credits_remaining=None if unlimited else remaining_credits(used, limit),
    )
