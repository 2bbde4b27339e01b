"""
PlateMyDay - Stripe billing.

Checkout and portal sessions are created on behalf of signed-in users. The
billing record (`user_billing`) is only ever mutated by verified webhook
events, never by the app directly.
"""

import logging
from typing import Any

import stripe

from platemyday.config import settings
from platemyday.db.client import execute, get_client, utc_now
from platemyday.errors import NotFoundError, RequestValidationError

logger = logging.getLogger(__name__)


class WebhookSignatureError(Exception):
    """The webhook payload didn't verify against the signing secret."""


def _configure() -> None:
    stripe.api_key = settings.stripe_secret_key


def price_for_plan(plan: str) -> str:
    prices = {
        "monthly": settings.stripe_price_monthly,
        "annual": settings.stripe_price_annual,
        "lifetime": settings.stripe_price_lifetime,
    }
    price_id = prices.get(plan)
    if not price_id:
        raise RequestValidationError("Invalid plan")
    return price_id


def plan_for_price(price_id: str | None) -> str:
    """Map a Stripe price id back to a plan id; unknown prices are free."""
    if not price_id:
        return "free"
    if price_id == settings.stripe_price_monthly:
        return "pro_monthly"
    if price_id == settings.stripe_price_annual:
        return "pro_annual"
    if price_id == settings.stripe_price_lifetime:
        return "lifetime"
    return "free"


def _get_customer_id(user_id: str) -> str | None:
    client = get_client()
    response = execute(
        client.table("user_billing").select("stripe_customer_id").eq("user_id", user_id).limit(1),
        "get stripe customer",
    )
    if not response.data:
        return None
    return response.data[0].get("stripe_customer_id")


def _upsert_billing(values: dict[str, Any]) -> None:
    client = get_client()
    execute(
        client.table("user_billing").upsert({**values, "updated_at": utc_now()}, on_conflict="user_id"),
        "upsert user_billing",
    )


# =============================================================================
# Sessions
# =============================================================================


async def create_checkout_session(user_id: str, plan: str, origin: str | None = None) -> str:
    """
    Start a Stripe Checkout for `plan` and return its URL.

    Lifetime is a one-off payment, the other plans are subscriptions. The
    Stripe customer is created and stored on first checkout.
    """
    price_id = price_for_plan(plan)
    mode = "payment" if plan == "lifetime" else "subscription"
    _configure()

    customer_id = _get_customer_id(user_id)
    if not customer_id:
        customer = stripe.Customer.create(metadata={"user_id": user_id})
        customer_id = customer.id
        _upsert_billing({"user_id": user_id, "stripe_customer_id": customer_id})
        logger.info(f"Created Stripe customer {customer_id} for user {user_id}")

    base_url = origin or settings.app_url
    params: dict[str, Any] = {
        "customer": customer_id,
        "mode": mode,
        "line_items": [{"price": price_id, "quantity": 1}],
        "success_url": f"{base_url}/upgrade?success=true",
        "cancel_url": f"{base_url}/upgrade?canceled=true",
        "metadata": {"user_id": user_id},
    }
    if mode == "subscription":
        params["subscription_data"] = {"metadata": {"user_id": user_id}}

    session = stripe.checkout.Session.create(**params)
    return session.url


async def create_portal_session(user_id: str, origin: str | None = None) -> str:
    """Billing-portal URL for a user who has checked out before."""
    customer_id = _get_customer_id(user_id)
    if not customer_id:
        raise NotFoundError("No billing account found")

    _configure()
    session = stripe.billing_portal.Session.create(
        customer=customer_id,
        return_url=f"{origin or settings.app_url}/upgrade",
    )
    return session.url


# =============================================================================
# Webhooks
# =============================================================================


def construct_event(payload: bytes, signature: str | None) -> Any:
    """Verify and parse a webhook payload."""
    if not signature:
        raise WebhookSignatureError("Missing stripe-signature header")
    try:
        return stripe.Webhook.construct_event(payload, signature, settings.stripe_webhook_secret)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        raise WebhookSignatureError("Invalid signature") from e


def _user_for_customer(customer_id: str | None) -> str | None:
    if not customer_id:
        return None
    client = get_client()
    response = execute(
        client.table("user_billing").select("user_id").eq("stripe_customer_id", customer_id).limit(1),
        "lookup customer",
    )
    if not response.data:
        return None
    return response.data[0].get("user_id")


def _metadata_user(obj: Any) -> str | None:
    metadata = obj.get("metadata") or {}
    return metadata.get("user_id")


def _handle_checkout_completed(session: Any) -> None:
    user_id = _metadata_user(session)
    if not user_id:
        return
    # Subscriptions are recorded by the customer.subscription.* events
    if session.get("mode") != "payment":
        return
    _upsert_billing(
        {
            "user_id": user_id,
            "stripe_customer_id": session.get("customer"),
            "plan_id": "lifetime",
            "subscription_id": None,
            "subscription_status": None,
        }
    )
    logger.info(f"Lifetime plan activated for user {user_id}")


def _handle_subscription_changed(subscription: Any) -> None:
    customer_id = subscription.get("customer")
    user_id = _metadata_user(subscription) or _user_for_customer(customer_id)
    if not user_id:
        logger.warning(f"Subscription {subscription.get('id')} has no known user")
        return

    items = (subscription.get("items") or {}).get("data") or []
    price_id = items[0]["price"]["id"] if items else None
    status = subscription.get("status")
    plan_id = plan_for_price(price_id) if status == "active" else "free"

    _upsert_billing(
        {
            "user_id": user_id,
            "stripe_customer_id": customer_id,
            "plan_id": plan_id,
            "subscription_id": subscription.get("id"),
            "subscription_status": status,
        }
    )
    logger.info(f"Subscription {subscription.get('id')} for user {user_id}: {status} ({plan_id})")


def _handle_subscription_deleted(subscription: Any) -> None:
    user_id = _user_for_customer(subscription.get("customer"))
    if not user_id:
        return
    client = get_client()
    execute(
        client.table("user_billing")
        .update(
            {
                "plan_id": "free",
                "subscription_id": None,
                "subscription_status": "canceled",
                "updated_at": utc_now(),
            }
        )
        .eq("user_id", user_id),
        "subscription deleted",
    )
    logger.info(f"Subscription canceled for user {user_id}")


def _handle_payment_failed(invoice: Any) -> None:
    customer_id = invoice.get("customer")
    if not customer_id:
        return
    client = get_client()
    execute(
        client.table("user_billing")
        .update({"subscription_status": "past_due", "updated_at": utc_now()})
        .eq("stripe_customer_id", customer_id),
        "invoice payment failed",
    )


EVENT_HANDLERS = {
    "checkout.session.completed": _handle_checkout_completed,
    "customer.subscription.created": _handle_subscription_changed,
    "customer.subscription.updated": _handle_subscription_changed,
    "customer.subscription.deleted": _handle_subscription_deleted,
    "invoice.payment_failed": _handle_payment_failed,
}


async def handle_event(event: Any) -> bool:
    """Apply a verified event to the billing record. Returns False for ignored event types."""
    handler = EVENT_HANDLERS.get(event["type"])
    if handler is None:
        logger.debug(f"Ignoring Stripe event {event['type']}")
        return False
    handler(event["data"]["object"])
    return True
