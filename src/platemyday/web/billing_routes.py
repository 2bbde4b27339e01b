"""
Billing and payment webhook routes.
"""

import logging

import stripe
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from platemyday.billing import stripe_billing
from platemyday.billing.credits import get_billing_info
from platemyday.errors import PlateMyDayError
from platemyday.guardrails.actor import Actor
from platemyday.models.requests import CheckoutRequest
from platemyday.web.auth import AuthenticatedUser, get_actor, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["billing"])


@router.get("/billing/credits")
async def get_credits(actor: Actor = Depends(get_actor)):
    """Plan and remaining credits. Requests with no identity get the default free snapshot."""
    info = await get_billing_info(actor)
    return info.to_wire()


@router.post("/billing/create-checkout-session")
async def create_checkout_session(
    req: CheckoutRequest,
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
):
    try:
        url = await stripe_billing.create_checkout_session(user.id, req.plan, request.headers.get("origin"))
    except stripe.StripeError as e:
        logger.exception("Checkout session error")
        raise PlateMyDayError("Failed to create checkout session") from e
    return {"url": url}


@router.post("/billing/create-portal-session")
async def create_portal_session(request: Request, user: AuthenticatedUser = Depends(get_current_user)):
    try:
        url = await stripe_billing.create_portal_session(user.id, request.headers.get("origin"))
    except stripe.StripeError as e:
        logger.exception("Portal session error")
        raise PlateMyDayError("Failed to create portal session") from e
    return {"url": url}


@router.post("/webhooks/stripe")
async def stripe_webhook(request: Request):
    """Signature-verified Stripe events. Anything that doesn't verify is a 400."""
    payload = await request.body()
    try:
        event = stripe_billing.construct_event(payload, request.headers.get("stripe-signature"))
    except stripe_billing.WebhookSignatureError as e:
        return JSONResponse({"error": str(e)}, status_code=400)

    await stripe_billing.handle_event(event)
    return {"received": True}
