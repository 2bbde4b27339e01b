"""
Shopping list route.

POST /api/consolidate-shopping-list streams the consolidated list for one
of the actor's saved plans.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from platemyday.db.client import get_recipes
from platemyday.db.meal_plans import get_meal_plan
from platemyday.errors import NotFoundError
from platemyday.guardrails.validation import validate_and_rate_limit
from platemyday.models.requests import ConsolidateShoppingListRequest
from platemyday.planning.shopping import collect_ingredients, stream_shopping_list
from platemyday.streaming.relay import relay_response
from platemyday.web.auth import AuthenticatedUser, get_optional_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["shopping"])


@router.post("/consolidate-shopping-list")
async def consolidate_shopping_list(
    request: Request, user: AuthenticatedUser | None = Depends(get_optional_user)
):
    validated = await validate_and_rate_limit(
        request,
        ConsolidateShoppingListRequest,
        key="consolidate-shopping-list",
        verified_user_id=user.id if user else None,
    )
    if isinstance(validated, JSONResponse):
        return validated
    body, actor = validated.data, validated.actor

    plan = await get_meal_plan(actor, body.meal_plan_id)
    if plan is None:
        raise NotFoundError("Meal plan not found")

    ingredients = collect_ingredients(plan, await get_recipes(actor))
    logger.debug(f"Consolidating {len(ingredients)} ingredients for plan {plan.id}")
    return relay_response(request, stream_shopping_list(ingredients))
