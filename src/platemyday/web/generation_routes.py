"""
Generation routes.

- POST /api/generate-recipe      blocking, one recipe
- POST /api/generate-meal-plan   streamed, saves the plan and spends a credit
- POST /api/regenerate-meal      blocking, one replacement recipe

Each request is validated and rate limited before anything else runs;
only meal-plan generation is gated by credits.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from platemyday.billing.credits import check_credits, consume_credit
from platemyday.constants import (
    DEFAULT_MEAL_PLAN_SYSTEM_PROMPT,
    DEFAULT_RECIPE_SYSTEM_PROMPT,
    DEFAULT_REGENERATE_SYSTEM_PROMPT,
)
from platemyday.db.client import get_recipes, get_user_settings
from platemyday.db.meal_plans import activate_meal_plan, delete_meal_plan, save_meal_plan
from platemyday.errors import (
    AuthenticationError,
    CreditsExhaustedError,
    RequestValidationError,
    StorageError,
)
from platemyday.guardrails.actor import Actor
from platemyday.guardrails.validation import validate_and_rate_limit
from platemyday.llm.client import generate, generate_stream
from platemyday.llm.prompts import (
    build_meal_plan_prompt,
    build_regenerate_meal_prompt,
    format_preferences,
    is_food_related,
)
from platemyday.models.requests import (
    AppSettings,
    GenerateMealPlanRequest,
    GenerateRecipeRequest,
    RecipeRefInput,
    RegenerateMealRequest,
)
from platemyday.models.schemas import MealPlanWithDetails, RecipeOutput
from platemyday.planning.reconciler import build_week_plan
from platemyday.streaming.relay import relay_response
from platemyday.web.auth import AuthenticatedUser, get_optional_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["generation"])


async def _stored_settings(actor: Actor) -> AppSettings | None:
    if not actor.has_identity:
        return None
    return await get_user_settings(actor)


def _preferences_text(stored: AppSettings | None, fallback: str | None) -> str:
    """Stored onboarding preferences win over the free-text preferences in the request."""
    if stored is not None:
        formatted = format_preferences(stored.preferences)
        if formatted:
            return formatted
    return fallback or ""


@router.post("/generate-recipe")
async def generate_recipe(request: Request, user: AuthenticatedUser | None = Depends(get_optional_user)):
    """Generate a single recipe from a free-text request."""
    validated = await validate_and_rate_limit(
        request,
        GenerateRecipeRequest,
        key="generate-recipe",
        verified_user_id=user.id if user else None,
    )
    if isinstance(validated, JSONResponse):
        return validated
    body = validated.data

    if not is_food_related(body.prompt):
        raise RequestValidationError("Please describe a dish, ingredients, or a type of meal.")

    stored = await _stored_settings(validated.actor)
    system_prompt = body.system_prompt or (stored.recipe_system_prompt if stored else "") or DEFAULT_RECIPE_SYSTEM_PROMPT

    recipe = await generate(
        response_model=RecipeOutput,
        system_prompt=system_prompt,
        prompt=body.prompt,
        task="recipe",
    )
    if not recipe.title.strip():
        raise RequestValidationError("Couldn't create a recipe from that request. Try describing a dish.")

    return recipe.to_wire()


@router.post("/generate-meal-plan")
async def generate_meal_plan(request: Request, user: AuthenticatedUser | None = Depends(get_optional_user)):
    """
    Stream a 7-day meal plan.

    The final object is turned into a WeekPlan and saved inactive; one credit
    is then spent and the plan activated before DONE is sent. DONE carries
    the generated plan with the saved WeekPlan under "weekPlan". A failed
    generation or save spends nothing.
    """
    validated = await validate_and_rate_limit(
        request,
        GenerateMealPlanRequest,
        key="generate-meal-plan",
        verified_user_id=user.id if user else None,
    )
    if isinstance(validated, JSONResponse):
        return validated
    body, actor = validated.data, validated.actor

    if not actor.has_identity:
        raise AuthenticationError("An anonymous id or sign-in is required")

    credits = await check_credits(actor)
    if not credits.allowed:
        raise CreditsExhaustedError(credits_used=credits.credits_used, credits_limit=credits.credits_limit)

    library = await get_recipes(actor)
    library_ids = {recipe.id for recipe in library}
    recipes = body.recipes or [RecipeRefInput(id=r.id, title=r.title, tags=r.tags) for r in library]

    stored = await _stored_settings(actor)
    system_prompt = (
        body.system_prompt or (stored.meal_plan_system_prompt if stored else "") or DEFAULT_MEAL_PLAN_SYSTEM_PROMPT
    )
    prompt = build_meal_plan_prompt(recipes, body.week_start_day, _preferences_text(stored, body.preferences))

    async def finalize(plan: MealPlanWithDetails) -> dict:
        week_plan = build_week_plan(plan, body.week_start_day, library_ids)
        saved = await save_meal_plan(actor, week_plan, activate=False)
        try:
            balance = await consume_credit(actor)
        except (CreditsExhaustedError, StorageError):
            await delete_meal_plan(actor, saved.id)
            raise
        await activate_meal_plan(actor, saved.id)
        logger.info(
            f"Meal plan {saved.id} saved for {actor.key} "
            f"({balance.credits_used}/{balance.credits_limit} credits used)"
        )
        return {**plan.to_wire(), "weekPlan": saved.to_wire()}

    updates = generate_stream(
        response_model=MealPlanWithDetails,
        system_prompt=system_prompt,
        prompt=prompt,
        task="meal_plan",
    )
    return relay_response(request, updates, on_final=finalize)


@router.post("/regenerate-meal")
async def regenerate_meal(request: Request, user: AuthenticatedUser | None = Depends(get_optional_user)):
    """Suggest one replacement recipe for a meal slot."""
    validated = await validate_and_rate_limit(
        request,
        RegenerateMealRequest,
        key="regenerate-meal",
        verified_user_id=user.id if user else None,
    )
    if isinstance(validated, JSONResponse):
        return validated
    body = validated.data

    stored = await _stored_settings(validated.actor)
    prompt = build_regenerate_meal_prompt(
        body.meal_type,
        body.day_of_week,
        body.current_meals,
        _preferences_text(stored, None),
    )
    recipe = await generate(
        response_model=RecipeOutput,
        system_prompt=body.system_prompt or DEFAULT_REGENERATE_SYSTEM_PROMPT,
        prompt=prompt,
        task="regenerate_meal",
    )
    return recipe.to_wire()
