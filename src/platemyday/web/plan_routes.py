"""
Recipe library and meal plan routes.

Plans are read back with their days, meals and suggested recipes. Recipes
are referenced by id, so library edits show up in every plan that uses
them.
"""

from fastapi import APIRouter, Depends, Request

from platemyday.db import client as db
from platemyday.db import meal_plans
from platemyday.errors import NotFoundError
from platemyday.guardrails.actor import Actor
from platemyday.models.entities import RecipeDraft
from platemyday.models.requests import (
    ActorFields,
    PromoteSuggestionRequest,
    RecipeCreateRequest,
    RecipeUpdateRequest,
)
from platemyday.planning.reconciler import promote_to_library
from platemyday.web.auth import AuthenticatedUser, get_actor, get_optional_user, request_actor

router = APIRouter(tags=["library"])

ACTOR_FIELDS = {"user_id", "anonymous_id"}


def _body_actor(request: Request, user: AuthenticatedUser | None, body: ActorFields) -> Actor:
    return request_actor(request, user, body.anonymous_id, claimed_user_id=body.user_id)


# =============================================================================
# Recipes
# =============================================================================


@router.get("/recipes")
async def list_recipes(actor: Actor = Depends(get_actor)):
    recipes = await db.get_recipes(actor)
    return {"recipes": [r.to_wire() for r in recipes]}


@router.post("/recipes", status_code=201)
async def create_recipe(
    req: RecipeCreateRequest,
    request: Request,
    user: AuthenticatedUser | None = Depends(get_optional_user),
):
    actor = _body_actor(request, user, req)
    draft = RecipeDraft.model_validate(req.model_dump(exclude=ACTOR_FIELDS))
    recipe = await db.insert_recipe(actor, draft)
    return {"recipe": recipe.to_wire()}


@router.patch("/recipes/{recipe_id}")
async def update_recipe(
    recipe_id: str,
    req: RecipeUpdateRequest,
    request: Request,
    user: AuthenticatedUser | None = Depends(get_optional_user),
):
    actor = _body_actor(request, user, req)
    updates = req.model_dump(exclude_unset=True, exclude=ACTOR_FIELDS)
    recipe = await db.update_recipe(actor, recipe_id, updates)
    if recipe is None:
        raise NotFoundError("Recipe not found")
    return {"recipe": recipe.to_wire()}


@router.delete("/recipes/{recipe_id}")
async def delete_recipe(recipe_id: str, actor: Actor = Depends(get_actor)):
    if not await db.delete_recipe(actor, recipe_id):
        raise NotFoundError("Recipe not found")
    return {"success": True}


# =============================================================================
# Meal plans
# =============================================================================


@router.get("/meal-plans")
async def list_meal_plans(actor: Actor = Depends(get_actor)):
    """Plan history, newest first."""
    plans = await meal_plans.get_meal_plans(actor)
    return {"plans": [p.to_wire() for p in plans]}


@router.get("/meal-plans/active")
async def get_active_meal_plan(actor: Actor = Depends(get_actor)):
    plan = await meal_plans.get_active_meal_plan(actor)
    return {"plan": plan.to_wire() if plan else None}


@router.get("/meal-plans/{plan_id}")
async def get_meal_plan(plan_id: str, actor: Actor = Depends(get_actor)):
    plan = await meal_plans.get_meal_plan(actor, plan_id)
    if plan is None:
        raise NotFoundError("Meal plan not found")
    return {"plan": plan.to_wire()}


@router.post("/meal-plans/{plan_id}/restore")
async def restore_meal_plan(plan_id: str, actor: Actor = Depends(get_actor)):
    """Make a plan from history the active one."""
    if not await meal_plans.restore_meal_plan(actor, plan_id):
        raise NotFoundError("Meal plan not found")
    return {"success": True}


@router.delete("/meal-plans/{plan_id}")
async def delete_meal_plan(plan_id: str, actor: Actor = Depends(get_actor)):
    if not await meal_plans.delete_meal_plan(actor, plan_id):
        raise NotFoundError("Meal plan not found")
    return {"success": True}


@router.post("/meal-plans/{plan_id}/suggested-recipes/promote")
async def promote_suggested_recipe(
    plan_id: str,
    req: PromoteSuggestionRequest,
    request: Request,
    user: AuthenticatedUser | None = Depends(get_optional_user),
):
    """Save a suggested recipe to the library and re-link the plan's meals to it."""
    actor = _body_actor(request, user, req)
    plan = await meal_plans.get_meal_plan(actor, plan_id)
    if plan is None:
        raise NotFoundError("Meal plan not found")

    recipe, updated = await promote_to_library(actor, plan, req.title)
    return {"recipe": recipe.to_wire(), "plan": updated.to_wire()}
