"""
PlateMyDay - Meal plan persistence.

A plan is stored as `meal_plans` -> `meal_plan_days` (ordered by
`day_index`) -> `meal_plan_meals` (ordered by `meal_index`), plus the
plan's `suggested_recipes`. At most one plan per actor has
`is_active = true`.
"""

import logging

from pydantic import ValidationError

from platemyday.db.client import execute, get_client
from platemyday.errors import StorageError
from platemyday.guardrails.actor import Actor
from platemyday.models.entities import (
    DayPlan,
    MealSlot,
    ResolvedRef,
    SuggestedRecipe,
    UnresolvedRef,
    WeekPlan,
)
from platemyday.models.schemas import Nutrition

logger = logging.getLogger(__name__)

PLAN_SELECT = "*, meal_plan_days(*, meal_plan_meals(*)), suggested_recipes(*)"


# =============================================================================
# Mapping
# =============================================================================


def map_db_meal(row: dict) -> MealSlot | None:
    nutrition = row.get("estimated_nutrition")
    recipe_id = row.get("recipe_id")
    fallback = row.get("recipe_title_fallback")

    if recipe_id:
        ref = ResolvedRef(recipe_id=recipe_id)
    elif fallback is not None:
        ref = UnresolvedRef(title=fallback, suggestion_id=row.get("suggested_recipe_id"))
    else:
        # The referenced recipe was deleted out from under the plan
        logger.warning(f"Meal slot {row.get('id')} has no recipe reference, skipping")
        return None

    return MealSlot(
        id=row["id"],
        meal_type=row["meal_type"],
        ref=ref,
        estimated_nutrition=Nutrition.model_validate(nutrition) if nutrition else None,
    )


def map_db_suggested_recipe(row: dict) -> SuggestedRecipe:
    nutrition = row.get("estimated_nutrition")
    return SuggestedRecipe(
        suggestion_id=row["id"],
        title=row["title"],
        description=row.get("description") or "",
        ingredients=row.get("ingredients") or [],
        instructions=row.get("instructions") or [],
        servings=row.get("servings"),
        prep_time_minutes=row.get("prep_time_minutes"),
        cook_time_minutes=row.get("cook_time_minutes"),
        tags=row.get("tags") or [],
        estimated_nutrition=Nutrition.model_validate(nutrition) if nutrition else None,
    )


def map_db_meal_plan(row: dict) -> WeekPlan:
    days = []
    for day in sorted(row.get("meal_plan_days") or [], key=lambda d: d.get("day_index", 0)):
        meals = [
            slot
            for slot in (
                map_db_meal(meal)
                for meal in sorted(day.get("meal_plan_meals") or [], key=lambda m: m.get("meal_index", 0))
            )
            if slot is not None
        ]
        days.append(DayPlan(date=day["date"], day_of_week=day["day_of_week"], meals=meals))

    suggested = {
        sr["title"]: map_db_suggested_recipe(sr) for sr in row.get("suggested_recipes") or []
    }

    return WeekPlan(
        id=row["id"],
        week_start_date=row["week_start_date"],
        created_at=row.get("created_at") or "",
        days=days,
        suggested_recipes=suggested,
    )


def map_db_meal_plan_or_none(row: dict) -> WeekPlan | None:
    """Map a stored plan, skipping rows that no longer form a complete week."""
    try:
        return map_db_meal_plan(row)
    except (ValidationError, KeyError) as e:
        logger.warning(f"Skipping malformed meal plan {row.get('id')}: {e}")
        return None


# =============================================================================
# Queries
# =============================================================================


async def get_meal_plans(actor: Actor) -> list[WeekPlan]:
    """All of the actor's plans (history), newest first."""
    client = get_client()
    response = execute(
        client.table("meal_plans")
        .select(PLAN_SELECT)
        .match(actor.owner_filter())
        .order("created_at", desc=True),
        "get_meal_plans",
    )
    plans = (map_db_meal_plan_or_none(row) for row in response.data or [])
    return [plan for plan in plans if plan is not None]


async def get_active_meal_plan(actor: Actor) -> WeekPlan | None:
    client = get_client()
    response = execute(
        client.table("meal_plans")
        .select(PLAN_SELECT)
        .match(actor.owner_filter())
        .eq("is_active", True)
        .order("created_at", desc=True)
        .limit(1),
        "get_active_meal_plan",
    )
    if not response.data:
        return None
    return map_db_meal_plan_or_none(response.data[0])


async def get_meal_plan(actor: Actor, plan_id: str) -> WeekPlan | None:
    client = get_client()
    response = execute(
        client.table("meal_plans")
        .select(PLAN_SELECT)
        .match(actor.owner_filter())
        .eq("id", plan_id)
        .limit(1),
        "get_meal_plan",
    )
    if not response.data:
        return None
    return map_db_meal_plan_or_none(response.data[0])


# =============================================================================
# Mutations
# =============================================================================


async def _deactivate_all(actor: Actor) -> None:
    client = get_client()
    execute(
        client.table("meal_plans")
        .update({"is_active": False})
        .match(actor.owner_filter())
        .eq("is_active", True),
        "deactivate meal plans",
    )


async def save_meal_plan(actor: Actor, week_plan: WeekPlan, activate: bool = True) -> WeekPlan:
    """
    Persist a plan, by default as the actor's active plan.

    The plan row is written inactive and only activated once its days,
    meals and suggestions are all stored; a failed write removes the
    partial plan. Pass activate=False to leave it inactive for the caller
    to activate later. Returns the plan with its storage-assigned id and
    created_at.
    """
    client = get_client()

    plan_resp = execute(
        client.table("meal_plans").insert(
            {
                **actor.owner_filter(),
                "week_start_date": week_plan.week_start_date,
                "is_active": False,
            }
        ),
        "save_meal_plan",
    )
    plan_row = plan_resp.data[0]
    plan_id = plan_row["id"]

    try:
        _write_plan_contents(plan_id, week_plan)
    except StorageError:
        logger.warning(f"Saving meal plan {plan_id} failed, removing the partial plan")
        await delete_meal_plan(actor, plan_id)
        raise

    if activate:
        await activate_meal_plan(actor, plan_id)

    return week_plan.model_copy(update={"id": plan_id, "created_at": plan_row.get("created_at") or week_plan.created_at})


def _write_plan_contents(plan_id: str, week_plan: WeekPlan) -> None:
    client = get_client()

    # Suggested recipes first so meals can reference them
    if week_plan.suggested_recipes:
        execute(
            client.table("suggested_recipes").insert(
                [
                    {
                        "id": sr.suggestion_id,
                        "meal_plan_id": plan_id,
                        "title": sr.title,
                        "description": sr.description or "",
                        "ingredients": sr.ingredients,
                        "instructions": sr.instructions,
                        "servings": sr.servings or 4,
                        "prep_time_minutes": sr.prep_time_minutes or 0,
                        "cook_time_minutes": sr.cook_time_minutes or 0,
                        "tags": sr.tags,
                        "estimated_nutrition": sr.estimated_nutrition.model_dump() if sr.estimated_nutrition else None,
                    }
                    for sr in week_plan.suggested_recipes.values()
                ]
            ),
            "save suggested_recipes",
        )

    days_resp = execute(
        client.table("meal_plan_days").insert(
            [
                {
                    "meal_plan_id": plan_id,
                    "day_of_week": day.day_of_week,
                    "date": day.date,
                    "day_index": index,
                }
                for index, day in enumerate(week_plan.days)
            ]
        ),
        "save meal_plan_days",
    )
    day_rows = sorted(days_resp.data, key=lambda d: d["day_index"])

    meal_rows = []
    for day_row, day in zip(day_rows, week_plan.days):
        for meal_index, meal in enumerate(day.meals):
            meal_rows.append(
                {
                    "id": meal.id,
                    "day_id": day_row["id"],
                    "recipe_id": meal.recipe_id or None,
                    "recipe_title_fallback": meal.recipe_title_fallback,
                    "suggested_recipe_id": meal.ref.suggestion_id if isinstance(meal.ref, UnresolvedRef) else None,
                    "meal_type": meal.meal_type,
                    "meal_index": meal_index,
                    "estimated_nutrition": meal.estimated_nutrition.model_dump() if meal.estimated_nutrition else None,
                }
            )
    if meal_rows:
        execute(client.table("meal_plan_meals").insert(meal_rows), "save meal_plan_meals")


async def activate_meal_plan(actor: Actor, plan_id: str) -> None:
    """Make plan_id the actor's only active plan."""
    client = get_client()
    await _deactivate_all(actor)
    execute(
        client.table("meal_plans").update({"is_active": True}).match(actor.owner_filter()).eq("id", plan_id),
        "activate_meal_plan",
    )


async def restore_meal_plan(actor: Actor, plan_id: str) -> bool:
    """Make a historical plan the active one. Returns False if the actor doesn't own it."""
    client = get_client()
    owned = execute(
        client.table("meal_plans").select("id").match(actor.owner_filter()).eq("id", plan_id).limit(1),
        "restore_meal_plan",
    )
    if not owned.data:
        return False

    await activate_meal_plan(actor, plan_id)
    return True


async def delete_meal_plan(actor: Actor, plan_id: str) -> bool:
    """Delete a plan. Deleting the active plan leaves the actor with none active."""
    client = get_client()
    response = execute(
        client.table("meal_plans").delete().match(actor.owner_filter()).eq("id", plan_id),
        "delete_meal_plan",
    )
    return bool(response.data)


async def relink_meal_slots(plan_id: str, slot_ids: list[str], recipe_id: str, suggestion_id: str | None) -> None:
    """
    Point promoted slots at a library recipe.

    Clears the title fallback on each slot and removes the suggested recipe
    row the slots used to point at.
    """
    client = get_client()
    if slot_ids:
        execute(
            client.table("meal_plan_meals")
            .update({"recipe_id": recipe_id, "recipe_title_fallback": None, "suggested_recipe_id": None})
            .in_("id", slot_ids),
            "relink_meal_slots",
        )
    if suggestion_id:
        execute(
            client.table("suggested_recipes").delete().eq("meal_plan_id", plan_id).eq("id", suggestion_id),
            "relink_meal_slots",
        )
