"""
PlateMyDay - Plan/Recipe Reconciler.

Builds a WeekPlan from a finished meal-plan generation and promotes
suggested recipes into the permanent library.

Each suggested recipe gets a generation-scoped `suggestion_id` when the
plan is built. Unresolved meal slots carry that id, so promotion re-links
slots by id and only falls back to a case-insensitive title match for
slots that predate it.
"""

import logging
import uuid
from collections.abc import Collection
from datetime import UTC, date, datetime, timedelta

from platemyday.constants import DAYS_OF_WEEK
from platemyday.db import client as db
from platemyday.db import meal_plans
from platemyday.errors import NotFoundError
from platemyday.guardrails.actor import Actor
from platemyday.llm.prompts import ordered_days
from platemyday.models.entities import (
    DayPlan,
    MealSlot,
    Recipe,
    ResolvedRef,
    SuggestedRecipe,
    UnresolvedRef,
    WeekPlan,
)
from platemyday.models.schemas import MealPlanWithDetails

logger = logging.getLogger(__name__)


def compute_week_start_date(week_start_day: str, today: date | None = None) -> date:
    """
    Most recent (or current) occurrence of `week_start_day`.

    Always walks backward: on a Friday with a Wednesday week start this is
    two days ago, never next Wednesday.
    """
    today = today or datetime.now(UTC).date()
    target = DAYS_OF_WEEK.index(week_start_day)
    return today - timedelta(days=(today.weekday() - target) % 7)


def _suggestions_from_output(output: MealPlanWithDetails) -> dict[str, SuggestedRecipe]:
    suggestions: dict[str, SuggestedRecipe] = {}
    seen: set[str] = set()
    for new_recipe in output.new_recipes:
        key = new_recipe.title.strip().lower()
        if key in seen:
            logger.warning(f"Duplicate suggested recipe title '{new_recipe.title}', keeping the first")
            continue
        seen.add(key)
        suggestions[new_recipe.title] = SuggestedRecipe(
            suggestion_id=str(uuid.uuid4()),
            title=new_recipe.title,
            description=new_recipe.description,
            ingredients=new_recipe.ingredients,
            instructions=new_recipe.instructions,
            servings=new_recipe.servings,
            prep_time_minutes=new_recipe.prep_time_minutes,
            cook_time_minutes=new_recipe.cook_time_minutes,
            tags=new_recipe.tags,
            estimated_nutrition=new_recipe.estimated_nutrition,
        )
    return suggestions


def build_week_plan(
    output: MealPlanWithDetails,
    week_start_day: str,
    library_ids: Collection[str],
    today: date | None = None,
    plan_id: str | None = None,
) -> WeekPlan:
    """
    Build the canonical WeekPlan from a finished generation.

    Days get sequential calendar dates from the week anchor, in output
    order. A meal resolves by id only when its `recipeId` exists in the
    library; anything else keeps its title as the fallback reference.

    Args:
        output: Validated generation output
        week_start_day: Day the user's week starts on
        library_ids: Ids of recipes in the actor's library
        today: Anchor reference (defaults to the current UTC date)
        plan_id: Id for the plan (a fresh uuid when omitted)
    """
    start = compute_week_start_date(week_start_day, today)
    suggestions = _suggestions_from_output(output)
    day_names = ordered_days(week_start_day)

    days: list[DayPlan] = []
    for index, planned_day in enumerate(output.days):
        meals: list[MealSlot] = []
        for planned_meal in planned_day.meals:
            if planned_meal.recipe_id and planned_meal.recipe_id in library_ids:
                ref = ResolvedRef(recipe_id=planned_meal.recipe_id)
            else:
                suggestion = _match_title(suggestions, planned_meal.recipe_title)
                ref = UnresolvedRef(
                    title=planned_meal.recipe_title,
                    suggestion_id=suggestion.suggestion_id if suggestion else None,
                )
            meals.append(
                MealSlot(
                    id=str(uuid.uuid4()),
                    meal_type=planned_meal.meal_type,
                    ref=ref,
                    estimated_nutrition=planned_meal.estimated_nutrition,
                )
            )
        days.append(
            DayPlan(
                date=(start + timedelta(days=index)).isoformat(),
                day_of_week=day_names[index],
                meals=meals,
            )
        )

    return WeekPlan(
        id=plan_id or str(uuid.uuid4()),
        week_start_date=start.isoformat(),
        created_at=datetime.now(UTC).isoformat(),
        days=days,
        suggested_recipes=suggestions,
    )


def _match_title(suggestions: dict[str, SuggestedRecipe], title: str) -> SuggestedRecipe | None:
    wanted = title.strip().lower()
    for suggestion in suggestions.values():
        if suggestion.title.strip().lower() == wanted:
            return suggestion
    return None


def _slot_matches(slot: MealSlot, suggestion: SuggestedRecipe) -> bool:
    if not isinstance(slot.ref, UnresolvedRef):
        return False
    if slot.ref.suggestion_id:
        return slot.ref.suggestion_id == suggestion.suggestion_id
    return slot.ref.title.strip().lower() == suggestion.title.strip().lower()


def relink_slots(plan: WeekPlan, suggestion: SuggestedRecipe, recipe_id: str) -> tuple[WeekPlan, list[str]]:
    """
    Point every slot that referenced `suggestion` at `recipe_id`.

    Returns the updated plan (with the suggestion removed) and the ids of
    the slots that changed. The input plan is not modified.
    """
    changed: list[str] = []
    days = []
    for day in plan.days:
        meals = []
        for slot in day.meals:
            if _slot_matches(slot, suggestion):
                slot = slot.model_copy(update={"ref": ResolvedRef(recipe_id=recipe_id)})
                changed.append(slot.id)
            meals.append(slot)
        days.append(day.model_copy(update={"meals": meals}))

    remaining = {
        title: sr for title, sr in plan.suggested_recipes.items() if sr.suggestion_id != suggestion.suggestion_id
    }
    return plan.model_copy(update={"days": days, "suggested_recipes": remaining}), changed


async def promote_to_library(actor: Actor, plan: WeekPlan, title: str) -> tuple[Recipe, WeekPlan]:
    """
    Copy a suggested recipe into the library and re-link the plan's slots to it.

    Raises:
        NotFoundError: the plan has no suggested recipe with that title
    """
    suggestion = plan.find_suggestion(title)
    if suggestion is None:
        raise NotFoundError(f"No suggested recipe named '{title}' in this plan")

    recipe = await db.insert_recipe(actor, suggestion.to_draft())
    updated, changed = relink_slots(plan, suggestion, recipe.id)
    await meal_plans.relink_meal_slots(plan.id, changed, recipe.id, suggestion.suggestion_id)

    logger.info(f"Promoted '{suggestion.title}' to recipe {recipe.id}, relinked {len(changed)} slots")
    return recipe, updated
