"""
PlateMyDay - Shopping List Consolidator.

Collects every ingredient a week plan needs and hands the merge and
categorisation to a streamed generation.
"""

import logging
from collections.abc import AsyncIterator, Iterable, Mapping

from platemyday.constants import SHOPPING_LIST_SYSTEM_PROMPT
from platemyday.llm.client import StreamUpdate, generate_stream
from platemyday.llm.prompts import build_shopping_list_prompt
from platemyday.models.entities import Recipe, ResolvedRef, SuggestedRecipe, WeekPlan
from platemyday.models.schemas import ConsolidatedShoppingList

logger = logging.getLogger(__name__)


def _resolve_suggestion(
    suggested: Mapping[str, SuggestedRecipe], title: str, suggestion_id: str | None
) -> SuggestedRecipe | None:
    if suggestion_id:
        for suggestion in suggested.values():
            if suggestion.suggestion_id == suggestion_id:
                return suggestion
    if title in suggested:
        return suggested[title]
    wanted = title.strip().lower()
    for key, suggestion in suggested.items():
        if key.strip().lower() == wanted:
            return suggestion
    return None


def collect_ingredients(
    week_plan: WeekPlan,
    library: Iterable[Recipe],
    suggested: Mapping[str, SuggestedRecipe] | None = None,
) -> list[str]:
    """
    Every ingredient string across the plan, in slot order.

    Slots resolve through the library by id, unresolved slots through the
    suggested recipes. Slots that resolve to nothing contribute nothing.
    Blank ingredients are dropped; duplicates are kept for the merge step.
    """
    by_id = {recipe.id: recipe for recipe in library}
    suggested = week_plan.suggested_recipes if suggested is None else suggested

    ingredients: list[str] = []
    for slot in week_plan.iter_slots():
        if isinstance(slot.ref, ResolvedRef):
            source = by_id.get(slot.ref.recipe_id)
        else:
            source = _resolve_suggestion(suggested, slot.ref.title, slot.ref.suggestion_id)

        if source is None:
            logger.debug(f"Slot {slot.id} doesn't resolve to a recipe, skipping")
            continue
        ingredients.extend(item for item in source.ingredients if item.strip())

    return ingredients


EMPTY_SHOPPING_LIST = ConsolidatedShoppingList(categories=[], pantry_items=[])


async def stream_shopping_list(ingredients: list[str]) -> AsyncIterator[StreamUpdate[ConsolidatedShoppingList]]:
    """
    Stream the consolidated list for `ingredients`.

    An empty ingredient list finishes immediately with an empty result and
    never calls the provider.
    """
    if not ingredients:
        yield StreamUpdate(partial=EMPTY_SHOPPING_LIST.to_wire(), final=EMPTY_SHOPPING_LIST)
        return

    async for update in generate_stream(
        response_model=ConsolidatedShoppingList,
        system_prompt=SHOPPING_LIST_SYSTEM_PROMPT,
        prompt=build_shopping_list_prompt(ingredients),
        task="shopping_list",
    ):
        yield update
