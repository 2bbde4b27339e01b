"""
Domain entities: recipes, suggested recipes, and week plans.

A MealSlot points at its recipe through an explicit tagged reference:
`ResolvedRef` (a library recipe id) or `UnresolvedRef` (a title that only
exists as a suggested recipe on the owning plan). The legacy flat fields
`recipeId` / `recipeTitleFallback` are still emitted on the wire.
"""

from typing import Annotated, Any, Literal

from pydantic import Field, computed_field, model_validator

from platemyday.constants import MealType
from platemyday.models.base import CamelModel
from platemyday.models.schemas import Nutrition


class RecipeDraft(CamelModel):
    """Recipe fields without identity (input to insert)."""

    title: str
    description: str = ""
    ingredients: list[str] = Field(default_factory=list)
    instructions: list[str] = Field(default_factory=list)
    servings: int = 4
    prep_time_minutes: int = 0
    cook_time_minutes: int = 0
    tags: list[str] = Field(default_factory=list)
    is_ai_generated: bool = False


class Recipe(RecipeDraft):
    id: str
    created_at: str | None = None


class SuggestedRecipe(CamelModel):
    """A recipe proposed by a meal-plan generation that isn't in the library yet."""

    suggestion_id: str
    title: str
    description: str = ""
    ingredients: list[str] = Field(default_factory=list)
    instructions: list[str] = Field(default_factory=list)
    servings: int | None = None
    prep_time_minutes: int | None = None
    cook_time_minutes: int | None = None
    tags: list[str] = Field(default_factory=list)
    estimated_nutrition: Nutrition | None = None
    is_loading: bool = False

    def to_draft(self) -> RecipeDraft:
        return RecipeDraft(
            title=self.title,
            description=self.description or "",
            ingredients=self.ingredients,
            instructions=self.instructions,
            servings=self.servings or 4,
            prep_time_minutes=self.prep_time_minutes or 0,
            cook_time_minutes=self.cook_time_minutes or 0,
            tags=self.tags,
            is_ai_generated=True,
        )


# =============================================================================
# Meal slots
# =============================================================================


class ResolvedRef(CamelModel):
    kind: Literal["resolved"] = "resolved"
    recipe_id: str = Field(min_length=1)


class UnresolvedRef(CamelModel):
    kind: Literal["unresolved"] = "unresolved"
    title: str
    suggestion_id: str | None = None


RecipeRef = Annotated[ResolvedRef | UnresolvedRef, Field(discriminator="kind")]


class MealSlot(CamelModel):
    id: str
    meal_type: MealType
    ref: RecipeRef
    estimated_nutrition: Nutrition | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_flat_reference(cls, data: Any) -> Any:
        """Build `ref` from the flat recipeId / recipeTitleFallback pair when it's missing."""
        if not isinstance(data, dict) or "ref" in data:
            return data
        data = dict(data)
        recipe_id = data.get("recipeId", data.get("recipe_id")) or ""
        fallback = data.get("recipeTitleFallback", data.get("recipe_title_fallback"))
        if recipe_id:
            data["ref"] = {"kind": "resolved", "recipeId": recipe_id}
        elif fallback is not None:
            data["ref"] = {"kind": "unresolved", "title": fallback}
        return data

    @computed_field
    @property
    def recipe_id(self) -> str:
        return self.ref.recipe_id if isinstance(self.ref, ResolvedRef) else ""

    @computed_field
    @property
    def recipe_title_fallback(self) -> str | None:
        return self.ref.title if isinstance(self.ref, UnresolvedRef) else None

    @property
    def is_resolved(self) -> bool:
        return isinstance(self.ref, ResolvedRef)


class DayPlan(CamelModel):
    date: str
    day_of_week: str
    meals: list[MealSlot] = Field(default_factory=list)


class WeekPlan(CamelModel):
    id: str
    week_start_date: str
    created_at: str
    days: list[DayPlan] = Field(min_length=7, max_length=7)
    suggested_recipes: dict[str, SuggestedRecipe] = Field(default_factory=dict)

    def iter_slots(self):
        for day in self.days:
            yield from day.meals

    def find_suggestion(self, title: str) -> SuggestedRecipe | None:
        """Look up a suggested recipe by title, case-insensitively."""
        if title in self.suggested_recipes:
            return self.suggested_recipes[title]
        wanted = title.strip().lower()
        for key, suggestion in self.suggested_recipes.items():
            if key.strip().lower() == wanted:
                return suggestion
        return None
