"""
API request bodies.

Limits mirror what the endpoints accept from the web app: actor ids and
system prompts are trimmed and blank values treated as absent, lists and
strings are capped so a single request can't balloon a prompt.
"""

from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BeforeValidator, Field, StringConstraints

from platemyday.constants import DayOfWeek, MealType
from platemyday.models.base import CamelModel


def _blank_to_none(value: Any) -> Any:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def _drop_blank(items: list[str]) -> list[str]:
    return [item for item in items if item]


OptionalActorId = Annotated[
    Annotated[str, StringConstraints(max_length=128)] | None,
    BeforeValidator(_blank_to_none),
]

OptionalSystemPrompt = Annotated[
    Annotated[str, StringConstraints(max_length=8000)] | None,
    BeforeValidator(_blank_to_none),
]

Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=300)]
Tag = Annotated[str, StringConstraints(strip_whitespace=True, max_length=120)]


class ActorFields(CamelModel):
    """Identity hints sent by the client. `user_id` must match the bearer token."""

    user_id: OptionalActorId = None
    anonymous_id: OptionalActorId = None


class RecipeRefInput(CamelModel):
    id: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=256)]
    title: Title
    tags: Annotated[list[Tag], Field(max_length=40), AfterValidator(_drop_blank)] = Field(
        default_factory=list
    )


class CurrentMeal(CamelModel):
    title: Title
    meal_type: MealType


class GenerateRecipeRequest(ActorFields):
    prompt: Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=2000)]
    system_prompt: OptionalSystemPrompt = None


class GenerateMealPlanRequest(ActorFields):
    recipes: Annotated[list[RecipeRefInput], Field(max_length=500)] = Field(default_factory=list)
    system_prompt: OptionalSystemPrompt = None
    preferences: Annotated[str, StringConstraints(strip_whitespace=True, max_length=4000)] | None = None
    week_start_day: DayOfWeek = "Monday"


class RegenerateMealRequest(ActorFields):
    meal_type: MealType
    day_of_week: DayOfWeek
    current_meals: Annotated[list[CurrentMeal], Field(max_length=12)] = Field(default_factory=list)
    system_prompt: OptionalSystemPrompt = None


class ConsolidateShoppingListRequest(ActorFields):
    meal_plan_id: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=128)]


class PromoteSuggestionRequest(ActorFields):
    title: Title


class MigrateAnonymousRequest(CamelModel):
    anonymous_id: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=128)]


class RecipeCreateRequest(ActorFields):
    title: Title
    description: Annotated[str, StringConstraints(max_length=4000)] = ""
    ingredients: Annotated[list[str], Field(max_length=200)] = Field(default_factory=list)
    instructions: Annotated[list[str], Field(max_length=200)] = Field(default_factory=list)
    servings: Annotated[int, Field(ge=1, le=100)] = 4
    prep_time_minutes: Annotated[int, Field(ge=0, le=10000)] = 0
    cook_time_minutes: Annotated[int, Field(ge=0, le=10000)] = 0
    tags: Annotated[list[Tag], Field(max_length=40), AfterValidator(_drop_blank)] = Field(
        default_factory=list
    )
    is_ai_generated: bool = False


class RecipeUpdateRequest(ActorFields):
    title: Title | None = None
    description: Annotated[str, StringConstraints(max_length=4000)] | None = None
    ingredients: Annotated[list[str], Field(max_length=200)] | None = None
    instructions: Annotated[list[str], Field(max_length=200)] | None = None
    servings: Annotated[int, Field(ge=1, le=100)] | None = None
    prep_time_minutes: Annotated[int, Field(ge=0, le=10000)] | None = None
    cook_time_minutes: Annotated[int, Field(ge=0, le=10000)] | None = None
    tags: Annotated[list[Tag], Field(max_length=40), AfterValidator(_drop_blank)] | None = None


class UserPreferences(CamelModel):
    dietary_type: str | None = None
    allergies: list[str] = Field(default_factory=list)
    cuisine_preferences: list[str] = Field(default_factory=list)
    servings: int = 2
    macro_goals: dict[str, Any] = Field(default_factory=dict)
    meal_notes: list[str] = Field(default_factory=list)
    pantry_ingredients: list[str] = Field(default_factory=list)
    meal_types: list[str] = Field(default_factory=list)
    onboarding_completed: bool = False
    onboarding_dismissed: bool = False


class AppSettings(ActorFields):
    recipe_system_prompt: str = ""
    meal_plan_system_prompt: str = ""
    unit_system: Literal["metric", "imperial"] = "imperial"
    week_start_day: DayOfWeek = "Monday"
    preferences: UserPreferences = Field(default_factory=UserPreferences)


class CheckoutRequest(CamelModel):
    plan: Literal["monthly", "annual", "lifetime"]


class OverrideUserRequest(CamelModel):
    user_id: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=128)]
    unlimited: bool = False
    extra_credits: Annotated[int, Field(ge=0, le=100000)] = 0
    note: Annotated[str, StringConstraints(max_length=500)] | None = None
