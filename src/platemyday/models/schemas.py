"""
Generation schemas.

These are the shapes the structured-generation provider is asked to fill in.
Field descriptions are sent to the model as part of the JSON schema.
"""

from pydantic import Field

from platemyday.constants import MealType
from platemyday.models.base import CamelModel


class Nutrition(CamelModel):
    calories: float = Field(description="Estimated calories per serving")
    protein: float = Field(description="Estimated protein in grams per serving")
    carbs: float = Field(description="Estimated carbohydrates in grams per serving")
    fat: float = Field(description="Estimated fat in grams per serving")


class RecipeOutput(CamelModel):
    """A single generated recipe."""

    title: str = Field(description="Recipe title")
    description: str = Field(description="Brief description of the dish")
    ingredients: list[str] = Field(description="List of ingredients with measurements")
    instructions: list[str] = Field(description="Step-by-step cooking instructions")
    servings: int = Field(description="Number of servings")
    prep_time_minutes: int = Field(description="Preparation time in minutes")
    cook_time_minutes: int = Field(description="Cooking time in minutes")
    tags: list[str] = Field(description='Tags like "vegetarian", "quick", "italian"')
    estimated_nutrition: Nutrition | None = Field(
        default=None, description="Estimated nutrition per serving"
    )


class NewRecipe(RecipeOutput):
    """Full details for a recipe a meal plan introduces."""

    title: str = Field(description="Recipe title - must match recipeTitle in meals")


class PlannedMeal(CamelModel):
    meal_type: MealType
    recipe_title: str = Field(description="Title of recipe")
    recipe_id: str | None = Field(
        default=None, description="ID of existing recipe if using one from library"
    )
    estimated_nutrition: Nutrition | None = Field(
        default=None, description="Estimated nutrition per serving for this meal"
    )


class PlannedDay(CamelModel):
    day_of_week: str = Field(description="Day of the week")
    meals: list[PlannedMeal]


class MealPlanWithDetails(CamelModel):
    """A generated week: 7 days of meals plus details for recipes not in the library."""

    days: list[PlannedDay] = Field(
        min_length=7,
        max_length=7,
        description="7 consecutive days of meal plans starting from the specified week start day",
    )
    new_recipes: list[NewRecipe] = Field(
        default_factory=list,
        description="Full details for any new recipes not in the user's library",
    )


class ShoppingCategory(CamelModel):
    name: str = Field(
        description=(
            "Category name (e.g., Produce, Dairy & Eggs, Proteins, Grains & Bread, "
            "Spices & Seasonings, Oils & Condiments, Other)"
        )
    )
    items: list[str] = Field(
        description="Consolidated ingredient items with practical buying quantities"
    )


class ConsolidatedShoppingList(CamelModel):
    categories: list[ShoppingCategory] = Field(
        description=(
            "Items to buy, organized by grocery store section. "
            "Do NOT include common pantry staples here."
        )
    )
    pantry_items: list[str] = Field(
        default_factory=list,
        description=(
            "Common staples the cook likely already has at home (e.g. salt, pepper, olive oil, "
            "rice, flour, sugar, soy sauce, butter). List with approximate total quantities needed."
        ),
    )
