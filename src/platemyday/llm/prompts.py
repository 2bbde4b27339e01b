"""
PlateMyDay - Prompt builders.

User prompts for each generation task. System prompts come from the
user's settings, falling back to the defaults in `platemyday.constants`.
"""

from collections.abc import Iterable

from platemyday.constants import DAYS_OF_WEEK, FOOD_KEYWORDS
from platemyday.models.requests import CurrentMeal, RecipeRefInput, UserPreferences


def ordered_days(week_start_day: str) -> list[str]:
    """Days of the week rotated to start at `week_start_day`."""
    start = DAYS_OF_WEEK.index(week_start_day)
    return list(DAYS_OF_WEEK[start:] + DAYS_OF_WEEK[:start])


def is_food_related(prompt: str) -> bool:
    """Cheap screen for recipe requests: a food keyword, or anything longer than 10 chars."""
    lowered = prompt.lower()
    return any(keyword in lowered for keyword in FOOD_KEYWORDS) or len(lowered) > 10


def format_preferences(preferences: UserPreferences | None) -> str:
    """Render stored preferences as one line of prompt text."""
    if preferences is None:
        return ""

    parts: list[str] = []
    if preferences.dietary_type:
        parts.append(f"Diet: {preferences.dietary_type}")
    if preferences.allergies:
        parts.append(f"Allergies (never include): {', '.join(preferences.allergies)}")
    if preferences.cuisine_preferences:
        parts.append(f"Favorite cuisines: {', '.join(preferences.cuisine_preferences)}")
    if preferences.servings:
        parts.append(f"Cook for {preferences.servings} servings")
    if preferences.macro_goals:
        goals = ", ".join(f"{name} {value}" for name, value in preferences.macro_goals.items() if value)
        if goals:
            parts.append(f"Macro goals: {goals}")
    if preferences.meal_types:
        parts.append(f"Meals to plan: {', '.join(preferences.meal_types)}")
    if preferences.pantry_ingredients:
        parts.append(f"Use up pantry items: {', '.join(preferences.pantry_ingredients)}")
    if preferences.meal_notes:
        parts.append(f"Notes: {'; '.join(preferences.meal_notes)}")
    return ". ".join(parts)


def build_meal_plan_prompt(
    recipes: Iterable[RecipeRefInput],
    week_start_day: str,
    preferences: str = "",
) -> str:
    days = ", ".join(ordered_days(week_start_day))
    recipe_list = "\n".join(
        f"- {r.title} (ID: {r.id}, Tags: {', '.join(r.tags)})" for r in recipes
    ) or "(the library is empty - every recipe will be new)"
    preferences_line = f"User preferences: {preferences}\n" if preferences else ""

    return f"""Create a complete 7-day meal plan starting from {week_start_day} with full recipe details.

IMPORTANT: The days array MUST start with {week_start_day} and follow this exact order: {days}

Available recipes in user's library:
{recipe_list}

{preferences_line}
IMPORTANT:
1. Use existing recipes from the library when appropriate (include their IDs)
2. For any NEW recipes not in the library, provide COMPLETE details including:
   - Full list of ingredients with measurements
   - Step-by-step cooking instructions
   - Servings, prep time, cook time
   - Relevant tags (e.g., "vegetarian", "quick", "italian")
3. Each day should have breakfast, lunch, and dinner at minimum
4. Add snacks where appropriate for variety
5. Make sure recipe titles in meals exactly match titles in newRecipes array
6. Give every new recipe a distinct title
7. Days must be in this exact order: {days}"""


def build_regenerate_meal_prompt(
    meal_type: str,
    day_of_week: str,
    current_meals: Iterable[CurrentMeal],
    preferences: str = "",
) -> str:
    current = "\n".join(f"- {m.meal_type}: {m.title}" for m in current_meals)
    sections = [f"Suggest a single {meal_type} recipe for {day_of_week}."]
    if current:
        sections.append(
            f"Current meals planned for this day:\n{current}\n\n"
            "Make sure the suggestion is different from the above meals."
        )
    if preferences:
        sections.append(f"User preferences: {preferences}")
    sections.append(
        "Provide a complete recipe with ingredients, instructions, prep time, cook time, servings, and tags."
    )
    return "\n\n".join(sections)


def build_shopping_list_prompt(ingredients: list[str]) -> str:
    numbered = "\n".join(f"{i}. {ingredient}" for i, ingredient in enumerate(ingredients, start=1))
    return f"""Consolidate this shopping list by combining duplicate ingredients into realistic buying quantities and organizing by grocery store section.

Raw ingredient list:
{numbered}

Rules:
1. Combine duplicates (e.g., "2 cups flour" + "1 cup flour" = "3 cups flour")
2. Round up to quantities a store actually sells
3. Keep ingredient descriptions clear and concise
4. Organize into categories: Produce, Proteins, Dairy & Eggs, Pantry & Grains, Spices & Seasonings, Oils & Condiments, Other
5. Only include categories that have items
6. Move common pantry staples (salt, pepper, oil, flour, sugar...) to pantryItems instead of categories
7. Sort items alphabetically within each category"""
