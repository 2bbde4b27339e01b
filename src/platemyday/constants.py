"""Shared constants: calendar/meal enums and default prompts."""

from typing import Literal

DAYS_OF_WEEK: tuple[str, ...] = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

MEAL_TYPES: tuple[str, ...] = ("breakfast", "lunch", "dinner", "snack")

DayOfWeek = Literal["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
MealType = Literal["breakfast", "lunch", "dinner", "snack"]
PlanId = Literal["free", "pro_monthly", "pro_annual", "lifetime"]

DEFAULT_RECIPE_SYSTEM_PROMPT = (
    "You are a creative chef assistant. Generate detailed, practical recipes based on the "
    "user's request. Include precise measurements, clear instructions, and helpful tips. "
    "Keep recipes accessible for home cooks."
)

DEFAULT_MEAL_PLAN_SYSTEM_PROMPT = (
    "You are a meal planning assistant. Create balanced, varied weekly meal plans. Consider "
    "nutrition, variety, and practical cooking schedules. Mix quick meals with more involved "
    "recipes throughout the week."
)

DEFAULT_REGENERATE_SYSTEM_PROMPT = (
    "You are a creative chef assistant. Suggest a practical, delicious recipe."
)

SHOPPING_LIST_SYSTEM_PROMPT = (
    "You are a helpful kitchen assistant that organizes shopping lists efficiently."
)

FOOD_KEYWORDS: tuple[str, ...] = (
    "recipe", "cook", "bake", "dish", "meal", "food", "ingredient", "cuisine",
    "breakfast", "lunch", "dinner", "snack", "dessert", "appetizer", "soup",
    "salad", "pasta", "rice", "chicken", "beef", "fish", "vegetarian", "vegan",
)
