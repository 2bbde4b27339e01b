"""
PlateMyDay - Data models.

- schemas: shapes requested from the generation provider
- entities: recipes, suggested recipes, meal slots and week plans
- billing: credit and billing snapshots
- requests: validated API request bodies
"""

from platemyday.models.base import CamelModel
from platemyday.models.billing import BillingInfo, CreditBalance, CreditCheck
from platemyday.models.entities import (
    DayPlan,
    MealSlot,
    Recipe,
    RecipeDraft,
    ResolvedRef,
    SuggestedRecipe,
    UnresolvedRef,
    WeekPlan,
)
from platemyday.models.schemas import (
    ConsolidatedShoppingList,
    MealPlanWithDetails,
    NewRecipe,
    Nutrition,
    PlannedDay,
    PlannedMeal,
    RecipeOutput,
    ShoppingCategory,
)

__all__ = [
    "BillingInfo",
    "CamelModel",
    "ConsolidatedShoppingList",
    "CreditBalance",
    "CreditCheck",
    "DayPlan",
    "MealPlanWithDetails",
    "MealSlot",
    "NewRecipe",
    "Nutrition",
    "PlannedDay",
    "PlannedMeal",
    "Recipe",
    "RecipeDraft",
    "RecipeOutput",
    "ResolvedRef",
    "ShoppingCategory",
    "SuggestedRecipe",
    "UnresolvedRef",
    "WeekPlan",
]
