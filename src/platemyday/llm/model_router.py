"""
PlateMyDay - Model Router.

Selects the model and sampling settings for each generation task.

Tasks:
- recipe: one recipe from a free-text request
- meal_plan: a full week with new recipe details (largest output)
- regenerate_meal: a single replacement suggestion (cheap, creative)
- shopping_list: merge and categorize ingredients (deterministic)
"""

from typing import Literal, TypedDict


class ModelConfig(TypedDict, total=False):
    """Configuration for model calls."""

    model: str
    temperature: float


Task = Literal["recipe", "meal_plan", "regenerate_meal", "shopping_list"]

TASK_CONFIGS: dict[str, ModelConfig] = {
    "recipe": {
        "model": "gpt-4.1-mini",
        "temperature": 0.7,
    },
    "meal_plan": {
        "model": "gpt-4.1",
        "temperature": 0.6,  # Variety across the week, but stay on-brief
    },
    "regenerate_meal": {
        "model": "gpt-4.1-nano",
        "temperature": 0.8,  # Should differ from what's already planned
    },
    "shopping_list": {
        "model": "gpt-4.1-mini",
        "temperature": 0.1,  # Merging quantities should be boring
    },
}

DEFAULT_CONFIG: ModelConfig = {
    "model": "gpt-4.1-mini",
    "temperature": 0.5,
}


def get_model(task: Task | str) -> str:
    """Get the model name for a task."""
    return TASK_CONFIGS.get(task, DEFAULT_CONFIG)["model"]


def get_task_config(task: Task | str) -> ModelConfig:
    """Get a copy of the full model configuration for a task."""
    return TASK_CONFIGS.get(task, DEFAULT_CONFIG).copy()
