"""
PlateMyDay - Supabase Client.

Low-level database access for recipes, settings and the anonymous-to-user
migration. Meal plans live in `platemyday.db.meal_plans`.

The server uses the service-role key and scopes every query with the
actor's owner filter itself.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from postgrest.exceptions import APIError
from supabase import Client, create_client

from platemyday.config import settings
from platemyday.errors import StorageError
from platemyday.guardrails.actor import Actor
from platemyday.models.entities import Recipe, RecipeDraft
from platemyday.models.requests import AppSettings, UserPreferences

logger = logging.getLogger(__name__)

# Singleton client instance
_client: Client | None = None


def get_client() -> Client:
    """
    Get the Supabase client.

    Uses singleton pattern to reuse connection.
    """
    global _client

    if _client is None:
        _client = create_client(
            settings.supabase_url,
            settings.supabase_service_role_key,
        )

    return _client


def execute(query: Any, action: str) -> Any:
    """Run a query builder, converting storage failures into StorageError."""
    try:
        return query.execute()
    except APIError as e:
        logger.error(f"Storage error during {action}: {e}")
        raise StorageError() from e


def utc_now() -> str:
    return datetime.now(UTC).isoformat()


# =============================================================================
# Recipe Operations
# =============================================================================

RECIPE_FIELD_COLUMNS = {
    "title": "title",
    "description": "description",
    "ingredients": "ingredients",
    "instructions": "instructions",
    "servings": "servings",
    "prep_time_minutes": "prep_time_minutes",
    "cook_time_minutes": "cook_time_minutes",
    "tags": "tags",
    "is_ai_generated": "is_ai_generated",
}


def map_db_recipe(row: dict) -> Recipe:
    return Recipe(
        id=row["id"],
        title=row.get("title") or "",
        description=row.get("description") or "",
        ingredients=row.get("ingredients") or [],
        instructions=row.get("instructions") or [],
        servings=row.get("servings") or 4,
        prep_time_minutes=row.get("prep_time_minutes") or 0,
        cook_time_minutes=row.get("cook_time_minutes") or 0,
        tags=row.get("tags") or [],
        created_at=row.get("created_at"),
        is_ai_generated=bool(row.get("is_ai_generated")),
    )


async def get_recipes(actor: Actor) -> list[Recipe]:
    """Get the actor's recipe library, newest first."""
    client = get_client()
    response = execute(
        client.table("recipes").select("*").match(actor.owner_filter()).order("created_at", desc=True),
        "get_recipes",
    )
    return [map_db_recipe(row) for row in response.data or []]


async def get_recipe(actor: Actor, recipe_id: str) -> Recipe | None:
    client = get_client()
    response = execute(
        client.table("recipes").select("*").match(actor.owner_filter()).eq("id", recipe_id).limit(1),
        "get_recipe",
    )
    if not response.data:
        return None
    return map_db_recipe(response.data[0])


async def insert_recipe(actor: Actor, draft: RecipeDraft) -> Recipe:
    """Insert a recipe owned by the actor."""
    client = get_client()
    data = {**actor.owner_filter(), **draft.model_dump(include=set(RECIPE_FIELD_COLUMNS))}
    response = execute(client.table("recipes").insert(data), "insert_recipe")
    return map_db_recipe(response.data[0])


async def update_recipe(actor: Actor, recipe_id: str, updates: dict[str, Any]) -> Recipe | None:
    """
    Update recipe fields in place.

    Plans reference recipes by id, so edits show up in every plan that uses it.
    """
    db_updates = {RECIPE_FIELD_COLUMNS[k]: v for k, v in updates.items() if k in RECIPE_FIELD_COLUMNS}
    if not db_updates:
        return await get_recipe(actor, recipe_id)

    client = get_client()
    response = execute(
        client.table("recipes").update(db_updates).match(actor.owner_filter()).eq("id", recipe_id),
        "update_recipe",
    )
    if not response.data:
        return None
    return map_db_recipe(response.data[0])


async def delete_recipe(actor: Actor, recipe_id: str) -> bool:
    client = get_client()
    response = execute(
        client.table("recipes").delete().match(actor.owner_filter()).eq("id", recipe_id),
        "delete_recipe",
    )
    return bool(response.data)


# =============================================================================
# Settings Operations
# =============================================================================


async def get_user_settings(actor: Actor) -> AppSettings | None:
    client = get_client()
    response = execute(
        client.table("user_settings").select("*").match(actor.owner_filter()).limit(1),
        "get_user_settings",
    )
    if not response.data:
        return None

    row = response.data[0]
    return AppSettings(
        recipe_system_prompt=row.get("recipe_system_prompt") or "",
        meal_plan_system_prompt=row.get("meal_plan_system_prompt") or "",
        unit_system=row.get("unit_system") or "imperial",
        week_start_day=row.get("week_start_day") or "Monday",
        preferences=UserPreferences.model_validate(row.get("preferences") or {}),
    )


async def upsert_user_settings(actor: Actor, app_settings: AppSettings) -> None:
    """Update the actor's settings row, inserting it on first save."""
    client = get_client()
    owner = actor.owner_filter()
    values = {
        "recipe_system_prompt": app_settings.recipe_system_prompt,
        "meal_plan_system_prompt": app_settings.meal_plan_system_prompt,
        "unit_system": app_settings.unit_system,
        "week_start_day": app_settings.week_start_day,
        "preferences": app_settings.preferences.to_wire(),
    }

    existing = execute(
        client.table("user_settings").select("id").match(owner).limit(1),
        "upsert_user_settings",
    )
    if existing.data:
        execute(
            client.table("user_settings")
            .update({**values, "updated_at": utc_now()})
            .eq("id", existing.data[0]["id"]),
            "upsert_user_settings",
        )
    else:
        execute(client.table("user_settings").insert({**owner, **values}), "upsert_user_settings")


# =============================================================================
# Anonymous -> Authenticated Migration
# =============================================================================


async def migrate_anonymous_data(anonymous_id: str, user_id: str) -> None:
    """
    Transfer everything an anonymous visitor owns to the signed-in user.

    Recipes and meal plans change owner. If the user already has an active
    plan it stays active and the visitor's plans arrive as history. Settings
    move over unless the user already has their own. Credits merge: used is
    summed, limit is the max.
    """
    client = get_client()
    transfer = {"user_id": user_id, "anonymous_id": None}

    execute(client.table("recipes").update(transfer).eq("anonymous_id", anonymous_id), "migrate recipes")

    user_active = execute(
        client.table("meal_plans").select("id").eq("user_id", user_id).eq("is_active", True).limit(1),
        "migrate meal_plans",
    )
    if user_active.data:
        execute(
            client.table("meal_plans")
            .update({"is_active": False})
            .eq("anonymous_id", anonymous_id)
            .eq("is_active", True),
            "migrate meal_plans",
        )
    execute(client.table("meal_plans").update(transfer).eq("anonymous_id", anonymous_id), "migrate meal_plans")

    existing_settings = execute(
        client.table("user_settings").select("id").eq("user_id", user_id).limit(1),
        "migrate settings",
    )
    if existing_settings.data:
        execute(client.table("user_settings").delete().eq("anonymous_id", anonymous_id), "migrate settings")
    else:
        execute(
            client.table("user_settings").update(transfer).eq("anonymous_id", anonymous_id),
            "migrate settings",
        )

    anon_credits = execute(
        client.table("user_credits").select("credits_used, credits_limit").eq("anonymous_id", anonymous_id).limit(1),
        "migrate credits",
    )
    if not anon_credits.data:
        return

    user_credits = execute(
        client.table("user_credits").select("credits_used, credits_limit").eq("user_id", user_id).limit(1),
        "migrate credits",
    )
    if user_credits.data:
        merged = merge_credit_rows(user_credits.data[0], anon_credits.data[0])
        execute(
            client.table("user_credits").update({**merged, "updated_at": utc_now()}).eq("user_id", user_id),
            "migrate credits",
        )
        execute(client.table("user_credits").delete().eq("anonymous_id", anonymous_id), "migrate credits")
    else:
        execute(
            client.table("user_credits")
            .update({**transfer, "updated_at": utc_now()})
            .eq("anonymous_id", anonymous_id),
            "migrate credits",
        )

    logger.info(f"Migrated anonymous data {anonymous_id} to user {user_id}")


def merge_credit_rows(user_row: dict, anon_row: dict) -> dict[str, int]:
    """Merge two credit counters: credits used add up, the larger limit wins."""
    return {
        "credits_used": (user_row.get("credits_used") or 0) + (anon_row.get("credits_used") or 0),
        "credits_limit": max(user_row.get("credits_limit") or 0, anon_row.get("credits_limit") or 0),
    }
