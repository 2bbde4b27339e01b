"""
Tests for Supabase persistence: plan mapping, saving and anonymous migration.
"""

import asyncio
from datetime import date
from unittest.mock import call

import pytest
from postgrest.exceptions import APIError

from platemyday.db import client as db
from platemyday.db import meal_plans
from platemyday.errors import StorageError
from platemyday.guardrails.actor import Actor
from platemyday.models.schemas import MealPlanWithDetails
from platemyday.planning.reconciler import build_week_plan


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio needed)."""
    return asyncio.run(coro)


def _plan_row() -> dict:
    days = [
        {"id": f"day-{i}", "day_index": i, "date": f"2024-05-{6 + i:02d}", "day_of_week": "Monday", "meal_plan_meals": []}
        for i in reversed(range(7))
    ]
    days[-1]["meal_plan_meals"] = [
        {"id": "m2", "meal_index": 1, "meal_type": "dinner", "recipe_id": None,
         "recipe_title_fallback": "Tofu Bowl", "suggested_recipe_id": "sg-1"},
        {"id": "m1", "meal_index": 0, "meal_type": "breakfast", "recipe_id": "recipe-1"},
        {"id": "m3", "meal_index": 2, "meal_type": "snack", "recipe_id": None, "recipe_title_fallback": None},
    ]
    return {
        "id": "plan-1",
        "week_start_date": "2024-05-06",
        "created_at": "2024-05-06T08:00:00+00:00",
        "meal_plan_days": days,
        "suggested_recipes": [{"id": "sg-1", "title": "Tofu Bowl", "ingredients": ["tofu"]}],
    }


class TestMapping:
    def test_days_and_meals_are_ordered(self):
        plan = meal_plans.map_db_meal_plan(_plan_row())

        assert [day.date for day in plan.days][:2] == ["2024-05-06", "2024-05-07"]
        meals = plan.days[0].meals
        assert [meal.id for meal in meals] == ["m1", "m2"]
        assert meals[0].recipe_id == "recipe-1"
        assert meals[1].ref.suggestion_id == "sg-1"

    def test_suggestions_keyed_by_title(self):
        plan = meal_plans.map_db_meal_plan(_plan_row())
        assert plan.suggested_recipes["Tofu Bowl"].suggestion_id == "sg-1"

    def test_incomplete_plan_is_skipped_in_history(self, mock_supabase):
        broken = {"id": "plan-2", "week_start_date": "2024-04-29", "meal_plan_days": []}
        mock_supabase.set_data("meal_plans", [broken, _plan_row()])

        plans = _run(meal_plans.get_meal_plans(Actor(user_id="user-1")))

        assert [plan.id for plan in plans] == ["plan-1"]

    def test_incomplete_active_plan_reads_as_none(self, mock_supabase):
        broken = {"id": "plan-2", "week_start_date": "2024-04-29", "meal_plan_days": []}
        mock_supabase.set_data("meal_plans", [broken])

        assert _run(meal_plans.get_active_meal_plan(Actor(user_id="user-1"))) is None


class TestSaveMealPlan:
    def test_save_writes_plan_tree(self, mock_supabase, sample_meal_plan_output):
        output = MealPlanWithDetails.model_validate(sample_meal_plan_output)
        plan = build_week_plan(output, "Monday", {"recipe-1"}, today=date(2024, 5, 10))
        mock_supabase.set_data("meal_plans", [{"id": "db-plan", "created_at": "2024-05-10T12:00:00+00:00"}])
        mock_supabase.set_data(
            "meal_plan_days", [{"id": f"day-{i}", "day_index": i} for i in range(7)]
        )

        saved = _run(meal_plans.save_meal_plan(Actor(anonymous_id="anon-1"), plan))

        assert saved.id == "db-plan"
        assert saved.created_at == "2024-05-10T12:00:00+00:00"

        tables = mock_supabase.tables
        plan_insert = tables["meal_plans"].insert.call_args.args[0]
        assert plan_insert == {"anonymous_id": "anon-1", "week_start_date": "2024-05-06", "is_active": False}
        assert tables["meal_plans"].update.call_args_list == [call({"is_active": False}), call({"is_active": True})]

        suggestion = plan.suggested_recipes["Spicy Tofu Bowl"]
        suggested_rows = tables["suggested_recipes"].insert.call_args.args[0]
        assert suggested_rows[0]["id"] == suggestion.suggestion_id

        meal_rows = tables["meal_plan_meals"].insert.call_args.args[0]
        assert len(meal_rows) == 8
        assert meal_rows[0]["recipe_id"] == "recipe-1"
        assert meal_rows[1]["recipe_id"] is None
        assert meal_rows[1]["suggested_recipe_id"] == suggestion.suggestion_id
        assert [row["id"] for row in meal_rows] == [slot.id for slot in plan.iter_slots()]

    def test_save_can_leave_plan_inactive(self, mock_supabase, sample_meal_plan_output):
        output = MealPlanWithDetails.model_validate(sample_meal_plan_output)
        plan = build_week_plan(output, "Monday", set(), today=date(2024, 5, 10))
        mock_supabase.set_data("meal_plans", [{"id": "db-plan"}])
        mock_supabase.set_data("meal_plan_days", [{"id": f"day-{i}", "day_index": i} for i in range(7)])

        _run(meal_plans.save_meal_plan(Actor(user_id="user-1"), plan, activate=False))

        mock_supabase.tables["meal_plans"].update.assert_not_called()

    def test_failed_save_removes_partial_plan(self, mock_supabase, sample_meal_plan_output):
        output = MealPlanWithDetails.model_validate(sample_meal_plan_output)
        plan = build_week_plan(output, "Monday", {"recipe-1"}, today=date(2024, 5, 10))
        mock_supabase.set_data("meal_plans", [{"id": "db-plan"}])
        mock_supabase.set_data("meal_plan_days", [{"id": f"day-{i}", "day_index": i} for i in range(7)])
        mock_supabase.table("meal_plan_meals").execute.side_effect = APIError({"message": "boom", "code": "500"})

        with pytest.raises(StorageError):
            _run(meal_plans.save_meal_plan(Actor(user_id="user-1"), plan))

        plans = mock_supabase.tables["meal_plans"]
        plans.delete.assert_called_once()
        plans.eq.assert_any_call("id", "db-plan")
        plans.update.assert_not_called()

    def test_relink_updates_slots_and_drops_suggestion(self, mock_supabase):
        _run(meal_plans.relink_meal_slots("plan-1", ["m1", "m2"], "recipe-9", "sg-1"))

        meals = mock_supabase.tables["meal_plan_meals"]
        assert meals.update.call_args.args[0]["recipe_id"] == "recipe-9"
        meals.in_.assert_called_with("id", ["m1", "m2"])
        mock_supabase.tables["suggested_recipes"].delete.assert_called_once()

    def test_restore_requires_ownership(self, mock_supabase):
        mock_supabase.set_data("meal_plans", [])
        assert not _run(meal_plans.restore_meal_plan(Actor(user_id="user-1"), "plan-x"))
        mock_supabase.tables["meal_plans"].update.assert_not_called()


class TestMigration:
    def test_credit_rows_merge(self):
        merged = db.merge_credit_rows({"credits_used": 4, "credits_limit": 10}, {"credits_used": 3, "credits_limit": 15})
        assert merged == {"credits_used": 7, "credits_limit": 15}

    def test_anonymous_rows_change_owner(self, mock_supabase):
        mock_supabase.set_data("user_settings", [])
        mock_supabase.set_data("user_credits", [])

        _run(db.migrate_anonymous_data("anon-1", "user-1"))

        transfer = {"user_id": "user-1", "anonymous_id": None}
        mock_supabase.tables["recipes"].update.assert_called_with(transfer)
        mock_supabase.tables["meal_plans"].update.assert_called_with(transfer)
        mock_supabase.tables["user_settings"].update.assert_called_with(transfer)

    def test_anonymous_plans_join_history_when_user_has_active_plan(self, mock_supabase):
        mock_supabase.set_data("meal_plans", [{"id": "user-plan"}])
        mock_supabase.set_data("user_settings", [])
        mock_supabase.set_data("user_credits", [])

        _run(db.migrate_anonymous_data("anon-1", "user-1"))

        plans = mock_supabase.tables["meal_plans"]
        assert plans.update.call_args_list == [
            call({"is_active": False}),
            call({"user_id": "user-1", "anonymous_id": None}),
        ]
        plans.eq.assert_any_call("anonymous_id", "anon-1")

    def test_anonymous_active_plan_kept_when_user_has_none(self, mock_supabase):
        mock_supabase.set_data("user_settings", [])
        mock_supabase.set_data("user_credits", [])

        _run(db.migrate_anonymous_data("anon-1", "user-1"))

        plans = mock_supabase.tables["meal_plans"]
        assert plans.update.call_args_list == [call({"user_id": "user-1", "anonymous_id": None})]
