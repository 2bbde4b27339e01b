"""
Pytest configuration and fixtures for PlateMyDay tests.
"""

import os
from unittest.mock import MagicMock, patch

import pytest

# Set test environment before importing platemyday modules
os.environ["PLATEMYDAY_ENV"] = "development"
os.environ["OPENAI_API_KEY"] = "test-openai-key"
os.environ["SUPABASE_URL"] = "http://localhost:54321"
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-service-key"
os.environ["ADMIN_SECRET_KEY"] = "admin-secret"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_123"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test"
os.environ["STRIPE_PRICE_MONTHLY"] = "price_monthly"
os.environ["STRIPE_PRICE_ANNUAL"] = "price_annual"
os.environ["STRIPE_PRICE_LIFETIME"] = "price_lifetime"

from platemyday.guardrails.ratelimit import set_quota_store  # noqa: E402

QUERY_METHODS = ("select", "insert", "update", "upsert", "delete", "eq", "in_", "match", "order", "limit")


def make_query(data=None) -> MagicMock:
    """Chainable stand-in for a Supabase query builder."""
    query = MagicMock()
    for method in QUERY_METHODS:
        getattr(query, method).return_value = query
    query.execute.return_value = MagicMock(data=data if data is not None else [])
    return query


class MockSupabase:
    """Supabase client double with one chainable query per table."""

    def __init__(self):
        self.client = MagicMock()
        self.tables: dict[str, MagicMock] = {}
        self.client.table.side_effect = self.table
        self.rpc_query = make_query()
        self.client.rpc.return_value = self.rpc_query

    def table(self, name: str) -> MagicMock:
        if name not in self.tables:
            self.tables[name] = make_query()
        return self.tables[name]

    def set_data(self, name: str, *responses: list) -> None:
        """Data returned by the table's next execute() calls (the last one repeats)."""
        query = self.table(name)
        if len(responses) == 1:
            query.execute.return_value = MagicMock(data=responses[0])
            return
        results = [MagicMock(data=data) for data in responses]
        query.execute.side_effect = lambda: results.pop(0) if len(results) > 1 else results[0]

    def sign_in(self, user_id: str = "user-1", email: str = "cook@example.com") -> None:
        """Make any bearer token validate as this user."""
        self.client.auth.get_user.return_value = MagicMock(user=MagicMock(id=user_id, email=email))


@pytest.fixture
def mock_supabase():
    """Mock Supabase client installed as the shared client."""
    mock = MockSupabase()
    with patch("platemyday.db.client._client", mock.client):
        yield mock


@pytest.fixture(autouse=True)
def fresh_quota_store():
    """Each test starts with empty rate-limit buckets."""
    set_quota_store(None)
    yield
    set_quota_store(None)


@pytest.fixture
def sample_recipe_output():
    """A generated recipe, as the provider returns it."""
    return {
        "title": "Spicy Tofu Bowl",
        "description": "Crispy tofu over rice with a chili glaze",
        "ingredients": ["1 block firm tofu", "1 cup rice", "2 tbsp chili sauce"],
        "instructions": ["Press tofu", "Cook rice", "Fry tofu and glaze"],
        "servings": 2,
        "prepTimeMinutes": 10,
        "cookTimeMinutes": 20,
        "tags": ["vegetarian", "quick"],
    }


def _day(day_of_week: str, meals: list[dict]) -> dict:
    return {"dayOfWeek": day_of_week, "meals": meals}


@pytest.fixture
def sample_meal_plan_output(sample_recipe_output):
    """A generated week: Monday dinner is a new recipe, the rest use the library."""
    library_meal = {"mealType": "breakfast", "recipeTitle": "Pancakes", "recipeId": "recipe-1"}
    days = [
        _day(
            "Monday",
            [library_meal, {"mealType": "dinner", "recipeTitle": "Spicy Tofu Bowl"}],
        )
    ]
    for name in ("Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"):
        days.append(_day(name, [library_meal]))
    return {"days": days, "newRecipes": [sample_recipe_output]}
