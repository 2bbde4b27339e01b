"""
Tests for request validation, actor resolution and the combined
validate-and-rate-limit gate.
"""

import asyncio
import json

import pytest
from fastapi.responses import JSONResponse
from starlette.requests import Request

from platemyday.errors import AuthenticationError, AuthorizationError, RequestValidationError
from platemyday.guardrails.actor import Actor, get_request_ip, resolve_actor
from platemyday.guardrails.validation import Validated, validate_and_rate_limit, validate_payload
from platemyday.models.requests import (
    GenerateMealPlanRequest,
    GenerateRecipeRequest,
    RegenerateMealRequest,
)


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio needed)."""
    return asyncio.run(coro)


def make_request(body: bytes = b"{}", headers: dict | None = None, client=("10.0.0.1", 5000)) -> Request:
    async def receive():
        return {"type": "http.request", "body": body, "more_body": False}

    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/test",
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope, receive)


def _body(response: JSONResponse) -> dict:
    return json.loads(response.body)


class TestActor:
    def test_key_precedence(self):
        assert Actor(user_id="u1", anonymous_id="a1", ip="1.2.3.4").key == "user:u1"
        assert Actor(anonymous_id="a1", ip="1.2.3.4").key == "anon:a1"
        assert Actor(ip="1.2.3.4").key == "ip:1.2.3.4"
        assert Actor().key == "ip:unknown"

    def test_owner_filter_requires_identity(self):
        assert Actor(user_id="u1").owner_filter() == {"user_id": "u1"}
        assert Actor(anonymous_id="a1").owner_filter() == {"anonymous_id": "a1"}
        with pytest.raises(AuthenticationError):
            Actor(ip="1.2.3.4").owner_filter()

    def test_verified_user_wins_over_anonymous_id(self):
        actor = resolve_actor("u1", anonymous_id="a1")
        assert actor.user_id == "u1"
        assert actor.anonymous_id is None

    def test_claimed_user_without_token_is_rejected(self):
        with pytest.raises(AuthenticationError):
            resolve_actor(None, claimed_user_id="u1")

    def test_claimed_user_must_match_token(self):
        with pytest.raises(AuthorizationError):
            resolve_actor("u1", claimed_user_id="u2")

    def test_request_ip_prefers_first_forwarded_entry(self):
        request = make_request(headers={"X-Forwarded-For": " 203.0.113.7 , 10.0.0.2", "X-Real-IP": "198.51.100.1"})
        assert get_request_ip(request) == "203.0.113.7"

    def test_request_ip_falls_back_to_real_ip_then_peer(self):
        assert get_request_ip(make_request(headers={"X-Real-IP": "198.51.100.1"})) == "198.51.100.1"
        assert get_request_ip(make_request()) == "10.0.0.1"
        assert get_request_ip(make_request(client=None)) is None


class TestRequestSchemas:
    def test_blank_actor_ids_become_absent(self):
        req = validate_payload(GenerateRecipeRequest, {"prompt": "pasta", "userId": "  ", "anonymousId": " a1 "})
        assert req.user_id is None
        assert req.anonymous_id == "a1"

    def test_prompt_length_bounds(self):
        with pytest.raises(RequestValidationError, match="^prompt: "):
            validate_payload(GenerateRecipeRequest, {"prompt": "ab"})
        with pytest.raises(RequestValidationError):
            validate_payload(GenerateRecipeRequest, {"prompt": "x" * 2001})

    def test_blank_system_prompt_is_absent(self):
        req = validate_payload(GenerateRecipeRequest, {"prompt": "soup", "systemPrompt": "   "})
        assert req.system_prompt is None

    def test_message_names_first_failing_field(self):
        payload = {"recipes": [{"id": "r1", "title": ""}], "weekStartDay": "Monday"}
        with pytest.raises(RequestValidationError) as exc_info:
            validate_payload(GenerateMealPlanRequest, payload)
        assert exc_info.value.message.startswith("recipes.0.title: ")

    def test_week_start_day_must_be_a_weekday(self):
        with pytest.raises(RequestValidationError, match="weekStartDay"):
            validate_payload(GenerateMealPlanRequest, {"weekStartDay": "Someday"})

    def test_meal_plan_defaults(self):
        req = validate_payload(GenerateMealPlanRequest, {})
        assert req.recipes == []
        assert req.week_start_day == "Monday"

    def test_blank_tags_are_dropped(self):
        req = validate_payload(
            GenerateMealPlanRequest,
            {"recipes": [{"id": "r1", "title": "Soup", "tags": ["warm", "  ", ""]}]},
        )
        assert req.recipes[0].tags == ["warm"]

    def test_current_meals_are_capped(self):
        meals = [{"title": f"Meal {i}", "mealType": "lunch"} for i in range(13)]
        with pytest.raises(RequestValidationError, match="currentMeals"):
            validate_payload(RegenerateMealRequest, {"mealType": "dinner", "dayOfWeek": "Friday", "currentMeals": meals})

    def test_meal_type_enum(self):
        with pytest.raises(RequestValidationError, match="mealType"):
            validate_payload(RegenerateMealRequest, {"mealType": "brunch", "dayOfWeek": "Friday"})

    def test_non_object_body_is_rejected(self):
        with pytest.raises(RequestValidationError, match="JSON object"):
            validate_payload(GenerateRecipeRequest, ["prompt"])


class TestValidateAndRateLimit:
    def test_returns_data_and_actor(self):
        request = make_request(json.dumps({"prompt": "tacos", "anonymousId": "anon-1"}).encode())
        result = _run(validate_and_rate_limit(request, GenerateRecipeRequest, key="generate-recipe"))

        assert isinstance(result, Validated)
        assert result.data.prompt == "tacos"
        assert result.actor.key == "anon:anon-1"

    def test_malformed_json_is_400(self):
        result = _run(validate_and_rate_limit(make_request(b"{not json"), GenerateRecipeRequest, key="generate-recipe"))
        assert isinstance(result, JSONResponse)
        assert result.status_code == 400
        assert _body(result)["error"] == "Invalid JSON body."

    def test_schema_violation_is_400(self):
        request = make_request(json.dumps({"prompt": "x"}).encode())
        result = _run(validate_and_rate_limit(request, GenerateRecipeRequest, key="generate-recipe"))
        assert result.status_code == 400
        assert _body(result)["error"].startswith("prompt: ")

    def test_claimed_user_mismatch_is_403(self):
        request = make_request(json.dumps({"prompt": "tacos", "userId": "someone-else"}).encode())
        result = _run(
            validate_and_rate_limit(request, GenerateRecipeRequest, key="generate-recipe", verified_user_id="u1")
        )
        assert result.status_code == 403

    def test_rate_limit_is_429_with_retry_after(self):
        body = json.dumps({"mealType": "dinner", "dayOfWeek": "Friday", "anonymousId": "anon-1"}).encode()

        async def hammer():
            results = []
            for _ in range(26):
                results.append(await validate_and_rate_limit(make_request(body), RegenerateMealRequest, key="regenerate-meal"))
            return results

        results = _run(hammer())
        assert all(isinstance(r, Validated) for r in results[:25])

        denied = results[25]
        assert denied.status_code == 429
        assert int(denied.headers["retry-after"]) >= 1
        payload = _body(denied)
        assert payload["retryAfterSeconds"] >= 1
        assert payload["error"].startswith("Too many regenerate meal requests.")

    def test_validation_failures_do_not_use_quota(self):
        async def attempt():
            for _ in range(30):
                await validate_and_rate_limit(make_request(b"[]"), RegenerateMealRequest, key="regenerate-meal")
            ok = json.dumps({"mealType": "dinner", "dayOfWeek": "Friday"}).encode()
            return await validate_and_rate_limit(make_request(ok), RegenerateMealRequest, key="regenerate-meal")

        assert isinstance(_run(attempt()), Validated)
