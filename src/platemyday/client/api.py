"""
PlateMyDay - HTTP client.

Async client for the PlateMyDay API. Streaming endpoints are read with the
Stream Consumer; error responses are turned back into the same exception
classes the server raised.
"""

import logging
from collections.abc import Iterable
from typing import Any

import httpx

from platemyday.client.identity import load_or_create_anonymous_id
from platemyday.client.settings import ClientSettings
from platemyday.errors import (
    AuthenticationError,
    AuthorizationError,
    CreditsExhaustedError,
    NotFoundError,
    PlateMyDayError,
    RateLimitError,
    RequestValidationError,
)
from platemyday.models.billing import BillingInfo
from platemyday.models.entities import Recipe, WeekPlan
from platemyday.models.requests import RecipeRefInput
from platemyday.models.schemas import ConsolidatedShoppingList, RecipeOutput
from platemyday.streaming.consumer import NDJSONStreamConsumer, PartialCallback, consume_stream

logger = logging.getLogger(__name__)

API_PREFIX = "/api"

_STATUS_ERRORS: dict[int, type[PlateMyDayError]] = {
    400: RequestValidationError,
    401: AuthenticationError,
    403: AuthorizationError,
    404: NotFoundError,
}


def error_from_response(status_code: int, body: Any, headers: httpx.Headers | None = None) -> PlateMyDayError:
    """Rebuild the server's exception from an error response."""
    body = body if isinstance(body, dict) else {}
    message = body.get("message") or body.get("error")
    message = message if isinstance(message, str) else None

    if status_code == 402 or body.get("error") == "no_credits":
        return CreditsExhaustedError(
            credits_used=body.get("creditsUsed") or 0,
            credits_limit=body.get("creditsLimit") or 0,
            message=message,
        )
    if status_code == 429:
        retry_after = body.get("retryAfterSeconds")
        if retry_after is None and headers is not None:
            retry_after = int(headers.get("retry-after", "1"))
        return RateLimitError("api", int(retry_after or 1), message=message)

    error_class = _STATUS_ERRORS.get(status_code, PlateMyDayError)
    return error_class(message)


class PlateMyDayClient:
    """
    Async API client.

    Every request carries the anonymous id; when an access token is
    configured it's sent as a bearer token and the server attributes the
    request to that user instead.
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        anonymous_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or ClientSettings()
        self.anonymous_id = anonymous_id or load_or_create_anonymous_id(self.settings.anonymous_id_path)
        self._http = httpx.AsyncClient(
            base_url=self.settings.api_base_url.rstrip("/") + API_PREFIX,
            timeout=self.settings.request_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "PlateMyDayClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    def _headers(self, accept: str = "application/json") -> dict[str, str]:
        headers = {"Accept": accept}
        if self.settings.access_token:
            headers["Authorization"] = f"Bearer {self.settings.access_token}"
        return headers

    def _with_actor(self, body: dict[str, Any]) -> dict[str, Any]:
        return {**body, "anonymousId": self.anonymous_id}

    @staticmethod
    def _raise_for_error(response: httpx.Response) -> None:
        if response.is_success:
            return
        try:
            body = response.json()
        except ValueError:
            body = {}
        raise error_from_response(response.status_code, body, response.headers)

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        response = await self._http.request(method, path, headers=self._headers(), **kwargs)
        self._raise_for_error(response)
        return response.json()

    async def _stream(self, path: str, body: dict[str, Any], on_partial: PartialCallback | None) -> Any:
        async with self._http.stream(
            "POST",
            path,
            json=self._with_actor(body),
            headers=self._headers(accept="application/x-ndjson"),
        ) as response:
            if not response.is_success:
                await response.aread()
                self._raise_for_error(response)
            return await consume_stream(response.aiter_bytes(), NDJSONStreamConsumer(on_partial))

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    async def generate_recipe(self, prompt: str, system_prompt: str | None = None) -> RecipeOutput:
        data = await self._request(
            "POST",
            "/generate-recipe",
            json=self._with_actor({"prompt": prompt, "systemPrompt": system_prompt}),
        )
        return RecipeOutput.model_validate(data)

    async def regenerate_meal(
        self,
        meal_type: str,
        day_of_week: str,
        current_meals: Iterable[dict[str, str]] = (),
        system_prompt: str | None = None,
    ) -> RecipeOutput:
        data = await self._request(
            "POST",
            "/regenerate-meal",
            json=self._with_actor(
                {
                    "mealType": meal_type,
                    "dayOfWeek": day_of_week,
                    "currentMeals": list(current_meals),
                    "systemPrompt": system_prompt,
                }
            ),
        )
        return RecipeOutput.model_validate(data)

    async def stream_meal_plan(
        self,
        recipes: Iterable[RecipeRefInput] = (),
        *,
        preferences: str | None = None,
        system_prompt: str | None = None,
        week_start_day: str = "Monday",
        on_partial: PartialCallback | None = None,
    ) -> WeekPlan:
        """
        Generate a meal plan, reporting partial plans as they stream in.

        The DONE payload is the generated plan with the saved WeekPlan
        under "weekPlan"; the saved WeekPlan is returned.
        """
        result = await self._stream(
            "/generate-meal-plan",
            {
                "recipes": [r.to_wire() for r in recipes],
                "preferences": preferences,
                "systemPrompt": system_prompt,
                "weekStartDay": week_start_day,
            },
            on_partial,
        )
        return WeekPlan.model_validate(result["weekPlan"])

    async def consolidate_shopping_list(
        self, meal_plan_id: str, on_partial: PartialCallback | None = None
    ) -> ConsolidatedShoppingList:
        result = await self._stream("/consolidate-shopping-list", {"mealPlanId": meal_plan_id}, on_partial)
        return ConsolidatedShoppingList.model_validate(result)

    # -------------------------------------------------------------------------
    # Library, plans, billing
    # -------------------------------------------------------------------------

    async def get_recipes(self) -> list[Recipe]:
        data = await self._request("GET", "/recipes", params={"anonymousId": self.anonymous_id})
        return [Recipe.model_validate(r) for r in data["recipes"]]

    async def get_active_plan(self) -> WeekPlan | None:
        data = await self._request("GET", "/meal-plans/active", params={"anonymousId": self.anonymous_id})
        plan = data.get("plan")
        return WeekPlan.model_validate(plan) if plan else None

    async def promote_suggestion(self, plan_id: str, title: str) -> tuple[Recipe, WeekPlan]:
        data = await self._request(
            "POST",
            f"/meal-plans/{plan_id}/suggested-recipes/promote",
            json=self._with_actor({"title": title}),
        )
        return Recipe.model_validate(data["recipe"]), WeekPlan.model_validate(data["plan"])

    async def get_credits(self) -> BillingInfo:
        data = await self._request("GET", "/billing/credits", params={"anonymousId": self.anonymous_id})
        return BillingInfo.model_validate(data)

    async def migrate_anonymous(self) -> None:
        """Move this visitor's anonymous data to the signed-in account."""
        await self._request("POST", "/account/migrate-anonymous", json={"anonymousId": self.anonymous_id})
