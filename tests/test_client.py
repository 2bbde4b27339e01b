"""
Tests for the API client, plan session and shopping list watcher.
"""

import asyncio
import json

import httpx
import pytest

from platemyday.client import identity
from platemyday.client.api import PlateMyDayClient, error_from_response
from platemyday.client.session import PlanSession
from platemyday.client.settings import ClientSettings
from platemyday.client.shopping import ShoppingListWatcher
from platemyday.errors import (
    CreditsExhaustedError,
    NotFoundError,
    RateLimitError,
    StreamFailedError,
    StreamProtocolError,
)
from platemyday.models.entities import DayPlan, WeekPlan
from platemyday.models.schemas import ConsolidatedShoppingList


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio needed)."""
    return asyncio.run(coro)


def _week(plan_id: str = "plan-1") -> WeekPlan:
    return WeekPlan(
        id=plan_id,
        week_start_date="2024-05-06",
        created_at="2024-05-06T00:00:00+00:00",
        days=[DayPlan(date=f"2024-05-{6 + i:02d}", day_of_week="Monday") for i in range(7)],
    )


def _client(handler) -> PlateMyDayClient:
    return PlateMyDayClient(
        ClientSettings(api_base_url="http://api.test"),
        anonymous_id="anon-1",
        transport=httpx.MockTransport(handler),
    )


def _ndjson(*lines: str) -> bytes:
    return "".join(f"{line}\n" for line in lines).encode()


class TestErrorMapping:
    def test_no_credits(self):
        error = error_from_response(402, {"error": "no_credits", "message": "Upgrade", "creditsUsed": 10, "creditsLimit": 10})
        assert isinstance(error, CreditsExhaustedError)
        assert error.credits_used == 10
        assert error.message == "Upgrade"

    def test_rate_limit_uses_retry_after_header(self):
        error = error_from_response(429, {"error": "Too many"}, httpx.Headers({"Retry-After": "42"}))
        assert isinstance(error, RateLimitError)
        assert error.retry_after_seconds == 42

    def test_not_found(self):
        error = error_from_response(404, {"error": "Meal plan not found"})
        assert isinstance(error, NotFoundError)
        assert error.message == "Meal plan not found"


class TestPlateMyDayClient:
    def test_stream_meal_plan(self):
        week = _week()
        seen_requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen_requests.append(request)
            body = _ndjson(
                json.dumps({"days": []}),
                json.dumps({"days": [{"dayOfWeek": "Monday"}]}),
                "DONE:" + json.dumps({"days": [], "newRecipes": [], "weekPlan": week.to_wire()}),
            )
            return httpx.Response(200, content=body, headers={"Content-Type": "application/x-ndjson"})

        partials = []

        async def run():
            async with _client(handler) as client:
                return await client.stream_meal_plan(week_start_day="Sunday", on_partial=partials.append)

        result = _run(run())

        assert result == week
        assert partials == [{"days": []}, {"days": [{"dayOfWeek": "Monday"}]}]
        request = seen_requests[0]
        assert request.url.path == "/api/generate-meal-plan"
        sent = json.loads(request.content)
        assert sent["anonymousId"] == "anon-1"
        assert sent["weekStartDay"] == "Sunday"

    def test_stream_error_marker(self):
        def handler(request):
            return httpx.Response(200, content=_ndjson('{"days": []}', 'ERROR:{"error": "Generation failed."}'))

        async def run():
            async with _client(handler) as client:
                return await client.stream_meal_plan()

        with pytest.raises(StreamFailedError, match="Generation failed."):
            _run(run())

    def test_stream_without_done(self):
        def handler(request):
            return httpx.Response(200, content=_ndjson('{"categories": []}'))

        async def run():
            async with _client(handler) as client:
                return await client.consolidate_shopping_list("plan-1")

        with pytest.raises(StreamProtocolError):
            _run(run())

    def test_stream_http_error_is_rebuilt(self):
        def handler(request):
            return httpx.Response(402, json={"error": "no_credits", "message": "Upgrade", "creditsUsed": 10, "creditsLimit": 10})

        async def run():
            async with _client(handler) as client:
                return await client.stream_meal_plan()

        with pytest.raises(CreditsExhaustedError):
            _run(run())

    def test_bearer_token_is_sent(self):
        headers = {}

        def handler(request):
            headers.update(request.headers)
            return httpx.Response(200, json={"plan": None})

        async def run():
            settings = ClientSettings(api_base_url="http://api.test", access_token="tok")
            async with PlateMyDayClient(settings, anonymous_id="a", transport=httpx.MockTransport(handler)) as client:
                return await client.get_active_plan()

        assert _run(run()) is None
        assert headers["authorization"] == "Bearer tok"


class TestAnonymousIdentity:
    def test_id_is_created_once(self, tmp_path):
        path = tmp_path / "nested" / "anonymous_id"
        first = identity.load_or_create_anonymous_id(path)
        assert identity.load_or_create_anonymous_id(path) == first

        identity.forget_anonymous_id(path)
        assert not path.exists()


class FakePlanClient:
    """Streams a scripted plan; each call waits on its own gate."""

    def __init__(self):
        self.calls = 0
        self.gates: list[asyncio.Event] = []
        self.outcomes: list = []

    async def stream_meal_plan(self, recipes, *, on_partial=None, **kwargs):
        self.calls += 1
        gate = asyncio.Event()
        self.gates.append(gate)
        on_partial({"days": [], "call": self.calls})
        await gate.wait()
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class TestPlanSession:
    def test_commits_only_on_success(self):
        committed = []

        async def run():
            client = FakePlanClient()
            client.outcomes = [_week("plan-new")]
            session = PlanSession(client, week_plan=_week("plan-old"))
            session.add_listener(committed.append)

            task = session.start_generation()
            await asyncio.sleep(0)
            assert session.is_streaming
            assert session.partial_plan == {"days": [], "call": 1}
            assert session.week_plan.id == "plan-old"

            client.gates[0].set()
            await task
            return session

        session = _run(run())
        assert session.week_plan.id == "plan-new"
        assert session.partial_plan is None
        assert not session.is_streaming
        assert [plan.id for plan in committed] == ["plan-new"]

    def test_failure_keeps_previous_plan(self):
        async def run():
            client = FakePlanClient()
            client.outcomes = [StreamFailedError("Generation failed.")]
            session = PlanSession(client, week_plan=_week("plan-old"))
            task = session.start_generation()
            await asyncio.sleep(0)
            client.gates[0].set()
            await task
            return session

        session = _run(run())
        assert session.week_plan.id == "plan-old"
        assert session.error == "Generation failed."
        assert not session.credits_exhausted
        assert not session.is_streaming

    def test_credit_exhaustion_is_flagged(self):
        async def run():
            client = FakePlanClient()
            client.outcomes = [StreamFailedError("Upgrade", {"error": "no_credits"})]
            session = PlanSession(client)
            task = session.start_generation()
            await asyncio.sleep(0)
            client.gates[0].set()
            await task
            return session

        assert _run(run()).credits_exhausted

    def test_new_generation_cancels_old_one(self):
        async def run():
            client = FakePlanClient()
            client.outcomes = [_week("plan-second")]
            session = PlanSession(client, week_plan=_week("plan-old"))

            first = session.start_generation(week_start_day="Monday")
            await asyncio.sleep(0)
            second = session.start_generation(week_start_day="Sunday")
            await asyncio.sleep(0)
            assert session.generating

            with pytest.raises(asyncio.CancelledError):
                await first
            assert session.is_streaming
            assert session.partial_plan == {"days": [], "call": 2}

            client.gates[1].set()
            await second
            assert not session.generating
            return session

        session = _run(run())
        assert session.week_plan.id == "plan-second"

    def test_cancel_leaves_plan_untouched(self):
        async def run():
            client = FakePlanClient()
            session = PlanSession(client, week_plan=_week("plan-old"))
            task = session.start_generation()
            await asyncio.sleep(0)
            session.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            assert not session.generating
            return session

        session = _run(run())
        assert session.week_plan.id == "plan-old"
        assert session.partial_plan is None
        assert not session.is_streaming

    def test_retry_reuses_inputs(self):
        async def run():
            client = FakePlanClient()
            client.outcomes = [StreamFailedError("boom"), _week("plan-new")]
            session = PlanSession(client)
            task = session.start_generation(preferences="no mushrooms")
            await asyncio.sleep(0)
            client.gates[0].set()
            await task

            retry = session.retry_generation()
            await asyncio.sleep(0)
            client.gates[1].set()
            await retry
            return session, client

        session, client = _run(run())
        assert client.calls == 2
        assert session.error is None
        assert session.week_plan.id == "plan-new"

    def test_retry_without_previous_generation(self):
        async def run():
            return PlanSession(FakePlanClient()).retry_generation()

        assert _run(run()) is None


class FakeShoppingClient:
    def __init__(self):
        self.requested: list[str] = []

    async def consolidate_shopping_list(self, meal_plan_id, on_partial=None):
        self.requested.append(meal_plan_id)
        on_partial({"categories": []})
        return ConsolidatedShoppingList(categories=[], pantry_items=[meal_plan_id])


class TestShoppingListWatcher:
    def test_debounces_rapid_changes(self):
        async def run():
            client = FakeShoppingClient()
            watcher = ShoppingListWatcher(client, debounce_seconds=0.01)
            watcher.plan_changed(_week("plan-1"))
            watcher.plan_changed(_week("plan-2"))
            watcher.plan_changed(_week("plan-3"))
            result = await watcher.wait()
            return client, watcher, result

        client, watcher, result = _run(run())
        assert client.requested == ["plan-3"]
        assert result.pantry_items == ["plan-3"]
        assert watcher.partial is None
        assert not watcher.is_consolidating

    def test_wait_without_changes(self):
        async def run():
            return await ShoppingListWatcher(FakeShoppingClient()).wait()

        assert _run(run()) is None

    def test_errors_are_recorded(self):
        class FailingClient:
            async def consolidate_shopping_list(self, meal_plan_id, on_partial=None):
                raise NotFoundError("Meal plan not found")

        async def run():
            watcher = ShoppingListWatcher(FailingClient(), debounce_seconds=0)
            watcher.plan_changed(_week())
            await watcher.wait()
            return watcher

        watcher = _run(run())
        assert watcher.error == "Meal plan not found"
        assert watcher.shopping_list is None
