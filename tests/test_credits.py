"""
Tests for the credit ledger.
"""

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from platemyday.billing.credits import check_credits, consume_credit, get_billing_info
from platemyday.errors import CreditsExhaustedError, StorageError
from platemyday.guardrails.actor import Actor

USER = Actor(user_id="user-1")
ANON = Actor(anonymous_id="anon-1")


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio needed)."""
    return asyncio.run(coro)


class TestCheckCredits:
    def test_fresh_anonymous_actor_gets_default_allowance(self, mock_supabase):
        check = _run(check_credits(ANON))
        assert check.allowed
        assert not check.unlimited
        assert (check.credits_used, check.credits_limit, check.remaining) == (0, 10, 10)

    def test_exhausted_counter_is_not_allowed(self, mock_supabase):
        mock_supabase.set_data("user_credits", [{"credits_used": 10, "credits_limit": 10}])
        check = _run(check_credits(ANON))
        assert not check.allowed
        assert check.remaining == 0

    def test_remaining_never_negative(self, mock_supabase):
        mock_supabase.set_data("user_credits", [{"credits_used": 14, "credits_limit": 10}])
        assert _run(check_credits(ANON)).remaining == 0

    def test_anonymous_actors_never_consult_billing(self, mock_supabase):
        _run(check_credits(ANON))
        assert "user_billing" not in mock_supabase.tables
        assert "user_billing_overrides" not in mock_supabase.tables

    def test_override_unlimited_beats_everything(self, mock_supabase):
        mock_supabase.set_data("user_billing_overrides", [{"unlimited": True, "extra_credits": 0}])
        mock_supabase.set_data("user_billing", [{"plan_id": "free", "subscription_status": None}])
        mock_supabase.set_data("user_credits", [{"credits_used": 50, "credits_limit": 10}])

        check = _run(check_credits(USER))
        assert check.allowed
        assert check.unlimited
        assert check.remaining is None

    def test_active_subscription_is_unlimited(self, mock_supabase):
        mock_supabase.set_data("user_billing", [{"plan_id": "pro_monthly", "subscription_status": "active"}])
        mock_supabase.set_data("user_credits", [{"credits_used": 10, "credits_limit": 10}])
        assert _run(check_credits(USER)).unlimited

    def test_lifetime_plan_is_unlimited(self, mock_supabase):
        mock_supabase.set_data("user_billing", [{"plan_id": "lifetime", "subscription_status": None}])
        assert _run(check_credits(USER)).unlimited

    def test_past_due_subscription_falls_back_to_counter(self, mock_supabase):
        mock_supabase.set_data("user_billing", [{"plan_id": "pro_monthly", "subscription_status": "past_due"}])
        mock_supabase.set_data("user_credits", [{"credits_used": 10, "credits_limit": 10}])
        check = _run(check_credits(USER))
        assert not check.unlimited
        assert not check.allowed

    def test_extra_credits_extend_the_limit(self, mock_supabase):
        mock_supabase.set_data("user_billing_overrides", [{"unlimited": False, "extra_credits": 5}])
        mock_supabase.set_data("user_credits", [{"credits_used": 12, "credits_limit": 10}])

        check = _run(check_credits(USER))
        assert check.allowed
        assert check.credits_limit == 15
        assert check.remaining == 3

    def test_check_has_no_side_effects(self, mock_supabase):
        _run(check_credits(USER))
        mock_supabase.client.rpc.assert_not_called()
        for query in mock_supabase.tables.values():
            query.insert.assert_not_called()
            query.update.assert_not_called()
            query.upsert.assert_not_called()


class TestConsumeCredit:
    def test_returns_new_balance(self, mock_supabase):
        mock_supabase.rpc_query.execute.return_value = MagicMock(data=[{"credits_used": 4, "credits_limit": 10}])

        balance = _run(consume_credit(ANON))

        assert (balance.credits_used, balance.credits_limit) == (4, 10)
        mock_supabase.client.rpc.assert_called_once_with(
            "consume_credit",
            {"p_user_id": None, "p_anonymous_id": "anon-1", "p_default_limit": 10},
        )

    def test_user_consumption_ignores_anonymous_id(self, mock_supabase):
        mock_supabase.rpc_query.execute.return_value = MagicMock(data=[{"credits_used": 1, "credits_limit": 10}])
        _run(consume_credit(Actor(user_id="user-1", anonymous_id="anon-1")))
        params = mock_supabase.client.rpc.call_args.args[1]
        assert params["p_user_id"] == "user-1"
        assert params["p_anonymous_id"] is None

    def test_empty_result_means_exhausted(self, mock_supabase):
        mock_supabase.rpc_query.execute.return_value = MagicMock(data=[])
        mock_supabase.set_data("user_credits", [{"credits_used": 10, "credits_limit": 10}])

        with pytest.raises(CreditsExhaustedError) as exc_info:
            _run(consume_credit(ANON))

        assert exc_info.value.to_body() == {
            "error": "no_credits",
            "message": exc_info.value.message,
            "creditsUsed": 10,
            "creditsLimit": 10,
        }

    def test_storage_failure_is_a_storage_error(self, mock_supabase):
        from postgrest.exceptions import APIError

        mock_supabase.rpc_query.execute.side_effect = APIError({"message": "boom", "code": "500"})
        with pytest.raises(StorageError):
            _run(consume_credit(ANON))

    def test_concurrent_consumption_never_exceeds_limit(self, mock_supabase):
        """With k credits left, N > k concurrent consumers get exactly k successes."""
        counter = {"credits_used": 7, "credits_limit": 10}
        lock = threading.Lock()

        def conditional_update():
            # Stands in for the single UPDATE ... WHERE credits_used < limit
            with lock:
                if counter["credits_used"] < counter["credits_limit"]:
                    counter["credits_used"] += 1
                    return MagicMock(data=[dict(counter)])
                return MagicMock(data=[])

        mock_supabase.rpc_query.execute.side_effect = conditional_update
        mock_supabase.set_data("user_credits", [counter])

        def attempt(_):
            try:
                _run(consume_credit(ANON))
                return True
            except CreditsExhaustedError:
                return False

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(attempt, range(8)))

        assert results.count(True) == 3
        assert results.count(False) == 5
        assert counter["credits_used"] == 10


class TestBillingInfo:
    def test_no_identity_gets_default_snapshot(self, mock_supabase):
        info = _run(get_billing_info(Actor(ip="1.2.3.4")))
        assert info.to_wire() == {
            "plan": "free",
            "unlimited": False,
            "creditsUsed": 0,
            "creditsLimit": 10,
            "creditsRemaining": 10,
        }
        mock_supabase.client.table.assert_not_called()

    def test_subscriber_snapshot(self, mock_supabase):
        mock_supabase.set_data("user_billing", [{"plan_id": "pro_annual", "subscription_status": "active"}])
        mock_supabase.set_data("user_credits", [{"credits_used": 3, "credits_limit": 10}])

        info = _run(get_billing_info(USER))
        assert info.plan == "pro_annual"
        assert info.unlimited
        assert info.credits_remaining is None

    def test_anonymous_snapshot(self, mock_supabase):
        mock_supabase.set_data("user_credits", [{"credits_used": 3, "credits_limit": 10}])
        info = _run(get_billing_info(ANON))
        assert info.plan == "free"
        assert info.credits_remaining == 7
