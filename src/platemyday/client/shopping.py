"""
PlateMyDay - Shopping list watcher.

Re-consolidates the shopping list whenever the week plan changes,
debounced, with at most one consolidation in flight: a new change cancels
whatever was pending or running.
"""

import asyncio
import logging
from typing import Any

from platemyday.client.api import PlateMyDayClient
from platemyday.errors import PlateMyDayError
from platemyday.models.entities import WeekPlan
from platemyday.models.schemas import ConsolidatedShoppingList

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.5


class ShoppingListWatcher:
    def __init__(self, client: PlateMyDayClient, debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS):
        self.client = client
        self.debounce_seconds = debounce_seconds
        self.shopping_list: ConsolidatedShoppingList | None = None
        self.partial: dict[str, Any] | None = None
        self.error: str | None = None
        self._task: asyncio.Task | None = None

    @property
    def is_consolidating(self) -> bool:
        return self._task is not None and not self._task.done()

    def plan_changed(self, week_plan: WeekPlan) -> asyncio.Task:
        """Schedule a consolidation for `week_plan`, replacing any in flight."""
        if self.is_consolidating:
            self._task.cancel()
        self._task = asyncio.create_task(self._consolidate(week_plan.id))
        return self._task

    async def wait(self) -> ConsolidatedShoppingList | None:
        """Wait for the current consolidation (if any) to settle."""
        if self._task is None:
            return self.shopping_list
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        return self.shopping_list

    def close(self) -> None:
        if self.is_consolidating:
            self._task.cancel()

    def _on_partial(self, partial: dict[str, Any]) -> None:
        self.partial = partial

    async def _consolidate(self, plan_id: str) -> None:
        await asyncio.sleep(self.debounce_seconds)
        self.error = None
        try:
            result = await self.client.consolidate_shopping_list(plan_id, on_partial=self._on_partial)
        except asyncio.CancelledError:
            logger.debug(f"Shopping list consolidation for {plan_id} replaced")
            raise
        except PlateMyDayError as e:
            self.error = e.message
            return
        finally:
            self.partial = None

        self.shopping_list = result
