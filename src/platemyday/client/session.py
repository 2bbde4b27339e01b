"""
PlateMyDay - Plan session.

Holds the committed week plan and the in-flight generation's partial plan.
A generation only replaces the committed plan when it finishes; a failed
or cancelled one leaves it untouched.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from platemyday.client.api import PlateMyDayClient
from platemyday.errors import CreditsExhaustedError, PlateMyDayError, StreamFailedError
from platemyday.models.entities import WeekPlan
from platemyday.models.requests import RecipeRefInput

logger = logging.getLogger(__name__)

PlanListener = Callable[[WeekPlan], None]


@dataclass
class GenerationInputs:
    recipes: list[RecipeRefInput] = field(default_factory=list)
    preferences: str | None = None
    system_prompt: str | None = None
    week_start_day: str = "Monday"


class PlanSession:
    """Client-side meal plan state with cancellable generation."""

    def __init__(self, client: PlateMyDayClient, week_plan: WeekPlan | None = None):
        self.client = client
        self.week_plan = week_plan
        self.partial_plan: dict[str, Any] | None = None
        self.is_streaming = False
        self.error: str | None = None
        self.credits_exhausted = False
        self._task: asyncio.Task | None = None
        self._last_inputs: GenerationInputs | None = None
        self._listeners: list[PlanListener] = []

    def add_listener(self, listener: PlanListener) -> None:
        """Call `listener` whenever a new plan is committed."""
        self._listeners.append(listener)

    def set_week_plan(self, week_plan: WeekPlan) -> None:
        self.week_plan = week_plan
        for listener in self._listeners:
            listener(week_plan)

    @property
    def generating(self) -> bool:
        return self._task is not None and not self._task.done()

    def start_generation(
        self,
        recipes: Iterable[RecipeRefInput] = (),
        *,
        preferences: str | None = None,
        system_prompt: str | None = None,
        week_start_day: str = "Monday",
    ) -> asyncio.Task:
        """Start a new generation, cancelling any that's still running. Returns the task."""
        inputs = GenerationInputs(
            recipes=list(recipes),
            preferences=preferences,
            system_prompt=system_prompt,
            week_start_day=week_start_day,
        )
        return self._start(inputs)

    def retry_generation(self) -> asyncio.Task | None:
        """Re-run the last generation from scratch with the same inputs."""
        if self._last_inputs is None:
            return None
        return self._start(self._last_inputs)

    def cancel(self) -> None:
        if self.generating:
            self._task.cancel()

    def _start(self, inputs: GenerationInputs) -> asyncio.Task:
        self.cancel()
        self._last_inputs = inputs
        self.partial_plan = None
        self.error = None
        self.credits_exhausted = False
        self.is_streaming = True
        self._task = asyncio.create_task(self._run(inputs))
        return self._task

    def _on_partial(self, partial: dict[str, Any]) -> None:
        self.partial_plan = partial

    def _is_current(self) -> bool:
        return self._task is asyncio.current_task()

    async def _run(self, inputs: GenerationInputs) -> WeekPlan | None:
        try:
            week_plan = await self.client.stream_meal_plan(
                inputs.recipes,
                preferences=inputs.preferences,
                system_prompt=inputs.system_prompt,
                week_start_day=inputs.week_start_day,
                on_partial=self._on_partial,
            )
        except asyncio.CancelledError:
            logger.debug("Meal plan generation cancelled")
            # A replacement generation owns the state now
            if self._is_current():
                self.partial_plan = None
                self.is_streaming = False
            raise
        except (CreditsExhaustedError, StreamFailedError) as e:
            self.credits_exhausted = isinstance(e, CreditsExhaustedError) or e.is_credit_exhaustion
            self.error = e.message
            self.is_streaming = False
            return None
        except PlateMyDayError as e:
            self.error = e.message
            self.is_streaming = False
            return None

        self.is_streaming = False
        self.partial_plan = None
        self.set_week_plan(week_plan)
        return week_plan
