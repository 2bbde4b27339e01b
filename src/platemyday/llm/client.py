"""
PlateMyDay - Structured Generation Client.

Wraps OpenAI with Instructor so every response is validated against a
Pydantic model. Two entry points:

- generate(): blocking call, returns the complete validated object
- generate_stream(): yields increasingly complete partial objects, then
  one final update carrying the validated object

Provider failures and non-conforming final output both surface as
ProviderError; there is no partial success.
"""

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import instructor
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from platemyday.config import settings
from platemyday.errors import ProviderError
from platemyday.llm.model_router import get_task_config
from platemyday.llm.prompt_logger import log_prompt

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

# Singleton client instance
_client: instructor.AsyncInstructor | None = None


def get_client() -> instructor.AsyncInstructor:
    """
    Get the Instructor-wrapped async OpenAI client.

    Uses singleton pattern to reuse connection.
    """
    global _client

    if _client is None:
        openai_client = AsyncOpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
        )
        _client = instructor.from_openai(openai_client)

    return _client


@dataclass
class StreamUpdate(Generic[T]):
    """One step of a streamed generation. `final` is set only on the last update."""

    partial: dict[str, Any] = field(default_factory=dict)
    final: T | None = None

    @property
    def done(self) -> bool:
        return self.final is not None


def _build_kwargs(task: str, system_prompt: str, prompt: str, response_model: type[BaseModel]) -> dict:
    config = get_task_config(task)
    return {
        "model": config.get("model", "gpt-4.1-mini"),
        "temperature": config.get("temperature", 0.5),
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": prompt},
        ],
        "response_model": response_model,
    }


async def generate(
    *,
    response_model: type[T],
    system_prompt: str,
    prompt: str,
    task: str = "recipe",
    max_retries: int = 1,
) -> T:
    """
    Make a structured generation call and wait for the full result.

    Args:
        response_model: Pydantic model the response must satisfy
        system_prompt: System message setting context
        prompt: User message with the actual request
        task: Task name for model selection (see model_router)
        max_retries: Instructor re-asks when the output fails validation

    Returns:
        Instance of response_model with validated data

    Raises:
        ProviderError: provider call failed or output never validated
    """
    client = get_client()
    api_kwargs = _build_kwargs(task, system_prompt, prompt, response_model)

    try:
        response = await client.chat.completions.create(max_retries=max_retries, **api_kwargs)
    except Exception as e:
        logger.error(f"Generation failed for task {task}: {e}")
        log_prompt(
            task=task,
            model=api_kwargs["model"],
            system_prompt=system_prompt,
            user_prompt=prompt,
            response_model=response_model.__name__,
            error=str(e),
        )
        raise ProviderError() from e

    log_prompt(
        task=task,
        model=api_kwargs["model"],
        system_prompt=system_prompt,
        user_prompt=prompt,
        response_model=response_model.__name__,
        response=response,
    )
    return response


async def generate_stream(
    *,
    response_model: type[T],
    system_prompt: str,
    prompt: str,
    task: str = "meal_plan",
) -> AsyncIterator[StreamUpdate[T]]:
    """
    Stream a structured generation as partial objects.

    Partials are yielded as camelCase dicts in provider order (each is at
    least as complete as the previous one; unchanged snapshots are skipped).
    The last update carries `final`, the fully validated object.

    Closing the iterator early stops consuming the provider stream.

    Raises:
        ProviderError: provider failed mid-stream, or the last partial doesn't validate
    """
    client = get_client()
    api_kwargs = _build_kwargs(task, system_prompt, prompt, response_model)
    last: dict[str, Any] | None = None

    stream = client.chat.completions.create_partial(**api_kwargs)
    try:
        async for partial in stream:
            snapshot = partial.model_dump(by_alias=True, exclude_none=True, mode="json")
            if snapshot == last:
                continue
            last = snapshot
            yield StreamUpdate(partial=snapshot)
    except Exception as e:
        logger.error(f"Streaming generation failed for task {task}: {e}")
        log_prompt(
            task=task,
            model=api_kwargs["model"],
            system_prompt=system_prompt,
            user_prompt=prompt,
            response_model=response_model.__name__,
            error=str(e),
            streamed=True,
        )
        raise ProviderError() from e
    finally:
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()

    if last is None:
        raise ProviderError("The generator returned an empty response.")

    try:
        final = response_model.model_validate(last)
    except ValidationError as e:
        logger.warning(f"Final {response_model.__name__} did not validate: {e.error_count()} errors")
        log_prompt(
            task=task,
            model=api_kwargs["model"],
            system_prompt=system_prompt,
            user_prompt=prompt,
            response_model=response_model.__name__,
            error=f"Final output failed validation: {e}",
            streamed=True,
        )
        raise ProviderError() from e

    log_prompt(
        task=task,
        model=api_kwargs["model"],
        system_prompt=system_prompt,
        user_prompt=prompt,
        response_model=response_model.__name__,
        response=final,
        streamed=True,
    )
    yield StreamUpdate(partial=last, final=final)
