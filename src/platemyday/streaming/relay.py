"""
PlateMyDay - Stream Relay.

Turns a generation's StreamUpdate sequence into a line-delimited HTTP
stream. Two framings carry the same events:

- NDJSON: `<json>\\n` per partial, `DONE:<json>\\n` for the final object,
  `ERROR:<json>\\n` on failure
- SSE: `data: {"type": "update" | "done" | "error", ...}`

Partials are coalesced to at most one per interval; the final object is always
sent exactly once. A client disconnect stops the relay quietly. Failures
after streaming has begun still end with an error event, never a bare
connection close.
"""

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Literal

from fastapi import Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from platemyday.config import settings
from platemyday.errors import PlateMyDayError
from platemyday.llm.client import StreamUpdate

logger = logging.getLogger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"

# Called with the validated final object; returns the DONE payload
FinalHook = Callable[[Any], Awaitable[Any]]
DisconnectCheck = Callable[[], Awaitable[bool]]


@dataclass
class RelayEvent:
    type: Literal["update", "done", "error"]
    payload: Any


def _to_payload(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, mode="json")
    return value


def _error_body(error: Exception) -> dict[str, Any]:
    if isinstance(error, PlateMyDayError):
        return error.to_body()
    return PlateMyDayError().to_body()


async def _next_update(iterator: AsyncIterator[StreamUpdate]) -> StreamUpdate | None:
    try:
        return await anext(iterator)
    except StopAsyncIteration:
        return None


async def relay_events(
    updates: AsyncIterator[StreamUpdate],
    *,
    on_final: FinalHook | None = None,
    is_disconnected: DisconnectCheck | None = None,
    throttle_seconds: float | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> AsyncIterator[RelayEvent]:
    """
    Throttle partials and produce the terminal event.

    Partials arriving inside the throttle window are coalesced: only the
    newest is kept, and it is sent once the window closes even if the
    provider has gone quiet. A pending partial is dropped when the final
    object arrives, since the final supersedes it.

    Args:
        updates: Generation stream (partials, then one update with `final`)
        on_final: Optional hook run on the final object before it's sent
            (persisting, consuming a credit). Its return value becomes the
            DONE payload; if it raises, an error event is sent instead.
        is_disconnected: Polled before each event; True stops the relay
        throttle_seconds: Minimum spacing between partial events
        clock: Monotonic clock, injectable for tests
    """
    interval = settings.stream_throttle_ms / 1000 if throttle_seconds is None else throttle_seconds
    iterator = aiter(updates)
    last_sent: float | None = None
    pending: Any = None
    next_task: asyncio.Task | None = None

    try:
        while True:
            if next_task is None:
                next_task = asyncio.create_task(_next_update(iterator))

            if pending is not None:
                remaining = last_sent + interval - clock()
                if remaining <= 0:
                    if is_disconnected is not None and await is_disconnected():
                        logger.debug("Client disconnected, stopping relay")
                        return
                    last_sent = clock()
                    yield RelayEvent("update", pending)
                    pending = None
                    continue
                done, _ = await asyncio.wait({next_task}, timeout=remaining)
                if not done:
                    continue

            update = await next_task
            next_task = None
            if update is None:
                break

            if is_disconnected is not None and await is_disconnected():
                logger.debug("Client disconnected, stopping relay")
                return

            if update.final is not None:
                payload = await on_final(update.final) if on_final else update.final
                yield RelayEvent("done", _to_payload(payload))
                return

            now = clock()
            if last_sent is not None and now - last_sent < interval:
                pending = update.partial
                continue
            last_sent = now
            pending = None
            yield RelayEvent("update", update.partial)

        # A well-formed generation never ends without a final update
        logger.error("Generation stream ended without a final object")
        yield RelayEvent("error", PlateMyDayError("Incomplete response from generator.").to_body())
    except asyncio.CancelledError:
        logger.debug("Relay cancelled by client disconnect")
        raise
    except PlateMyDayError as e:
        logger.warning(f"Stream failed: {e.message}")
        yield RelayEvent("error", _error_body(e))
    except Exception as e:
        logger.exception("Unexpected error while relaying stream")
        yield RelayEvent("error", _error_body(e))
    finally:
        if next_task is not None:
            next_task.cancel()
            await asyncio.gather(next_task, return_exceptions=True)
        aclose = getattr(updates, "aclose", None)
        if aclose is not None:
            await aclose()


# =============================================================================
# Framings
# =============================================================================


def format_ndjson(event: RelayEvent) -> str:
    body = json.dumps(event.payload)
    if event.type == "done":
        return f"DONE:{body}\n"
    if event.type == "error":
        return f"ERROR:{body}\n"
    return f"{body}\n"


def format_sse(event: RelayEvent) -> dict[str, str]:
    """Event dict for EventSourceResponse."""
    if event.type == "error":
        envelope = {"type": "error", **event.payload}
    else:
        envelope = {"type": event.type, "data": event.payload}
    return {"data": json.dumps(envelope)}


async def ndjson_lines(events: AsyncIterator[RelayEvent]) -> AsyncIterator[str]:
    async for event in events:
        yield format_ndjson(event)


async def sse_events(events: AsyncIterator[RelayEvent]) -> AsyncIterator[dict[str, str]]:
    async for event in events:
        yield format_sse(event)


def wants_sse(request: Request) -> bool:
    return "text/event-stream" in request.headers.get("accept", "")


def relay_response(
    request: Request,
    updates: AsyncIterator[StreamUpdate],
    *,
    on_final: FinalHook | None = None,
):
    """
    Stream `updates` back in the framing the client asked for.

    `Accept: text/event-stream` gets SSE, anything else NDJSON.
    """
    events = relay_events(updates, on_final=on_final, is_disconnected=request.is_disconnected)
    if wants_sse(request):
        return EventSourceResponse(sse_events(events))
    return StreamingResponse(
        ndjson_lines(events),
        media_type=NDJSON_MEDIA_TYPE,
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
