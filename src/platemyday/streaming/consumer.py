"""
PlateMyDay - Stream Consumer.

Client-side reader for relay streams. Bytes are decoded incrementally and
split on newlines, so the recognised lines never depend on how the
transport chunked the body.

NDJSON rules:
- `ERROR:<json>` fails the stream; nothing before or after changes that
- `DONE:<json>` stashes the final result, reading continues to the end
- anything else is tried as a JSON partial; unparseable lines are ignored
- a stream that ends without DONE is a StreamProtocolError
"""

import codecs
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterable, Callable
from typing import Any

from platemyday.errors import StreamFailedError, StreamProtocolError

logger = logging.getLogger(__name__)

DONE_PREFIX = "DONE:"
ERROR_PREFIX = "ERROR:"

PartialCallback = Callable[[dict[str, Any]], None]


class LineDecoder:
    """Incremental UTF-8 decoder that hands back complete lines."""

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[str]:
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return [line.rstrip("\r") for line in lines]

    def finish(self) -> list[str]:
        """Flush whatever is left after the last newline."""
        self._buffer += self._decoder.decode(b"", final=True)
        leftover, self._buffer = self._buffer.rstrip("\r"), ""
        return [leftover] if leftover.strip() else []


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


def _failure(payload: Any) -> StreamFailedError:
    if not isinstance(payload, dict):
        return StreamFailedError(str(payload) if payload else None)
    message = payload.get("message") or payload.get("error")
    return StreamFailedError(message if isinstance(message, str) else None, payload)


class StreamConsumer(ABC):
    """
    Common state for both framings.

    `partial` is the latest partial seen; `result` is set once the final
    object arrives. `finish()` returns the result or raises.
    """

    def __init__(self, on_partial: PartialCallback | None = None):
        self.on_partial = on_partial
        self.partial: dict[str, Any] | None = None
        self.result: Any = None
        self.done = False
        self.error: StreamFailedError | None = None
        self._lines = LineDecoder()

    @property
    def failed(self) -> bool:
        return self.error is not None

    def feed(self, chunk: bytes) -> None:
        for line in self._lines.feed(chunk):
            self.handle_line(line)

    def finish(self) -> Any:
        for line in self._lines.finish():
            self.handle_line(line)

        if self.error is not None:
            raise self.error
        if not self.done:
            raise StreamProtocolError()
        return self.result

    @abstractmethod
    def handle_line(self, line: str) -> None:
        """Apply one complete line of the framing."""

    def _set_partial(self, partial: Any) -> None:
        if not isinstance(partial, dict) or self.failed:
            return
        self.partial = partial
        if self.on_partial is not None:
            self.on_partial(partial)

    def _set_done(self, result: Any) -> None:
        if self.done:
            logger.debug("Ignoring repeated final object")
            return
        self.result = result
        self.done = True

    def _set_error(self, payload: Any) -> None:
        # First error wins
        if self.error is None:
            self.error = _failure(payload)


class NDJSONStreamConsumer(StreamConsumer):
    def handle_line(self, line: str) -> None:
        if not line.strip():
            return

        if line.startswith(ERROR_PREFIX):
            text = line[len(ERROR_PREFIX):]
            payload = _loads(text)
            self._set_error(payload if payload is not None else {"error": text.strip()})
            return

        if line.startswith(DONE_PREFIX):
            payload = _loads(line[len(DONE_PREFIX):])
            if payload is None:
                logger.warning("Unparseable DONE line")
                return
            self._set_done(payload)
            return

        # Truncated partials are expected; the next newline re-syncs
        self._set_partial(_loads(line))


class SSEStreamConsumer(StreamConsumer):
    """Reads `data: {"type": ...}` envelopes; other SSE fields are ignored."""

    def handle_line(self, line: str) -> None:
        if not line.startswith("data:"):
            return

        envelope = _loads(line[len("data:"):].strip())
        if not isinstance(envelope, dict):
            return

        kind = envelope.get("type")
        if kind == "update":
            self._set_partial(envelope.get("data"))
        elif kind == "done":
            self._set_done(envelope.get("data"))
        elif kind == "error":
            self._set_error({k: v for k, v in envelope.items() if k != "type"})


async def consume_stream(chunks: AsyncIterable[bytes], consumer: StreamConsumer) -> Any:
    """
    Drive `consumer` over a byte stream and return the final object.

    Stops reading as soon as an error is seen. Cancelling the awaiting task
    stops the read immediately; the consumer's result is never returned.

    Raises:
        StreamFailedError: the server sent an error marker
        StreamProtocolError: the stream ended without a final object
    """
    async for chunk in chunks:
        consumer.feed(chunk)
        if consumer.failed:
            break
    return consumer.finish()
