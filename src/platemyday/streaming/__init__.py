"""
PlateMyDay - Streaming.

- relay: server side, StreamUpdate sequence -> NDJSON or SSE response
- consumer: client side, byte stream -> partials and one final object
"""

from platemyday.streaming.consumer import (
    LineDecoder,
    NDJSONStreamConsumer,
    SSEStreamConsumer,
    StreamConsumer,
    consume_stream,
)
from platemyday.streaming.relay import RelayEvent, format_ndjson, format_sse, relay_events, relay_response

__all__ = [
    "LineDecoder",
    "NDJSONStreamConsumer",
    "RelayEvent",
    "SSEStreamConsumer",
    "StreamConsumer",
    "consume_stream",
    "format_ndjson",
    "format_sse",
    "relay_events",
    "relay_response",
]
