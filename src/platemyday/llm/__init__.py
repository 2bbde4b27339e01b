"""
PlateMyDay - Structured generation.

All calls to the generation provider go through `platemyday.llm.client`.
"""

from platemyday.llm.client import StreamUpdate, generate, generate_stream, get_client

__all__ = [
    "StreamUpdate",
    "generate",
    "generate_stream",
    "get_client",
]
