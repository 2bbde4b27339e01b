"""
PlateMyDay - Request guardrails.

Validation of inbound payloads, actor resolution, and sliding-window rate
limiting, applied before any generation or storage call is made.
"""

from platemyday.guardrails.actor import Actor, get_request_ip, resolve_actor
from platemyday.guardrails.ratelimit import (
    InMemoryQuotaStore,
    QuotaStore,
    RateLimitResult,
    get_quota_store,
    set_quota_store,
)
from platemyday.guardrails.validation import (
    Validated,
    parse_json_body,
    validate_and_rate_limit,
    validate_payload,
)

__all__ = [
    "Actor",
    "InMemoryQuotaStore",
    "QuotaStore",
    "RateLimitResult",
    "Validated",
    "get_quota_store",
    "get_request_ip",
    "parse_json_body",
    "resolve_actor",
    "set_quota_store",
    "validate_and_rate_limit",
    "validate_payload",
]
