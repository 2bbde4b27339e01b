"""
Request validation.

`validate_and_rate_limit` is the single entry point generation endpoints use:
it returns either the validated body plus the resolved Actor, or a ready-made
error response. It never raises.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from platemyday.config import get_settings
from platemyday.errors import PlateMyDayError, RateLimitError, RequestValidationError
from platemyday.guardrails.actor import Actor, get_request_ip, resolve_actor
from platemyday.guardrails.ratelimit import get_quota_store

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


@dataclass
class Validated(Generic[T]):
    data: T
    actor: Actor


def error_response(error: PlateMyDayError) -> JSONResponse:
    """Render a PlateMyDayError as a JSON response."""
    return JSONResponse(error.to_body(), status_code=error.status_code, headers=error.headers())


def parse_json_body(raw: bytes) -> Any | None:
    """Decode a JSON body, returning None when it isn't valid JSON."""
    try:
        return json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        return None


def describe_validation_error(error: ValidationError) -> str:
    """Message naming the first failing field, e.g. `recipes.0.title: String should ...`."""
    issues = error.errors()
    if not issues:
        return RequestValidationError.default_message
    first = issues[0]
    path = ".".join(str(part) for part in first.get("loc", ()))
    return f"{path}: {first['msg']}" if path else first["msg"]


def validate_payload(model: type[T], payload: Any) -> T:
    """Validate a decoded payload, raising RequestValidationError on the first failing field."""
    if not isinstance(payload, dict):
        raise RequestValidationError("Request body must be a JSON object.")
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise RequestValidationError(describe_validation_error(e)) from e


async def validate_and_rate_limit(
    request: Request,
    model: type[T],
    *,
    key: str,
    verified_user_id: str | None = None,
) -> Validated[T] | JSONResponse:
    """
    Validate the body, resolve the actor, and take one rate-limit slot.

    Args:
        request: Incoming request (body is read here)
        model: Pydantic model describing the body
        key: Endpoint name; selects the configured quota and prefixes the bucket key
        verified_user_id: User id from the bearer token, if any

    Returns:
        Validated(data, actor) or a 400/401/403/429 JSONResponse
    """
    payload = parse_json_body(await request.body())
    if payload is None:
        return error_response(RequestValidationError("Invalid JSON body."))

    try:
        data = validate_payload(model, payload)
        actor = resolve_actor(
            verified_user_id,
            claimed_user_id=getattr(data, "user_id", None),
            anonymous_id=getattr(data, "anonymous_id", None),
            ip=get_request_ip(request),
        )
    except PlateMyDayError as e:
        return error_response(e)

    rule = get_settings().rate_limit_for(key)
    result = get_quota_store().check_and_consume(f"{key}:{actor.key}", rule.limit, rule.window_seconds)
    if not result.allowed:
        logger.info(f"Rate limited {key} for {actor.key} (retry in {result.retry_after_seconds}s)")
        return error_response(RateLimitError(key.replace("-", " "), result.retry_after_seconds))

    return Validated(data=data, actor=actor)
