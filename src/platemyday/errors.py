"""
PlateMyDay - Error taxonomy.

Every error that can reach a caller carries its HTTP status and a public
message. Internal details (provider or storage exceptions) stay in the
server log and never end up in `message`.
"""

from typing import Any


class PlateMyDayError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500
    default_message: str = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        return {"error": self.message}

    def headers(self) -> dict[str, str] | None:
        return None


class RequestValidationError(PlateMyDayError):
    """Malformed or out-of-range request payload."""

    status_code = 400
    default_message = "Request payload is invalid."


class AuthenticationError(PlateMyDayError):
    status_code = 401
    default_message = "Unauthorized"


class AuthorizationError(PlateMyDayError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(PlateMyDayError):
    status_code = 404
    default_message = "Not found"


class CreditsExhaustedError(PlateMyDayError):
    """The actor has no free generations left. Distinct from a failure: the fix is upgrading."""

    status_code = 402
    default_message = "You've used all your free meal plans. Upgrade to keep planning."

    def __init__(self, credits_used: int = 0, credits_limit: int = 0, message: str | None = None):
        super().__init__(message)
        self.credits_used = credits_used
        self.credits_limit = credits_limit

    def to_body(self) -> dict[str, Any]:
        return {
            "error": "no_credits",
            "message": self.message,
            "creditsUsed": self.credits_used,
            "creditsLimit": self.credits_limit,
        }


class RateLimitError(PlateMyDayError):
    """Quota exceeded for this actor; retry after `retry_after_seconds`."""

    status_code = 429

    def __init__(self, action: str, retry_after_seconds: int, message: str | None = None):
        super().__init__(
            message or f"Too many {action} requests. Please wait {retry_after_seconds}s and try again."
        )
        self.action = action
        self.retry_after_seconds = retry_after_seconds

    def to_body(self) -> dict[str, Any]:
        return {"error": self.message, "retryAfterSeconds": self.retry_after_seconds}

    def headers(self) -> dict[str, str] | None:
        return {"Retry-After": str(self.retry_after_seconds)}


class ProviderError(PlateMyDayError):
    """The generation call failed or returned output that doesn't match the schema."""

    status_code = 500
    default_message = "Generation failed. Please try again."


class StorageError(PlateMyDayError):
    """The persistence layer rejected a read or write."""

    status_code = 500
    default_message = "Something went wrong saving your data. Please try again."


# =============================================================================
# Client-side stream errors
# =============================================================================


class StreamFailedError(PlateMyDayError):
    """The server delivered a terminal ERROR marker."""

    status_code = 500

    def __init__(self, message: str | None = None, payload: dict[str, Any] | None = None):
        super().__init__(message)
        self.payload = payload or {}

    @property
    def is_credit_exhaustion(self) -> bool:
        return self.payload.get("error") == "no_credits"


class StreamProtocolError(PlateMyDayError):
    """The stream ended without a DONE marker. Treated like a provider failure."""

    status_code = 500
    default_message = "Incomplete response from server. Please try again."
