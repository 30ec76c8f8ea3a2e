# ========================================
# talentbridge/utils/errors.py
# ========================================

import functools
from typing import Any, Callable, Dict, Optional

from pymongo.errors import ConnectionFailure, ExecutionTimeout, WTimeoutError

from talentbridge.utils.logger import get_logger

logger = get_logger(__name__)


class MarketplaceError(Exception):
    """Base for every outcome the core hands back to the HTTP layer.

    `public_message` is what the caller sees; the constructor message is only
    logged.
    """

    status_code = 500
    public_message = "Request could not be completed"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or self.public_message)
        self.detail = detail or self.public_message

    def extras(self) -> Dict[str, Any]:
        return {}

    def headers(self) -> Optional[Dict[str, str]]:
        return None


class ValidationError(MarketplaceError):
    status_code = 400
    public_message = "Invalid request"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail)
        # Validation messages describe the caller's own input, safe to echo
        if detail:
            self.public_message = detail


class Forbidden(MarketplaceError):
    status_code = 403
    public_message = "You are not allowed to perform this action"


class NotFound(MarketplaceError):
    status_code = 404
    public_message = "Resource not found"


class DuplicateApplication(MarketplaceError):
    status_code = 409
    public_message = "An application for this job already exists for this email"


class AlreadyProcessed(MarketplaceError):
    status_code = 409
    public_message = "This item was already processed"


class PreconditionFailed(MarketplaceError):
    status_code = 409
    public_message = "This action is not allowed in the current state"


class InsufficientCredits(MarketplaceError):
    status_code = 402
    public_message = "Insufficient credits"

    def __init__(self, required: int, available: int):
        super().__init__(f"required={required} available={available}")
        self.required = required
        self.available = available

    def extras(self) -> Dict[str, Any]:
        return {"required": self.required, "available": self.available}


class RateLimited(MarketplaceError):
    status_code = 429
    public_message = "Too many requests. Please wait a few minutes before trying again."

    def __init__(self, reset_in_seconds: int):
        super().__init__(f"reset_in_seconds={reset_in_seconds}")
        self.reset_in_seconds = reset_in_seconds

    def extras(self) -> Dict[str, Any]:
        return {"retry_after_seconds": self.reset_in_seconds}

    def headers(self) -> Optional[Dict[str, str]]:
        return {
            "Retry-After": str(self.reset_in_seconds),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(self.reset_in_seconds),
        }


class StorageUnavailable(MarketplaceError):
    """Transient backend failure; the only kind a caller may retry."""

    status_code = 503
    public_message = "Service temporarily unavailable, please retry"


# Driver errors that mean "backend unreachable or too slow", not "bad query"
TRANSIENT_STORAGE_ERRORS = (ConnectionFailure, ExecutionTimeout, WTimeoutError)


def translate_storage_errors(fn: Callable) -> Callable:
    """Decorator: re-raise transient pymongo failures as StorageUnavailable."""

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await fn(*args, **kwargs)
        except TRANSIENT_STORAGE_ERRORS as exc:
            logger.error("%s storage failure: %s", fn.__qualname__, exc)
            raise StorageUnavailable(str(exc)) from exc

    return wrapper
