"""Result type and error boundary shared by the calendar and staffing services"""

import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Optional

logger = logging.getLogger(__name__)


class OperationError(Exception):
    """Raised inside an operation to abort it with a user-facing message"""

    kind = "validation"

    def __init__(self, message: str, description: Optional[str] = None, level: str = "error"):
        super().__init__(message)
        self.message = message
        self.description = description
        self.level = level


class ValidationFailed(OperationError):
    kind = "validation"


class NotFound(OperationError):
    kind = "not_found"


class StoreFailed(OperationError):
    """The store rejected the call; description carries its message"""

    kind = "store"


@dataclass
class OperationResult:
    """
    Outcome of a calendar or staffing operation.

    error is one of: validation, not_found, store, unexpected, in_flight,
    cancelled. It is None when ok is True.
    """

    ok: bool
    value: Any = None
    message: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, value: Any = None, message: Optional[str] = None) -> "OperationResult":
        return cls(ok=True, value=value, message=message)

    @classmethod
    def failure(cls, error: str, message: str) -> "OperationResult":
        return cls(ok=False, message=message, error=error)


def operation(failure_message: str):
    """
    Decorator for service coroutines that never let an exception escape.

    OperationError becomes a notification plus a failed result of its kind;
    anything else is logged with its traceback and reported generically.
    The decorated method's instance must have a `notifier`.

    Example:
        @operation("Failed to delete event")
        async def delete_event(self, event_id): ...
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(self, *args, **kwargs):
            try:
                return await func(self, *args, **kwargs)
            except OperationError as e:
                notify = getattr(self.notifier, e.level, self.notifier.error)
                notify(e.message, e.description)
                return OperationResult.failure(e.kind, e.message)
            except Exception:
                logger.exception(f"❌ {failure_message}")
                self.notifier.error(failure_message, "An unexpected error occurred")
                return OperationResult.failure("unexpected", failure_message)

        return wrapper

    return decorator
