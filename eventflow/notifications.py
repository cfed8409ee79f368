"""
User-facing notifications

Every calendar and staffing operation reports its outcome through a Notifier:
success, error, warning, info, or a loading notice that a later success or
error replaces. Mutation endpoints drain the request's Notifier into the
"notifications" field of their response; everything is logged as well.
"""

import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "loading": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_PREFIX = {
    "success": "✅",
    "info": "ℹ️",
    "loading": "⏳",
    "warning": "⚠️",
    "error": "❌",
}


@dataclass
class Notification:
    id: int
    kind: str
    message: str
    description: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Notifier:
    """Records notifications in order; a loading handle is replaced in place"""

    def __init__(self):
        self._ids = itertools.count(1)
        self._notifications: dict[int, Notification] = {}
        self._last_id: Optional[int] = None

    def _emit(
        self, kind: str, message: str, description: Optional[str] = None, id: Optional[int] = None
    ) -> int:
        notification_id = id if id is not None else next(self._ids)
        self._notifications[notification_id] = Notification(
            id=notification_id, kind=kind, message=message, description=description
        )
        self._last_id = notification_id
        text = f"{_PREFIX[kind]} {message}"
        if description:
            text = f"{text} - {description}"
        logger.log(_LOG_LEVELS[kind], text)
        return notification_id

    def success(self, message: str, description: Optional[str] = None, id: Optional[int] = None) -> int:
        return self._emit("success", message, description, id)

    def error(self, message: str, description: Optional[str] = None, id: Optional[int] = None) -> int:
        return self._emit("error", message, description, id)

    def warning(self, message: str, description: Optional[str] = None, id: Optional[int] = None) -> int:
        return self._emit("warning", message, description, id)

    def info(self, message: str, description: Optional[str] = None, id: Optional[int] = None) -> int:
        return self._emit("info", message, description, id)

    def loading(self, message: str, description: Optional[str] = None) -> int:
        return self._emit("loading", message, description)

    @property
    def notifications(self) -> list[Notification]:
        return list(self._notifications.values())

    def last(self) -> Optional[Notification]:
        if self._last_id is None:
            return None
        return self._notifications.get(self._last_id)

    def drain(self) -> list[Notification]:
        """Return and forget everything recorded so far"""
        drained = self.notifications
        self._notifications.clear()
        self._last_id = None
        return drained
