"""
In-process publish/subscribe channel for cross-view notifications

Views that need to react to staff placements subscribe to a topic instead of
being called directly by the staffing service.
"""

import asyncio
import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

STAFF_ASSIGNMENT_UPDATED = "staff-assignment-updated"


@dataclass(frozen=True)
class StaffAssignmentUpdated:
    """Payload for STAFF_ASSIGNMENT_UPDATED; resource_id is None after a removal"""

    date: str  # yyyy-MM-dd
    staff_id: str
    resource_id: Optional[str]


Handler = Callable[[Any], Any]


class MessageBus:
    def __init__(self):
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        """Register handler for topic; returns a callable that unsubscribes it"""
        self._handlers[topic].append(handler)

        def unsubscribe():
            if handler in self._handlers[topic]:
                self._handlers[topic].remove(handler)

        return unsubscribe

    def subscriber_count(self, topic: str) -> int:
        return len(self._handlers.get(topic, []))

    async def publish(self, topic: str, payload: Any) -> int:
        """
        Deliver payload to every subscriber of topic.

        Sync and async handlers are both supported. A failing handler is
        logged and does not stop delivery to the rest.

        Returns:
            Number of handlers that ran without raising
        """
        delivered = 0
        for handler in list(self._handlers.get(topic, [])):
            try:
                result = handler(payload)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(f"❌ Subscriber for {topic} failed")
        logger.debug(f"📣 Published {topic} to {delivered} subscriber(s)")
        return delivered
