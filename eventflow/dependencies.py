"""Process-wide collaborators and the FastAPI dependencies that hand them out"""

import logging
from typing import Optional, Sequence

from fastapi import Request

from . import config
from .bus import MessageBus
from .cache import MemoryCache
from .domain.calendar.resources import Resource, TeamDirectory
from .domain.calendar.service import CalendarState, EventOperations
from .domain.staffing.in_flight import InFlightRegistry
from .domain.staffing.service import DeduplicationMaintenance, StaffAssignmentService, StaffDirectoryService
from .notifications import Notifier
from .store import RemoteStore

logger = logging.getLogger(__name__)


class AppContext:
    """
    Everything shared between requests: the store, the cached calendar list,
    the staff in-flight registry, the cache and the message bus.

    Services are handed out per request with a fresh Notifier so that the
    notifications of one request never leak into another's response log.
    """

    def __init__(
        self,
        store: RemoteStore,
        bus: Optional[MessageBus] = None,
        cache=None,
        resources: Optional[Sequence[Resource]] = None,
        rollback_deletes: bool = config.ROLLBACK_DELETES,
        dedup_delay: float = config.DEDUP_DELAY_SECONDS,
    ):
        self.store = store
        self.bus = bus or MessageBus()
        self.cache = cache if cache is not None else MemoryCache()
        self.teams = TeamDirectory(resources)
        self.rollback_deletes = rollback_deletes
        self.calendar_state = CalendarState()
        self.in_flight = InFlightRegistry()
        self.staffing = StaffAssignmentService(
            store, self.bus, Notifier(), in_flight=self.in_flight, cache=self.cache
        )
        self.dedup = DeduplicationMaintenance(store, delay=dedup_delay)

    @property
    def resources(self) -> list[Resource]:
        return self.teams.all()

    def event_operations(self, notifier: Notifier) -> EventOperations:
        return EventOperations(
            self.store,
            notifier,
            state=self.calendar_state,
            resources=self.resources,
            rollback_deletes=self.rollback_deletes,
        )

    def staff_service(self, notifier: Notifier) -> StaffAssignmentService:
        return self.staffing.bound(notifier)

    def staff_directory(self, notifier: Notifier) -> StaffDirectoryService:
        return StaffDirectoryService(self.store, notifier, cache=self.cache)

    async def close(self) -> None:
        await self.dedup.stop()
        await self.in_flight.cancel_all()
        await self.store.close()
        logger.info("🛑 Application context closed")


def get_context(request: Request) -> AppContext:
    """Dependency: the AppContext created at startup"""
    return request.app.state.context


def get_notifier() -> Notifier:
    """Dependency: a Notifier scoped to one request"""
    return Notifier()
