"""Calendar repository - store operations for calendar events"""

from typing import Any

from ...store import RemoteStore
from .resources import normalize_to_db_id
from .schemas import CalendarEvent

EVENTS_TABLE = "calendar_events"
CLEANUP_EVENTS_PROCEDURE = "cleanup_duplicate_calendar_events"


class CalendarRepository:
    """Repository for calendar event store operations"""

    def __init__(self, store: RemoteStore):
        self.store = store

    async def list_events(self) -> list[CalendarEvent]:
        rows = await self.store.select(EVENTS_TABLE, order="start_time")
        return [CalendarEvent.from_row(row) for row in rows]

    async def insert_event(self, event: CalendarEvent) -> list[dict]:
        return await self.store.insert(EVENTS_TABLE, event.to_row())

    async def update_event(self, event: CalendarEvent) -> list[dict]:
        values = event.to_row()
        event_id = values.pop("id")
        return await self.store.update(EVENTS_TABLE, values, {"id": event_id})

    async def delete_event(self, event_id: str) -> list[dict]:
        return await self.store.delete(EVENTS_TABLE, {"id": event_id})

    async def move_events_of_type(self, event_type: str, team_id: str) -> list[dict]:
        return await self.store.update(
            EVENTS_TABLE,
            {"resource_id": normalize_to_db_id(team_id)},
            {"event_type": event_type},
        )

    async def booking_event_pairs(self) -> list[tuple[str, str]]:
        """(booking_id, event_type) for every event linked to a booking"""
        rows = await self.store.select(EVENTS_TABLE)
        return [(row["booking_id"], row["event_type"]) for row in rows if row.get("booking_id")]

    async def cleanup_duplicates(self) -> Any:
        return await self.store.rpc(CLEANUP_EVENTS_PROCEDURE)
