"""Calendar service - event mutations with optimistic local state"""

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional, Sequence, Union

from ...notifications import Notifier
from ...shared.validators import parse_datetime, validate_time_range
from ...store import RemoteStore, StoreError
from ..operations import NotFound, OperationResult, ValidationFailed, operation
from .load_balancer import find_first_available_team
from .repository import CalendarRepository
from .resources import Resource, default_resources, normalize_to_frontend_id, resource_title
from .schemas import CalendarEvent, EventChangeRequest, EventCreate, EventUpdate, generate_event_id

logger = logging.getLogger(__name__)

AUTO_RESOURCE = "auto"

RefreshCallback = Callable[[], Awaitable[None]]


class CalendarState:
    """
    Locally cached copy of the calendar events.

    The list is never edited in place: every change installs a new list, so a
    snapshot taken before a mutation stays valid for restoring it.
    """

    def __init__(self, events: Optional[Sequence[CalendarEvent]] = None):
        self._events: tuple[CalendarEvent, ...] = tuple(events or ())

    @property
    def events(self) -> list[CalendarEvent]:
        return list(self._events)

    def snapshot(self) -> tuple[CalendarEvent, ...]:
        return self._events

    def replace(self, events: Sequence[CalendarEvent]) -> None:
        self._events = tuple(events)

    def get(self, event_id: str) -> Optional[CalendarEvent]:
        return next((e for e in self._events if e.id == event_id), None)


@dataclass
class DialogState:
    kind: str  # "delete" | "duplicate" | "edit"
    event_id: str
    title: str


class EventOperations:
    """
    Create / update / delete / duplicate calendar events.

    Every mutation snapshots the local state, applies the change locally,
    calls the store, and on failure restores the snapshot and reports the
    store's message. On success the refresh callback re-reads server truth,
    any open dialog is closed and a success notification is shown.

    Deletes follow the same pattern unless rollback_deletes is False, in which
    case a failed delete leaves the event removed locally.
    """

    def __init__(
        self,
        store: RemoteStore,
        notifier: Notifier,
        state: Optional[CalendarState] = None,
        resources: Optional[Sequence[Resource]] = None,
        refresh: Optional[RefreshCallback] = None,
        rollback_deletes: bool = True,
    ):
        self.repo = CalendarRepository(store)
        self.notifier = notifier
        self.state = state or CalendarState()
        self.resources = list(resources) if resources is not None else default_resources()
        self.refresh = refresh or self.reload
        self.rollback_deletes = rollback_deletes
        self.dialog: Optional[DialogState] = None

    async def reload(self) -> None:
        """Replace the local state with what the store holds"""
        self.state.replace(await self.repo.list_events())

    # Dialog state

    def open_dialog(self, kind: str, event_id: str) -> Optional[DialogState]:
        event = self.state.get(event_id)
        if event is None:
            logger.warning(f"⚠️ Cannot open {kind} dialog, event {event_id} not found")
            return None
        self.dialog = DialogState(kind=kind, event_id=event.id, title=event.title)
        return self.dialog

    def close_dialog(self) -> None:
        self.dialog = None

    async def confirm_delete(self) -> OperationResult:
        """Delete the event the open delete dialog points at"""
        if self.dialog is None or self.dialog.kind != "delete":
            return OperationResult.failure("validation", "No delete pending")
        result = await self.delete_event(self.dialog.event_id)
        self.close_dialog()
        return result

    # Helpers

    def _require(self, event_id: str) -> CalendarEvent:
        event = self.state.get(event_id)
        if event is None:
            raise NotFound("Event not found", f"No event with id {event_id}")
        return event

    @staticmethod
    def _check_range(start: datetime, end: datetime) -> None:
        error = validate_time_range(start, end)
        if error:
            raise ValidationFailed(error)

    def _title(self, resource_id: str) -> str:
        return resource_title(resource_id, self.resources)

    async def _mutate(
        self,
        apply: Callable[[list[CalendarEvent]], list[CalendarEvent]],
        remote: Callable[[], Awaitable],
        success: str,
        failure: str,
        description: Optional[str] = None,
        value=None,
        rollback: bool = True,
    ) -> OperationResult:
        snapshot = self.state.snapshot()
        self.state.replace(apply(list(snapshot)))

        try:
            remote_result = await remote()
        except StoreError as e:
            if rollback:
                self.state.replace(snapshot)
            self.notifier.error(failure, e.message)
            return OperationResult.failure("store", e.message)
        except Exception:
            logger.exception(f"❌ {failure}")
            if rollback:
                self.state.replace(snapshot)
            self.notifier.error(failure, "An unexpected error occurred")
            return OperationResult.failure("unexpected", failure)

        try:
            await self.refresh()
        except Exception as e:
            # The mutation itself went through; the next refresh converges
            logger.warning(f"⚠️ Refresh after '{success}' failed: {e}")

        self.close_dialog()
        self.notifier.success(success, description)
        return OperationResult.success(remote_result if value is None else value, success)

    async def _create(self, event: CalendarEvent, success: str, failure: str, description=None):
        return await self._mutate(
            apply=lambda events: events + [event],
            remote=lambda: self.repo.insert_event(event),
            success=success,
            failure=failure,
            description=description,
            value=event,
        )

    # Operations

    @operation("Failed to add event")
    async def create_event(self, data: EventCreate) -> OperationResult:
        start, end = parse_datetime(data.start), parse_datetime(data.end)
        self._check_range(start, end)

        resource_id = data.resourceId
        if not resource_id or resource_id == AUTO_RESOURCE:
            resource_id = find_first_available_team(start, end, self.state.events, self.resources)

        event = CalendarEvent(
            id=data.id or generate_event_id(),
            title=data.title,
            start=start,
            end=end,
            resource_id=normalize_to_frontend_id(resource_id),
            event_type=data.eventType or "event",
            delivery_address=data.deliveryAddress,
            booking_id=data.bookingId,
            booking_number=data.bookingNumber,
        )
        logger.info(f"📥 Creating event {event.id} in {event.resource_id}")
        return await self._create(event, "Event added successfully", "Failed to add event to database")

    @operation("Failed to update event")
    async def update_event(self, event_id: str, changes: EventUpdate) -> OperationResult:
        current = self._require(event_id)

        updates = {}
        if changes.title is not None:
            updates["title"] = changes.title
        if changes.start is not None:
            updates["start"] = parse_datetime(changes.start)
        if changes.end is not None:
            updates["end"] = parse_datetime(changes.end)
        if changes.resourceId is not None:
            updates["resource_id"] = normalize_to_frontend_id(changes.resourceId)
        if changes.eventType is not None:
            updates["event_type"] = changes.eventType
        if changes.deliveryAddress is not None:
            updates["delivery_address"] = changes.deliveryAddress
        if changes.bookingId is not None:
            updates["booking_id"] = changes.bookingId
        if changes.bookingNumber is not None:
            updates["booking_number"] = changes.bookingNumber

        updated = current.model_copy(update=updates)
        self._check_range(updated.start, updated.end)
        return await self._replace_event(updated, "Event updated", "Failed to update event")

    async def _replace_event(self, updated: CalendarEvent, success: str, failure: str, description=None):
        return await self._mutate(
            apply=lambda events: [updated if e.id == updated.id else e for e in events],
            remote=lambda: self.repo.update_event(updated),
            success=success,
            failure=failure,
            description=description,
            value=updated,
        )

    @operation("Failed to delete event")
    async def delete_event(self, event_id: str) -> OperationResult:
        event = self._require(event_id)
        logger.info(f"🗑️ Deleting event {event_id}")
        return await self._mutate(
            apply=lambda events: [e for e in events if e.id != event_id],
            remote=lambda: self.repo.delete_event(event_id),
            success="Event deleted",
            failure="Failed to delete event",
            description=event.title,
            value=event,
            rollback=self.rollback_deletes,
        )

    @operation("Failed to duplicate event")
    async def duplicate_event(
        self,
        event_id: str,
        new_start: Optional[Union[datetime, str]] = None,
        target_resource_id: Optional[str] = None,
    ) -> OperationResult:
        """
        Copy an event, keeping its duration.

        new_start anchors the copy (defaults to the original start). Without a
        target team, or with "auto", the first team free over the copy's
        interval is chosen.
        """
        original = self._require(event_id)
        start = parse_datetime(new_start) if new_start is not None else original.start
        end = start + original.duration

        if not target_resource_id or target_resource_id == AUTO_RESOURCE:
            target_resource_id = find_first_available_team(start, end, self.state.events, self.resources)
        target_resource_id = normalize_to_frontend_id(target_resource_id)

        if target_resource_id == original.resource_id and start == original.start:
            raise ValidationFailed(
                "Cannot duplicate to the same team",
                "Please select a different team or time for the duplicated event",
                level="warning",
            )

        copy = original.model_copy(
            update={"id": generate_event_id(), "start": start, "end": end, "resource_id": target_resource_id}
        )
        return await self._create(
            copy,
            "Event duplicated successfully",
            "Failed to duplicate event",
            description=f"Event was duplicated to {self._title(target_resource_id)}",
        )

    @operation("Failed to update event")
    async def handle_event_change(self, change: EventChangeRequest) -> OperationResult:
        """Persist a drag or resize within this calendar"""
        return await self._apply_change(change, received=False)

    @operation("Failed to update event")
    async def handle_event_receive(self, change: EventChangeRequest) -> OperationResult:
        """Persist an event dropped in from another calendar"""
        return await self._apply_change(change, received=True)

    async def _apply_change(self, change: EventChangeRequest, received: bool) -> OperationResult:
        resource_id = change.resolve_resource_id()
        if not resource_id:
            raise ValidationFailed("Could not determine the team for this event")

        current = self._require(change.eventId)
        start, end = parse_datetime(change.start), parse_datetime(change.end)
        self._check_range(start, end)

        updated = current.model_copy(
            update={"start": start, "end": end, "resource_id": normalize_to_frontend_id(resource_id)}
        )
        team = self._title(updated.resource_id)
        if received:
            success = "Event moved to new day"
            description = f"Event moved to {team} on {start:%Y-%m-%d} at {start:%H:%M}"
        else:
            success = "Event updated"
            description = f"Event moved to {team} at {start:%H:%M}"
        return await self._replace_event(updated, success, "Failed to update event", description)

    @operation("Failed to move events")
    async def move_events_to_team(self, event_type: str, target_team_id: str) -> OperationResult:
        """Reassign every event of one type to a single team"""
        target_team_id = normalize_to_frontend_id(target_team_id)
        moved = [e.id for e in self.state.events if e.event_type == event_type]

        def apply(events):
            return [
                e.model_copy(update={"resource_id": target_team_id}) if e.event_type == event_type else e
                for e in events
            ]

        result = await self._mutate(
            apply=apply,
            remote=lambda: self.repo.move_events_of_type(event_type, target_team_id),
            success="Events moved",
            failure="Failed to move events",
            description=f"{event_type} events moved to {self._title(target_team_id)}",
        )
        if result.ok:
            result.value = len(result.value) if isinstance(result.value, list) else len(moved)
        return result

    # Duplicate maintenance

    async def duplicate_stats(self) -> dict:
        """Count surplus events per (booking_id, event_type)"""
        counts = Counter(await self.repo.booking_event_pairs())
        groups = [
            {"booking_id": booking_id, "event_type": event_type, "count": count}
            for (booking_id, event_type), count in counts.items()
            if count > 1
        ]
        return {
            "totalDuplicates": sum(g["count"] - 1 for g in groups),
            "duplicatesByBooking": groups,
        }

    @operation("Failed to clean up duplicate events")
    async def cleanup_duplicate_events(self) -> OperationResult:
        try:
            data = await self.repo.cleanup_duplicates()
        except StoreError as e:
            self.notifier.error("Failed to clean up duplicate events", e.message)
            return OperationResult.failure("store", e.message)

        total_removed = sum(item.get("duplicates_removed", 0) for item in (data or []))
        if total_removed:
            self.notifier.success(f"Cleanup completed: {total_removed} duplicate events removed")
            await self.refresh()
        else:
            self.notifier.info("No duplicate events found")
        return OperationResult.success(total_removed)
