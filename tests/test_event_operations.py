"""
Unit tests for calendar event mutations
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from conftest import FakeStore, event_row
from eventflow.domain.calendar.schemas import EventChangeRequest, EventCreate, EventUpdate
from eventflow.domain.calendar.service import EventOperations
from eventflow.store import StoreError

EVENTS = "calendar_events"


@pytest.fixture
def seeded_store():
    return FakeStore(
        {
            EVENTS: [
                event_row("ev-1", "2025-01-15T09:00:00+00:00", "2025-01-15T10:30:00+00:00", "a", "rig"),
                event_row("ev-2", "2025-01-15T12:00:00+00:00", "2025-01-15T14:00:00+00:00", "b", "event"),
            ]
        }
    )


@pytest_asyncio.fixture
async def ops(seeded_store, notifier):
    operations = EventOperations(seeded_store, notifier)
    await operations.reload()
    return operations


def ids(operations):
    return [e.id for e in operations.state.events]


class TestCalendarState:
    """Tests for the whole-list state holder."""

    @pytest.mark.asyncio
    async def test_snapshot_survives_replace(self, ops):
        before = ops.state.snapshot()
        ops.state.replace([])
        assert [e.id for e in before] == ["ev-1", "ev-2"]
        assert ops.state.events == []

    @pytest.mark.asyncio
    async def test_events_returns_copy(self, ops):
        ops.state.events.clear()
        assert len(ops.state.events) == 2


class TestCreateEvent:
    """Tests for create_event."""

    @pytest.mark.asyncio
    async def test_auto_picks_free_team(self, ops, seeded_store, notifier):
        data = EventCreate(
            title="New",
            start="2025-01-15T09:30:00Z",
            end="2025-01-15T10:00:00Z",
            resourceId="auto",
        )
        result = await ops.create_event(data)

        assert result.ok
        assert result.value.resource_id == "team-2"
        assert result.value.event_type == "event"
        stored = seeded_store.tables[EVENTS][-1]
        assert stored["resource_id"] == "b"
        assert notifier.last().kind == "success"
        assert result.value.id in ids(ops)

    @pytest.mark.asyncio
    async def test_explicit_team_stored_as_letter(self, ops, seeded_store):
        data = EventCreate(
            title="New",
            start="2025-01-16T09:00:00Z",
            end="2025-01-16T10:00:00Z",
            resourceId="team-4",
            eventType="rigDown",
        )
        result = await ops.create_event(data)

        assert result.ok
        assert seeded_store.tables[EVENTS][-1]["resource_id"] == "d"
        assert seeded_store.tables[EVENTS][-1]["event_type"] == "rigDown"

    @pytest.mark.asyncio
    async def test_end_before_start_rejected_without_store_call(self, ops, seeded_store, notifier):
        calls_before = len(seeded_store.calls)
        data = EventCreate(title="Bad", start="2025-01-15T11:00:00Z", end="2025-01-15T10:00:00Z")
        result = await ops.create_event(data)

        assert not result.ok
        assert result.error == "validation"
        assert result.message == "End time must be after start time"
        assert len(seeded_store.calls) == calls_before
        assert notifier.last().kind == "error"

    @pytest.mark.asyncio
    async def test_store_failure_reverts(self, ops, seeded_store, notifier):
        seeded_store.fail_on["insert"] = StoreError("insert denied", 403)
        data = EventCreate(title="New", start="2025-01-16T09:00:00Z", end="2025-01-16T10:00:00Z")
        result = await ops.create_event(data)

        assert not result.ok
        assert result.error == "store"
        assert ids(ops) == ["ev-1", "ev-2"]
        assert notifier.last().description == "insert denied"


class TestUpdateEvent:
    """Tests for update_event."""

    @pytest.mark.asyncio
    async def test_updates_title(self, ops, seeded_store):
        result = await ops.update_event("ev-2", EventUpdate(title="Renamed"))

        assert result.ok
        assert seeded_store.tables[EVENTS][1]["title"] == "Renamed"
        assert ops.state.get("ev-2").title == "Renamed"

    @pytest.mark.asyncio
    async def test_failure_restores_previous_values(self, ops, seeded_store):
        seeded_store.fail_on["update"] = StoreError("conflict")
        result = await ops.update_event("ev-2", EventUpdate(title="Renamed"))

        assert not result.ok
        assert ops.state.get("ev-2").title == "Booking"

    @pytest.mark.asyncio
    async def test_unknown_event(self, ops):
        result = await ops.update_event("missing", EventUpdate(title="x"))
        assert result.error == "not_found"


class TestDeleteEvent:
    """Tests for delete_event under both failure policies."""

    @pytest.mark.asyncio
    async def test_delete(self, ops, seeded_store, notifier):
        result = await ops.delete_event("ev-1")

        assert result.ok
        assert ids(ops) == ["ev-2"]
        assert [row["id"] for row in seeded_store.tables[EVENTS]] == ["ev-2"]
        assert notifier.last().message == "Event deleted"

    @pytest.mark.asyncio
    async def test_failed_delete_restores_event(self, ops, seeded_store, notifier):
        seeded_store.fail_on["delete"] = StoreError("permission denied")
        result = await ops.delete_event("ev-1")

        assert not result.ok
        assert ids(ops) == ["ev-1", "ev-2"]
        assert notifier.last().kind == "error"
        assert notifier.last().description == "permission denied"

    @pytest.mark.asyncio
    async def test_failed_delete_without_rollback_stays_removed(self, seeded_store, notifier):
        operations = EventOperations(seeded_store, notifier, rollback_deletes=False)
        await operations.reload()
        seeded_store.fail_on["delete"] = StoreError("permission denied")

        result = await operations.delete_event("ev-1")

        assert not result.ok
        assert ids(operations) == ["ev-2"]
        assert notifier.last().kind == "error"

    @pytest.mark.asyncio
    async def test_confirm_delete_uses_open_dialog(self, ops):
        dialog = ops.open_dialog("delete", "ev-2")
        assert dialog.title == "Booking"

        result = await ops.confirm_delete()

        assert result.ok
        assert ids(ops) == ["ev-1"]
        assert ops.dialog is None

    @pytest.mark.asyncio
    async def test_confirm_delete_without_dialog(self, ops):
        result = await ops.confirm_delete()
        assert result.error == "validation"


class TestDuplicateEvent:
    """Tests for duplicate_event."""

    @pytest.mark.asyncio
    async def test_keeps_duration_on_new_anchor(self, ops, seeded_store):
        result = await ops.duplicate_event("ev-1", "2025-01-16T14:00:00Z", "team-3")

        assert result.ok
        copy = result.value
        assert copy.id != "ev-1"
        assert copy.start == datetime(2025, 1, 16, 14, 0, tzinfo=timezone.utc)
        assert copy.end == datetime(2025, 1, 16, 15, 30, tzinfo=timezone.utc)
        assert copy.duration == timedelta(minutes=90)
        assert copy.event_type == "rig"
        assert seeded_store.tables[EVENTS][-1]["resource_id"] == "c"

    @pytest.mark.asyncio
    async def test_same_team_same_start_rejected(self, ops, seeded_store, notifier):
        result = await ops.duplicate_event("ev-1", None, "team-1")

        assert not result.ok
        assert result.error == "validation"
        assert seeded_store.count("insert") == 0
        assert notifier.last().kind == "warning"

    @pytest.mark.asyncio
    async def test_same_team_other_start_allowed(self, ops):
        result = await ops.duplicate_event("ev-1", "2025-01-15T15:00:00Z", "team-1")
        assert result.ok
        assert result.value.resource_id == "team-1"

    @pytest.mark.asyncio
    async def test_auto_target_picks_free_team(self, ops):
        result = await ops.duplicate_event("ev-1", None, "auto")

        assert result.ok
        assert result.value.resource_id == "team-2"

    @pytest.mark.asyncio
    async def test_success_message_names_team(self, ops, notifier):
        await ops.duplicate_event("ev-1", None, "team-11")
        assert notifier.last().description == "Event was duplicated to Live"


class TestEventChange:
    """Tests for drag/resize persistence."""

    @pytest.mark.asyncio
    async def test_change_moves_event(self, ops, seeded_store):
        change = EventChangeRequest(
            eventId="ev-2",
            start="2025-01-15T13:00:00Z",
            end="2025-01-15T15:00:00Z",
            resourceIds=["team-3"],
        )
        result = await ops.handle_event_change(change)

        assert result.ok
        row = seeded_store.tables[EVENTS][1]
        assert row["resource_id"] == "c"
        assert row["start_time"].startswith("2025-01-15T13:00:00")

    @pytest.mark.asyncio
    async def test_falls_back_to_new_resource_id(self, ops):
        change = EventChangeRequest(
            eventId="ev-2",
            start="2025-01-15T13:00:00Z",
            end="2025-01-15T15:00:00Z",
            newResourceId="team-5",
        )
        result = await ops.handle_event_change(change)
        assert result.value.resource_id == "team-5"

    @pytest.mark.asyncio
    async def test_missing_resource_is_rejected(self, ops, seeded_store, notifier):
        change = EventChangeRequest(eventId="ev-2", start="2025-01-15T13:00:00Z", end="2025-01-15T15:00:00Z")
        result = await ops.handle_event_change(change)

        assert not result.ok
        assert result.message == "Could not determine the team for this event"
        assert seeded_store.count("update") == 0
        assert ops.state.get("ev-2").resource_id == "team-2"

    @pytest.mark.asyncio
    async def test_receive_reports_new_day(self, ops, notifier):
        change = EventChangeRequest(
            eventId="ev-1",
            start="2025-01-17T09:00:00Z",
            end="2025-01-17T10:30:00Z",
            extendedResourceId="team-2",
        )
        result = await ops.handle_event_receive(change)

        assert result.ok
        assert notifier.last().message == "Event moved to new day"
        assert "2025-01-17" in notifier.last().description


class TestBulkAndMaintenance:
    """Tests for moving events and duplicate cleanup."""

    @pytest.mark.asyncio
    async def test_move_events_to_team(self, ops, seeded_store):
        result = await ops.move_events_to_team("rig", "team-5")

        assert result.ok
        assert result.value == 1
        assert seeded_store.tables[EVENTS][0]["resource_id"] == "e"
        assert ops.state.get("ev-1").resource_id == "team-5"

    @pytest.mark.asyncio
    async def test_duplicate_stats(self, notifier):
        store = FakeStore(
            {
                EVENTS: [
                    event_row("1", "2025-01-15T09:00:00Z", "2025-01-15T10:00:00Z", booking_id="bk-1"),
                    event_row("2", "2025-01-15T09:00:00Z", "2025-01-15T10:00:00Z", booking_id="bk-1"),
                    event_row("3", "2025-01-15T09:00:00Z", "2025-01-15T10:00:00Z", booking_id="bk-1"),
                    event_row("4", "2025-01-15T09:00:00Z", "2025-01-15T10:00:00Z", booking_id="bk-2"),
                ]
            }
        )
        stats = await EventOperations(store, notifier).duplicate_stats()

        assert stats["totalDuplicates"] == 2
        assert stats["duplicatesByBooking"] == [{"booking_id": "bk-1", "event_type": "event", "count": 3}]

    @pytest.mark.asyncio
    async def test_cleanup_sums_removed(self, ops, seeded_store, notifier):
        seeded_store.rpc_results["cleanup_duplicate_calendar_events"] = [
            {"booking_id": "bk-1", "event_type": "rig", "duplicates_removed": 2},
            {"booking_id": "bk-2", "event_type": "event", "duplicates_removed": 1},
        ]
        result = await ops.cleanup_duplicate_events()

        assert result.value == 3
        assert notifier.last().kind == "success"

    @pytest.mark.asyncio
    async def test_cleanup_with_nothing_to_remove(self, ops, notifier):
        result = await ops.cleanup_duplicate_events()

        assert result.value == 0
        assert notifier.last().message == "No duplicate events found"


class TestErrorBoundary:
    """Tests for refresh and unexpected failures."""

    @pytest.mark.asyncio
    async def test_refresh_failure_does_not_fail_operation(self, seeded_store, notifier):
        refresh = AsyncMock(side_effect=RuntimeError("refresh down"))
        operations = EventOperations(seeded_store, notifier, refresh=refresh)
        await operations.reload()

        result = await operations.update_event("ev-1", EventUpdate(title="Renamed"))

        assert result.ok
        refresh.assert_awaited_once()
        assert notifier.last().kind == "success"

    @pytest.mark.asyncio
    async def test_unexpected_error_reverts_and_reports(self, ops, seeded_store, notifier):
        seeded_store.fail_on["delete"] = RuntimeError("socket closed")
        result = await ops.delete_event("ev-1")

        assert not result.ok
        assert result.error == "unexpected"
        assert ids(ops) == ["ev-1", "ev-2"]
        assert notifier.last().description == "An unexpected error occurred"
