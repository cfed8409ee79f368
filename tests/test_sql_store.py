"""
Integration tests for the SQL store on an in-memory SQLite database
"""

import threading

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from eventflow.database import Base
from eventflow.domain.calendar.repository import CalendarRepository
from eventflow.domain.calendar.schemas import CalendarEvent
from eventflow.domain.staffing.repository import StaffAssignmentRepository
from eventflow.domain.staffing.schemas import StaffMemberCreate
from eventflow.domain.staffing.service import StaffDirectoryService
from eventflow.notifications import Notifier
from eventflow.store import SqlStore, StoreError


@pytest.fixture
def sql_store():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield SqlStore(session_factory)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


def event(id, start, end, resource_id="team-1", event_type="event", booking_id=None):
    return CalendarEvent(
        id=id,
        title=f"Booking {id}",
        start=start,
        end=end,
        resource_id=resource_id,
        event_type=event_type,
        booking_id=booking_id,
    )


class TestTableOperations:
    """Tests for select / insert / update / delete."""

    @pytest.mark.asyncio
    async def test_insert_and_select_round_trip(self, sql_store):
        repo = CalendarRepository(sql_store)
        await repo.insert_event(event("ev-2", "2025-01-15T12:00:00Z", "2025-01-15T13:00:00Z", "team-2"))
        await repo.insert_event(event("ev-1", "2025-01-15T08:00:00Z", "2025-01-15T09:30:00Z", "team-1"))

        events = await repo.list_events()

        assert [e.id for e in events] == ["ev-1", "ev-2"]
        assert events[0].resource_id == "team-1"
        assert events[0].duration.total_seconds() == 90 * 60
        rows = await sql_store.select("calendar_events", {"id": "ev-2"})
        assert rows[0]["resource_id"] == "b"
        assert rows[0]["start_time"].endswith("+00:00")

    @pytest.mark.asyncio
    async def test_update_and_delete(self, sql_store):
        repo = CalendarRepository(sql_store)
        original = event("ev-1", "2025-01-15T08:00:00Z", "2025-01-15T09:00:00Z")
        await repo.insert_event(original)

        moved = original.model_copy(update={"resource_id": "team-3", "title": "Moved"})
        rows = await repo.update_event(moved)
        assert rows[0]["resource_id"] == "c"
        assert rows[0]["title"] == "Moved"

        removed = await repo.delete_event("ev-1")
        assert [r["id"] for r in removed] == ["ev-1"]
        assert await repo.list_events() == []

    @pytest.mark.asyncio
    async def test_move_events_of_type(self, sql_store):
        repo = CalendarRepository(sql_store)
        await repo.insert_event(event("r1", "2025-01-15T08:00:00Z", "2025-01-15T09:00:00Z", event_type="rig"))
        await repo.insert_event(event("r2", "2025-01-16T08:00:00Z", "2025-01-16T09:00:00Z", event_type="rig"))
        await repo.insert_event(event("e1", "2025-01-15T10:00:00Z", "2025-01-15T11:00:00Z"))

        moved = await repo.move_events_of_type("rig", "team-5")

        assert len(moved) == 2
        assert {e.id: e.resource_id for e in await repo.list_events()} == {
            "r1": "team-5",
            "r2": "team-5",
            "e1": "team-1",
        }

    @pytest.mark.asyncio
    async def test_unknown_table_and_column(self, sql_store):
        with pytest.raises(StoreError) as exc_info:
            await sql_store.select("bookings")
        assert exc_info.value.status_code == 404

        with pytest.raises(StoreError) as exc_info:
            await sql_store.select("calendar_events", {"colour": "red"})
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_constraint_violation_becomes_store_error(self, sql_store):
        with pytest.raises(StoreError):
            await sql_store.insert("calendar_events", {"id": "x", "title": None})


class TestProcedures:
    """Tests for the cleanup procedures and the roster function."""

    @pytest.mark.asyncio
    async def test_cleanup_duplicate_calendar_events_keeps_oldest(self, sql_store):
        base = {"end_time": "2025-01-15T10:00:00Z", "start_time": "2025-01-15T09:00:00Z", "resource_id": "a"}
        await sql_store.insert(
            "calendar_events",
            [
                {**base, "id": "keep", "title": "A", "booking_id": "bk-1", "event_type": "rig",
                 "created_at": "2025-01-01T00:00:00Z"},
                {**base, "id": "dup-1", "title": "A", "booking_id": "bk-1", "event_type": "rig",
                 "created_at": "2025-01-02T00:00:00Z"},
                {**base, "id": "dup-2", "title": "A", "booking_id": "bk-1", "event_type": "rig",
                 "created_at": "2025-01-03T00:00:00Z"},
                {**base, "id": "other", "title": "B", "booking_id": "bk-1", "event_type": "event",
                 "created_at": "2025-01-02T00:00:00Z"},
            ],
        )

        result = await sql_store.rpc("cleanup_duplicate_calendar_events")

        assert result == [{"booking_id": "bk-1", "event_type": "rig", "duplicates_removed": 2}]
        remaining = {row["id"] for row in await sql_store.select("calendar_events")}
        assert remaining == {"keep", "other"}

    @pytest.mark.asyncio
    async def test_cleanup_duplicate_staff_assignments_keeps_latest(self, sql_store):
        await sql_store.insert(
            "staff_assignments",
            [
                {"id": "old", "staff_id": "staff-1", "team_id": "team-1", "assignment_date": "2025-01-15",
                 "updated_at": "2025-01-10T00:00:00Z"},
                {"id": "new", "staff_id": "staff-1", "team_id": "team-2", "assignment_date": "2025-01-15",
                 "updated_at": "2025-01-12T00:00:00Z"},
                {"id": "next-day", "staff_id": "staff-1", "team_id": "team-1", "assignment_date": "2025-01-16",
                 "updated_at": "2025-01-10T00:00:00Z"},
            ],
        )

        result = await sql_store.rpc("cleanup_duplicate_staff_assignments")

        assert result == [{"staff_id": "staff-1", "assignment_date": "2025-01-15", "duplicates_removed": 1}]
        rows = await sql_store.select("staff_assignments", {"assignment_date": "2025-01-15"})
        assert [(r["id"], r["team_id"]) for r in rows] == [("new", "team-2")]

    @pytest.mark.asyncio
    async def test_upsert_never_duplicates(self, sql_store):
        repo = StaffAssignmentRepository(sql_store)
        await repo.upsert_assignment("staff-1", "team-1", "2025-01-15")
        await repo.upsert_assignment("staff-1", "b", "2025-01-15")

        rows = await repo.assignments_for_date("2025-01-15")
        assert [(r["staff_id"], r["team_id"]) for r in rows] == [("staff-1", "team-2")]

    @pytest.mark.asyncio
    async def test_roster_function(self, sql_store):
        await sql_store.insert("staff_members", [{"id": "s2", "name": "Zed"}, {"id": "s1", "name": "Ana"}])

        roster = await StaffAssignmentRepository(sql_store).fetch_roster("2025-01-15")

        assert roster == {"date": "2025-01-15", "staff": [{"id": "s1", "name": "Ana"}, {"id": "s2", "name": "Zed"}]}

    @pytest.mark.asyncio
    async def test_unknown_procedure(self, sql_store):
        with pytest.raises(StoreError) as exc_info:
            await sql_store.rpc("drop_everything")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_roster_includes_members_added_through_directory(self, sql_store):
        directory = StaffDirectoryService(sql_store, Notifier())
        result = await directory.add_member(StaffMemberCreate(id="s1", name="Ana", phone="555-0100"))
        assert result.ok
        assert result.value.phone == "555-0100"

        roster = await StaffAssignmentRepository(sql_store).fetch_roster("2025-01-15")

        assert roster["staff"] == [{"id": "s1", "name": "Ana"}]


class TestThreading:
    """Session work stays off the event loop thread."""

    @pytest.mark.asyncio
    async def test_session_work_runs_in_worker_thread(self, sql_store):
        loop_thread = threading.get_ident()

        worker_thread = await sql_store._run("select", lambda db: threading.get_ident())

        assert worker_thread != loop_thread
