"""Staffing service - staff to team placement per day"""

import asyncio
import copy
import logging
import time
from collections import OrderedDict
from datetime import date
from typing import Optional, Sequence, Union

from ... import config
from ...bus import STAFF_ASSIGNMENT_UPDATED, MessageBus, StaffAssignmentUpdated
from ...cache import ROSTER_PREFIX, STAFF_NAMES_KEY, MemoryCache, assignments_key, roster_key
from ...notifications import Notifier
from ...shared.validators import format_date
from ...store import RemoteStore, StoreError
from ..calendar.resources import normalize_to_frontend_id, team_display_name
from ..operations import NotFound, OperationResult, StoreFailed, ValidationFailed, operation
from .in_flight import InFlightRegistry, RequestInFlight, RequestSuperseded
from .repository import StaffAssignmentRepository, StaffMemberRepository
from .schemas import StaffAssignment, StaffMember, StaffMemberCreate, StaffMemberUpdate

logger = logging.getLogger(__name__)

ASSIGNMENTS_CACHE_TTL = 60

DateLike = Union[str, date]


class StaffAssignmentService:
    """
    Assign and unassign staff for a date.

    Each staff id can have one request pending at a time; while it is pending
    is_in_flight() is True so callers can disable that staff member's
    controls, and a repeated call is refused without touching the store.
    Passing supersede=True cancels the pending request and sends the new one.

    The per-date assignment lists held here are updated optimistically and
    restored if the store call fails. Successful changes are announced on the
    message bus under STAFF_ASSIGNMENT_UPDATED.
    """

    def __init__(
        self,
        store: RemoteStore,
        bus: MessageBus,
        notifier: Notifier,
        in_flight: Optional[InFlightRegistry] = None,
        cache=None,
        roster_ttl: float = config.ROSTER_CACHE_TTL,
        max_dates: int = config.ASSIGNMENT_DATES_KEPT,
    ):
        self.repo = StaffAssignmentRepository(store)
        self.bus = bus
        self.notifier = notifier
        self.in_flight = in_flight or InFlightRegistry()
        self.cache = cache if cache is not None else MemoryCache()
        self.roster_ttl = roster_ttl
        self.max_dates = max_dates
        # Shared with bound() clones, so only ever mutated in place
        self._assignments: OrderedDict[str, tuple[StaffAssignment, ...]] = OrderedDict()

    def bound(self, notifier: Notifier) -> "StaffAssignmentService":
        """Same registry, cache and local lists, reporting to another notifier"""
        clone = copy.copy(self)
        clone.notifier = notifier
        return clone

    # Local state

    def is_in_flight(self, staff_id: str) -> bool:
        return self.in_flight.is_in_flight(staff_id)

    def assignments_for(self, day: DateLike) -> list[StaffAssignment]:
        return list(self._assignments.get(format_date(day), ()))

    @property
    def cached_dates(self) -> list[str]:
        return list(self._assignments)

    def _remember(self, date_str: str, assignments) -> None:
        """Store a date's list, dropping the least recently touched dates beyond max_dates"""
        self._assignments[date_str] = tuple(assignments)
        self._assignments.move_to_end(date_str)
        while len(self._assignments) > self.max_dates:
            evicted, _ = self._assignments.popitem(last=False)
            logger.debug(f"Dropped local staff assignments for {evicted}")

    @staticmethod
    def _date(day: DateLike) -> str:
        try:
            return format_date(day)
        except (TypeError, ValueError) as e:
            raise ValidationFailed("Invalid assignment date", str(e)) from e

    def _known_staff_name(self, staff_id: str, date_str: str) -> Optional[str]:
        """Name from the local list or the cached directory, without a store call"""
        for assignment in self._assignments.get(date_str, ()):
            if assignment.staff_id == staff_id:
                return assignment.staff_name
        return (self.cache.get(STAFF_NAMES_KEY) or {}).get(staff_id)

    async def _staff_names(self) -> dict[str, str]:
        names = self.cache.get(STAFF_NAMES_KEY)
        if names is None:
            names = await self.repo.staff_names()
            self.cache.set(STAFF_NAMES_KEY, names, self.roster_ttl)
        return names

    async def _lookup_staff_name(self, staff_id: str) -> str:
        try:
            name = (await self._staff_names()).get(staff_id)
        except StoreError as e:
            logger.warning(f"⚠️ Could not load staff names: {e.message}")
            name = None
        return name or f"Staff {staff_id}"

    # Reads

    async def fetch_assignments(self, day: DateLike, use_cache: bool = True) -> list[StaffAssignment]:
        """Load the assignments for a date from the store (or the cache)"""
        date_str = self._date(day)
        key = assignments_key(date_str)

        cached = self.cache.get(key) if use_cache else None
        if cached is not None:
            assignments = [StaffAssignment(**item) for item in cached]
        else:
            rows = await self.repo.assignments_for_date(date_str)
            names = await self._staff_names()
            assignments = [StaffAssignment.from_row(row, names) for row in rows]
            self.cache.set(key, [a.model_dump() for a in assignments], ASSIGNMENTS_CACHE_TTL)

        self._remember(date_str, assignments)
        return assignments

    async def assignments_for_period(self, staff_id: str, start: DateLike, end: DateLike) -> list[StaffAssignment]:
        """One staff member's assignments between two dates, inclusive"""
        start_str, end_str = self._date(start), self._date(end)
        if end_str < start_str:
            raise ValidationFailed("End date must not be before start date")
        rows = await self.repo.assignments_for_staff(staff_id, start_str, end_str)
        name = await self._lookup_staff_name(staff_id)
        return [StaffAssignment.from_row(row, {staff_id: name}) for row in rows]

    async def staff_for_team(self, team_id: str, day: DateLike) -> list[dict]:
        team_id = normalize_to_frontend_id(team_id)
        assignments = await self.fetch_assignments(day)
        return [{"id": a.staff_id, "name": a.staff_name} for a in assignments if a.team_id == team_id]

    async def fetch_staff_roster(self, day: DateLike) -> list[dict]:
        """Staff available for planning on a date, from the roster function"""
        date_str = self._date(day)
        key = roster_key(date_str)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        data = await self.repo.fetch_roster(date_str)
        staff = data.get("staff", []) if isinstance(data, dict) else (data or [])
        roster = [{"id": str(s["id"]), "name": s.get("name") or f"Staff {s['id']}"} for s in staff]
        self.cache.set(key, roster, self.roster_ttl)
        return roster

    async def staff_status_for_team(
        self, team_id: str, day: DateLike, staff: Optional[Sequence[dict]] = None
    ) -> list[dict]:
        """Each roster member's placement relative to team_id on the date"""
        team_id = normalize_to_frontend_id(team_id)
        roster = list(staff) if staff is not None else await self.fetch_staff_roster(day)
        placed = {a.staff_id: a.team_id for a in await self.fetch_assignments(day)}

        result = []
        for member in roster:
            assigned_team = placed.get(member["id"])
            if assigned_team is None:
                status = "free"
            elif assigned_team == team_id:
                status = "assigned_current_team"
            else:
                status = "assigned_other_team"
            result.append(
                {
                    "id": member["id"],
                    "name": member["name"],
                    "status": status,
                    "teamId": assigned_team,
                    "teamName": team_display_name(assigned_team) if assigned_team else None,
                }
            )
        return result

    # Mutations

    @operation("Failed to update staff assignment")
    async def assign(
        self, staff_id: str, team_id: str, day: DateLike, supersede: bool = False
    ) -> OperationResult:
        date_str = self._date(day)
        team_id = normalize_to_frontend_id(team_id)
        if not staff_id or not team_id:
            raise ValidationFailed("Staff and team are required")

        known_name = self._known_staff_name(staff_id, date_str)
        assignment = StaffAssignment(
            staff_id=staff_id,
            staff_name=known_name or f"Staff {staff_id}",
            team_id=team_id,
            date=date_str,
        )

        def apply(current):
            return [a for a in current if a.staff_id != staff_id] + [assignment]

        async def request():
            await self.repo.upsert_assignment(staff_id, team_id, date_str)
            if known_name is not None:
                return assignment
            # Name is looked up inside the pending request so the claim on staff_id comes first
            name = await self._lookup_staff_name(staff_id)
            return assignment.model_copy(update={"staff_name": name})

        return await self._reconcile(
            staff_id,
            date_str,
            apply,
            request,
            resource_id=team_id,
            pending="Assigning staff...",
            success=f"Staff assigned to {team_display_name(team_id)}",
            supersede=supersede,
        )

    @operation("Failed to remove staff assignment")
    async def unassign(self, staff_id: str, day: DateLike, supersede: bool = False) -> OperationResult:
        date_str = self._date(day)
        if not staff_id:
            raise ValidationFailed("Staff is required")

        return await self._reconcile(
            staff_id,
            date_str,
            lambda current: [a for a in current if a.staff_id != staff_id],
            lambda: self.repo.remove_assignment(staff_id, date_str),
            resource_id=None,
            pending="Removing staff...",
            success="Staff removed successfully",
            supersede=supersede,
        )

    async def _reconcile(
        self,
        staff_id: str,
        date_str: str,
        apply,
        request,
        resource_id: Optional[str],
        pending: str,
        success: str,
        supersede: bool,
    ) -> OperationResult:
        # Checked before anything awaits so an immediate second call sees the first
        if self.in_flight.is_in_flight(staff_id) and not supersede:
            logger.info(f"⏳ Request for staff {staff_id} already in progress, ignoring")
            return OperationResult.failure("in_flight", "A request for this staff member is already in progress")

        snapshot = self._assignments.get(date_str, ())
        self._remember(date_str, apply(list(snapshot)))
        handle = self.notifier.loading(pending)

        try:
            outcome = await self.in_flight.run(staff_id, request, supersede=supersede)
        except RequestInFlight as e:
            self._remember(date_str, snapshot)
            self.notifier.warning(str(e), id=handle)
            return OperationResult.failure("in_flight", str(e))
        except RequestSuperseded as e:
            # The newer request owns the local state now
            self.notifier.info("Previous request replaced", id=handle)
            return OperationResult.failure("cancelled", str(e))
        except StoreError as e:
            self._remember(date_str, snapshot)
            self.notifier.error("Failed to update staff assignment", e.message, id=handle)
            return OperationResult.failure("store", e.message)
        except asyncio.CancelledError:
            self._remember(date_str, snapshot)
            raise
        except Exception:
            logger.exception(f"❌ Staff operation for {staff_id} on {date_str} failed")
            self._remember(date_str, snapshot)
            self.notifier.error("Failed to update staff assignment", "An unexpected error occurred", id=handle)
            return OperationResult.failure("unexpected", "Failed to update staff assignment")

        value = None
        if isinstance(outcome, StaffAssignment):
            current = self._assignments.get(date_str, ())
            self._remember(date_str, [outcome if a.staff_id == staff_id else a for a in current])
            value = outcome

        self.cache.delete(assignments_key(date_str))
        self.notifier.success(success, id=handle)
        await self.bus.publish(
            STAFF_ASSIGNMENT_UPDATED,
            StaffAssignmentUpdated(date=date_str, staff_id=staff_id, resource_id=resource_id),
        )
        return OperationResult.success(value, success)


class DeduplicationMaintenance:
    """
    Collapses duplicate assignment rows left by earlier races.

    Runs the store's cleanup procedure at most once per instance (one per
    application session), a few seconds after it is scheduled.
    """

    def __init__(self, store: RemoteStore, delay: float = config.DEDUP_DELAY_SECONDS):
        self.repo = StaffAssignmentRepository(store)
        self.delay = delay
        self._started = False
        self._task: Optional[asyncio.Task] = None

    @property
    def started(self) -> bool:
        return self._started

    def schedule(self) -> Optional[asyncio.Task]:
        if self._started:
            return None
        self._started = True
        self._task = asyncio.create_task(self._run_later(), name="staff-assignment-dedup")
        return self._task

    async def _run_later(self) -> int:
        await asyncio.sleep(self.delay)
        return await self._cleanup()

    async def run_once(self) -> Optional[int]:
        """Run immediately unless this session already started a cleanup"""
        if self._started:
            return None
        self._started = True
        return await self._cleanup()

    async def _cleanup(self) -> int:
        # Runs as a background task nobody awaits, so every failure ends here
        try:
            data = await self.repo.cleanup_duplicates()
            removed = sum(item.get("duplicates_removed", 0) for item in (data or []))
        except StoreError as e:
            logger.warning(f"⚠️ Duplicate assignment cleanup failed: {e.message}")
            return 0
        except Exception:
            logger.exception("❌ Duplicate assignment cleanup failed")
            return 0

        if removed:
            logger.info(f"🧹 Removed {removed} duplicate staff assignment row(s)")
        else:
            logger.debug("No duplicate staff assignments found")
        return removed

    async def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None


class StaffDirectoryService:
    """Staff members that can be placed on teams"""

    def __init__(self, store: RemoteStore, notifier: Notifier, cache=None):
        self.repo = StaffMemberRepository(store)
        self.notifier = notifier
        self.cache = cache if cache is not None else MemoryCache()

    def _invalidate(self) -> None:
        """Names and rosters are derived from the directory"""
        self.cache.delete(STAFF_NAMES_KEY)
        self.cache.delete_prefix(ROSTER_PREFIX)

    async def list_members(self) -> list[StaffMember]:
        return [StaffMember.from_row(row) for row in await self.repo.list_members()]

    async def get_member(self, staff_id: str) -> Optional[StaffMember]:
        row = await self.repo.get_member(staff_id)
        return StaffMember.from_row(row) if row else None

    @operation("Failed to add staff member")
    async def add_member(self, data: StaffMemberCreate) -> OperationResult:
        values = {
            "id": data.id or f"staff-{int(time.time() * 1000)}",
            "name": data.name,
            "email": data.email,
            "phone": data.phone,
        }
        try:
            row = await self.repo.insert_member(values)
        except StoreError as e:
            raise StoreFailed("Failed to add staff member", e.message) from e

        member = StaffMember.from_row(row or values)
        self._invalidate()
        self.notifier.success("Staff member added", member.name)
        return OperationResult.success(member)

    @operation("Failed to update staff member")
    async def update_member(self, staff_id: str, changes: StaffMemberUpdate) -> OperationResult:
        values = changes.model_dump(exclude_unset=True)
        if not values:
            raise ValidationFailed("Nothing to update")
        try:
            row = await self.repo.update_member(staff_id, values)
        except StoreError as e:
            raise StoreFailed("Failed to update staff member", e.message) from e
        if row is None:
            raise NotFound("Staff member not found", staff_id)

        member = StaffMember.from_row(row)
        self._invalidate()
        self.notifier.success("Staff member updated", member.name)
        return OperationResult.success(member)

    @operation("Failed to delete staff member")
    async def delete_member(self, staff_id: str) -> OperationResult:
        try:
            removed = await self.repo.delete_member(staff_id)
        except StoreError as e:
            raise StoreFailed("Failed to delete staff member", e.message) from e
        if not removed:
            raise NotFound("Staff member not found", staff_id)

        self._invalidate()
        self.notifier.success("Staff member deleted", removed[0].get("name"))
        return OperationResult.success(staff_id)
