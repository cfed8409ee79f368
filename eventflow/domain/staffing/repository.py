"""Staffing repository - store operations for staff assignments"""

from typing import Any, Optional

from ...store import RemoteStore
from ..calendar.resources import normalize_to_frontend_id

ASSIGNMENTS_TABLE = "staff_assignments"
STAFF_TABLE = "staff_members"
CLEANUP_ASSIGNMENTS_PROCEDURE = "cleanup_duplicate_staff_assignments"
ROSTER_FUNCTION = "fetch_staff_for_planning"


class StaffAssignmentRepository:
    """Repository for staff assignment store operations"""

    def __init__(self, store: RemoteStore):
        self.store = store

    async def assignments_for_date(self, date_str: str) -> list[dict]:
        return await self.store.select(ASSIGNMENTS_TABLE, {"assignment_date": date_str})

    async def staff_names(self) -> dict[str, str]:
        rows = await self.store.select(STAFF_TABLE)
        return {row["id"]: row.get("name") for row in rows}

    async def upsert_assignment(self, staff_id: str, team_id: str, date_str: str) -> Optional[dict]:
        """
        Place staff_id on team_id for the date.

        An existing row for (staff, date) is moved rather than a second one
        inserted.
        """
        team_id = normalize_to_frontend_id(team_id)
        key = {"staff_id": staff_id, "assignment_date": date_str}
        existing = await self.store.select(ASSIGNMENTS_TABLE, key)
        if existing:
            rows = await self.store.update(ASSIGNMENTS_TABLE, {"team_id": team_id}, key)
        else:
            rows = await self.store.insert(ASSIGNMENTS_TABLE, {**key, "team_id": team_id})
        return rows[0] if rows else None

    async def remove_assignment(self, staff_id: str, date_str: str) -> list[dict]:
        return await self.store.delete(
            ASSIGNMENTS_TABLE, {"staff_id": staff_id, "assignment_date": date_str}
        )

    async def fetch_roster(self, date_str: str) -> Any:
        return await self.store.invoke_function(ROSTER_FUNCTION, {"date": date_str})

    async def cleanup_duplicates(self) -> Any:
        return await self.store.rpc(CLEANUP_ASSIGNMENTS_PROCEDURE)

    async def assignments_for_staff(self, staff_id: str, start: str, end: str) -> list[dict]:
        """Rows for one staff member with start <= assignment_date <= end, oldest first"""
        rows = await self.store.select(ASSIGNMENTS_TABLE, {"staff_id": staff_id}, order="assignment_date")
        return [row for row in rows if start <= str(row["assignment_date"])[:10] <= end]


class StaffMemberRepository:
    """Repository for the staff_members table"""

    def __init__(self, store: RemoteStore):
        self.store = store

    async def list_members(self) -> list[dict]:
        return await self.store.select(STAFF_TABLE, order="name")

    async def get_member(self, staff_id: str) -> Optional[dict]:
        rows = await self.store.select(STAFF_TABLE, {"id": staff_id})
        return rows[0] if rows else None

    async def insert_member(self, values: dict) -> Optional[dict]:
        rows = await self.store.insert(STAFF_TABLE, values)
        return rows[0] if rows else None

    async def update_member(self, staff_id: str, values: dict) -> Optional[dict]:
        rows = await self.store.update(STAFF_TABLE, values, {"id": staff_id})
        return rows[0] if rows else None

    async def delete_member(self, staff_id: str) -> list[dict]:
        return await self.store.delete(STAFF_TABLE, {"id": staff_id})
