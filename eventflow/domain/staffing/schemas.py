"""Staffing domain schemas - Pydantic models for validation"""

import datetime
from typing import Literal, Optional

from pydantic import BaseModel, field_validator

from ...shared.responses import NotificationResponse
from ...shared.validators import format_date
from ..calendar.resources import normalize_to_frontend_id

StaffStatus = Literal["free", "assigned_current_team", "assigned_other_team"]


class StaffAssignment(BaseModel):
    """One staff member on one team for one date (UI team id)"""

    staff_id: str
    staff_name: str
    team_id: str
    date: str  # yyyy-MM-dd

    @classmethod
    def from_row(cls, row: dict, names: Optional[dict[str, str]] = None) -> "StaffAssignment":
        staff_id = row["staff_id"]
        return cls(
            staff_id=staff_id,
            staff_name=(names or {}).get(staff_id) or f"Staff {staff_id}",
            team_id=normalize_to_frontend_id(row["team_id"]),
            date=format_date(row["assignment_date"]),
        )


class AssignStaffRequest(BaseModel):
    """Schema for placing a staff member on a team for a date"""

    staffId: str
    teamId: str
    date: datetime.date
    supersede: bool = False

    @field_validator("staffId", "teamId")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


class StaffAssignmentResponse(BaseModel):
    staffId: str
    staffName: str
    teamId: str
    date: str

    @classmethod
    def from_assignment(cls, assignment: StaffAssignment) -> "StaffAssignmentResponse":
        return cls(
            staffId=assignment.staff_id,
            staffName=assignment.staff_name,
            teamId=assignment.team_id,
            date=assignment.date,
        )


class TeamStaffResponse(BaseModel):
    id: str
    name: str


class StaffStatusResponse(BaseModel):
    id: str
    name: str
    status: StaffStatus
    teamId: Optional[str] = None
    teamName: Optional[str] = None


class StaffAssignmentChangeResponse(StaffAssignmentResponse):
    """Assignment returned by a mutation, with the notifications it raised"""

    notifications: list[NotificationResponse] = []


# ============================================================================
# STAFF DIRECTORY
# ============================================================================


class StaffMember(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict) -> "StaffMember":
        return cls(id=str(row["id"]), name=row.get("name") or "", email=row.get("email"), phone=row.get("phone"))


class StaffMemberCreate(BaseModel):
    """Schema for adding a staff member; id is generated when omitted"""

    id: Optional[str] = None
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Name is required")
        return v.strip()


class StaffMemberUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Name must not be empty")
        return v.strip() if v is not None else v


class StaffMemberResponse(StaffMember):
    notifications: list[NotificationResponse] = []
