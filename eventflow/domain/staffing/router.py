"""Staffing router - FastAPI endpoints for staff assignments and the staff directory"""

import datetime
import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from ...dependencies import AppContext, get_context, get_notifier
from ...notifications import Notifier
from ...shared.responses import drain_notifications, raise_for_result
from ..operations import ValidationFailed
from .schemas import (
    AssignStaffRequest,
    StaffAssignmentChangeResponse,
    StaffAssignmentResponse,
    StaffMember,
    StaffMemberCreate,
    StaffMemberResponse,
    StaffMemberUpdate,
    StaffStatusResponse,
    TeamStaffResponse,
)
from .service import StaffAssignmentService, StaffDirectoryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/staff-assignments", tags=["Staff Assignments"])
staff_router = APIRouter(prefix="/staff", tags=["Staff"])


def get_staff_service(
    context: AppContext = Depends(get_context),
    notifier: Notifier = Depends(get_notifier),
) -> StaffAssignmentService:
    """Dependency injection for StaffAssignmentService"""
    return context.staff_service(notifier)


def get_staff_directory(
    context: AppContext = Depends(get_context),
    notifier: Notifier = Depends(get_notifier),
) -> StaffDirectoryService:
    """Dependency injection for StaffDirectoryService"""
    return context.staff_directory(notifier)


# ============================================================================
# ASSIGNMENTS
# ============================================================================


@router.get("", response_model=list[StaffAssignmentResponse])
async def get_assignments(
    date: datetime.date = Query(...),
    service: StaffAssignmentService = Depends(get_staff_service),
):
    """All staff assignments for a date"""
    assignments = await service.fetch_assignments(date)
    return [StaffAssignmentResponse.from_assignment(a) for a in assignments]


@router.post("", response_model=StaffAssignmentChangeResponse)
async def assign_staff(
    data: AssignStaffRequest,
    service: StaffAssignmentService = Depends(get_staff_service),
):
    """
    Place a staff member on a team for a date.

    Returns 409 while an earlier request for the same staff member is still
    pending, unless supersede is set.
    """
    result = raise_for_result(
        await service.assign(data.staffId, data.teamId, data.date, supersede=data.supersede)
    )
    response = StaffAssignmentChangeResponse.from_assignment(result.value)
    response.notifications = drain_notifications(service.notifier)
    return response


@router.delete("/{staff_id}")
async def unassign_staff(
    staff_id: str,
    date: datetime.date = Query(...),
    supersede: bool = Query(False),
    service: StaffAssignmentService = Depends(get_staff_service),
):
    """Remove a staff member's assignment for a date"""
    raise_for_result(await service.unassign(staff_id, date, supersede=supersede))
    return {
        "message": "Staff removed successfully",
        "staffId": staff_id,
        "date": date.isoformat(),
        "notifications": drain_notifications(service.notifier),
    }


@router.get("/roster", response_model=list[TeamStaffResponse])
async def get_roster(
    date: datetime.date = Query(...),
    service: StaffAssignmentService = Depends(get_staff_service),
):
    """Staff available for planning on a date"""
    return await service.fetch_staff_roster(date)


@router.get("/teams/{team_id}", response_model=list[TeamStaffResponse])
async def get_team_staff(
    team_id: str,
    date: datetime.date = Query(...),
    service: StaffAssignmentService = Depends(get_staff_service),
):
    """Staff assigned to one team on a date"""
    return await service.staff_for_team(team_id, date)


@router.get("/teams/{team_id}/status", response_model=list[StaffStatusResponse])
async def get_team_staff_status(
    team_id: str,
    date: datetime.date = Query(...),
    service: StaffAssignmentService = Depends(get_staff_service),
):
    """Every roster member's placement relative to one team"""
    return await service.staff_status_for_team(team_id, date)


@router.get("/in-flight")
async def get_in_flight(context: AppContext = Depends(get_context)):
    """Staff ids with a request still pending"""
    return {"staffIds": sorted(context.in_flight.keys)}


# ============================================================================
# STAFF DIRECTORY
# ============================================================================


@staff_router.get("", response_model=list[StaffMember])
async def list_staff(directory: StaffDirectoryService = Depends(get_staff_directory)):
    """All staff members ordered by name"""
    return await directory.list_members()


@staff_router.post("", response_model=StaffMemberResponse, status_code=201)
async def add_staff(data: StaffMemberCreate, directory: StaffDirectoryService = Depends(get_staff_directory)):
    result = raise_for_result(await directory.add_member(data))
    return StaffMemberResponse(**result.value.model_dump(), notifications=drain_notifications(directory.notifier))


@staff_router.get("/{staff_id}", response_model=StaffMember)
async def get_staff(staff_id: str, directory: StaffDirectoryService = Depends(get_staff_directory)):
    member = await directory.get_member(staff_id)
    if member is None:
        raise HTTPException(status_code=404, detail="Staff member not found")
    return member


@staff_router.patch("/{staff_id}", response_model=StaffMemberResponse)
async def update_staff(
    staff_id: str,
    data: StaffMemberUpdate,
    directory: StaffDirectoryService = Depends(get_staff_directory),
):
    result = raise_for_result(await directory.update_member(staff_id, data))
    return StaffMemberResponse(**result.value.model_dump(), notifications=drain_notifications(directory.notifier))


@staff_router.delete("/{staff_id}")
async def delete_staff(staff_id: str, directory: StaffDirectoryService = Depends(get_staff_directory)):
    raise_for_result(await directory.delete_member(staff_id))
    return {"id": staff_id, "notifications": drain_notifications(directory.notifier)}


@staff_router.get("/{staff_id}/assignments", response_model=list[StaffAssignmentResponse])
async def get_staff_assignments_for_period(
    staff_id: str,
    start: datetime.date = Query(...),
    end: datetime.date = Query(...),
    service: StaffAssignmentService = Depends(get_staff_service),
):
    """One staff member's assignments between start and end, inclusive"""
    try:
        assignments = await service.assignments_for_period(staff_id, start, end)
    except ValidationFailed as e:
        raise HTTPException(status_code=400, detail=e.message)
    return [StaffAssignmentResponse.from_assignment(a) for a in assignments]
