"""Calendar router - FastAPI endpoints for team lanes, sizing and events"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ...dependencies import AppContext, get_context, get_notifier
from ...notifications import Notifier
from ...shared.responses import drain_notifications, raise_for_result
from ...shared.validators import parse_datetime
from .load_balancer import find_first_available_team, find_least_loaded_team
from .resources import Resource, team_display_name
from .schemas import (
    CalendarEvent,
    DuplicateEventRequest,
    DuplicateStatsResponse,
    EventChangeRequest,
    EventChangeResponse,
    EventCreate,
    EventResponse,
    EventUpdate,
    MoveEventsRequest,
    ResourceInput,
    ResourceResponse,
    SizingResponse,
    TeamRename,
    TeamSuggestionRequest,
)
from .service import EventOperations
from .sizing import compute_column_sizing

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["Calendar"])
teams_router = APIRouter(prefix="/teams", tags=["Teams"])


def get_event_operations(
    context: AppContext = Depends(get_context),
    notifier: Notifier = Depends(get_notifier),
) -> EventOperations:
    """Dependency injection for EventOperations"""
    return context.event_operations(notifier)


def _resource_response(resource: Resource) -> ResourceResponse:
    return ResourceResponse(id=resource.id, title=resource.title, eventColor=resource.event_color)


def _changed(event: CalendarEvent, ops: EventOperations) -> EventChangeResponse:
    response = EventChangeResponse.from_event(event)
    response.notifications = drain_notifications(ops.notifier)
    return response


# ============================================================================
# LAYOUT
# ============================================================================


@router.get("/resources", response_model=list[ResourceResponse])
async def get_resources(context: AppContext = Depends(get_context)):
    """Team lanes shown on the calendar"""
    return [_resource_response(r) for r in context.resources]


@router.put("/resources", response_model=list[ResourceResponse])
async def save_resources(data: list[ResourceInput], context: AppContext = Depends(get_context)):
    """Replace the configured lanes"""
    resources = [Resource(id=r.id, title=r.title, event_color=r.eventColor) for r in data]
    try:
        saved = context.teams.save(resources)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [_resource_response(r) for r in saved]

@router.get("/sizing", response_model=SizingResponse)
async def get_sizing(
    viewport_width: int = Query(..., ge=0),
    resource_count: Optional[int] = Query(None, ge=0),
    zoom_level: float = Query(1.0, gt=0),
    context: AppContext = Depends(get_context),
):
    """Column widths and CSS variables for a viewport"""
    count = len(context.resources) if resource_count is None else resource_count
    try:
        sizing = compute_column_sizing(viewport_width, count, zoom_level=zoom_level)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SizingResponse(
        columnWidth=sizing.column_width,
        dayContainerWidth=sizing.day_container_width,
        totalCalendarWidth=sizing.total_calendar_width,
        timeAxisWidth=sizing.time_axis_width,
        zoomLevel=sizing.zoom_level,
        teamCount=sizing.team_count,
        cssVariables=sizing.css_variables,
    )


# ============================================================================
# EVENTS
# ============================================================================


@router.get("/events", response_model=list[EventResponse])
async def get_events(ops: EventOperations = Depends(get_event_operations)):
    """All calendar events ordered by start time"""
    await ops.reload()
    return [EventResponse.from_event(e) for e in ops.state.events]


@router.post("/events", response_model=EventChangeResponse, status_code=201)
async def create_event(data: EventCreate, ops: EventOperations = Depends(get_event_operations)):
    """Create an event; resourceId "auto" or none picks the first free team"""
    await ops.reload()
    result = raise_for_result(await ops.create_event(data))
    return _changed(result.value, ops)


@router.patch("/events/{event_id}", response_model=EventChangeResponse)
async def update_event(
    event_id: str,
    data: EventUpdate,
    ops: EventOperations = Depends(get_event_operations),
):
    await ops.reload()
    result = raise_for_result(await ops.update_event(event_id, data))
    return _changed(result.value, ops)


@router.delete("/events/{event_id}")
async def delete_event(event_id: str, ops: EventOperations = Depends(get_event_operations)):
    await ops.reload()
    raise_for_result(await ops.delete_event(event_id))
    return {"message": "Event deleted", "id": event_id, "notifications": drain_notifications(ops.notifier)}


@router.post("/events/{event_id}/duplicate", response_model=EventChangeResponse, status_code=201)
async def duplicate_event(
    event_id: str,
    data: DuplicateEventRequest,
    ops: EventOperations = Depends(get_event_operations),
):
    """Copy an event onto another team and/or start, keeping its duration"""
    await ops.reload()
    result = raise_for_result(
        await ops.duplicate_event(event_id, data.newStart, data.targetResourceId)
    )
    return _changed(result.value, ops)


@router.post("/events/change", response_model=EventChangeResponse)
async def change_event(
    data: EventChangeRequest,
    received: bool = Query(False, description="Event was dropped in from another calendar"),
    ops: EventOperations = Depends(get_event_operations),
):
    """Persist a drag or resize reported by the calendar widget"""
    await ops.reload()
    if received:
        result = await ops.handle_event_receive(data)
    else:
        result = await ops.handle_event_change(data)
    raise_for_result(result)
    return _changed(result.value, ops)


@router.post("/teams/{team_id}/move")
async def move_events(
    team_id: str,
    data: MoveEventsRequest,
    ops: EventOperations = Depends(get_event_operations),
):
    """Move every event of one type onto a team"""
    await ops.reload()
    result = raise_for_result(await ops.move_events_to_team(data.eventType, team_id))
    return {"moved": result.value, "teamId": team_id, "notifications": drain_notifications(ops.notifier)}


# ============================================================================
# DUPLICATE MAINTENANCE
# ============================================================================


@router.get("/duplicates", response_model=DuplicateStatsResponse)
async def get_duplicate_stats(ops: EventOperations = Depends(get_event_operations)):
    return await ops.duplicate_stats()


@router.post("/duplicates/cleanup")
async def cleanup_duplicates(ops: EventOperations = Depends(get_event_operations)):
    """Remove surplus events per (booking, event type), keeping the oldest"""
    result = raise_for_result(await ops.cleanup_duplicate_events())
    return {"removed": result.value, "notifications": drain_notifications(ops.notifier)}


# ============================================================================
# TEAM SUGGESTION
# ============================================================================


@teams_router.post("/suggest")
async def suggest_team(
    data: TeamSuggestionRequest,
    context: AppContext = Depends(get_context),
    ops: EventOperations = Depends(get_event_operations),
):
    """Which team should take a new event"""
    await ops.reload()
    if data.strategy == "least_loaded":
        team_id = find_least_loaded_team(ops.state.events, context.resources)
    else:
        start, end = parse_datetime(data.start), parse_datetime(data.end)
        team_id = find_first_available_team(start, end, ops.state.events, context.resources)
    logger.info(f"🧭 Suggested {team_id} using {data.strategy}")
    return {"teamId": team_id, "teamName": team_display_name(team_id), "strategy": data.strategy}


# ============================================================================
# TEAMS
# ============================================================================


@teams_router.get("", response_model=list[ResourceResponse])
async def get_teams(context: AppContext = Depends(get_context)):
    """Team lanes only, in team order"""
    return [_resource_response(r) for r in context.teams.teams()]


@teams_router.get("/{team_id}", response_model=ResourceResponse)
async def get_team(team_id: str, context: AppContext = Depends(get_context)):
    team = context.teams.get(team_id)
    if team is None:
        raise HTTPException(status_code=404, detail="Team not found")
    return _resource_response(team)


@teams_router.patch("/{team_id}", response_model=ResourceResponse)
async def rename_team(team_id: str, data: TeamRename, context: AppContext = Depends(get_context)):
    """Give a lane a new title"""
    team = context.teams.rename(team_id, data.title)
    if team is None:
        raise HTTPException(status_code=404, detail="Team not found")
    return _resource_response(team)
