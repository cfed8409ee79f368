"""Team choice for new and duplicated events"""

import logging
from collections import Counter
from datetime import datetime
from typing import Iterable, Sequence

from .resources import (
    DEFAULT_TEAM_ID,
    OVERFLOW_TEAM_ID,
    Resource,
    normalize_to_frontend_id,
    team_resources,
)
from .schemas import CalendarEvent

logger = logging.getLogger(__name__)


def _overlaps(event: CalendarEvent, start: datetime, end: datetime) -> bool:
    """Half-open interval overlap: [event.start, event.end) vs [start, end)"""
    return event.start < end and start < event.end


def find_first_available_team(
    start: datetime,
    end: datetime,
    events: Iterable[CalendarEvent],
    resources: Sequence[Resource],
) -> str:
    """
    First team (by number) with nothing scheduled in [start, end).

    When every team is busy the lowest numbered team is returned anyway;
    overbooking is allowed and only logged.
    """
    teams = team_resources(resources)
    if not teams:
        return DEFAULT_TEAM_ID

    busy = {
        normalize_to_frontend_id(event.resource_id)
        for event in events
        if _overlaps(event, start, end)
    }

    for team in teams:
        if team.id not in busy:
            return team.id

    logger.warning(f"⚠️ All {len(teams)} teams busy between {start} and {end}, overbooking {teams[0].id}")
    return teams[0].id


def find_least_loaded_team(
    events: Iterable[CalendarEvent],
    resources: Sequence[Resource],
    overflow_team_id: str = OVERFLOW_TEAM_ID,
) -> str:
    """Team with the fewest events, ignoring the overflow lane; ties go to the lowest number"""
    teams = [team for team in team_resources(resources) if team.id != overflow_team_id]
    if not teams:
        return DEFAULT_TEAM_ID

    counts = Counter(normalize_to_frontend_id(event.resource_id) for event in events)
    # teams is sorted by number and min() keeps the first of equal keys
    return min(teams, key=lambda team: counts.get(team.id, 0)).id
