"""Team lanes and the mapping between UI team ids and storage ids"""

import logging
import re
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Sequence

from ... import config

logger = logging.getLogger(__name__)

TEAM_PREFIX = "team-"
DEFAULT_TEAM_ID = "team-1"
OVERFLOW_TEAM_ID = config.OVERFLOW_TEAM_ID

# UI ids "team-1".."team-6" are stored as single letters "a".."f"
_FRONTEND_TO_DB = {f"{TEAM_PREFIX}{n}": letter for n, letter in enumerate("abcdef", start=1)}
_DB_TO_FRONTEND = {letter: team_id for team_id, letter in _FRONTEND_TO_DB.items()}

_DB_ID_PATTERN = re.compile(r"^[a-z]$")


@dataclass(frozen=True)
class Resource:
    """A schedulable team lane"""

    id: str
    title: str
    event_color: Optional[str] = None


def to_db_id(frontend_id: str) -> str:
    """team-N -> storage letter; unknown ids are returned unchanged"""
    db_id = _FRONTEND_TO_DB.get(frontend_id)
    if db_id is None:
        logger.debug(f"No storage mapping for team id {frontend_id!r}, passing through")
        return frontend_id
    return db_id


def to_frontend_id(db_id: str) -> str:
    """storage letter -> team-N; unknown ids are returned unchanged"""
    frontend_id = _DB_TO_FRONTEND.get(db_id)
    if frontend_id is None:
        logger.debug(f"No frontend mapping for storage id {db_id!r}, passing through")
        return db_id
    return frontend_id


def is_frontend_id(resource_id: str) -> bool:
    return bool(resource_id) and resource_id.startswith(TEAM_PREFIX)


def is_db_id(resource_id: str) -> bool:
    return bool(resource_id) and bool(_DB_ID_PATTERN.match(resource_id))


def normalize_to_db_id(resource_id: str) -> str:
    """Accept either format and return the storage form"""
    if is_db_id(resource_id):
        return resource_id
    return to_db_id(resource_id)


def normalize_to_frontend_id(resource_id: str) -> str:
    """Accept either format and return the UI form"""
    if is_frontend_id(resource_id):
        return resource_id
    return to_frontend_id(resource_id)


def team_number(resource_id: str) -> Optional[int]:
    """Numeric suffix of a team-N id, None when there is none"""
    resource_id = normalize_to_frontend_id(resource_id)
    if not is_frontend_id(resource_id):
        return None
    suffix = resource_id[len(TEAM_PREFIX):]
    return int(suffix) if suffix.isdigit() else None


def team_display_name(resource_id: str) -> str:
    """team-11 is the "Live" lane, team-N is "Team N", anything else as given"""
    resource_id = normalize_to_frontend_id(resource_id)
    if resource_id == OVERFLOW_TEAM_ID:
        return "Live"
    number = team_number(resource_id)
    if number is not None:
        return f"Team {number}"
    return resource_id


def default_resources() -> list[Resource]:
    """Lanes shown when no team list has been configured"""
    return [
        Resource(id="team-1", title="Team 1", event_color="#3788d8"),
        Resource(id="team-2", title="Team 2", event_color="#1e90ff"),
        Resource(id="team-3", title="Team 3", event_color="#4169e1"),
        Resource(id="team-4", title="Team 4", event_color="#0073cf"),
        Resource(id="team-5", title="Team 5", event_color="#4682b4"),
        Resource(id=OVERFLOW_TEAM_ID, title="Live", event_color="#FEF7CD"),
    ]


def team_resources(resources: Iterable[Resource]) -> list[Resource]:
    """Only team lanes, sorted by their numeric suffix"""
    teams = [r for r in resources if is_frontend_id(r.id) and team_number(r.id) is not None]
    return sorted(teams, key=lambda r: team_number(r.id))


def resource_title(resource_id: str, resources: Iterable[Resource]) -> str:
    """Title of the lane with this id, falling back to the id"""
    for resource in resources:
        if resource.id == resource_id:
            return resource.title
    return resource_id


class TeamDirectory:
    """
    The configured lanes, held for the life of the process.

    Saving replaces the whole list; renaming swaps in a copy of one lane with
    the new title. Readers always get a fresh list.
    """

    def __init__(self, resources: Optional[Sequence[Resource]] = None):
        self._resources = list(resources) if resources is not None else default_resources()

    def all(self) -> list[Resource]:
        return list(self._resources)

    def teams(self) -> list[Resource]:
        return team_resources(self._resources)

    def get(self, resource_id: str) -> Optional[Resource]:
        resource_id = normalize_to_frontend_id(resource_id)
        return next((r for r in self._resources if r.id == resource_id), None)

    def save(self, resources: Sequence[Resource]) -> list[Resource]:
        ids = [r.id for r in resources]
        if any(not resource_id for resource_id in ids):
            raise ValueError("Every lane needs an id")
        if len(set(ids)) != len(ids):
            raise ValueError("Lane ids must be unique")
        self._resources = list(resources)
        logger.info(f"🗂️ Saved {len(self._resources)} calendar lanes")
        return self.all()

    def rename(self, resource_id: str, title: str) -> Optional[Resource]:
        """New title for one lane; None when no lane has that id"""
        current = self.get(resource_id)
        if current is None:
            return None
        renamed = replace(current, title=title)
        self._resources = [renamed if r.id == current.id else r for r in self._resources]
        logger.info(f"✏️ Renamed {current.id} to {title!r}")
        return renamed
