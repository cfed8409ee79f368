"""
Column sizing for the team calendar

Derives one column width for every team lane from the viewport width and the
number of lanes, plus the CSS custom properties the stylesheet reads.
"""

import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Sequence

from ... import config

logger = logging.getLogger(__name__)

TIME_AXIS_WIDTH = 80
PADDING = 40
DAY_CONTAINER_MARGIN = 20
DEFAULT_TEAM_COUNT = 6


@dataclass(frozen=True)
class SizingConfig:
    column_width: int
    day_container_width: int
    total_calendar_width: int
    time_axis_width: int
    zoom_level: float
    team_count: int

    @property
    def css_variables(self) -> dict[str, str]:
        return {
            "--dynamic-column-width": f"{self.column_width}px",
            "--dynamic-day-container-width": f"{self.day_container_width}px",
            "--dynamic-total-calendar-width": f"{self.total_calendar_width}px",
            "--dynamic-time-axis-width": f"{self.time_axis_width}px",
            "--zoom-level": str(self.zoom_level),
            "--team-count": str(self.team_count),
        }


@lru_cache(maxsize=256)
def compute_column_sizing(
    viewport_width: int,
    resource_count: int,
    min_column_width: int = config.MIN_COLUMN_WIDTH,
    max_column_width: int = config.MAX_COLUMN_WIDTH,
    time_axis_width: int = TIME_AXIS_WIDTH,
    padding: int = PADDING,
    default_team_count: int = DEFAULT_TEAM_COUNT,
    zoom_level: float = 1.0,
) -> SizingConfig:
    """
    Compute column and container widths for a team calendar.

    The width available after the time axis and padding is split evenly over
    at least default_team_count lanes, scaled by zoom_level and clamped to
    [min_column_width, max_column_width]. The result does not depend on
    anything but its arguments, so it is memoized on them.

    Raises:
        ValueError: If the bounds are inverted or zoom_level is not positive
    """
    if min_column_width > max_column_width:
        raise ValueError("min_column_width must not exceed max_column_width")
    if zoom_level <= 0:
        raise ValueError("zoom_level must be positive")

    resource_count = max(resource_count, 0)
    available = viewport_width - time_axis_width - padding
    raw = math.floor(available / max(resource_count, default_team_count))
    raw = math.floor(raw * zoom_level)
    column_width = max(min_column_width, min(max_column_width, raw))

    total_calendar_width = column_width * resource_count + time_axis_width
    sizing = SizingConfig(
        column_width=column_width,
        day_container_width=total_calendar_width + DAY_CONTAINER_MARGIN,
        total_calendar_width=total_calendar_width,
        time_axis_width=time_axis_width,
        zoom_level=zoom_level,
        team_count=resource_count,
    )
    logger.debug(
        f"📐 Column sizing: viewport={viewport_width} teams={resource_count} "
        f"column={column_width} total={total_calendar_width} scrolls={total_calendar_width > viewport_width}"
    )
    return sizing


class ColumnSizer:
    """
    Holds the current viewport width and lane count and recomputes the sizing
    only when one of them (or the zoom) changes.
    """

    def __init__(
        self,
        viewport_width: int = 1200,
        resources: Optional[Sequence] = None,
        min_column_width: int = config.MIN_COLUMN_WIDTH,
        max_column_width: int = config.MAX_COLUMN_WIDTH,
    ):
        self.viewport_width = viewport_width
        self.resource_count = len(resources or [])
        self.min_column_width = min_column_width
        self.max_column_width = max_column_width
        self.zoom_level = 1.0
        self.recomputations = 0
        self._sizing: Optional[SizingConfig] = None
        self._key: Optional[tuple] = None

    def resize(self, viewport_width: int) -> SizingConfig:
        self.viewport_width = viewport_width
        return self.sizing

    def set_resources(self, resources: Sequence) -> SizingConfig:
        self.resource_count = len(resources)
        return self.sizing

    def set_zoom_level(self, zoom_level: float) -> SizingConfig:
        self.zoom_level = zoom_level
        return self.sizing

    @property
    def sizing(self) -> SizingConfig:
        key = (self.viewport_width, self.resource_count, self.zoom_level)
        if key != self._key:
            self._sizing = compute_column_sizing(
                self.viewport_width,
                self.resource_count,
                self.min_column_width,
                self.max_column_width,
                zoom_level=self.zoom_level,
            )
            self._key = key
            self.recomputations += 1
        return self._sizing
