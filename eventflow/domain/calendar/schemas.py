"""Calendar domain schemas - Pydantic models for events, requests and responses"""

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.responses import NotificationResponse
from ...shared.validators import format_datetime, parse_datetime
from .resources import normalize_to_db_id, normalize_to_frontend_id

EventType = Literal["rig", "event", "rigDown"]


def generate_event_id() -> str:
    return str(uuid.uuid4())


class CalendarEvent(BaseModel):
    """An event as held in the local calendar state (UI team ids, aware datetimes)"""

    id: str = Field(default_factory=generate_event_id)
    title: str
    start: datetime
    end: datetime
    resource_id: str
    event_type: EventType = "event"
    delivery_address: Optional[str] = None
    booking_id: Optional[str] = None
    booking_number: Optional[str] = None

    @field_validator("start", "end", mode="before")
    @classmethod
    def aware_timestamps(cls, v):
        return parse_datetime(v)

    @property
    def duration(self):
        return self.end - self.start

    @classmethod
    def from_row(cls, row: dict) -> "CalendarEvent":
        """Build from a calendar_events storage row"""
        return cls(
            id=row["id"],
            title=row.get("title") or "",
            start=row["start_time"],
            end=row["end_time"],
            resource_id=normalize_to_frontend_id(row["resource_id"]),
            event_type=row.get("event_type") or "event",
            delivery_address=row.get("delivery_address"),
            booking_id=row.get("booking_id"),
            booking_number=row.get("booking_number"),
        )

    def to_row(self) -> dict:
        """Storage row for calendar_events"""
        return {
            "id": self.id,
            "title": self.title,
            "start_time": format_datetime(self.start),
            "end_time": format_datetime(self.end),
            "resource_id": normalize_to_db_id(self.resource_id),
            "event_type": self.event_type,
            "delivery_address": self.delivery_address,
            "booking_id": self.booking_id,
            "booking_number": self.booking_number,
        }


class EventCreate(BaseModel):
    """Schema for creating a calendar event; resourceId "auto" picks a free team"""

    id: Optional[str] = None
    title: str
    start: datetime
    end: datetime
    resourceId: Optional[str] = None
    eventType: Optional[EventType] = None
    deliveryAddress: Optional[str] = None
    bookingId: Optional[str] = None
    bookingNumber: Optional[str] = None


class EventUpdate(BaseModel):
    """Schema for updating an existing calendar event"""

    title: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    resourceId: Optional[str] = None
    eventType: Optional[EventType] = None
    deliveryAddress: Optional[str] = None
    bookingId: Optional[str] = None
    bookingNumber: Optional[str] = None


class DuplicateEventRequest(BaseModel):
    """Schema for duplicating an event; the original duration is kept"""

    newStart: Optional[datetime] = None
    targetResourceId: Optional[str] = None


class EventChangeRequest(BaseModel):
    """
    A drag or resize reported by the calendar widget.

    The widget puts the dropped-on lane in one of several places depending on
    the view; the first non-empty of resourceIds[0], newResourceId and
    extendedResourceId wins.
    """

    eventId: str
    start: datetime
    end: datetime
    resourceIds: list[str] = Field(default_factory=list)
    newResourceId: Optional[str] = None
    extendedResourceId: Optional[str] = None

    def resolve_resource_id(self) -> Optional[str]:
        candidates = [
            self.resourceIds[0] if self.resourceIds else None,
            self.newResourceId,
            self.extendedResourceId,
        ]
        return next((c for c in candidates if c), None)


class MoveEventsRequest(BaseModel):
    eventType: EventType


class TeamSuggestionRequest(BaseModel):
    """Schema for asking which team should take a new event"""

    strategy: Literal["first_available", "least_loaded"] = "first_available"
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @model_validator(mode="after")
    def interval_for_first_available(self):
        if self.strategy == "first_available" and (self.start is None or self.end is None):
            raise ValueError("start and end are required for first_available")
        return self


class EventResponse(BaseModel):
    """Schema for event response"""

    id: str
    title: str
    start: datetime
    end: datetime
    resourceId: str
    eventType: EventType
    deliveryAddress: Optional[str] = None
    bookingId: Optional[str] = None
    bookingNumber: Optional[str] = None

    @classmethod
    def from_event(cls, event: CalendarEvent) -> "EventResponse":
        return cls(
            id=event.id,
            title=event.title,
            start=event.start,
            end=event.end,
            resourceId=event.resource_id,
            eventType=event.event_type,
            deliveryAddress=event.delivery_address,
            bookingId=event.booking_id,
            bookingNumber=event.booking_number,
        )


class ResourceResponse(BaseModel):
    id: str
    title: str
    eventColor: Optional[str] = None


class SizingResponse(BaseModel):
    columnWidth: int
    dayContainerWidth: int
    totalCalendarWidth: int
    timeAxisWidth: int
    zoomLevel: float
    teamCount: int
    cssVariables: dict[str, str]


class DuplicateGroup(BaseModel):
    booking_id: str
    event_type: str
    count: int


class DuplicateStatsResponse(BaseModel):
    totalDuplicates: int
    duplicatesByBooking: list[DuplicateGroup]


class EventChangeResponse(EventResponse):
    """Event returned by a mutation, with the notifications it raised"""

    notifications: list[NotificationResponse] = []


class ResourceInput(BaseModel):
    id: str
    title: str
    eventColor: Optional[str] = None

    @field_validator("id", "title")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


class TeamRename(BaseModel):
    title: str

    @field_validator("title")
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Team name is required")
        return v.strip()
