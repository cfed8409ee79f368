"""
Calendar and staffing models backing the SQL store
"""

import uuid

from sqlalchemy import Column, Date, DateTime, Index, String, Text
from sqlalchemy.sql import func

from .database import Base


def generate_id():
    """Generate a unique string id for new rows"""
    return str(uuid.uuid4())


class CalendarEvent(Base):
    """A rig / event / rig-down block placed in a team lane"""

    __tablename__ = "calendar_events"

    id = Column(String(36), primary_key=True, default=generate_id)
    title = Column(String(255), nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=False)

    # Storage form of the team id ("a".."f") or a pass-through lane id like "team-11"
    resource_id = Column(String(50), nullable=False, index=True)

    # rig | event | rigDown
    event_type = Column(String(20), nullable=False, default="event")

    booking_id = Column(String(64), nullable=True, index=True)
    booking_number = Column(String(64), nullable=True)
    delivery_address = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class StaffMember(Base):
    """Staff member that can be placed on a team for a day"""

    __tablename__ = "staff_members"

    id = Column(String(64), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class StaffAssignment(Base):
    """Staff member to team placement for one calendar date"""

    __tablename__ = "staff_assignments"

    id = Column(String(36), primary_key=True, default=generate_id)
    staff_id = Column(String(64), nullable=False, index=True)
    team_id = Column(String(50), nullable=False)
    assignment_date = Column(Date, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Not unique: rows duplicated by earlier races are collapsed by the cleanup procedure
    __table_args__ = (Index("ix_staff_assignments_staff_date", "staff_id", "assignment_date"),)


# Tables reachable through the store layer, keyed by table name
TABLES = {
    CalendarEvent.__tablename__: CalendarEvent,
    StaffMember.__tablename__: StaffMember,
    StaffAssignment.__tablename__: StaffAssignment,
}
