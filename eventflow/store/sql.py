"""
SQL store - the RemoteStore operations against the local SQLAlchemy database

Used for development and self-hosted deployments; the two maintenance
procedures the hosted backend exposes as RPCs are implemented here in Python.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional, Union

from sqlalchemy import Date, DateTime
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import TABLES, StaffMember
from ..shared.validators import parse_date, parse_datetime
from .base import RemoteStore, Row, StoreError

logger = logging.getLogger(__name__)


def _row_to_dict(obj) -> Row:
    row = {}
    for column in obj.__table__.columns:
        value = getattr(obj, column.name)
        if isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            value = value.isoformat()
        elif isinstance(value, date):
            value = value.isoformat()
        row[column.name] = value
    return row


class SqlStore(RemoteStore):
    """Store backed by a SQLAlchemy session factory"""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory
        self._procedures = {
            "cleanup_duplicate_calendar_events": self._cleanup_duplicate_calendar_events,
            "cleanup_duplicate_staff_assignments": self._cleanup_duplicate_staff_assignments,
        }
        self._functions = {
            "fetch_staff_for_planning": self._fetch_staff_for_planning,
        }

    @staticmethod
    def _model(table: str):
        model = TABLES.get(table)
        if model is None:
            raise StoreError(f"Unknown table: {table}", status_code=404)
        return model

    @staticmethod
    def _coerce(model, values: Row) -> Row:
        """Convert wire values to column types; unknown columns are rejected"""
        columns = model.__table__.columns
        coerced = {}
        for key, value in values.items():
            if key not in columns:
                raise StoreError(f"Unknown column {model.__tablename__}.{key}", status_code=400)
            column_type = columns[key].type
            if value is not None and isinstance(column_type, DateTime):
                value = parse_datetime(value).astimezone(timezone.utc)
            elif value is not None and isinstance(column_type, Date):
                value = parse_date(value)
            coerced[key] = value
        return coerced

    def _query(self, db: Session, table: str, filters: Optional[Row]):
        model = self._model(table)
        query = db.query(model)
        for column, value in self._coerce(model, filters or {}).items():
            query = query.filter(getattr(model, column) == value)
        return model, query

    def _run_sync(self, operation: str, work):
        """Run work(db) in its own session, translating database errors"""
        db = self._session_factory()
        try:
            return work(db)
        except StoreError:
            db.rollback()
            raise
        except (SQLAlchemyError, ValueError) as e:
            db.rollback()
            logger.error(f"❌ SQL store {operation} failed: {e}")
            raise StoreError(str(e)) from e
        finally:
            db.close()

    async def _run(self, operation: str, work):
        """Session work runs in a worker thread so the event loop keeps serving"""
        return await asyncio.to_thread(self._run_sync, operation, work)

    async def select(
        self, table: str, filters: Optional[Row] = None, order: Optional[str] = None
    ) -> list[Row]:
        def work(db: Session):
            model, query = self._query(db, table, filters)
            if order:
                query = query.order_by(getattr(model, order))
            return [_row_to_dict(obj) for obj in query.all()]

        return await self._run("select", work)

    async def insert(self, table: str, rows: Union[Row, list[Row]]) -> list[Row]:
        items = rows if isinstance(rows, list) else [rows]

        def work(db: Session):
            model = self._model(table)
            created = [model(**self._coerce(model, item)) for item in items]
            db.add_all(created)
            db.commit()
            for obj in created:
                db.refresh(obj)
            return [_row_to_dict(obj) for obj in created]

        return await self._run("insert", work)

    async def update(self, table: str, values: Row, filters: Row) -> list[Row]:
        def work(db: Session):
            model, query = self._query(db, table, filters)
            updates = self._coerce(model, values)
            matched = query.all()
            for obj in matched:
                for key, value in updates.items():
                    setattr(obj, key, value)
            db.commit()
            for obj in matched:
                db.refresh(obj)
            return [_row_to_dict(obj) for obj in matched]

        return await self._run("update", work)

    async def delete(self, table: str, filters: Row) -> list[Row]:
        def work(db: Session):
            _, query = self._query(db, table, filters)
            matched = query.all()
            removed = [_row_to_dict(obj) for obj in matched]
            for obj in matched:
                db.delete(obj)
            db.commit()
            return removed

        return await self._run("delete", work)

    async def rpc(self, name: str, params: Optional[Row] = None) -> Any:
        procedure = self._procedures.get(name)
        if procedure is None:
            raise StoreError(f"Unknown procedure: {name}", status_code=404)
        return await self._run(f"rpc {name}", lambda db: procedure(db, **(params or {})))

    async def invoke_function(self, name: str, body: Optional[Row] = None) -> Any:
        function = self._functions.get(name)
        if function is None:
            raise StoreError(f"Unknown function: {name}", status_code=404)
        return await self._run(f"function {name}", lambda db: function(db, **(body or {})))

    # Procedures

    @staticmethod
    def _cleanup_duplicate_calendar_events(db: Session) -> list[Row]:
        """Keep the oldest event per (booking_id, event_type); delete the rest"""
        model = TABLES["calendar_events"]
        groups = defaultdict(list)
        for event in db.query(model).filter(model.booking_id.isnot(None)).all():
            groups[(event.booking_id, event.event_type)].append(event)

        results = []
        for (booking_id, event_type), events in groups.items():
            if len(events) < 2:
                continue
            events.sort(key=lambda e: (e.created_at or datetime.min, e.id))
            for duplicate in events[1:]:
                db.delete(duplicate)
            results.append(
                {
                    "booking_id": booking_id,
                    "event_type": event_type,
                    "duplicates_removed": len(events) - 1,
                }
            )
        db.commit()
        return results

    @staticmethod
    def _cleanup_duplicate_staff_assignments(db: Session) -> list[Row]:
        """Keep the most recently updated row per (staff_id, assignment_date)"""
        model = TABLES["staff_assignments"]
        groups = defaultdict(list)
        for assignment in db.query(model).all():
            groups[(assignment.staff_id, assignment.assignment_date)].append(assignment)

        results = []
        for (staff_id, assignment_date), rows in groups.items():
            if len(rows) < 2:
                continue
            rows.sort(key=lambda a: (a.updated_at or a.created_at or datetime.min, a.id), reverse=True)
            for duplicate in rows[1:]:
                db.delete(duplicate)
            results.append(
                {
                    "staff_id": staff_id,
                    "assignment_date": assignment_date.isoformat(),
                    "duplicates_removed": len(rows) - 1,
                }
            )
        db.commit()
        return results

    # Functions

    @staticmethod
    def _fetch_staff_for_planning(db: Session, **body) -> Row:
        """Local stand-in for the roster edge function: every known staff member"""
        staff = db.query(StaffMember).order_by(StaffMember.name).all()
        return {"date": body.get("date"), "staff": [{"id": s.id, "name": s.name} for s in staff]}
