"""
Shared fixtures: an in-memory RemoteStore and row builders
"""

import asyncio
from collections import defaultdict
from typing import Any, Optional, Union

import pytest

from eventflow.bus import MessageBus
from eventflow.notifications import Notifier
from eventflow.store import RemoteStore, StoreError


class FakeStore(RemoteStore):
    """
    Table store held in dicts.

    fail_on maps an operation name ("select", "insert", ...) to the StoreError
    it raises; gates maps an operation name to an asyncio.Event the call waits
    on, which keeps a request pending until the test releases it.
    """

    def __init__(self, tables: Optional[dict[str, list[dict]]] = None):
        self.tables: dict[str, list[dict]] = defaultdict(list)
        for name, rows in (tables or {}).items():
            self.tables[name] = [dict(row) for row in rows]
        self.calls: list[tuple[str, str]] = []
        self.fail_on: dict[str, StoreError] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.rpc_results: dict[str, Any] = {}
        self.function_results: dict[str, Any] = {}
        self.closed = False

    async def _enter(self, operation: str, target: str):
        self.calls.append((operation, target))
        gate = self.gates.get(operation)
        if gate is not None:
            await gate.wait()
        error = self.fail_on.get(operation)
        if error is not None:
            raise error

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    @staticmethod
    def _matches(row: dict, filters: Optional[dict]) -> bool:
        return all(row.get(key) == value for key, value in (filters or {}).items())

    async def select(self, table, filters=None, order=None):
        await self._enter("select", table)
        rows = [dict(row) for row in self.tables[table] if self._matches(row, filters)]
        if order:
            rows.sort(key=lambda row: row.get(order))
        return rows

    async def insert(self, table, rows: Union[dict, list[dict]]):
        await self._enter("insert", table)
        items = rows if isinstance(rows, list) else [rows]
        for item in items:
            self.tables[table].append(dict(item))
        return [dict(item) for item in items]

    async def update(self, table, values, filters):
        await self._enter("update", table)
        matched = [row for row in self.tables[table] if self._matches(row, filters)]
        for row in matched:
            row.update(values)
        return [dict(row) for row in matched]

    async def delete(self, table, filters):
        await self._enter("delete", table)
        removed = [row for row in self.tables[table] if self._matches(row, filters)]
        self.tables[table] = [row for row in self.tables[table] if not self._matches(row, filters)]
        return removed

    async def rpc(self, name, params=None):
        await self._enter("rpc", name)
        return self.rpc_results.get(name, [])

    async def invoke_function(self, name, body=None):
        await self._enter("function", name)
        return self.function_results.get(name)

    async def close(self):
        self.closed = True


def event_row(
    id: str,
    start: str,
    end: str,
    resource_id: str = "a",
    event_type: str = "event",
    title: str = "Booking",
    booking_id: Optional[str] = None,
) -> dict:
    """A calendar_events row as the store returns it"""
    return {
        "id": id,
        "title": title,
        "start_time": start,
        "end_time": end,
        "resource_id": resource_id,
        "event_type": event_type,
        "booking_id": booking_id,
        "booking_number": None,
        "delivery_address": None,
    }


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def bus():
    return MessageBus()
