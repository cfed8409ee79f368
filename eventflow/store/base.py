"""
Remote store interface

Every data operation the calendar and staffing domains perform goes through
this interface. Implementations talk to the hosted backend (Supabase) or to
the local SQL database; callers never see which one.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Union

Row = dict[str, Any]


class StoreError(Exception):
    """A remote data operation failed"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RemoteStore(ABC):
    """
    Request/response data operations against a table store.

    Filters are equality matches on column values. Rows are plain dicts whose
    timestamps are ISO-8601 strings and dates are yyyy-MM-dd strings.
    """

    @abstractmethod
    async def select(
        self, table: str, filters: Optional[Row] = None, order: Optional[str] = None
    ) -> list[Row]:
        """Return rows matching every filter, optionally ordered by a column"""
        pass

    @abstractmethod
    async def insert(self, table: str, rows: Union[Row, list[Row]]) -> list[Row]:
        """Insert one or more rows and return them as stored"""
        pass

    @abstractmethod
    async def update(self, table: str, values: Row, filters: Row) -> list[Row]:
        """Update matching rows and return them"""
        pass

    @abstractmethod
    async def delete(self, table: str, filters: Row) -> list[Row]:
        """Delete matching rows and return what was removed"""
        pass

    @abstractmethod
    async def rpc(self, name: str, params: Optional[Row] = None) -> Any:
        """Call a server-side procedure"""
        pass

    @abstractmethod
    async def invoke_function(self, name: str, body: Optional[Row] = None) -> Any:
        """Invoke a serverless function"""
        pass

    async def close(self) -> None:
        """Release connections held by the store"""
        return None
