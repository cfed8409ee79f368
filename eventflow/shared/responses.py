"""Translate operation results into HTTP responses"""

from typing import Optional

from fastapi import HTTPException
from pydantic import BaseModel

from ..domain.operations import OperationResult
from ..notifications import Notifier

STATUS_BY_ERROR = {
    "validation": 400,
    "not_found": 404,
    "in_flight": 409,
    "cancelled": 409,
    "store": 502,
    "unexpected": 500,
}


class NotificationResponse(BaseModel):
    id: int
    kind: str
    message: str
    description: Optional[str] = None


def drain_notifications(notifier: Notifier) -> list[NotificationResponse]:
    """What the request reported, in order, as returned to the client"""
    return [
        NotificationResponse(id=n.id, kind=n.kind, message=n.message, description=n.description)
        for n in notifier.drain()
    ]


def raise_for_result(result: OperationResult) -> OperationResult:
    """Raise HTTPException for a failed result, return it unchanged otherwise"""
    if not result.ok:
        raise HTTPException(
            status_code=STATUS_BY_ERROR.get(result.error, 500),
            detail=result.message or "Operation failed",
        )
    return result
