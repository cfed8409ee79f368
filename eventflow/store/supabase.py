"""
Supabase store - PostgREST tables, RPC procedures and edge functions over httpx
"""

import logging
from typing import Any, Optional, Union

import httpx

from .base import RemoteStore, Row, StoreError

logger = logging.getLogger(__name__)


def _filter_params(filters: Optional[Row]) -> dict[str, str]:
    """Translate equality filters into PostgREST query parameters"""
    params = {}
    for column, value in (filters or {}).items():
        if value is None:
            params[column] = "is.null"
        elif isinstance(value, bool):
            params[column] = f"eq.{str(value).lower()}"
        else:
            params[column] = f"eq.{value}"
    return params


class SupabaseStore(RemoteStore):
    """
    Store backed by a hosted Supabase project.

    Usage:
        async with SupabaseStore(url, key) as store:
            rows = await store.select("calendar_events")

    Requests are never retried; a failed call surfaces as StoreError with the
    message the backend returned.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    async def __aenter__(self) -> "SupabaseStore":
        self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        """Get HTTP client, creating one if needed"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={
                    "apikey": self.api_key,
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Any = None,
        headers: Optional[dict] = None,
    ) -> Any:
        client = self._get_client()
        try:
            response = await client.request(method, path, params=params, json=json, headers=headers)
        except httpx.RequestError as e:
            logger.error(f"❌ Store request {method} {path} failed: {e}")
            raise StoreError(f"Network error: {e}") from e

        if response.status_code >= 400:
            message = response.text or response.reason_phrase
            try:
                body = response.json()
                if isinstance(body, dict):
                    message = body.get("message") or body.get("error") or message
            except ValueError:
                pass
            logger.error(f"❌ Store {method} {path} returned {response.status_code}: {message}")
            raise StoreError(message, status_code=response.status_code)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def select(
        self, table: str, filters: Optional[Row] = None, order: Optional[str] = None
    ) -> list[Row]:
        params = {"select": "*", **_filter_params(filters)}
        if order:
            params["order"] = f"{order}.asc"
        return await self._request("GET", f"/rest/v1/{table}", params=params) or []

    async def insert(self, table: str, rows: Union[Row, list[Row]]) -> list[Row]:
        return (
            await self._request(
                "POST",
                f"/rest/v1/{table}",
                json=rows,
                headers={"Prefer": "return=representation"},
            )
            or []
        )

    async def update(self, table: str, values: Row, filters: Row) -> list[Row]:
        return (
            await self._request(
                "PATCH",
                f"/rest/v1/{table}",
                params=_filter_params(filters),
                json=values,
                headers={"Prefer": "return=representation"},
            )
            or []
        )

    async def delete(self, table: str, filters: Row) -> list[Row]:
        return (
            await self._request(
                "DELETE",
                f"/rest/v1/{table}",
                params=_filter_params(filters),
                headers={"Prefer": "return=representation"},
            )
            or []
        )

    async def rpc(self, name: str, params: Optional[Row] = None) -> Any:
        return await self._request("POST", f"/rest/v1/rpc/{name}", json=params or {})

    async def invoke_function(self, name: str, body: Optional[Row] = None) -> Any:
        return await self._request("POST", f"/functions/v1/{name}", json=body or {})
