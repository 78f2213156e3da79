"""REST table backend speaking the PostgREST dialect used by Supabase."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from contentsync.exceptions import (
    BackendQueryError,
    BackendUnavailableError,
    TableNotFoundError,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

logger = logging.getLogger(__name__)

_PAGE_SIZE = 1000
# PostgREST / Postgres codes for a relation missing from the schema cache or database.
_MISSING_TABLE_CODES = frozenset({"42P01", "PGRST205"})


def _eq_filters(filters: Mapping[str, Any] | None) -> dict[str, str]:
    params: dict[str, str] = {}
    for key, value in (filters or {}).items():
        params[key] = "is.null" if value is None else f"eq.{value}"
    return params


def _content_range_total(header: str | None) -> int:
    """Parse the total from a ``Content-Range: 0-24/25`` header."""
    if not header or "/" not in header:
        return 0
    total = header.rsplit("/", 1)[-1]
    return int(total) if total.isdigit() else 0


class RestBackend:
    """TableBackend implementation over a PostgREST HTTP API.

    Raw statements go through the ``exec_sql`` RPC function, which must be
    installed in the target database.
    """

    mode = "rest"
    dialect_name = "postgresql"

    def __init__(
        self,
        base_url: str,
        service_key: str,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url or not service_key:
            raise BackendUnavailableError(
                "Supabase configuration missing: set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY"
            )
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=f"{self.base_url}/rest/v1",
            headers={
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
            },
            timeout=timeout,
            transport=transport,
        )

    async def _request(
        self,
        method: str,
        url: str,
        table: str,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise BackendUnavailableError(f"REST backend unreachable: {exc}") from exc
        if response.status_code >= 400:
            self._raise_for_error(table, response, is_rpc=url.startswith("/rpc/"))
        return response

    @staticmethod
    def _raise_for_error(table: str, response: httpx.Response, *, is_rpc: bool) -> None:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        code = str(body.get("code") or "")
        message = str(body.get("message") or response.text[:200])

        if code in _MISSING_TABLE_CODES or (response.status_code == 404 and not is_rpc):
            raise TableNotFoundError(table)
        if response.status_code >= 500:
            raise BackendUnavailableError(
                f"REST backend error (HTTP {response.status_code}): {message}"
            )
        raise BackendQueryError(
            f"Request on {table} failed (HTTP {response.status_code}): {message}"
        )

    async def select(
        self,
        table: str,
        columns: Sequence[str] | None = None,
        filters: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"select": ",".join(columns) if columns else "*"}
        params.update(_eq_filters(filters))

        rows: list[dict[str, Any]] = []
        offset = 0
        while True:
            page_params = {**params, "limit": _PAGE_SIZE, "offset": offset}
            response = await self._request("GET", f"/{table}", table, params=page_params)
            page = response.json()
            rows.extend(page)
            if len(page) < _PAGE_SIZE:
                logger.debug("Fetched %d rows from %s", len(rows), table)
                return rows
            offset += _PAGE_SIZE

    async def upsert(
        self,
        table: str,
        row: Mapping[str, Any],
        conflict_keys: Sequence[str],
    ) -> None:
        await self._request(
            "POST",
            f"/{table}",
            table,
            params={"on_conflict": ",".join(conflict_keys)},
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
            json=[dict(row)],
        )

    async def delete(self, table: str, filters: Mapping[str, Any]) -> int:
        if not filters:
            raise ValueError("Refusing to delete without filters")
        response = await self._request(
            "DELETE",
            f"/{table}",
            table,
            params=_eq_filters(filters),
            headers={"Prefer": "return=representation"},
        )
        deleted = response.json() if response.content else []
        return len(deleted)

    async def execute(self, statement: str) -> None:
        await self._request("POST", "/rpc/exec_sql", "exec_sql", json={"sql": statement})

    async def count(self, table: str) -> int:
        response = await self._request(
            "HEAD",
            f"/{table}",
            table,
            params={"select": "*"},
            headers={"Prefer": "count=exact"},
        )
        return _content_range_total(response.headers.get("Content-Range"))

    async def close(self) -> None:
        await self.client.aclose()
