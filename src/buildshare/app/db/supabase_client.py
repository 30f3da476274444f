"""Async PostgREST client for the share service's Supabase tables.

All share-service storage traffic goes through ``SupabaseClient``. It
authenticates with the service-role key, encodes column filters as
PostgREST query parameters, and turns HTTP failures into the
``SupabaseError`` hierarchy so routes can map them to a 503.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from .errors import (
    StorageUnavailable,
    SupabaseAuthError,
    SupabaseConflictError,
    SupabaseError,
    SupabaseNotFoundError,
)

logger = logging.getLogger(__name__)

# Shared pool for every client built without an explicit http_client.
_shared_async_client: httpx.AsyncClient | None = None


def _get_shared_async_client() -> httpx.AsyncClient:
    global _shared_async_client
    if _shared_async_client is None:
        _shared_async_client = httpx.AsyncClient()
    return _shared_async_client


def _reset_shared_async_client_for_tests() -> None:
    """Test helper: forget the shared client (does not close it)."""
    global _shared_async_client
    _shared_async_client = None


# Column -> value (equality) or column -> (operator, value).
Filters = Mapping[str, Any]

_ERRORS_BY_STATUS: dict[int, type[SupabaseError]] = {
    401: SupabaseAuthError,
    403: SupabaseAuthError,
    404: SupabaseNotFoundError,
    409: SupabaseConflictError,
}

_WRITE_METHODS = frozenset({"POST", "PATCH"})


def _encode_value(op: str, value: Any) -> str:
    if value is None:
        if op != "is":
            raise ValueError(f"{op} does not support None; use op='is'")
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _filter_params(filters: Filters | None) -> dict[str, str]:
    params: dict[str, str] = {}
    for column, condition in (filters or {}).items():
        if isinstance(condition, tuple) and len(condition) == 2:
            op, value = condition
        else:
            op, value = "eq", condition
        params[column] = f"{op}.{_encode_value(op, value)}"
    return params


class SupabaseClient:
    """Service-role PostgREST client returning plain row dicts.

    Args:
        supabase_url: Project URL, e.g. ``https://xyz.supabase.co``.
        service_role_key: Service-role API key. Never logged.
        schema: Postgres schema exposed through PostgREST.
        http_client: Injected transport (tests); defaults to a shared pool.
        timeout_seconds: Per-request timeout.
    """

    def __init__(
        self,
        *,
        supabase_url: str,
        service_role_key: str,
        schema: str = "public",
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        if not supabase_url:
            raise ValueError("supabase_url is required")
        if not service_role_key:
            raise ValueError("service_role_key is required")

        self._rest_url = f"{supabase_url.rstrip('/')}/rest/v1"
        self._key = service_role_key
        self._schema = schema
        self._timeout = float(timeout_seconds)
        self._http = http_client or _get_shared_async_client()

    def _headers(self, method: str, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._key,
            "Authorization": f"Bearer {self._key}",
            "Accept-Profile": self._schema,
        }
        if method in _WRITE_METHODS:
            headers["Content-Profile"] = self._schema
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        body: Any = None,
        prefer: str | None = None,
    ) -> httpx.Response:
        try:
            resp = await self._http.request(
                method,
                f"{self._rest_url}/{path}",
                params=params,
                json=body,
                headers=self._headers(method, prefer),
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning("PostgREST %s /%s failed: %s", method, path, type(exc).__name__)
            raise StorageUnavailable(
                status_code=503,
                message=f"{type(exc).__name__} talking to storage",
            ) from exc

        if resp.status_code >= 400:
            raise self._error_from(resp)
        return resp

    @staticmethod
    def _error_from(resp: httpx.Response) -> SupabaseError:
        payload: dict[str, Any] = {}
        try:
            decoded = resp.json()
        except ValueError:
            decoded = None
        if isinstance(decoded, dict):
            payload = decoded

        err_cls = _ERRORS_BY_STATUS.get(resp.status_code, SupabaseError)
        return err_cls(
            status_code=resp.status_code,
            message=payload.get("message") or resp.text,
            code=payload.get("code"),
            details=payload.get("details"),
            hint=payload.get("hint"),
        )

    @staticmethod
    def _rows(resp: httpx.Response, op: str) -> list[dict[str, Any]]:
        payload = resp.json()
        if not isinstance(payload, list):
            raise SupabaseError(status_code=500, message=f"expected list response from {op}")
        return payload

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        *,
        columns: str = "*",
        limit: int | None = None,
        order: str | None = None,
    ) -> list[dict[str, Any]]:
        params = _filter_params(filters)
        params["select"] = columns
        if limit is not None:
            params["limit"] = str(int(limit))
        if order:
            params["order"] = order
        resp = await self._request("GET", table, params=params)
        return self._rows(resp, "select")

    async def count(self, table: str, filters: Filters | None = None) -> int:
        """Exact row count from the ``Content-Range`` header; no rows are sent."""
        params = _filter_params(filters)
        params["select"] = "*"
        resp = await self._request("HEAD", table, params=params, prefer="count=exact")
        total = resp.headers.get("content-range", "").rpartition("/")[2]
        if not total.isdigit():
            raise SupabaseError(status_code=500, message="count response without a total")
        return int(total)

    async def insert(self, table: str, data: Mapping[str, Any]) -> list[dict[str, Any]]:
        resp = await self._request(
            "POST", table, body=dict(data), prefer="return=representation",
        )
        return self._rows(resp, "insert")

    async def update(
        self,
        table: str,
        filters: Filters,
        data: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        if not filters:
            # An unfiltered PATCH would touch every row.
            raise ValueError("update requires at least one filter")
        resp = await self._request(
            "PATCH",
            table,
            params=_filter_params(filters),
            body=dict(data),
            prefer="return=representation",
        )
        return self._rows(resp, "update")

    async def rpc(self, function_name: str, params: Mapping[str, Any] | None = None) -> Any:
        resp = await self._request("POST", f"rpc/{function_name}", body=dict(params or {}))
        if not resp.content:
            return None
        return resp.json()
