"""Supabase-backed ShareRepository implementation.

Persists share records in ``project_shares`` via PostgREST.

Key behaviors:
  - Lookups used by viewers always filter ``is_active = true``.
  - The view count is bumped by the ``increment_share_view_count`` RPC, a
    single ``UPDATE ... SET view_count = view_count + 1`` on the server, so
    concurrent viewers never lose increments.
  - Deactivation is a soft-disable (``is_active = false``); rows are never
    deleted by this service.
  - Owner operations are scoped to ``created_by``.
"""

from __future__ import annotations

from typing import Any

from .supabase_client import SupabaseClient

SHARE_COLUMNS = (
    "id,project_id,share_type,password_hash,expires_at,share_options,"
    "is_active,view_count,created_by,created_at"
)


class SupabaseShareRepository:
    """ShareRepository backed by project_shares via PostgREST."""

    TABLE = "project_shares"
    INCREMENT_RPC = "increment_share_view_count"

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    async def get(self, share_id: str) -> dict[str, Any] | None:
        rows = await self._client.select(
            self.TABLE,
            filters={"id": ("eq", share_id)},
            columns=SHARE_COLUMNS,
            limit=1,
        )
        return rows[0] if rows else None

    async def get_active(self, share_id: str) -> dict[str, Any] | None:
        rows = await self._client.select(
            self.TABLE,
            filters={
                "id": ("eq", share_id),
                "is_active": ("is", True),
            },
            columns=SHARE_COLUMNS,
            limit=1,
        )
        return rows[0] if rows else None

    async def increment_view_count(self, share_id: str) -> None:
        await self._client.rpc(self.INCREMENT_RPC, {"share_id": share_id})

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        rows = await self._client.insert(self.TABLE, data)
        return rows[0]

    async def list_for_project(self, project_id: str, created_by: str) -> list[dict[str, Any]]:
        return await self._client.select(
            self.TABLE,
            filters={
                "project_id": ("eq", project_id),
                "created_by": ("eq", created_by),
            },
            columns=SHARE_COLUMNS,
            order="created_at.desc",
        )

    async def deactivate(self, share_id: str, created_by: str) -> dict[str, Any] | None:
        rows = await self._client.update(
            self.TABLE,
            filters={
                "id": ("eq", share_id),
                "created_by": ("eq", created_by),
            },
            data={"is_active": False},
        )
        return rows[0] if rows else None
