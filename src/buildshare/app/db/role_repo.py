"""Supabase-backed RoleRepository: profile role and its permission list."""

from __future__ import annotations

from typing import Any

from .supabase_client import SupabaseClient


class SupabaseRoleRepository:
    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    async def get_profile(self, user_id: str) -> dict[str, Any] | None:
        rows = await self._client.select(
            "profiles",
            filters={"id": ("eq", user_id)},
            columns="id,full_name,role,email",
            limit=1,
        )
        return rows[0] if rows else None

    async def get_role_permissions(self, role_name: str) -> list[str]:
        # Several rows may share a name; the newest active one wins.
        rows = await self._client.select(
            "roles",
            filters={
                "role_name": ("eq", role_name),
                "is_active": ("is", True),
            },
            columns="permissions",
            order="created_at.desc",
            limit=1,
        )
        if not rows:
            return []
        permissions = rows[0].get("permissions") or []
        return [str(p) for p in permissions]
