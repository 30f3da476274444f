"""Supabase-backed ProjectStore: read-only project data for share views.

Column lists are explicit so a share never discloses more than the
shared-project page shows (e.g. no owner ids or internal notes).
"""

from __future__ import annotations

from typing import Any

from .supabase_client import SupabaseClient

PROJECT_COLUMNS = "id,name,description,status,location,start_date,end_date,created_at"
PHASE_COLUMNS = "id,name,start_date,end_date,status,estimated_cost,contractor_name"
TRANSACTION_COLUMNS = "id,amount,gst_amount,category,date,phases!inner(id,name)"
MATERIAL_COLUMNS = "id,name,unit_cost,qty_required,status"
TEAM_MEMBER_COLUMNS = "id,name,email,role_id,status,active"
PHASE_PHOTO_COLUMNS = "id,photo_url,created_at,phases!inner(id,name)"

TRANSACTION_KINDS = frozenset({"expense", "income"})


class SupabaseProjectStore:
    """ProjectStore backed by the projects/phases/expenses/... tables."""

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    async def get_project(self, project_id: str) -> dict[str, Any] | None:
        rows = await self._client.select(
            "projects",
            filters={"id": ("eq", project_id)},
            columns=PROJECT_COLUMNS,
            limit=1,
        )
        return rows[0] if rows else None

    async def list_phases(self, project_id: str) -> list[dict[str, Any]]:
        return await self._client.select(
            "phases",
            filters={"project_id": ("eq", project_id)},
            columns=PHASE_COLUMNS,
            order="start_date.asc",
        )

    async def list_transactions(self, project_id: str, kind: str) -> list[dict[str, Any]]:
        if kind not in TRANSACTION_KINDS:
            raise ValueError(f"kind must be one of {sorted(TRANSACTION_KINDS)}")
        return await self._client.select(
            "expenses",
            filters={
                "project_id": ("eq", project_id),
                "type": ("eq", kind),
            },
            columns=TRANSACTION_COLUMNS,
        )

    async def list_materials(self, project_id: str) -> list[dict[str, Any]]:
        return await self._client.select(
            "materials",
            filters={"project_id": ("eq", project_id)},
            columns=MATERIAL_COLUMNS,
        )

    async def list_team_members(self, project_id: str) -> list[dict[str, Any]]:
        return await self._client.select(
            "users",
            filters={"project_id": ("eq", project_id)},
            columns=TEAM_MEMBER_COLUMNS,
        )

    async def list_phase_photos(self, project_id: str) -> list[dict[str, Any]]:
        return await self._client.select(
            "phase_photos",
            filters={"project_id": ("eq", project_id)},
            columns=PHASE_PHOTO_COLUMNS,
        )
