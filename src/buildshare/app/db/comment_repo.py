"""Supabase-backed CommentRepository implementation.

Comments are rows of ``project_share_comments`` keyed by ``share_id``, with
a ``seq bigserial`` column assigned by Postgres. Appending is one INSERT,
so concurrent viewers cannot overwrite each other's comments, and listing
orders by ``seq`` to reproduce insertion order.
"""

from __future__ import annotations

from typing import Any

from .supabase_client import SupabaseClient

COMMENT_COLUMNS = "id,share_id,seq,author_name,comment,created_at"


class SupabaseCommentRepository:
    """CommentRepository backed by project_share_comments via PostgREST."""

    TABLE = "project_share_comments"

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    async def append(self, share_id: str, data: dict[str, Any]) -> dict[str, Any]:
        # seq is never sent: the server assigns it.
        row = {k: v for k, v in data.items() if k != "seq"}
        row["share_id"] = share_id
        rows = await self._client.insert(self.TABLE, row)
        return rows[0]

    async def list(self, share_id: str) -> list[dict[str, Any]]:
        return await self._client.select(
            self.TABLE,
            filters={"share_id": ("eq", share_id)},
            columns=COMMENT_COLUMNS,
            order="seq.asc",
        )

    async def count(self, share_id: str) -> int:
        return await self._client.count(self.TABLE, filters={"share_id": ("eq", share_id)})
