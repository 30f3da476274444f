"""Repository protocol interfaces for dependency injection.

These protocols define the contracts that concrete implementations (InMemory
for local dev, Supabase for non-local) must satisfy. The app factory accepts
any implementation that matches these protocols.

Rows are plain dicts keyed by column name; the sharing package converts
them to domain objects.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ShareRepository(Protocol):
    """``project_shares`` lifecycle."""

    async def get_active(self, share_id: str) -> dict[str, Any] | None: ...
    async def get(self, share_id: str) -> dict[str, Any] | None: ...
    async def increment_view_count(self, share_id: str) -> None: ...
    async def create(self, data: dict[str, Any]) -> dict[str, Any]: ...
    async def list_for_project(self, project_id: str, created_by: str) -> list[dict[str, Any]]: ...
    async def deactivate(self, share_id: str, created_by: str) -> dict[str, Any] | None: ...


@runtime_checkable
class CommentRepository(Protocol):
    """Append-only ``project_share_comments`` child collection."""

    async def append(self, share_id: str, data: dict[str, Any]) -> dict[str, Any]: ...
    async def list(self, share_id: str) -> list[dict[str, Any]]: ...
    async def count(self, share_id: str) -> int: ...


@runtime_checkable
class ProjectStore(Protocol):
    """Read-only project data, each call a filtered read with no side effects."""

    async def get_project(self, project_id: str) -> dict[str, Any] | None: ...
    async def list_phases(self, project_id: str) -> list[dict[str, Any]]: ...
    async def list_transactions(self, project_id: str, kind: str) -> list[dict[str, Any]]: ...
    async def list_materials(self, project_id: str) -> list[dict[str, Any]]: ...
    async def list_team_members(self, project_id: str) -> list[dict[str, Any]]: ...
    async def list_phase_photos(self, project_id: str) -> list[dict[str, Any]]: ...


@runtime_checkable
class RoleRepository(Protocol):
    """Profile role and role permission lookup."""

    async def get_profile(self, user_id: str) -> dict[str, Any] | None: ...
    async def get_role_permissions(self, role_name: str) -> list[str]: ...
