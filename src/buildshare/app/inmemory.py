"""In-memory repository implementations for local development and tests.

These are used when ENVIRONMENT=local. They satisfy the protocol interfaces
but store everything in dicts (no persistence across restarts).
"""

from __future__ import annotations

import copy
import itertools
import uuid
from datetime import datetime, timezone
from typing import Any

_TRANSACTION_KINDS = frozenset({"expense", "income"})


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryShareRepository:
    def __init__(self) -> None:
        self._shares: dict[str, dict[str, Any]] = {}
        # Test hook: make increment_view_count raise this exception.
        self.fail_increment_with: Exception | None = None

    async def get(self, share_id: str) -> dict[str, Any] | None:
        share = self._shares.get(share_id)
        return copy.deepcopy(share) if share else None

    async def get_active(self, share_id: str) -> dict[str, Any] | None:
        share = self._shares.get(share_id)
        if share is None or not share.get("is_active"):
            return None
        return copy.deepcopy(share)

    async def increment_view_count(self, share_id: str) -> None:
        if self.fail_increment_with is not None:
            raise self.fail_increment_with
        share = self._shares.get(share_id)
        if share is not None:
            share["view_count"] = int(share.get("view_count") or 0) + 1

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        share_id = data.get("id") or str(uuid.uuid4())
        share = {
            "is_active": True,
            "view_count": 0,
            "created_at": _now_iso(),
            **data,
            "id": share_id,
        }
        self._shares[share_id] = share
        return copy.deepcopy(share)

    async def list_for_project(self, project_id: str, created_by: str) -> list[dict[str, Any]]:
        rows = [
            copy.deepcopy(s) for s in self._shares.values()
            if s.get("project_id") == project_id and s.get("created_by") == created_by
        ]
        return sorted(rows, key=lambda s: s.get("created_at") or "", reverse=True)

    async def deactivate(self, share_id: str, created_by: str) -> dict[str, Any] | None:
        share = self._shares.get(share_id)
        if share is None or share.get("created_by") != created_by:
            return None
        share["is_active"] = False
        return copy.deepcopy(share)


class InMemoryCommentRepository:
    """Comments keyed by share id, ordered by an assigned sequence number."""

    def __init__(self) -> None:
        self._comments: dict[str, list[dict[str, Any]]] = {}
        self._seq = itertools.count(1)

    async def append(self, share_id: str, data: dict[str, Any]) -> dict[str, Any]:
        row = {**data, "share_id": share_id, "seq": next(self._seq)}
        self._comments.setdefault(share_id, []).append(row)
        return dict(row)

    async def list(self, share_id: str) -> list[dict[str, Any]]:
        rows = self._comments.get(share_id, [])
        return [dict(r) for r in sorted(rows, key=lambda r: r["seq"])]

    async def count(self, share_id: str) -> int:
        return len(self._comments.get(share_id, []))


class InMemoryProjectStore:
    """Project records plus per-project sub-resource collections."""

    def __init__(self) -> None:
        self.projects: dict[str, dict[str, Any]] = {}
        self.phases: list[dict[str, Any]] = []
        self.transactions: list[dict[str, Any]] = []
        self.materials: list[dict[str, Any]] = []
        self.users: list[dict[str, Any]] = []
        self.phase_photos: list[dict[str, Any]] = []
        # Every call is recorded so tests can assert what was (not) fetched.
        self.calls: list[tuple[str, str]] = []

    def _scoped(self, name: str, rows: list[dict[str, Any]], project_id: str) -> list[dict[str, Any]]:
        self.calls.append((name, project_id))
        return [dict(r) for r in rows if r.get("project_id") == project_id]

    async def get_project(self, project_id: str) -> dict[str, Any] | None:
        self.calls.append(("project", project_id))
        project = self.projects.get(project_id)
        return dict(project) if project else None

    async def list_phases(self, project_id: str) -> list[dict[str, Any]]:
        rows = self._scoped("phases", self.phases, project_id)
        return sorted(rows, key=lambda r: r.get("start_date") or "")

    async def list_transactions(self, project_id: str, kind: str) -> list[dict[str, Any]]:
        if kind not in _TRANSACTION_KINDS:
            raise ValueError(f"kind must be one of {sorted(_TRANSACTION_KINDS)}")
        rows = self._scoped(kind, self.transactions, project_id)
        return [r for r in rows if r.get("type") == kind]

    async def list_materials(self, project_id: str) -> list[dict[str, Any]]:
        return self._scoped("materials", self.materials, project_id)

    async def list_team_members(self, project_id: str) -> list[dict[str, Any]]:
        return self._scoped("team_members", self.users, project_id)

    async def list_phase_photos(self, project_id: str) -> list[dict[str, Any]]:
        return self._scoped("phase_photos", self.phase_photos, project_id)


class InMemoryRoleRepository:
    def __init__(self) -> None:
        self.profiles: dict[str, dict[str, Any]] = {}
        self.roles: dict[str, list[str]] = {}

    async def get_profile(self, user_id: str) -> dict[str, Any] | None:
        profile = self.profiles.get(user_id)
        return dict(profile) if profile else None

    async def get_role_permissions(self, role_name: str) -> list[str]:
        return list(self.roles.get(role_name, []))
