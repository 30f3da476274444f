"""Share-link management endpoints for project owners.

  POST   /api/v1/projects/{project_id}/shares   → create a share link
  GET    /api/v1/projects/{project_id}/shares   → list the caller's shares
  DELETE /api/v1/shares/{share_id}              → deactivate a share
  GET    /api/v1/shares/{share_id}/comments     → read viewer comments

Auth contract:
  - Every endpoint requires a verified Supabase identity (AuthIdentity).
  - The caller's role permissions are loaded once per request into a
    ``RequestContext`` and passed to ``ShareManager``.
  - Missing permissions → 403 forbidden.

This module provides:
  ``create_share_router``: FastAPI router factory with injected deps.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from buildshare.app.protocols import RoleRepository
from buildshare.app.security.auth_guard import get_auth_identity
from buildshare.app.security.permissions import RequestContext, resolve_request_context
from buildshare.app.security.token_verify import AuthIdentity

from .management import ShareManager, share_summary


# ── Request schemas ──────────────────────────────────────────────────


class CreateShareRequest(BaseModel):
    """Request body for share link creation."""

    share_type: str = Field(default='public', description='public or private')
    share_options: dict[str, Any] | None = Field(
        default=None, description='Disclosure flags; allowComments defaults to true',
    )
    password: str | None = Field(default=None, description='Required for private shares')
    expires_in: int | None = Field(default=None, description='Lifetime in expiry_unit')
    expiry_unit: str = Field(default='hours', description='minutes or hours')


# ── Route factory ────────────────────────────────────────────────────


def create_share_router(manager: ShareManager, role_repo: RoleRepository) -> APIRouter:
    """Create the owner share-management router.

    Args:
        manager: Share lifecycle operations.
        role_repo: Source of the caller's role permissions.

    Returns:
        FastAPI router with share management routes.
    """
    router = APIRouter(prefix='/api/v1', tags=['share-links'])

    async def get_request_context(
        identity: AuthIdentity = Depends(get_auth_identity),
    ) -> RequestContext:
        return await resolve_request_context(identity, role_repo)

    @router.post('/projects/{project_id}/shares', status_code=201)
    async def create_share(
        project_id: str,
        body: CreateShareRequest,
        ctx: RequestContext = Depends(get_request_context),
    ):
        """Create a share link. Returns the record and its public URL."""
        created = await manager.create_share(
            ctx,
            project_id,
            body.share_type,
            body.share_options,
            password=body.password,
            expires_in=body.expires_in,
            expiry_unit=body.expiry_unit,
        )
        return created.to_dict()

    @router.get('/projects/{project_id}/shares')
    async def list_shares(
        project_id: str,
        ctx: RequestContext = Depends(get_request_context),
    ):
        listings = await manager.list_shares(ctx, project_id)
        return {'shares': [l.to_dict() for l in listings]}

    @router.delete('/shares/{share_id}')
    async def deactivate_share(
        share_id: str,
        ctx: RequestContext = Depends(get_request_context),
    ):
        """Deactivate a share. Viewers see it as not found from then on."""
        share = await manager.deactivate_share(ctx, share_id)
        return share_summary(share)

    @router.get('/shares/{share_id}/comments')
    async def owner_comments(
        share_id: str,
        ctx: RequestContext = Depends(get_request_context),
    ):
        comments = await manager.owner_comments(ctx, share_id)
        return {'comments': [c.to_dict() for c in comments]}

    return router
