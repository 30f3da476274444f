"""Public share viewer endpoints.

  GET  /api/v1/shared/{share_id}            → resolve a share
  POST /api/v1/shared/{share_id}/unlock     → unlock a private share
  GET  /api/v1/shared/{share_id}/comments   → list viewer comments
  POST /api/v1/shared/{share_id}/comments   → leave a comment

These routes are anonymous: the share id is the capability. Private
shares take their password in the unlock body, or in the
``X-Share-Password`` header on the comment endpoints.

Declined requests raise ``ShareAccessError`` subclasses, rendered by the
application's error handlers as ``{'error': code, 'detail': message}``.

This module provides:
  ``create_share_access_router``: FastAPI router factory.
"""

from __future__ import annotations

from fastapi import APIRouter, Header, Request
from pydantic import BaseModel, Field

from .service import ANONYMOUS_CLIENT, ShareLinkService

PASSWORD_HEADER = 'X-Share-Password'


# ── Request schemas ──────────────────────────────────────────────────


class UnlockRequest(BaseModel):
    password: str = Field(default='', description='Share password')


class CommentRequest(BaseModel):
    # Emptiness and length are checked by the service so every
    # validation failure has the same error shape.
    author_name: str = Field(default='', description='Name shown next to the comment')
    comment: str = Field(default='', description='Comment text')


def client_key(request: Request) -> str:
    """Identify the caller for password-attempt throttling."""
    if request.client and request.client.host:
        return request.client.host
    return ANONYMOUS_CLIENT


# ── Route factory ────────────────────────────────────────────────────


def create_share_access_router(service: ShareLinkService) -> APIRouter:
    """Create the anonymous share viewer router.

    Args:
        service: Share link service.

    Returns:
        FastAPI router with the viewer routes.
    """
    router = APIRouter(prefix='/api/v1/shared', tags=['shared-projects'])

    @router.get('/{share_id}')
    async def resolve_share(share_id: str):
        """Return the shared project view.

        Error responses:
          - 400: Malformed share id.
          - 401: Password required.
          - 404: Unknown or deactivated share.
          - 410: Share expired.
        """
        resolved = await service.resolve(share_id)
        return resolved.to_dict()

    @router.post('/{share_id}/unlock')
    async def unlock_share(share_id: str, body: UnlockRequest, request: Request):
        """Check a private share's password and return the project view."""
        resolved = await service.authenticate(
            share_id, body.password, client_key=client_key(request),
        )
        return resolved.to_dict()

    @router.get('/{share_id}/comments')
    async def list_comments(
        share_id: str,
        request: Request,
        share_password: str | None = Header(default=None, alias=PASSWORD_HEADER),
    ):
        comments = await service.viewer_comments(
            share_id, password=share_password, client_key=client_key(request),
        )
        return {'comments': [c.to_dict() for c in comments]}

    @router.post('/{share_id}/comments', status_code=201)
    async def add_comment(
        share_id: str,
        body: CommentRequest,
        request: Request,
        share_password: str | None = Header(default=None, alias=PASSWORD_HEADER),
    ):
        """Append a comment. Each call adds a new one.

        Error responses:
          - 403: Comments are disabled for this share.
          - 422: Empty or over-long name or comment.
        """
        comment = await service.add_comment(
            share_id,
            body.author_name,
            body.comment,
            password=share_password,
            client_key=client_key(request),
        )
        return comment.to_dict()

    return router
