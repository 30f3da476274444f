"""Owner-side share management: create, list, deactivate, read comments.

Every operation takes the caller's ``RequestContext`` and checks its
permissions before touching storage. Owners only ever see and change the
shares they created themselves.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Mapping

from buildshare.app.protocols import CommentRepository, ProjectStore, ShareRepository
from buildshare.app.security.permissions import Permission, RequestContext

from .audit import (
    InMemoryShareAuditEmitter,
    ShareAuditEmitter,
    emit_share_created,
    emit_share_deactivated,
    redact_share_id,
)
from .errors import ProjectNotFound, ShareNotFound, ShareValidationError
from .model import (
    DISCLOSURE_KEYS,
    Clock,
    ShareComment,
    ShareLink,
    ShareOptions,
    ShareType,
    SystemClock,
    is_valid_share_id,
)
from .passwords import hash_share_password_async

logger = logging.getLogger(__name__)

EXPIRY_UNITS = {
    'minutes': timedelta(minutes=1),
    'hours': timedelta(hours=1),
}
MIN_EXPIRY = timedelta(minutes=1)


@dataclass
class CreatedShare:
    share: ShareLink
    url: str

    def to_dict(self) -> dict[str, Any]:
        return {**share_summary(self.share), 'url': self.url}


@dataclass
class ShareListing:
    share: ShareLink
    url: str
    is_expired: bool
    comment_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            **share_summary(self.share),
            'url': self.url,
            'is_expired': self.is_expired,
            'comment_count': self.comment_count,
        }


def share_summary(share: ShareLink) -> dict[str, Any]:
    """Owner-facing view of a share record (never includes the password hash)."""
    return {
        'id': share.id,
        'project_id': share.project_id,
        'share_type': share.share_type.value,
        'expires_at': share.expires_at.isoformat(),
        'share_options': share.options.to_dict(),
        'is_active': share.is_active,
        'view_count': share.view_count,
        'created_at': share.created_at.isoformat() if share.created_at else None,
    }


def _parse_options(raw: ShareOptions | Mapping[str, Any] | None) -> ShareOptions:
    if isinstance(raw, ShareOptions):
        return raw
    data = dict(raw or {})
    data.setdefault('allowComments', True)
    return ShareOptions.from_dict(data)


class ShareManager:
    """Share lifecycle operations for project owners.

    Args:
        share_repo: Share record storage.
        comment_repo: Comment storage (read-only here).
        project_store: Used to check the project exists.
        share_url: Builds the public URL of a share id.
        default_expiry_hours: Lifetime used when the caller gives none.
        max_expiry_hours: Upper bound on a share's lifetime.
        audit_emitter: Sink for share audit events.
        clock: Time source for expiry computation.
    """

    def __init__(
        self,
        share_repo: ShareRepository,
        comment_repo: CommentRepository,
        project_store: ProjectStore,
        *,
        share_url: Callable[[str], str],
        default_expiry_hours: int = 24,
        max_expiry_hours: int = 720,
        audit_emitter: ShareAuditEmitter | None = None,
        clock: Clock | None = None,
        id_factory: Callable[[], Any] = uuid.uuid4,
    ) -> None:
        self._shares = share_repo
        self._comments = comment_repo
        self._projects = project_store
        self._share_url = share_url
        self._default_expiry_hours = default_expiry_hours
        self._max_expiry = timedelta(hours=max_expiry_hours)
        self._audit = audit_emitter or InMemoryShareAuditEmitter()
        self._clock = clock or SystemClock()
        self._id_factory = id_factory

    async def _owned_share(self, ctx: RequestContext, share_id: str) -> ShareLink:
        if not is_valid_share_id(share_id):
            raise ShareNotFound()
        row = await self._shares.get(share_id)
        if row is None or row.get('created_by') != ctx.user_id:
            raise ShareNotFound()
        return ShareLink.from_row(row)

    async def create_share(
        self,
        ctx: RequestContext,
        project_id: str,
        share_type: ShareType | str,
        options: ShareOptions | Mapping[str, Any] | None,
        password: str | None = None,
        expires_in: int | None = None,
        expiry_unit: str = 'hours',
    ) -> CreatedShare:
        ctx.require(Permission.EDIT_PROJECT)

        try:
            share_type = ShareType(share_type)
        except ValueError:
            raise ShareValidationError('share_type', 'Share type must be public or private.')
        share_options = _parse_options(options)
        if not share_options.discloses_anything:
            raise ShareValidationError(
                'share_options',
                f'Select at least one of: {", ".join(DISCLOSURE_KEYS)}.',
            )
        unit = EXPIRY_UNITS.get(expiry_unit)
        if unit is None:
            raise ShareValidationError('expiry_unit', 'Expiry unit must be minutes or hours.')

        password_hash = None
        if share_type is ShareType.PRIVATE:
            if not password or not password.strip():
                raise ShareValidationError('password', 'A password is required for private shares.')
            password_hash = await hash_share_password_async(password)

        if await self._projects.get_project(project_id) is None:
            raise ProjectNotFound()

        if expires_in is None:
            expires_in = self._default_expiry_hours
            unit = EXPIRY_UNITS['hours']
        # Bound the count first: timedelta overflows long before int does.
        expires_in = min(max(expires_in, 0), self._max_expiry // unit)
        lifetime = min(max(unit * expires_in, MIN_EXPIRY), self._max_expiry)
        now = self._clock.now()
        share = ShareLink(
            id=str(self._id_factory()),
            project_id=project_id,
            share_type=share_type,
            expires_at=now + lifetime,
            options=share_options,
            password_hash=password_hash,
            is_active=True,
            view_count=0,
            created_by=ctx.user_id,
            created_at=now,
        )
        row = await self._shares.create(share.to_row())
        created = ShareLink.from_row(row)
        logger.info(
            'Created %s share %s for project %s',
            created.share_type.value, redact_share_id(created.id), project_id,
        )
        await emit_share_created(
            self._audit,
            share_id=created.id,
            project_id=project_id,
            user_id=ctx.user_id,
            share_type=created.share_type.value,
        )
        return CreatedShare(share=created, url=self._share_url(created.id))

    async def list_shares(self, ctx: RequestContext, project_id: str) -> list[ShareListing]:
        ctx.require(Permission.VIEW_PROJECTS)
        now = self._clock.now()
        rows = await self._shares.list_for_project(project_id, ctx.user_id)
        listings = []
        for row in rows:
            share = ShareLink.from_row(row)
            listings.append(ShareListing(
                share=share,
                url=self._share_url(share.id),
                is_expired=share.is_expired(now),
                comment_count=await self._comments.count(share.id),
            ))
        return listings

    async def deactivate_share(self, ctx: RequestContext, share_id: str) -> ShareLink:
        ctx.require(Permission.EDIT_PROJECT)
        share = await self._owned_share(ctx, share_id)
        row = await self._shares.deactivate(share.id, ctx.user_id)
        if row is None:
            raise ShareNotFound()
        await emit_share_deactivated(
            self._audit, share_id=share.id, project_id=share.project_id, user_id=ctx.user_id,
        )
        return ShareLink.from_row(row)

    async def owner_comments(self, ctx: RequestContext, share_id: str) -> list[ShareComment]:
        """Comments on one of the caller's shares, newest first."""
        ctx.require(Permission.VIEW_PROJECTS)
        share = await self._owned_share(ctx, share_id)
        rows = await self._comments.list(share.id)
        return [ShareComment.from_row(r) for r in reversed(rows)]
