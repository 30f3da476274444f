"""ShareLinkService: resolve, unlock and comment on shared project views.

Access state machine (recomputed on every request, nothing is cached):

  malformed id          → InvalidIdentifier   (storage never queried)
  no active record      → ShareNotFound       (never existed == deactivated)
  active, past expiry   → ShareExpired
  active, valid         → view_count + 1, then
      private + password → PasswordRequired   (no project data fetched)
      otherwise          → ResolvedShare

  authenticate: same gates (a share can expire between load and unlock),
  then an empty password → ShareValidationError (not counted as an attempt),
  then attempt throttling, then password check → InvalidPassword | ResolvedShare.
  The KDF runs on the default executor, off the event loop.

The view-count bump is telemetry: its failure is logged and counted but
never blocks access. Storage errors anywhere else propagate unchanged.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable

from buildshare.app.protocols import CommentRepository, ProjectStore, ShareRepository
from buildshare.observability.metrics import (
    SHARE_COMMENTS_TOTAL,
    SHARE_RESOLUTIONS_TOTAL,
    SHARE_VIEW_INCREMENT_FAILURES_TOTAL,
)

from .attempts import PasswordAttemptLimiter
from .audit import (
    InMemoryShareAuditEmitter,
    ShareAuditEmitter,
    emit_share_accessed,
    emit_share_commented,
    emit_share_denied,
    redact_share_id,
)
from .errors import (
    CommentsDisabled,
    InvalidIdentifier,
    InvalidPassword,
    PasswordRequired,
    ShareAccessError,
    ShareExpired,
    ShareNotFound,
    ShareValidationError,
)
from .model import (
    COMMENTS_KEY,
    Clock,
    ProjectView,
    ResolvedShare,
    ShareComment,
    ShareLink,
    SystemClock,
    is_valid_share_id,
)
from .passwords import verify_share_password_async

logger = logging.getLogger(__name__)

# Base metadata released with every view, whatever the disclosure flags.
PROJECT_FIELDS = (
    'id', 'name', 'description', 'status', 'location',
    'start_date', 'end_date', 'created_at',
)

ANONYMOUS_CLIENT = 'anonymous'


class ShareLinkService:
    """Serves filtered, time-limited, optionally password-gated project views.

    Args:
        share_repo: Share record storage.
        comment_repo: Append-only comment storage.
        project_store: Read-only project data.
        audit_emitter: Sink for share audit events.
        clock: Time source for expiry checks and comment timestamps.
        attempt_limiter: Failed-password throttle.
        id_factory: Generates comment ids.
        author_max_length / comment_max_length: Comment field limits.
    """

    def __init__(
        self,
        share_repo: ShareRepository,
        comment_repo: CommentRepository,
        project_store: ProjectStore,
        *,
        audit_emitter: ShareAuditEmitter | None = None,
        clock: Clock | None = None,
        attempt_limiter: PasswordAttemptLimiter | None = None,
        id_factory: Callable[[], Any] = uuid.uuid4,
        author_max_length: int = 100,
        comment_max_length: int = 2000,
    ) -> None:
        self._shares = share_repo
        self._comments = comment_repo
        self._projects = project_store
        self._audit = audit_emitter or InMemoryShareAuditEmitter()
        self._clock = clock or SystemClock()
        self._limiter = attempt_limiter or PasswordAttemptLimiter()
        self._id_factory = id_factory
        self._author_max_length = author_max_length
        self._comment_max_length = comment_max_length

    # ── Gates ────────────────────────────────────────────────────────

    async def _load(self, share_id: str) -> ShareLink:
        """Format, activity and expiry checks shared by every operation."""
        if not is_valid_share_id(share_id):
            raise InvalidIdentifier()
        row = await self._shares.get_active(share_id)
        if row is None:
            raise ShareNotFound()
        share = ShareLink.from_row(row)
        if not share.is_active:
            raise ShareNotFound()
        if share.is_expired(self._clock.now()):
            raise ShareExpired(project_id=share.project_id)
        return share

    async def _bump_view_count(self, share: ShareLink) -> None:
        try:
            await self._shares.increment_view_count(share.id)
        except Exception:
            SHARE_VIEW_INCREMENT_FAILURES_TOTAL.inc()
            logger.warning(
                'View count increment failed for share %s',
                redact_share_id(share.id),
                exc_info=True,
            )
            return
        share.view_count += 1

    async def _deny(
        self,
        share_id: str,
        exc: ShareAccessError,
        project_id: str = '',
    ) -> None:
        SHARE_RESOLUTIONS_TOTAL.labels(outcome=exc.code).inc()
        if isinstance(exc, (InvalidIdentifier, ShareValidationError)):
            # Malformed input, not an access decision: kept out of the audit trail.
            return
        await emit_share_denied(
            self._audit,
            share_id=share_id,
            detail=exc.code,
            project_id=project_id or exc.project_id,
        )

    async def _check_password(self, share: ShareLink, password: str, client_key: str) -> None:
        self._limiter.check(share.id, client_key)
        if not await verify_share_password_async(password, share.password_hash):
            self._limiter.record_failure(share.id, client_key)
            raise InvalidPassword()
        self._limiter.reset(share.id, client_key)

    async def _release(self, share: ShareLink) -> ResolvedShare:
        view = await self.disclose(share)
        SHARE_RESOLUTIONS_TOTAL.labels(outcome='resolved').inc()
        await emit_share_accessed(self._audit, share_id=share.id, project_id=share.project_id)
        return ResolvedShare(share=share, view=view)

    # ── Public operations ────────────────────────────────────────────

    async def resolve(self, share_id: str) -> ResolvedShare:
        """Validate a share and release its view, or raise an access error."""
        share: ShareLink | None = None
        try:
            share = await self._load(share_id)
            await self._bump_view_count(share)
            if share.requires_password:
                raise PasswordRequired()
            return await self._release(share)
        except ShareAccessError as exc:
            await self._deny(share_id, exc, share.project_id if share else '')
            raise

    async def authenticate(
        self,
        share_id: str,
        password: str,
        *,
        client_key: str = ANONYMOUS_CLIENT,
    ) -> ResolvedShare:
        """Check the password of a private share and release its view."""
        share: ShareLink | None = None
        try:
            share = await self._load(share_id)
            if share.requires_password:
                if not password:
                    raise ShareValidationError('password', 'Please enter a password.')
                await self._check_password(share, password, client_key)
            return await self._release(share)
        except ShareAccessError as exc:
            await self._deny(share_id, exc, share.project_id if share else '')
            raise

    async def disclose(self, share: ShareLink) -> ProjectView:
        """Build the project view allowed by ``share.options``.

        Disabled collections are left out of the view entirely and are
        never fetched.
        """
        project = await self._projects.get_project(share.project_id)
        if project is None:
            raise ShareNotFound()

        pid = share.project_id
        options = share.options
        fetchers: dict[str, Callable[[], Awaitable[list[dict[str, Any]]]]] = {}
        if options.phaseDetails:
            fetchers['phases'] = lambda: self._projects.list_phases(pid)
        if options.expenseDetails:
            fetchers['expenses'] = lambda: self._projects.list_transactions(pid, 'expense')
        if options.incomeDetails:
            fetchers['income'] = lambda: self._projects.list_transactions(pid, 'income')
        if options.materialsDetails:
            fetchers['materials'] = lambda: self._projects.list_materials(pid)
        if options.phasePhotos:
            fetchers['phase_photos'] = lambda: self._projects.list_phase_photos(pid)
        if options.teamMembers:
            fetchers['team_members'] = lambda: self._projects.list_team_members(pid)

        results = await asyncio.gather(*(fetch() for fetch in fetchers.values()))
        collections = {key: list(rows or []) for key, rows in zip(fetchers, results)}

        if options.allowComments:
            comments = await self.list_comments(share)
            collections[COMMENTS_KEY] = [c.to_dict() for c in comments]

        return ProjectView(
            project={k: project.get(k) for k in PROJECT_FIELDS},
            collections=collections,
        )

    async def list_comments(self, share: ShareLink) -> list[ShareComment]:
        """Comments of ``share`` in insertion order (a one-shot snapshot)."""
        rows = await self._comments.list(share.id)
        return [ShareComment.from_row(r) for r in rows]

    async def viewer_comments(
        self,
        share_id: str,
        *,
        password: str | None = None,
        client_key: str = ANONYMOUS_CLIENT,
    ) -> list[ShareComment]:
        """Comments as seen through the public share surface."""
        share = await self._load_for_comments(share_id, password, client_key)
        return await self.list_comments(share)

    async def add_comment(
        self,
        share_id: str,
        author_name: str,
        comment_text: str,
        *,
        password: str | None = None,
        client_key: str = ANONYMOUS_CLIENT,
    ) -> ShareComment:
        """Append a viewer comment. Not idempotent: every call adds one."""
        try:
            share = await self._load_for_comments(share_id, password, client_key)
        except CommentsDisabled:
            SHARE_COMMENTS_TOTAL.labels(outcome='disabled').inc()
            raise

        author = (author_name or '').strip()
        text = (comment_text or '').strip()
        try:
            if not author:
                raise ShareValidationError('author_name', 'Please enter your name.')
            if not text:
                raise ShareValidationError('comment', 'Please enter a comment.')
            if len(author) > self._author_max_length:
                raise ShareValidationError(
                    'author_name',
                    f'Name must be at most {self._author_max_length} characters.',
                )
            if len(text) > self._comment_max_length:
                raise ShareValidationError(
                    'comment',
                    f'Comment must be at most {self._comment_max_length} characters.',
                )
        except ShareValidationError:
            SHARE_COMMENTS_TOTAL.labels(outcome='invalid').inc()
            raise

        row = await self._comments.append(share.id, {
            'id': str(self._id_factory()),
            'author_name': author,
            'comment': text,
            'created_at': self._clock.now().isoformat(),
        })
        SHARE_COMMENTS_TOTAL.labels(outcome='added').inc()
        await emit_share_commented(self._audit, share_id=share.id, project_id=share.project_id)
        return ShareComment.from_row(row)

    async def _load_for_comments(
        self,
        share_id: str,
        password: str | None,
        client_key: str,
    ) -> ShareLink:
        share = await self._load(share_id)
        # Comments belong to the gated view of a private share.
        if share.requires_password:
            if not password:
                raise PasswordRequired()
            await self._check_password(share, password, client_key)
        if not share.options.allowComments:
            raise CommentsDisabled()
        return share
