"""Share access error taxonomy.

Every outcome that declines access is terminal and user-facing. Messages
are deliberately generic: none of them reveals whether a project or share
"almost" existed, or which part of a credential was wrong.

Storage failures are not part of this hierarchy (see ``db.errors``).
"""

from __future__ import annotations


class ShareAccessError(Exception):
    """Base class for declined share operations."""

    code = 'share_error'
    status_code = 400
    detail = 'Share request declined.'

    def __init__(self, detail: str | None = None, *, project_id: str = '') -> None:
        if detail is not None:
            self.detail = detail
        # Project of the share that was declined, when it was loaded.
        self.project_id = project_id
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {'error': self.code, 'detail': self.detail}


class InvalidIdentifier(ShareAccessError):
    code = 'invalid_share_id'
    status_code = 400
    detail = 'Invalid share link.'


class ShareNotFound(ShareAccessError):
    """No active share with that id (never existed and deactivated look alike)."""

    code = 'share_not_found'
    status_code = 404
    detail = 'Share link not found or has expired.'


class ShareExpired(ShareAccessError):
    code = 'share_expired'
    status_code = 410
    detail = 'This share link has expired.'


class PasswordRequired(ShareAccessError):
    code = 'password_required'
    status_code = 401
    detail = 'This project is password protected.'


class InvalidPassword(ShareAccessError):
    code = 'invalid_password'
    status_code = 401
    detail = 'Incorrect password.'


class TooManyAttempts(ShareAccessError):
    code = 'too_many_attempts'
    status_code = 429
    detail = 'Too many incorrect passwords. Try again later.'

    def __init__(self, retry_after: float) -> None:
        self.retry_after = retry_after
        super().__init__()

    def to_dict(self) -> dict:
        return {**super().to_dict(), 'retry_after': int(self.retry_after) + 1}


class CommentsDisabled(ShareAccessError):
    code = 'comments_disabled'
    status_code = 403
    detail = 'Comments are disabled for this share link.'


class ShareValidationError(ShareAccessError):
    code = 'validation_error'
    status_code = 422

    def __init__(self, field: str, detail: str) -> None:
        self.field = field
        super().__init__(detail)

    def to_dict(self) -> dict:
        return {**super().to_dict(), 'field': self.field}


class PermissionDenied(ShareAccessError):
    code = 'forbidden'
    status_code = 403
    detail = 'You do not have permission to perform this action.'


class ProjectNotFound(ShareAccessError):
    code = 'project_not_found'
    status_code = 404
    detail = 'Project not found.'
