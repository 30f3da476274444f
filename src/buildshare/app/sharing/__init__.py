"""Project share links: viewer access, comments and audit.

The owner-side ``management`` and ``routes`` modules depend on
``buildshare.app.security`` and are imported from their own modules.
"""

from .access import create_share_access_router
from .audit import (
    InMemoryShareAuditEmitter,
    LoggingShareAuditEmitter,
    ShareAuditEmitter,
    ShareAuditEvent,
    redact_share_id,
)
from .errors import (
    CommentsDisabled,
    InvalidIdentifier,
    InvalidPassword,
    PasswordRequired,
    PermissionDenied,
    ProjectNotFound,
    ShareAccessError,
    ShareExpired,
    ShareNotFound,
    ShareValidationError,
    TooManyAttempts,
)
from .model import (
    ProjectView,
    ResolvedShare,
    ShareComment,
    ShareLink,
    ShareOptions,
    ShareType,
)
from .service import ShareLinkService

__all__ = [
    'CommentsDisabled',
    'InMemoryShareAuditEmitter',
    'InvalidIdentifier',
    'InvalidPassword',
    'LoggingShareAuditEmitter',
    'PasswordRequired',
    'PermissionDenied',
    'ProjectNotFound',
    'ProjectView',
    'ResolvedShare',
    'ShareAccessError',
    'ShareAuditEmitter',
    'ShareAuditEvent',
    'ShareComment',
    'ShareExpired',
    'ShareLink',
    'ShareLinkService',
    'ShareNotFound',
    'ShareOptions',
    'ShareType',
    'ShareValidationError',
    'TooManyAttempts',
    'create_share_access_router',
    'redact_share_id',
]
