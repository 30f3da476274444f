"""Role permissions and the per-request caller context.

A user's role is the ``role`` column of their ``profiles`` row; the
permissions of that role are the ``permissions`` list of the newest active
``roles`` row with the same name. Permission names are parsed into a
``Permission`` flag once per request, and owner operations receive the
resulting ``RequestContext`` explicitly instead of reading ambient state.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from functools import reduce
from typing import Iterable

from buildshare.app.protocols import RoleRepository
from buildshare.app.sharing.errors import PermissionDenied

from .token_verify import AuthIdentity

logger = logging.getLogger(__name__)


class Permission(enum.Flag):
    NONE = 0
    VIEW_DASHBOARD = enum.auto()
    VIEW_PROJECTS = enum.auto()
    ADD_PROJECT = enum.auto()
    EDIT_PROJECT = enum.auto()
    DELETE_PROJECT = enum.auto()
    VIEW_PHASES = enum.auto()
    ADD_PHASE = enum.auto()
    EDIT_PHASE = enum.auto()
    DELETE_PHASE = enum.auto()
    UPDATE_PROGRESS = enum.auto()
    UPLOAD_SITE_UPDATES = enum.auto()
    VIEW_EXPENSES = enum.auto()
    ADD_INCOME = enum.auto()
    ADD_EXPENSE = enum.auto()
    EDIT_EXPENSE = enum.auto()
    DELETE_EXPENSE = enum.auto()
    VIEW_MATERIALS = enum.auto()
    ADD_MATERIAL = enum.auto()
    EDIT_MATERIAL = enum.auto()
    DELETE_MATERIAL = enum.auto()
    VIEW_REPORTS = enum.auto()
    GENERATE_REPORTS = enum.auto()
    EXPORT_REPORTS = enum.auto()
    VIEW_CALENDAR = enum.auto()
    ADD_EVENT = enum.auto()
    EDIT_EVENT = enum.auto()
    VIEW_DOCUMENTS = enum.auto()
    UPLOAD_DOCUMENTS = enum.auto()
    DELETE_DOCUMENTS = enum.auto()
    VIEW_USERS = enum.auto()
    ADD_USER = enum.auto()
    EDIT_USER = enum.auto()
    DELETE_USER = enum.auto()
    VIEW_ROLES = enum.auto()
    ADD_ROLE = enum.auto()
    EDIT_ROLE = enum.auto()
    DELETE_ROLE = enum.auto()
    VIEW_SETTINGS = enum.auto()
    EDIT_SETTINGS = enum.auto()

    @classmethod
    def from_names(cls, names: Iterable[str]) -> Permission:
        """Combine stored names such as ``edit_project``; unknown names are skipped."""
        granted = cls.NONE
        for name in names:
            member = cls.__members__.get(str(name).strip().upper())
            if member is None:
                logger.debug('Ignoring unknown permission %r', name)
                continue
            granted |= member
        return granted


@dataclass(frozen=True, slots=True)
class RequestContext:
    """The authenticated caller of an owner operation."""

    user_id: str
    email: str = ''
    role: str | None = None
    permissions: Permission = Permission.NONE

    def has(self, permission: Permission) -> bool:
        return (self.permissions & permission) == permission

    def require(self, *permissions: Permission) -> None:
        """Raise PermissionDenied unless every listed permission is granted."""
        needed = reduce(lambda a, b: a | b, permissions, Permission.NONE)
        if not self.has(needed):
            raise PermissionDenied()


async def resolve_request_context(
    identity: AuthIdentity,
    role_repo: RoleRepository,
) -> RequestContext:
    """Load the caller's role and permissions.

    A user without a profile or role gets an empty permission set.
    """
    profile = await role_repo.get_profile(identity.user_id)
    role = (profile or {}).get('role') or None
    permissions = Permission.NONE
    if role:
        permissions = Permission.from_names(await role_repo.get_role_permissions(role))
    return RequestContext(
        user_id=identity.user_id,
        email=identity.email or (profile or {}).get('email') or '',
        role=role,
        permissions=permissions,
    )
