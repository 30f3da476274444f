"""Project share-link domain model.

A share record describes one shareable, read-only view of a project:
who may see it (public or password-gated), until when, and which project
sub-resources it discloses. Comments left by viewers live in their own
child collection, ordered by a server-assigned sequence.

Security invariants:
  - An inactive share never resolves, whatever its expiry.
  - An expired share never resolves, whatever ``is_active`` says.
  - Only ``password_hash`` is persisted; the plaintext password never is.
  - A ``ProjectView`` carries a collection only when its flag is enabled;
    disabled collections are absent, not empty.

This module provides:
  1. ``ShareType`` / ``ShareOptions``: share configuration.
  2. ``ShareLink`` / ``ShareComment``: persisted records.
  3. ``ProjectView`` / ``ResolvedShare``: what a viewer receives.
  4. ``is_valid_share_id``: identifier format check.
  5. ``Clock`` / ``SystemClock``: time source for expiry checks.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Protocol

# ── Identifier format ────────────────────────────────────────────────

SHARE_ID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$',
    re.IGNORECASE,
)


def is_valid_share_id(value: object) -> bool:
    """True if ``value`` is a canonical UUID string (versions 1-5)."""
    return isinstance(value, str) and SHARE_ID_PATTERN.match(value) is not None


# ── Clock ────────────────────────────────────────────────────────────


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Parse a PostgREST timestamp (ISO string or datetime) as aware UTC."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value:
        # Older Pythons reject the trailing Z that Postgres may emit.
        dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
    else:
        raise ValueError(f'invalid timestamp: {value!r}')
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# ── Share configuration ──────────────────────────────────────────────


class ShareType(str, Enum):
    PUBLIC = 'public'
    PRIVATE = 'private'


# Sub-resource flag -> key of the disclosed collection in a ProjectView.
DISCLOSURE_KEYS: dict[str, str] = {
    'phaseDetails': 'phases',
    'expenseDetails': 'expenses',
    'incomeDetails': 'income',
    'materialsDetails': 'materials',
    'phasePhotos': 'phase_photos',
    'teamMembers': 'team_members',
}
COMMENTS_KEY = 'comments'


@dataclass(frozen=True, slots=True)
class ShareOptions:
    """Disclosure flags, persisted as a JSON object under ``share_options``."""

    expenseDetails: bool = False
    phaseDetails: bool = False
    materialsDetails: bool = False
    incomeDetails: bool = False
    phasePhotos: bool = False
    teamMembers: bool = False
    allowComments: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ShareOptions:
        """Build from stored JSON. Missing flags are off, unknown keys ignored."""
        data = data or {}
        return cls(**{
            name: bool(data.get(name, False))
            for name in cls.__dataclass_fields__
        })

    def to_dict(self) -> dict[str, bool]:
        return {name: getattr(self, name) for name in self.__dataclass_fields__}

    def disclosed_keys(self) -> set[str]:
        """Output keys a ProjectView built from these options must carry."""
        keys = {key for flag, key in DISCLOSURE_KEYS.items() if getattr(self, flag)}
        if self.allowComments:
            keys.add(COMMENTS_KEY)
        return keys

    @property
    def discloses_anything(self) -> bool:
        return any(getattr(self, flag) for flag in DISCLOSURE_KEYS)


# ── Persisted records ────────────────────────────────────────────────


@dataclass
class ShareLink:
    """Share record matching the ``project_shares`` table.

    Attributes:
        id: UUID, also the public lookup key.
        project_id: The shared project.
        share_type: public or private.
        password_hash: KDF hash of the share password (private shares only).
        options: Disclosure flags.
        is_active: Soft-disable switch controlled by the owner.
        expires_at: Absolute expiry (aware UTC).
        view_count: Raw access counter, incremented server-side.
        created_by: Owner user id.
        created_at: Creation timestamp.
    """

    id: str
    project_id: str
    share_type: ShareType
    expires_at: datetime
    options: ShareOptions = field(default_factory=ShareOptions)
    password_hash: str | None = None
    is_active: bool = True
    view_count: int = 0
    created_by: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> ShareLink:
        created_at = row.get('created_at')
        return cls(
            id=str(row['id']),
            project_id=str(row['project_id']),
            share_type=ShareType(row.get('share_type') or ShareType.PUBLIC.value),
            expires_at=parse_timestamp(row['expires_at']),
            options=ShareOptions.from_dict(row.get('share_options')),
            password_hash=row.get('password_hash') or None,
            is_active=bool(row.get('is_active', False)),
            view_count=int(row.get('view_count') or 0),
            created_by=row.get('created_by'),
            created_at=parse_timestamp(created_at) if created_at else None,
        )

    def to_row(self) -> dict[str, Any]:
        row: dict[str, Any] = {
            'id': self.id,
            'project_id': self.project_id,
            'share_type': self.share_type.value,
            'password_hash': self.password_hash,
            'expires_at': self.expires_at.isoformat(),
            'share_options': self.options.to_dict(),
            'is_active': self.is_active,
            'view_count': self.view_count,
            'created_by': self.created_by,
        }
        if self.created_at is not None:
            row['created_at'] = self.created_at.isoformat()
        return row

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    @property
    def requires_password(self) -> bool:
        # The password only gates private shares.
        return self.share_type is ShareType.PRIVATE and bool(self.password_hash)


@dataclass(frozen=True, slots=True)
class ShareComment:
    """One viewer comment, stored in ``project_share_comments``."""

    id: str
    author_name: str
    comment: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> ShareComment:
        return cls(
            id=str(row['id']),
            author_name=str(row['author_name']),
            comment=str(row['comment']),
            created_at=parse_timestamp(row['created_at']),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'comment': self.comment,
            'author_name': self.author_name,
            'created_at': self.created_at.isoformat(),
        }


# ── Viewer-facing results ────────────────────────────────────────────


@dataclass
class ProjectView:
    """Project metadata plus the disclosed sub-resource collections.

    ``collections`` only ever holds keys enabled by the share options.
    """

    project: dict[str, Any]
    collections: dict[str, list[dict[str, Any]]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {'project': dict(self.project), **{
            key: list(items) for key, items in self.collections.items()
        }}


@dataclass
class ResolvedShare:
    """A share that passed every gate, with its disclosed view."""

    share: ShareLink
    view: ProjectView

    def to_dict(self) -> dict[str, Any]:
        return {
            'share': {
                'id': self.share.id,
                'share_type': self.share.share_type.value,
                'expires_at': self.share.expires_at.isoformat(),
                'view_count': self.share.view_count,
                'share_options': self.share.options.to_dict(),
            },
            **self.view.to_dict(),
        }
