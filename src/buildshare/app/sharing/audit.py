"""Share audit events and identifier redaction.

Records every share lifecycle step and every access outcome:

  - share.created / share.deactivated (owner actions)
  - share.accessed (a view was released)
  - share.denied (any declined resolution, with the error code as detail)
  - share.commented (a viewer comment was appended)

Security invariant:
  Passwords, password hashes and full share ids never appear in events.
  Only the first 8 characters of a share id are kept for correlation.

This module provides:
  1. ``ShareAuditEvent``: structured audit record.
  2. ``ShareAuditEmitter``: protocol for event sinks.
  3. ``InMemoryShareAuditEmitter`` / ``LoggingShareAuditEmitter``: sinks.
  4. ``redact_share_id``: truncate ids for logs.
  5. ``emit_share_*``: convenience functions for each operation type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from buildshare.observability.logging import get_logger

SHARE_ID_PREFIX_LENGTH = 8


def redact_share_id(share_id: str | None) -> str:
    """Return ``<prefix>...`` or ``<redacted>`` for missing/short ids."""
    if not share_id or len(share_id) < SHARE_ID_PREFIX_LENGTH:
        return '<redacted>'
    return f'{share_id[:SHARE_ID_PREFIX_LENGTH]}...'


@dataclass(frozen=True, slots=True)
class ShareAuditEvent:
    """Structured audit event for share operations.

    Attributes:
        event_type: share.created, share.accessed, share.denied,
                    share.commented or share.deactivated.
        share_id_prefix: First 8 chars of the share id.
        project_id: The shared project (when known).
        actor_user_id: Owner performing the action (empty for viewers).
        detail: Extra context, e.g. the denial code.
        timestamp: When the event occurred.
    """

    event_type: str
    share_id_prefix: str = '<redacted>'
    project_id: str = ''
    actor_user_id: str = ''
    detail: str = ''
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            'event_type': self.event_type,
            'share_id_prefix': self.share_id_prefix,
            'project_id': self.project_id,
            'actor_user_id': self.actor_user_id,
            'detail': self.detail,
            'timestamp': self.timestamp.isoformat(),
        }


class ShareAuditEmitter(Protocol):
    async def emit(self, event: ShareAuditEvent) -> None: ...


class InMemoryShareAuditEmitter:
    """Test audit emitter that stores events in memory."""

    def __init__(self) -> None:
        self.events: list[ShareAuditEvent] = []

    async def emit(self, event: ShareAuditEvent) -> None:
        self.events.append(event)

    def find(
        self,
        event_type: str | None = None,
        project_id: str | None = None,
    ) -> list[ShareAuditEvent]:
        """Filter events by type and/or project."""
        result = self.events
        if event_type:
            result = [e for e in result if e.event_type == event_type]
        if project_id:
            result = [e for e in result if e.project_id == project_id]
        return result


class LoggingShareAuditEmitter:
    """Writes audit events as structured log lines."""

    def __init__(self, logger_name: str = 'buildshare.audit') -> None:
        self._logger = get_logger(logger_name)

    async def emit(self, event: ShareAuditEvent) -> None:
        self._logger.info('share_audit', **event.to_dict())


# ── Convenience emitters ─────────────────────────────────────────────


async def _record(
    emitter: ShareAuditEmitter,
    event_type: str,
    share_id: str,
    **fields: str,
) -> ShareAuditEvent:
    event = ShareAuditEvent(
        event_type=event_type,
        share_id_prefix=redact_share_id(share_id),
        **fields,
    )
    await emitter.emit(event)
    return event


async def emit_share_created(
    emitter: ShareAuditEmitter, *, share_id: str, project_id: str, user_id: str, share_type: str,
) -> ShareAuditEvent:
    """Owner created a share; ``detail`` holds the share type."""
    return await _record(
        emitter, 'share.created', share_id,
        project_id=project_id, actor_user_id=user_id, detail=share_type,
    )


async def emit_share_accessed(
    emitter: ShareAuditEmitter, *, share_id: str, project_id: str,
) -> ShareAuditEvent:
    return await _record(emitter, 'share.accessed', share_id, project_id=project_id)


async def emit_share_denied(
    emitter: ShareAuditEmitter, *, share_id: str, detail: str, project_id: str = '',
) -> ShareAuditEvent:
    """A resolution was declined; ``detail`` holds the error code."""
    return await _record(
        emitter, 'share.denied', share_id, project_id=project_id, detail=detail,
    )


async def emit_share_commented(
    emitter: ShareAuditEmitter, *, share_id: str, project_id: str,
) -> ShareAuditEvent:
    return await _record(emitter, 'share.commented', share_id, project_id=project_id)


async def emit_share_deactivated(
    emitter: ShareAuditEmitter, *, share_id: str, project_id: str, user_id: str,
) -> ShareAuditEvent:
    return await _record(
        emitter, 'share.deactivated', share_id,
        project_id=project_id, actor_user_id=user_id,
    )
