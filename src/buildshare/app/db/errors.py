"""Storage errors raised by the PostgREST client.

None of these are access-control outcomes: the HTTP layer reports every
storage error as ``storage_unavailable`` and leaves retries to the caller.
The error never carries the httpx response or request headers, so the
service-role key cannot leak through a log line.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SupabaseError(Exception):
    """A failed PostgREST request."""

    status_code: int
    message: str
    code: str | None = None
    details: str | None = None
    hint: str | None = None

    def __str__(self) -> str:
        text = f"storage error {self.status_code}: {self.message}"
        if self.code:
            text += f" [{self.code}]"
        if self.details:
            text += f" ({self.details})"
        return text


class SupabaseAuthError(SupabaseError):
    """Service-role key rejected (401/403)."""


class SupabaseNotFoundError(SupabaseError):
    """Table or RPC missing (404), usually an unapplied migration."""


class SupabaseConflictError(SupabaseError):
    """Unique or foreign-key violation (409)."""


class StorageUnavailable(SupabaseError):
    """Storage could not be reached at all (timeout, reset, DNS)."""
