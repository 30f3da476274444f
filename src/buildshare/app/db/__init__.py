"""DB helpers for share-service repositories (Supabase PostgREST)."""

from .comment_repo import SupabaseCommentRepository
from .errors import (
    StorageUnavailable,
    SupabaseAuthError,
    SupabaseConflictError,
    SupabaseError,
    SupabaseNotFoundError,
)
from .project_repo import SupabaseProjectStore
from .role_repo import SupabaseRoleRepository
from .share_repo import SupabaseShareRepository
from .supabase_client import SupabaseClient

__all__ = [
    "StorageUnavailable",
    "SupabaseAuthError",
    "SupabaseClient",
    "SupabaseCommentRepository",
    "SupabaseConflictError",
    "SupabaseError",
    "SupabaseNotFoundError",
    "SupabaseProjectStore",
    "SupabaseRoleRepository",
    "SupabaseShareRepository",
]
