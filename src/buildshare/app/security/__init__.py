"""Owner authentication and authorization."""

from .auth_guard import AuthGuardMiddleware, get_auth_identity
from .permissions import Permission, RequestContext, resolve_request_context
from .token_verify import (
    AuthIdentity,
    TokenVerificationError,
    TokenVerifier,
    create_token_verifier,
    extract_bearer_token,
)

__all__ = [
    'AuthGuardMiddleware',
    'AuthIdentity',
    'Permission',
    'RequestContext',
    'TokenVerificationError',
    'TokenVerifier',
    'create_token_verifier',
    'extract_bearer_token',
    'get_auth_identity',
    'resolve_request_context',
]
