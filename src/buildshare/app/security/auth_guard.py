"""Auth guard middleware for owner endpoints.

Verifies the bearer token on every non-exempt request and stores the
caller on ``request.state.auth_identity``. Missing or invalid tokens get
a 401 with an error code.

Exempt paths (never require auth):
  - ``/api/v1/shared/``: the anonymous share viewer surface
  - ``/health`` and ``/metrics``: operational endpoints
  - ``/docs`` and ``/openapi.json``
"""

from __future__ import annotations

from fastapi import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from .token_verify import (
    AuthIdentity,
    TokenVerificationError,
    TokenVerifier,
    extract_bearer_token,
)

DEFAULT_EXEMPT_PREFIXES: tuple[str, ...] = (
    '/api/v1/shared/',
    '/health',
    '/metrics',
    '/docs',
    '/openapi.json',
)


def _unauthorized(code: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={'error': 'unauthorized', 'code': code, 'detail': detail},
        headers={'WWW-Authenticate': 'Bearer'},
    )


class AuthGuardMiddleware(BaseHTTPMiddleware):
    """Rejects unauthenticated requests to protected paths.

    Args:
        app: The ASGI application.
        token_verifier: Verifies Supabase access tokens.
        exempt_prefixes: Path prefixes that skip auth.
    """

    def __init__(
        self,
        app,
        token_verifier: TokenVerifier,
        exempt_prefixes: tuple[str, ...] = DEFAULT_EXEMPT_PREFIXES,
    ) -> None:
        super().__init__(app)
        self._verifier = token_verifier
        self._exempt_prefixes = exempt_prefixes

    def _is_exempt(self, path: str) -> bool:
        return any(path == p or path.startswith(p) for p in self._exempt_prefixes)

    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.auth_identity = None

        if request.method == 'OPTIONS' or self._is_exempt(request.url.path):
            return await call_next(request)

        token = extract_bearer_token(request)
        if not token:
            return _unauthorized('no_credentials', 'Authentication required')
        try:
            request.state.auth_identity = self._verifier.verify(token)
        except TokenVerificationError as exc:
            return _unauthorized(exc.code, exc.detail)
        return await call_next(request)


def get_auth_identity(request: Request) -> AuthIdentity:
    """FastAPI dependency returning the authenticated caller.

    Raises:
        HTTPException: 401 if the request carries no verified identity.
    """
    identity: AuthIdentity | None = getattr(request.state, 'auth_identity', None)
    if identity is None:
        raise HTTPException(
            status_code=401,
            detail={
                'error': 'unauthorized',
                'code': 'no_credentials',
                'detail': 'Authentication required',
            },
            headers={'WWW-Authenticate': 'Bearer'},
        )
    return identity
