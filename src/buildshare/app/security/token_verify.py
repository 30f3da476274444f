"""Supabase access-token verification for owner endpoints.

Owners of a project reach the share-management routes with the access
token the Supabase client already holds:

  ``Authorization: Bearer <supabase_access_token>``

Tokens are verified against the project JWKS (RS256) when ``SUPABASE_URL``
is configured, or against ``SUPABASE_JWT_SECRET`` (HS256) in local mode.
Viewers of a share never present a token.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

import jwt
from jwt import PyJWKClient, PyJWKClientError
from starlette.requests import Request

# ── Constants ─────────────────────────────────────────────────────────

DEFAULT_AUDIENCE = 'authenticated'
JWKS_CACHE_TTL_SECONDS = 300
BEARER_PREFIX = 'Bearer '

# ── Types ─────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class AuthIdentity:
    """Verified caller extracted from a Supabase JWT.

    Attributes:
        user_id: auth.users UUID (``sub`` claim).
        email: Lower-cased email, empty when the token carries none.
        raw_claims: Decoded payload.
    """

    user_id: str
    email: str = ''
    raw_claims: dict[str, Any] = field(default_factory=dict)


class TokenVerificationError(Exception):
    """Raised when a bearer token is rejected."""

    def __init__(self, code: str, detail: str = '') -> None:
        self.code = code
        self.detail = detail
        super().__init__(f'{code}: {detail}' if detail else code)


class KeyProvider(Protocol):
    def get_signing_key(self, token: str) -> Any: ...


# ── Key providers ────────────────────────────────────────────────────


class JWKSKeyProvider:
    """Signing keys from the Supabase JWKS endpoint, cached by PyJWKClient."""

    def __init__(self, jwks_url: str, cache_ttl: int = JWKS_CACHE_TTL_SECONDS) -> None:
        self._client = PyJWKClient(jwks_url, cache_jwk_set=True, lifespan=cache_ttl)

    def get_signing_key(self, token: str) -> Any:
        try:
            return self._client.get_signing_key_from_jwt(token).key
        except PyJWKClientError as exc:
            raise TokenVerificationError('jwks_fetch_error', str(exc)) from exc


class StaticKeyProvider:
    """Shared HS256 secret (local development)."""

    def __init__(self, secret: str) -> None:
        self._secret = secret

    def get_signing_key(self, token: str) -> str:
        return self._secret


# ── Verifier ─────────────────────────────────────────────────────────


class TokenVerifier:
    """Decodes a Supabase JWT and returns the caller identity.

    Args:
        key_provider: Resolves the signing key for a token.
        audience: Expected ``aud`` claim.
        algorithms: Accepted signing algorithms.
    """

    def __init__(
        self,
        key_provider: KeyProvider,
        audience: str = DEFAULT_AUDIENCE,
        algorithms: list[str] | None = None,
    ) -> None:
        self._key_provider = key_provider
        self._audience = audience
        self._algorithms = algorithms or ['RS256']

    def verify(self, token: str) -> AuthIdentity:
        if not token or not token.strip():
            raise TokenVerificationError('empty_token')

        key = self._key_provider.get_signing_key(token)
        try:
            claims = jwt.decode(
                token,
                key,
                algorithms=self._algorithms,
                audience=self._audience,
                options={'require': ['sub', 'exp', 'aud']},
            )
        except jwt.ExpiredSignatureError:
            raise TokenVerificationError('token_expired')
        except jwt.InvalidAudienceError:
            raise TokenVerificationError('invalid_audience', f'expected {self._audience}')
        except jwt.InvalidTokenError as exc:
            raise TokenVerificationError('invalid_token', str(exc))

        user_id = claims.get('sub')
        if not user_id:
            raise TokenVerificationError('missing_sub_claim')
        email = claims.get('email') or ''
        return AuthIdentity(user_id=str(user_id), email=email.lower(), raw_claims=claims)


def extract_bearer_token(request: Request) -> str | None:
    """Bearer token from the Authorization header, or None."""
    header = request.headers.get('authorization', '')
    if header.startswith(BEARER_PREFIX):
        return header[len(BEARER_PREFIX):].strip()
    return None


def create_token_verifier(
    supabase_url: str | None = None,
    jwt_secret: str | None = None,
    audience: str = DEFAULT_AUDIENCE,
) -> TokenVerifier:
    """JWKS (RS256) verifier when a URL is given, HS256 secret otherwise.

    Raises:
        ValueError: If neither a URL nor a secret is provided.
    """
    if supabase_url:
        jwks_url = f'{supabase_url.rstrip("/")}/auth/v1/.well-known/jwks.json'
        return TokenVerifier(JWKSKeyProvider(jwks_url), audience=audience, algorithms=['RS256'])
    if jwt_secret:
        return TokenVerifier(StaticKeyProvider(jwt_secret), audience=audience, algorithms=['HS256'])
    raise ValueError('Either supabase_url (for JWKS) or jwt_secret (for HS256) is required')
