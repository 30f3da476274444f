"""Share service configuration settings.

ShareSettings is the single configuration object accepted by create_app().
It is intentionally a plain dataclass (not env-coupled) so tests can inject config
without touching os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

_VALID_ENVIRONMENTS = frozenset({"local", "dev", "staging", "production"})

# Module-level defaults: slotted dataclasses do not expose field defaults
# as class attributes, so from_env() reads these instead.
DEFAULT_PUBLIC_BASE_URL = "http://localhost:5173"
DEFAULT_CORS_ORIGINS: tuple[str, ...] = (
    "http://localhost:5173",
    "http://localhost:3000",
)
DEFAULT_EXPIRY_HOURS = 24
MAX_EXPIRY_HOURS = 720
DEFAULT_PASSWORD_MAX_FAILURES = 5
DEFAULT_PASSWORD_FAILURE_WINDOW_SECONDS = 900


def _env_bool(raw: str | None, default: bool) -> bool:
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(raw: str | None, default: int) -> int:
    if raw is None or not raw.strip():
        return default
    return int(raw)


@dataclass(frozen=True, slots=True)
class ShareSettings:
    """Configuration for the project-sharing FastAPI application.

    All fields have sensible defaults for local development.
    Non-local environments must supply real values for supabase_url
    and supabase_service_role_key.
    """

    # ── Environment ────────────────────────────────────────────────
    environment: str = "local"
    """One of: local, dev, staging, production."""

    # ── Supabase ───────────────────────────────────────────────────
    supabase_url: str = ""
    """Supabase project URL (e.g. https://xyz.supabase.co)."""

    supabase_service_role_key: str = ""
    """Supabase service-role key for PostgREST calls. Never log this."""

    supabase_jwt_secret: str = ""
    """Optional HS256 secret for owner tokens (local dev). JWKS otherwise."""

    # ── Share links ────────────────────────────────────────────────
    public_base_url: str = DEFAULT_PUBLIC_BASE_URL
    """Origin used to render share URLs (``<base>/shared/<id>``)."""

    default_expiry_hours: int = DEFAULT_EXPIRY_HOURS
    max_expiry_hours: int = MAX_EXPIRY_HOURS

    password_max_failures: int = DEFAULT_PASSWORD_MAX_FAILURES
    password_failure_window_seconds: int = DEFAULT_PASSWORD_FAILURE_WINDOW_SECONDS

    comment_author_max_length: int = 100
    comment_text_max_length: int = 2000

    # ── CORS ───────────────────────────────────────────────────────
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS
    """Allowed CORS origins."""

    # ── Logging ────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = True

    @property
    def is_local(self) -> bool:
        return self.environment == "local"

    def share_url(self, share_id: str) -> str:
        return f"{self.public_base_url.rstrip('/')}/shared/{share_id}"

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if self.environment not in _VALID_ENVIRONMENTS:
            errors.append(
                f"environment must be one of {sorted(_VALID_ENVIRONMENTS)}, "
                f"got {self.environment!r}"
            )
        if not self.is_local:
            if not self.supabase_url:
                errors.append(f"{self.environment}: supabase_url is required")
            if not self.supabase_service_role_key:
                errors.append(
                    f"{self.environment}: supabase_service_role_key is required"
                )
        if self.default_expiry_hours < 1:
            errors.append("default_expiry_hours must be >= 1")
        if self.max_expiry_hours < self.default_expiry_hours:
            errors.append("max_expiry_hours must be >= default_expiry_hours")
        if self.password_max_failures < 1:
            errors.append("password_max_failures must be >= 1")
        if self.password_failure_window_seconds < 1:
            errors.append("password_failure_window_seconds must be >= 1")
        return errors

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> ShareSettings:
        """Build settings from environment variables.

        This is a convenience factory for production use. Tests should
        construct ShareSettings directly.
        """
        if env is None:
            env = dict(os.environ)

        cors_raw = env.get("CORS_ORIGINS", "")
        cors = tuple(o.strip() for o in cors_raw.split(",") if o.strip()) if cors_raw else DEFAULT_CORS_ORIGINS

        return cls(
            environment=env.get("ENVIRONMENT", "local"),
            supabase_url=env.get("SUPABASE_URL", ""),
            supabase_service_role_key=env.get("SUPABASE_SERVICE_ROLE_KEY", ""),
            supabase_jwt_secret=env.get("SUPABASE_JWT_SECRET", ""),
            public_base_url=env.get("PUBLIC_BASE_URL", DEFAULT_PUBLIC_BASE_URL),
            default_expiry_hours=_env_int(env.get("SHARE_DEFAULT_EXPIRY_HOURS"), DEFAULT_EXPIRY_HOURS),
            max_expiry_hours=_env_int(env.get("SHARE_MAX_EXPIRY_HOURS"), MAX_EXPIRY_HOURS),
            password_max_failures=_env_int(
                env.get("SHARE_PASSWORD_MAX_FAILURES"), DEFAULT_PASSWORD_MAX_FAILURES,
            ),
            password_failure_window_seconds=_env_int(
                env.get("SHARE_PASSWORD_FAILURE_WINDOW_SECONDS"),
                DEFAULT_PASSWORD_FAILURE_WINDOW_SECONDS,
            ),
            cors_origins=cors,
            log_level=env.get("LOG_LEVEL", "INFO"),
            log_json=_env_bool(env.get("LOG_FORMAT_JSON"), True),
        )
