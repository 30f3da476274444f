"""Share service FastAPI application factory.

The create_app() factory is the single entry point for building the ASGI
application. It wires middleware (request-ID, auth guard, CORS), the error
handlers, the viewer and owner routers, and injects repository
implementations via dependency injection.

Usage:
    # Local development (in-memory storage)
    from buildshare.app import create_app, ShareSettings
    app = create_app(ShareSettings())

    # Non-local (Supabase repositories built from settings)
    app = create_app(ShareSettings.from_env())

    # Testing (full DI control)
    app = create_app(settings, share_repo=repo, clock=frozen_clock, ...)
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from buildshare.observability.logging import configure_logging, request_id_ctx
from buildshare.observability.metrics import render_latest

from .db.errors import SupabaseError
from .protocols import CommentRepository, ProjectStore, RoleRepository, ShareRepository
from .security.auth_guard import AuthGuardMiddleware
from .security.token_verify import TokenVerifier, create_token_verifier
from .settings import ShareSettings
from .sharing.access import create_share_access_router
from .sharing.attempts import AttemptLimitConfig, PasswordAttemptLimiter
from .sharing.audit import LoggingShareAuditEmitter, ShareAuditEmitter
from .sharing.errors import ShareAccessError, TooManyAttempts
from .sharing.management import ShareManager
from .sharing.model import Clock, SystemClock
from .sharing.routes import create_share_router
from .sharing.service import ShareLinkService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppDependencies:
    """Container for all injected repository/service instances.

    Stored on ``app.state.deps`` so tests and handlers can reach them.
    """

    share_repo: ShareRepository
    comment_repo: CommentRepository
    project_store: ProjectStore
    role_repo: RoleRepository
    audit_emitter: ShareAuditEmitter
    clock: Clock
    attempt_limiter: PasswordAttemptLimiter
    service: ShareLinkService
    manager: ShareManager


def _build_inmemory_repos() -> dict:
    from .inmemory import (
        InMemoryCommentRepository,
        InMemoryProjectStore,
        InMemoryRoleRepository,
        InMemoryShareRepository,
    )

    return {
        "share_repo": InMemoryShareRepository(),
        "comment_repo": InMemoryCommentRepository(),
        "project_store": InMemoryProjectStore(),
        "role_repo": InMemoryRoleRepository(),
    }


def _build_supabase_repos(settings: ShareSettings) -> dict:
    from .db import (
        SupabaseClient,
        SupabaseCommentRepository,
        SupabaseProjectStore,
        SupabaseRoleRepository,
        SupabaseShareRepository,
    )

    client = SupabaseClient(
        supabase_url=settings.supabase_url,
        service_role_key=settings.supabase_service_role_key,
    )
    return {
        "share_repo": SupabaseShareRepository(client),
        "comment_repo": SupabaseCommentRepository(client),
        "project_store": SupabaseProjectStore(client),
        "role_repo": SupabaseRoleRepository(client),
    }


def _build_token_verifier(settings: ShareSettings) -> TokenVerifier | None:
    # Local development usually signs tokens with the shared secret.
    if settings.is_local and settings.supabase_jwt_secret:
        return create_token_verifier(jwt_secret=settings.supabase_jwt_secret)
    if settings.supabase_url or settings.supabase_jwt_secret:
        return create_token_verifier(
            supabase_url=settings.supabase_url or None,
            jwt_secret=settings.supabase_jwt_secret or None,
        )
    return None


# ── Middleware ──────────────────────────────────────────────────────


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Generate or propagate X-Request-ID and bind it to log records."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response


# ── Error handlers ──────────────────────────────────────────────────


def _error_body(request: Request, body: dict) -> dict:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        body["request_id"] = request_id
    return body


async def _share_error_handler(request: Request, exc: ShareAccessError) -> JSONResponse:
    headers = {}
    if isinstance(exc, TooManyAttempts):
        headers["Retry-After"] = str(int(exc.retry_after) + 1)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.to_dict()),
        headers=headers,
    )


async def _storage_error_handler(request: Request, exc: SupabaseError) -> JSONResponse:
    logger.error(
        "Storage error on %s %s: status=%s code=%s",
        request.method, request.url.path, exc.status_code, exc.code,
    )
    return JSONResponse(
        status_code=503,
        content=_error_body(request, {
            "error": "storage_unavailable",
            "detail": "The service is temporarily unavailable. Please try again.",
        }),
    )


# ── Factory ─────────────────────────────────────────────────────────


def create_app(
    settings: ShareSettings | None = None,
    *,
    share_repo: ShareRepository | None = None,
    comment_repo: CommentRepository | None = None,
    project_store: ProjectStore | None = None,
    role_repo: RoleRepository | None = None,
    audit_emitter: ShareAuditEmitter | None = None,
    clock: Clock | None = None,
    token_verifier: TokenVerifier | None = None,
) -> FastAPI:
    """Create a configured share-service FastAPI application.

    Args:
        settings: Application settings. Defaults to local-dev settings.
        share_repo..role_repo: Repository overrides. When None, local mode
            uses InMemory implementations and non-local mode builds
            Supabase repositories from settings.
        audit_emitter: Audit sink. Defaults to structured-log events.
        clock: Time source. Defaults to wall-clock UTC.
        token_verifier: Owner token verifier. Defaults to one built from
            settings; without one the owner routes are not mounted.

    Returns:
        Configured FastAPI application ready for uvicorn.run().

    Raises:
        ValueError: If settings validation fails.
    """
    if settings is None:
        settings = ShareSettings()

    errors = settings.validate()
    if errors:
        raise ValueError(
            "Share service settings validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    overrides = {
        "share_repo": share_repo,
        "comment_repo": comment_repo,
        "project_store": project_store,
        "role_repo": role_repo,
    }
    if any(v is None for v in overrides.values()):
        defaults = _build_inmemory_repos() if settings.is_local else _build_supabase_repos(settings)
        repos = {name: value or defaults[name] for name, value in overrides.items()}
    else:
        repos = overrides

    audit_emitter = audit_emitter or LoggingShareAuditEmitter()
    clock = clock or SystemClock()
    limiter = PasswordAttemptLimiter(AttemptLimitConfig(
        max_failures=settings.password_max_failures,
        window_seconds=float(settings.password_failure_window_seconds),
    ))
    service = ShareLinkService(
        repos["share_repo"],
        repos["comment_repo"],
        repos["project_store"],
        audit_emitter=audit_emitter,
        clock=clock,
        attempt_limiter=limiter,
        author_max_length=settings.comment_author_max_length,
        comment_max_length=settings.comment_text_max_length,
    )
    manager = ShareManager(
        repos["share_repo"],
        repos["comment_repo"],
        repos["project_store"],
        share_url=settings.share_url,
        default_expiry_hours=settings.default_expiry_hours,
        max_expiry_hours=settings.max_expiry_hours,
        audit_emitter=audit_emitter,
        clock=clock,
    )
    deps = AppDependencies(
        **repos,
        audit_emitter=audit_emitter,
        clock=clock,
        attempt_limiter=limiter,
        service=service,
        manager=manager,
    )
    verifier = token_verifier or _build_token_verifier(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(level=settings.log_level, json_output=settings.log_json)
        logger.info("Share service startup (environment=%s)", settings.environment)
        yield
        logger.info("Share service shutdown")

    app = FastAPI(
        title="BuildShare",
        description="Time-limited, password-gated share links for construction projects",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.deps = deps
    app.state.settings = settings

    app.add_exception_handler(ShareAccessError, _share_error_handler)
    app.add_exception_handler(SupabaseError, _storage_error_handler)

    # ── Middleware stack (applied in reverse order) ──────────────
    # Order of execution: RequestID -> AuthGuard -> CORS -> route handler

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if verifier is not None:
        app.add_middleware(AuthGuardMiddleware, token_verifier=verifier)
    app.add_middleware(RequestIDMiddleware)

    # ── Routes ──────────────────────────────────────────────────

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "environment": settings.environment,
        }

    @app.get("/metrics")
    async def metrics():
        payload, content_type = render_latest()
        return Response(content=payload, media_type=content_type)

    app.include_router(create_share_access_router(service))
    if verifier is not None:
        app.include_router(create_share_router(manager, repos["role_repo"]))
    else:
        logger.warning("No token verifier configured; owner share routes are disabled")

    return app


# For uvicorn, use --factory flag:
#   uvicorn buildshare.app.main:create_app --factory
# This avoids executing create_app() at import time.
