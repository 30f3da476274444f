"""Shared fixtures for share-service tests."""

from __future__ import annotations

import pytest

from buildshare.app.inmemory import (
    InMemoryCommentRepository,
    InMemoryProjectStore,
    InMemoryRoleRepository,
    InMemoryShareRepository,
)
from buildshare.app.sharing.attempts import AttemptLimitConfig, PasswordAttemptLimiter
from buildshare.app.sharing.audit import InMemoryShareAuditEmitter
from buildshare.app.sharing.service import ShareLinkService

from share_helpers import OWNER_ID, FrozenClock, seed_project


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def share_repo() -> InMemoryShareRepository:
    return InMemoryShareRepository()


@pytest.fixture
def comment_repo() -> InMemoryCommentRepository:
    return InMemoryCommentRepository()


@pytest.fixture
def project_store() -> InMemoryProjectStore:
    store = InMemoryProjectStore()
    seed_project(store)
    return store


@pytest.fixture
def role_repo() -> InMemoryRoleRepository:
    repo = InMemoryRoleRepository()
    repo.profiles[OWNER_ID] = {'id': OWNER_ID, 'role': 'Project Manager', 'email': 'pm@example.com'}
    repo.roles['Project Manager'] = ['view_projects', 'edit_project', 'view_phases']
    return repo


@pytest.fixture
def audit() -> InMemoryShareAuditEmitter:
    return InMemoryShareAuditEmitter()


@pytest.fixture
def limiter() -> PasswordAttemptLimiter:
    return PasswordAttemptLimiter(AttemptLimitConfig(max_failures=3, window_seconds=60))


@pytest.fixture
def service(share_repo, comment_repo, project_store, audit, clock, limiter) -> ShareLinkService:
    return ShareLinkService(
        share_repo,
        comment_repo,
        project_store,
        audit_emitter=audit,
        clock=clock,
        attempt_limiter=limiter,
    )
