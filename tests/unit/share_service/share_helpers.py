"""Builders and constants shared by share-service tests."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from buildshare.app.inmemory import InMemoryProjectStore, InMemoryShareRepository
from buildshare.app.sharing.model import ShareOptions, ShareType
from buildshare.app.sharing.passwords import hash_share_password

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
PROJECT_ID = 'proj-1'
OWNER_ID = 'user-owner'
SHARE_PASSWORD = 'site-visit-2025'

ALL_OPTIONS = ShareOptions(
    expenseDetails=True,
    phaseDetails=True,
    materialsDetails=True,
    incomeDetails=True,
    phasePhotos=True,
    teamMembers=True,
    allowComments=True,
)


class FrozenClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


def seed_project(store: InMemoryProjectStore, project_id: str = PROJECT_ID) -> None:
    store.projects[project_id] = {
        'id': project_id,
        'name': 'Harbour View Townhouses',
        'description': 'Six-unit residential build',
        'status': 'in_progress',
        'location': 'Wellington',
        'start_date': '2025-01-06',
        'end_date': '2025-11-28',
        'created_at': '2024-12-01T09:00:00+00:00',
        'created_by': OWNER_ID,
        'internal_notes': 'not for clients',
    }
    store.phases.extend([
        {'id': 'ph-2', 'project_id': project_id, 'name': 'Framing', 'start_date': '2025-03-01'},
        {'id': 'ph-1', 'project_id': project_id, 'name': 'Foundations', 'start_date': '2025-01-06'},
    ])
    store.transactions.extend([
        {'id': 'tx-1', 'project_id': project_id, 'type': 'expense', 'amount': 1200},
        {'id': 'tx-2', 'project_id': project_id, 'type': 'income', 'amount': 50000},
    ])
    store.materials.append({'id': 'm-1', 'project_id': project_id, 'name': 'Timber', 'unit_cost': 12})
    store.users.append({'id': 'u-1', 'project_id': project_id, 'name': 'Aroha', 'email': 'a@example.com'})
    store.phase_photos.append({'id': 'pp-1', 'project_id': project_id, 'photo_url': 'https://img/1.jpg'})


async def seed_share(
    repo: InMemoryShareRepository,
    *,
    share_type: ShareType = ShareType.PUBLIC,
    options: ShareOptions = ALL_OPTIONS,
    password: str | None = None,
    expires_at: datetime | None = None,
    is_active: bool = True,
    view_count: int = 0,
    project_id: str = PROJECT_ID,
    created_by: str = OWNER_ID,
) -> str:
    share_id = str(uuid.uuid4())
    await repo.create({
        'id': share_id,
        'project_id': project_id,
        'share_type': share_type.value,
        'password_hash': hash_share_password(password) if password else None,
        'expires_at': (expires_at or NOW + timedelta(hours=24)).isoformat(),
        'share_options': options.to_dict(),
        'is_active': is_active,
        'view_count': view_count,
        'created_by': created_by,
        'created_at': NOW.isoformat(),
    })
    return share_id


