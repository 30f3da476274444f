"""Tests for ShareLinkService resolution, unlocking and comments.

Validates:
  - Expired shares are refused whatever their other fields say.
  - Deactivated shares look exactly like unknown ones.
  - Only enabled sub-resources are disclosed, and nothing else is fetched.
  - Private shares release the same view as public ones once unlocked.
  - Failed passwords are throttled per share and client.
  - View counts rise once per successful resolution only.
  - Comments append in call order and respect allowComments.
"""

from __future__ import annotations

import json
import threading
from datetime import timedelta

import pytest
from prometheus_client import REGISTRY

from buildshare.app.sharing import passwords
from buildshare.app.sharing.errors import (
    CommentsDisabled,
    InvalidIdentifier,
    InvalidPassword,
    PasswordRequired,
    ShareExpired,
    ShareNotFound,
    ShareValidationError,
    TooManyAttempts,
)
from buildshare.app.sharing.model import COMMENTS_KEY, DISCLOSURE_KEYS, ShareOptions, ShareType

from share_helpers import NOW, PROJECT_ID, SHARE_PASSWORD, seed_share

NO_COMMENT_OPTIONS = ShareOptions(phaseDetails=True, allowComments=False)


# =====================================================================
# Resolve
# =====================================================================


class TestResolveGates:

    @pytest.mark.asyncio
    @pytest.mark.parametrize('share_id', ['', 'abc', 'not-a-uuid', '../../etc/passwd'])
    async def test_malformed_id_never_queries_storage(self, service, share_repo, share_id):
        async def boom(_):
            raise AssertionError('storage must not be queried')

        share_repo.get_active = boom
        with pytest.raises(InvalidIdentifier):
            await service.resolve(share_id)

    @pytest.mark.asyncio
    async def test_unknown_share_is_not_found(self, service):
        with pytest.raises(ShareNotFound):
            await service.resolve('3f2a9c1e-0000-4000-8000-000000000000')

    @pytest.mark.asyncio
    async def test_inactive_share_is_not_found_even_before_expiry(self, service, share_repo):
        share_id = await seed_share(
            share_repo, is_active=False, expires_at=NOW + timedelta(days=7),
        )
        with pytest.raises(ShareNotFound):
            await service.resolve(share_id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize('share_type', [ShareType.PUBLIC, ShareType.PRIVATE])
    async def test_expired_share_is_refused(self, service, share_repo, project_store, share_type):
        share_id = await seed_share(
            share_repo,
            share_type=share_type,
            password=SHARE_PASSWORD if share_type is ShareType.PRIVATE else None,
            expires_at=NOW - timedelta(seconds=1),
        )
        with pytest.raises(ShareExpired):
            await service.resolve(share_id)
        assert project_store.calls == []

    @pytest.mark.asyncio
    async def test_expiry_is_recomputed_on_every_request(self, service, share_repo, clock):
        share_id = await seed_share(share_repo, expires_at=NOW + timedelta(minutes=5))
        await service.resolve(share_id)
        clock.advance(minutes=6)
        with pytest.raises(ShareExpired):
            await service.resolve(share_id)

    @pytest.mark.asyncio
    async def test_private_share_requires_password_without_fetching_project(
        self, service, share_repo, project_store,
    ):
        share_id = await seed_share(
            share_repo, share_type=ShareType.PRIVATE, password=SHARE_PASSWORD,
        )
        with pytest.raises(PasswordRequired):
            await service.resolve(share_id)
        assert project_store.calls == []

    @pytest.mark.asyncio
    async def test_private_share_without_hash_resolves_like_public(self, service, share_repo):
        share_id = await seed_share(share_repo, share_type=ShareType.PRIVATE)
        resolved = await service.resolve(share_id)
        assert resolved.view.project['id'] == PROJECT_ID

    @pytest.mark.asyncio
    async def test_missing_project_collapses_to_not_found(self, service, share_repo):
        share_id = await seed_share(share_repo, project_id='proj-gone')
        with pytest.raises(ShareNotFound):
            await service.resolve(share_id)


class TestDisclosure:

    @pytest.mark.asyncio
    async def test_only_expenses_disclosed(self, service, share_repo, project_store):
        share_id = await seed_share(share_repo, options=ShareOptions(expenseDetails=True))
        resolved = await service.resolve(share_id)

        body = resolved.view.to_dict()
        assert set(body) == {'project', 'expenses'}
        assert [r['id'] for r in body['expenses']] == ['tx-1']
        fetched = {name for name, _ in project_store.calls}
        assert fetched == {'project', 'expense'}

    @pytest.mark.asyncio
    async def test_all_flags_disclose_every_collection(self, service, share_repo):
        share_id = await seed_share(share_repo)
        body = (await service.resolve(share_id)).view.to_dict()
        assert set(body) == {'project', COMMENTS_KEY, *DISCLOSURE_KEYS.values()}
        assert [p['name'] for p in body['phases']] == ['Foundations', 'Framing']
        assert [r['id'] for r in body['income']] == ['tx-2']

    @pytest.mark.asyncio
    async def test_project_metadata_is_restricted(self, service, share_repo):
        share_id = await seed_share(share_repo, options=ShareOptions(phaseDetails=True))
        project = (await service.resolve(share_id)).view.project
        assert project['name'] == 'Harbour View Townhouses'
        assert 'internal_notes' not in project
        assert 'created_by' not in project

    @pytest.mark.asyncio
    @pytest.mark.parametrize('flag', list(DISCLOSURE_KEYS))
    async def test_serialized_view_keys_match_options(self, service, share_repo, flag):
        options = ShareOptions(**{flag: True})
        share_id = await seed_share(share_repo, options=options)
        resolved = await service.resolve(share_id)

        reparsed = json.loads(json.dumps(resolved.to_dict()))
        disclosed = set(reparsed) - {'project', 'share'}
        assert disclosed == options.disclosed_keys()

    @pytest.mark.asyncio
    async def test_share_metadata_in_response(self, service, share_repo):
        share_id = await seed_share(share_repo, options=ShareOptions(materialsDetails=True))
        body = (await service.resolve(share_id)).to_dict()
        assert body['share']['id'] == share_id
        assert body['share']['share_type'] == 'public'
        assert 'password_hash' not in body['share']


# =====================================================================
# Authenticate
# =====================================================================


class TestAuthenticate:

    @pytest.mark.asyncio
    async def test_correct_password_returns_same_view_as_public(self, service, share_repo):
        options = ShareOptions(phaseDetails=True, materialsDetails=True)
        private_id = await seed_share(
            share_repo, share_type=ShareType.PRIVATE, password='abc123', options=options,
        )
        public_id = await seed_share(share_repo, options=options)

        unlocked = await service.authenticate(private_id, 'abc123')
        public = await service.resolve(public_id)
        assert unlocked.view.to_dict() == public.view.to_dict()

    @pytest.mark.asyncio
    async def test_wrong_password_is_refused(self, service, share_repo, project_store):
        share_id = await seed_share(share_repo, share_type=ShareType.PRIVATE, password='abc123')
        with pytest.raises(InvalidPassword):
            await service.authenticate(share_id, 'wrong')
        assert project_store.calls == []

    @pytest.mark.asyncio
    async def test_expiry_checked_again_on_unlock(self, service, share_repo, clock):
        share_id = await seed_share(
            share_repo,
            share_type=ShareType.PRIVATE,
            password=SHARE_PASSWORD,
            expires_at=NOW + timedelta(minutes=1),
        )
        with pytest.raises(PasswordRequired):
            await service.resolve(share_id)
        clock.advance(minutes=2)
        with pytest.raises(ShareExpired):
            await service.authenticate(share_id, SHARE_PASSWORD)

    @pytest.mark.asyncio
    async def test_lockout_after_repeated_failures(self, service, share_repo):
        share_id = await seed_share(share_repo, share_type=ShareType.PRIVATE, password='abc123')
        for _ in range(3):
            with pytest.raises(InvalidPassword):
                await service.authenticate(share_id, 'nope', client_key='10.0.0.1')

        with pytest.raises(TooManyAttempts) as excinfo:
            await service.authenticate(share_id, 'abc123', client_key='10.0.0.1')
        assert excinfo.value.retry_after > 0

        # Another client is unaffected.
        resolved = await service.authenticate(share_id, 'abc123', client_key='10.0.0.2')
        assert resolved.share.id == share_id

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, service, share_repo):
        share_id = await seed_share(share_repo, share_type=ShareType.PRIVATE, password='abc123')
        for _ in range(2):
            with pytest.raises(InvalidPassword):
                await service.authenticate(share_id, 'nope', client_key='c')
        await service.authenticate(share_id, 'abc123', client_key='c')
        for _ in range(2):
            with pytest.raises(InvalidPassword):
                await service.authenticate(share_id, 'nope', client_key='c')

    @pytest.mark.asyncio
    async def test_unlock_does_not_count_a_second_view(self, service, share_repo):
        share_id = await seed_share(share_repo, share_type=ShareType.PRIVATE, password='abc123')
        with pytest.raises(PasswordRequired):
            await service.resolve(share_id)
        await service.authenticate(share_id, 'abc123')
        assert (await share_repo.get(share_id))['view_count'] == 1

    @pytest.mark.asyncio
    async def test_empty_password_is_not_an_attempt(self, service, share_repo, limiter):
        share_id = await seed_share(share_repo, share_type=ShareType.PRIVATE, password='abc123')
        for _ in range(5):
            with pytest.raises(ShareValidationError) as excinfo:
                await service.authenticate(share_id, '', client_key='c')
            assert excinfo.value.field == 'password'
        limiter.check(share_id, 'c')
        resolved = await service.authenticate(share_id, 'abc123', client_key='c')
        assert resolved.share.id == share_id

    @pytest.mark.asyncio
    async def test_password_check_runs_off_the_event_loop(self, service, share_repo, monkeypatch):
        share_id = await seed_share(share_repo, share_type=ShareType.PRIVATE, password='abc123')
        threads = []
        real_verify = passwords.verify_share_password

        def recording_verify(password, encoded):
            threads.append(threading.get_ident())
            return real_verify(password, encoded)

        monkeypatch.setattr(passwords, 'verify_share_password', recording_verify)
        await service.authenticate(share_id, 'abc123')
        assert threads and threads[0] != threading.get_ident()


# =====================================================================
# View count
# =====================================================================


class TestViewCount:

    @pytest.mark.asyncio
    async def test_ten_resolutions_add_ten(self, service, share_repo):
        share_id = await seed_share(share_repo, view_count=4)
        for _ in range(10):
            await service.resolve(share_id)
        assert (await share_repo.get(share_id))['view_count'] == 14

    @pytest.mark.asyncio
    async def test_response_reflects_increment(self, service, share_repo):
        share_id = await seed_share(share_repo, view_count=2)
        resolved = await service.resolve(share_id)
        assert resolved.to_dict()['share']['view_count'] == 3

    @pytest.mark.asyncio
    async def test_failed_resolutions_do_not_increment(self, service, share_repo, clock):
        inactive = await seed_share(share_repo, is_active=False)
        expiring = await seed_share(share_repo, expires_at=NOW + timedelta(minutes=1))
        clock.advance(minutes=2)

        with pytest.raises(ShareNotFound):
            await service.resolve(inactive)
        with pytest.raises(ShareExpired):
            await service.resolve(expiring)
        with pytest.raises(InvalidIdentifier):
            await service.resolve('garbage')

        assert (await share_repo.get(inactive))['view_count'] == 0
        assert (await share_repo.get(expiring))['view_count'] == 0

    @pytest.mark.asyncio
    async def test_increment_failure_does_not_block_access(self, service, share_repo):
        share_id = await seed_share(share_repo)
        share_repo.fail_increment_with = RuntimeError('rpc down')
        before = REGISTRY.get_sample_value('share_view_increment_failures_total') or 0.0

        resolved = await service.resolve(share_id)

        assert resolved.view.project['id'] == PROJECT_ID
        assert resolved.share.view_count == 0
        after = REGISTRY.get_sample_value('share_view_increment_failures_total')
        assert after == before + 1


# =====================================================================
# Comments
# =====================================================================


class TestComments:

    @pytest.mark.asyncio
    async def test_three_comments_keep_call_order(self, service, share_repo, clock):
        share_id = await seed_share(share_repo)
        for author in ('Ana', 'Ben', 'Cy'):
            await service.add_comment(share_id, author, f'Looks good from {author}')
            clock.advance(seconds=1)

        comments = await service.viewer_comments(share_id)
        assert [c.author_name for c in comments] == ['Ana', 'Ben', 'Cy']
        assert len({c.id for c in comments}) == 3
        stamps = [c.created_at for c in comments]
        assert stamps == sorted(stamps)

    @pytest.mark.asyncio
    async def test_comments_appear_in_resolved_view(self, service, share_repo):
        share_id = await seed_share(share_repo)
        await service.add_comment(share_id, 'Ana', 'Nice progress')
        body = (await service.resolve(share_id)).view.to_dict()
        assert [c['comment'] for c in body['comments']] == ['Nice progress']

    @pytest.mark.asyncio
    async def test_comment_fields_are_trimmed(self, service, share_repo):
        share_id = await seed_share(share_repo)
        comment = await service.add_comment(share_id, '  Ana  ', '\n Great \n')
        assert comment.author_name == 'Ana'
        assert comment.comment == 'Great'
        assert comment.created_at == NOW

    @pytest.mark.asyncio
    async def test_disabled_comments_refuse_writes(self, service, share_repo, comment_repo):
        share_id = await seed_share(share_repo, options=NO_COMMENT_OPTIONS)
        for _ in range(3):
            with pytest.raises(CommentsDisabled):
                await service.add_comment(share_id, 'Ana', 'Hello')
        assert await comment_repo.count(share_id) == 0

    @pytest.mark.asyncio
    async def test_disabled_comments_omitted_from_view(self, service, share_repo):
        share_id = await seed_share(share_repo, options=NO_COMMENT_OPTIONS)
        body = (await service.resolve(share_id)).view.to_dict()
        assert COMMENTS_KEY not in body

    @pytest.mark.asyncio
    @pytest.mark.parametrize('author,text,field', [
        ('', 'hello', 'author_name'),
        ('   ', 'hello', 'author_name'),
        ('Ana', '', 'comment'),
        ('Ana', '  \t ', 'comment'),
        ('A' * 101, 'hello', 'author_name'),
        ('Ana', 'x' * 2001, 'comment'),
    ])
    async def test_invalid_comment_rejected(
        self, service, share_repo, comment_repo, author, text, field,
    ):
        share_id = await seed_share(share_repo)
        with pytest.raises(ShareValidationError) as excinfo:
            await service.add_comment(share_id, author, text)
        assert excinfo.value.field == field
        assert await comment_repo.count(share_id) == 0

    @pytest.mark.asyncio
    async def test_comment_on_expired_share_refused(self, service, share_repo, clock):
        share_id = await seed_share(share_repo, expires_at=NOW + timedelta(minutes=1))
        clock.advance(minutes=5)
        with pytest.raises(ShareExpired):
            await service.add_comment(share_id, 'Ana', 'Too late')

    @pytest.mark.asyncio
    async def test_private_share_comments_need_password(self, service, share_repo):
        share_id = await seed_share(
            share_repo, share_type=ShareType.PRIVATE, password=SHARE_PASSWORD,
        )
        with pytest.raises(PasswordRequired):
            await service.add_comment(share_id, 'Ana', 'Hi')
        with pytest.raises(InvalidPassword):
            await service.viewer_comments(share_id, password='nope')

        await service.add_comment(share_id, 'Ana', 'Hi', password=SHARE_PASSWORD)
        comments = await service.viewer_comments(share_id, password=SHARE_PASSWORD)
        assert [c.comment for c in comments] == ['Hi']

    @pytest.mark.asyncio
    async def test_comment_audited(self, service, share_repo, audit):
        share_id = await seed_share(share_repo)
        await service.add_comment(share_id, 'Ana', 'Hi')
        events = audit.find(event_type='share.commented')
        assert len(events) == 1
        assert events[0].project_id == PROJECT_ID


# =====================================================================
# Audit trail
# =====================================================================


class TestAudit:

    @pytest.mark.asyncio
    async def test_denials_record_code_and_redacted_id(self, service, share_repo, audit):
        share_id = await seed_share(share_repo, expires_at=NOW - timedelta(hours=1))
        with pytest.raises(ShareExpired):
            await service.resolve(share_id)
        (event,) = audit.find(event_type='share.denied')
        assert event.detail == 'share_expired'
        assert event.share_id_prefix == f'{share_id[:8]}...'
        assert event.project_id == PROJECT_ID
        assert share_id not in json.dumps(event.to_dict())

    @pytest.mark.asyncio
    async def test_expired_unlock_denial_carries_project(self, service, share_repo, audit):
        share_id = await seed_share(
            share_repo,
            share_type=ShareType.PRIVATE,
            password=SHARE_PASSWORD,
            expires_at=NOW - timedelta(seconds=1),
        )
        with pytest.raises(ShareExpired):
            await service.authenticate(share_id, SHARE_PASSWORD)
        (event,) = audit.find(event_type='share.denied', project_id=PROJECT_ID)
        assert event.detail == 'share_expired'

    @pytest.mark.asyncio
    async def test_malformed_ids_not_audited(self, service, audit):
        with pytest.raises(InvalidIdentifier):
            await service.resolve('nope')
        assert audit.events == []

    @pytest.mark.asyncio
    async def test_access_audited(self, service, share_repo, audit):
        share_id = await seed_share(share_repo)
        await service.resolve(share_id)
        assert len(audit.find(event_type='share.accessed', project_id=PROJECT_ID)) == 1
