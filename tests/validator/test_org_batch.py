# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Tests for organization wide validation: enumeration, exclusions, repositories
with their own CLA, block throttling and the completion task.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from claguard.classes import BatchResult, LinkedRepo, PullRequestOutcome, RepositoryRef
from claguard.exceptions import UpstreamLookupError, ValidationError
from claguard.validator import organization
from claguard.validator.organization import validate_org_pull_requests
from claguard.validator.utils.config import ValidationConfig


def _repos(count, owner='octo-org'):
    return [RepositoryRef(name=f'repo-{i}', owner=owner) for i in range(count)]


def _run_org(ctx, org, **kwargs):
    async def _go():
        task = await validate_org_pull_requests(ctx, org, **kwargs)
        assert isinstance(task, asyncio.Task)
        return await task

    return asyncio.run(_go())


@pytest.fixture
def batch_validator():
    """Patch the repository batch validator and record the order of calls."""
    calls = []

    async def _validate(ctx, repo, owner, item=None, token=None):
        calls.append(repo)
        return BatchResult(repo=repo, owner=owner, outcomes={1: PullRequestOutcome.SIGNED})

    with patch.object(organization.repository, 'validate_pull_requests', side_effect=_validate) as mock_validate:
        mock_validate.calls = calls
        yield mock_validate


class TestEnumeration:
    def test_org_must_be_given(self, make_ctx):
        with pytest.raises(ValidationError):
            asyncio.run(validate_org_pull_requests(make_ctx(), ''))

    def test_unknown_org(self, make_ctx):
        with pytest.raises(UpstreamLookupError):
            asyncio.run(validate_org_pull_requests(make_ctx(), 'octo-org'))

    @patch('claguard.validator.organization.bt.logging')
    def test_listing_failure_validates_nothing(self, mock_logging, make_ctx, linked_org, batch_validator):
        ctx = make_ctx()
        ctx.vcs.list_repositories.side_effect = RuntimeError('rate limited')

        with pytest.raises(UpstreamLookupError, match='rate limited'):
            asyncio.run(validate_org_pull_requests(ctx, linked_org))

        batch_validator.assert_not_called()
        mock_logging.error.assert_called_once()

    def test_linked_repo_query_failure_validates_nothing(self, make_ctx, linked_org, batch_validator):
        ctx = make_ctx()
        ctx.vcs.list_repositories.return_value = _repos(3)
        ctx.entities.list_repos_by_owner.side_effect = RuntimeError('db down')

        with pytest.raises(UpstreamLookupError):
            asyncio.run(validate_org_pull_requests(ctx, linked_org))

        batch_validator.assert_not_called()

    def test_org_resolved_by_name_uses_its_token(self, make_ctx, linked_org, batch_validator):
        ctx = make_ctx()
        ctx.entities.get_org.return_value = linked_org
        ctx.vcs.list_repositories.return_value = _repos(1)

        result = _run_org(ctx, 'octo-org')

        ctx.vcs.list_repositories.assert_awaited_once_with('octo-org', 'org-token')
        assert batch_validator.call_args.kwargs == {'item': linked_org, 'token': 'org-token'}
        assert result.pull_requests == 1


class TestFiltering:
    def test_excluded_and_overridden_repositories_are_skipped(self, make_ctx, linked_org, document, batch_validator):
        ctx = make_ctx()
        linked_org.excluded_repos = 'docs-*,website'
        ctx.vcs.list_repositories.return_value = [
            RepositoryRef(name='api', owner='octo-org'),
            RepositoryRef(name='docs-en', owner='octo-org'),
            RepositoryRef(name='website', owner='octo-org'),
            RepositoryRef(name='sdk', owner='octo-org'),
            RepositoryRef(name='cli', owner='octo-org'),
        ]
        ctx.entities.list_repos_by_owner.return_value = [
            LinkedRepo(repo='sdk', owner='octo-org', document=document),
            LinkedRepo(repo='cli', owner='octo-org'),  # linked without a document of its own
        ]

        result = _run_org(ctx, linked_org)

        assert sorted(batch_validator.calls) == ['api', 'cli']
        assert sorted(result.excluded) == ['docs-en', 'website']
        assert result.overridden == ['sdk']


class TestBlocks:
    @patch('claguard.validator.organization.asyncio.sleep', new_callable=AsyncMock)
    def test_thirty_repositories_in_three_blocks(self, mock_sleep, make_ctx, linked_org, batch_validator):
        ctx = make_ctx(ValidationConfig(time_to_wait=250, block_size=10))
        ctx.vcs.list_repositories.return_value = _repos(30)
        order = []
        mock_sleep.side_effect = lambda delay: order.append(('sleep', len(batch_validator.calls)))

        result = _run_org(ctx, linked_org)

        assert result.blocks == 3
        assert len(result.repositories) == 30
        assert result.pull_requests == 30
        assert len(set(batch_validator.calls)) == 30
        # the delay runs after each block except the last
        assert order == [('sleep', 10), ('sleep', 20)]
        mock_sleep.assert_awaited_with(0.25)

    @patch('claguard.validator.organization.asyncio.sleep', new_callable=AsyncMock)
    def test_no_delay_when_unthrottled(self, mock_sleep, make_ctx, linked_org, batch_validator):
        ctx = make_ctx(ValidationConfig(time_to_wait=0, block_size=10))
        ctx.vcs.list_repositories.return_value = _repos(25)

        result = _run_org(ctx, linked_org)

        assert result.blocks == 3
        mock_sleep.assert_not_called()

    @patch('claguard.validator.organization.asyncio.sleep', new_callable=AsyncMock)
    def test_explicit_config_overrides_context(self, mock_sleep, make_ctx, linked_org, batch_validator):
        ctx = make_ctx()
        ctx.vcs.list_repositories.return_value = _repos(4)

        result = _run_org(ctx, linked_org, config=ValidationConfig(time_to_wait=100, block_size=2))

        assert result.blocks == 2
        mock_sleep.assert_awaited_once_with(0.1)

    @patch('claguard.validator.organization.bt.logging')
    def test_failing_repository_is_contained(self, mock_logging, make_ctx, linked_org):
        ctx = make_ctx()
        ctx.vcs.list_repositories.return_value = _repos(3)

        async def _validate(ctx_, repo, owner, item=None, token=None):
            if repo == 'repo-1':
                raise UpstreamLookupError('listing failed')
            return BatchResult(repo=repo, owner=owner)

        with patch.object(organization.repository, 'validate_pull_requests', side_effect=_validate):
            result = _run_org(ctx, linked_org)

        assert [r.repo for r in result.repositories] == ['repo-0', 'repo-2']
        assert len(result.errors) == 1 and 'repo-1' in result.errors[0]

    def test_empty_org_completes(self, make_ctx, linked_org, batch_validator):
        result = _run_org(make_ctx(), linked_org)

        assert result.blocks == 0
        assert result.repositories == []
        batch_validator.assert_not_called()


class TestValidationConfig:
    def test_delay_seconds(self):
        assert ValidationConfig(time_to_wait=1500, block_size=10).delay_seconds == 1.5

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            ValidationConfig(time_to_wait=0, block_size=0)
        with pytest.raises(ValueError):
            ValidationConfig(time_to_wait=-1, block_size=10)
