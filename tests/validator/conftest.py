# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Pytest fixtures for validation engine tests.

Every collaborator of the engine is an AsyncMock built against its abstract
class, so a test only configures the calls it cares about.

Usage:
    def test_something(make_ctx, linked_repo, pull_factory):
        ctx = make_ctx()
        ctx.checks.check.return_value = CheckResult(signed=True, user_map=UserMap(signed=['octocat']))
        ...
"""

from typing import List, Optional
from unittest.mock import AsyncMock, create_autospec

import pytest

from claguard.boundaries import (
    DocumentCheckService,
    EntityStore,
    SignatureService,
    StatusService,
    UserStore,
    VersionControl,
)
from claguard.classes import ClaDocument, LinkedOrg, LinkedRepo, PullRequestRef
from claguard.validator.context import ClaContext
from claguard.validator.utils.config import ValidationConfig

# ============================================================================
# Context Fixtures
# ============================================================================


def _mock(cls):
    mock = create_autospec(cls, instance=True)
    for name in cls.__abstractmethods__:
        setattr(mock, name, AsyncMock())
    return mock


@pytest.fixture
def make_ctx():
    """Factory for a ClaContext whose collaborators are AsyncMocks with neutral defaults."""

    def _make(config: Optional[ValidationConfig] = None) -> ClaContext:
        ctx = ClaContext(
            checks=_mock(DocumentCheckService),
            signatures=_mock(SignatureService),
            vcs=_mock(VersionControl),
            status=_mock(StatusService),
            entities=_mock(EntityStore),
            users=_mock(UserStore),
            config=config or ValidationConfig(time_to_wait=0, block_size=10),
        )
        ctx.checks.is_cla_required.return_value = True
        ctx.vcs.list_open_pull_requests.return_value = []
        ctx.vcs.list_repositories.return_value = []
        ctx.entities.get_repo.return_value = None
        ctx.entities.get_org.return_value = None
        ctx.entities.list_repos_by_owner.return_value = []
        ctx.entities.find_repos_sharing_document.return_value = []
        ctx.entities.find_orgs_sharing_document.return_value = []
        ctx.users.get_signature_cache.return_value = None
        return ctx

    return _make


# ============================================================================
# Linked Item Fixtures
# ============================================================================


@pytest.fixture
def document() -> ClaDocument:
    return ClaDocument(url='https://gist.github.com/octocat/cla', version='v1')


@pytest.fixture
def linked_repo(document) -> LinkedRepo:
    """Hello-World linked on its own."""
    return LinkedRepo(repo='Hello-World', owner='octocat', token='repo-token', document=document)


@pytest.fixture
def linked_org(document) -> LinkedOrg:
    return LinkedOrg(org='octo-org', token='org-token', document=document)


# ============================================================================
# Pull Request Factory
# ============================================================================


@pytest.fixture
def pull_factory():
    """Build PullRequestRefs; numbers count up from 1 unless given."""
    counter = {'n': 0}

    def _make(repo: str = 'Hello-World', owner: str = 'octocat', number: Optional[int] = None, **kwargs) -> PullRequestRef:
        if number is None:
            counter['n'] += 1
            number = counter['n']
        return PullRequestRef(repo=repo, owner=owner, number=number, sha=kwargs.pop('sha', f'sha{number}'), **kwargs)

    return _make


@pytest.fixture
def pulls(pull_factory) -> List[PullRequestRef]:
    return [pull_factory(), pull_factory()]
