# The MIT License (MIT)
# Copyright © 2025 Entrius

import asyncio
from typing import List, Optional

from claguard.boundaries import VersionControl
from claguard.classes import PullRequestRef, RepositoryRef
from claguard.exceptions import UpstreamLookupError
from claguard.utils import github_api_tools


class GitHubVersionControl(VersionControl):
    """Lists pull requests, repositories and users through the GitHub REST API.

    The `requests` calls block, so each one runs in a worker thread.
    """

    async def list_open_pull_requests(self, repo: str, owner: str, token: Optional[str]) -> List[PullRequestRef]:
        pulls = await asyncio.to_thread(github_api_tools.get_open_pull_requests, f"{owner}/{repo}", token)
        if pulls is None:
            raise UpstreamLookupError(f"GitHub did not return the open pull requests of {owner}/{repo}")
        return [PullRequestRef.from_github_response(repo, owner, pr) for pr in pulls]

    async def list_repositories(self, org: str, token: Optional[str]) -> List[RepositoryRef]:
        repos = await asyncio.to_thread(github_api_tools.get_org_repositories, org, token)
        if repos is None:
            raise UpstreamLookupError(f"GitHub did not return the repositories of org {org}")
        return [RepositoryRef.from_github_response(repo) for repo in repos]

    async def get_user(self, username: str, token: Optional[str]) -> Optional[dict]:
        return await asyncio.to_thread(github_api_tools.get_github_user_by_name, username, token)
