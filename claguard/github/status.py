# The MIT License (MIT)
# Copyright © 2025 Entrius

import asyncio
from typing import Optional

import bittensor as bt

from claguard.boundaries import StatusService
from claguard.classes import PullRequestRef, UserMap
from claguard.constants import (
    COMMENT_HEADER_NOT_SIGNED,
    COMMENT_HEADER_SIGNED,
    COMMENT_MARKER,
    STATUS_CONTEXT,
    STATUS_DESCRIPTION_NOT_REQUIRED,
    STATUS_DESCRIPTION_NOT_SIGNED,
    STATUS_DESCRIPTION_NULL_CLA,
    STATUS_DESCRIPTION_SIGNED,
    STATUS_TARGET_URL_BASE,
)
from claguard.exceptions import StatusUpdateError
from claguard.utils import github_api_tools


def render_comment(pull: PullRequestRef, signed: bool, user_map: UserMap) -> str:
    """Build the body of the CLA comment from the committer breakdown."""
    sign_url = f"{STATUS_TARGET_URL_BASE}/{pull.owner}/{pull.repo}?pullRequest={pull.number}"
    lines = [COMMENT_MARKER]

    if signed:
        lines.append(f"[![CLA assistant check]({STATUS_TARGET_URL_BASE}/pull/badge/signed)]({sign_url}) <br/>")
        lines.append(COMMENT_HEADER_SIGNED)
        return "\n".join(lines)

    lines.append(f"[![CLA assistant check]({STATUS_TARGET_URL_BASE}/pull/badge/not_signed)]({sign_url}) <br/>")
    lines.append(COMMENT_HEADER_NOT_SIGNED)
    lines.append(f"Like many open source projects, we ask that you [sign our CLA]({sign_url}) before we can accept your contribution.")

    committers = len(user_map.signed) + len(user_map.not_signed)
    if committers > 1:
        lines.append(f"<br/>**{len(user_map.signed)}** out of **{committers}** committers have signed the CLA.<br/>")
        lines.extend(f":white_check_mark: {user}" for user in user_map.signed)
        lines.extend(f":x: {user}" for user in user_map.not_signed)

    if user_map.unknown:
        seem = "seems" if len(user_map.unknown) == 1 else "seem"
        lines.append(
            f"<hr/>**{', '.join(user_map.unknown)}** {seem} not to be a GitHub user. "
            "You need a GitHub account to be able to sign the CLA."
        )
    return "\n".join(lines)


class GitHubStatusService(StatusService):
    """Commit statuses and the single CLA comment per pull request on GitHub."""

    async def _resolve_sha(self, pull: PullRequestRef, token: Optional[str]) -> str:
        if pull.sha:
            return pull.sha
        sha = await asyncio.to_thread(
            github_api_tools.get_pull_request_head_sha, f"{pull.owner}/{pull.repo}", pull.number, token
        )
        if not sha:
            raise StatusUpdateError(f"Could not resolve head sha of {pull.full_name}")
        return sha

    async def _create_status(self, pull: PullRequestRef, state: str, description: str, token: Optional[str]) -> None:
        sha = await self._resolve_sha(pull, token)
        target_url = f"{STATUS_TARGET_URL_BASE}/{pull.owner}/{pull.repo}?pullRequest={pull.number}"
        created = await asyncio.to_thread(
            github_api_tools.create_commit_status,
            f"{pull.owner}/{pull.repo}",
            sha,
            state,
            description,
            STATUS_CONTEXT,
            target_url,
            token,
        )
        if not created:
            raise StatusUpdateError(f"Could not set {state} status on {pull.full_name}")

    async def update_status(self, pull: PullRequestRef, signed: bool, token: Optional[str]) -> None:
        if signed:
            await self._create_status(pull, 'success', STATUS_DESCRIPTION_SIGNED, token)
        else:
            await self._create_status(pull, 'pending', STATUS_DESCRIPTION_NOT_SIGNED, token)

    async def update_for_null_cla(self, pull: PullRequestRef, token: Optional[str]) -> None:
        await self._create_status(pull, 'success', STATUS_DESCRIPTION_NULL_CLA, token)

    async def update_for_cla_not_required(self, pull: PullRequestRef, token: Optional[str]) -> None:
        await self._create_status(pull, 'success', STATUS_DESCRIPTION_NOT_REQUIRED, token)

    async def edit_comment(self, pull: PullRequestRef, signed: bool, user_map: UserMap, token: Optional[str]) -> None:
        """Edit the existing CLA comment. A first comment is only created while the CLA is unsigned."""
        repository = f"{pull.owner}/{pull.repo}"
        body = render_comment(pull, signed, user_map)
        comment = await asyncio.to_thread(github_api_tools.find_cla_comment, repository, pull.number, token)

        if comment is not None:
            if comment.get('body') == body:
                return
            ok = await asyncio.to_thread(github_api_tools.update_comment, repository, comment['id'], body, token)
        elif not signed:
            ok = await asyncio.to_thread(github_api_tools.create_comment, repository, pull.number, body, token)
        else:
            bt.logging.debug(f"{pull.full_name}: signed and no CLA comment to edit")
            return

        if not ok:
            raise StatusUpdateError(f"Could not write CLA comment on {pull.full_name}")

    async def delete_comment(self, pull: PullRequestRef, token: Optional[str]) -> None:
        repository = f"{pull.owner}/{pull.repo}"
        comment = await asyncio.to_thread(github_api_tools.find_cla_comment, repository, pull.number, token)
        if comment is None:
            return
        deleted = await asyncio.to_thread(github_api_tools.delete_comment, repository, comment['id'], token)
        if not deleted:
            raise StatusUpdateError(f"Could not delete CLA comment on {pull.full_name}")
