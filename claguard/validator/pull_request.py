# The MIT License (MIT)
# Copyright © 2025 Entrius

import asyncio
from typing import Awaitable, Optional

import bittensor as bt

from claguard.classes import (
    LinkedItem,
    PullRequestOutcome,
    PullRequestRef,
    UserMap,
    UserSignatureCache,
)
from claguard.exceptions import CheckBoundaryError
from claguard.validator.context import ClaContext
from claguard.validator.requirement import is_cla_required


async def _attempt(action: Awaitable, description: str) -> bool:
    """Await a status/comment call, logging instead of raising on failure."""
    try:
        await action
        return True
    except Exception as e:
        bt.logging.error(f"Failed to {description}: {e}")
        return False


async def validate_pull_request(
    ctx: ClaContext, pull: PullRequestRef, item: Optional[LinkedItem], token: Optional[str] = None
) -> PullRequestOutcome:
    """Synchronize the commit status and CLA comment of one pull request.

    Four terminal presentations:
    1. No document linked -> neutral status, comment deleted. No check.
    2. CLA not required -> "not required" status, comment deleted. No check.
    3./4. Required -> check the committers, set the status, edit the comment in place.

    Status and comment calls are independent; a failure of either is logged and
    never raised, so one broken pull request cannot stop a batch. Running this
    twice with the same check result converges to the same visible state.

    Args:
        ctx (ClaContext): Engine context
        pull (PullRequestRef): The pull request to synchronize
        item (Optional[LinkedItem]): Entity governing the pull request's repository
        token (Optional[str]): GitHub token, defaults to the item's token

    Returns:
        PullRequestOutcome: The presentation the pull request ended in
    """
    token = token or (item.token if item is not None else None)

    if item is None or not item.has_document:
        bt.logging.debug(f"{pull.full_name}: no CLA linked")
        await asyncio.gather(
            _attempt(ctx.status.update_for_null_cla(pull, token), f"set null CLA status on {pull.full_name}"),
            _attempt(ctx.status.delete_comment(pull, token), f"delete CLA comment on {pull.full_name}"),
        )
        return PullRequestOutcome.NULL_CLA

    if not await is_cla_required(ctx, item, pull):
        bt.logging.debug(f"{pull.full_name}: CLA not required")
        await asyncio.gather(
            _attempt(ctx.status.delete_comment(pull, token), f"delete CLA comment on {pull.full_name}"),
            _attempt(
                ctx.status.update_for_cla_not_required(pull, token),
                f"set CLA not required status on {pull.full_name}",
            ),
        )
        return PullRequestOutcome.NOT_REQUIRED

    try:
        result = await ctx.checks.check(item, pull)
    except Exception as e:
        error = CheckBoundaryError(f"CLA check failed for {pull.full_name}: {e}")
        bt.logging.error(str(error))
        return PullRequestOutcome.CHECK_FAILED

    actions = [
        _attempt(ctx.status.update_status(pull, result.signed, token), f"update status on {pull.full_name}")
    ]
    if result.user_map is not None:
        actions.append(
            _attempt(
                ctx.status.edit_comment(pull, result.signed, result.user_map, token),
                f"edit CLA comment on {pull.full_name}",
            )
        )
    await asyncio.gather(*actions)

    if result.signed:
        bt.logging.debug(f"{pull.full_name}: CLA signed")
        return PullRequestOutcome.SIGNED

    bt.logging.debug(f"{pull.full_name}: CLA not signed")
    if result.user_map is not None and result.user_map.not_signed:
        await remember_pending_pull_request(ctx, pull, result.user_map)
    return PullRequestOutcome.NOT_SIGNED


async def remember_pending_pull_request(ctx: ClaContext, pull: PullRequestRef, user_map: UserMap) -> None:
    """Store the pull request in the signature cache of every committer who has not signed yet.

    Lets a later signature update exactly these pull requests instead of
    rescanning whole repositories. Best-effort: failures are logged.
    """
    for user in user_map.not_signed:
        try:
            async with ctx.signature_cache_lock(user):
                cache = await ctx.users.get_signature_cache(user) or UserSignatureCache(user=user)
                if cache.remember(pull.repo, pull.owner, pull.number):
                    await ctx.users.save_signature_cache(cache)
        except Exception as e:
            bt.logging.warning(f"Could not remember {pull.full_name} for {user}: {e}")
