# The MIT License (MIT)
# Copyright © 2025 Entrius

import asyncio
from typing import Optional

import bittensor as bt

from claguard.classes import BatchResult, LinkedItem
from claguard.exceptions import UpstreamLookupError
from claguard.utils.utils import mask_secret
from claguard.validator import pull_request
from claguard.validator.context import ClaContext
from claguard.validator.linked_item import resolve_linked_item


async def validate_pull_requests(
    ctx: ClaContext,
    repo: str,
    owner: str,
    item: Optional[LinkedItem] = None,
    token: Optional[str] = None,
) -> BatchResult:
    """Revalidate every open pull request of a repository.

    The governing item is resolved once (unless given) and shared by all pull
    requests. Pull requests are synchronized concurrently; the result is only
    returned after every one of them was attempted, and a failure on one never
    aborts the others.

    Args:
        ctx (ClaContext): Engine context
        repo (str): Repository name
        owner (str): Repository owner
        item (Optional[LinkedItem]): Governing repo/org, resolved when omitted
        token (Optional[str]): GitHub token, defaults to the item's token

    Returns:
        BatchResult: Outcome per pull request number plus contained errors

    Raises:
        UpstreamLookupError: If the item or the open pull requests could not be fetched
    """
    if item is None:
        item = await resolve_linked_item(ctx, repo=repo, owner=owner)
    token = token or (item.token if item is not None else None)

    bt.logging.info(f"Validating open pull requests of {owner}/{repo} (token: {mask_secret(token)})")

    try:
        pulls = await ctx.vcs.list_open_pull_requests(repo, owner, token)
    except Exception as e:
        bt.logging.error(f"Could not list open pull requests of {owner}/{repo}: {e}")
        raise UpstreamLookupError(f"Could not list open pull requests of {owner}/{repo}: {e}") from e

    result = BatchResult(repo=repo, owner=owner)
    if not pulls:
        bt.logging.debug(f"No open pull requests in {owner}/{repo}")
        return result

    outcomes = await asyncio.gather(
        *[pull_request.validate_pull_request(ctx, pull, item, token) for pull in pulls],
        return_exceptions=True,
    )

    for pull, outcome in zip(pulls, outcomes):
        if isinstance(outcome, Exception):
            bt.logging.error(f"Validation of {pull.full_name} failed: {outcome}")
            result.errors.append(f"#{pull.number}: {outcome}")
        else:
            result.outcomes[pull.number] = outcome

    bt.logging.info(
        f"✓ {owner}/{repo}: {len(result.outcomes)}/{len(pulls)} pull requests synchronized"
        + (f", {len(result.errors)} failed" if result.errors else "")
    )
    return result
