# The MIT License (MIT)
# Copyright © 2025 Entrius

import asyncio
import time
from typing import List, Optional, Union

import bittensor as bt

from claguard.classes import LinkedOrg, OrgBatchResult, RepositoryRef
from claguard.exceptions import UpstreamLookupError, ValidationError
from claguard.utils.logging import log_batch_summary
from claguard.validator import repository
from claguard.validator.context import ClaContext
from claguard.validator.linked_item import resolve_linked_item
from claguard.validator.utils.config import ValidationConfig


async def validate_org_pull_requests(
    ctx: ClaContext,
    org: Union[str, LinkedOrg],
    token: Optional[str] = None,
    config: Optional[ValidationConfig] = None,
) -> "asyncio.Task[OrgBatchResult]":
    """Revalidate the open pull requests of every repository of an organization.

    Enumeration happens up front: if the org's repositories (or the repositories
    linked on their own under it) cannot be listed, the error is raised and no
    repository is validated. Repositories excluded by the org and repositories
    overriding the org's document with their own are skipped; the latter are
    only validated through their own repository path.

    The remaining repositories are validated in blocks of `config.block_size`.
    After each block, if `config.time_to_wait` is non-zero, the next block waits
    that many milliseconds. This keeps the outbound request rate under the
    provider's rate limit.

    Args:
        ctx (ClaContext): Engine context
        org (Union[str, LinkedOrg]): Org name or its already resolved record
        token (Optional[str]): GitHub token, defaults to the org's token
        config (Optional[ValidationConfig]): Throttling policy, defaults to ctx.config

    Returns:
        asyncio.Task[OrgBatchResult]: Returned once the batch is accepted. Await it
        to wait for every block to complete.

    Raises:
        ValidationError: If no org is given
        UpstreamLookupError: If the org or its repositories could not be enumerated
    """
    config = config or ctx.config

    if isinstance(org, LinkedOrg):
        linked_org = org
    else:
        if not org:
            raise ValidationError("org is required to validate an organization")
        linked_org = await resolve_linked_item(ctx, org=org)
        if linked_org is None:
            raise UpstreamLookupError(f"Org {org} is not linked")

    token = token or linked_org.token

    try:
        repositories = await ctx.vcs.list_repositories(linked_org.org, token)
    except Exception as e:
        bt.logging.error(f"Could not list repositories of org {linked_org.org}: {e}")
        raise UpstreamLookupError(f"Could not list repositories of org {linked_org.org}: {e}") from e

    try:
        linked_repos = await ctx.entities.list_repos_by_owner(linked_org.org)
    except Exception as e:
        bt.logging.error(f"Could not query linked repositories of {linked_org.org}: {e}")
        raise UpstreamLookupError(f"Could not query linked repositories of {linked_org.org}: {e}") from e

    overriding = {r.repo.lower() for r in linked_repos or [] if r.has_document}
    result = OrgBatchResult(org=linked_org.org)
    selected: List[RepositoryRef] = []

    for repo_ref in repositories:
        if linked_org.is_repo_excluded(repo_ref.name):
            result.excluded.append(repo_ref.name)
        elif repo_ref.name.lower() in overriding:
            result.overridden.append(repo_ref.name)
        else:
            selected.append(repo_ref)

    bt.logging.info(
        f"Org {linked_org.org}: validating {len(selected)} of {len(repositories)} repositories "
        f"({len(result.excluded)} excluded, {len(result.overridden)} with their own CLA)"
    )

    return asyncio.create_task(_run_blocks(ctx, linked_org, selected, token, config, result))


async def _run_blocks(
    ctx: ClaContext,
    linked_org: LinkedOrg,
    selected: List[RepositoryRef],
    token: Optional[str],
    config: ValidationConfig,
    result: OrgBatchResult,
) -> OrgBatchResult:
    start_time = time.time()
    blocks = [selected[i:i + config.block_size] for i in range(0, len(selected), config.block_size)]

    for index, block in enumerate(blocks, 1):
        bt.logging.debug(f"Org {linked_org.org}: block {index}/{len(blocks)} ({len(block)} repositories)")

        batch_results = await asyncio.gather(
            *[
                repository.validate_pull_requests(ctx, repo_ref.name, repo_ref.owner, item=linked_org, token=token)
                for repo_ref in block
            ],
            return_exceptions=True,
        )

        for repo_ref, batch_result in zip(block, batch_results):
            if isinstance(batch_result, Exception):
                bt.logging.error(f"Validation of {repo_ref.full_name} failed: {batch_result}")
                result.errors.append(f"{repo_ref.full_name}: {batch_result}")
            else:
                result.repositories.append(batch_result)
        result.blocks = index

        if index < len(blocks) and config.time_to_wait > 0:
            await asyncio.sleep(config.delay_seconds)

    log_batch_summary(result, time.time() - start_time)
    return result
