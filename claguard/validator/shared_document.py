# The MIT License (MIT)
# Copyright © 2025 Entrius

import asyncio
from typing import Optional

import bittensor as bt

from claguard.classes import ClaDocument, LinkedItem, PropagationResult
from claguard.exceptions import ValidationError
from claguard.validator import organization, repository
from claguard.validator.context import ClaContext


async def validate_shared_document_items(
    ctx: ClaContext, document: Optional[ClaDocument], origin: Optional[LinkedItem] = None
) -> PropagationResult:
    """Revalidate every repository and organization that shares one CLA document.

    Both lookups are independent: if one fails, it is logged and only that half
    of the propagation is skipped. Errors of single repositories or orgs are
    collected in the result.

    Args:
        ctx (ClaContext): Engine context
        document (Optional[ClaDocument]): The shared document
        origin (Optional[LinkedItem]): Entity that triggered the propagation, for logging

    Returns:
        PropagationResult: Per repository and per org results

    Raises:
        ValidationError: If no document is given. Raised before any lookup.
    """
    if not document:
        raise ValidationError("A CLA document is required to revalidate items sharing it")

    origin_str = f" (triggered by {origin.full_name})" if origin is not None else ""
    bt.logging.info(f"Revalidating all items sharing {document}{origin_str}")

    result = PropagationResult(document=document)

    try:
        repos = await ctx.entities.find_repos_sharing_document(document)
    except Exception as e:
        bt.logging.error(f"Could not find repositories sharing {document}: {e}")
        result.errors.append(f"repositories: {e}")
        repos = []

    try:
        orgs = await ctx.entities.find_orgs_sharing_document(document)
    except Exception as e:
        bt.logging.error(f"Could not find orgs sharing {document}: {e}")
        result.errors.append(f"orgs: {e}")
        orgs = []

    repo_results, org_results = await asyncio.gather(
        asyncio.gather(
            *[repository.validate_pull_requests(ctx, r.repo, r.owner, item=r) for r in repos],
            return_exceptions=True,
        ),
        asyncio.gather(*[_validate_org(ctx, o) for o in orgs], return_exceptions=True),
    )

    for linked_repo, repo_result in zip(repos, repo_results):
        if isinstance(repo_result, Exception):
            bt.logging.error(f"Shared document validation of {linked_repo.full_name} failed: {repo_result}")
            result.errors.append(f"{linked_repo.full_name}: {repo_result}")
        else:
            result.repositories.append(repo_result)

    for linked_org, org_result in zip(orgs, org_results):
        if isinstance(org_result, Exception):
            bt.logging.error(f"Shared document validation of org {linked_org.org} failed: {org_result}")
            result.errors.append(f"{linked_org.org}: {org_result}")
        else:
            result.organizations.append(org_result)

    bt.logging.info(
        f"✓ Shared document {document}: {len(result.repositories)} repositories, "
        f"{len(result.organizations)} orgs revalidated"
    )
    return result


async def _validate_org(ctx: ClaContext, linked_org):
    task = await organization.validate_org_pull_requests(ctx, linked_org)
    return await task
