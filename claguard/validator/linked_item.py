# The MIT License (MIT)
# Copyright © 2025 Entrius

from typing import Optional

from claguard.classes import LinkedItem
from claguard.exceptions import UpstreamLookupError, ValidationError
from claguard.validator.context import ClaContext


async def resolve_linked_item(
    ctx: ClaContext, repo: Optional[str] = None, owner: Optional[str] = None, org: Optional[str] = None
) -> Optional[LinkedItem]:
    """Resolve the entity whose CLA document governs a repository or an organization.

    The repository's own record wins if it carries a document. Otherwise the
    owner's organization record is used when one exists. A repository record
    without a document and without an organization resolves to itself, which
    callers treat as the "null CLA" state.

    Args:
        ctx (ClaContext): Engine context
        repo (Optional[str]): Repository name, together with `owner`
        owner (Optional[str]): Repository owner
        org (Optional[str]): Organization name, used when no repository is given

    Returns:
        Optional[LinkedItem]: The governing LinkedRepo/LinkedOrg, or None if nothing is linked
    """
    if repo and owner:
        try:
            linked_repo = await ctx.entities.get_repo(repo, owner)
        except Exception as e:
            raise UpstreamLookupError(f"Could not look up linked repo {owner}/{repo}: {e}") from e

        if linked_repo is not None and linked_repo.has_document:
            return linked_repo

        linked_org = await _get_org(ctx, owner)
        if linked_org is not None:
            return linked_org
        return linked_repo

    org = org or owner
    if not org:
        raise ValidationError("Either repo and owner or org is required to resolve a linked item")
    return await _get_org(ctx, org)


async def _get_org(ctx: ClaContext, org: str):
    try:
        return await ctx.entities.get_org(org)
    except Exception as e:
        raise UpstreamLookupError(f"Could not look up linked org {org}: {e}") from e

