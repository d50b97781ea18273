# The MIT License (MIT)
# Copyright © 2025 Entrius

"""
Signature recording and the pull request updates that follow it.

After a signature is recorded, only the pull requests cached for the signer are
revalidated. Without a cache the whole governing scope is revalidated: the
repository, the org, or every item sharing the document.
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import bittensor as bt

from claguard.classes import (
    CheckResult,
    LinkedItem,
    LinkedOrg,
    PullRequestRef,
    SignResult,
    UserSignatureCache,
    same_linked_item,
    shares_document_with,
)
from claguard.exceptions import ClaError, CheckBoundaryError, UpstreamLookupError, ValidationError
from claguard.validator import organization, pull_request, repository, shared_document
from claguard.validator.context import ClaContext
from claguard.validator.linked_item import resolve_linked_item


def _require_scope(repo: Optional[str], owner: Optional[str], org: Optional[str]) -> None:
    if not ((repo and owner) or org or (owner and not repo)):
        raise ValidationError("repo and owner, or org, are required")


async def _resolve_scope(
    ctx: ClaContext, repo: Optional[str], owner: Optional[str], org: Optional[str]
) -> LinkedItem:
    _require_scope(repo, owner, org)
    if repo and owner:
        item = await resolve_linked_item(ctx, repo=repo, owner=owner)
    else:
        item = await resolve_linked_item(ctx, org=org or owner)
    if item is None:
        scope = f"{owner}/{repo}" if repo else (org or owner)
        raise UpstreamLookupError(f"No repo or org linked for {scope}")
    return item


async def sign(
    ctx: ClaContext,
    user: Dict[str, Any],
    repo: Optional[str] = None,
    owner: Optional[str] = None,
    org: Optional[str] = None,
    custom_fields: Optional[str] = None,
) -> SignResult:
    """Sign the CLA as the authenticated user and update the pull requests waiting on it.

    Args:
        ctx (ClaContext): Engine context
        user (Dict[str, Any]): Authenticated GitHub user with 'login', 'id' and optionally 'token'
        repo (Optional[str]): Repository the CLA was signed for, with `owner`
        owner (Optional[str]): Repository owner
        org (Optional[str]): Org the CLA was signed for
        custom_fields (Optional[str]): JSON encoded custom fields filled in by the signer

    Returns:
        SignResult: The recorded signature and what was updated
    """
    return await add_signature(
        ctx,
        user=user['login'],
        user_id=user['id'],
        repo=repo,
        owner=owner,
        org=org,
        custom_fields=custom_fields,
        token=user.get('token'),
    )


async def add_signature(
    ctx: ClaContext,
    user: str,
    user_id: int,
    repo: Optional[str] = None,
    owner: Optional[str] = None,
    org: Optional[str] = None,
    custom_fields: Optional[str] = None,
    token: Optional[str] = None,
) -> SignResult:
    """Record a signature for `user` and update the affected pull requests.

    The signature service decides about duplicates; its errors (including
    SignatureConflictError) are logged and re-raised unchanged, never retried.
    Failures while updating pull requests afterwards are logged only, the
    signature is already recorded at that point.

    Raises:
        ValidationError: If neither repo and owner nor org is given
        UpstreamLookupError: If nothing is linked for the given scope
    """
    item = await _resolve_scope(ctx, repo, owner, org)

    try:
        signature = await ctx.signatures.sign(item, user, user_id, custom_fields)
    except Exception as e:
        bt.logging.error(f"Could not sign CLA of {item.full_name} for {user}: {e}")
        raise

    bt.logging.success(f"{user} signed the CLA of {item.full_name} ({item.document})")
    result = SignResult(signature=signature)

    try:
        await update_user_pull_requests(ctx, item, user, token, result)
    except ClaError as e:
        bt.logging.error(f"Could not update pull requests of {user} after signing: {e}")
    return result


async def update_user_pull_requests(
    ctx: ClaContext, item: LinkedItem, user: str, token: Optional[str], result: SignResult
) -> None:
    """Update the pull requests affected by `user` signing the document of `item`.

    Cached requests are re-resolved: entries that no longer resolve to a linked
    item are pruned, entries governed by the signed item (or by an item sharing
    its document) are revalidated once per cached number and consumed, all
    other entries stay cached. Without any cached request the governing scope
    is revalidated as a whole.

    Consumed entries are saved before the revalidation runs, so a pull request
    that is still unsigned afterwards is remembered again.
    """
    targeted = None
    async with ctx.signature_cache_lock(user):
        try:
            cache = await ctx.users.get_signature_cache(user)
        except Exception as e:
            bt.logging.warning(f"Could not load signature cache of {user}: {e}")
            cache = None

        if cache is not None and cache.requests:
            targeted = await _consume_cached_requests(ctx, item, cache, result)

    if targeted is None:
        await _revalidate_scope(ctx, item, token, result)
        return

    outcomes = await asyncio.gather(
        *(pull_request.validate_pull_request(ctx, pull, linked) for pull, linked in targeted), return_exceptions=True
    )
    for outcome in outcomes:
        if isinstance(outcome, Exception):
            bt.logging.error(f"Targeted update after signature of {user} failed: {outcome}")
    result.targeted_updates = len(targeted)


async def _consume_cached_requests(
    ctx: ClaContext, item: LinkedItem, cache: UserSignatureCache, result: SignResult
) -> List[Tuple[PullRequestRef, LinkedItem]]:
    """Split the cache into pull requests to revalidate and entries to keep, saving what is kept."""
    remaining = []
    targeted = []
    for entry in cache.requests:
        try:
            linked = await resolve_linked_item(ctx, repo=entry.repo, owner=entry.owner)
        except UpstreamLookupError as e:
            bt.logging.warning(f"Keeping cached requests of {entry.owner}/{entry.repo}: {e}")
            remaining.append(entry)
            continue

        if linked is None:
            bt.logging.info(f"Pruning cached requests of {entry.owner}/{entry.repo}: no longer linked")
            result.pruned_requests += 1
            continue

        if not (same_linked_item(linked, item) or shares_document_with(linked, item)):
            remaining.append(entry)
            continue

        for number in entry.numbers:
            targeted.append((PullRequestRef(repo=entry.repo, owner=entry.owner, number=number), linked))

    if len(remaining) != len(cache.requests):
        cache.requests = remaining
        try:
            await ctx.users.save_signature_cache(cache)
        except Exception as e:
            bt.logging.warning(f"Could not save signature cache of {cache.user}: {e}")
    return targeted


async def _revalidate_scope(ctx: ClaContext, item: LinkedItem, token: Optional[str], result: SignResult) -> None:
    if item.shared_document and item.has_document:
        result.fallback = 'shared'
        await shared_document.validate_shared_document_items(ctx, item.document, origin=item)
    elif isinstance(item, LinkedOrg):
        result.fallback = 'org'
        task = await organization.validate_org_pull_requests(ctx, item, token=token or item.token)
        await task
    else:
        result.fallback = 'repo'
        await repository.validate_pull_requests(ctx, item.repo, item.owner, item=item, token=token or item.token)


async def has_signature(
    ctx: ClaContext,
    user: str,
    repo: Optional[str] = None,
    owner: Optional[str] = None,
    org: Optional[str] = None,
    number: Optional[int] = None,
) -> CheckResult:
    """Check whether `user` signed the CLA governing the given scope."""
    item = await _resolve_scope(ctx, repo, owner, org)
    pull = PullRequestRef(repo=repo, owner=owner, number=number) if repo and owner and number else None
    try:
        return await ctx.checks.check(item, pull, user=user)
    except Exception as e:
        bt.logging.error(f"CLA check of {user} on {item.full_name} failed: {e}")
        raise CheckBoundaryError(f"CLA check of {user} on {item.full_name} failed: {e}") from e


async def terminate_signature(
    ctx: ClaContext,
    user: str,
    user_id: int,
    end_date: datetime,
    repo: Optional[str] = None,
    owner: Optional[str] = None,
    org: Optional[str] = None,
) -> Any:
    item = await _resolve_scope(ctx, repo, owner, org)
    try:
        return await ctx.signatures.terminate(item, user, user_id, end_date)
    except Exception as e:
        bt.logging.error(f"Could not terminate CLA signature of {user} on {item.full_name}: {e}")
        raise


async def upload(
    ctx: ClaContext,
    users: Optional[List[str]],
    repo: Optional[str] = None,
    owner: Optional[str] = None,
    org: Optional[str] = None,
    token: Optional[str] = None,
) -> List[str]:
    """Record signatures for a list of GitHub usernames, e.g. when migrating signers.

    Unknown users and users the signature service rejects are logged and skipped.

    Returns:
        List[str]: Logins that were signed
    """
    if not users:
        return []

    item = await _resolve_scope(ctx, repo, owner, org)
    token = token or item.token

    async def _upload_one(username: str) -> Optional[str]:
        try:
            github_user = await ctx.vcs.get_user(username, token)
        except Exception as e:
            bt.logging.warning(f"Could not look up GitHub user {username}: {e}")
            return None
        if not github_user:
            bt.logging.warning(f"GitHub user {username} not found, skipping")
            return None

        login = github_user.get('login', username)
        try:
            await ctx.signatures.sign(item, login, github_user['id'])
        except Exception as e:
            bt.logging.warning(f"Could not sign CLA of {item.full_name} for {login}: {e}")
            return None
        return login

    signed = await asyncio.gather(*[_upload_one(u) for u in users])
    signed = [login for login in signed if login]
    bt.logging.info(f"Uploaded {len(signed)}/{len(users)} signatures to {item.full_name}")
    return signed


async def count_signatures(
    ctx: ClaContext, repo: Optional[str] = None, owner: Optional[str] = None, org: Optional[str] = None
) -> int:
    """Number of signatures recorded for the document governing the given scope."""
    item = await _resolve_scope(ctx, repo, owner, org)
    if not item.has_document:
        raise UpstreamLookupError(f"No CLA document linked to {item.full_name}")
    signatures = await ctx.signatures.get_all(item)
    return len(signatures or [])
