# The MIT License (MIT)
# Copyright © 2025 Entrius

import asyncio
from typing import Dict, List, Optional, Tuple

from claguard.boundaries import DocumentCheckService
from claguard.classes import CheckResult, LinkedItem, LinkedRepo, PullRequestRef, UserMap
from claguard.exceptions import CheckBoundaryError
from claguard.storage.json_store import JsonSignatureStore
from claguard.utils import github_api_tools

BOT_SUFFIXES = ('[bot]',)


def is_bot(login: str) -> bool:
    return login.lower().endswith(BOT_SUFFIXES)


class GitHubDocumentCheck(DocumentCheckService):
    """Checks the GitHub committers of a pull request against recorded signatures.

    The committers fetched by `is_cla_required` are handed over to the `check`
    that follows for the same pull request, so one validation reads the
    commit list once.
    """

    def __init__(self, signatures: JsonSignatureStore):
        self.signatures = signatures
        self._pending: Dict[Tuple[str, str, int], Tuple[List[str], List[str]]] = {}

    @staticmethod
    def _key(pull: PullRequestRef) -> Tuple[str, str, int]:
        return (pull.owner.lower(), pull.repo.lower(), pull.number)

    async def _committers(self, item: LinkedItem, pull: PullRequestRef) -> Tuple[List[str], List[str]]:
        committers = await asyncio.to_thread(
            github_api_tools.get_pull_request_committers, f"{pull.owner}/{pull.repo}", pull.number, item.token
        )
        if committers is None:
            raise CheckBoundaryError(f"Could not get the committers of {pull.full_name}")
        return committers

    def _excluded(self, item: LinkedItem, login: str) -> bool:
        return is_bot(login) or (isinstance(item, LinkedRepo) and item.is_user_excluded(login))

    async def check(self, item: LinkedItem, pull: Optional[PullRequestRef], user: Optional[str] = None) -> CheckResult:
        """Check every committer of `pull`, or only `user` when one is given."""
        if user:
            signed = self.signatures.has_signed(item, user)
            if pull is None:
                return CheckResult(signed=signed)
            user_map = UserMap(signed=[user]) if signed else UserMap(not_signed=[user])
            return CheckResult(signed=signed, user_map=user_map)

        if pull is None:
            raise CheckBoundaryError("Either a pull request or a user is required for a CLA check")

        committers = self._pending.pop(self._key(pull), None)
        logins, unknown = committers if committers is not None else await self._committers(item, pull)

        user_map = UserMap(unknown=list(unknown))
        for login in logins:
            if self._excluded(item, login):
                continue
            if self.signatures.has_signed(item, login):
                user_map.signed.append(login)
            else:
                user_map.not_signed.append(login)

        signed = not user_map.not_signed and not user_map.unknown
        return CheckResult(signed=signed, user_map=user_map)

    async def is_cla_required(self, item: LinkedItem, pull: PullRequestRef) -> bool:
        logins, unknown = await self._committers(item, pull)
        remaining: List[str] = [login for login in logins if not self._excluded(item, login)]
        required = bool(unknown or remaining)
        if required:
            self._pending[self._key(pull)] = (logins, unknown)
        return required
